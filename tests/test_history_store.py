import pytest

from data.schemas import User
from errors import ScanDiscarded, ScanNotFound, StorageError
from history.store import GUEST_PARTITION, ScanHistoryStore

ANA = User(id="u-ana", email="ana@example.com", name="Ana", created_at="2026-01-01T00:00:00+00:00")
BEN = User(id="u-ben", email="ben@example.com", name="Ben", created_at="2026-01-01T00:00:00+00:00")


class FailingStorage:
    """Wraps a storage and fails every write after the first *allowed* ones."""

    def __init__(self, inner, allowed):
        self.inner = inner
        self.allowed = allowed

    async def get_item(self, key):
        return await self.inner.get_item(key)

    async def set_item(self, key, value):
        if self.allowed <= 0:
            raise OSError("disk full")
        self.allowed -= 1
        await self.inner.set_item(key, value)


@pytest.mark.asyncio
async def test_empty_partition_loads_as_empty(storage):
    history = ScanHistoryStore(storage)
    assert history.partition == GUEST_PARTITION
    assert await history.load() == []


@pytest.mark.asyncio
async def test_add_prepends_and_round_trips(storage, make_scan):
    history = ScanHistoryStore(storage, ANA)
    first, second = make_scan("s1"), make_scan("s2")

    await history.add(first)
    await history.add(second)

    reloaded = await ScanHistoryStore(storage, ANA).load()
    assert reloaded == [second, first]


@pytest.mark.asyncio
async def test_persisted_shape_uses_camel_case(storage, make_scan):
    history = ScanHistoryStore(storage, ANA)
    await history.add(make_scan("s1"))

    (stored,) = await storage.get_item("history_u-ana")
    assert stored["isBookmarked"] is False
    assert stored["plantProfile"]["commonName"] == "Holy Basil (Tulsi)"
    assert "scannedAt" in stored
    assert stored["confidence"] == 91
    assert isinstance(stored["confidence"], int)


@pytest.mark.asyncio
async def test_toggle_bookmark_twice_restores_record(storage, make_scan):
    history = ScanHistoryStore(storage, ANA)
    scan = make_scan("s1")
    await history.add(scan)

    flipped = await history.toggle_bookmark("s1")
    assert flipped.is_bookmarked is True
    assert history.bookmarked() == [flipped]

    await history.toggle_bookmark("s1")
    assert (await history.load()) == [scan]


@pytest.mark.asyncio
async def test_update_notes_touches_only_that_record(storage, make_scan):
    history = ScanHistoryStore(storage, ANA)
    a, b = make_scan("a"), make_scan("b")
    await history.add(a)
    await history.add(b)

    updated = await history.update_notes("a", "picked near the river")

    assert updated.notes == "picked near the river"
    assert await history.load() == [b, updated]


@pytest.mark.asyncio
async def test_delete_removes_exactly_one_and_keeps_order(storage, make_scan):
    history = ScanHistoryStore(storage, ANA)
    for scan_id in ("a", "b", "c"):
        await history.add(make_scan(scan_id))

    await history.delete("b")

    assert [s.id for s in await history.load()] == ["c", "a"]


@pytest.mark.asyncio
async def test_missing_id_raises_and_leaves_history_unchanged(storage, make_scan):
    history = ScanHistoryStore(storage, ANA)
    await history.add(make_scan("a"))
    before = await storage.get_item("history_u-ana")

    for action in (
        history.delete("nope"),
        history.toggle_bookmark("nope"),
        history.update_notes("nope", "x"),
    ):
        with pytest.raises(ScanNotFound):
            await action

    assert await storage.get_item("history_u-ana") == before
    assert [s.id for s in history.scans] == ["a"]


@pytest.mark.asyncio
async def test_failed_write_keeps_previous_state(storage, make_scan):
    history = ScanHistoryStore(FailingStorage(storage, allowed=1), ANA)
    await history.add(make_scan("a"))

    with pytest.raises(OSError):
        await history.add(make_scan("b"))

    assert [s.id for s in history.scans] == ["a"]
    assert [s["id"] for s in await storage.get_item("history_u-ana")] == ["a"]


@pytest.mark.asyncio
async def test_partitions_are_isolated(storage, make_scan):
    history = ScanHistoryStore(storage)
    await history.add(make_scan("guest-scan"))

    await history.switch_user(ANA)
    assert history.scans == []
    await history.add(make_scan("ana-scan"))

    await history.switch_user(BEN)
    assert history.scans == []

    await history.switch_user(None)
    assert [s.id for s in history.scans] == ["guest-scan"]

    await history.switch_user(ANA)
    assert [s.id for s in history.scans] == ["ana-scan"]


@pytest.mark.asyncio
async def test_unreadable_partition_keeps_previous_one(storage, make_scan):
    history = ScanHistoryStore(storage)
    await history.add(make_scan("guest-scan"))
    broken = storage.path_for("history_u-ana")
    broken.write_text("[{bad json")

    with pytest.raises(StorageError):
        await history.switch_user(ANA)

    assert history.partition == GUEST_PARTITION
    assert [s.id for s in history.scans] == ["guest-scan"]

    await history.add(make_scan("another"))
    assert broken.read_text() == "[{bad json"
    assert [s["id"] for s in await storage.get_item("history_guest")] == ["another", "guest-scan"]


@pytest.mark.asyncio
async def test_add_rejects_scan_from_previous_partition(storage, make_scan):
    history = ScanHistoryStore(storage, ANA)
    started_for = history.partition
    await history.switch_user(None)

    with pytest.raises(ScanDiscarded):
        await history.add(make_scan("late"), expected_partition=started_for)

    assert history.scans == []
    assert await storage.get_item("history_guest") is None
    assert await storage.get_item("history_u-ana") is None

    await history.add(make_scan("on-time"), expected_partition=GUEST_PARTITION)
    assert [s.id for s in history.scans] == ["on-time"]


@pytest.mark.asyncio
async def test_get_and_stats(storage, make_scan, catalog):
    from library.resolver import resolve_profile

    history = ScanHistoryStore(storage, ANA)
    await history.add(make_scan("a"))
    await history.add(make_scan("b", is_bookmarked=True))
    await history.add(make_scan("c", plant_profile=resolve_profile("Mystery", None, "p.jpg")))

    assert history.get("b").is_bookmarked
    with pytest.raises(ScanNotFound):
        history.get("zzz")

    stats = history.stats()
    assert (stats.total_scans, stats.bookmarks, stats.unique_plants) == (3, 1, 2)


@pytest.mark.asyncio
async def test_editing_scan_profile_never_reaches_library(storage, make_scan, catalog):
    history = ScanHistoryStore(storage, ANA)
    scan = make_scan("a")
    await history.add(scan)

    history.get("a").plant_profile.medicinal_uses.clear()

    assert catalog[0].medicinal_uses
