"""store.py — Per-user scan history.

``ScanHistoryStore`` owns the ordered list of ``ScanResult`` records for the
active partition (a user id, or ``guest`` when nobody is signed in). Every
mutation rewrites the whole partition, and the in-memory list is only
replaced once that write has succeeded.

Typical usage::

    history = ScanHistoryStore(storage)
    await history.switch_user(current_user)
    await history.add(scan)
    await history.toggle_bookmark(scan.id)
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from data.schemas import HistoryStats, ScanResult, User
from data.storage import JsonStorage
from errors import ScanDiscarded, ScanNotFound, StorageError

logger = logging.getLogger(__name__)

GUEST_PARTITION = "guest"
HISTORY_KEY_PREFIX = "history_"


def partition_for(user: Optional[User]) -> str:
    return user.id if user is not None else GUEST_PARTITION


class ScanHistoryStore:
    """
    Newest-first scan history for one partition at a time.

    Mutations are serialized on an ``asyncio.Lock``; there is no coordination
    with other processes writing the same partition (last writer wins).

    Args:
        storage: Backing key-value store.
        user:    Initial owner; ``None`` selects the guest partition.
    """

    def __init__(self, storage: JsonStorage, user: Optional[User] = None) -> None:
        self._storage = storage
        self._partition = partition_for(user)
        self._scans: list[ScanResult] = []
        self._lock = asyncio.Lock()

    @property
    def partition(self) -> str:
        return self._partition

    @property
    def storage_key(self) -> str:
        return f"{HISTORY_KEY_PREFIX}{self._partition}"

    @property
    def scans(self) -> list[ScanResult]:
        """Snapshot of the in-memory history, newest first."""
        return list(self._scans)

    # ── Loading ───────────────────────────────────────────────────────────────

    async def load(self) -> list[ScanResult]:
        """Read the whole partition from storage. Empty if never written."""
        scans = await self._read(self._partition)
        self._scans = scans
        logger.info("Loaded %d scans for partition '%s'.", len(scans), self._partition)
        return list(scans)

    async def switch_user(self, user: Optional[User]) -> list[ScanResult]:
        """
        Point the store at *user*'s partition (guest for ``None``) and load it.

        The new partition is read before anything changes, so a
        ``StorageError`` leaves the store on its previous partition.
        """
        partition = partition_for(user)
        async with self._lock:
            scans = await self._read(partition)
            self._partition = partition
            self._scans = scans
        logger.info("Switched to partition '%s' (%d scans).", partition, len(scans))
        return list(scans)

    async def _read(self, partition: str) -> list[ScanResult]:
        key = f"{HISTORY_KEY_PREFIX}{partition}"
        stored = await self._storage.get_item(key)
        if stored is None:
            return []
        if not isinstance(stored, list):
            raise StorageError(key, "history is not a list")
        return [ScanResult.model_validate(item) for item in stored]

    # ── Queries ───────────────────────────────────────────────────────────────

    def get(self, scan_id: str) -> ScanResult:
        for scan in self._scans:
            if scan.id == scan_id:
                return scan
        raise ScanNotFound(scan_id)

    def bookmarked(self) -> list[ScanResult]:
        return [s for s in self._scans if s.is_bookmarked]

    def stats(self) -> HistoryStats:
        return HistoryStats(
            total_scans=len(self._scans),
            bookmarks=len(self.bookmarked()),
            unique_plants=len({s.plant_profile.common_name for s in self._scans}),
        )

    # ── Mutations ─────────────────────────────────────────────────────────────

    async def add(self, scan: ScanResult, expected_partition: Optional[str] = None) -> None:
        """
        Prepend *scan* and persist the full history.

        Args:
            scan:               The new record.
            expected_partition: Partition the scan was started under. If the
                                store has been switched since, the scan is
                                dropped with ``ScanDiscarded``.
        """
        async with self._lock:
            if expected_partition is not None and expected_partition != self._partition:
                logger.warning(
                    "Discarding scan '%s': started for '%s', store is now on '%s'.",
                    scan.id, expected_partition, self._partition,
                )
                raise ScanDiscarded(scan.id, expected_partition, self._partition)
            await self._commit([scan, *self._scans])
        logger.info("Added scan '%s' to partition '%s'.", scan.id, self._partition)

    async def toggle_bookmark(self, scan_id: str) -> ScanResult:
        return await self._update(
            scan_id, lambda s: s.model_copy(update={"is_bookmarked": not s.is_bookmarked})
        )

    async def update_notes(self, scan_id: str, notes: str) -> ScanResult:
        return await self._update(scan_id, lambda s: s.model_copy(update={"notes": notes}))

    async def delete(self, scan_id: str) -> None:
        """Remove one scan. Raises ``ScanNotFound`` and writes nothing if absent."""
        async with self._lock:
            self.get(scan_id)
            await self._commit([s for s in self._scans if s.id != scan_id])
        logger.info("Deleted scan '%s' from partition '%s'.", scan_id, self._partition)

    async def _update(
        self,
        scan_id: str,
        change: Callable[[ScanResult], ScanResult],
    ) -> ScanResult:
        async with self._lock:
            updated = change(self.get(scan_id))
            await self._commit([updated if s.id == scan_id else s for s in self._scans])
        return updated

    async def _commit(self, scans: list[ScanResult]) -> None:
        """Persist *scans*, then make them the visible state."""
        await self._storage.set_item(self.storage_key, [s.to_json() for s in scans])
        self._scans = scans
