from pathlib import Path

import pytest

from data.schemas import ScanResult
from data.storage import JsonStorage
from library.catalog import load_catalog
from library.resolver import resolve_profile


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def storage(tmp_path: Path) -> JsonStorage:
    return JsonStorage(tmp_path / "storage")


@pytest.fixture
def make_scan(catalog):
    """Factory for ScanResults built from the first library plant."""

    def _make(scan_id: str, **overrides) -> ScanResult:
        fields = {
            "id": scan_id,
            "plant_profile": resolve_profile("tulsi", catalog[0], f"photos/{scan_id}.jpg"),
            "confidence": 91,
            "scanned_at": "2026-01-01T00:00:00+00:00",
            "image_uri": f"photos/{scan_id}.jpg",
        }
        fields.update(overrides)
        return ScanResult(**fields)

    return _make
