"""catalog.py — The bundled medicinal plant library.

``load_catalog()`` reads ``plants.json`` (or an override file) into validated
``PlantProfile`` records. The library and plant-detail views use
``search_catalog()`` and ``get_plant()``; the scan pipeline hands the whole
catalog to the matcher.

Usage::

    catalog = load_catalog()
    get_plant("neem", catalog).scientific_name   # "Azadirachta indica"
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter

from data.schemas import PlantProfile
from errors import PlantNotFound

logger = logging.getLogger(__name__)

_CATALOG_PATH = Path(__file__).parent / "plants.json"

_CATALOG_ADAPTER = TypeAdapter(list[PlantProfile])


@lru_cache(maxsize=4)
def _load(path: Path) -> tuple[PlantProfile, ...]:
    """Load and cache one catalog file. Executed at most once per path."""
    with open(path, "r", encoding="utf-8") as fh:
        raw = json.load(fh)
    plants = tuple(_CATALOG_ADAPTER.validate_python(raw))

    ids = [p.id for p in plants]
    if len(set(ids)) != len(ids):
        raise ValueError(f"Duplicate plant ids in catalog '{path}'.")

    logger.info("Loaded %d library plants from '%s'.", len(plants), path)
    return plants


def load_catalog(path: Optional[Path] = None) -> tuple[PlantProfile, ...]:
    """
    Return the plant library in its canonical order.

    The order matters: the matcher returns the first qualifying entry.

    Args:
        path: Alternative catalog JSON. ``None`` uses the bundled library.
    """
    return _load(Path(path) if path is not None else _CATALOG_PATH)


def search_catalog(query: str, catalog: tuple[PlantProfile, ...]) -> list[PlantProfile]:
    """
    Filter the library by common name, scientific name or family.

    A blank query returns every plant. Matching is a case-insensitive
    substring test; catalog order is preserved.
    """
    if not query.strip():
        return list(catalog)

    q = query.lower()
    return [
        p for p in catalog
        if q in p.common_name.lower()
        or q in p.scientific_name.lower()
        or q in p.family.lower()
    ]


def get_plant(plant_id: str, catalog: tuple[PlantProfile, ...]) -> PlantProfile:
    """Return the library entry with *plant_id*, or raise ``PlantNotFound``."""
    for plant in catalog:
        if plant.id == plant_id:
            return plant
    raise PlantNotFound(plant_id)
