"""matcher.py — Map a classifier label onto the plant library.

The classifier's labels don't line up one-to-one with library names: it may
say ``"tulsi"`` for ``"Holy Basil (Tulsi)"`` or ``"Ocimum sp."`` for a genus
guess. ``match_plant()`` bridges that with substring tests in both
directions.

Usage::

    plant = match_plant("tulsi", load_catalog())
    plant.common_name if plant else None   # "Holy Basil (Tulsi)"
"""
from __future__ import annotations

from typing import Iterable, Optional

from data.schemas import PlantProfile


def _normalize(s: str) -> str:
    return s.lower().strip()


def _short_common_name(common: str) -> str:
    """``"holy basil (tulsi)"`` → ``"holy basil"``."""
    return common.split("(")[0].strip()


def _genus(scientific: str) -> str:
    """First space-delimited token of a lowercased scientific name."""
    return scientific.split(" ")[0]


def is_match(label: str, plant: PlantProfile) -> bool:
    """
    True when *plant* qualifies for the (already normalized) *label*.

    A plant qualifies if any of these hold:

    a. its common name contains the label;
    b. the label contains its common name minus any parenthetical suffix;
    c. its scientific name contains the label;
    d. the label contains its genus.
    """
    common = plant.common_name.lower()
    scientific = plant.scientific_name.lower()
    return (
        label in common
        or _short_common_name(common) in label
        or label in scientific
        or _genus(scientific) in label
    )


def match_plant(label: str, catalog: Iterable[PlantProfile]) -> Optional[PlantProfile]:
    """
    Return the first catalog entry matching *label*, or ``None``.

    Entries are not ranked: when several qualify, catalog order decides.

    Args:
        label:   Free-text label from the classifier (any case/whitespace).
        catalog: Library profiles in canonical order.

    Returns:
        The library's own ``PlantProfile`` instance (not a copy), or ``None``.
    """
    normalized = _normalize(label)
    for plant in catalog:
        if is_match(normalized, plant):
            return plant
    return None
