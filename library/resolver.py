"""resolver.py — Turn a (label, match) pair into the profile stored with a scan.

A matched library plant is deep-copied and re-keyed so edits to a scan can
never reach the library. When nothing matched, a placeholder profile is
synthesized around the classifier's label instead. ``resolve_profile`` never
raises.
"""
from __future__ import annotations

import secrets
import time
from typing import Optional

from data.schemas import OrganolepticCharacters, PlantProfile

NOT_AVAILABLE = "Not available"

_NO_DETAILS = "Detailed information not available for this plant"
_HERBALIST_ADVICE = "Consult a qualified herbalist before use"
_DOCTOR_ADVICE = "Consult a healthcare professional"


def new_scan_id() -> str:
    """``scan_<epoch ms>_<8 hex chars>``; unique within a session in practice."""
    return f"scan_{time.time_ns() // 1_000_000}_{secrets.token_hex(4)}"


def synthesize_profile(label: str, image_ref: str) -> PlantProfile:
    """Placeholder profile for a label with no library entry. *label* is kept verbatim."""
    return PlantProfile(
        id=new_scan_id(),
        common_name=label,
        scientific_name=NOT_AVAILABLE,
        family=NOT_AVAILABLE,
        image_url=image_ref,
        organoleptic_characters=OrganolepticCharacters(
            taste=NOT_AVAILABLE,
            odor=NOT_AVAILABLE,
            texture=NOT_AVAILABLE,
            color=NOT_AVAILABLE,
        ),
        medicinal_uses=[_NO_DETAILS],
        culinary_uses=[],
        active_constituents=[],
        safety_precautions=[_HERBALIST_ADVICE],
        contraindications=[_DOCTOR_ADVICE],
        habitat=NOT_AVAILABLE,
        distribution=NOT_AVAILABLE,
        description=(
            f'This plant was identified as "{label}" by the ML model. '
            "Detailed profile data is not yet available in the local database."
        ),
    )


def resolve_profile(
    label: str,
    match: Optional[PlantProfile],
    image_ref: str,
) -> PlantProfile:
    """
    Build the profile embedded in a new ``ScanResult``.

    Args:
        label:     Raw classifier label, used only when *match* is ``None``.
        match:     Library entry from ``match_plant()``, or ``None``.
        image_ref: Reference to the photo taken for this scan.

    Returns:
        A fresh ``PlantProfile`` with its own scan-scoped id and
        ``image_url == image_ref``.
    """
    if match is None:
        return synthesize_profile(label, image_ref)
    return match.model_copy(
        deep=True,
        update={"id": new_scan_id(), "image_url": image_ref},
    )
