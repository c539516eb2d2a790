"""schemas.py — Pydantic records shared by the library, history and accounts.

Attributes are snake_case in Python and serialize with the camelCase names the
mobile app has always stored (``commonName``, ``isBookmarked``, …), so a
persisted history file round-trips unchanged::

    scan = ScanResult.model_validate(stored_dict)
    scan.model_dump(by_alias=True, mode="json") == stored_dict
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ── Plant profiles ────────────────────────────────────────────────────────────

class OrganolepticCharacters(_Record):
    taste: str
    odor: str
    texture: str
    color: str


class PlantProfile(_Record):
    """
    Reference data for one plant species.

    Library entries and synthesized placeholders share this shape. List fields
    always exist, possibly empty, so consumers never have to test for absence.
    """

    id: str
    common_name: str
    scientific_name: str
    family: str
    image_url: str
    organoleptic_characters: OrganolepticCharacters
    medicinal_uses: list[str] = Field(default_factory=list)
    culinary_uses: list[str] = Field(default_factory=list)
    active_constituents: list[str] = Field(default_factory=list)
    safety_precautions: list[str] = Field(default_factory=list)
    contraindications: list[str] = Field(default_factory=list)
    habitat: str
    distribution: str
    description: str


# ── Scans ─────────────────────────────────────────────────────────────────────

class Prediction(_Record):
    """Canonical classifier output: a free-text label and a 0–100 score."""

    label: str
    confidence: float


class ScanResult(_Record):
    """One identification event, as kept in a user's history."""

    id: str
    plant_profile: PlantProfile
    confidence: int
    scanned_at: str
    image_uri: str
    notes: str = ""
    is_bookmarked: bool = False


class HistoryStats(_Record):
    total_scans: int
    bookmarks: int
    unique_plants: int


# ── Accounts ──────────────────────────────────────────────────────────────────

class User(_Record):
    id: str
    email: str
    name: str
    created_at: str


class StoredUser(User):
    """
    A user directory entry.

    ``password`` is only ever populated on records written by older builds that
    kept credentials in cleartext; it is replaced by ``password_hash`` on the
    first successful login.
    """

    password_hash: Optional[str] = None
    password: Optional[str] = None

    def to_user(self) -> User:
        return User(id=self.id, email=self.email, name=self.name, created_at=self.created_at)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
