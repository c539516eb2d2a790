"""errors.py — Error taxonomy for the HerbaScan core.

Every failure the app shows to a user derives from ``HerbaScanError``. Core
modules raise these and let them propagate; ``api.py`` is the only place that
turns them into responses.

Usage::

    try:
        scan = await scanner.identify(image_path)
    except HerbaScanError as err:
        show(err.message)
"""
from __future__ import annotations

from typing import Any, Optional


class HerbaScanError(Exception):
    """
    Base class for every user-facing error.

    Args:
        message:     Text safe to show to the user as-is.
        status_code: HTTP status the API layer responds with.
        details:     Extra machine-readable context (never shown verbatim).
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    @property
    def code(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code":    self.code,
                "message": self.message,
                "details": self.details,
            }
        }


# ── Prediction endpoint ───────────────────────────────────────────────────────

class NetworkError(HerbaScanError):
    """The prediction endpoint could not be reached at all."""

    status_code = 503

    def __init__(self, reason: str = "") -> None:
        super().__init__(
            "Could not identify the plant. Please check your connection and try again.",
            details={"reason": reason} if reason else None,
        )


class ResponseError(HerbaScanError):
    """The prediction endpoint answered, but not with a usable result."""

    status_code = 502

    def __init__(self, status: int, body: str) -> None:
        super().__init__(
            f"Prediction failed ({status}): {body}",
            details={"status": status, "body": body},
        )
        self.status = status
        self.body = body


# ── Accounts ──────────────────────────────────────────────────────────────────

class InvalidCredentials(HerbaScanError):
    status_code = 401

    def __init__(self) -> None:
        super().__init__("Invalid email or password")


class DuplicateEmail(HerbaScanError):
    status_code = 409

    def __init__(self, email: str) -> None:
        super().__init__(
            "An account with this email already exists",
            details={"email": email},
        )


class FormError(HerbaScanError):
    """A login/signup form failed validation before reaching the store."""

    status_code = 422


# ── Lookups ───────────────────────────────────────────────────────────────────

class ScanNotFound(HerbaScanError):
    status_code = 404

    def __init__(self, scan_id: str) -> None:
        super().__init__("Scan result not found", details={"scan_id": scan_id})
        self.scan_id = scan_id


class PlantNotFound(HerbaScanError):
    status_code = 404

    def __init__(self, plant_id: str) -> None:
        super().__init__("Plant not found", details={"plant_id": plant_id})
        self.plant_id = plant_id


class ScanDiscarded(HerbaScanError):
    """The active history changed owner while the scan was in flight."""

    status_code = 409

    def __init__(self, scan_id: str, expected: str, actual: str) -> None:
        super().__init__(
            "The signed-in account changed before the scan finished",
            details={"scan_id": scan_id, "expected": expected, "actual": actual},
        )
        self.scan_id = scan_id


# ── Persistence ───────────────────────────────────────────────────────────────

class StorageError(HerbaScanError):
    """A persisted record exists but cannot be decoded."""

    status_code = 500

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(
            "Stored data could not be read",
            details={"key": key, "reason": reason},
        )
        self.key = key
