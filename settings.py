"""settings.py — Runtime configuration for the HerbaScan backend.

Values come from environment variables (or a ``.env`` file in the working
directory) and fall back to the defaults below.

Usage::

    settings = get_settings()
    client = PredictionClient(settings.PREDICTION_BASE_URL)
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Prediction endpoint ───────────────────────────────────────────────────
    PREDICTION_BASE_URL: str = Field(
        default="https://medicinal-plant-scanner.onrender.com",
        description="Base URL of the remote classifier (POST {base}/predict)",
    )
    # None keeps the request unbounded, which is how the mobile client behaves.
    PREDICTION_TIMEOUT: Optional[float] = Field(
        default=None,
        description="Seconds to wait for a prediction; unset means no timeout",
    )

    # ── Storage ───────────────────────────────────────────────────────────────
    STORAGE_DIR: Path = Field(default=Path("storage"), description="JSON key-value store root")
    IMAGE_DIR: Path = Field(default=Path("storage/images"), description="Uploaded scan photos")
    LIBRARY_PATH: Optional[Path] = Field(
        default=None,
        description="Alternative plant catalog JSON; unset uses the bundled library",
    )

    # ── Accounts ──────────────────────────────────────────────────────────────
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31, description="bcrypt cost factor")
    MIN_PASSWORD_LENGTH: int = Field(default=6, ge=1, description="Signup password minimum")

    LOG_LEVEL: str = Field(default="INFO", description="Root logging level")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build and cache the settings object. Executed at most once per process."""
    return Settings()
