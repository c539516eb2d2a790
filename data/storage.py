"""storage.py — Small JSON key-value store backing sessions, users and history.

Each key is one JSON file under ``root``. Writes go to a temporary sibling and
are renamed into place, so a reader never observes a half-written file. File
I/O runs in a worker thread so callers can simply ``await`` it.

Usage::

    storage = JsonStorage(Path("storage"))
    await storage.set_item("auth", {"id": "42"})
    await storage.get_item("auth")      # {"id": "42"}
    await storage.remove_item("auth")
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

from errors import StorageError

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


class JsonStorage:
    """
    Async key-value persistence over a directory of JSON files.

    Args:
        root: Directory holding one ``<key>.json`` per key. Created on first
              write.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._lock = asyncio.Lock()

    def path_for(self, key: str) -> Path:
        """Map *key* to its file, replacing anything unsafe for a filename."""
        slug = _UNSAFE.sub("_", key).strip("._")
        if not slug:
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.root / f"{slug}.json"

    async def get_item(self, key: str) -> Optional[Any]:
        """Return the decoded value for *key*, or ``None`` if it was never written."""
        path = self.path_for(key)
        return await asyncio.to_thread(self._read, key, path)

    async def set_item(self, key: str, value: Any) -> None:
        """Replace the whole value stored under *key*."""
        path = self.path_for(key)
        text = json.dumps(value, ensure_ascii=False, indent=2) + "\n"
        async with self._lock:
            await asyncio.to_thread(self._atomic_write, path, text)

    async def remove_item(self, key: str) -> None:
        path = self.path_for(key)
        async with self._lock:
            await asyncio.to_thread(path.unlink, missing_ok=True)

    # ── Blocking helpers (run in a worker thread) ─────────────────────────────

    @staticmethod
    def _read(key: str, path: Path) -> Optional[Any]:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as err:
            logger.error("Corrupt JSON for key '%s' at '%s': %s", key, path, err)
            raise StorageError(key, str(err)) from err

    @staticmethod
    def _atomic_write(path: Path, text: str) -> None:
        tmp = path.with_suffix(".tmp")
        tmp.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(path)
