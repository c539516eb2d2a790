"""client.py — HTTP client for the remote plant classifier.

``PredictionClient.predict()`` is the only way the app talks to the model: it
uploads one photo to ``POST {base_url}/predict`` and returns a canonical
``Prediction``.

Typical usage::

    async with PredictionClient("https://medicinal-plant-scanner.onrender.com") as client:
        result = await client.predict("photos/leaf.png")
        # Prediction(label="Holy Basil", confidence=93.4)
"""
from __future__ import annotations

import asyncio
import logging
import math
import os
import re
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import unquote, urlparse

import httpx

from data.schemas import Prediction
from errors import NetworkError, ResponseError

logger = logging.getLogger(__name__)

ImageRef = Union[str, os.PathLike, bytes]

# ── Response field aliases ────────────────────────────────────────────────────
# The upstream service has renamed these fields over time. Aliases are tried
# in order; the first non-null value wins.
LABEL_FIELDS: tuple[str, ...] = ("plant", "predicted_class", "class_name")
CONFIDENCE_FIELDS: tuple[str, ...] = ("confidence", "confidence_score")

DEFAULT_LABEL = "Unknown"
DEFAULT_CONFIDENCE = 0

DEFAULT_FILENAME = "photo.jpg"

_EXT_RE = re.compile(r"\.(\w+)$")


def first_present(data: dict[str, Any], fields: tuple[str, ...], default: Any) -> Any:
    """Value of the first field in *fields* that is present and not null."""
    for field in fields:
        value = data.get(field)
        if value is not None:
            return value
    return default


def mime_type_for(filename: str) -> str:
    """``image/png`` for ``.png`` files, ``image/jpeg`` for everything else."""
    match = _EXT_RE.search(filename)
    ext = match.group(1).lower() if match else "jpg"
    return "image/png" if ext == "png" else "image/jpeg"


def _local_path(image: Union[str, os.PathLike]) -> Path:
    """Accept plain paths as well as ``file://`` URIs."""
    text = os.fspath(image)
    if text.startswith("file://"):
        return Path(unquote(urlparse(text).path))
    return Path(text)


def parse_prediction(data: Any, status: int = 200, body: str = "") -> Prediction:
    """
    Normalize a decoded ``/predict`` response body.

    Raises:
        ResponseError: *data* is not a JSON object, or the confidence is not
                       a finite number.
    """
    if not isinstance(data, dict):
        raise ResponseError(status, body or repr(data))

    label = first_present(data, LABEL_FIELDS, DEFAULT_LABEL)
    confidence = first_present(data, CONFIDENCE_FIELDS, DEFAULT_CONFIDENCE)
    if isinstance(confidence, bool):
        raise ResponseError(status, body or repr(data))
    try:
        confidence = float(confidence)
    except (TypeError, ValueError) as err:
        raise ResponseError(status, body or repr(data)) from err
    if not math.isfinite(confidence):
        raise ResponseError(status, body or repr(data))

    return Prediction(label=str(label), confidence=confidence)


class PredictionClient:
    """
    Async wrapper around the classifier's HTTP API.

    Create one instance at startup, call ``predict()`` for every photo and
    ``aclose()`` (or use ``async with``) on shutdown.

    Args:
        base_url:  Service root; ``/predict`` is appended.
        timeout:   Seconds before giving up. ``None`` waits indefinitely.
        transport: Optional ``httpx`` transport (tests pass a ``MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "PredictionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def predict(self, image: ImageRef, filename: Optional[str] = None) -> Prediction:
        """
        Upload one image and return the classifier's top label.

        The file is sent as-is; only its MIME type is inferred from the
        filename extension. The request is never retried.

        Args:
            image:    Local path, ``file://`` URI, or the raw image bytes.
            filename: Name to send with the upload. Defaults to the last path
                      segment of *image* (``photo.jpg`` for raw bytes).

        Returns:
            ``Prediction(label, confidence)`` with ``"Unknown"`` / ``0``
            substituted for missing fields.

        Raises:
            NetworkError:  The endpoint could not be reached.
            ResponseError: Non-2xx status, or a body that is not a usable
                           JSON object.
        """
        if isinstance(image, bytes):
            content = image
            name = filename or DEFAULT_FILENAME
        else:
            path = _local_path(image)
            content = await asyncio.to_thread(path.read_bytes)
            name = filename or path.name or DEFAULT_FILENAME

        files = {"file": (name, content, mime_type_for(name))}
        logger.info("Sending '%s' (%d bytes) to %s/predict", name, len(content), self.base_url)

        try:
            response = await self._client.post("/predict", files=files)
        except httpx.TransportError as err:
            logger.warning("Prediction request failed: %s", err)
            raise NetworkError(str(err)) from err

        if not response.is_success:
            logger.warning("Prediction error: %d %s", response.status_code, response.text)
            raise ResponseError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as err:
            raise ResponseError(response.status_code, response.text) from err

        prediction = parse_prediction(data, response.status_code, response.text)
        logger.info("Prediction result: '%s' (%s)", prediction.label, prediction.confidence)
        return prediction
