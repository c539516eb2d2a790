"""scanner.py — The identification pipeline behind one scan.

photo → classifier → library match → resolved profile → ``ScanResult`` →
history. Prediction failures propagate unchanged and leave history untouched.
A scan whose user signed out or switched mid-request is dropped. An unmatched
label is not a failure (it gets a synthesized profile).

Usage::

    scanner = PlantScanner(client, load_catalog(), history)
    scan = await scanner.identify("storage/images/leaf.jpg")
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from data.schemas import PlantProfile, ScanResult
from history.store import ScanHistoryStore
from library.matcher import match_plant
from library.resolver import new_scan_id, resolve_profile
from prediction.client import ImageRef, PredictionClient

logger = logging.getLogger(__name__)


def round_confidence(confidence: float) -> int:
    """Nearest integer, halves rounded up (``92.5`` → ``93``)."""
    return math.floor(confidence + 0.5)


class PlantScanner:
    """
    Runs the scan pipeline against one classifier, catalog and history.

    Args:
        client:  Remote classifier client.
        catalog: Library profiles in canonical order.
        history: The active user's history; new scans are prepended to it.
    """

    def __init__(
        self,
        client: PredictionClient,
        catalog: tuple[PlantProfile, ...],
        history: ScanHistoryStore,
    ) -> None:
        self.client = client
        self.catalog = catalog
        self.history = history

    async def identify(self, image: ImageRef, image_uri: Optional[str] = None) -> ScanResult:
        """
        Identify the plant in *image* and record the scan.

        Args:
            image:     What to upload (path, ``file://`` URI or bytes).
            image_uri: Reference stored with the scan. Defaults to ``str(image)``
                       for paths; required when *image* is raw bytes.

        Raises:
            NetworkError, ResponseError: from the classifier.
            ScanDiscarded: the history was switched to another user while the
                           request was in flight.
        """
        if image_uri is None:
            if isinstance(image, bytes):
                raise ValueError("image_uri is required when uploading raw bytes")
            image_uri = str(image)

        partition = self.history.partition
        prediction = await self.client.predict(image)
        confidence = round_confidence(prediction.confidence)
        logger.info("Backend prediction: '%s' %d%%", prediction.label, confidence)

        match = match_plant(prediction.label, self.catalog)
        logger.info("Library match: %s", match.common_name if match else "none")

        scan = ScanResult(
            id=new_scan_id(),
            plant_profile=resolve_profile(prediction.label, match, image_uri),
            confidence=confidence,
            scanned_at=datetime.now(timezone.utc).isoformat(),
            image_uri=image_uri,
            notes="",
            is_bookmarked=False,
        )
        await self.history.add(scan, expected_partition=partition)
        return scan
