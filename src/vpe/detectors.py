"""Auxiliary detector interface and ordered fan-out."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import numpy as np

from .messages import OdometrySnapshot

logger = logging.getLogger(__name__)


class Detector(ABC):
    """Consumer of periodic odometry snapshots (obstacles, markers, maps...)."""

    @abstractmethod
    def process(
        self,
        snapshot: OdometrySnapshot,
        depth: np.ndarray,
        image: np.ndarray,
        quality: int,
    ) -> None:
        """Handle one snapshot with the frame it was computed from."""

    @property
    def name(self) -> str:
        """Return a display name for logs."""
        return type(self).__name__


class DetectorFanout:
    """Calls registered detectors in registration order.

    A detector that raises is logged and skipped for that call only; the
    remaining detectors still receive the snapshot.
    """

    def __init__(self) -> None:
        self._detectors: list[Detector] = []
        self._failures: dict[str, int] = {}

    def register(self, detector: Detector) -> None:
        """Append a detector."""
        self._detectors.append(detector)
        logger.info("Registered detector: %s", detector.name)

    def dispatch(
        self,
        snapshot: OdometrySnapshot,
        depth: np.ndarray,
        image: np.ndarray,
        quality: int,
    ) -> int:
        """Hand the same snapshot to every detector.

        Returns:
            Number of detectors that completed without raising
        """
        completed = 0
        for detector in self._detectors:
            try:
                detector.process(snapshot, depth, image, quality)
            except Exception:
                self._failures[detector.name] = self._failures.get(detector.name, 0) + 1
                logger.exception("Detector %s failed", detector.name)
                continue
            completed += 1
        return completed

    @property
    def failures(self) -> dict[str, int]:
        """Return failure counts per detector name."""
        return dict(self._failures)

    def __len__(self) -> int:
        """Return number of registered detectors."""
        return len(self._detectors)
