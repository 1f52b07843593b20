"""Capability interfaces for the pose oracle and the attitude source.

The estimator never binds to a concrete odometry library or autopilot. It
talks to a ``PoseProvider`` (image + depth -> rigid transform + inlier
count) and an ``AttitudeProvider`` (heading and body rates), so real and
simulated collaborators are interchangeable.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from .pose import SE3, CameraPose


@dataclass(frozen=True)
class OdometryMeasurement:
    """Raw output of the pose oracle for one frame.

    Attributes:
        camera_to_world: Accumulated camera-to-world transform
        inlier_count: Number of tracks that survived outlier rejection
    """

    camera_to_world: SE3
    inlier_count: int


@dataclass(frozen=True)
class Attitude:
    """Vehicle attitude and body rates from the attitude estimator.

    Angles in radians, rates in rad/s.
    """

    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0
    roll_rate: float = 0.0
    pitch_rate: float = 0.0
    yaw_rate: float = 0.0

    @property
    def angular_rate(self) -> float:
        """Return the magnitude of the body-rate vector."""
        return math.sqrt(
            self.pitch_rate * self.pitch_rate
            + self.roll_rate * self.roll_rate
            + self.yaw_rate * self.yaw_rate
        )


class PoseProvider(ABC):
    """Opaque visual odometry oracle.

    Each ``process`` call advances the oracle's internal state, whatever the
    caller later does with the result.
    """

    @abstractmethod
    def process(
        self, image: np.ndarray, depth: np.ndarray
    ) -> OdometryMeasurement | None:
        """Track one image/depth pair.

        Returns:
            Measurement on success, None when tracking is lost
        """

    @abstractmethod
    def reset(self) -> None:
        """Drop tracking state so the oracle re-converges from scratch."""


class AttitudeProvider(ABC):
    """Source of vehicle heading and angular rates."""

    @abstractmethod
    def read(self) -> Attitude:
        """Return the most recent attitude."""


class PoseSourceAdapter:
    """Wraps a ``PoseProvider`` and turns its output into ``CameraPose``.

    Quality is the inlier count as a percentage of the tracker's maximum
    track budget. Failures are passed through as ``None``; retry and reset
    policy lives in the estimator.
    """

    def __init__(self, provider: PoseProvider, max_tracks: int = 120) -> None:
        """Initialize adapter.

        Args:
            provider: Pose oracle to wrap
            max_tracks: Track budget of the oracle, used to scale quality
        """
        if max_tracks <= 0:
            raise ValueError(f"max_tracks must be positive, got {max_tracks}")
        self._provider = provider
        self._max_tracks = max_tracks

    def process(
        self, image: np.ndarray, depth: np.ndarray, timestamp_ns: int
    ) -> CameraPose | None:
        """Run the oracle on one frame pair.

        Args:
            image: Camera image
            depth: Depth map aligned to the image
            timestamp_ns: Depth frame timestamp in nanoseconds

        Returns:
            CameraPose, or None if the oracle lost tracking
        """
        measurement = self._provider.process(image, depth)
        if measurement is None:
            return None

        quality = measurement.inlier_count * 100 // self._max_tracks
        quality = max(0, min(100, quality))

        # The oracle may reuse its transform object between frames
        return CameraPose(
            transform=measurement.camera_to_world.copy(),
            quality=quality,
            timestamp_ns=timestamp_ns,
        )

    def reset(self) -> None:
        """Reset the wrapped oracle."""
        self._provider.reset()

    @property
    def max_tracks(self) -> int:
        """Return the track budget used for quality scaling."""
        return self._max_tracks
