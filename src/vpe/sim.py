"""Simulated collaborators for replay, demos and tests."""

from __future__ import annotations

import threading
from collections import deque
from typing import Iterable

import numpy as np

from .pose import SE3
from .providers import Attitude, AttitudeProvider, OdometryMeasurement, PoseProvider


class SimClock:
    """Manually advanced monotonic clock, for replay faster than real time."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def __call__(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        """Move time forward and return the new reading."""
        self._now += seconds
        return self._now

    def set(self, now: float) -> None:
        """Jump to an absolute reading."""
        self._now = now


class ScriptedPoseProvider(PoseProvider):
    """Pose oracle replaying a fixed script.

    Each ``process`` call consumes one step; ``None`` steps report a
    tracking failure, as does an exhausted script.
    """

    def __init__(self, steps: Iterable[OdometryMeasurement | None] = ()) -> None:
        self._steps: deque[OdometryMeasurement | None] = deque(steps)
        self.num_calls = 0
        self.num_resets = 0

    @classmethod
    def from_translations(
        cls,
        translations: Iterable[np.ndarray | list[float] | None],
        inlier_count: int = 120,
    ) -> ScriptedPoseProvider:
        """Build a script of pure translations (camera frame, meters)."""
        steps: list[OdometryMeasurement | None] = []
        for t in translations:
            if t is None:
                steps.append(None)
            else:
                steps.append(OdometryMeasurement(SE3.from_translation(t), inlier_count))
        return cls(steps)

    def extend(self, steps: Iterable[OdometryMeasurement | None]) -> None:
        """Append steps to the script."""
        self._steps.extend(steps)

    def process(
        self, image: np.ndarray, depth: np.ndarray
    ) -> OdometryMeasurement | None:
        self.num_calls += 1
        if not self._steps:
            return None
        return self._steps.popleft()

    def reset(self) -> None:
        self.num_resets += 1


class ConstantVelocityPoseProvider(PoseProvider):
    """Pose oracle for a camera moving at constant camera-frame velocity.

    The translation restarts from the origin on every reset, like a real
    odometry pipeline re-initializing its map.
    """

    def __init__(
        self,
        velocity: np.ndarray | list[float],
        frame_dt: float,
        inlier_count: int = 120,
    ) -> None:
        """Initialize provider.

        Args:
            velocity: Camera-frame velocity (m/s)
            frame_dt: Time between process calls (s)
            inlier_count: Inlier count reported for every frame
        """
        self._velocity = np.asarray(velocity, dtype=np.float64)
        self._frame_dt = frame_dt
        self.inlier_count = inlier_count
        self._translation = np.zeros(3)
        self.num_resets = 0

    def process(
        self, image: np.ndarray, depth: np.ndarray
    ) -> OdometryMeasurement | None:
        self._translation = self._translation + self._velocity * self._frame_dt
        return OdometryMeasurement(
            SE3.from_translation(self._translation), self.inlier_count
        )

    def reset(self) -> None:
        self._translation = np.zeros(3)
        self.num_resets += 1


class StaticAttitudeProvider(AttitudeProvider):
    """Attitude source holding a settable attitude."""

    def __init__(self, attitude: Attitude | None = None) -> None:
        self._lock = threading.Lock()
        self._attitude = attitude if attitude is not None else Attitude()

    def set(self, attitude: Attitude) -> None:
        """Replace the current attitude."""
        with self._lock:
            self._attitude = attitude

    def read(self) -> Attitude:
        with self._lock:
            return self._attitude
