"""Shared fixtures for estimator tests."""

from __future__ import annotations

import numpy as np
import pytest

from vpe.pose import SE3, CameraPose
from vpe.sim import SimClock, StaticAttitudeProvider
from vpe.telemetry import RecordingTelemetry


IMAGE = np.zeros((24, 32, 3), dtype=np.uint8)
DEPTH = np.full((24, 32), 1000, dtype=np.uint16)


def make_pose(
    translation: list[float], t: float, quality: int = 100
) -> CameraPose:
    """Build a pure-translation camera pose at time ``t`` seconds."""
    return CameraPose(
        transform=SE3.from_translation(translation),
        quality=quality,
        timestamp_ns=to_ns(t),
    )


def to_ns(t: float) -> int:
    """Convert seconds to integer nanoseconds."""
    return int(round(t * 1e9))


@pytest.fixture
def clock() -> SimClock:
    """Manually advanced clock starting at zero."""
    return SimClock()


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    """In-memory telemetry sink."""
    return RecordingTelemetry()


@pytest.fixture
def attitude() -> StaticAttitudeProvider:
    """Level, non-rotating attitude."""
    return StaticAttitudeProvider()
