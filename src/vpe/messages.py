"""Outbound telemetry message types.

Messages are plain dataclasses built fresh for every publish; the transport
decides how they map onto the wire.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum, IntFlag

import numpy as np

from .pose import CameraPose


class Severity(IntEnum):
    """Log severity, numbered like MAV_SEVERITY."""

    EMERGENCY = 0
    ALERT = 1
    CRITICAL = 2
    ERROR = 3
    WARNING = 4
    NOTICE = 5
    INFO = 6
    DEBUG = 7


class ValidityFlags(IntFlag):
    """Validity bits of the status message."""

    NONE = 0
    POSITION_VALID = 1


@dataclass(frozen=True)
class PositionMessage:
    """World-stabilized position, sent once per accepted frame.

    Attributes:
        timestamp_us: Depth frame timestamp in microseconds
        x, y, z: Position in meters
    """

    timestamp_us: int
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class StatusMessage:
    """Full estimator status, rate limited.

    Attributes:
        x, y, z: Position (m), NaN when invalid
        vx, vy, vz: Velocity (m/s)
        heading_deg: Heading reference (degrees)
        quality: Pose quality 0..100
        fps: Rolling average frame rate (Hz)
        flags: Validity flags
        timestamp_us: Host clock in microseconds
    """

    x: float
    y: float
    z: float
    vx: float
    vy: float
    vz: float
    heading_deg: float
    quality: int
    fps: float
    flags: ValidityFlags
    timestamp_us: int

    @property
    def is_valid(self) -> bool:
        """Return True if consumers may use the position."""
        return bool(self.flags & ValidityFlags.POSITION_VALID)

    @classmethod
    def invalid(cls, heading_deg: float, timestamp_us: int) -> StatusMessage:
        """Build the marker telling consumers the estimate is stale."""
        nan = float("nan")
        return cls(
            x=nan,
            y=nan,
            z=nan,
            vx=0.0,
            vy=0.0,
            vz=0.0,
            heading_deg=heading_deg,
            quality=0,
            fps=0.0,
            flags=ValidityFlags.NONE,
            timestamp_us=timestamp_us,
        )


@dataclass(frozen=True)
class OdometrySnapshot:
    """Estimator output handed to detectors at the detector tick."""

    timestamp_ns: int
    position: np.ndarray
    velocity: np.ndarray
    heading: float  # rad
    pose: CameraPose

    @property
    def heading_deg(self) -> float:
        """Return heading in degrees."""
        return math.degrees(self.heading)
