"""Mutable estimator state shared by the reset controller and the integrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np


class EstimatorMode(Enum):
    """Lifecycle of the position estimator."""

    UNAVAILABLE = "UNAVAILABLE"  # Capture device could not be opened
    IDLE = "IDLE"
    RESETTING = "RESETTING"  # Grace window: position pinned at zero
    RUNNING = "RUNNING"


@dataclass
class EstimatorState:
    """State that persists across frames.

    Attributes:
        position: Accumulated heading-stabilized position, world frame (m)
        velocity: Last computed velocity, world frame (m/s)
        heading_offset: Heading + mounting offset frozen at the last reset (rad)
        reference_heading: Vehicle heading frozen at the last reset (rad)
        mode: Current lifecycle mode
        reset_start: Clock reading when the current reset began (s)
        reset_frames: Frames seen since the current reset began
        last_warning: Clock reading of the last logged reset warning (s)
        last_frame_ns: Depth timestamp of the last processed frame
    """

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    heading_offset: float = 0.0
    reference_heading: float = 0.0
    mode: EstimatorMode = EstimatorMode.IDLE
    reset_start: float = 0.0
    reset_frames: int = 0
    last_warning: float = float("-inf")
    last_frame_ns: int | None = None

    @property
    def is_running(self) -> bool:
        """Return True while the estimator processes frames."""
        return self.mode in (EstimatorMode.RESETTING, EstimatorMode.RUNNING)

    @property
    def is_converged(self) -> bool:
        """Return True once the grace window after the last reset elapsed."""
        return self.mode == EstimatorMode.RUNNING

    def clear_motion(self) -> None:
        """Zero position and velocity."""
        self.position = np.zeros(3)
        self.velocity = np.zeros(3)
