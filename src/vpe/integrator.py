"""Velocity and heading-stabilized position integration.

Converts consecutive camera-frame translations into a world-frame velocity
and accumulates a position whose horizontal axes stay fixed relative to the
heading captured at the last reset.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from .gates import PASS, GateDecision, GateEvaluator
from .pose import CameraPose
from .state import EstimatorState


class IntegrationOutcome(Enum):
    """What a single integration step did."""

    INTEGRATED = "INTEGRATED"
    FIRST_SAMPLE = "FIRST_SAMPLE"  # No previous pose to difference against
    DISCARDED = "DISCARDED"  # Speed gate tripped, cycle ignored
    SKIPPED = "SKIPPED"  # Non-positive dt, cycle ignored


@dataclass
class IntegrationResult:
    """Result of one integration step."""

    outcome: IntegrationOutcome
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    speed: float = 0.0
    dt: float = 0.0
    quality_gate: GateDecision = PASS
    speed_gate: GateDecision = PASS

    @property
    def accepted(self) -> bool:
        """Return True if the cycle may be published."""
        return self.outcome in (
            IntegrationOutcome.INTEGRATED,
            IntegrationOutcome.FIRST_SAMPLE,
        )


def camera_to_world(v_camera: np.ndarray) -> np.ndarray:
    """Remap a camera-frame vector to the vehicle world axes.

    Fixed by the sensor mounting: camera depth (Z) is world X, camera
    lateral (X) is world Y, camera vertical (Y) is world Z.
    """
    return np.array([v_camera[2], v_camera[0], v_camera[1]], dtype=np.float64)


def rotate_xy(x: float, y: float, angle: float) -> tuple[float, float]:
    """Rotate a planar vector counter-clockwise by ``angle`` radians."""
    c = math.cos(angle)
    s = math.sin(angle)
    return x * c - y * s, x * s + y * c


class VelocityPositionIntegrator:
    """Differentiates camera poses and integrates the world-frame position.

    Holds the previous pose as the only cache. Vertical displacement is
    integrated without roll/pitch compensation.
    """

    def __init__(self, state: EstimatorState, gates: GateEvaluator) -> None:
        """Initialize integrator.

        Args:
            state: Estimator state holding position and velocity
            gates: Gate evaluator providing the quality and speed gates
        """
        self._state = state
        self._gates = gates
        self._previous: CameraPose | None = None

    def step(self, pose: CameraPose) -> IntegrationResult:
        """Integrate one pose.

        Uses the heading offset currently stored in the state.

        Args:
            pose: Current camera pose

        Returns:
            IntegrationResult describing the step
        """
        state = self._state
        previous = self._previous

        if previous is None:
            state.velocity = np.zeros(3)
            self._previous = pose
            return IntegrationResult(IntegrationOutcome.FIRST_SAMPLE)

        dt = (pose.timestamp_ns - previous.timestamp_ns) / 1e9
        if dt <= 0.0:
            return IntegrationResult(IntegrationOutcome.SKIPPED, dt=dt)

        quality_gate = self._gates.check_quality(pose.quality)
        if quality_gate.passed:
            velocity = camera_to_world(
                (pose.translation - previous.translation) / dt
            )
        else:
            velocity = np.zeros(3)

        speed = float(np.linalg.norm(velocity))
        speed_gate = self._gates.check_speed(speed)
        if not speed_gate.passed:
            return IntegrationResult(
                IntegrationOutcome.DISCARDED,
                velocity=velocity,
                speed=speed,
                dt=dt,
                quality_gate=quality_gate,
                speed_gate=speed_gate,
            )

        dx, dy = rotate_xy(
            velocity[0] * dt, velocity[1] * dt, -state.heading_offset
        )
        # TODO: roll/pitch compensation of the vertical displacement
        state.position = state.position + np.array([dx, dy, velocity[2] * dt])
        state.velocity = velocity
        self._previous = pose

        return IntegrationResult(
            IntegrationOutcome.INTEGRATED,
            velocity=velocity.copy(),
            speed=speed,
            dt=dt,
            quality_gate=quality_gate,
        )

    def clear(self) -> None:
        """Forget the previous pose (next sample starts from zero velocity)."""
        self._previous = None

    @property
    def previous_pose(self) -> CameraPose | None:
        """Return the cached previous pose."""
        return self._previous
