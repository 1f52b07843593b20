"""Per-cycle validity gates.

Only systematic invalidity (fast rotation, heading drift, lost tracking)
triggers a reset. Low quality suppresses velocity for one cycle and an
implausible speed discards one cycle.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from .pose import CameraPose
from .providers import Attitude


class GateVerdict(Enum):
    """Outcome of a gate check."""

    PASS = "PASS"
    RESET = "RESET"  # Drop accumulated trust and re-converge
    SUPPRESS = "SUPPRESS"  # Zero velocity this cycle, keep integrating
    DISCARD = "DISCARD"  # Ignore this cycle entirely


class GateReason(Enum):
    """Which gate produced a non-passing verdict."""

    ROTATION = "rotation"
    HEADING_DEVIATION = "heading-deviation"
    TRACKING_FAILURE = "tracking-failure"
    QUALITY = "quality"
    SPEED = "speed"


@dataclass(frozen=True)
class GateDecision:
    """Transient verdict for one cycle."""

    verdict: GateVerdict
    reason: GateReason | None = None
    value: float = 0.0  # The measured quantity that tripped the gate

    @property
    def passed(self) -> bool:
        """Return True if the cycle may proceed unmodified."""
        return self.verdict == GateVerdict.PASS

    @property
    def requires_reset(self) -> bool:
        """Return True if the estimator must restart re-convergence."""
        return self.verdict == GateVerdict.RESET


PASS = GateDecision(GateVerdict.PASS)


def wrap_angle(angle: float) -> float:
    """Wrap an angle to [-pi, pi)."""
    return (angle + math.pi) % (2.0 * math.pi) - math.pi


class GateEvaluator:
    """Applies rotation, heading, tracking, quality and speed gates."""

    def __init__(
        self,
        max_rotation_rate: float = 1.0,
        max_heading_deviation: float = 0.3927,
        min_quality: int = 20,
        max_speed: float = 2.0,
    ) -> None:
        """Initialize gate thresholds.

        Args:
            max_rotation_rate: Body-rate magnitude ceiling (rad/s)
            max_heading_deviation: Allowed heading change since last reset (rad)
            min_quality: Quality must be strictly above this value
            max_speed: Speed ceiling (m/s)
        """
        self.max_rotation_rate = max_rotation_rate
        self.max_heading_deviation = max_heading_deviation
        self.min_quality = min_quality
        self.max_speed = max_speed

    def check_rotation(self, attitude: Attitude) -> GateDecision:
        """Reset if the vehicle rotates faster than odometry can follow."""
        rate = attitude.angular_rate
        if rate > self.max_rotation_rate:
            return GateDecision(GateVerdict.RESET, GateReason.ROTATION, rate)
        return PASS

    def check_heading(self, heading: float, reference: float) -> GateDecision:
        """Reset if heading drifted too far from the heading at last reset.

        Args:
            heading: Current vehicle heading (rad)
            reference: Heading captured when the last reset completed (rad)
        """
        deviation = abs(wrap_angle(heading - reference))
        if deviation > self.max_heading_deviation:
            return GateDecision(
                GateVerdict.RESET, GateReason.HEADING_DEVIATION, deviation
            )
        return PASS

    def check_tracking(self, pose: CameraPose | None) -> GateDecision:
        """Reset if the pose oracle reported a failure."""
        if pose is None:
            return GateDecision(GateVerdict.RESET, GateReason.TRACKING_FAILURE)
        return PASS

    def check_quality(self, quality: int) -> GateDecision:
        """Suppress velocity when too few inliers back the pose."""
        if quality > self.min_quality:
            return PASS
        return GateDecision(GateVerdict.SUPPRESS, GateReason.QUALITY, float(quality))

    def check_speed(self, speed: float) -> GateDecision:
        """Discard the cycle if the computed speed is implausible."""
        if speed > self.max_speed:
            return GateDecision(GateVerdict.DISCARD, GateReason.SPEED, speed)
        return PASS

    def check_attitude(
        self, attitude: Attitude, reference_heading: float | None
    ) -> GateDecision:
        """Run the attitude gates that precede the oracle call.

        Args:
            attitude: Latest attitude
            reference_heading: Frozen heading, or None while re-converging
                (the heading is still being captured then)
        """
        decision = self.check_rotation(attitude)
        if decision.requires_reset or reference_heading is None:
            return decision
        return self.check_heading(attitude.yaw, reference_heading)
