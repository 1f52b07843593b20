"""Drift-reset state machine.

After every discontinuity the pose oracle needs a few frames to
re-converge. During that grace window the published position is pinned at
zero and the heading reference is refreshed every cycle, up to and including
the cycle that closes the window. From then on the heading is frozen and
integration resumes from zero.

    IDLE --start()--> RESETTING --window elapsed--> RUNNING
      ^                  ^   |                         |
      |                  +---+--- trigger_reset() -----+
      +------------------- stop() ---------------------+
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from .state import EstimatorMode, EstimatorState

logger = logging.getLogger(__name__)


class DriftResetController:
    """Sequences reset and re-convergence of the estimator state."""

    def __init__(
        self,
        state: EstimatorState,
        heading_offset_rad: float = 0.0,
        grace_window_s: float = 0.2,
        grace_frames: int | None = None,
        reset_log_interval_s: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize controller.

        Args:
            state: Estimator state to drive
            heading_offset_rad: Camera mounting yaw offset (rad)
            grace_window_s: Re-convergence window (s)
            grace_frames: If set, re-convergence window in frames; overrides
                grace_window_s
            reset_log_interval_s: Minimum spacing of reset warnings (s)
            clock: Monotonic time source in seconds
        """
        self._state = state
        self._mount_offset = heading_offset_rad
        self._grace_window_s = grace_window_s
        self._grace_frames = grace_frames
        self._reset_log_interval_s = reset_log_interval_s
        self._clock = clock

    def start(self) -> None:
        """Leave IDLE and begin the first re-convergence window."""
        self._begin_reset()
        logger.info("Estimator started, re-converging")

    def trigger_reset(self) -> bool:
        """Restart the re-convergence window.

        Returns:
            True if a reset warning should be emitted (debounced)
        """
        now = self._begin_reset()
        if now - self._state.last_warning > self._reset_log_interval_s:
            self._state.last_warning = now
            return True
        return False

    def stop(self) -> bool:
        """Return to IDLE.

        Returns:
            True if the estimator was running before the call
        """
        was_running = self._state.is_running
        self._state.mode = EstimatorMode.IDLE
        return was_running

    def update(self, heading: float) -> bool:
        """Advance the grace window by one cycle.

        Every cycle of the window, including the one that closes it, takes
        the current heading as the reference, so the frozen heading is the
        one seen when the reset completes. While the window is open the
        position stays at zero.

        Args:
            heading: Current vehicle heading (rad)

        Returns:
            True if the estimator is still re-converging
        """
        state = self._state
        if state.mode != EstimatorMode.RESETTING:
            return False

        state.reset_frames += 1
        state.reference_heading = heading
        state.heading_offset = heading + self._mount_offset
        if self._window_open():
            state.clear_motion()
            return True

        state.mode = EstimatorMode.RUNNING
        logger.debug(
            "Re-converged after %d frames, heading offset %.3f rad",
            state.reset_frames,
            state.heading_offset,
        )
        return False

    def _window_open(self) -> bool:
        """Return True if the current grace window has not elapsed yet."""
        if self._grace_frames is not None:
            return self._state.reset_frames <= self._grace_frames
        return (self._clock() - self._state.reset_start) < self._grace_window_s

    def _begin_reset(self) -> float:
        """Enter RESETTING with zeroed motion; return the clock reading."""
        now = self._clock()
        state = self._state
        state.mode = EstimatorMode.RESETTING
        state.reset_start = now
        state.reset_frames = 0
        state.clear_motion()
        return now

    @property
    def mount_offset(self) -> float:
        """Return camera mounting yaw offset (rad)."""
        return self._mount_offset
