"""Rate-limited publishing of the fused estimate and detector fan-out."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

import numpy as np

from .detectors import Detector, DetectorFanout
from .messages import (
    OdometrySnapshot,
    PositionMessage,
    StatusMessage,
    ValidityFlags,
)
from .pose import CameraPose
from .state import EstimatorState
from .telemetry import TelemetrySink

logger = logging.getLogger(__name__)


class RateLimitedPublisher:
    """Publishes position every frame and status at a capped rate.

    Every ``status_interval_s`` (wall clock) a tick fires: the rolling frame
    rate is recomputed from the frames seen since the previous tick, one
    status message is sent and, when enabled, the detectors are called.
    """

    def __init__(
        self,
        sink: TelemetrySink,
        status_interval_s: float = 0.25,
        enable_detectors: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize publisher.

        Args:
            sink: Telemetry transport
            status_interval_s: Minimum spacing between status messages (s)
            enable_detectors: Invoke detectors at each tick
            clock: Monotonic time source in seconds
        """
        self._sink = sink
        self._status_interval_s = status_interval_s
        self._enable_detectors = enable_detectors
        self._clock = clock
        self._fanout = DetectorFanout()

        self._last_tick = float("-inf")
        self._fps = 0.0
        self._rate_sum = 0
        self._rate_count = 0

    def register_detector(self, detector: Detector) -> bool:
        """Register a detector; ignored unless detectors are enabled.

        Returns:
            True if the detector was registered
        """
        if not self._enable_detectors:
            logger.debug("Detectors disabled, not registering %s", detector.name)
            return False
        self._fanout.register(detector)
        return True

    def publish(
        self,
        state: EstimatorState,
        pose: CameraPose,
        image: np.ndarray,
        depth: np.ndarray,
        dt: float | None,
    ) -> bool:
        """Publish one accepted frame.

        Args:
            state: Estimator state after integration
            pose: Pose of this frame
            image: Camera image of this frame
            depth: Depth map of this frame
            dt: Seconds since the previous frame, None for the first frame

        Returns:
            True if a status tick fired on this frame
        """
        x, y, z = (float(v) for v in state.position)
        self._sink.send_position(
            PositionMessage(timestamp_us=pose.timestamp_ns // 1000, x=x, y=y, z=z)
        )

        now = self._clock()
        ticked = now - self._last_tick > self._status_interval_s
        if ticked:
            self._last_tick = now
            if self._rate_count > 0:
                self._fps = self._rate_sum / self._rate_count
            self._rate_sum = 0
            self._rate_count = 0

            vx, vy, vz = (float(v) for v in state.velocity)
            self._sink.send_status(
                StatusMessage(
                    x=x,
                    y=y,
                    z=z,
                    vx=vx,
                    vy=vy,
                    vz=vz,
                    heading_deg=math.degrees(state.heading_offset),
                    quality=pose.quality,
                    fps=self._fps,
                    flags=ValidityFlags.POSITION_VALID,
                    timestamp_us=int(now * 1e6),
                )
            )

            if self._enable_detectors and len(self._fanout) > 0:
                snapshot = OdometrySnapshot(
                    timestamp_ns=pose.timestamp_ns,
                    position=state.position.copy(),
                    velocity=state.velocity.copy(),
                    heading=state.heading_offset,
                    pose=pose,
                )
                self._fanout.dispatch(snapshot, depth, image, pose.quality)

        if dt is not None and dt > 0.0:
            self._rate_sum += int(1.0 / dt + 0.5)
            self._rate_count += 1

        return ticked

    def publish_invalid(self, heading_deg: float) -> None:
        """Send the stale-estimate marker."""
        self._sink.send_status(
            StatusMessage.invalid(heading_deg, int(self._clock() * 1e6))
        )

    def reset(self) -> None:
        """Forget rate statistics (called on start)."""
        self._last_tick = float("-inf")
        self._fps = 0.0
        self._rate_sum = 0
        self._rate_count = 0

    @property
    def fps(self) -> float:
        """Return the frame rate computed at the last tick."""
        return self._fps

    @property
    def fanout(self) -> DetectorFanout:
        """Return the detector fan-out."""
        return self._fanout
