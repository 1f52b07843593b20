"""Vision position estimator.

PositionEstimator combines:
- Pose source adapter: opaque odometry oracle -> CameraPose
- Gate evaluator: rotation / heading / tracking / quality / speed gates
- Drift-reset controller: reset and re-convergence sequencing
- Integrator: heading-stabilized position and world-frame velocity
- Publisher: position per frame, rate-limited status, detector fan-out

Frames arrive from a capture thread and commands from the telemetry link,
so every state transition runs under one lock.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from enum import Enum
from typing import Callable

import numpy as np

from .capture import FrameSource
from .config import EstimatorConfig
from .detectors import Detector
from .gates import GateDecision, GateEvaluator
from .integrator import IntegrationOutcome, VelocityPositionIntegrator
from .messages import Severity
from .providers import AttitudeProvider, PoseProvider, PoseSourceAdapter
from .publisher import RateLimitedPublisher
from .reset_controller import DriftResetController
from .state import EstimatorMode, EstimatorState
from .telemetry import TelemetrySink

logger = logging.getLogger(__name__)

RESET_LOG_TEXT = "[vis] reset odometry"


class EstimatorUnavailableError(RuntimeError):
    """Raised when starting an estimator whose capture device failed to open."""


class CycleOutcome(Enum):
    """What one frame callback did."""

    IGNORED = "IGNORED"  # Estimator not running
    RESET = "RESET"  # A gate triggered a reset
    DISCARDED = "DISCARDED"  # Speed gate dropped the cycle
    SKIPPED = "SKIPPED"  # Non-positive dt
    CONVERGING = "CONVERGING"  # Inside the grace window, nothing published
    PUBLISHED = "PUBLISHED"


class PositionEstimator:
    """Turns camera pose increments into a published, drift-bounded position."""

    def __init__(
        self,
        pose_provider: PoseProvider,
        attitude_provider: AttitudeProvider,
        sink: TelemetrySink,
        config: EstimatorConfig | None = None,
        capture_factory: Callable[[], FrameSource] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize estimator.

        Args:
            pose_provider: Visual odometry oracle
            attitude_provider: Source of heading and body rates
            sink: Telemetry transport
            config: Estimator configuration (defaults if omitted)
            capture_factory: Opens the capture device; its listener is wired
                to ``process_frame``. Without one, frames are pushed by the
                caller.
            clock: Monotonic time source in seconds
        """
        self._config = config if config is not None else EstimatorConfig()
        cfg = self._config
        self._debug = cfg.debug
        self._attitude = attitude_provider
        self._sink = sink
        self._lock = threading.RLock()

        self._state = EstimatorState()
        self._adapter = PoseSourceAdapter(pose_provider, max_tracks=cfg.max_tracks)
        self._gates = GateEvaluator(
            max_rotation_rate=cfg.max_rotation_rate,
            max_heading_deviation=cfg.max_heading_deviation,
            min_quality=cfg.min_quality,
            max_speed=cfg.max_speed,
        )
        self._controller = DriftResetController(
            self._state,
            heading_offset_rad=cfg.heading_offset_rad,
            grace_window_s=cfg.grace_window_s,
            grace_frames=cfg.grace_frames,
            reset_log_interval_s=cfg.reset_log_interval_s,
            clock=clock,
        )
        self._integrator = VelocityPositionIntegrator(self._state, self._gates)
        self._publisher = RateLimitedPublisher(
            sink,
            status_interval_s=cfg.status_interval_s,
            enable_detectors=cfg.enable_detectors,
            clock=clock,
        )
        logger.info("Vision rotation offset: %.4f rad", cfg.heading_offset_rad)

        self._capture: FrameSource | None = None
        self._capture_error: Exception | None = None
        if capture_factory is not None:
            try:
                self._capture = capture_factory()
            except Exception as e:
                self._capture_error = e
                self._state.mode = EstimatorMode.UNAVAILABLE
                logger.error("Capture device unavailable: %s", e)
            else:
                self._capture.register_listener(self.process_frame)

    def register_detector(self, detector: Detector) -> bool:
        """Register an auxiliary detector (only when detectors are enabled).

        Returns:
            True if the detector was registered
        """
        with self._lock:
            return self._publisher.register_detector(detector)

    def start(self) -> None:
        """Start estimating from zero.

        Raises:
            EstimatorUnavailableError: If the capture device failed to open
        """
        with self._lock:
            started = self._start_locked()

        if started and self._capture is not None:
            self._capture.start()

    def stop(self) -> bool:
        """Stop estimating and publish the stale-estimate marker once.

        Returns:
            True if the estimator was running (a marker was sent)
        """
        with self._lock:
            stopped = self._stop_locked()

        # Outside the lock: the capture thread may be waiting on it
        if stopped and self._capture is not None:
            self._capture.stop()
        return stopped

    def handle_command(self, enable: bool) -> None:
        """Apply an enable/disable directive from the command channel.

        The running check and the transition happen under one lock hold, so
        a directive never interleaves with a frame cycle or another command.
        """
        started = stopped = False
        with self._lock:
            if enable:
                try:
                    started = self._start_locked()
                except EstimatorUnavailableError as e:
                    logger.error("Vision enable rejected: %s", e)
            else:
                stopped = self._stop_locked()

        if self._capture is not None:
            if started:
                self._capture.start()
            elif stopped:
                self._capture.stop()

    def _start_locked(self) -> bool:
        """Enter RESETTING from IDLE; caller holds the lock.

        Returns:
            True if the estimator was started by this call
        """
        if self._state.mode == EstimatorMode.UNAVAILABLE:
            raise EstimatorUnavailableError(
                f"Capture device unavailable: {self._capture_error}"
            )
        if self._state.is_running:
            return False
        self._integrator.clear()
        self._adapter.reset()
        self._publisher.reset()
        self._state.last_frame_ns = None
        self._controller.start()
        return True

    def _stop_locked(self) -> bool:
        """Return to IDLE and send the stale marker; caller holds the lock.

        Returns:
            True if the estimator was running
        """
        if not self._state.is_running:
            return False
        self._controller.stop()
        heading_deg = math.degrees(self._attitude.read().yaw)
        self._publisher.publish_invalid(heading_deg)
        logger.info("Estimator stopped")
        return True

    def process_frame(
        self, image: np.ndarray, depth: np.ndarray, timestamp_ns: int
    ) -> CycleOutcome:
        """Run one estimation cycle for a newly available frame pair.

        Args:
            image: Camera image
            depth: Depth map aligned to the image
            timestamp_ns: Depth frame timestamp in nanoseconds

        Returns:
            CycleOutcome describing what the cycle did
        """
        with self._lock:
            state = self._state
            if not state.is_running:
                return CycleOutcome.IGNORED

            dt = None
            if state.last_frame_ns is not None:
                dt = (timestamp_ns - state.last_frame_ns) / 1e9
            state.last_frame_ns = timestamp_ns
            if self._debug:
                logger.debug("Vision time: %s", dt)

            attitude = self._attitude.read()
            reference = state.reference_heading if state.is_converged else None
            decision = self._gates.check_attitude(attitude, reference)
            if decision.requires_reset:
                self._reset(decision)
                return CycleOutcome.RESET

            pose = self._adapter.process(image, depth, timestamp_ns)
            decision = self._gates.check_tracking(pose)
            if decision.requires_reset:
                self._reset(decision)
                return CycleOutcome.RESET

            result = self._integrator.step(pose)
            if self._debug and not result.quality_gate.passed:
                logger.debug("Quality %d too low, velocity suppressed", pose.quality)
            if result.outcome == IntegrationOutcome.DISCARDED:
                if self._debug:
                    logger.debug("Speed %.2f m/s implausible, cycle discarded", result.speed)
                return CycleOutcome.DISCARDED
            if result.outcome == IntegrationOutcome.SKIPPED:
                logger.debug("Non-positive dt %.6f s, cycle skipped", result.dt)
                return CycleOutcome.SKIPPED

            if self._controller.update(attitude.yaw):
                return CycleOutcome.CONVERGING

            self._publisher.publish(state, pose, image, depth, dt)
            return CycleOutcome.PUBLISHED

    def _reset(self, decision: GateDecision) -> None:
        """Drop accumulated trust and restart re-convergence."""
        self._integrator.clear()
        self._adapter.reset()
        reason = decision.reason.value if decision.reason is not None else "unknown"
        if self._controller.trigger_reset():
            logger.warning("Reset odometry (%s %.3f)", reason, decision.value)
            self._sink.send_log(Severity.WARNING, RESET_LOG_TEXT)
        elif self._debug:
            logger.debug("Reset odometry (%s %.3f)", reason, decision.value)

    @property
    def mode(self) -> EstimatorMode:
        """Return current lifecycle mode."""
        return self._state.mode

    @property
    def is_running(self) -> bool:
        """Return True while frames are being processed."""
        return self._state.is_running

    @property
    def is_available(self) -> bool:
        """Return False if the capture device failed to open."""
        return self._state.mode != EstimatorMode.UNAVAILABLE

    @property
    def capture_error(self) -> Exception | None:
        """Return the capture construction error, if any."""
        return self._capture_error

    @property
    def position(self) -> np.ndarray:
        """Return accumulated position (copy)."""
        with self._lock:
            return self._state.position.copy()

    @property
    def velocity(self) -> np.ndarray:
        """Return current velocity (copy)."""
        with self._lock:
            return self._state.velocity.copy()

    @property
    def heading_offset(self) -> float:
        """Return the heading offset frozen at the last reset (rad)."""
        return self._state.heading_offset

    @property
    def fps(self) -> float:
        """Return the rolling frame rate."""
        return self._publisher.fps

    @property
    def config(self) -> EstimatorConfig:
        """Return configuration."""
        return self._config
