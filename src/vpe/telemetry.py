"""Telemetry transport.

``TelemetrySink`` is what the estimator publishes to. ``MavlinkTelemetry``
maps the messages onto MAVLink with pymavlink and also listens on the same
link for attitude and the vision enable/disable command.
"""

from __future__ import annotations

import logging
import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from pymavlink import mavutil
from scipy.spatial.transform import Rotation

from .config import MavlinkConfig
from .messages import PositionMessage, Severity, StatusMessage
from .providers import Attitude, AttitudeProvider

logger = logging.getLogger(__name__)

# STATUSTEXT payload limit
_MAX_TEXT_LEN = 50


class TelemetrySink(ABC):
    """Outbound channel to the flight controller. Best effort."""

    @abstractmethod
    def send_position(self, msg: PositionMessage) -> None:
        """Send a position update."""

    @abstractmethod
    def send_status(self, msg: StatusMessage) -> None:
        """Send a status update."""

    @abstractmethod
    def send_log(self, severity: Severity, text: str) -> None:
        """Send a log event to the ground station."""


@dataclass
class RecordingTelemetry(TelemetrySink):
    """Sink that keeps every message in memory (offline replay, tests)."""

    positions: list[PositionMessage] = field(default_factory=list)
    statuses: list[StatusMessage] = field(default_factory=list)
    logs: list[tuple[Severity, str]] = field(default_factory=list)

    def send_position(self, msg: PositionMessage) -> None:
        self.positions.append(msg)

    def send_status(self, msg: StatusMessage) -> None:
        self.statuses.append(msg)

    def send_log(self, severity: Severity, text: str) -> None:
        self.logs.append((severity, text))

    def clear(self) -> None:
        """Drop all recorded messages."""
        self.positions.clear()
        self.statuses.clear()
        self.logs.clear()


class MavlinkAttitudeProvider(AttitudeProvider):
    """Attitude fed from MAVLink ATTITUDE messages."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._attitude = Attitude()
        self._updates = 0

    def update(self, msg: Any) -> None:
        """Store an ATTITUDE message."""
        attitude = Attitude(
            roll=float(msg.roll),
            pitch=float(msg.pitch),
            yaw=float(msg.yaw),
            roll_rate=float(msg.rollspeed),
            pitch_rate=float(msg.pitchspeed),
            yaw_rate=float(msg.yawspeed),
        )
        with self._lock:
            self._attitude = attitude
            self._updates += 1

    def read(self) -> Attitude:
        with self._lock:
            return self._attitude

    @property
    def has_data(self) -> bool:
        """Return True once at least one ATTITUDE message arrived."""
        with self._lock:
            return self._updates > 0


def heading_quaternion(heading_rad: float) -> list[float]:
    """Return the MAVLink (w, x, y, z) quaternion of a pure yaw rotation."""
    x, y, z, w = Rotation.from_euler("z", heading_rad).as_quat()
    return [float(w), float(x), float(y), float(z)]


class MavlinkTelemetry(TelemetrySink):
    """pymavlink link to the autopilot.

    Outbound mapping:
        position -> VISION_POSITION_ESTIMATE
        status   -> ODOMETRY (position, velocity, heading, quality) and
                    DEBUG_VECT "VIS_STAT" (quality, fps, flags)
        log      -> STATUSTEXT

    Inbound (receive thread, see ``start``):
        ATTITUDE     -> ``attitude`` provider
        COMMAND_LONG -> command handler (vision enable/disable)
    """

    def __init__(
        self,
        config: MavlinkConfig,
        connection: Any | None = None,
    ) -> None:
        """Open the MAVLink link.

        Args:
            config: Link settings
            connection: Existing pymavlink connection (created from
                ``config.url`` when omitted)
        """
        self._config = config
        if connection is None:
            connection = mavutil.mavlink_connection(
                config.url,
                baud=config.baud,
                source_system=config.source_system,
                source_component=config.source_component,
            )
        self._master = connection
        self._tx_lock = threading.Lock()
        self._stop = threading.Event()
        self._rx_thread: threading.Thread | None = None
        self._command_handler: Callable[[bool], None] | None = None
        self.attitude = MavlinkAttitudeProvider()
        self.tx_errors = 0

    def send_position(self, msg: PositionMessage) -> None:
        # Attitude fields are not estimated here
        self._send(
            "VISION_POSITION_ESTIMATE",
            lambda mav: mav.vision_position_estimate_send(
                msg.timestamp_us, msg.x, msg.y, msg.z, 0.0, 0.0, 0.0
            ),
        )

    def send_status(self, msg: StatusMessage) -> None:
        q = heading_quaternion(math.radians(msg.heading_deg))
        unknown_cov = [float("nan")] + [0.0] * 20
        frame = mavutil.mavlink.MAV_FRAME_LOCAL_FRD
        child_frame = mavutil.mavlink.MAV_FRAME_BODY_FRD
        self._send(
            "ODOMETRY",
            lambda mav: mav.odometry_send(
                msg.timestamp_us,
                frame,
                child_frame,
                msg.x,
                msg.y,
                msg.z,
                q,
                msg.vx,
                msg.vy,
                msg.vz,
                float("nan"),
                float("nan"),
                float("nan"),
                unknown_cov,
                unknown_cov,
                0,
                mavutil.mavlink.MAV_ESTIMATOR_TYPE_VISION,
                int(msg.quality),
            ),
        )
        self._send(
            "DEBUG_VECT",
            lambda mav: mav.debug_vect_send(
                b"VIS_STAT",
                msg.timestamp_us,
                float(msg.quality),
                float(msg.fps),
                float(int(msg.flags)),
            ),
        )

    def send_log(self, severity: Severity, text: str) -> None:
        payload = text.encode("utf-8")[:_MAX_TEXT_LEN]
        self._send(
            "STATUSTEXT",
            lambda mav: mav.statustext_send(int(severity), payload),
        )

    def _send(self, name: str, send: Callable[[Any], None]) -> None:
        """Send one message; transport errors are counted and logged."""
        try:
            with self._tx_lock:
                send(self._master.mav)
        except (OSError, ValueError, TypeError) as e:
            self.tx_errors += 1
            logger.warning("%s send error: %s (errs=%d)", name, e, self.tx_errors)

    def start(self, command_handler: Callable[[bool], None] | None = None) -> None:
        """Start the receive thread.

        Args:
            command_handler: Called with True/False for vision enable/disable
        """
        if self._rx_thread is not None:
            return
        self._command_handler = command_handler
        self._stop.clear()
        self._rx_thread = threading.Thread(
            target=self._rx_loop, name="vpe-mavlink-rx", daemon=True
        )
        self._rx_thread.start()

    def stop(self) -> None:
        """Stop the receive thread and close the link."""
        self._stop.set()
        if self._rx_thread is not None:
            self._rx_thread.join(timeout=1.0)
            self._rx_thread = None
        self._master.close()

    def handle_message(self, msg: Any) -> None:
        """Dispatch one received message."""
        mtype = msg.get_type()
        if mtype == "ATTITUDE":
            self.attitude.update(msg)
        elif mtype == "COMMAND_LONG" and int(msg.command) == self._config.command_id:
            param = int(msg.param1)
            if param not in (0, 1):
                logger.warning("Ignoring vision command with param1=%d", param)
                return
            if self._command_handler is not None:
                self._command_handler(param == 1)

    def _rx_loop(self) -> None:
        """Receive messages until stopped."""
        while not self._stop.is_set():
            try:
                msg = self._master.recv_match(
                    type=["ATTITUDE", "COMMAND_LONG"], blocking=True, timeout=0.2
                )
            except OSError as e:
                logger.warning("MAVLink receive error: %s", e)
                self._stop.wait(0.2)
                continue
            if msg is not None:
                self.handle_message(msg)
