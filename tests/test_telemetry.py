"""Tests for the MAVLink telemetry transport."""

import math
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from vpe.config import MavlinkConfig
from vpe.messages import PositionMessage, Severity, StatusMessage, ValidityFlags
from vpe.telemetry import (
    MavlinkAttitudeProvider,
    MavlinkTelemetry,
    RecordingTelemetry,
    heading_quaternion,
)


def attitude_msg(**kwargs):
    fields = dict(roll=0.0, pitch=0.0, yaw=0.0, rollspeed=0.0, pitchspeed=0.0, yawspeed=0.0)
    fields.update(kwargs)
    return SimpleNamespace(get_type=lambda: "ATTITUDE", **fields)


def command_msg(command=31010, param1=1.0):
    return SimpleNamespace(get_type=lambda: "COMMAND_LONG", command=command, param1=param1)


@pytest.fixture
def connection() -> MagicMock:
    """Stand-in for a pymavlink connection."""
    conn = MagicMock()
    conn.recv_match.return_value = None
    return conn


@pytest.fixture
def link(connection) -> MavlinkTelemetry:
    """Telemetry over the mocked connection."""
    return MavlinkTelemetry(MavlinkConfig(), connection=connection)


class TestMavlinkTelemetry:
    """Test suite for outbound and inbound MAVLink handling."""

    def test_send_position(self, link, connection):
        """Position goes out as VISION_POSITION_ESTIMATE with zero attitude."""
        link.send_position(PositionMessage(timestamp_us=123, x=1.0, y=2.0, z=3.0))

        connection.mav.vision_position_estimate_send.assert_called_once_with(
            123, 1.0, 2.0, 3.0, 0.0, 0.0, 0.0
        )

    def test_send_status(self, link, connection):
        """Status goes out as ODOMETRY plus the VIS_STAT debug vector."""
        status = StatusMessage(
            x=1.0, y=2.0, z=3.0, vx=0.1, vy=0.2, vz=0.3,
            heading_deg=90.0, quality=80, fps=30.0,
            flags=ValidityFlags.POSITION_VALID, timestamp_us=5_000_000,
        )

        link.send_status(status)

        args = connection.mav.odometry_send.call_args.args
        assert args[0] == 5_000_000
        assert args[3:6] == (1.0, 2.0, 3.0)
        assert args[6] == pytest.approx([math.sqrt(0.5), 0.0, 0.0, math.sqrt(0.5)])
        assert args[7:10] == (0.1, 0.2, 0.3)
        assert args[-1] == 80
        connection.mav.debug_vect_send.assert_called_once_with(
            b"VIS_STAT", 5_000_000, 80.0, 30.0, 1.0
        )

    def test_send_log(self, link, connection):
        """Logs go out as STATUSTEXT with the MAVLink severity."""
        link.send_log(Severity.WARNING, "[vis] reset odometry")

        connection.mav.statustext_send.assert_called_once_with(4, b"[vis] reset odometry")

    def test_send_log_truncated(self, link, connection):
        """Text longer than the STATUSTEXT payload is truncated."""
        link.send_log(Severity.INFO, "x" * 80)

        payload = connection.mav.statustext_send.call_args.args[1]
        assert len(payload) == 50

    def test_send_error_counted(self, link, connection):
        """Transport errors are logged and counted, never raised."""
        connection.mav.vision_position_estimate_send.side_effect = OSError("link down")

        link.send_position(PositionMessage(timestamp_us=0, x=0.0, y=0.0, z=0.0))
        link.send_position(PositionMessage(timestamp_us=1, x=0.0, y=0.0, z=0.0))

        assert link.tx_errors == 2

    def test_attitude_updates_provider(self, link):
        """ATTITUDE messages feed the attitude provider."""
        assert not link.attitude.has_data

        link.handle_message(attitude_msg(yaw=0.5, yawspeed=1.2))

        attitude = link.attitude.read()
        assert link.attitude.has_data
        assert attitude.yaw == 0.5
        assert attitude.yaw_rate == 1.2

    @pytest.mark.parametrize("param1,expected", [(1.0, True), (0.0, False)])
    def test_command_dispatch(self, link, param1, expected):
        """The vision command maps param1 onto enable/disable."""
        handler = MagicMock()
        link._command_handler = handler

        link.handle_message(command_msg(param1=param1))

        handler.assert_called_once_with(expected)

    def test_command_ignored(self, link):
        """Other command ids and unknown parameters are ignored."""
        handler = MagicMock()
        link._command_handler = handler

        link.handle_message(command_msg(command=400))
        link.handle_message(command_msg(param1=5.0))

        handler.assert_not_called()

    def test_start_stop(self, link, connection):
        """The receive thread starts and stops with the link."""
        link.start(MagicMock())
        link.stop()

        connection.close.assert_called_once()


class TestHelpers:
    """Test suite for small telemetry helpers."""

    def test_heading_quaternion(self):
        """A pure yaw maps to a (w, x, y, z) quaternion about Z."""
        q = heading_quaternion(math.pi / 2)
        assert q == pytest.approx([math.sqrt(0.5), 0.0, 0.0, math.sqrt(0.5)])

        assert heading_quaternion(0.0) == pytest.approx([1.0, 0.0, 0.0, 0.0])

    def test_attitude_provider_defaults(self):
        """Before any message the attitude is level and still."""
        provider = MavlinkAttitudeProvider()

        assert not provider.has_data
        assert provider.read().angular_rate == 0.0

    def test_recording_telemetry(self):
        """The recording sink keeps and clears messages."""
        sink = RecordingTelemetry()
        sink.send_position(PositionMessage(timestamp_us=0, x=0.0, y=0.0, z=0.0))
        sink.send_log(Severity.WARNING, "text")

        assert len(sink.positions) == 1
        assert sink.logs == [(Severity.WARNING, "text")]

        sink.clear()
        assert sink.positions == [] and sink.logs == []
