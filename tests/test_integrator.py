"""Tests for VelocityPositionIntegrator."""

import math

import numpy as np
import pytest

from conftest import make_pose
from vpe.gates import GateEvaluator, GateReason
from vpe.integrator import (
    IntegrationOutcome,
    VelocityPositionIntegrator,
    camera_to_world,
    rotate_xy,
)
from vpe.state import EstimatorState


@pytest.fixture
def state() -> EstimatorState:
    """Fresh estimator state with zero heading offset."""
    return EstimatorState()


@pytest.fixture
def integrator(state: EstimatorState) -> VelocityPositionIntegrator:
    """Integrator with default gate thresholds."""
    return VelocityPositionIntegrator(state, GateEvaluator())


class TestHelpers:
    """Tests for axis remapping and planar rotation."""

    def test_camera_to_world_axis_remap(self):
        """Camera depth -> world X, lateral -> world Y, vertical -> world Z."""
        world = camera_to_world(np.array([1.0, 2.0, 3.0]))
        np.testing.assert_array_equal(world, [3.0, 1.0, 2.0])

    def test_rotate_xy_quarter_turn(self):
        """Rotating +X by +90 degrees yields +Y."""
        x, y = rotate_xy(1.0, 0.0, math.pi / 2)
        assert x == pytest.approx(0.0, abs=1e-12)
        assert y == pytest.approx(1.0)

    def test_rotate_xy_zero_angle(self):
        """Zero rotation is the identity."""
        assert rotate_xy(0.3, -0.7, 0.0) == (0.3, -0.7)


class TestVelocityPositionIntegrator:
    """Test suite for the integration step."""

    def test_first_sample_has_zero_velocity(self, integrator, state):
        """Without a previous pose the velocity is zero and position untouched."""
        state.velocity = np.array([1.0, 1.0, 1.0])

        result = integrator.step(make_pose([0.5, 0.5, 0.5], 0.0))

        assert result.outcome == IntegrationOutcome.FIRST_SAMPLE
        assert result.accepted
        np.testing.assert_array_equal(state.velocity, np.zeros(3))
        np.testing.assert_array_equal(state.position, np.zeros(3))
        assert integrator.previous_pose is not None

    def test_constant_velocity_round_trip(self, integrator, state):
        """N frames of constant velocity integrate to v * dt * N."""
        dt = 0.02
        v = 1.0
        n = 25

        integrator.step(make_pose([0.0, 0.0, 0.0], 0.0))
        for i in range(1, n + 1):
            result = integrator.step(make_pose([0.0, 0.0, v * dt * i], dt * i))
            assert result.outcome == IntegrationOutcome.INTEGRATED

        assert state.position[0] == pytest.approx(v * dt * n)
        assert state.position[1] == pytest.approx(0.0, abs=1e-12)
        assert state.position[2] == pytest.approx(0.0, abs=1e-12)
        np.testing.assert_allclose(state.velocity, [v, 0.0, 0.0])

    def test_velocity_axis_mapping(self, integrator, state):
        """Camera translation deltas map to world velocity axes."""
        integrator.step(make_pose([0.0, 0.0, 0.0], 0.0))
        result = integrator.step(make_pose([0.01, 0.02, 0.03], 0.1))

        np.testing.assert_allclose(result.velocity, [0.3, 0.1, 0.2])
        np.testing.assert_allclose(state.position, [0.03, 0.01, 0.02])

    def test_heading_offset_rotates_horizontal_displacement(self, integrator, state):
        """Horizontal displacement is rotated by the negative heading offset."""
        state.heading_offset = math.pi / 2

        integrator.step(make_pose([0.0, 0.0, 0.0], 0.0))
        integrator.step(make_pose([0.0, 0.0, 0.1], 0.1))

        assert state.position[0] == pytest.approx(0.0, abs=1e-12)
        assert state.position[1] == pytest.approx(-0.1)

    def test_vertical_displacement_not_rotated(self, integrator, state):
        """Vertical displacement is added directly regardless of heading."""
        state.heading_offset = 1.0

        integrator.step(make_pose([0.0, 0.0, 0.0], 0.0))
        integrator.step(make_pose([0.0, 0.05, 0.0], 0.1))

        assert state.position[2] == pytest.approx(0.05)
        assert state.position[0] == pytest.approx(0.0, abs=1e-12)
        assert state.position[1] == pytest.approx(0.0, abs=1e-12)

    def test_low_quality_zeroes_velocity(self, integrator, state):
        """Quality at or below threshold suppresses velocity but still caches."""
        integrator.step(make_pose([0.0, 0.0, 0.0], 0.0, quality=20))
        pose = make_pose([0.0, 0.0, 0.1], 0.1, quality=20)

        result = integrator.step(pose)

        assert result.outcome == IntegrationOutcome.INTEGRATED
        assert result.quality_gate.reason == GateReason.QUALITY
        np.testing.assert_array_equal(state.velocity, np.zeros(3))
        np.testing.assert_array_equal(state.position, np.zeros(3))
        assert integrator.previous_pose is pose

    def test_speed_gate_discards_cycle(self, integrator, state):
        """3 m/s exceeds the 2 m/s ceiling: no position or cache update."""
        first = make_pose([0.0, 0.0, 0.0], 0.0)
        integrator.step(first)
        integrator.step(make_pose([0.0, 0.0, 0.01], 0.01))
        position_before = state.position.copy()
        cached = integrator.previous_pose

        result = integrator.step(make_pose([0.0, 0.0, 0.31], 0.11))

        assert result.outcome == IntegrationOutcome.DISCARDED
        assert not result.accepted
        assert result.speed == pytest.approx(3.0)
        assert result.speed_gate.reason == GateReason.SPEED
        np.testing.assert_array_equal(state.position, position_before)
        assert integrator.previous_pose is cached

    def test_next_cycle_after_discard_uses_older_pose(self, integrator, state):
        """After a discard, velocity is computed against the last accepted pose."""
        integrator.step(make_pose([0.0, 0.0, 0.0], 0.0))
        integrator.step(make_pose([0.0, 0.0, 0.09], 0.03))  # 3 m/s, discarded
        result = integrator.step(make_pose([0.0, 0.0, 0.03], 0.06))

        assert result.outcome == IntegrationOutcome.INTEGRATED
        assert result.velocity[0] == pytest.approx(0.5)
        assert state.position[0] == pytest.approx(0.03)

    @pytest.mark.parametrize("t", [0.1, 0.05])
    def test_non_positive_dt_skips(self, integrator, state, t):
        """Duplicate or out-of-order timestamps never divide by zero."""
        cached = make_pose([0.0, 0.0, 0.0], 0.1)
        integrator.step(cached)

        result = integrator.step(make_pose([0.0, 0.0, 0.01], t))

        assert result.outcome == IntegrationOutcome.SKIPPED
        assert integrator.previous_pose is cached
        np.testing.assert_array_equal(state.position, np.zeros(3))

    def test_clear_restarts_from_first_sample(self, integrator):
        """Clearing the cache makes the next sample a first sample."""
        integrator.step(make_pose([0.0, 0.0, 0.0], 0.0))
        integrator.clear()

        result = integrator.step(make_pose([0.0, 0.0, 1.0], 0.1))

        assert result.outcome == IntegrationOutcome.FIRST_SAMPLE
