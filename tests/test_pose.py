"""Tests for SE3, CameraPose and PoseSourceAdapter."""

import numpy as np
import pytest

from vpe.pose import SE3
from vpe.providers import Attitude, OdometryMeasurement, PoseSourceAdapter
from vpe.sim import ScriptedPoseProvider


class TestSE3:
    """Test suite for the rigid transform."""

    def test_identity(self):
        """Identity has no rotation and no translation."""
        T = SE3.identity()

        np.testing.assert_array_equal(T.to_matrix(), np.eye(4))

    def test_from_matrix(self):
        """A homogeneous matrix splits into rotation and translation."""
        M = np.eye(4)
        M[:3, :3] = [[0, -1, 0], [1, 0, 0], [0, 0, 1]]
        M[:3, 3] = [1.0, 2.0, 3.0]

        T = SE3.from_matrix(M)

        np.testing.assert_array_equal(T.translation, [1.0, 2.0, 3.0])
        np.testing.assert_array_equal(T.to_matrix(), M)

    def test_invalid_shapes(self):
        """Malformed inputs are rejected."""
        with pytest.raises(ValueError, match="Rotation must be 3x3"):
            SE3(rotation=np.eye(2), translation=np.zeros(3))
        with pytest.raises(ValueError, match="Translation must be"):
            SE3(rotation=np.eye(3), translation=np.zeros(4))
        with pytest.raises(ValueError, match="Transform must be 4x4"):
            SE3.from_matrix(np.eye(3))

    def test_copy_shares_no_arrays(self):
        """Mutating a copy leaves the original alone."""
        T = SE3.from_translation([1.0, 2.0, 3.0])
        C = T.copy()
        C.translation[0] = 99.0

        assert T.translation[0] == 1.0

    def test_repr(self):
        """repr shows the position."""
        assert repr(SE3.from_translation([1, 2, 3])) == "SE3(position=[1.000, 2.000, 3.000])"


class TestPoseSourceAdapter:
    """Test suite for oracle output conversion."""

    @pytest.mark.parametrize(
        "inliers,quality",
        [(0, 0), (24, 20), (25, 20), (60, 50), (120, 100), (300, 100)],
    )
    def test_quality_scaling(self, inliers, quality):
        """Quality is the inlier share of the track budget, clamped to 0..100."""
        provider = ScriptedPoseProvider([OdometryMeasurement(SE3.identity(), inliers)])
        adapter = PoseSourceAdapter(provider, max_tracks=120)

        pose = adapter.process(None, None, 1000)

        assert pose.quality == quality
        assert pose.timestamp_ns == 1000

    def test_failure_passed_through(self):
        """Oracle failure becomes None."""
        adapter = PoseSourceAdapter(ScriptedPoseProvider([None]))

        assert adapter.process(None, None, 0) is None

    def test_transform_copied(self):
        """The pose owns its transform even if the oracle reuses its object."""
        transform = SE3.from_translation([0.0, 0.0, 1.0])
        provider = ScriptedPoseProvider([OdometryMeasurement(transform, 100)])
        adapter = PoseSourceAdapter(provider)

        pose = adapter.process(None, None, 0)
        transform.translation[2] = 5.0

        assert pose.translation[2] == 1.0

    def test_reset_forwarded(self):
        """reset() resets the oracle."""
        provider = ScriptedPoseProvider()
        adapter = PoseSourceAdapter(provider)

        adapter.reset()

        assert provider.num_resets == 1

    def test_invalid_track_budget(self):
        """A non-positive track budget is rejected."""
        with pytest.raises(ValueError):
            PoseSourceAdapter(ScriptedPoseProvider(), max_tracks=0)


def test_attitude_angular_rate():
    """Angular rate is the body-rate vector magnitude."""
    assert Attitude(roll_rate=3.0, pitch_rate=4.0).angular_rate == pytest.approx(5.0)
