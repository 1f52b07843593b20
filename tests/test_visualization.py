"""Tests for the Rerun visualizer detector."""

import numpy as np
import pytest

from conftest import DEPTH, IMAGE, make_pose
from vpe.messages import OdometrySnapshot
from vpe.visualization import RerunVisualizer


def snapshot(x: float) -> OdometrySnapshot:
    return OdometrySnapshot(
        timestamp_ns=int(x * 1e9),
        position=np.array([x, 0.0, 0.0]),
        velocity=np.array([0.5, 0.0, 0.0]),
        heading=0.0,
        pose=make_pose([0.0, 0.0, x], x),
    )


@pytest.fixture
def visualizer() -> RerunVisualizer:
    """Visualizer that logs without spawning a viewer."""
    return RerunVisualizer(app_name="vpe-test", spawn=False, max_trajectory=3)


class TestRerunVisualizer:
    """Test suite for RerunVisualizer."""

    def test_name(self, visualizer):
        """The detector reports its class name."""
        assert visualizer.name == "RerunVisualizer"

    def test_trajectory_bounded(self, visualizer):
        """Only the most recent positions are kept."""
        for i in range(5):
            visualizer.process(snapshot(0.1 * i), DEPTH, IMAGE, 90)

        assert len(visualizer._positions) == 3
        assert visualizer._positions[-1][0] == pytest.approx(0.4)

    def test_clear(self, visualizer):
        """clear() forgets the trajectory."""
        visualizer.process(snapshot(0.1), DEPTH, IMAGE, 90)
        visualizer.clear()

        assert visualizer._positions == []
