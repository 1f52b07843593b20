"""Rerun-based visualization of the published estimate."""

from __future__ import annotations

import numpy as np
import rerun as rr
import rerun.blueprint as rrb

from ..detectors import Detector
from ..messages import OdometrySnapshot


class RerunVisualizer(Detector):
    """Logs estimator snapshots to Rerun.

    Registered like any other detector, so it runs at the status tick
    (4 Hz by default) and never slows down the frame path.

    Entity hierarchy:
        camera/
            image       - Camera image
            depth       - Depth map
        world/
            trajectory  - Heading-stabilized position history (yellow)
            vehicle     - Current position with heading arrow
        plots/
            quality     - Pose quality
            speed       - Horizontal speed
    """

    def __init__(
        self,
        app_name: str = "vpe",
        spawn: bool = True,
        depth_scale: float = 1000.0,
        max_trajectory: int = 10000,
    ) -> None:
        """Initialize Rerun visualization.

        Args:
            app_name: Name for the Rerun application window
            spawn: If True, automatically spawn the Rerun viewer
            depth_scale: Depth units per meter (1000 for millimeter depth)
            max_trajectory: Number of positions kept for the trajectory strip
        """
        rr.init(app_name, spawn=spawn)
        self._depth_scale = depth_scale
        self._max_trajectory = max_trajectory
        self._positions: list[np.ndarray] = []
        self._setup_coordinate_system()
        self._setup_layout()

    def _setup_coordinate_system(self) -> None:
        """Configure the 3D coordinate system.

        Published positions are X-forward, Y-right, Z-down (FRD).
        """
        rr.log("world", rr.ViewCoordinates.FRD, static=True)

    def _setup_layout(self) -> None:
        """Configure the viewer layout"""
        blueprint = rrb.Blueprint(
            rrb.Horizontal(
                contents=[
                    rrb.Vertical(
                        contents=[
                            rrb.Spatial2DView(name="Camera", origin="camera/image"),
                            rrb.Spatial2DView(name="Depth", origin="camera/depth"),
                        ]
                    ),
                    rrb.Spatial3DView(name="Trajectory", origin="world"),
                    rrb.Vertical(
                        contents=[
                            rrb.TimeSeriesView(name="Quality", origin="plots/quality"),
                            rrb.TimeSeriesView(name="Speed", origin="plots/speed"),
                        ]
                    ),
                ]
            )
        )
        rr.send_blueprint(blueprint)

    def process(
        self,
        snapshot: OdometrySnapshot,
        depth: np.ndarray,
        image: np.ndarray,
        quality: int,
    ) -> None:
        """Log one snapshot with its frame."""
        rr.set_time("timestamp", duration=snapshot.timestamp_ns / 1e9)

        rr.log("camera/image", rr.Image(image))
        rr.log("camera/depth", rr.DepthImage(depth, meter=self._depth_scale))

        self._positions.append(np.asarray(snapshot.position, dtype=np.float64))
        if len(self._positions) > self._max_trajectory:
            self._positions = self._positions[-self._max_trajectory:]
        self.log_trajectory(np.array(self._positions))
        self.log_vehicle(snapshot.position, snapshot.heading)

        rr.log("plots/quality", rr.Scalars(float(quality)))
        rr.log(
            "plots/speed",
            rr.Scalars(float(np.linalg.norm(snapshot.velocity[:2]))),
        )

    def log_trajectory(
        self,
        positions: np.ndarray,
        entity_path: str = "world/trajectory",
    ) -> None:
        """Log position history as a 3D line strip.

        Args:
            positions: Nx3 array of positions in world frame
            entity_path: Rerun entity path for the trajectory
        """
        if len(positions) < 2:
            return

        rr.log(
            entity_path,
            rr.LineStrips3D(
                [positions],
                colors=[[255, 255, 0]],  # Yellow
                radii=0.01,
            ),
        )

    def log_vehicle(
        self,
        position: np.ndarray,
        heading: float,
        entity_path: str = "world/vehicle",
    ) -> None:
        """Log current position with an arrow along the heading reference.

        Args:
            position: 3D position [x, y, z]
            heading: Heading reference (rad)
            entity_path: Rerun entity path for the vehicle
        """
        rr.log(
            entity_path,
            rr.Points3D([position], colors=[[0, 255, 255]], radii=0.05),  # Cyan
        )
        direction = 0.3 * np.array([np.cos(heading), np.sin(heading), 0.0])
        rr.log(
            f"{entity_path}/heading",
            rr.Arrows3D(origins=[position], vectors=[direction], colors=[[255, 0, 0]]),
        )

    def clear(self) -> None:
        """Forget the trajectory history."""
        self._positions = []
