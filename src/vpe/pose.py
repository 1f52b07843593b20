"""Rigid camera transforms and timestamped camera poses."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class SE3:
    """Rigid body transformation (rotation + translation) in SE(3).

    Represents the camera-to-world transform T_world_camera reported by the
    pose oracle:

        p_world = R @ p_camera + t

    Only the translation is consumed by the integrator; the rotation is kept
    so detectors receive the full transform.

    Attributes:
        rotation: 3x3 orthonormal rotation matrix (det = +1)
        translation: 3D translation vector
    """

    rotation: np.ndarray  # 3x3 rotation matrix
    translation: np.ndarray  # (3,) translation vector

    def __post_init__(self) -> None:
        """Validate and normalize inputs."""
        self.rotation = np.asarray(self.rotation, dtype=np.float64)
        self.translation = np.asarray(self.translation, dtype=np.float64).flatten()

        if self.rotation.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got {self.rotation.shape}")
        if self.translation.shape != (3,):
            raise ValueError(
                f"Translation must be (3,), got {self.translation.shape}"
            )

    @classmethod
    def identity(cls) -> SE3:
        """Create identity transformation (no rotation, no translation)."""
        return cls(rotation=np.eye(3), translation=np.zeros(3))

    @classmethod
    def from_translation(cls, t: np.ndarray | list[float]) -> SE3:
        """Create a pure translation (identity rotation).

        Args:
            t: 3D translation vector (any shape that flattens to 3)

        Returns:
            SE3 transformation
        """
        return cls(rotation=np.eye(3), translation=np.asarray(t))

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> SE3:
        """Create SE3 from 4x4 homogeneous transformation matrix.

        Args:
            T: 4x4 transformation matrix of the form:
               [[R  t]
                [0  1]]

        Returns:
            SE3 transformation
        """
        T = np.asarray(T)
        if T.shape != (4, 4):
            raise ValueError(f"Transform must be 4x4, got {T.shape}")

        return cls(rotation=T[:3, :3], translation=T[:3, 3])

    def to_matrix(self) -> np.ndarray:
        """Convert to 4x4 homogeneous transformation matrix."""
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T

    def copy(self) -> SE3:
        """Return a deep copy that shares no arrays with this pose."""
        return SE3(rotation=self.rotation.copy(), translation=self.translation.copy())

    @property
    def position(self) -> np.ndarray:
        """Return camera position in the odometry world frame."""
        return self.translation.copy()

    def __repr__(self) -> str:
        """Return string representation."""
        pos = self.translation
        return f"SE3(position=[{pos[0]:.3f}, {pos[1]:.3f}, {pos[2]:.3f}])"


@dataclass(frozen=True)
class CameraPose:
    """Camera pose produced by the pose oracle for one frame.

    Attributes:
        transform: Camera-to-world transform (camera convention:
            X-right, Y-down, Z-forward)
        quality: Inlier-derived confidence, 0..100
        timestamp_ns: Depth frame timestamp in nanoseconds
    """

    transform: SE3
    quality: int
    timestamp_ns: int

    @property
    def translation(self) -> np.ndarray:
        """Return camera-frame translation (3,)."""
        return self.transform.translation
