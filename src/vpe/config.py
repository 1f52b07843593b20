"""Estimator and MAVLink link configuration.

Configuration is read once, at construction. YAML layout::

    vision:
      debug: false
      detectors: false
      rot_offset_deg: 0.0
      max_rotation_rate: 1.0
    mavlink:
      url: udpout:127.0.0.1:14540
      command_id: 31010
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml


# YAML key -> dataclass field, for keys that differ
_VISION_ALIASES = {
    "detectors": "enable_detectors",
    "rot_offset_deg": "heading_offset_deg",
}


@dataclass
class EstimatorConfig:
    """Tunables of the position estimator.

    Attributes:
        debug: Log every gate violation and cycle timing
        enable_detectors: Allow detector registration and fan-out
        heading_offset_deg: Camera mounting yaw offset (degrees)
        max_rotation_rate: Body-rate ceiling before a reset (rad/s)
        max_heading_deviation: Heading drift ceiling since the last reset (rad)
        min_quality: Quality must be strictly above this to trust velocity
        max_speed: Speed ceiling before a cycle is discarded (m/s)
        max_tracks: Track budget of the pose oracle, for quality scaling
        grace_window_s: Re-convergence window after a reset (s)
        grace_frames: If set, length of the re-convergence window in frames
            instead of seconds
        reset_log_interval_s: Minimum spacing of reset warnings (s)
        status_interval_s: Minimum spacing of status messages (s)
    """

    debug: bool = False
    enable_detectors: bool = False
    heading_offset_deg: float = 0.0

    max_rotation_rate: float = 1.0
    max_heading_deviation: float = 0.3927
    min_quality: int = 20
    max_speed: float = 2.0
    max_tracks: int = 120

    grace_window_s: float = 0.2
    grace_frames: int | None = None
    reset_log_interval_s: float = 0.2
    status_interval_s: float = 0.25

    def __post_init__(self) -> None:
        """Validate thresholds."""
        positive = {
            "max_rotation_rate": self.max_rotation_rate,
            "max_heading_deviation": self.max_heading_deviation,
            "max_speed": self.max_speed,
            "max_tracks": self.max_tracks,
            "status_interval_s": self.status_interval_s,
        }
        for name, value in positive.items():
            if not value > 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.grace_window_s < 0 or self.reset_log_interval_s < 0:
            raise ValueError("Time windows must not be negative")
        if self.grace_frames is not None and self.grace_frames < 0:
            raise ValueError(f"grace_frames must not be negative, got {self.grace_frames}")
        if not 0 <= self.min_quality <= 100:
            raise ValueError(f"min_quality must be in 0..100, got {self.min_quality}")

    @property
    def heading_offset_rad(self) -> float:
        """Return the mounting offset in radians."""
        return math.radians(self.heading_offset_deg)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EstimatorConfig:
        """Build a config from the ``vision`` section of a config file.

        Raises:
            ValueError: If the section contains unknown keys
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = _VISION_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown vision config key: '{key}'")
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str | Path) -> EstimatorConfig:
        """Load the ``vision`` section of a YAML config file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file or section is malformed
        """
        return cls.from_dict(_load_section(path, "vision"))


@dataclass
class MavlinkConfig:
    """MAVLink link settings.

    Attributes:
        url: pymavlink connection string (serial device or udp/tcp url)
        baud: Serial baud rate
        source_system: MAVLink system id of this component
        source_component: MAVLink component id (197 = visual-inertial odometry)
        command_id: COMMAND_LONG id carrying the vision enable/disable
            directive (param1: 1 enable, 0 disable)
    """

    url: str = "udpout:127.0.0.1:14540"
    baud: int = 921600
    source_system: int = 1
    source_component: int = 197
    command_id: int = 31010

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MavlinkConfig:
        """Build a config from the ``mavlink`` section of a config file."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown mavlink config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> MavlinkConfig:
        """Load the ``mavlink`` section of a YAML config file."""
        return cls.from_dict(_load_section(path, "mavlink"))


def _load_section(path: str | Path, section: str) -> dict[str, Any]:
    """Read one top-level mapping out of a YAML file.

    A missing section yields an empty mapping (all defaults).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top of {path}")

    value = data.get(section) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Section '{section}' in {path} must be a mapping")
    return value
