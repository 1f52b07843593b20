"""Frame capture collaborators.

``FrameSource`` is the capture interface the estimator consumes: it calls a
listener once per newly available image/depth pair. ``DatasetFrameSource``
replays a recorded TUM RGB-D sequence.
"""

from __future__ import annotations

import bisect
import logging
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterator

import cv2
import numpy as np

logger = logging.getLogger(__name__)

FrameListener = Callable[[np.ndarray, np.ndarray, int], None]


class FrameSource(ABC):
    """Capture device delivering synchronized image/depth pairs."""

    def __init__(self) -> None:
        self._listeners: list[FrameListener] = []

    def register_listener(self, listener: FrameListener) -> None:
        """Add a callback invoked as ``listener(image, depth, timestamp_ns)``."""
        self._listeners.append(listener)

    def _emit(self, image: np.ndarray, depth: np.ndarray, timestamp_ns: int) -> None:
        for listener in self._listeners:
            listener(image, depth, timestamp_ns)

    @abstractmethod
    def start(self) -> None:
        """Start delivering frames."""

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering frames."""


class DatasetFrameSource(FrameSource):
    """Replay source for TUM RGB-D sequences.

    Expected layout::

        sequence/
            rgb.txt      # "timestamp filename" per line, '#' comments
            depth.txt
            rgb/*.png
            depth/*.png  # 16-bit depth

    Each RGB frame is paired with the depth frame closest in time (within
    ``max_difference`` seconds). The depth timestamp is the frame timestamp.
    """

    def __init__(
        self,
        dataset_path: str | Path,
        realtime: bool = False,
        max_difference: float = 0.02,
    ) -> None:
        """Initialize reader with path to a sequence directory.

        Args:
            dataset_path: Path to the sequence directory
            realtime: When started, pace frames by their timestamps
            max_difference: Max RGB/depth timestamp gap for pairing (s)

        Raises:
            FileNotFoundError: If the sequence or its index files don't exist
            ValueError: If no RGB/depth pairs could be formed
        """
        super().__init__()
        self.dataset_path = Path(dataset_path)
        self._realtime = realtime
        self._max_difference = max_difference

        self._validate_paths()

        rgb_list = self._load_list(self.dataset_path / "rgb.txt")
        depth_list = self._load_list(self.dataset_path / "depth.txt")
        self._pairs = self._associate(rgb_list, depth_list)

        if not self._pairs:
            raise ValueError(f"No RGB/depth pairs found in {self.dataset_path}")

        self._current_idx = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def _validate_paths(self) -> None:
        """Validate that all required paths exist."""
        if not self.dataset_path.exists():
            raise FileNotFoundError(f"Dataset path does not exist: {self.dataset_path}")

        for name in ("rgb.txt", "depth.txt"):
            if not (self.dataset_path / name).exists():
                raise FileNotFoundError(
                    f"{name} not found: {self.dataset_path / name}\n"
                    f"Expected TUM RGB-D layout with rgb.txt and depth.txt"
                )

    def _load_list(self, path: Path) -> list[tuple[float, str]]:
        """Parse a TUM index file.

        Format:
            # timestamp filename
            1305031102.175304 rgb/1305031102.175304.png

        Returns:
            List of (timestamp_s, relative_path) sorted by time
        """
        entries = []
        with open(path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                parts = line.split()
                try:
                    entries.append((float(parts[0]), parts[1]))
                except (ValueError, IndexError) as e:
                    raise ValueError(
                        f"Invalid line in {path}: '{line}'\n"
                        f"Expected format: timestamp filename"
                    ) from e
        entries.sort()
        return entries

    def _associate(
        self,
        rgb_list: list[tuple[float, str]],
        depth_list: list[tuple[float, str]],
    ) -> list[tuple[int, str, str]]:
        """Pair each RGB frame with the nearest unused depth frame.

        Returns:
            List of (depth_timestamp_ns, rgb_file, depth_file)
        """
        depth_times = [t for t, _ in depth_list]
        used: set[int] = set()
        pairs = []
        for t_rgb, rgb_file in rgb_list:
            i = bisect.bisect_left(depth_times, t_rgb)
            candidates = [j for j in (i - 1, i) if 0 <= j < len(depth_times)]
            if not candidates:
                continue
            j = min(candidates, key=lambda k: abs(depth_times[k] - t_rgb))
            if j in used or abs(depth_times[j] - t_rgb) > self._max_difference:
                continue
            used.add(j)
            t_depth, depth_file = depth_list[j]
            pairs.append((int(round(t_depth * 1e9)), rgb_file, depth_file))
        return pairs

    def _load_pair(self, rgb_file: str, depth_file: str) -> tuple[np.ndarray, np.ndarray]:
        """Load one RGB image and its 16-bit depth map.

        Raises:
            FileNotFoundError: If either file doesn't exist
            ValueError: If image decoding fails
        """
        rgb_path = self.dataset_path / rgb_file
        depth_path = self.dataset_path / depth_file

        if not rgb_path.exists():
            raise FileNotFoundError(f"RGB image not found: {rgb_path}")
        if not depth_path.exists():
            raise FileNotFoundError(f"Depth image not found: {depth_path}")

        rgb = cv2.imread(str(rgb_path), cv2.IMREAD_COLOR)
        depth = cv2.imread(str(depth_path), cv2.IMREAD_UNCHANGED)

        if rgb is None:
            raise ValueError(f"Failed to load RGB image: {rgb_path}")
        if depth is None:
            raise ValueError(f"Failed to load depth image: {depth_path}")

        return rgb, depth

    def get_next_frame(self) -> tuple[np.ndarray, np.ndarray, int] | None:
        """Get the next image/depth pair.

        Returns:
            Tuple of (rgb, depth, timestamp_ns), or None when exhausted
        """
        if self._current_idx >= len(self._pairs):
            return None

        timestamp_ns, rgb_file, depth_file = self._pairs[self._current_idx]
        rgb, depth = self._load_pair(rgb_file, depth_file)

        self._current_idx += 1
        return rgb, depth, timestamp_ns

    def reset(self) -> None:
        """Reset iterator to beginning of the sequence."""
        self._current_idx = 0

    def start(self) -> None:
        """Replay the sequence to the listeners on a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="vpe-replay", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the replay thread."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self._thread = None

    def join(self, timeout: float | None = None) -> None:
        """Wait for the replay thread to finish the sequence."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def _run(self) -> None:
        t_wall0 = time.monotonic()
        t_data0: int | None = None
        for rgb, depth, timestamp_ns in self:
            if self._stop.is_set():
                break
            if self._realtime:
                if t_data0 is None:
                    t_data0 = timestamp_ns
                delay = (timestamp_ns - t_data0) / 1e9 - (time.monotonic() - t_wall0)
                if delay > 0 and self._stop.wait(delay):
                    break
            self._emit(rgb, depth, timestamp_ns)
        logger.info("Replay of %s finished", self.dataset_path)

    def __len__(self) -> int:
        """Return total number of frame pairs."""
        return len(self._pairs)

    def __iter__(self) -> Iterator[tuple[np.ndarray, np.ndarray, int]]:
        """Iterate over the sequence from the beginning."""
        self.reset()
        return self

    def __next__(self) -> tuple[np.ndarray, np.ndarray, int]:
        pair = self.get_next_frame()
        if pair is None:
            raise StopIteration
        return pair
