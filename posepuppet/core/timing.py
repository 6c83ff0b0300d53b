"""Frame processing timing"""

import time
from collections import deque
from typing import Deque, Optional


class FrameTimer:
    """Measures and tracks frame processing times."""

    def __init__(self, window_size: int = 60):
        self._window_size = window_size
        self._frame_times: Deque[float] = deque(maxlen=window_size)
        self._start_time: Optional[float] = None
        self._last_frame_time: Optional[float] = None

    def start(self) -> None:
        """Start timing a frame."""
        self._start_time = time.perf_counter()

    def stop(self) -> float:
        """Stop timing and return elapsed time."""
        if self._start_time is None:
            return 0.0

        elapsed = time.perf_counter() - self._start_time
        self._frame_times.append(elapsed)
        self._last_frame_time = elapsed
        self._start_time = None
        return elapsed

    @property
    def is_running(self) -> bool:
        return self._start_time is not None

    @property
    def frame_count(self) -> int:
        """Number of timed frames currently in the window."""
        return len(self._frame_times)

    @property
    def last_frame_time(self) -> float:
        """Last frame processing time in seconds."""
        return self._last_frame_time or 0.0

    @property
    def average_frame_time(self) -> float:
        """Average frame processing time over window."""
        if not self._frame_times:
            return 0.0
        return sum(self._frame_times) / len(self._frame_times)

    @property
    def fps(self) -> float:
        """Frames per second the pipeline could sustain at the current cost."""
        avg = self.average_frame_time
        return 1.0 / avg if avg > 0 else 0.0

    @property
    def max_frame_time(self) -> float:
        """Maximum frame time in window."""
        return max(self._frame_times) if self._frame_times else 0.0

    def reset(self) -> None:
        """Reset all timing data."""
        self._frame_times.clear()
        self._start_time = None
        self._last_frame_time = None
