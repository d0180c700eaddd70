import time
from collections import deque
from typing import Optional


class MetricsCollector:
    """Frame rate over a sliding window of the last `window` ticks."""

    def __init__(self, window: int = 30):
        self.frame_times = deque(maxlen=window)

    def update(self, now: Optional[float] = None) -> float:
        """Called once per frame. Returns the current FPS."""
        self.frame_times.append(time.perf_counter() if now is None else now)
        return self.fps

    @property
    def fps(self) -> float:
        if len(self.frame_times) < 2:
            return 0.0

        elapsed = self.frame_times[-1] - self.frame_times[0]
        if elapsed <= 0:
            return 0.0
        return (len(self.frame_times) - 1) / elapsed

    def reset(self):
        self.frame_times.clear()
