"""Tick timing for the render-loop driven engine"""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional


class TickTimer:
    """Measures engine tick durations against a per-tick budget."""

    def __init__(self, budget_ms: float = 16.0, window_size: int = 120):
        self.budget = budget_ms / 1000.0
        self._tick_times: Deque[float] = deque(maxlen=window_size)
        self._start_time: Optional[float] = None
        self._last_tick_time: Optional[float] = None
        self.over_budget_count = 0

    def start(self) -> None:
        """Start timing a tick."""
        self._start_time = time.perf_counter()

    def stop(self) -> float:
        """Stop timing and return elapsed seconds."""
        if self._start_time is None:
            return 0.0

        elapsed = time.perf_counter() - self._start_time
        self._tick_times.append(elapsed)
        self._last_tick_time = elapsed
        self._start_time = None
        if self.budget > 0 and elapsed > self.budget:
            self.over_budget_count += 1
        return elapsed

    @property
    def last_tick_time(self) -> float:
        return self._last_tick_time or 0.0

    @property
    def last_over_budget(self) -> bool:
        return self.budget > 0 and self.last_tick_time > self.budget

    @property
    def average_tick_time(self) -> float:
        """Average tick time over the window."""
        if not self._tick_times:
            return 0.0
        return sum(self._tick_times) / len(self._tick_times)

    @property
    def max_tick_time(self) -> float:
        return max(self._tick_times) if self._tick_times else 0.0

    def reset(self) -> None:
        self._tick_times.clear()
        self._start_time = None
        self._last_tick_time = None
        self.over_budget_count = 0


@dataclass
class TickClock:
    """
    Fixed-rate clock for a host loop that drives engine ticks.

    While paused no ticks are due; the avatar simply holds its last pose.
    """
    target_fps: float = 60.0
    _tick_count: int = field(default=0, init=False)
    _last_tick_time: float = field(default=0.0, init=False)
    _paused: bool = field(default=False, init=False)

    def start(self) -> None:
        self._last_tick_time = time.perf_counter()
        self._tick_count = 0
        self._paused = False

    def tick(self) -> int:
        """
        Mark a tick and return its number.

        Raises:
            RuntimeError: If called while paused
        """
        if self._paused:
            raise RuntimeError("Cannot tick while paused")
        self._last_tick_time = time.perf_counter()
        self._tick_count += 1
        return self._tick_count

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        if self._paused:
            self._paused = False
            self._last_tick_time = time.perf_counter()

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def target_tick_duration(self) -> float:
        return 1.0 / self.target_fps

    def wait_for_next_tick(self) -> float:
        """
        Sleep until the next tick is due.

        Returns:
            Actual time waited in seconds
        """
        if self._paused:
            return 0.0

        elapsed = time.perf_counter() - self._last_tick_time
        wait_time = self.target_tick_duration - elapsed

        if wait_time > 0:
            time.sleep(wait_time)
            return wait_time

        return 0.0
