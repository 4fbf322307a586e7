"""
Wall-clock episode timer for integration timing diagnostics.

Owned by a single execution context (the dispatcher); not thread-safe.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Callable, Optional


@dataclass
class WallTimer:
    """Accumulates wall time over start()/stop() episodes."""

    clock: Callable[[], float] = field(default=time.perf_counter, repr=False)
    last_episode_wall_time: float = 0.0
    total_wall_time: float = 0.0
    num_episodes: int = 0
    _episode_start: Optional[float] = field(default=None, repr=False)

    @property
    def running(self) -> bool:
        return self._episode_start is not None

    def start(self) -> None:
        if self._episode_start is not None:
            raise RuntimeError("WallTimer.start() called while an episode is running")
        self._episode_start = self.clock()

    def stop(self) -> float:
        """End the running episode and return its duration (s)."""
        if self._episode_start is None:
            raise RuntimeError("WallTimer.stop() called without a running episode")
        elapsed = self.clock() - self._episode_start
        self._episode_start = None
        self.last_episode_wall_time = elapsed
        self.total_wall_time += elapsed
        self.num_episodes += 1
        return elapsed

    def reset(self) -> None:
        self.last_episode_wall_time = 0.0
        self.total_wall_time = 0.0
        self.num_episodes = 0
        self._episode_start = None
