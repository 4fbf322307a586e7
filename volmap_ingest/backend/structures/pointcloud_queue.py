"""
Ingestion queue: unbounded multi-producer / single-consumer FIFO.

Producers (one per subscription callback thread) push; the dispatcher peeks at
the head and pops it only once the head has been integrated or dropped. No
reordering: ties between producers are broken by enqueue order.
"""

from __future__ import annotations

from collections import deque
import threading
from typing import Deque, Optional

from volmap_ingest.backend.structures.stamped_pointcloud import GenericStampedPointcloud


class PointcloudQueue:
    """Thread-safe FIFO of GenericStampedPointcloud."""

    def __init__(self, capacity_hint: int = 0) -> None:
        # capacity_hint is reported only; producers never block.
        self.capacity_hint = int(capacity_hint)
        self._items: Deque[GenericStampedPointcloud] = deque()
        self._lock = threading.Lock()
        self._num_pushed = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def empty(self) -> bool:
        return len(self) == 0

    @property
    def num_pushed(self) -> int:
        with self._lock:
            return self._num_pushed

    def push(self, cloud: GenericStampedPointcloud) -> None:
        with self._lock:
            self._items.append(cloud)
            self._num_pushed += 1

    def peek(self) -> Optional[GenericStampedPointcloud]:
        """Oldest cloud without removing it, or None."""
        with self._lock:
            return self._items[0] if self._items else None

    def peek_newest(self) -> Optional[GenericStampedPointcloud]:
        """Most recently pushed cloud, or None."""
        with self._lock:
            return self._items[-1] if self._items else None

    def try_pop(self) -> Optional[GenericStampedPointcloud]:
        with self._lock:
            return self._items.popleft() if self._items else None

    def pop(self) -> GenericStampedPointcloud:
        with self._lock:
            if not self._items:
                raise IndexError("pop from empty PointcloudQueue")
            return self._items.popleft()

    def clear(self) -> int:
        """Drop everything; returns the number of clouds discarded."""
        with self._lock:
            n = len(self._items)
            self._items.clear()
            return n
