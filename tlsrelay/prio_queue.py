"""A blocking, thread-safe priority queue.

Items must support ``>``; the item that no other item is less than
(by ``>``) is served first, so smaller values come out first.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from typing import Any, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")


class QueueClosed(Exception):
    """Raised by a blocking call on a queue that has been closed."""


class _Entry:
    __slots__ = ("item", "seq")

    def __init__(self, item: Any, seq: int) -> None:
        self.item = item
        self.seq = seq

    def __lt__(self, other: "_Entry") -> bool:
        if other.item > self.item:
            return True
        if self.item > other.item:
            return False
        return self.seq < other.seq


class ConcurrentPriorityQueue(Generic[T]):
    """Priority queue whose ``pop`` and ``top`` block until an item arrives."""

    def __init__(self) -> None:
        self._heap: List[_Entry] = []
        self._cond = threading.Condition()
        self._seq = itertools.count()
        self._max_size = 0
        self._completed = 0
        self._closed = False

    def _wait_ready(self) -> None:
        self._cond.wait_for(lambda: bool(self._heap) or self._closed)
        if self._closed:
            raise QueueClosed("queue is closed")

    def pop(self) -> T:
        """Remove and return the first item, blocking while the queue is empty."""
        with self._cond:
            self._wait_ready()
            entry = heapq.heappop(self._heap)
            self._completed += 1
            return entry.item

    def top(self) -> T:
        """Return the first item without removing it, blocking while empty."""
        with self._cond:
            self._wait_ready()
            return self._heap[0].item

    def push(self, item: Optional[T]) -> None:
        """Add one item; ``None`` is ignored."""
        if item is None:
            return
        with self._cond:
            heapq.heappush(self._heap, _Entry(item, next(self._seq)))
            self._max_size = max(self._max_size, len(self._heap))
            self._cond.notify()

    def push_many(self, items: Optional[Iterable[T]]) -> None:
        """Add every item of ``items`` at once; ``None`` items are ignored."""
        if items is None:
            return
        with self._cond:
            entries = [_Entry(item, next(self._seq)) for item in items if item is not None]
            for entry in entries:
                heapq.heappush(self._heap, entry)
            self._max_size = max(self._max_size, len(self._heap))
            if entries:
                self._cond.notify(len(entries))

    def empty(self) -> bool:
        with self._cond:
            return not self._heap

    def __len__(self) -> int:
        with self._cond:
            return len(self._heap)

    def close(self) -> None:
        """Close the queue; every current and later ``pop``/``top`` raises."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def max_size(self) -> int:
        """Largest number of items the queue has held at once."""
        with self._cond:
            return self._max_size

    def completed(self) -> int:
        """Number of items removed by ``pop``."""
        with self._cond:
            return self._completed