"""Fixed-size thread pools: a plain one and one that drains a priority queue."""

from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Callable, Generic, List, TypeVar

from tlsrelay.prio_queue import ConcurrentPriorityQueue, QueueClosed

T = TypeVar("T")

log = logging.getLogger(__name__)


class PoolNotRunning(RuntimeError):
    """Raised when joining a pool that is not running."""


class _PoolState(enum.Enum):
    NOT_RUNNING = 0
    RUNNING = 1
    JOINED = 2


class ThreadPool:
    """Start ``size`` threads that each call ``target(state)``."""

    def __init__(self, target: Callable[[Any], Any], state: Any, size: int) -> None:
        if size < 0:
            raise ValueError(f"pool size must not be negative: {size}")
        self._state = _PoolState.NOT_RUNNING
        self._threads: List[threading.Thread] = [
            threading.Thread(
                target=target,
                args=(state,),
                name=f"{type(self).__name__}-{index}",
                daemon=True,
            )
            for index in range(size)
        ]
        for thread in self._threads:
            thread.start()
        self._state = _PoolState.RUNNING

    @property
    def size(self) -> int:
        return len(self._threads)

    def join(self) -> None:
        """Wait for every thread to finish; a pool can be joined once."""
        if self._state is not _PoolState.RUNNING:
            raise PoolNotRunning("pool is not running")
        for thread in self._threads:
            thread.join()
        self._state = _PoolState.JOINED

    def __enter__(self) -> "ThreadPool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._state is _PoolState.RUNNING:
            self.join()


class ManagedThreadPool(ThreadPool, Generic[T]):
    """Workers that pop items from a queue and hand each to ``processor``."""

    def __init__(
        self,
        processor: Callable[[T], Any],
        queue: ConcurrentPriorityQueue[T],
        size: int,
    ) -> None:
        self._processor = processor
        self._queue = queue
        self._stopping = threading.Event()
        super().__init__(self._work, self._stopping, size)

    def _work(self, stopping: threading.Event) -> None:
        while not stopping.is_set():
            try:
                item = self._queue.pop()
            except QueueClosed:
                return
            try:
                self._processor(item)
            except Exception:
                log.exception("processor failed on %r", item)

    def queue(self) -> ConcurrentPriorityQueue[T]:
        """The queue the workers drain."""
        return self._queue

    def stop(self) -> None:
        """Ask workers to finish; closes the queue so blocked workers wake."""
        self._stopping.set()
        self._queue.close()

    def join(self) -> None:
        super().join()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
        super().__exit__(*exc_info)