"""A counting semaphore built on a condition variable."""

from __future__ import annotations

import threading


class Semaphore:
    """Counting semaphore: ``wait`` takes one unit, ``signal`` releases some."""

    def __init__(self, count: int = 0) -> None:
        self._count = count
        self._cond = threading.Condition()

    @property
    def count(self) -> int:
        """Units currently available."""
        with self._cond:
            return self._count

    def wait(self) -> None:
        """Block until a unit is available, then take it."""
        with self._cond:
            self._cond.wait_for(lambda: self._count > 0)
            self._count -= 1

    def signal(self, n: int = 1) -> None:
        """Release ``n`` units and wake up to ``n`` waiters."""
        with self._cond:
            self._count += n
            if n > 0:
                self._cond.notify(n)