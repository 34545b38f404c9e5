"""
Fan-out / fan-in join.

Runs a handful of blocking callables concurrently and returns only once
every one of them has settled, successfully or not.  A fast failure in
one branch therefore never cuts short a slower branch that may still
succeed.

Results are accumulated under a lock because branches finish on
different threads; the join itself is a pending-branch counter plus an
event set by whichever branch finishes last.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, Hashable, Mapping, Optional, TypeVar

__all__ = ["Settled", "run_settled"]

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


class Settled(Generic[K, T]):
    """Outcome of one branch.

    Exactly one of ``value`` / ``error`` is meaningful: ``error`` is
    ``None`` on success.  ``order`` is the 0-based completion position.
    """

    __slots__ = ("key", "value", "error", "order")

    def __init__(
        self,
        key: K,
        value: Optional[T],
        error: Optional[BaseException],
        order: int,
    ) -> None:
        self.key = key
        self.value = value
        self.error = error
        self.order = order

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self) -> str:
        state = "ok" if self.ok else f"error={self.error!r}"
        return f"Settled({self.key!r}, {state}, order={self.order})"


class _Join(Generic[K, T]):
    def __init__(self, pending: int) -> None:
        self._lock = threading.Lock()
        self._pending = pending
        self._done = threading.Event()
        self._results: dict[K, Settled[K, T]] = {}
        if pending == 0:
            self._done.set()

    def settle(self, key: K, value: Optional[T], error: Optional[BaseException]) -> None:
        with self._lock:
            self._results[key] = Settled(key, value, error, len(self._results))
            self._pending -= 1
            if self._pending == 0:
                self._done.set()

    def wait(self) -> dict[K, Settled[K, T]]:
        self._done.wait()
        with self._lock:
            return dict(self._results)


def run_settled(
    branches: Mapping[K, Callable[[], T]],
    *,
    thread_prefix: str = "fan-out",
) -> dict[K, Settled[K, T]]:
    """Run every branch on its own thread and wait for all of them.

    Exceptions raised by a branch are captured in its :class:`Settled`
    entry, never propagated.  No timeout is applied here; each branch is
    bounded by its own client's timeout.
    """
    join: _Join[K, T] = _Join(len(branches))

    def _worker(key: K, fn: Callable[[], T]) -> None:
        try:
            value = fn()
        except Exception as exc:
            join.settle(key, None, exc)
        else:
            join.settle(key, value, None)

    for key, fn in branches.items():
        threading.Thread(
            target=_worker,
            args=(key, fn),
            name=f"{thread_prefix}-{key}",
            daemon=True,
        ).start()

    return join.wait()
