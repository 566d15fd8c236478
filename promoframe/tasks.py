"""Task runners that execute decode, encode and persistence work.

Every runner returns a :class:`concurrent.futures.Future`.  The editor session
only ever talks to the :class:`TaskRunner` interface, so hosts can pick the
strategy that matches their event loop:

* :class:`ImmediateTaskRunner` runs work synchronously (scripts and tests).
* :class:`ExecutorTaskRunner` runs work on a ``ThreadPoolExecutor``.
* :class:`DeferredTaskRunner` queues work until the host drains it with
  :meth:`DeferredTaskRunner.run_pending`, e.g. from an idle callback.

The Qt thread-pool runner lives in :mod:`promoframe.workers`.
"""

from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable, Deque, Tuple

LOGGER = logging.getLogger(__name__)


def run_into_future(future: Future, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    """Run ``fn`` and settle ``future`` with its result or exception."""
    if not future.set_running_or_notify_cancel():
        return
    try:
        result = fn(*args, **kwargs)
    except Exception as exc:  # noqa: BLE001 - delivered through the future
        future.set_exception(exc)
    else:
        future.set_result(result)


class TaskRunner:
    """Interface for submitting work that completes later."""

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        raise NotImplementedError

    def shutdown(self) -> None:
        """Release any resources held by the runner."""


class ImmediateTaskRunner(TaskRunner):
    """Run each task synchronously inside :meth:`submit`."""

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        run_into_future(future, fn, *args, **kwargs)
        return future


class ExecutorTaskRunner(TaskRunner):
    """Run tasks on a private thread pool."""

    def __init__(self, max_workers: int = 2) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="promoframe")

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        return self._executor.submit(fn, *args, **kwargs)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


class DeferredTaskRunner(TaskRunner):
    """Queue tasks until the host loop calls :meth:`run_pending`.

    Tasks may be run out of submission order with :meth:`run_next`, which
    makes completion order explicit for hosts (and tests) that need it.
    """

    def __init__(self) -> None:
        self._queue: Deque[Tuple[Future, Callable[..., Any], tuple, dict]] = deque()
        self._lock = Lock()

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        with self._lock:
            self._queue.append((future, fn, args, kwargs))
        return future

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def run_next(self, *, newest: bool = False) -> bool:
        """Run one queued task (the oldest unless ``newest``)."""
        with self._lock:
            if not self._queue:
                return False
            item = self._queue.pop() if newest else self._queue.popleft()
        future, fn, args, kwargs = item
        run_into_future(future, fn, *args, **kwargs)
        return True

    def run_pending(self) -> int:
        """Run queued tasks, including ones submitted meanwhile."""
        count = 0
        while self.run_next():
            count += 1
        return count

    def shutdown(self) -> None:
        with self._lock:
            queued = list(self._queue)
            self._queue.clear()
        for future, *_ in queued:
            future.cancel()
        if queued:
            LOGGER.debug("Cancelled %d queued tasks", len(queued))


__all__ = [
    "TaskRunner",
    "ImmediateTaskRunner",
    "ExecutorTaskRunner",
    "DeferredTaskRunner",
    "run_into_future",
]
