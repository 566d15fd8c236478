# workers.py
"""
Qt background task execution for promoframe.
Defines a Worker for QRunnable tasks and a TaskRunner backed by QThreadPool,
so a Qt front end can drive the editor session without blocking its UI thread.
"""
import logging
from concurrent.futures import Future
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal

from .tasks import TaskRunner


class WorkerSignals(QObject):
    started = Signal()
    finished = Signal()
    error = Signal(str)
    result = Signal(object)


class Worker(QRunnable):
    """Wraps any function to run in a QThreadPool.

    The outcome is delivered both through ``signals`` (for widgets) and
    through ``future`` (for the editor session).
    """
    def __init__(self, fn: Callable, *args, **kwargs):
        super().__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.signals = WorkerSignals()
        self.future: Future = Future()

    def run(self) -> None:
        if not self.future.set_running_or_notify_cancel():
            self.signals.finished.emit()
            return
        try:
            self.signals.started.emit()
            result = self.fn(*self.args, **self.kwargs)
        except Exception as e:  # noqa: BLE001 - delivered through future and signal
            logging.error("Worker error: %s", e)
            self.future.set_exception(e)
            self.signals.error.emit(str(e))
        else:
            self.future.set_result(result)
            self.signals.result.emit(result)
        finally:
            self.signals.finished.emit()


class QtTaskRunner(TaskRunner):
    """Run session tasks on a QThreadPool."""
    def __init__(self, thread_pool: Optional[QThreadPool] = None, max_concurrent: Optional[int] = None):
        self.thread_pool = thread_pool or QThreadPool.globalInstance()
        if max_concurrent:
            self.thread_pool.setMaxThreadCount(max_concurrent)

    def create_worker(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Worker:
        """Return a Worker without starting it, so callers can connect signals first."""
        return Worker(fn, *args, **kwargs)

    def start(self, worker: Worker) -> Future:
        self.thread_pool.start(worker)
        return worker.future

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        return self.start(self.create_worker(fn, *args, **kwargs))

    def shutdown(self) -> None:
        self.thread_pool.waitForDone()
