"""Tests for the task runners."""
from __future__ import annotations

import threading

import pytest

from promoframe.tasks import DeferredTaskRunner, ExecutorTaskRunner, ImmediateTaskRunner


def _boom() -> None:
    raise ValueError("boom")


def test_immediate_runner_settles_before_returning() -> None:
    runner = ImmediateTaskRunner()

    ok = runner.submit(lambda a, b=0: a + b, 1, b=2)
    failed = runner.submit(_boom)

    assert ok.done() and ok.result() == 3
    assert isinstance(failed.exception(), ValueError)


def test_executor_runner_uses_worker_threads() -> None:
    runner = ExecutorTaskRunner(max_workers=1)
    try:
        future = runner.submit(threading.current_thread)
        assert future.result(timeout=5) is not threading.current_thread()
    finally:
        runner.shutdown()


def test_deferred_runner_waits_for_host() -> None:
    runner = DeferredTaskRunner()
    calls = []

    first = runner.submit(calls.append, "first")
    second = runner.submit(calls.append, "second")
    assert runner.pending == 2
    assert not first.done()

    assert runner.run_next(newest=True)
    assert calls == ["second"]
    assert second.done() and not first.done()

    assert runner.run_pending() == 1
    assert calls == ["second", "first"]
    assert runner.run_next() is False


def test_deferred_runner_shutdown_cancels_queue() -> None:
    runner = DeferredTaskRunner()
    future = runner.submit(_boom)

    runner.shutdown()

    assert future.cancelled()
    assert runner.pending == 0


def test_deferred_runner_reports_errors_through_future() -> None:
    runner = DeferredTaskRunner()
    future = runner.submit(_boom)
    runner.run_pending()
    with pytest.raises(ValueError, match="boom"):
        future.result()
