from __future__ import annotations

import threading
import time
from pathlib import Path

from watchdog.events import DirModifiedEvent, FileModifiedEvent

from reviewgate.quality.watch import DebouncedReviewRunner, ReviewWatchHandler, should_trigger


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_should_trigger_for_source_files(tmp_path: Path) -> None:
    assert should_trigger(tmp_path / "components" / "Button.tsx", tmp_path)
    assert should_trigger(tmp_path / "tsconfig.json", tmp_path)


def test_should_not_trigger_for_ignored_or_foreign_paths(tmp_path: Path) -> None:
    assert not should_trigger(tmp_path / "node_modules" / "pkg" / "index.js", tmp_path)
    assert not should_trigger(tmp_path / ".reviewgate" / "output" / "review-results.json", tmp_path)
    assert not should_trigger(tmp_path / "README.md", tmp_path)
    assert not should_trigger(tmp_path / ".eslintrc.json", tmp_path)
    assert not should_trigger(tmp_path.parent / "elsewhere.ts", tmp_path)


def test_burst_of_requests_runs_once() -> None:
    runner = DebouncedReviewRunner(lambda: 0, delay_seconds=0.05)

    for _ in range(5):
        runner.request()

    assert _wait_for(lambda: runner.runs == 1)
    time.sleep(0.15)
    assert runner.runs == 1


def test_request_during_run_schedules_one_rerun() -> None:
    started = threading.Event()
    release = threading.Event()

    def review() -> int:
        started.set()
        release.wait(2.0)
        return 1

    runner = DebouncedReviewRunner(review, delay_seconds=0.01)
    runner.request()
    assert started.wait(2.0)

    runner.request()
    time.sleep(0.05)
    runner.request()
    time.sleep(0.05)
    release.set()

    assert _wait_for(lambda: runner.runs == 2)
    time.sleep(0.1)
    assert runner.runs == 2


def test_cancel_drops_pending_timer() -> None:
    runner = DebouncedReviewRunner(lambda: 0, delay_seconds=0.05)

    runner.request()
    runner.cancel()
    time.sleep(0.15)

    assert runner.runs == 0


class _Recorder:
    def __init__(self) -> None:
        self.requests = 0

    def request(self) -> None:
        self.requests += 1


def test_handler_filters_events(tmp_path: Path) -> None:
    recorder = _Recorder()
    handler = ReviewWatchHandler(tmp_path, recorder)

    handler.on_any_event(FileModifiedEvent(str(tmp_path / "lib" / "a.ts")))
    handler.on_any_event(FileModifiedEvent(str(tmp_path / "dist" / "a.js")))
    handler.on_any_event(DirModifiedEvent(str(tmp_path / "lib")))

    assert recorder.requests == 1
