from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

import typer
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from reviewgate.logging import get_logger

logger = get_logger("watch")

WATCH_SUFFIXES = {".js", ".jsx", ".ts", ".tsx", ".json"}
IGNORED_DIRS = {
    ".git",
    ".next",
    ".reviewgate",
    ".turbo",
    "node_modules",
    "dist",
    "build",
    "coverage",
}


def _in_repo(path: Path, repo_root: Path) -> bool:
    try:
        path.resolve().relative_to(repo_root.resolve())
        return True
    except ValueError:
        return False


def should_trigger(path: Path, repo_root: Path, ignored: set[str] | None = None) -> bool:
    if not _in_repo(path, repo_root):
        return False
    rel = path.resolve().relative_to(repo_root.resolve())
    if any(part in (ignored or IGNORED_DIRS) for part in rel.parts):
        return False
    if rel.name.startswith("."):
        return False
    return rel.suffix.lower() in WATCH_SUFFIXES


class DebouncedReviewRunner:
    """Coalesces bursts of change events into one review run.

    A request arriving while a review is running schedules exactly one rerun.
    """

    def __init__(self, run_review: Callable[[], int], delay_seconds: float = 1.2) -> None:
        self.run_review = run_review
        self.delay_seconds = delay_seconds
        self.runs = 0
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._running = False
        self._pending = False

    def request(self) -> None:
        with self._lock:
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay_seconds, self._flush)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None

    def _flush(self) -> None:
        with self._lock:
            if self._running:
                self._pending = True
                return
            self._running = True
        try:
            self._run_once()
            while True:
                with self._lock:
                    if not self._pending:
                        self._running = False
                        break
                    self._pending = False
                self._run_once()
        finally:
            with self._lock:
                self._running = False

    def _run_once(self) -> None:
        typer.echo("[reviewgate] change detected -> run review")
        self.runs += 1
        code = self.run_review()
        if code == 0:
            typer.echo("[reviewgate] review passed")
        else:
            typer.echo(f"[reviewgate] review failed (exit={code})")


class ReviewWatchHandler(FileSystemEventHandler):
    def __init__(self, repo_root: Path, runner: DebouncedReviewRunner, ignored: set[str] | None = None) -> None:
        self.repo_root = repo_root
        self.runner = runner
        self.ignored = ignored

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        paths = [Path(str(event.src_path))]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.append(Path(str(dest_path)))
        if any(should_trigger(path, self.repo_root, self.ignored) for path in paths):
            logger.debug("watch event %s on %s", event.event_type, paths[-1])
            self.runner.request()


def run_watch(
    repo_root: Path,
    run_review: Callable[[], int],
    delay_seconds: float = 1.2,
    extra_ignored: list[str] | None = None,
) -> int:
    ignored = IGNORED_DIRS | {Path(item).parts[0] for item in extra_ignored or [] if item}
    runner = DebouncedReviewRunner(run_review=run_review, delay_seconds=delay_seconds)
    handler = ReviewWatchHandler(repo_root=repo_root, runner=runner, ignored=ignored)

    observer = Observer()
    observer.schedule(handler, str(repo_root), recursive=True)
    observer.start()
    typer.echo(f"[reviewgate] watching {repo_root}")
    typer.echo("[reviewgate] press Ctrl+C to stop")
    try:
        while True:
            observer.join(timeout=1.0)
    except KeyboardInterrupt:
        observer.stop()
    runner.cancel()
    observer.join()
    return 0
