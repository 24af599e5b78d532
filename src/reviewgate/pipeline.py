from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Sequence
from pathlib import Path
from typing import Any, TypeVar

from reviewgate.analyzers.engine import analyze_task
from reviewgate.autofix import AutofixStats, apply_autofix
from reviewgate.concurrency import MapLimitError, map_limit
from reviewgate.config import ConfigError, ReviewConfig
from reviewgate.file_cache import FileCache
from reviewgate.git_utils import GitError, changed_files
from reviewgate.logging import get_logger
from reviewgate.merge.engine import ToolOutputs, merge_results
from reviewgate.paths import build_tasks, discover_files, review_mode
from reviewgate.report.builder import build_report
from reviewgate.report.summary import render_detailed_summary, render_minimal_summary
from reviewgate.report.writer import write_report
from reviewgate.schemas import FileTask, LintGateSummary, LintOutput, PerFileResult, ReviewOutcome
from reviewgate.tools.eslint import (
    MISSING_CONFIG_BATCH,
    MISSING_CONFIG_REPO,
    detect_lint_config,
    run_lint_batch,
    run_lint_repo,
)
from reviewgate.tools.jscpd import run_duplicates
from reviewgate.tools.knip import run_dead_code
from reviewgate.tools.runner import CommandRunner, SubprocessRunner, ToolchainMismatch, ToolFailure
from reviewgate.tools.tsc import preflight, project_tsconfig, resolve_tsconfig, run_compiler
from reviewgate.utils import repo_relative

logger = get_logger("pipeline")

T = TypeVar("T")

LINT_DISABLED = "ESLint disabled by configuration."
LINT_BATCH_DISABLED = "ESLint per-file batch disabled."


class NoReviewableFiles(RuntimeError):
    pass


FATAL_ERRORS = (ToolFailure, ToolchainMismatch, GitError, ConfigError, NoReviewableFiles, MapLimitError)


async def _timed(name: str, timings: dict[str, float], awaitable: Awaitable[T]) -> T:
    started = time.perf_counter()
    try:
        return await awaitable
    finally:
        timings[name] = (time.perf_counter() - started) * 1000
        logger.debug("%s finished in %.0fms", name, timings[name])


async def _none() -> None:
    return None


def select_tasks(
    repo_root: Path,
    config: ReviewConfig,
    files: Sequence[str | Path] = (),
    porcelain: bool = False,
) -> list[FileTask]:
    """Resolve the run's file list from explicit paths, git status or the tree."""
    if files:
        return build_tasks(files, repo_root, config)
    if porcelain:
        tasks = build_tasks(changed_files(repo_root), repo_root, config)
        logger.debug("porcelain selected %s file(s)", len(tasks))
        return tasks
    tasks = build_tasks(discover_files(repo_root, config), repo_root, config)
    if not tasks:
        raise NoReviewableFiles(
            "No reviewable TypeScript files found under " + ", ".join(f"{root}/" for root in config.include_roots)
        )
    logger.debug("discovered %s reviewable file(s)", len(tasks))
    return tasks


async def run_review(
    repo_root: Path,
    config: ReviewConfig,
    *,
    files: Sequence[str | Path] = (),
    porcelain: bool = False,
    report_all: bool = False,
    debug: bool = False,
    tsconfig_override: Path | None = None,
    ts_scope: str | None = None,
    jscpd_min_tokens: int | None = None,
    jscpd_include: list[str] | None = None,
    autofix: bool | None = None,
    runner: CommandRunner | None = None,
    args: list[str] | None = None,
) -> ReviewOutcome:
    started = time.perf_counter()
    repo_root = repo_root.resolve()
    runner = runner or SubprocessRunner()
    cache = FileCache(enabled=config.cache_files)
    timings: dict[str, float] = {}

    tasks = select_tasks(repo_root, config, files, porcelain)
    mode = review_mode(porcelain, bool(files))

    tsconfig = resolve_tsconfig(repo_root, config, tsconfig_override, ts_scope)
    await _timed("preflight", timings, preflight(runner, repo_root, config, tsconfig))

    autofix_enabled = config.autofix if autofix is None else autofix
    stats = AutofixStats()
    if autofix_enabled and tasks:
        stats = await _timed("autofix", timings, apply_autofix(tasks, cache, config.concurrency))

    warnings: list[str] = []
    has_lint_config = detect_lint_config(repo_root)
    lint_skip_reason = ""
    lint_batch: Awaitable[LintOutput | None] = _none()
    lint_repo: Awaitable[LintGateSummary | None] = _none()
    if not config.lint.enabled:
        lint_skip_reason = LINT_DISABLED
    elif not has_lint_config:
        lint_skip_reason = MISSING_CONFIG_BATCH
        warnings.extend([MISSING_CONFIG_BATCH, MISSING_CONFIG_REPO])
        logger.warning(MISSING_CONFIG_BATCH)
    else:
        if config.lint.batch:
            paths = [task.path for task in tasks]
            lint_batch = _timed("eslintBatch", timings, run_lint_batch(runner, repo_root, config, paths))
        else:
            lint_skip_reason = LINT_BATCH_DISABLED
        lint_repo = _timed("eslintRepo", timings, run_lint_repo(runner, repo_root, config))

    async def analyze(task: FileTask, _index: int) -> PerFileResult:
        return await analyze_task(task, cache, config)

    gathered = await asyncio.gather(
        lint_batch,
        lint_repo,
        _timed("tsc", timings, run_compiler(runner, repo_root, config, tsconfig)),
        _timed("tscProject", timings, run_compiler(runner, repo_root, config, project_tsconfig(repo_root))),
        _timed("knip", timings, run_dead_code(runner, repo_root, config)),
        _timed(
            "jscpd",
            timings,
            run_duplicates(runner, repo_root, config, include_roots=jscpd_include, min_tokens=jscpd_min_tokens),
        ),
        _timed("perFile", timings, map_limit(tasks, config.concurrency, analyze)),
        return_exceptions=True,
    )
    for item in gathered:
        if isinstance(item, BaseException):
            raise item
    lint, lint_gate, compiler, compiler_project, dead_code, duplicates, results = gathered

    outputs = ToolOutputs(
        lint=lint,
        lint_skip_reason=lint_skip_reason,
        lint_repo=lint_gate,
        compiler=compiler,
        compiler_project=compiler_project,
        dead_code=dead_code,
        duplicates=duplicates,
        warnings=warnings,
    )
    repo = await _timed("merge", timings, merge_results(results, outputs, repo_root, cache, config.concurrency))

    total_ms = (time.perf_counter() - started) * 1000
    timings["total"] = total_ms
    options: dict[str, Any] = {
        "concurrency": config.concurrency,
        "jscpdMinTokens": jscpd_min_tokens or config.duplicates.min_tokens,
        "jscpdIncludeRoots": list(jscpd_include or config.duplicates.include_roots),
        "porcelainMode": porcelain,
        "reviewMode": mode,
        "autofix": autofix_enabled,
        "debugMode": debug,
        "reportAll": report_all,
        "tsconfigOverride": str(tsconfig_override) if tsconfig_override else None,
        "tsScope": ts_scope or config.compiler.scope,
        "resolvedTsconfigPath": repo_relative(tsconfig, repo_root) if tsconfig else None,
    }
    if autofix_enabled:
        options["autofixStats"] = stats.to_dict()

    payload = build_report(
        results, repo, args=list(args or []), options=options, total_ms=total_ms, report_all=report_all
    )
    report_path = config.report_path(repo_root)
    write_report(payload, report_path)

    summary_text = render_minimal_summary(
        results,
        repo,
        mode=mode,
        total_ms=total_ms,
        report_path=Path(repo_relative(report_path, repo_root)),
    )
    if debug:
        summary_text = render_detailed_summary(results, repo, timings=timings) + "\n" + summary_text
    logger.info("review %s in %.0fms", payload["summary"]["status"], total_ms)
    logger.debug("file cache served %s disk read(s) for %s file(s)", cache.reads, len(tasks))
    return ReviewOutcome(
        payload=payload,
        summary_text=summary_text,
        report_path=report_path,
        results=results,
        repo=repo,
    )
