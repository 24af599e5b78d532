from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from reviewgate.config import ReviewConfig
from reviewgate.logging import get_logger
from reviewgate.schemas import LintFileFindings, LintGateSummary, LintMessage, LintOutput
from reviewgate.tools.runner import CommandRunner, ProcessResult, ToolFailure, tool_command

logger = get_logger("tools.eslint")

TOOL = "eslint"
CONFIG_CANDIDATES = (
    "eslint.config.js",
    "eslint.config.cjs",
    "eslint.config.mjs",
    ".eslintrc",
    ".eslintrc.js",
    ".eslintrc.cjs",
    ".eslintrc.json",
    ".eslintrc.yaml",
    ".eslintrc.yml",
)
REPO_GLOB = "**/*.{js,jsx,ts,tsx}"
MISSING_CONFIG_BATCH = "Project ESLint config not found; ESLint step skipped."
MISSING_CONFIG_REPO = "Project ESLint config not found; repo-wide ESLint gate skipped."


def detect_lint_config(repo_root: Path) -> bool:
    for name in CONFIG_CANDIDATES:
        if (repo_root / name).is_file():
            return True
    package_json = repo_root / "package.json"
    if not package_json.is_file():
        return False
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return False
    return isinstance(data, dict) and bool(data.get("eslintConfig"))


def _message(raw: dict[str, Any], severity: str) -> LintMessage:
    return LintMessage(
        severity=severity,
        line=int(raw.get("line") or 0),
        column=int(raw.get("column") or 0),
        message=str(raw.get("message") or "").strip(),
        rule=raw.get("ruleId") or None,
        end_line=raw.get("endLine") or None,
        end_column=raw.get("endColumn") or None,
        fixable=bool(raw.get("fix")),
    )


def parse_eslint_json(raw: str) -> LintOutput:
    """Project ESLint's ``--format json`` output onto absolute paths.

    Raises ``ValueError`` when the text is not a JSON array.
    """
    data = json.loads(raw or "[]")
    if not isinstance(data, list):
        raise ValueError("ESLint JSON output must be an array")
    by_path: dict[str, LintFileFindings] = {}
    for item in data:
        if not isinstance(item, dict):
            continue
        key = str(Path(str(item.get("filePath") or "")).resolve())
        errors: list[LintMessage] = []
        warnings: list[LintMessage] = []
        for message in item.get("messages") or []:
            if not isinstance(message, dict):
                continue
            if message.get("severity") == 2:
                errors.append(_message(message, "error"))
            elif message.get("severity") == 1:
                warnings.append(_message(message, "warning"))
        by_path[key] = LintFileFindings(errors=tuple(errors), warnings=tuple(warnings))
    return LintOutput(by_path=by_path)


def _parse_result(result: ProcessResult, command: list[str], *, strict_stderr: bool) -> LintOutput:
    stderr = result.stderr.strip()
    stdout = result.stdout.strip()
    if result.returncode == 0:
        if strict_stderr and stderr:
            raise ToolFailure(TOOL, stderr[:2000], command)
        try:
            return parse_eslint_json(stdout)
        except ValueError as exc:
            raise ToolFailure(TOOL, f"unparseable output: {exc}", command) from exc
    # Violations exit non-zero but still print the JSON report on stdout.
    if stdout:
        try:
            return parse_eslint_json(stdout)
        except ValueError:
            pass
    raise ToolFailure(TOOL, (stderr or stdout or f"exit code {result.returncode}")[:2000], command)


def plan_batches(
    files: list[str],
    *,
    chunk_size: int,
    sub_batch_size: int,
    max_command_chars: int,
    windows: bool | None = None,
) -> list[list[list[str]]]:
    """Split files into outer chunks, each split into sub-batches."""
    if windows is None:
        windows = sys.platform.startswith("win")
    chunks: list[list[list[str]]] = []
    for start in range(0, len(files), max(1, chunk_size)):
        chunk = files[start : start + max(1, chunk_size)]
        if windows:
            step = max(1, sub_batch_size)
            chunks.append([chunk[i : i + step] for i in range(0, len(chunk), step)])
            continue
        batches: list[list[str]] = []
        current: list[str] = []
        used = 0
        for path in chunk:
            cost = len(path) + 3
            if current and used + cost > max_command_chars:
                batches.append(current)
                current, used = [], 0
            current.append(path)
            used += cost
        if current:
            batches.append(current)
        chunks.append(batches)
    return chunks


async def run_lint_batch(
    runner: CommandRunner,
    repo_root: Path,
    config: ReviewConfig,
    files: list[Path],
) -> LintOutput:
    """Lint the given files with the project configuration.

    Sub-batches of one chunk run concurrently; any failing sub-batch fails the
    whole step.
    """
    if not files:
        return LintOutput()
    cache_dir = config.output_path(repo_root) / ".tmp" / "eslint"
    cache_dir.mkdir(parents=True, exist_ok=True)
    cache_location = cache_dir / "project.cache"
    lint = config.lint

    async def run_once(subset: list[str]) -> LintOutput:
        command = tool_command(
            config,
            repo_root,
            TOOL,
            "--ext",
            ".ts,.tsx",
            "--format",
            "json",
            "--cache",
            "--cache-location",
            str(cache_location),
            *subset,
        )
        result = await runner.run(command, repo_root, config.tool_timeout_seconds)
        return _parse_result(result, command, strict_stderr=True)

    merged: dict[str, LintFileFindings] = {}
    plan = plan_batches(
        [str(path) for path in files],
        chunk_size=lint.chunk_size,
        sub_batch_size=lint.sub_batch_size,
        max_command_chars=lint.max_command_chars,
    )
    for index, batches in enumerate(plan, start=1):
        logger.debug("eslint chunk %s/%s: %s sub-batch(es)", index, len(plan), len(batches))
        outputs = await asyncio.gather(*(run_once(batch) for batch in batches), return_exceptions=True)
        for output in outputs:
            if isinstance(output, BaseException):
                raise output
        for output in outputs:
            merged.update(output.by_path)
    return LintOutput(by_path=merged)


async def run_lint_repo(runner: CommandRunner, repo_root: Path, config: ReviewConfig) -> LintGateSummary:
    ignore_flags: list[str] = []
    for pattern in config.lint.ignore:
        ignore_flags.extend(["--ignore-pattern", pattern])
    patterns = [
        f"{root.rstrip('/')}/{REPO_GLOB}" for root in config.lint.repo_roots if (repo_root / root).is_dir()
    ]
    if not patterns:
        return LintGateSummary()
    command = tool_command(config, repo_root, TOOL, "-f", "json", *ignore_flags, *patterns)
    result = await runner.run(command, repo_root, config.tool_timeout_seconds)
    output = _parse_result(result, command, strict_stderr=False)
    return LintGateSummary(total_errors=output.total_errors, total_warnings=output.total_warnings)
