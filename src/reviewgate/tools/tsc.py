from __future__ import annotations

import os
import posixpath
import re
from pathlib import Path
from typing import Any

from reviewgate.config import ReviewConfig
from reviewgate.logging import get_logger
from reviewgate.schemas import CompilerDiagnostic, CompilerOutput
from reviewgate.tools.runner import CommandRunner, ToolchainMismatch, ToolFailure, tool_command
from reviewgate.utils import dedupe, read_json_safe, repo_relative, to_posix, write_json

logger = get_logger("tools.tsc")

TOOL = "tsc"
GLOBAL_KEY = "__global__"
PROJECT_TSCONFIG = "tsconfig.json"

ERROR_MARKER_RE = re.compile(r"error\s+TS\d+", re.IGNORECASE)
PAREN_FORMAT_RE = re.compile(r"^(.*\.(?:ts|tsx))\((\d+),(\d+)\):\s*error\s+TS(\d+):\s*(.+)$", re.IGNORECASE)
COLON_FORMAT_RE = re.compile(r"^(.*\.(?:ts|tsx)):(\d+):(\d+)\s*-\s*error\s+TS(\d+):\s*(.+)$", re.IGNORECASE)
GLOBAL_FORMAT_RE = re.compile(r"^error\s+TS(\d+):\s*(.+)$", re.IGNORECASE)
VERSION_RE = re.compile(r"Version\s+(\d+\.\d+\.\d+)", re.IGNORECASE)
WINDOWS_ABS_RE = re.compile(r"^[A-Za-z]:")

ESSENTIAL_INCLUDES = ("next-env.d.ts", ".next/types/**/*.ts")
ENFORCED_EXCLUDES = ("node_modules", ".reviewgate", ".next", "dist", "build")
ALL_TS = "**/*.ts"
ALL_TSX = "**/*.tsx"


def _file_key(raw: str, repo_root: Path) -> str:
    path = Path(raw)
    absolute = path if path.is_absolute() else repo_root / path
    return repo_relative(absolute, repo_root)


def parse_tsc_output(text: str, repo_root: Path, tsconfig_path: str | None = None) -> CompilerOutput:
    """Group ``tsc --pretty false`` diagnostics by repo-relative file.

    File-less diagnostics and lines that look like errors but match no known
    format are kept under ``__global__`` so they still count.
    """
    by_file: dict[str, list[CompilerDiagnostic]] = {}

    def add(key: str, line: int, column: int, code: str, message: str) -> None:
        by_file.setdefault(key, []).append(
            CompilerDiagnostic(file=key, line=line, column=column, code=code, message=message)
        )

    for raw in re.split(r"\r?\n", text):
        line = raw.strip()
        if not line or not ERROR_MARKER_RE.search(line):
            continue
        match = PAREN_FORMAT_RE.match(line) or COLON_FORMAT_RE.match(line)
        if match:
            add(
                _file_key(match.group(1), repo_root),
                int(match.group(2)),
                int(match.group(3)),
                f"TS{match.group(4)}",
                match.group(5),
            )
            continue
        match = GLOBAL_FORMAT_RE.match(line)
        if match:
            add(GLOBAL_KEY, 0, 0, f"TS{match.group(1)}", match.group(2))
            continue
        add(GLOBAL_KEY, 0, 0, "UNKNOWN", line)

    return CompilerOutput(
        by_file={key: tuple(items) for key, items in by_file.items()},
        tsconfig_path=tsconfig_path,
        raw=text,
    )


async def run_compiler(
    runner: CommandRunner,
    repo_root: Path,
    config: ReviewConfig,
    tsconfig: Path | None,
) -> CompilerOutput:
    if tsconfig is None:
        return CompilerOutput()
    label = repo_relative(tsconfig, repo_root)
    command = tool_command(config, repo_root, TOOL, "--noEmit", "--pretty", "false", "-p", str(tsconfig))
    result = await runner.run(command, repo_root, config.tool_timeout_seconds)
    if result.returncode == 0:
        return CompilerOutput(tsconfig_path=label)
    text = result.stdout or result.stderr
    output = parse_tsc_output(text, repo_root, label)
    if output.total_errors == 0:
        # A failing exit with no diagnostics means the compiler itself did not run.
        detail = (result.stderr.strip() or result.stdout.strip() or f"exit code {result.returncode}")[:2000]
        raise ToolFailure(TOOL, detail, command)
    logger.debug("tsc (%s): %s error(s)", label, output.total_errors)
    return output


def _anchor(prefix: str, pattern: str) -> str:
    value = to_posix(str(pattern or ""))
    if not value or WINDOWS_ABS_RE.match(value):
        return value
    while value.startswith("./"):
        value = value[2:]
    while value.startswith("../"):
        value = value[3:]
    value = value.lstrip("/")
    return posixpath.normpath(posixpath.join(prefix, value)) if prefix else posixpath.normpath(value)


def _str_items(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


def _collapse_includes(patterns: list[str]) -> list[str]:
    has_all_ts = ALL_TS in patterns
    has_all_tsx = ALL_TSX in patterns
    kept: list[str] = []
    for pattern in patterns:
        if pattern in ESSENTIAL_INCLUDES:
            kept.append(pattern)
            continue
        if has_all_ts and pattern != ALL_TS and pattern.endswith(ALL_TS):
            continue
        if has_all_tsx and pattern != ALL_TSX and pattern.endswith(ALL_TSX):
            continue
        kept.append(pattern)
    return kept


def build_synthetic_tsconfig(
    base: dict[str, Any],
    subtree: dict[str, Any],
    prefix_to_root: str,
) -> dict[str, Any]:
    """Merge two tsconfig documents into one standalone document.

    Every include/exclude pattern is re-anchored to the repository root via
    ``prefix_to_root`` (the path from the synthetic file back to the root).
    """
    base_options = base.get("compilerOptions") if isinstance(base.get("compilerOptions"), dict) else {}
    subtree_options = subtree.get("compilerOptions") if isinstance(subtree.get("compilerOptions"), dict) else {}
    options: dict[str, Any] = {**base_options, **subtree_options}

    union = dedupe([*_str_items(base, "include"), *_str_items(subtree, "include"), *ESSENTIAL_INCLUDES])
    include = dedupe(_anchor(prefix_to_root, pattern) for pattern in _collapse_includes(union))
    if not include:
        include = [_anchor(prefix_to_root, ALL_TS), _anchor(prefix_to_root, ALL_TSX)]
    has_ts = any(item.endswith(ALL_TS) for item in include)
    has_tsx = any(item.endswith(ALL_TSX) for item in include)
    if has_ts and not has_tsx:
        include.append(_anchor(prefix_to_root, ALL_TSX))
    if has_tsx and not has_ts:
        include.append(_anchor(prefix_to_root, ALL_TS))

    exclude = dedupe(
        _anchor(prefix_to_root, pattern)
        for pattern in dedupe([*_str_items(base, "exclude"), *_str_items(subtree, "exclude"), *ENFORCED_EXCLUDES])
    )

    paths = options.get("paths")
    if isinstance(paths, dict) and paths:
        options["baseUrl"] = prefix_to_root or "."

    synthetic: dict[str, Any] = {}
    if options:
        synthetic["compilerOptions"] = options
    if include:
        synthetic["include"] = include
    if exclude:
        synthetic["exclude"] = exclude
    return synthetic


def write_synthetic_tsconfig(
    repo_root: Path,
    config: ReviewConfig,
    base_path: Path | None,
    subtree_path: Path | None,
) -> Path:
    out_dir = config.output_path(repo_root) / ".tmp" / "tsc"
    out_dir.mkdir(parents=True, exist_ok=True)
    target = out_dir / "tsconfig.runtime.json"
    prefix = to_posix(os.path.relpath(repo_root.resolve(), out_dir.resolve()))
    synthetic = build_synthetic_tsconfig(read_json_safe(base_path), read_json_safe(subtree_path), prefix)
    write_json(target, synthetic)
    return target


def resolve_tsconfig(
    repo_root: Path,
    config: ReviewConfig,
    override: Path | None = None,
    scope: str | None = None,
) -> Path | None:
    if override is not None:
        return override if override.is_absolute() else repo_root / override
    project = repo_root / PROJECT_TSCONFIG
    subtree = repo_root / config.compiler.subtree_tsconfig
    has_project = project.is_file()
    has_subtree = subtree.is_file()
    scope = scope or config.compiler.scope
    if scope == "project":
        return project if has_project else (subtree if has_subtree else None)
    if scope == "subtree":
        return subtree if has_subtree else (project if has_project else None)
    if not (has_project or has_subtree):
        return None
    return write_synthetic_tsconfig(
        repo_root,
        config,
        project if has_project else None,
        subtree if has_subtree else None,
    )


def project_tsconfig(repo_root: Path) -> Path | None:
    path = repo_root / PROJECT_TSCONFIG
    return path if path.is_file() else None


async def probe_version(runner: CommandRunner, command: list[str], cwd: Path, timeout: float) -> str | None:
    try:
        result = await runner.run(command, cwd, timeout)
    except ToolFailure as exc:
        logger.debug("version probe failed: %s", exc)
        return None
    match = VERSION_RE.search(result.stdout or result.stderr)
    return match.group(1) if match else None


async def preflight(
    runner: CommandRunner,
    repo_root: Path,
    config: ReviewConfig,
    tsconfig: Path | None,
) -> tuple[str | None, str | None]:
    """Compare the project's compiler version with the review toolchain's.

    Without a toolchain directory both sides resolve to the same binary and
    the probe is skipped.
    """
    toolchain = config.toolchain_path(repo_root)
    if not toolchain.is_dir():
        logger.debug("no toolchain at %s; compiler parity check skipped", toolchain)
        return None, None
    timeout = config.tool_timeout_seconds
    project_version = await probe_version(runner, ["npx", TOOL, "-v"], repo_root, timeout)
    review_command = ["npx", "--prefix", str(toolchain), TOOL, "-v"]
    review_version = await probe_version(runner, review_command, repo_root, timeout)
    label = repo_relative(tsconfig, repo_root) if tsconfig else "(none)"
    logger.info(
        "tsc project=%s review=%s tsconfig=%s", project_version or "unknown", review_version or "unknown", label
    )
    if project_version and review_version and project_version.strip() == review_version.strip():
        return project_version, review_version
    raise ToolchainMismatch(
        "\n".join(
            [
                "TypeScript version mismatch detected between project and review toolchain.",
                f"  Project tsc: {project_version or 'unknown'}",
                f"  Review  tsc: {review_version or 'unknown'}",
                f"  Tsconfig : {label}",
                "",
                "To align, run:",
                f"  npm i --prefix {config.toolchain_dir} typescript@{project_version or '<project_version>'}",
                "",
                "Re-run the review after alignment:",
                "  reviewgate run",
            ]
        )
    )

