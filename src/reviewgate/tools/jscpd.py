from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

from reviewgate.config import ReviewConfig
from reviewgate.logging import get_logger
from reviewgate.schemas import ClonePair, CloneSpan, DuplicateOutput
from reviewgate.tools.runner import CommandRunner, ToolFailure, tool_command
from reviewgate.utils import repo_relative

logger = get_logger("tools.jscpd")

TOOL = "jscpd"
REPORT_NAME = "jscpd-report.json"
PATTERN = "**/*.{ts,tsx,js}"


def _line(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, dict):
        return _line(value.get("line"))
    return 0


def _span(raw: Any, repo_root: Path, *, name_keys: tuple[str, ...]) -> CloneSpan | None:
    if not isinstance(raw, dict):
        return None
    name = next((str(raw[key]) for key in name_keys if raw.get(key)), "")
    if not name:
        return None
    path = Path(name)
    start = _line(raw.get("start")) or _line(raw.get("startLoc"))
    end = _line(raw.get("end")) or _line(raw.get("endLoc")) or start
    rel = repo_relative(path if path.is_absolute() else repo_root / path, repo_root)
    return CloneSpan(file=rel, start=start, end=end)


def _pair(raw: dict[str, Any], repo_root: Path) -> ClonePair | None:
    if "firstFile" in raw or "secondFile" in raw:
        first = _span(raw.get("firstFile"), repo_root, name_keys=("name",))
        second = _span(raw.get("secondFile"), repo_root, name_keys=("name",))
    else:
        first = _span(raw.get("duplicationA"), repo_root, name_keys=("sourceId", "name"))
        second = _span(raw.get("duplicationB"), repo_root, name_keys=("sourceId", "name"))
    if first is None or second is None:
        return None
    lines = raw.get("lines")
    if not isinstance(lines, int) or isinstance(lines, bool):
        lines = first.end - first.start + 1
    tokens = raw.get("tokens")
    if not isinstance(tokens, int) or isinstance(tokens, bool):
        tokens = 0
    if lines <= 0:
        return None
    return ClonePair(first=first, second=second, lines=lines, tokens=tokens)


def parse_jscpd_report(raw: str, repo_root: Path) -> DuplicateOutput:
    """Project a jscpd JSON report onto repo-relative clone pairs.

    Raises ``ValueError`` when the text is not a JSON object.
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("jscpd report must be an object")
    pairs: list[ClonePair] = []
    for item in data.get("duplicates") or []:
        if isinstance(item, dict) and (pair := _pair(item, repo_root)) is not None:
            pairs.append(pair)

    percentage: float | None = None
    for key in ("statistics", "statistic"):
        stats = data.get(key)
        total = stats.get("total") if isinstance(stats, dict) else None
        value = total.get("percentage") if isinstance(total, dict) else None
        if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
            percentage = float(value)
            break
    return DuplicateOutput(pairs=tuple(pairs), percentage=percentage)


async def run_duplicates(
    runner: CommandRunner,
    repo_root: Path,
    config: ReviewConfig,
    include_roots: list[str] | None = None,
    min_tokens: int | None = None,
) -> DuplicateOutput:
    roots = [root for root in (include_roots or config.duplicates.include_roots) if (repo_root / root).is_dir()]
    if not roots:
        logger.debug("jscpd: no include roots exist; skipped")
        return DuplicateOutput()

    out_dir = config.output_path(repo_root) / ".tmp" / "jscpd"
    out_dir.mkdir(parents=True, exist_ok=True)
    report = out_dir / REPORT_NAME
    report.unlink(missing_ok=True)

    args = [
        "--min-tokens",
        str(min_tokens or config.duplicates.min_tokens),
        "--reporters",
        "json",
        "--output",
        str(out_dir),
        "--silent",
        "--absolute",
        "--pattern",
        PATTERN,
    ]
    if config.duplicates.ignore:
        args.extend(["--ignore", ",".join(config.duplicates.ignore)])
    command = tool_command(config, repo_root, TOOL, *args, *roots)
    result = await runner.run(command, repo_root, config.tool_timeout_seconds)

    if not report.is_file():
        if result.returncode == 0:
            return DuplicateOutput()
        raise ToolFailure(TOOL, (result.stderr.strip() or f"exit code {result.returncode}")[:2000], command)
    try:
        output = parse_jscpd_report(report.read_text(encoding="utf-8"), repo_root)
    except (OSError, ValueError) as exc:
        raise ToolFailure(TOOL, f"unreadable report {report}: {exc}", command) from exc
    logger.debug("jscpd: %s clone pair(s)", len(output.pairs))
    return output
