from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from reviewgate.config import ReviewConfig
from reviewgate.logging import get_logger
from reviewgate.schemas import DeadCodeFileIssue, DeadCodeOutput, DeadSymbol, MemberGroup
from reviewgate.tools.runner import CommandRunner, ToolFailure, tool_command
from reviewgate.utils import repo_relative

logger = get_logger("tools.knip")

TOOL = "knip"


def symbol_name(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ("name", "symbol"):
            if isinstance(value.get(key), str):
                return value[key]
        return json.dumps(value, sort_keys=True)
    return str(value)


def _symbol(value: Any) -> DeadSymbol:
    if isinstance(value, dict):
        return DeadSymbol(
            name=symbol_name(value),
            line=int(value.get("line") or 0),
            column=int(value.get("col") or value.get("column") or 0),
        )
    return DeadSymbol(name=symbol_name(value))


def _symbols(value: Any) -> tuple[DeadSymbol, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(_symbol(item) for item in value)


def _groups(value: Any) -> tuple[MemberGroup, ...]:
    if not isinstance(value, dict):
        return ()
    groups = [MemberGroup(owner=str(owner), members=_symbols(members)) for owner, members in value.items()]
    return tuple(group for group in groups if group.members)


def _file_key(raw: Any, repo_root: Path) -> str:
    text = raw.get("file") if isinstance(raw, dict) else raw
    if not text:
        return ""
    path = Path(str(text))
    return repo_relative(path if path.is_absolute() else repo_root / path, repo_root)


def parse_knip_json(raw: str, repo_root: Path) -> DeadCodeOutput:
    """Project knip's JSON reporter output onto repo-relative files.

    Raises ``ValueError`` when the text is not a JSON object.
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("knip JSON output must be an object")

    unused_files = tuple(key for key in (_file_key(item, repo_root) for item in data.get("files") or []) if key)

    issues: list[DeadCodeFileIssue] = []
    for item in data.get("issues") or []:
        if not isinstance(item, dict):
            continue
        issues.append(
            DeadCodeFileIssue(
                file=_file_key(item.get("file"), repo_root),
                exports=_symbols(item.get("exports")),
                types=_symbols(item.get("types")),
                enum_members=_groups(item.get("enumMembers")),
                class_members=_groups(item.get("classMembers")),
                unlisted=tuple(symbol_name(entry) for entry in item.get("unlisted") or []),
                unresolved=tuple(symbol_name(entry) for entry in item.get("unresolved") or []),
            )
        )
    return DeadCodeOutput(unused_files=unused_files, issues=tuple(issues))


async def run_dead_code(runner: CommandRunner, repo_root: Path, config: ReviewConfig) -> DeadCodeOutput:
    args = ["--reporter", "json", "--no-progress"]
    if config.dead_code.config:
        args.extend(["--config", config.dead_code.config])
    if config.dead_code.tsconfig:
        args.extend(["--tsConfig", config.dead_code.tsconfig])
    command = tool_command(config, repo_root, TOOL, *args)
    result = await runner.run(command, repo_root, config.tool_timeout_seconds)

    text = result.stdout.strip()
    if result.returncode == 0 and not text:
        return DeadCodeOutput()
    # knip exits non-zero whenever it reports findings.
    try:
        output = parse_knip_json(text or result.stderr.strip(), repo_root)
    except ValueError as exc:
        detail = (result.stderr.strip() or text or str(exc))[:2000]
        raise ToolFailure(TOOL, detail, command) from exc
    logger.debug("knip: %s unused file(s), %s file issue(s)", len(output.unused_files), len(output.issues))
    return output
