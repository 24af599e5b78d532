from __future__ import annotations

from pathlib import Path
from typing import Any

from reviewgate.utils import write_json


def write_report(payload: dict[str, Any], output_path: Path) -> None:
    write_json(output_path, payload)


def write_report_markdown(payload: dict[str, Any], output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    summary = payload.get("summary", {})
    lines: list[str] = []
    lines.append("# Review Report")
    lines.append("")
    lines.append(f"- Status: `{summary.get('status', 'unknown')}`")
    lines.append(f"- Generated: `{payload.get('generatedAt', '')}`")
    lines.append(f"- Total time: `{summary.get('totalHuman', '')}`")
    lines.append("")
    lines.append(str(summary.get("message", "")))
    lines.append("")

    warnings = payload.get("warnings") or []
    if warnings:
        lines.append("## Warnings")
        for item in warnings:
            lines.append(f"- {item}")
        lines.append("")

    lines.append("## Files")
    results = payload.get("results") or []
    if not results:
        lines.append("- None")
    for result in results:
        issues = result.get("issues") or []
        lines.append(f"### `{result.get('relPath', '')}`")
        if not issues:
            lines.append("- No issues")
        for issue in issues:
            source, kind, line = issue.get("source"), issue.get("type"), issue.get("line", 0)
            lines.append(f"- [{source}] `{kind}` line {line}: {issue.get('message', '')}")
        lines.append("")

    repo = payload.get("repo") or {}
    if repo:
        lines.append("## Repo")
        for key in ("lint", "compiler", "compilerProject", "deadCode", "duplicates"):
            block = repo.get(key)
            if not block:
                continue
            counts = ", ".join(
                f"{name}={value}" for name, value in block.items() if isinstance(value, (int, float)) and value
            )
            lines.append(f"- {key}: {counts or 'failed'}")
        actions = repo.get("actions") or []
        if actions:
            lines.append("")
            lines.append("### Actions")
            for index, action in enumerate(actions, start=1):
                lines.append(f"{index}. {action}")
        lines.append("")

    output_path.write_text("\n".join(lines), encoding="utf-8")
