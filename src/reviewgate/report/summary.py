from __future__ import annotations

from pathlib import Path

from reviewgate.schemas import CATEGORIES, DUPLICATES, LINT, SIZE, Absent, PerFileResult, RepoSummary
from reviewgate.utils import format_ms

DETAIL_LIMIT = 5


def _counts(passed: int, failed: int, total: int) -> str:
    return f"{total} total, {passed} passed, {failed} failed"


def render_minimal_summary(
    results: list[PerFileResult],
    repo: RepoSummary,
    *,
    mode: str,
    total_ms: float,
    report_path: Path,
) -> str:
    failed_files = sum(1 for result in results if result.failed)
    gates = repo.gates()
    failed_gates = sum(1 for ok in gates.values() if not ok)
    file_status = "FAIL" if failed_files else "PASS"
    repo_status = "FAIL" if failed_gates else "PASS"

    lines = [
        f"REVIEW: {mode}",
        f"Files: {_counts(len(results) - failed_files, failed_files, len(results))}",
        f"Status: {file_status}",
        "",
        "REVIEW: Repo Wide",
        f"Checks: {_counts(len(gates) - failed_gates, failed_gates, len(gates))}",
        f"Status: {repo_status}",
        "",
        f"Total Time: {format_ms(total_ms)}",
        "",
    ]
    if file_status == "FAIL" or repo_status == "FAIL":
        lines.append(f"ACTION REQUIRED: Read and apply → {report_path}")
    else:
        lines.append(f"Report written → {report_path}")
    return "\n".join(lines) + "\n"


def _category_line(result: PerFileResult, category: str) -> str:
    violations = result.violations(category)
    if category == SIZE:
        return f"{result.rel_path}: file too large ({result.lines}/{result.size_limit}); split into modules"
    if category == DUPLICATES:
        return f"{result.rel_path}: duplicate code segments ({len(violations)})"
    return f"{result.rel_path}: {category} ({len(violations)})"


def _repo_lines(repo: RepoSummary) -> list[str]:
    lines: list[str] = []
    if repo.lint is not None and repo.lint.failed:
        lines.append(f"lint: {repo.lint.total_errors} error(s), {repo.lint.total_warnings} warning(s) repo-wide")
    if repo.compiler.failed:
        lines.append(f"compiler: {repo.compiler.total_errors} error(s) ({repo.compiler.tsconfig_path})")
    if repo.compiler_project.failed:
        lines.append(
            f"compiler (project): {repo.compiler_project.total_errors} error(s) "
            f"({repo.compiler_project.tsconfig_path})"
        )
    if repo.dead_code.failed:
        parts = [f"{key} {count}" for key, count in repo.dead_code.counts.items() if count > 0]
        lines.append(f"dead code: {', '.join(parts)}")
    if repo.duplicates.failed:
        parts = [f"{repo.duplicates.groups} groups", f"{repo.duplicates.duplicated_lines} duplicated lines"]
        if repo.duplicates.percentage:
            parts.append(f"{repo.duplicates.percentage}%")
        lines.append(f"duplicates: {', '.join(parts)}")
    return lines


def render_detailed_summary(
    results: list[PerFileResult],
    repo: RepoSummary,
    *,
    timings: dict[str, float],
) -> str:
    """Per-file violation listing and timing breakdown printed in debug mode."""
    lines: list[str] = []
    failing = [result for result in results if result.failed]
    if failing:
        lines.append("VIOLATIONS (blocking):")
    for result in failing:
        for category in result.failing_categories():
            lines.append(_category_line(result, category))
            if category in (SIZE, DUPLICATES):
                continue
            violations = result.violations(category)
            for violation in violations[:DETAIL_LIMIT]:
                rule = f" [{violation.extra['rule']}]" if category == LINT and violation.extra.get("rule") else ""
                lines.append(f"  {result.rel_path}:{violation.line} - {violation.message}{rule}")
            if len(violations) > DETAIL_LIMIT:
                lines.append(f"  ...and {len(violations) - DETAIL_LIMIT} more")

    repo_lines = _repo_lines(repo)
    if repo_lines:
        if lines:
            lines.append("")
        lines.append("REPO-WIDE VIOLATIONS (blocking):")
        lines.extend(repo_lines)

    skipped = sorted(
        {
            f"{category}: {state.reason}"
            for result in results
            for category in CATEGORIES
            if isinstance(state := result.categories[category], Absent)
        }
    )
    if skipped:
        lines.append("")
        lines.append("Skipped: " + "; ".join(skipped))

    hinted = [result for result in results if result.framework.issues]
    if hinted:
        lines.append("")
        lines.append("Hints (informational):")
        for result in hinted:
            for hint in result.framework.issues[:DETAIL_LIMIT]:
                lines.append(f"  {result.rel_path}:{hint.line} - {hint.message}")

    if timings:
        lines.append("")
        lines.append("Timing: " + " | ".join(f"{name} {format_ms(ms)}" for name, ms in timings.items()))
    return "\n".join(lines) + ("\n" if lines else "")
