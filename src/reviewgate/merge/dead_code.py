"""Dead-code reconciliation.

The detector cannot tell an export that nobody uses from an export that is
only used inside its own module. Each implicated file is re-read and every
candidate name is counted with a word-boundary match: more than one
occurrence means the symbol is referenced internally, so it is reported as
over-exported rather than deletable.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from reviewgate.concurrency import map_limit
from reviewgate.file_cache import FileCache
from reviewgate.logging import get_logger
from reviewgate.schemas import (
    DEAD_CODE,
    DeadCodeFileIssue,
    DeadCodeOutput,
    DeadCodeSummary,
    MemberGroup,
    PerFileResult,
    Violation,
)
from reviewgate.utils import dedupe

logger = get_logger("merge.dead_code")

UNUSED_FILE = "unused-file"
UNUSED_EXPORT = "unused-export"
UNUSED_EXPORTED = "unused-exported"
UNUSED_TYPE = "unused-type"
UNUSED_EXPORTED_TYPE = "unused-exported-type"
UNUSED_ENUM_MEMBER = "unused-enum-member"
UNUSED_CLASS_MEMBER = "unused-class-member"
UNRESOLVED_IMPORT = "unresolved-import"
UNLISTED_DEPENDENCY = "unlisted-dependency"

COUNT_KEYS = (
    "unusedFiles",
    "unusedExports",
    "unusedExported",
    "unusedTypes",
    "unusedExportedTypes",
    "unusedEnumMembers",
    "unusedClassMembers",
    "unlistedDependencies",
    "unresolvedImports",
)

KIND_TO_COUNT = {
    UNUSED_FILE: "unusedFiles",
    UNUSED_EXPORT: "unusedExports",
    UNUSED_EXPORTED: "unusedExported",
    UNUSED_TYPE: "unusedTypes",
    UNUSED_EXPORTED_TYPE: "unusedExportedTypes",
    UNUSED_ENUM_MEMBER: "unusedEnumMembers",
    UNUSED_CLASS_MEMBER: "unusedClassMembers",
    UNLISTED_DEPENDENCY: "unlistedDependencies",
    UNRESOLVED_IMPORT: "unresolvedImports",
}

DELETE_FILE_ADVICE = (
    "Candidate for deletion. Investigate thoroughly (check dynamic imports, runtime requires, "
    "config/test/tooling references). If truly unused, delete the file rather than archiving or excluding it."
)
ADVICE = {
    UNUSED_FILE: DELETE_FILE_ADVICE,
    UNUSED_EXPORT: "Remove unused export(s) or their references.",
    UNUSED_EXPORTED: "Make exported symbol(s) non-exported if only used internally.",
    UNUSED_TYPE: "Remove unused type(s) or inline where needed.",
    UNUSED_EXPORTED_TYPE: "Make exported type(s) non-exported if only used internally.",
    UNUSED_ENUM_MEMBER: "Remove unused enum member(s).",
    UNUSED_CLASS_MEMBER: "Remove unused class member(s).",
    UNLISTED_DEPENDENCY: "Remove unlisted dependency usage or add to package.json appropriately.",
    UNRESOLVED_IMPORT: "Fix unresolved import(s): verify path/alias/tsconfig paths.",
}


def occurs_more_than_once(content: str, name: str) -> bool:
    if not content or not name:
        return False
    pattern = re.compile(rf"\b{re.escape(name)}\b")
    count = 0
    for _ in pattern.finditer(content):
        count += 1
        if count > 1:
            return True
    return False


def _candidates(issue: DeadCodeFileIssue) -> list[str]:
    return dedupe([symbol.name for symbol in (*issue.exports, *issue.types)])


async def scan_internal_usage(
    output: DeadCodeOutput,
    repo_root: Path,
    cache: FileCache,
    concurrency: int,
) -> dict[str, set[str]]:
    """Map each implicated file to the candidate names it references internally."""
    targets = [issue for issue in output.issues if issue.file and _candidates(issue)]

    async def scan(issue: DeadCodeFileIssue, _index: int) -> set[str]:
        content = await cache.load(repo_root / issue.file)
        return {name for name in _candidates(issue) if occurs_more_than_once(content, name)}

    found = await map_limit(targets, concurrency, scan)
    return {issue.file: names for issue, names in zip(targets, found)}


def _member_violations(kind: str, groups: tuple[MemberGroup, ...], label: str) -> list[Violation]:
    return [
        Violation(
            kind=kind,
            line=member.line,
            column=member.column,
            message=f"Unused {label} member '{group.owner}.{member.name}'",
            advice=ADVICE[kind],
            extra={"owner": group.owner, "symbol": member.name},
        )
        for group in groups
        for member in group.members
    ]


def file_violations(issue: DeadCodeFileIssue, internal: set[str]) -> list[Violation]:
    violations: list[Violation] = []
    for symbol in issue.exports:
        kind = UNUSED_EXPORTED if symbol.name in internal else UNUSED_EXPORT
        message = (
            f"Export '{symbol.name}' is only used within this file"
            if kind == UNUSED_EXPORTED
            else f"Unused export '{symbol.name}'"
        )
        violations.append(
            Violation(kind, symbol.line, message, ADVICE[kind], symbol.column, {"symbol": symbol.name})
        )
    for symbol in issue.types:
        kind = UNUSED_EXPORTED_TYPE if symbol.name in internal else UNUSED_TYPE
        message = (
            f"Exported type '{symbol.name}' is only used within this file"
            if kind == UNUSED_EXPORTED_TYPE
            else f"Unused type '{symbol.name}'"
        )
        violations.append(
            Violation(kind, symbol.line, message, ADVICE[kind], symbol.column, {"symbol": symbol.name})
        )
    violations.extend(_member_violations(UNUSED_ENUM_MEMBER, issue.enum_members, "enum"))
    violations.extend(_member_violations(UNUSED_CLASS_MEMBER, issue.class_members, "class"))
    for specifier in issue.unresolved:
        violations.append(
            Violation(
                UNRESOLVED_IMPORT,
                0,
                f"Unresolved import '{specifier}'",
                ADVICE[UNRESOLVED_IMPORT],
                extra={"specifier": specifier},
            )
        )
    for module in issue.unlisted:
        violations.append(
            Violation(
                UNLISTED_DEPENDENCY,
                0,
                f"Unlisted dependency '{module}'",
                ADVICE[UNLISTED_DEPENDENCY],
                extra={"module": module},
            )
        )
    return violations


def _members_detail(groups: tuple[MemberGroup, ...], owner_key: str) -> list[dict[str, Any]]:
    return [{owner_key: group.owner, "members": [member.name for member in group.members]} for group in groups]


def build_summary(output: DeadCodeOutput, internal_by_file: dict[str, set[str]]) -> DeadCodeSummary:
    counts = {key: 0 for key in COUNT_KEYS}
    details: dict[str, list[dict[str, Any]]] = {key: [] for key in COUNT_KEYS}

    for rel in output.unused_files:
        counts["unusedFiles"] += 1
        details["unusedFiles"].append({"file": rel})

    for issue in output.issues:
        internal = internal_by_file.get(issue.file, set())
        buckets = {
            "unusedExports": [s.name for s in issue.exports if s.name not in internal],
            "unusedExported": [s.name for s in issue.exports if s.name in internal],
            "unusedTypes": [s.name for s in issue.types if s.name not in internal],
            "unusedExportedTypes": [s.name for s in issue.types if s.name in internal],
        }
        for key, names in buckets.items():
            if names:
                counts[key] += len(names)
                details[key].append({"file": issue.file, "names": names})

        enum_count = sum(len(group.members) for group in issue.enum_members)
        if enum_count:
            counts["unusedEnumMembers"] += enum_count
            details["unusedEnumMembers"].append(
                {"file": issue.file, "enums": _members_detail(issue.enum_members, "enum")}
            )
        class_count = sum(len(group.members) for group in issue.class_members)
        if class_count:
            counts["unusedClassMembers"] += class_count
            details["unusedClassMembers"].append(
                {"file": issue.file, "classes": _members_detail(issue.class_members, "class")}
            )
        if issue.unlisted:
            counts["unlistedDependencies"] += len(issue.unlisted)
            details["unlistedDependencies"].append({"file": issue.file, "modules": list(issue.unlisted)})
        if issue.unresolved:
            counts["unresolvedImports"] += len(issue.unresolved)
            details["unresolvedImports"].append({"file": issue.file, "specifiers": list(issue.unresolved)})

    return DeadCodeSummary(counts=counts, details={key: value for key, value in details.items() if value})


async def reconcile_dead_code(
    output: DeadCodeOutput,
    results: list[PerFileResult],
    repo_root: Path,
    cache: FileCache,
    concurrency: int,
) -> DeadCodeSummary:
    """Attach dead-code violations to ``results`` and return the repo summary."""
    internal_by_file = await scan_internal_usage(output, repo_root, cache, concurrency)
    issues_by_file = {issue.file: issue for issue in output.issues}
    unused_files = set(output.unused_files)

    for result in results:
        violations: list[Violation] = []
        if result.rel_path in unused_files:
            violations.append(
                Violation(
                    UNUSED_FILE,
                    0,
                    "File is not referenced anywhere in the project",
                    ADVICE[UNUSED_FILE],
                )
            )
        issue = issues_by_file.get(result.rel_path)
        if issue is not None:
            violations.extend(file_violations(issue, internal_by_file.get(issue.file, set())))
        result.record(DEAD_CODE, violations)

    summary = build_summary(output, internal_by_file)
    logger.debug("dead code: %s finding(s)", summary.total)
    return summary
