from __future__ import annotations

import posixpath

from reviewgate.logging import get_logger
from reviewgate.schemas import (
    DUPLICATES,
    ClonePair,
    CloneSpan,
    DuplicateGroup,
    DuplicateOutput,
    DuplicateSummary,
    PerFileResult,
    Violation,
)
from reviewgate.utils import common_dir

logger = get_logger("merge.duplicates")

TOP_GROUPS = 5
DUPLICATE_ADVICE = "Extract shared logic into a utility/component to remove duplication."
PLAYBOOK_REF = "repo.duplicates.details.playbook"
PLAYBOOK = "\n".join(
    [
        "Refactor similar (not identical) duplicate blocks by extracting the shared scaffold into a reusable "
        "function or hook.",
        "Parameterize the differing parts (URL builders, number of requests, response mapping, error messages). "
        "Keep shared concerns internal: loading/error toggles, try/catch, Promise.all orchestration.",
        "Suggested targets: the suggestedModulePath of each group (nearest common directory under lib/).",
        "Function signature example: loadWithParams<T>({ buildUrls: () => string[], map: (payloads: any[]) => T, "
        "onError?: (e: unknown) => string }): Promise<T>.",
        "Hook signature example: useFetchMapped<T>({ deps: any[], buildRequests: () => Promise<Response>[], "
        "map: (payloads: any[]) => T }).",
        "Acceptance criteria: identical behavior for success/error/empty cases; type-safety preserved (generics); "
        "both sites replaced to import the shared utility.",
        "Skip extraction when the shared block is very small (<10 lines) or so context-heavy that abstraction "
        "reduces clarity.",
    ]
)


def suggested_module_path(first: str, second: str) -> str:
    base = common_dir(posixpath.dirname(first), posixpath.dirname(second)) or "lib"
    target = base if base.startswith("lib") else f"lib/{base}"
    return f"{target}/utils/shared-extracted.ts"


def segment(own: CloneSpan, other: CloneSpan, pair: ClonePair) -> Violation:
    return Violation(
        kind="duplicate-block",
        line=own.start,
        message=(
            f"Duplicate block with {other.file}:{other.start}-{other.end} "
            f"({pair.lines} lines, {pair.tokens} tokens)"
        ),
        advice=DUPLICATE_ADVICE,
        extra={
            "otherFile": other.file,
            "lines": pair.lines,
            "tokens": pair.tokens,
            "startLine": own.start,
            "endLine": own.end,
            "otherStartLine": other.start,
            "otherEndLine": other.end,
        },
    )


def fan_out(pairs: tuple[ClonePair, ...]) -> dict[str, list[Violation]]:
    """Split each clone pair into one segment per participating file."""
    by_file: dict[str, list[Violation]] = {}
    for pair in pairs:
        by_file.setdefault(pair.first.file, []).append(segment(pair.first, pair.second, pair))
        by_file.setdefault(pair.second.file, []).append(segment(pair.second, pair.first, pair))
    return by_file


def top_groups(pairs: tuple[ClonePair, ...], limit: int = TOP_GROUPS) -> list[DuplicateGroup]:
    groups = [
        DuplicateGroup(
            files=(pair.first.file, pair.second.file),
            lines=pair.lines,
            tokens=pair.tokens,
            first_start=pair.first.start,
            first_end=pair.first.end,
            second_start=pair.second.start,
            second_end=pair.second.end,
            suggested_module_path=suggested_module_path(pair.first.file, pair.second.file),
        )
        for pair in pairs
    ]
    groups.sort(key=lambda item: (-item.lines, item.files, item.first_start, item.second_start))
    return groups[:limit]


def reconcile_duplicates(output: DuplicateOutput, results: list[PerFileResult]) -> DuplicateSummary:
    """Attach duplicate segments to ``results`` and return the repo summary."""
    by_file = fan_out(output.pairs)
    for result in results:
        result.record(DUPLICATES, by_file.get(result.rel_path, []))
    summary = DuplicateSummary(
        groups=len(output.pairs),
        duplicated_lines=sum(pair.lines for pair in output.pairs),
        percentage=output.percentage,
        top_groups=top_groups(output.pairs),
        playbook=PLAYBOOK if output.pairs else "",
    )
    logger.debug("duplicates: %s group(s), %s line(s)", summary.groups, summary.duplicated_lines)
    return summary
