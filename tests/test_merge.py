from __future__ import annotations

from pathlib import Path

import pytest

from conftest import write
from reviewgate.file_cache import FileCache
from reviewgate.merge.dead_code import occurs_more_than_once, reconcile_dead_code
from reviewgate.merge.duplicates import reconcile_duplicates, suggested_module_path
from reviewgate.merge.engine import ToolOutputs, attach_lint, merge_results
from reviewgate.schemas import (
    COMPILER,
    DEAD_CODE,
    DUPLICATES,
    LINT,
    Absent,
    ClonePair,
    CloneSpan,
    CompilerDiagnostic,
    CompilerOutput,
    DeadCodeFileIssue,
    DeadCodeOutput,
    DeadSymbol,
    DuplicateOutput,
    FileTask,
    LintFileFindings,
    LintMessage,
    LintOutput,
    PerFileResult,
)


def _result(repo: Path, rel: str) -> PerFileResult:
    return PerFileResult(task=FileTask(path=(repo / rel).resolve(), rel_path=rel))


def test_occurs_more_than_once_uses_word_boundaries() -> None:
    assert occurs_more_than_once("export const a = 1;\nuse(a);", "a") is True
    assert occurs_more_than_once("export const apple = 1;\nuse(apples);", "apple") is False
    assert occurs_more_than_once("", "a") is False


@pytest.mark.asyncio
async def test_internally_used_export_is_over_exported(repo: Path) -> None:
    write(
        repo,
        "lib/format.ts",
        "export function formatDate(d: Date): string {\n  return d.toISOString();\n}\n"
        "export const legacyFormat = 1;\n"
        "export const today = formatDate(new Date());\n",
    )
    output = DeadCodeOutput(
        unused_files=("lib/orphan.ts",),
        issues=(
            DeadCodeFileIssue(
                file="lib/format.ts",
                exports=(DeadSymbol("formatDate", 1, 17), DeadSymbol("legacyFormat", 4, 14)),
            ),
        ),
    )
    results = [_result(repo, "lib/format.ts"), _result(repo, "lib/orphan.ts")]

    summary = await reconcile_dead_code(output, results, repo, FileCache(), 4)

    kinds = {item.extra["symbol"]: item.kind for item in results[0].violations(DEAD_CODE)}
    assert kinds == {"formatDate": "unused-exported", "legacyFormat": "unused-export"}
    assert [item.kind for item in results[1].violations(DEAD_CODE)] == ["unused-file"]
    assert summary.counts["unusedExported"] == 1
    assert summary.counts["unusedExports"] == 1
    assert summary.counts["unusedFiles"] == 1
    assert summary.details["unusedExported"] == [{"file": "lib/format.ts", "names": ["formatDate"]}]
    assert summary.failed is True


@pytest.mark.asyncio
async def test_clean_dead_code_records_present_empty(repo: Path) -> None:
    results = [_result(repo, "lib/a.ts")]

    summary = await reconcile_dead_code(DeadCodeOutput(), results, repo, FileCache(), 2)

    assert results[0].categories[DEAD_CODE].status == "PASS"
    assert not isinstance(results[0].categories[DEAD_CODE], Absent)
    assert summary.total == 0


def test_clone_pair_fans_out_to_both_files(repo: Path) -> None:
    pair = ClonePair(
        first=CloneSpan("lib/a/fetch.ts", 10, 30),
        second=CloneSpan("lib/b/fetch.ts", 5, 25),
        lines=21,
        tokens=140,
    )
    results = [_result(repo, "lib/a/fetch.ts"), _result(repo, "lib/b/fetch.ts"), _result(repo, "lib/c.ts")]

    summary = reconcile_duplicates(DuplicateOutput(pairs=(pair,), percentage=3.5), results)

    first = results[0].violations(DUPLICATES)[0]
    second = results[1].violations(DUPLICATES)[0]
    assert (first.line, first.extra["otherFile"], first.extra["otherStartLine"]) == (10, "lib/b/fetch.ts", 5)
    assert (second.line, second.extra["otherFile"]) == (5, "lib/a/fetch.ts")
    assert results[2].violations(DUPLICATES) == ()
    assert summary.groups == 1
    assert summary.duplicated_lines == 21
    assert summary.top_groups[0].suggested_module_path == "lib/utils/shared-extracted.ts"
    assert summary.playbook


def test_suggested_module_path() -> None:
    assert suggested_module_path("components/A.tsx", "components/B.tsx") == (
        "lib/components/utils/shared-extracted.ts"
    )
    assert suggested_module_path("app/x.ts", "hooks/y.ts") == "lib/utils/shared-extracted.ts"
    assert suggested_module_path("lib/api/a.ts", "lib/api/b.ts") == "lib/api/utils/shared-extracted.ts"


def test_attach_lint_keys_by_absolute_path(repo: Path) -> None:
    results = [_result(repo, "lib/a.ts"), _result(repo, "lib/b.ts")]
    message = LintMessage(severity="error", line=2, column=3, message="no-var", rule="no-var")
    lint = LintOutput(by_path={str(results[0].task.path): LintFileFindings(errors=(message,))})

    attach_lint(results, lint)

    assert [item.extra["rule"] for item in results[0].violations(LINT)] == ["no-var"]
    assert results[1].categories[LINT].status == "PASS"


def test_attach_lint_without_output_marks_absent(repo: Path) -> None:
    results = [_result(repo, "lib/a.ts")]

    attach_lint(results, None, "ESLint disabled by configuration.")

    state = results[0].categories[LINT]
    assert isinstance(state, Absent)
    assert state.reason == "ESLint disabled by configuration."


@pytest.mark.asyncio
async def test_merge_results_builds_repo_summary(repo: Path) -> None:
    write(repo, "lib/a.ts", "export const a = 1;\n")
    results = [_result(repo, "lib/a.ts")]
    diagnostic = CompilerDiagnostic("lib/a.ts", 1, 14, "TS2322", "Type mismatch")
    outputs = ToolOutputs(
        lint=LintOutput(),
        compiler=CompilerOutput(by_file={"lib/a.ts": (diagnostic,)}, tsconfig_path="tsconfig.json"),
        warnings=["heads up"],
    )

    repo_summary = await merge_results(results, outputs, repo, FileCache(), 2)

    assert [item.kind for item in results[0].violations(COMPILER)] == ["TS2322"]
    assert repo_summary.compiler.total_errors == 1
    assert repo_summary.lint is None
    assert repo_summary.warnings == ["heads up"]
    assert repo_summary.gates() == {
        "compiler": False,
        "compilerProject": True,
        "deadCode": True,
        "duplicates": True,
    }
