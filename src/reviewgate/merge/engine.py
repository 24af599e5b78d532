from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from reviewgate.file_cache import FileCache
from reviewgate.merge.dead_code import reconcile_dead_code
from reviewgate.merge.duplicates import reconcile_duplicates
from reviewgate.schemas import (
    COMPILER,
    LINT,
    CompilerOutput,
    CompilerSummary,
    DeadCodeOutput,
    DuplicateOutput,
    LintGateSummary,
    LintMessage,
    LintOutput,
    PerFileResult,
    RepoSummary,
    Violation,
)

LINT_ADVICE = "Address ESLint rule violation."
COMPILER_ADVICE = "Resolve TypeScript compiler error."


@dataclass(slots=True)
class ToolOutputs:
    """Everything the external tools produced for one run."""

    lint: LintOutput | None = None
    lint_skip_reason: str = ""
    lint_repo: LintGateSummary | None = None
    compiler: CompilerOutput = field(default_factory=CompilerOutput)
    compiler_project: CompilerOutput = field(default_factory=CompilerOutput)
    dead_code: DeadCodeOutput = field(default_factory=DeadCodeOutput)
    duplicates: DuplicateOutput = field(default_factory=DuplicateOutput)
    warnings: list[str] = field(default_factory=list)


def _lint_violation(message: LintMessage) -> Violation:
    return Violation(
        kind=message.severity,
        line=message.line,
        column=message.column,
        message=message.message,
        advice=LINT_ADVICE,
        extra={
            "rule": message.rule,
            "endLine": message.end_line,
            "endColumn": message.end_column,
            "fixable": message.fixable,
        },
    )


def attach_lint(results: list[PerFileResult], lint: LintOutput | None, skip_reason: str = "") -> None:
    for result in results:
        if lint is None:
            result.skip(LINT, skip_reason or "lint not run")
            continue
        findings = lint.by_path.get(str(result.task.path))
        if findings is None:
            result.record(LINT, [])
            continue
        result.record(LINT, [_lint_violation(item) for item in (*findings.errors, *findings.warnings)])


def attach_compiler(results: list[PerFileResult], compiler: CompilerOutput) -> None:
    for result in results:
        diagnostics = compiler.by_file.get(result.rel_path, ())
        result.record(
            COMPILER,
            [
                Violation(
                    kind=item.code,
                    line=item.line,
                    column=item.column,
                    message=item.message,
                    advice=COMPILER_ADVICE,
                )
                for item in diagnostics
            ],
        )


def compiler_summary(output: CompilerOutput) -> CompilerSummary:
    return CompilerSummary(
        total_errors=output.total_errors,
        tsconfig_path=output.tsconfig_path,
        by_file={key: list(items) for key, items in sorted(output.by_file.items())},
        raw=output.raw,
    )


async def merge_results(
    results: list[PerFileResult],
    outputs: ToolOutputs,
    repo_root: Path,
    cache: FileCache,
    concurrency: int,
) -> RepoSummary:
    """Fold every tool output into ``results`` and build the repo summary."""
    attach_lint(results, outputs.lint, outputs.lint_skip_reason)
    attach_compiler(results, outputs.compiler)
    dead_code = await reconcile_dead_code(outputs.dead_code, results, repo_root, cache, concurrency)
    duplicates = reconcile_duplicates(outputs.duplicates, results)
    return RepoSummary(
        lint=outputs.lint_repo,
        compiler=compiler_summary(outputs.compiler),
        compiler_project=compiler_summary(outputs.compiler_project),
        dead_code=dead_code,
        duplicates=duplicates,
        warnings=list(outputs.warnings),
    )
