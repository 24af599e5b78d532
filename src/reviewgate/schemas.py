from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

PASS = "PASS"
FAIL = "FAIL"

SIZE = "size"
COMMENTS = "comments"
CONSOLE = "console"
LINT = "lint"
COMPILER = "compiler"
TYPE_ANNOTATIONS = "type_annotations"
FALLBACK = "fallback"
DEAD_CODE = "dead_code"
DUPLICATES = "duplicates"

CATEGORIES = (
    SIZE,
    LINT,
    COMMENTS,
    CONSOLE,
    TYPE_ANNOTATIONS,
    COMPILER,
    FALLBACK,
    DEAD_CODE,
    DUPLICATES,
)


class Serializable:
    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class FileTask:
    path: Path
    rel_path: str


@dataclass(slots=True)
class Violation(Serializable):
    kind: str
    line: int
    message: str
    advice: str = ""
    column: int = 0
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class Present:
    violations: tuple[Violation, ...] = ()

    @property
    def status(self) -> str:
        return FAIL if self.violations else PASS


@dataclass(slots=True, frozen=True)
class Absent:
    reason: str = "not run"

    @property
    def status(self) -> str:
        return PASS


CategoryResult = Present | Absent


@dataclass(slots=True)
class FrameworkHints(Serializable):
    has_react_import: bool = False
    has_use_callback: bool = False
    has_use_memo: bool = False
    has_use_effect: bool = False
    has_hooks: bool = False
    issues: list[Violation] = field(default_factory=list)


@dataclass(slots=True)
class PerFileResult:
    task: FileTask
    file_type: str = "components"
    lines: int = 0
    size_limit: int | None = None
    categories: dict[str, CategoryResult] = field(default_factory=dict)
    framework: FrameworkHints = field(default_factory=FrameworkHints)

    def __post_init__(self) -> None:
        for name in CATEGORIES:
            self.categories.setdefault(name, Absent())

    @property
    def rel_path(self) -> str:
        return self.task.rel_path

    def record(self, name: str, violations: list[Violation] | tuple[Violation, ...]) -> Present:
        if name not in CATEGORIES:
            raise KeyError(f"unknown category: {name}")
        result = Present(violations=tuple(violations))
        self.categories[name] = result
        return result

    def skip(self, name: str, reason: str) -> None:
        if name not in CATEGORIES:
            raise KeyError(f"unknown category: {name}")
        self.categories[name] = Absent(reason=reason)

    def violations(self, name: str) -> tuple[Violation, ...]:
        result = self.categories[name]
        if isinstance(result, Present):
            return result.violations
        return ()

    def failing_categories(self) -> list[str]:
        return [name for name in CATEGORIES if self.categories[name].status == FAIL]

    @property
    def failed(self) -> bool:
        return bool(self.failing_categories())


@dataclass(slots=True, frozen=True)
class LintMessage(Serializable):
    severity: str
    line: int
    column: int
    message: str
    rule: str | None = None
    end_line: int | None = None
    end_column: int | None = None
    fixable: bool = False


@dataclass(slots=True, frozen=True)
class LintFileFindings(Serializable):
    errors: tuple[LintMessage, ...] = ()
    warnings: tuple[LintMessage, ...] = ()


@dataclass(slots=True, frozen=True)
class LintOutput(Serializable):
    by_path: dict[str, LintFileFindings] = field(default_factory=dict)

    @property
    def total_errors(self) -> int:
        return sum(len(item.errors) for item in self.by_path.values())

    @property
    def total_warnings(self) -> int:
        return sum(len(item.warnings) for item in self.by_path.values())


@dataclass(slots=True, frozen=True)
class CompilerDiagnostic(Serializable):
    file: str
    line: int
    column: int
    code: str
    message: str


@dataclass(slots=True, frozen=True)
class CompilerOutput(Serializable):
    by_file: dict[str, tuple[CompilerDiagnostic, ...]] = field(default_factory=dict)
    tsconfig_path: str | None = None
    raw: str = ""

    @property
    def total_errors(self) -> int:
        return sum(len(items) for items in self.by_file.values())


@dataclass(slots=True, frozen=True)
class DeadSymbol(Serializable):
    name: str
    line: int = 0
    column: int = 0


@dataclass(slots=True, frozen=True)
class MemberGroup(Serializable):
    owner: str
    members: tuple[DeadSymbol, ...] = ()


@dataclass(slots=True, frozen=True)
class DeadCodeFileIssue(Serializable):
    file: str
    exports: tuple[DeadSymbol, ...] = ()
    types: tuple[DeadSymbol, ...] = ()
    enum_members: tuple[MemberGroup, ...] = ()
    class_members: tuple[MemberGroup, ...] = ()
    unlisted: tuple[str, ...] = ()
    unresolved: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class DeadCodeOutput(Serializable):
    unused_files: tuple[str, ...] = ()
    issues: tuple[DeadCodeFileIssue, ...] = ()


@dataclass(slots=True, frozen=True)
class CloneSpan(Serializable):
    file: str
    start: int
    end: int


@dataclass(slots=True, frozen=True)
class ClonePair(Serializable):
    first: CloneSpan
    second: CloneSpan
    lines: int
    tokens: int = 0


@dataclass(slots=True, frozen=True)
class DuplicateOutput(Serializable):
    pairs: tuple[ClonePair, ...] = ()
    percentage: float | None = None


@dataclass(slots=True)
class LintGateSummary(Serializable):
    total_errors: int = 0
    total_warnings: int = 0

    @property
    def failed(self) -> bool:
        return self.total_errors > 0


@dataclass(slots=True)
class CompilerSummary(Serializable):
    total_errors: int = 0
    tsconfig_path: str | None = None
    by_file: dict[str, list[CompilerDiagnostic]] = field(default_factory=dict)
    raw: str = ""

    @property
    def failed(self) -> bool:
        return self.total_errors > 0


@dataclass(slots=True)
class DeadCodeSummary(Serializable):
    counts: dict[str, int] = field(default_factory=dict)
    details: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def failed(self) -> bool:
        return self.total > 0


@dataclass(slots=True)
class DuplicateGroup(Serializable):
    files: tuple[str, str]
    lines: int
    tokens: int
    first_start: int
    first_end: int
    second_start: int
    second_end: int
    suggested_module_path: str


@dataclass(slots=True)
class DuplicateSummary(Serializable):
    groups: int = 0
    duplicated_lines: int = 0
    percentage: float | None = None
    top_groups: list[DuplicateGroup] = field(default_factory=list)
    playbook: str = ""

    @property
    def failed(self) -> bool:
        return self.groups > 0 or self.duplicated_lines > 0 or (self.percentage or 0) > 0


@dataclass(slots=True)
class RepoSummary(Serializable):
    lint: LintGateSummary | None = None
    compiler: CompilerSummary = field(default_factory=CompilerSummary)
    compiler_project: CompilerSummary = field(default_factory=CompilerSummary)
    dead_code: DeadCodeSummary = field(default_factory=DeadCodeSummary)
    duplicates: DuplicateSummary = field(default_factory=DuplicateSummary)
    warnings: list[str] = field(default_factory=list)

    def gates(self) -> dict[str, bool]:
        """Map each repo-wide gate that ran to whether it passed."""
        gates: dict[str, bool] = {}
        if self.lint is not None:
            gates["lint"] = not self.lint.failed
        gates["compiler"] = not self.compiler.failed
        gates["compilerProject"] = not self.compiler_project.failed
        gates["deadCode"] = not self.dead_code.failed
        gates["duplicates"] = not self.duplicates.failed
        return gates

    @property
    def failed(self) -> bool:
        return not all(self.gates().values())


@dataclass(slots=True)
class Issue:
    source: str
    type: str
    line: int
    column: int
    message: str
    guidance: str
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "source": self.source,
            "type": self.type,
            "line": self.line,
            "column": self.column,
            "message": self.message,
            "guidance": self.guidance,
        }
        for key, value in self.extra.items():
            if value is not None:
                payload[key] = value
        return payload


@dataclass(slots=True)
class ReviewOutcome:
    payload: dict[str, Any]
    summary_text: str
    report_path: Path
    results: list[PerFileResult]
    repo: RepoSummary

    @property
    def passed(self) -> bool:
        return self.payload["summary"]["status"] == "pass"

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1
