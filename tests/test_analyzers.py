from __future__ import annotations

from pathlib import Path

from reviewgate.analyzers.comments import analyze_comments
from reviewgate.analyzers.common import FunctionAnalyzer
from reviewgate.analyzers.console import analyze_console
from reviewgate.analyzers.engine import analyze_content
from reviewgate.analyzers.fallback import analyze_fallback
from reviewgate.analyzers.framework import analyze_framework
from reviewgate.analyzers.size import analyze_size, resolve_limit
from reviewgate.analyzers.type_annotations import analyze_type_annotations
from reviewgate.schemas import CATEGORIES, COMMENTS, CONSOLE, FAIL, PASS, Absent, FileTask


def _task(rel: str = "components/Widget.tsx") -> FileTask:
    return FileTask(path=Path("/repo") / rel, rel_path=rel)


def test_comments_track_block_spans() -> None:
    content = "\n".join(
        [
            "const a = 1;",
            "// note",
            "/**",
            " * doc",
            " */",
            "/* one-liner */",
            "const b = 2; // trailing",
        ]
    )

    violations = analyze_comments(content)

    assert [item.line for item in violations] == [2, 3, 4, 6]
    assert [item.kind for item in violations] == ["inline", "jsdoc", "jsdoc", "multiline"]


def test_single_line_jsdoc_does_not_open_span() -> None:
    violations = analyze_comments("/** doc */\nconst a = 1;\n")

    assert [item.line for item in violations] == [1]


def test_console_flags_error_and_warn_only() -> None:
    content = 'console.log("fine");\nconsole.error("boom");\n  console.warn ("careful");\n'

    violations = analyze_console(content)

    assert [(item.kind, item.line) for item in violations] == [("error", 2), ("warn", 3)]
    assert "throw new Error" in violations[0].advice


def test_fallback_flags_null_return_and_literal_defaults() -> None:
    content = "\n".join(
        [
            "export function load(id: string) {",
            "  const item = lookup(id);",
            "  return null;",
            "}",
            'const name = user.name || "anon";',
            'const label = ok ? value : "none";',
        ]
    )

    kinds = {(item.kind, item.line) for item in analyze_fallback(content)}

    assert ("return_null", 3) in kinds
    assert ("or_fallback", 5) in kinds
    assert ("ternary_fallback", 6) in kinds


def test_fallback_exempts_nullable_return_types_and_boolean_or() -> None:
    content = "\n".join(
        [
            "export function find(id: string): User | null {",
            "  return null;",
            "}",
            "const enabled = flag || other;",
        ]
    )

    assert analyze_fallback(content) == []


def test_fallback_flags_catch_that_returns_value() -> None:
    content = "\n".join(["try {", "  run();", "} catch (err) {", "  return [];", "}"])

    violations = analyze_fallback(content)

    assert [(item.kind, item.line) for item in violations] == [("empty_catch_return", 3)]


def test_framework_hints_are_informational() -> None:
    content = "\n".join(
        [
            "const [value, setValue] = useState(0);",
            "const handleClick = () => setValue(1);",
            "const size = React.Children.count(children);",
        ]
    )

    hints = analyze_framework(content)

    assert hints.has_hooks is True
    assert {item.kind for item in hints.issues} == {"use-callback", "react-import"}


def test_type_annotations_flag_untyped_functions() -> None:
    content = "\n".join(
        [
            "export function add(a: number, b: number) {",
            "  return a + b;",
            "}",
            "export function sub(a: number, b: number): number {",
            "  return a - b;",
            "}",
            "const double = (n: number) => n * 2;",
            "const triple = (n: number): number => n * 3;",
            "const limit = 5;",
        ]
    )

    violations = analyze_type_annotations(content)

    assert [(item.extra["name"], item.line) for item in violations] == [("add", 1), ("double", 7)]
    assert violations[0].message == "Add explicit return type for add"
    assert violations[1].extra["functionKind"] == "const-arrow"


def test_type_annotations_accept_void_and_typed_wrapped_arrows() -> None:
    content = "\n".join(
        [
            "function reset(): void {",
            "}",
            "const total = useMemo((): number => {",
            "  return items.length;",
            "}, [items]);",
        ]
    )

    assert analyze_type_annotations(content) == []


def test_size_limit_per_file_type() -> None:
    assert resolve_limit("hooks/useThing.ts", {"hooks": 100, "components": 150}) == ("hooks", 100)
    assert resolve_limit("lib/format.ts", {"components": 150}) == ("utils", 150)

    violations = analyze_size("\n".join(["x"] * 101), 100)

    assert len(violations) == 1
    assert violations[0].extra == {"lines": 101, "limit": 100}
    assert analyze_size("\n".join(["x"] * 100), 100) == []


def test_single_console_error_fails_only_console(config) -> None:
    result = analyze_content(_task(), 'console.error("boom");\n', config)

    assert result.categories[CONSOLE].status == FAIL
    assert [item.line for item in result.violations(CONSOLE)] == [1]
    assert result.failing_categories() == [CONSOLE]


def test_status_matches_violations_for_every_category(config) -> None:
    content = "// comment\nconsole.warn('x');\nexport function f(a: string) {\n  return a;\n}\n"
    result = analyze_content(_task(), content, config)

    for name in CATEGORIES:
        state = result.categories[name]
        assert (state.status == FAIL) == bool(result.violations(name))


def test_failing_analyzer_degrades_to_pass(config) -> None:
    def boom(_content: str) -> list:
        raise RuntimeError("parser exploded")

    result = analyze_content(_task(), "// x\n", config, analyzers=(FunctionAnalyzer(COMMENTS, boom),))

    assert result.categories[COMMENTS].status == PASS
    assert result.violations(COMMENTS) == ()
    assert isinstance(result.categories[CONSOLE], Absent)
