"""Fallback-data anti-pattern scan.

Five line patterns are flagged: bare ``return null/undefined``, ``||`` defaults
with literal values, optional chaining followed by ``||``, ternaries that fall
back to a literal, and ``catch`` blocks that swallow the error and return a
value. The exemptions below are tunable heuristics, not semantic checks; when a
case is ambiguous they suppress the finding.
"""

from __future__ import annotations

import re

from reviewgate.analyzers.common import split_lines
from reviewgate.schemas import Violation

RETURN_NULL_RE = re.compile(r"return\s+(null|undefined);?$")
OR_FALLBACK_RE = re.compile(r"\|\|\s*(['`\"].*?['`\"]|\[.*?\]|\{.*?\})")
OPTIONAL_CHAIN_RE = re.compile(r"\?\.\w+.*?\|\|")
TERNARY_FALLBACK_RE = re.compile(r"\?\s*\w+\s*:\s*(['`\"].*?['`\"]|\[.*?\]|\{.*?\})")
CATCH_RETURN_RE = re.compile(r"catch\s*\([^)]*\)\s*\{[^}]*return\s+[^;]+;?\s*\}")

BOOLEAN_OR_RES = (
    re.compile(r"\|\|\s*(true|false|\w+\.\w+|\w+\(\)|\w+)\s*$"),
    re.compile(r"const\s+\w+\s*=\s*\w+\s*\|\|\s*\w+"),
)
HTML_ATTRIBUTE_RE = re.compile(
    r"(disabled|checked|selected|required|readOnly|autoFocus)\s*=\s*\{.*?\?.*?:.*?(true|false|undefined)\s*\}"
)
CSS_CLASS_RE = re.compile(r"(className|class)\s*=\s*\{.*?\?\s*['`\"].*?['`\"]\s*:\s*['`\"].*")
ARIA_RES = (
    re.compile(r"aria-\w+\s*=\s*\{.*?\?\s*['`\"](true|false|menu)['`\"]\s*:\s*['`\"](true|false)['`\"]"),
    re.compile(r"\{\.\.\.\(.*?&&.*?\{\s*['\"]aria-"),
)
COMMENT_LINE_RES = (re.compile(r"^\s*//"), re.compile(r"^\s*/\*"), re.compile(r"^\s*\*"))

NULLABLE_RETURN_RES = (
    re.compile(r":\s*[^=]*\|\s*null"),
    re.compile(r"JSX\.Element\s*\|\s*null"),
    re.compile(r"ReactNode\s*\|\s*null"),
)
CONDITIONAL_RENDER_RES = (
    re.compile(r"const\s+\w+\s*=\s*\([^)]*\)\s*:\s*JSX\.Element\s*\|\s*null"),
    re.compile(r"function\s+\w+\s*\([^)]*\)\s*:\s*JSX\.Element\s*\|\s*null"),
)
NOT_FOUND_SIGNATURE_RES = (
    re.compile(r"function\s+\w+.*?:\s*\w+\s*\|\s*null"),
    re.compile(r"export\s+function\s+\w+.*?:\s*\w+\s*\|\s*null"),
)
NOT_FOUND_CONTEXT_RES = (
    re.compile(r"localStorage\.getItem|cache\.get|stored|expired"),
    re.compile(r"if\s*\(!\w+\)|if\s*\(.*expired.*\)|Date\.now\(\).*?>.*maxAge"),
    re.compile(r"deleteDraft|removeItem|clear"),
    re.compile(r"if\s*\([^)]*\)\s*\{[^}]*return\s+null"),
)

ADVICE = {
    "return_null": (
        "Throw composed error instead of null return. Null returns mask invalid states and prevent proper "
        "error handling. Consider: What upstream validation failed? Why is this data missing?"
    ),
    "or_fallback": (
        "Throw composed error instead of silent fallback. This pattern hides missing required data. "
        "Recommend deeper analysis: Is this data truly optional, or should upstream validation catch this?"
    ),
    "optional_chaining_fallback": (
        "Throw composed error instead of defensive fallback. Optional chaining with fallbacks suggests unclear "
        "data contracts. Recommend deeper analysis: Should this property be guaranteed? Is validation missing?"
    ),
    "ternary_fallback": (
        "Throw composed error instead of default value. Ternary fallbacks mask validation failures. "
        "Consider: What makes this condition invalid? Should upstream code prevent this state?"
    ),
    "empty_catch_return": (
        "Throw composed error instead of swallowing exceptions. Silent error suppression violates fail-fast "
        "methodology. Consider: Should this error propagate up? What context should be preserved?"
    ),
}


def _any(patterns: tuple[re.Pattern[str], ...], text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def _window(lines: list[str], index: int, back: int) -> list[str]:
    return lines[max(0, index - back) : index + 1]


def is_boolean_logic(line: str) -> bool:
    return _any(BOOLEAN_OR_RES, line)


def is_comment_line(line: str) -> bool:
    return _any(COMMENT_LINE_RES, line)


def is_ui_attribute_ternary(line: str) -> bool:
    return bool(HTML_ATTRIBUTE_RE.search(line) or CSS_CLASS_RE.search(line) or _any(ARIA_RES, line))


def is_nullable_return_type(lines: list[str], index: int) -> bool:
    return any(_any(NULLABLE_RETURN_RES, line) for line in _window(lines, index, 10))


def is_conditional_render(content: str, lines: list[str], index: int) -> bool:
    if not ("import React" in content or "import * as React" in content or "JSX.Element" in content):
        return False
    return any(_any(CONDITIONAL_RENDER_RES, line) for line in _window(lines, index, 15))


def is_not_found_pattern(lines: list[str], index: int) -> bool:
    if any(_any(NOT_FOUND_SIGNATURE_RES, line) for line in _window(lines, index, 10)):
        return True
    context = " ".join(_window(lines, index, 5))
    return _any(NOT_FOUND_CONTEXT_RES, context)


def _catch_block(lines: list[str], index: int) -> str:
    first = lines[index].strip()
    parts = [first[first.index("catch") :]]
    depth = parts[0].count("{") - parts[0].count("}")
    cursor = index + 1
    while depth > 0 and cursor < len(lines):
        current = lines[cursor].strip()
        parts.append(current)
        depth += current.count("{") - current.count("}")
        cursor += 1
    return re.sub(r"\s+", " ", " ".join(parts))


def analyze_fallback(content: str) -> list[Violation]:
    lines = split_lines(content)
    violations: list[Violation] = []

    def flag(kind: str, line_no: int, text: str) -> None:
        violations.append(Violation(kind=kind, line=line_no, message=text, advice=ADVICE[kind]))

    for index, raw in enumerate(lines):
        line = raw.strip()
        line_no = index + 1

        if RETURN_NULL_RE.search(line):
            if (
                is_nullable_return_type(lines, index)
                or is_conditional_render(content, lines, index)
                or is_not_found_pattern(lines, index)
            ):
                continue
            flag("return_null", line_no, line)

        if OR_FALLBACK_RE.search(line) and not is_boolean_logic(line) and not is_comment_line(line):
            flag("or_fallback", line_no, line)

        if OPTIONAL_CHAIN_RE.search(line):
            flag("optional_chaining_fallback", line_no, line)

        if (
            TERNARY_FALLBACK_RE.search(line)
            and not is_ui_attribute_ternary(line)
            and not is_comment_line(line)
        ):
            flag("ternary_fallback", line_no, line)

        if "catch" in line and CATCH_RETURN_RE.search(_catch_block(lines, index)):
            flag("empty_catch_return", line_no, line)

    return violations
