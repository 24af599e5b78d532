from __future__ import annotations

from reviewgate.analyzers.common import split_lines
from reviewgate.schemas import Violation

COMMENT_ADVICE = "Remove the comment from source. Use docs instead."

JSDOC = "jsdoc"
MULTILINE = "multiline"
INLINE = "inline"


def _violation(kind: str, line_no: int, text: str) -> Violation:
    return Violation(
        kind=kind,
        line=line_no,
        message=f"Disallowed comment: {text[:200]}",
        advice=COMMENT_ADVICE,
    )


def analyze_comments(content: str) -> list[Violation]:
    """Flag comment lines with line-level state tracking.

    This is a heuristic, not a tokenizer: comment markers inside string or
    template literals are reported too.
    """
    violations: list[Violation] = []
    span: str | None = None

    for index, raw in enumerate(split_lines(content)):
        line = raw.strip()
        line_no = index + 1

        if line.startswith("/**"):
            violations.append(_violation(JSDOC, line_no, line))
            span = None if line.endswith("*/") and len(line) > 3 else JSDOC
            continue

        if line.startswith("/*"):
            violations.append(_violation(MULTILINE, line_no, line))
            span = None if line.endswith("*/") and len(line) > 2 else MULTILINE
            continue

        if line.endswith("*/"):
            span = None
            continue

        if span is not None:
            violations.append(_violation(span, line_no, line))
            continue

        if line.startswith("//"):
            violations.append(_violation(INLINE, line_no, line))

    return violations
