from __future__ import annotations

import re

from reviewgate.analyzers.common import split_lines
from reviewgate.schemas import Violation

CONSOLE_RE = re.compile(r"console\.(error|warn)\s*\(")


def analyze_console(content: str) -> list[Violation]:
    violations: list[Violation] = []
    for index, line in enumerate(split_lines(content)):
        match = CONSOLE_RE.search(line)
        if not match:
            continue
        method = match.group(1)
        violations.append(
            Violation(
                kind=method,
                line=index + 1,
                message=line.strip(),
                advice=(
                    f"Replace console.{method} with proper error throwing. "
                    "Use 'throw new Error(message)' instead of logging and continuing execution."
                ),
                extra={"method": method},
            )
        )
    return violations
