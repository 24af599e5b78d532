from __future__ import annotations

import re

from reviewgate.schemas import FrameworkHints, Violation

HOOK_RE = re.compile(r"use[A-Z]")
LINE_SPLIT_RE = re.compile(r"\r?\n")


def analyze_framework(content: str) -> FrameworkHints:
    """Collect React usage hints. Informational only; never gates a file."""
    lines = LINE_SPLIT_RE.split(content)
    hints = FrameworkHints(
        has_react_import="import React" in content or "import * as React" in content,
        has_use_callback="useCallback" in content,
        has_use_memo="useMemo" in content,
        has_use_effect="useEffect" in content,
        has_hooks=bool(HOOK_RE.search(content)),
    )

    if "React." in content and not hints.has_react_import:
        line_no = next((index + 1 for index, line in enumerate(lines) if "React." in line), 0)
        hints.issues.append(
            Violation(kind="react-import", line=line_no, message="Missing React import for React.* usage")
        )

    if hints.has_hooks and not hints.has_use_callback:
        for index, line in enumerate(lines):
            if "const handle" in line:
                hints.issues.append(
                    Violation(kind="use-callback", line=index + 1, message="Event handlers should use useCallback")
                )

    if hints.has_hooks and not hints.has_use_memo:
        for index, line in enumerate(lines):
            if "const filtered" in line:
                hints.issues.append(
                    Violation(
                        kind="use-memo",
                        line=index + 1,
                        message="Filtered/computed values should use useMemo",
                    )
                )

    return hints
