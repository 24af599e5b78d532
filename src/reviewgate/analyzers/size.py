from __future__ import annotations

from reviewgate.file_cache import count_lines
from reviewgate.paths import file_type_for
from reviewgate.schemas import Violation

DEFAULT_LIMIT = 150
SIZE_ADVICE = (
    "Analyze the file to determine a logical decomposition into separate concerns. "
    "Do not resolve by compression tricks. This rule enforces intelligent separation of concerns."
)


def resolve_limit(rel_path: str, limits: dict[str, int]) -> tuple[str, int]:
    file_type = file_type_for(rel_path)
    return file_type, limits.get(file_type, limits.get("components", DEFAULT_LIMIT))


def analyze_size(content: str, limit: int) -> list[Violation]:
    lines = count_lines(content)
    if lines <= limit:
        return []
    return [
        Violation(
            kind="file-size",
            line=0,
            message=f"File has {lines} lines (limit {limit}).",
            advice=SIZE_ADVICE,
            extra={"lines": lines, "limit": limit},
        )
    ]
