from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from reviewgate.logging import get_logger
from reviewgate.schemas import Violation

logger = get_logger("analyzers")


class Analyzer(Protocol):
    category: str

    def analyze(self, content: str) -> list[Violation]:
        ...


class FunctionAnalyzer:
    """Adapts a plain ``analyze_*`` function to the ``Analyzer`` protocol."""

    def __init__(self, category: str, func: Callable[[str], list[Violation]]) -> None:
        self.category = category
        self._func = func

    def analyze(self, content: str) -> list[Violation]:
        return self._func(content)

    def __repr__(self) -> str:
        return f"FunctionAnalyzer({self.category!r})"


def safe_analyze(analyzer: Analyzer, content: str, rel_path: str = "") -> list[Violation]:
    try:
        return list(analyzer.analyze(content))
    except Exception:
        logger.debug("%s analyzer failed on %s; category degraded to PASS", analyzer.category, rel_path, exc_info=True)
        return []


def split_lines(content: str) -> list[str]:
    return content.split("\n")
