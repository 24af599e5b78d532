from __future__ import annotations

from functools import partial

from reviewgate.analyzers.comments import analyze_comments
from reviewgate.analyzers.common import Analyzer, FunctionAnalyzer, safe_analyze
from reviewgate.analyzers.console import analyze_console
from reviewgate.analyzers.fallback import analyze_fallback
from reviewgate.analyzers.framework import analyze_framework
from reviewgate.analyzers.size import analyze_size, resolve_limit
from reviewgate.analyzers.type_annotations import analyze_type_annotations
from reviewgate.config import ReviewConfig
from reviewgate.file_cache import FileCache, count_lines
from reviewgate.logging import get_logger
from reviewgate.schemas import (
    COMMENTS,
    CONSOLE,
    FALLBACK,
    SIZE,
    TYPE_ANNOTATIONS,
    FileTask,
    FrameworkHints,
    PerFileResult,
)

logger = get_logger("analyzers.engine")

CONTENT_ANALYZERS: tuple[Analyzer, ...] = (
    FunctionAnalyzer(COMMENTS, analyze_comments),
    FunctionAnalyzer(CONSOLE, analyze_console),
    FunctionAnalyzer(TYPE_ANNOTATIONS, analyze_type_annotations),
    FunctionAnalyzer(FALLBACK, analyze_fallback),
)


def analyze_content(
    task: FileTask,
    content: str,
    config: ReviewConfig,
    analyzers: tuple[Analyzer, ...] = CONTENT_ANALYZERS,
) -> PerFileResult:
    file_type, limit = resolve_limit(task.rel_path, config.size_limits)
    result = PerFileResult(task=task, file_type=file_type, lines=count_lines(content), size_limit=limit)

    size_analyzer = FunctionAnalyzer(SIZE, partial(analyze_size, limit=limit))
    result.record(SIZE, safe_analyze(size_analyzer, content, task.rel_path))
    for analyzer in analyzers:
        result.record(analyzer.category, safe_analyze(analyzer, content, task.rel_path))

    try:
        result.framework = analyze_framework(content)
    except Exception:
        logger.debug("framework hints failed on %s", task.rel_path, exc_info=True)
        result.framework = FrameworkHints()
    return result


async def analyze_task(task: FileTask, cache: FileCache, config: ReviewConfig) -> PerFileResult:
    content = await cache.load(task.path)
    return analyze_content(task, content, config)
