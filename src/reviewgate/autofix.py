from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass

from reviewgate.concurrency import settle_limit
from reviewgate.file_cache import FileCache
from reviewgate.logging import get_logger
from reviewgate.schemas import FileTask

logger = get_logger("autofix")

FIXABLE_SUFFIXES = {".ts", ".tsx", ".js", ".jsx"}

BLOCK_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/")
LINE_COMMENT_RE = re.compile(r"^[ \t]*//.*$", re.MULTILINE)
DEBUG_CONSOLE_RE = re.compile(
    r"^[ \t]*console\.(?:log|debug|info)\([^)]*\);?(?:[ \t]*//.*)?[ \t]*$",
    re.MULTILINE,
)
BLANK_RUN_RE = re.compile(r"\n\s*\n\s*\n")


@dataclass(slots=True)
class AutofixStats:
    files_processed: int = 0
    files_changed: int = 0
    comments_removed: int = 0
    consoles_removed: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "filesProcessed": self.files_processed,
            "filesChanged": self.files_changed,
            "commentsRemoved": self.comments_removed,
            "consolesRemoved": self.consoles_removed,
            "errors": self.errors,
        }


def _collapse_blank_runs(content: str) -> str:
    previous = None
    while previous != content:
        previous = content
        content = BLANK_RUN_RE.sub("\n\n", content)
    return content


def strip_comments(content: str) -> tuple[str, int]:
    """Remove block comments and whole-line ``//`` comments.

    Trailing ``//`` after code is kept; it is indistinguishable from URLs in
    string and JSX attribute values without a parser.
    """
    result, blocks = BLOCK_COMMENT_RE.subn("", content)
    result, lines = LINE_COMMENT_RE.subn("", result)
    return _collapse_blank_runs(result), blocks + lines


def strip_debug_consoles(content: str) -> tuple[str, int]:
    result, removed = DEBUG_CONSOLE_RE.subn("", content)
    return _collapse_blank_runs(result), removed


def fix_content(content: str) -> tuple[str, int, int]:
    stripped, comments = strip_comments(content)
    fixed, consoles = strip_debug_consoles(stripped)
    return fixed, comments, consoles


def _fix_file(task: FileTask) -> tuple[bool, int, int]:
    original = task.path.read_text(encoding="utf-8")
    fixed, comments, consoles = fix_content(original)
    changed = fixed != original
    if changed:
        task.path.write_text(fixed, encoding="utf-8")
    return changed, comments, consoles


async def apply_autofix(tasks: list[FileTask], cache: FileCache, concurrency: int) -> AutofixStats:
    """Rewrite reviewable files in place before analysis.

    Warnings and errors on the console are left alone.
    """
    targets = [task for task in tasks if task.path.suffix.lower() in FIXABLE_SUFFIXES]

    async def fix(task: FileTask, _index: int) -> tuple[bool, int, int]:
        outcome = await asyncio.to_thread(_fix_file, task)
        cache.invalidate(task.path)
        return outcome

    stats = AutofixStats()
    outcomes = await settle_limit(targets, concurrency, fix)
    for task, outcome in zip(targets, outcomes):
        if not outcome.ok or outcome.value is None:
            stats.errors += 1
            logger.warning("autofix failed on %s: %s", task.rel_path, outcome.error)
            continue
        changed, comments, consoles = outcome.value
        stats.files_processed += 1
        stats.files_changed += int(changed)
        stats.comments_removed += comments
        stats.consoles_removed += consoles
    logger.info(
        "autofix: %s file(s), %s changed, %s comment(s), %s console call(s), %s error(s)",
        stats.files_processed,
        stats.files_changed,
        stats.comments_removed,
        stats.consoles_removed,
        stats.errors,
    )
    return stats
