from __future__ import annotations

import asyncio
import re
from pathlib import Path

from reviewgate.logging import get_logger

logger = get_logger("file_cache")

NEWLINE_RE = re.compile(r"\r?\n")


class FileCache:
    """Read-once view of source files for a single review run.

    Entries are keyed by absolute path and written at most once. An unreadable
    file is cached as an empty string. With ``enabled=False`` every read hits
    the disk.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._contents: dict[Path, str] = {}
        self.reads = 0

    @staticmethod
    def _key(path: Path) -> Path:
        return path if path.is_absolute() else path.resolve()

    def _read_disk(self, path: Path) -> str:
        self.reads += 1
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.debug("cannot read %s: %s", path, exc)
            return ""

    def read(self, path: Path) -> str:
        key = self._key(path)
        if not self.enabled:
            return self._read_disk(key)
        if key not in self._contents:
            self._contents[key] = self._read_disk(key)
        return self._contents[key]

    async def load(self, path: Path) -> str:
        key = self._key(path)
        if self.enabled and key in self._contents:
            return self._contents[key]
        content = await asyncio.to_thread(self._read_disk, key)
        if not self.enabled:
            return content
        return self._contents.setdefault(key, content)

    def count_lines(self, path: Path) -> int:
        return count_lines(self.read(path))

    def invalidate(self, path: Path) -> None:
        self._contents.pop(self._key(path), None)


def count_lines(content: str) -> int:
    if not content:
        return 0
    return len(NEWLINE_RE.split(content))
