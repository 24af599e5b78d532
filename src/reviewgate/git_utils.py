from __future__ import annotations

import subprocess
from pathlib import Path

from reviewgate.utils import dedupe


class GitError(RuntimeError):
    pass


def _run_git(repo: Path, args: list[str]) -> str:
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=repo,
            check=False,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise GitError("git executable not found") from exc
    if proc.returncode != 0:
        raise GitError(proc.stderr.strip() or proc.stdout.strip())
    return proc.stdout


def parse_porcelain(output: str) -> list[str]:
    """Return touched paths from ``git status --porcelain -z`` output.

    Deleted entries are dropped and renames/copies resolve to their new path.
    """
    tokens = [token for token in output.split("\0") if token]
    paths: list[str] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if len(token) < 4:
            continue
        status, rest = token[:2], token[3:].strip()
        if "D" in status:
            continue
        if status[0] in {"R", "C"}:
            # -z emits the original path as the following token; it is not a separate entry.
            if index < len(tokens):
                index += 1
        paths.append(rest)
    return dedupe(paths)


def changed_files(repo: Path) -> list[str]:
    return parse_porcelain(_run_git(repo, ["status", "--porcelain", "-z", "--untracked-files=all"]))
