from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from reviewgate.config import ReviewConfig
from reviewgate.schemas import FileTask
from reviewgate.utils import path_matches, to_posix

MODE_EXPLICIT = "File List Supplied"
MODE_PORCELAIN = "Touched Files Only"
MODE_FULL = "Full Project Scan"


def normalize_rel(value: str) -> str:
    rel = to_posix(value).strip()
    while rel.startswith("./"):
        rel = rel[2:]
    return rel


def is_reviewable(rel_path: str, config: ReviewConfig) -> bool:
    rel = normalize_rel(rel_path)
    if not rel or rel.startswith("../") or rel.startswith("/"):
        return False
    if not any(rel.startswith(f"{root.rstrip('/')}/") for root in config.include_roots):
        return False
    parts = PurePosixPath(rel).parts
    if any(part in config.exclude_dirs for part in parts[:-1]):
        return False
    if path_matches(rel, config.exclude_globs):
        return False
    return PurePosixPath(rel).suffix.lower() in config.extensions


def discover_files(repo_root: Path, config: ReviewConfig) -> list[Path]:
    found: dict[str, Path] = {}
    for root in config.include_roots:
        base = repo_root / root
        if not base.is_dir():
            continue
        for path in base.rglob("*"):
            if not path.is_file():
                continue
            rel = path.relative_to(repo_root).as_posix()
            if is_reviewable(rel, config):
                found.setdefault(rel, path)
    return [found[rel] for rel in sorted(found)]


def build_tasks(paths: Iterable[str | Path], repo_root: Path, config: ReviewConfig) -> list[FileTask]:
    root = repo_root.resolve()
    tasks: list[FileTask] = []
    seen: set[str] = set()
    for item in paths:
        raw = Path(item)
        absolute = (raw if raw.is_absolute() else root / raw).resolve()
        try:
            rel = absolute.relative_to(root).as_posix()
        except ValueError:
            continue
        if rel in seen or not is_reviewable(rel, config):
            continue
        if not absolute.is_file():
            continue
        seen.add(rel)
        tasks.append(FileTask(path=absolute, rel_path=rel))
    return tasks


def file_type_for(rel_path: str) -> str:
    path = PurePosixPath(normalize_rel(rel_path))
    dir_name = path.parent.as_posix()
    if "components" in dir_name:
        return "components"
    if "hooks" in dir_name:
        return "hooks"
    if "types" in dir_name:
        return "types"
    if "services" in dir_name:
        return "services"
    if "repositories" in dir_name:
        return "repositories"
    if "app" in dir_name and "route" in path.name:
        return "routes"
    if "lib" in dir_name or "utils" in dir_name:
        return "utils"
    return "components"


def review_mode(porcelain: bool, explicit: bool) -> str:
    if porcelain:
        return MODE_PORCELAIN
    if explicit:
        return MODE_EXPLICIT
    return MODE_FULL
