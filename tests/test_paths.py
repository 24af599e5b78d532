from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from conftest import write
from reviewgate.git_utils import GitError, changed_files, parse_porcelain
from reviewgate.paths import (
    MODE_EXPLICIT,
    MODE_FULL,
    MODE_PORCELAIN,
    build_tasks,
    discover_files,
    file_type_for,
    is_reviewable,
    review_mode,
)


@pytest.mark.parametrize(
    ("rel", "expected"),
    [
        ("components/Button.tsx", True),
        ("src/lib/format.ts", True),
        ("./app/page.tsx", True),
        ("components/types.d.ts", False),
        ("components/Button.js", False),
        ("scripts/build.ts", False),
        ("lib/node_modules/pkg/index.ts", False),
        ("components/test/Button.test.tsx", False),
        ("../outside/lib/a.ts", False),
    ],
)
def test_is_reviewable(rel: str, expected: bool, config) -> None:
    assert is_reviewable(rel, config) is expected


def test_discover_files_is_sorted_and_filtered(repo: Path, config) -> None:
    write(repo, "lib/b.ts", "")
    write(repo, "components/A.tsx", "")
    write(repo, "components/A.d.ts", "")
    write(repo, "scripts/tool.ts", "")

    found = [path.relative_to(repo).as_posix() for path in discover_files(repo, config)]

    assert found == ["components/A.tsx", "lib/b.ts"]


def test_build_tasks_dedupes_and_drops_missing(repo: Path, config) -> None:
    write(repo, "lib/a.ts", "")

    tasks = build_tasks(["lib/a.ts", str(repo / "lib" / "a.ts"), "lib/gone.ts", "README.md"], repo, config)

    assert [task.rel_path for task in tasks] == ["lib/a.ts"]
    assert tasks[0].path == (repo / "lib" / "a.ts").resolve()


@pytest.mark.parametrize(
    ("rel", "expected"),
    [
        ("components/Button.tsx", "components"),
        ("hooks/useThing.ts", "hooks"),
        ("types/user.ts", "types"),
        ("services/api.ts", "services"),
        ("repositories/users.ts", "repositories"),
        ("app/api/users/route.ts", "routes"),
        ("lib/format.ts", "utils"),
        ("app/page.tsx", "components"),
    ],
)
def test_file_type_for(rel: str, expected: str) -> None:
    assert file_type_for(rel) == expected


def test_review_mode_labels() -> None:
    assert review_mode(porcelain=True, explicit=False) == MODE_PORCELAIN
    assert review_mode(porcelain=False, explicit=True) == MODE_EXPLICIT
    assert review_mode(porcelain=False, explicit=False) == MODE_FULL


def test_parse_porcelain_skips_deletions_and_follows_renames() -> None:
    output = "\0".join(
        [
            " M lib/a.ts",
            "D  lib/removed.ts",
            "R  lib/new.ts",
            "lib/old.ts",
            "?? components/New.tsx",
            " M lib/a.ts",
        ]
    )

    assert parse_porcelain(output + "\0") == ["lib/a.ts", "lib/new.ts", "components/New.tsx"]


def test_changed_files_reads_git_status(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    subprocess.run(["git", "init", "-q"], cwd=repo, check=True)
    write(repo, "lib/a.ts", "export const a = 1;\n")

    assert changed_files(repo) == ["lib/a.ts"]


def test_changed_files_outside_git_raises(tmp_path: Path) -> None:
    with pytest.raises(GitError):
        changed_files(tmp_path)
