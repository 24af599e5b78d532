from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from reviewgate.config import ReviewConfig
from reviewgate.schemas import RepoSummary, ReviewOutcome
from reviewgate.tools.runner import ProcessResult

Response = ProcessResult | Exception | Callable[[list[str], Path], ProcessResult]


def tool_of(command: list[str]) -> str:
    args = list(command)
    if args and args[0] == "npx":
        args = args[1:]
    if args[:1] == ["--prefix"]:
        args = args[2:]
    return args[0] if args else ""


class FakeRunner:
    """Canned ``CommandRunner``: responses are keyed by tool name."""

    def __init__(self, responses: dict[str, Response] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[list[str]] = []

    def calls_for(self, tool: str) -> list[list[str]]:
        return [command for command in self.calls if tool_of(command) == tool]

    async def run(self, command: list[str], cwd: Path, timeout: float) -> ProcessResult:
        self.calls.append(list(command))
        response = self.responses.get(tool_of(command), ProcessResult(0, "", ""))
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(list(command), cwd)
        return response


def write(repo: Path, rel: str, text: str) -> Path:
    path = repo / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def eslint_json(entries: dict[Path, list[dict]]) -> str:
    return json.dumps([{"filePath": str(path), "messages": messages} for path, messages in entries.items()])


def make_outcome(repo: Path, status: str = "pass") -> ReviewOutcome:
    payload = {
        "generatedAt": "2026-01-01T00:00:00+00:00",
        "args": [],
        "options": {},
        "summary": {"status": status, "message": "", "totalMs": 0, "totalHuman": "0m 00s"},
        "results": [],
    }
    return ReviewOutcome(
        payload=payload,
        summary_text=f"Status: {status.upper()}\n",
        report_path=repo / ".reviewgate" / "output" / "review-results.json",
        results=[],
        repo=RepoSummary(),
    )


@pytest.fixture
def config() -> ReviewConfig:
    return ReviewConfig.default()


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    write(root, "eslint.config.js", "module.exports = [];\n")
    return root


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
