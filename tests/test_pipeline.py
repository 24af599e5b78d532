from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from conftest import FakeRunner, eslint_json, write
from reviewgate.paths import MODE_EXPLICIT, MODE_FULL, MODE_PORCELAIN
from reviewgate.pipeline import NoReviewableFiles, run_review
from reviewgate.schemas import CONSOLE, LINT, Absent
from reviewgate.tools.eslint import MISSING_CONFIG_BATCH, MISSING_CONFIG_REPO
from reviewgate.tools.runner import ProcessResult, ToolchainMismatch, ToolFailure
from reviewgate.utils import read_json


def _volatile_free(payload: dict) -> dict:
    clean = json.loads(json.dumps(payload))
    clean.pop("generatedAt")
    clean["summary"].pop("totalMs")
    clean["summary"].pop("totalHuman")
    return clean


@pytest.mark.asyncio
async def test_single_console_error_fails_review(repo: Path, config, fake_runner: FakeRunner) -> None:
    write(repo, "lib/a.ts", 'console.error("boom");\n')

    outcome = await run_review(repo, config, runner=fake_runner, args=["run"])

    assert outcome.exit_code == 1
    assert [result.failing_categories() for result in outcome.results] == [[CONSOLE]]
    payload = read_json(outcome.report_path)
    assert payload["summary"]["status"] == "fail"
    assert payload["options"]["reviewMode"] == MODE_FULL
    assert payload["args"] == ["run"]
    issue = payload["results"][0]["issues"][0]
    assert (issue["source"], issue["type"], issue["line"]) == ("console", "error", 1)
    assert "repo" not in payload
    assert "ACTION REQUIRED: Read and apply → .reviewgate/output/review-results.json" in outcome.summary_text


@pytest.mark.asyncio
async def test_missing_lint_config_skips_lint_with_warnings(tmp_path: Path, config, fake_runner: FakeRunner) -> None:
    write(tmp_path, "lib/a.ts", "export const a = 1;\n")

    outcome = await run_review(tmp_path, config, runner=fake_runner)

    assert outcome.exit_code == 0
    state = outcome.results[0].categories[LINT]
    assert isinstance(state, Absent)
    assert state.reason == MISSING_CONFIG_BATCH
    assert fake_runner.calls_for("eslint") == []
    assert outcome.payload["warnings"] == [MISSING_CONFIG_BATCH, MISSING_CONFIG_REPO]
    assert outcome.payload["results"] == []
    assert "lint" not in outcome.repo.gates()


@pytest.mark.asyncio
async def test_lint_findings_flow_into_file_and_repo_gate(repo: Path, config) -> None:
    target = write(repo, "lib/a.ts", "export const a = 1;\n").resolve()
    stdout = eslint_json({target: [{"severity": 2, "line": 1, "column": 1, "message": "bad", "ruleId": "no-var"}]})
    runner = FakeRunner({"eslint": ProcessResult(1, stdout, "")})

    outcome = await run_review(repo, config, runner=runner, files=["lib/a.ts"])

    assert outcome.results[0].failing_categories() == [LINT]
    assert outcome.payload["options"]["reviewMode"] == MODE_EXPLICIT
    assert outcome.payload["repo"]["lint"]["totalErrors"] == 1
    assert len(runner.calls_for("eslint")) == 2


@pytest.mark.asyncio
async def test_disabled_batch_still_runs_repo_gate(repo: Path, config, fake_runner: FakeRunner) -> None:
    write(repo, "lib/a.ts", "export const a = 1;\n")
    config.lint.batch = False

    outcome = await run_review(repo, config, runner=fake_runner)

    assert isinstance(outcome.results[0].categories[LINT], Absent)
    calls = fake_runner.calls_for("eslint")
    assert len(calls) == 1
    assert "--cache" not in calls[0]
    assert outcome.repo.gates()["lint"] is True


@pytest.mark.asyncio
async def test_tool_failure_is_fatal(repo: Path, config) -> None:
    write(repo, "lib/a.ts", "export const a = 1;\n")
    runner = FakeRunner({"knip": ProcessResult(2, "", "ERROR: knip crashed")})

    with pytest.raises(ToolFailure) as info:
        await run_review(repo, config, runner=runner)

    assert info.value.tool == "knip"
    assert not config.report_path(repo).exists()


@pytest.mark.asyncio
async def test_compiler_version_mismatch_aborts_before_any_tool_work(repo: Path, config) -> None:
    source = "// keep\nconsole.log(1);\n"
    write(repo, "lib/a.ts", source)
    config.toolchain_path(repo).mkdir(parents=True)

    def versions(command: list[str], _cwd: Path) -> ProcessResult:
        return ProcessResult(0, "Version 5.4.5\n" if "--prefix" in command else "Version 5.3.3\n", "")

    runner = FakeRunner({"tsc": versions})

    with pytest.raises(ToolchainMismatch):
        await run_review(repo, config, runner=runner, autofix=True)

    assert all(command[-1] == "-v" for command in runner.calls)
    assert len(runner.calls_for("tsc")) == 2
    for tool in ("eslint", "knip", "jscpd"):
        assert runner.calls_for(tool) == []
    assert (repo / "lib" / "a.ts").read_text(encoding="utf-8") == source
    assert not config.report_path(repo).exists()


@pytest.mark.asyncio
async def test_full_scan_without_files_is_fatal(repo: Path, config, fake_runner: FakeRunner) -> None:
    with pytest.raises(NoReviewableFiles):
        await run_review(repo, config, runner=fake_runner)

    assert fake_runner.calls == []


@pytest.mark.asyncio
async def test_porcelain_without_changes_still_runs_repo_gates(repo: Path, config, fake_runner: FakeRunner) -> None:
    subprocess.run(["git", "init", "-q"], cwd=repo, check=True)

    outcome = await run_review(repo, config, porcelain=True, runner=fake_runner)

    assert outcome.results == []
    assert outcome.exit_code == 0
    assert outcome.payload["options"]["reviewMode"] == MODE_PORCELAIN
    assert len(fake_runner.calls_for("knip")) == 1
    assert "REVIEW: Touched Files Only" in outcome.summary_text


@pytest.mark.asyncio
async def test_autofix_runs_before_analysis(repo: Path, config, fake_runner: FakeRunner) -> None:
    write(repo, "lib/a.ts", "// note\nexport const a = 1;\nconsole.log(a);\n")

    outcome = await run_review(repo, config, runner=fake_runner, autofix=True)

    assert outcome.exit_code == 0
    assert outcome.payload["options"]["autofixStats"]["commentsRemoved"] == 1
    assert outcome.payload["options"]["autofixStats"]["consolesRemoved"] == 1
    assert (repo / "lib" / "a.ts").read_text(encoding="utf-8").strip() == "export const a = 1;"


@pytest.mark.asyncio
async def test_debug_prepends_detailed_summary(repo: Path, config, fake_runner: FakeRunner) -> None:
    write(repo, "lib/a.ts", 'console.warn("careful");\n')

    outcome = await run_review(repo, config, runner=fake_runner, debug=True)

    assert outcome.summary_text.startswith("VIOLATIONS (blocking):")
    assert "Timing: " in outcome.summary_text
    assert outcome.payload["options"]["debugMode"] is True


@pytest.mark.asyncio
async def test_repeated_runs_produce_identical_reports(repo: Path, config, fake_runner: FakeRunner) -> None:
    write(repo, "lib/a.ts", 'console.error("boom");\n')
    write(repo, "components/B.tsx", "export const B = 1;\n")

    first = await run_review(repo, config, runner=fake_runner)
    second = await run_review(repo, config, runner=fake_runner)

    assert _volatile_free(first.payload) == _volatile_free(second.payload)
