from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import FakeRunner, write
from reviewgate.tools.runner import ProcessResult, ToolchainMismatch, ToolFailure
from reviewgate.tools.tsc import (
    GLOBAL_KEY,
    build_synthetic_tsconfig,
    parse_tsc_output,
    preflight,
    project_tsconfig,
    resolve_tsconfig,
    run_compiler,
)

TSC_OUTPUT = "\n".join(
    [
        "lib/a.ts(3,5): error TS2322: Type 'x' is not assignable.",
        "components/B.tsx:10:2 - error TS7006: Parameter 'p' implicitly has an 'any' type.",
        "error TS5083: Cannot read file 'tsconfig.base.json'.",
        "weird error TS9999 thing",
        "Found 4 errors.",
    ]
)


def test_parse_tsc_output_groups_both_formats(tmp_path: Path) -> None:
    output = parse_tsc_output(TSC_OUTPUT, tmp_path, "tsconfig.json")

    assert output.total_errors == 4
    first = output.by_file["lib/a.ts"][0]
    assert (first.line, first.column, first.code) == (3, 5, "TS2322")
    assert output.by_file["components/B.tsx"][0].code == "TS7006"
    assert [item.code for item in output.by_file[GLOBAL_KEY]] == ["TS5083", "UNKNOWN"]
    assert output.tsconfig_path == "tsconfig.json"


def test_parse_tsc_output_absolute_paths_become_relative(tmp_path: Path) -> None:
    line = f"{tmp_path / 'lib' / 'a.ts'}(1,1): error TS1005: ';' expected."

    output = parse_tsc_output(line, tmp_path)

    assert list(output.by_file) == ["lib/a.ts"]


def test_synthetic_tsconfig_reanchors_and_collapses() -> None:
    base = {
        "compilerOptions": {"strict": True, "paths": {"@/*": ["./*"]}},
        "include": ["**/*.ts", "src/**/*.ts"],
        "exclude": ["node_modules"],
    }
    subtree = {"compilerOptions": {"noEmit": True}, "include": ["./app/**/*.tsx"]}

    synthetic = build_synthetic_tsconfig(base, subtree, "../../../..")

    assert synthetic["include"] == [
        "../../../../**/*.ts",
        "../../../../app/**/*.tsx",
        "../../../../next-env.d.ts",
        "../../../../.next/types/**/*.ts",
    ]
    assert synthetic["exclude"] == [
        "../../../../node_modules",
        "../../../../.reviewgate",
        "../../../../.next",
        "../../../../dist",
        "../../../../build",
    ]
    assert synthetic["compilerOptions"]["baseUrl"] == "../../../.."
    assert synthetic["compilerOptions"]["strict"] is True
    assert synthetic["compilerOptions"]["noEmit"] is True


def test_synthetic_tsconfig_pairs_ts_and_tsx_globs() -> None:
    synthetic = build_synthetic_tsconfig({"include": ["src/**/*.ts"]}, {}, "")

    assert synthetic["include"][-1] == "**/*.tsx"
    assert "src/**/*.ts" in synthetic["include"]
    assert "compilerOptions" not in synthetic


def test_resolve_tsconfig_scopes(repo: Path, config) -> None:
    assert resolve_tsconfig(repo, config) is None
    assert project_tsconfig(repo) is None

    project = write(repo, "tsconfig.json", json.dumps({"include": ["**/*.ts"]}))

    assert resolve_tsconfig(repo, config, scope="project") == project
    assert resolve_tsconfig(repo, config, scope="subtree") == project
    assert resolve_tsconfig(repo, config, override=Path("custom.json")) == repo / "custom.json"
    assert project_tsconfig(repo) == project


def test_resolve_tsconfig_auto_writes_runtime_file(repo: Path, config) -> None:
    write(repo, "tsconfig.json", json.dumps({"include": ["**/*.ts"]}))
    write(repo, config.compiler.subtree_tsconfig, json.dumps({"compilerOptions": {"strict": True}}))

    resolved = resolve_tsconfig(repo, config)

    assert resolved == config.output_path(repo) / ".tmp" / "tsc" / "tsconfig.runtime.json"
    data = json.loads(resolved.read_text(encoding="utf-8"))
    assert data["include"][0] == "../../../../**/*.ts"
    assert data["compilerOptions"] == {"strict": True}


@pytest.mark.asyncio
async def test_run_compiler_without_tsconfig_is_skipped(repo: Path, config, fake_runner: FakeRunner) -> None:
    output = await run_compiler(fake_runner, repo, config, None)

    assert output.total_errors == 0
    assert fake_runner.calls == []


@pytest.mark.asyncio
async def test_run_compiler_clean_and_failing(repo: Path, config) -> None:
    tsconfig = write(repo, "tsconfig.json", "{}")

    clean = await run_compiler(FakeRunner({"tsc": ProcessResult(0, "", "")}), repo, config, tsconfig)
    assert clean.total_errors == 0
    assert clean.tsconfig_path == "tsconfig.json"

    failing = await run_compiler(FakeRunner({"tsc": ProcessResult(2, TSC_OUTPUT, "")}), repo, config, tsconfig)
    assert failing.total_errors == 4
    assert failing.raw == TSC_OUTPUT


@pytest.mark.asyncio
async def test_run_compiler_crash_without_diagnostics_is_failure(repo: Path, config) -> None:
    tsconfig = write(repo, "tsconfig.json", "{}")
    runner = FakeRunner({"tsc": ProcessResult(1, "", "sh: tsc: command not found")})

    with pytest.raises(ToolFailure) as info:
        await run_compiler(runner, repo, config, tsconfig)

    assert "command not found" in info.value.detail


@pytest.mark.asyncio
async def test_preflight_skipped_without_toolchain(repo: Path, config, fake_runner: FakeRunner) -> None:
    assert await preflight(fake_runner, repo, config, None) == (None, None)
    assert fake_runner.calls == []


def _versions(project: str, review: str):
    def respond(command: list[str], _cwd: Path) -> ProcessResult:
        return ProcessResult(0, f"Version {review if '--prefix' in command else project}\n", "")

    return respond


@pytest.mark.asyncio
async def test_preflight_matching_versions(repo: Path, config) -> None:
    config.toolchain_path(repo).mkdir(parents=True)
    runner = FakeRunner({"tsc": _versions("5.4.5", "5.4.5")})

    assert await preflight(runner, repo, config, None) == ("5.4.5", "5.4.5")
    assert len(runner.calls_for("tsc")) == 2


@pytest.mark.asyncio
async def test_preflight_mismatch_explains_alignment(repo: Path, config) -> None:
    config.toolchain_path(repo).mkdir(parents=True)
    tsconfig = write(repo, "tsconfig.json", "{}")
    runner = FakeRunner({"tsc": _versions("5.3.3", "5.4.5")})

    with pytest.raises(ToolchainMismatch) as info:
        await preflight(runner, repo, config, tsconfig)

    message = str(info.value)
    assert "Project tsc: 5.3.3" in message
    assert "Review  tsc: 5.4.5" in message
    assert "typescript@5.3.3" in message
    assert "Tsconfig : tsconfig.json" in message


@pytest.mark.asyncio
async def test_preflight_unknown_version_is_mismatch(repo: Path, config) -> None:
    config.toolchain_path(repo).mkdir(parents=True)
    runner = FakeRunner({"tsc": ToolFailure("tsc", "cannot start process")})

    with pytest.raises(ToolchainMismatch):
        await preflight(runner, repo, config, None)
