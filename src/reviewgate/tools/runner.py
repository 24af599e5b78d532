from __future__ import annotations

import asyncio
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from reviewgate.config import ReviewConfig
from reviewgate.logging import get_logger

logger = get_logger("tools")


class ToolFailure(RuntimeError):
    """A tool could not run or produced output that cannot be trusted."""

    def __init__(self, tool: str, detail: str, command: list[str] | None = None) -> None:
        super().__init__(f"{tool} failed: {detail}")
        self.tool = tool
        self.detail = detail
        self.command = list(command or [])


class ToolchainMismatch(RuntimeError):
    pass


@dataclass(slots=True, frozen=True)
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str
    elapsed_ms: float = 0.0


class CommandRunner(Protocol):
    async def run(self, command: list[str], cwd: Path, timeout: float) -> ProcessResult:
        ...


class SubprocessRunner:
    """Runs commands with ``asyncio`` subprocesses and a hard timeout."""

    async def run(self, command: list[str], cwd: Path, timeout: float) -> ProcessResult:
        executable = shutil.which(command[0]) or command[0]
        started = time.perf_counter()
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *command[1:],
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise ToolFailure(command[0], f"cannot start process: {exc}", command) from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except TimeoutError as exc:
            process.kill()
            await process.wait()
            raise ToolFailure(command[0], f"timed out after {timeout:g}s", command) from exc

        elapsed = (time.perf_counter() - started) * 1000
        logger.debug("%s exited %s in %.0fms", " ".join(command[:4]), process.returncode, elapsed)
        return ProcessResult(
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            elapsed_ms=elapsed,
        )


def tool_command(config: ReviewConfig, repo_root: Path, tool: str, *args: str) -> list[str]:
    toolchain = config.toolchain_path(repo_root)
    if toolchain.is_dir():
        return ["npx", "--prefix", str(toolchain), tool, *args]
    return ["npx", tool, *args]
