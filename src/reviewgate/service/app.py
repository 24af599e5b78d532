from __future__ import annotations

import json
import os
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from reviewgate.concurrency import MapLimitError
from reviewgate.config import ConfigError, ReviewConfig, load_config
from reviewgate.git_utils import GitError
from reviewgate.pipeline import NoReviewableFiles, run_review
from reviewgate.schemas import ReviewOutcome
from reviewgate.tools.runner import ToolchainMismatch, ToolFailure

WORKSPACE_ROOT = Path(os.getenv("REVIEWGATE_WORKSPACE", ".")).resolve()
DEFAULT_CONFIG_PATH = ".reviewgate/config.yaml"


class ReviewRequest(BaseModel):
    repo_path: str = "."
    config_path: str = DEFAULT_CONFIG_PATH
    files: list[str] = Field(default_factory=list)
    porcelain: bool = False
    report_all: bool = False
    concurrency: int | None = Field(default=None, ge=1, le=64)
    autofix: bool | None = None


app = FastAPI(title="reviewgate API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _resolve_repo(path_value: str) -> Path:
    raw = Path(path_value)
    resolved = raw.resolve() if raw.is_absolute() else (WORKSPACE_ROOT / raw).resolve()

    try:
        resolved.relative_to(WORKSPACE_ROOT)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"repo_path must stay inside workspace root: {WORKSPACE_ROOT}",
        ) from exc

    if not resolved.exists() or not resolved.is_dir():
        raise HTTPException(status_code=400, detail=f"repo_path is not a directory: {resolved}")

    return resolved


def _load_config(repo: Path, config_path: str) -> ReviewConfig:
    raw = Path(config_path)
    try:
        return load_config(raw if raw.is_absolute() else repo / raw)
    except ConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


async def _run_review(repo: Path, config: ReviewConfig, payload: ReviewRequest) -> ReviewOutcome:
    return await run_review(
        repo,
        config,
        files=payload.files,
        porcelain=payload.porcelain,
        report_all=payload.report_all,
        autofix=payload.autofix,
        args=["api"],
    )


@app.get("/api/health")
def health() -> dict:
    return {
        "status": "ok",
        "service": "reviewgate",
        "workspace_root": str(WORKSPACE_ROOT),
    }


@app.post("/api/review")
async def review(payload: ReviewRequest) -> dict:
    repo = _resolve_repo(payload.repo_path)
    config = _load_config(repo, payload.config_path)
    if payload.concurrency:
        config.concurrency = payload.concurrency

    try:
        outcome = await _run_review(repo, config, payload)
    except ToolchainMismatch as exc:
        raise HTTPException(status_code=409, detail={"message": "toolchain mismatch", "detail": str(exc)}) from exc
    except ToolFailure as exc:
        raise HTTPException(
            status_code=502,
            detail={"message": str(exc), "tool": exc.tool, "command": exc.command},
        ) from exc
    except MapLimitError as exc:
        raise HTTPException(
            status_code=502,
            detail={"message": str(exc), "failed": sorted(exc.errors)},
        ) from exc
    except (GitError, NoReviewableFiles) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "ok": outcome.passed,
        "status": outcome.payload["summary"]["status"],
        "exit_code": outcome.exit_code,
        "summary": outcome.summary_text,
        "report_path": str(outcome.report_path),
        "report": outcome.payload,
    }


@app.get("/api/report")
def get_report(repo_path: str = ".", config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    repo = _resolve_repo(repo_path)
    report_path = _load_config(repo, config_path).report_path(repo)
    if not report_path.exists():
        raise HTTPException(status_code=404, detail=f"missing report: {report_path}")
    return {
        "ok": True,
        "report_path": str(report_path),
        "report": json.loads(report_path.read_text(encoding="utf-8")),
    }


def main() -> None:
    import uvicorn

    uvicorn.run("reviewgate.service.app:app", host="127.0.0.1", port=9000, reload=False)


if __name__ == "__main__":
    main()
