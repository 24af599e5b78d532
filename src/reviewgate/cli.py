from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import typer

from reviewgate.config import ReviewConfig, ensure_config, load_config
from reviewgate.logging import configure_logging
from reviewgate.pipeline import FATAL_ERRORS, run_review
from reviewgate.quality.watch import run_watch
from reviewgate.report.writer import write_report_markdown
from reviewgate.schemas import ReviewOutcome

app = typer.Typer(help="reviewgate: one pass/fail quality gate over lint, compiler, dead-code and duplicate checks")

EXIT_FATAL = 2
DEFAULT_CONFIG_PATH = Path(".reviewgate/config.yaml")


def _resolve(repo: Path, path: Path) -> Path:
    return path if path.is_absolute() else (repo / path).resolve()


def _split_roots(value: str) -> list[str] | None:
    roots = [item.strip() for item in value.split(",") if item.strip()]
    return roots or None


def _load(repo: Path, config: Path) -> ReviewConfig:
    return load_config(_resolve(repo, config))


@app.command()
def init(
    repo: Path = typer.Option(Path("."), help="Repository root"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Config path"),
    force: bool = typer.Option(False, help="Overwrite existing config"),
) -> None:
    repo = repo.resolve()
    config_path = _resolve(repo, config)
    ensure_config(config_path, force=force)

    review_config = load_config(config_path)
    output_dir = review_config.output_path(repo)
    output_dir.mkdir(parents=True, exist_ok=True)

    typer.echo(f"[reviewgate] initialized config at {config_path}")
    typer.echo(f"[reviewgate] output directory: {output_dir}")


@app.command()
def run(
    files: list[str] | None = typer.Argument(None, help="Files to review (default: full project scan)"),
    repo: Path = typer.Option(Path("."), help="Repository root"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Config path"),
    porcelain: bool = typer.Option(False, help="Review only files touched in the working tree (git status)"),
    concurrency: int = typer.Option(0, help="Per-file concurrency (0: from config)"),
    jscpd_min_tokens: int = typer.Option(0, help="Duplicate detector token threshold (0: from config)"),
    jscpd_include: str = typer.Option("", help="Comma-separated roots for the duplicate detector"),
    autofix: bool | None = typer.Option(None, "--autofix/--no-autofix", help="Strip comments and debug logs first"),
    debug: bool = typer.Option(False, help="Print per-file violations, timings and debug logs"),
    report_all: bool = typer.Option(False, help="Write every reviewed file into the report on failure"),
    tsconfig: Path | None = typer.Option(None, help="Compiler configuration override"),
    ts_scope: str = typer.Option("", help="auto|project|subtree (default: from config)"),
    markdown: Path | None = typer.Option(None, help="Also write a Markdown rendering of the report"),
    log_file: Path | None = typer.Option(None, help="Write debug logs to this file"),
) -> None:
    repo = repo.resolve()
    configure_logging(verbose=debug, log_file=_resolve(repo, log_file) if log_file else None)

    try:
        review_config = _load(repo, config)
        if concurrency > 0:
            review_config.concurrency = concurrency
        outcome = asyncio.run(
            run_review(
                repo,
                review_config,
                files=files or [],
                porcelain=porcelain,
                report_all=report_all,
                debug=debug,
                tsconfig_override=tsconfig,
                ts_scope=ts_scope.strip().lower() or None,
                jscpd_min_tokens=jscpd_min_tokens or None,
                jscpd_include=_split_roots(jscpd_include),
                autofix=autofix,
                args=sys.argv[1:],
            )
        )
    except FATAL_ERRORS as exc:
        typer.echo(f"[reviewgate] error: {exc}", err=True)
        raise typer.Exit(code=EXIT_FATAL) from exc

    _finish(repo, outcome, markdown)


def _finish(repo: Path, outcome: ReviewOutcome, markdown: Path | None) -> None:
    typer.echo(outcome.summary_text.rstrip("\n"))
    if markdown is not None:
        target = _resolve(repo, markdown)
        write_report_markdown(outcome.payload, target)
        typer.echo(f"[reviewgate] markdown: {target}")
    if outcome.exit_code:
        raise typer.Exit(code=outcome.exit_code)


@app.command()
def watch(
    repo: Path = typer.Option(Path("."), help="Repository root"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Config path"),
    delay: float = typer.Option(1.2, help="Debounce delay in seconds"),
    debug: bool = typer.Option(False, help="Print debug logs"),
) -> None:
    repo = repo.resolve()
    configure_logging(verbose=debug)
    try:
        review_config = _load(repo, config)
    except FATAL_ERRORS as exc:
        typer.echo(f"[reviewgate] error: {exc}", err=True)
        raise typer.Exit(code=EXIT_FATAL) from exc

    def review_once() -> int:
        try:
            outcome = asyncio.run(run_review(repo, review_config, porcelain=True, debug=debug))
        except FATAL_ERRORS as exc:
            typer.echo(f"[reviewgate] error: {exc}", err=True)
            return EXIT_FATAL
        typer.echo(outcome.summary_text.rstrip("\n"))
        return outcome.exit_code

    ignored = [review_config.output_dir, review_config.toolchain_dir]
    raise typer.Exit(code=run_watch(repo, review_once, delay_seconds=max(0.2, delay), extra_ignored=ignored))


if __name__ == "__main__":
    app()
