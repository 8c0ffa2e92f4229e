"""
Command-line interface for wikibrief.

Uses Typer to provide commands for running the Matrix bot, a local
console session and one-off lookups. Supports loading .env files for
API key and access token configuration.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv
import typer
from rich.console import Console

from .config import AppConfig, load_config
from .core.errors import BotError
from .runner import lookup_once, run_bot, run_console

app = typer.Typer(add_completion=False)
console = Console()


def _load(
    config: Path | None,
    log_level: str | None,
    output_dir: Path | None,
) -> AppConfig:
    """Load .env and YAML configuration, then apply CLI overrides."""
    load_dotenv()
    cfg = load_config(str(config) if config else None)
    if log_level:
        cfg = replace(cfg, logging=replace(cfg.logging, level=log_level))
    if output_dir is not None:
        cfg = replace(cfg, bot=replace(cfg.bot, output_dir=str(output_dir)))
    return cfg


def _fail(exc: BotError) -> None:
    console.print(f"[bold red]Error:[/bold red] {exc}")
    raise typer.Exit(code=1)


@app.command()
def run(
    config: Path | None = typer.Option(Path("config.yaml"), "--config", "-c", exists=True),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", "-o", help="Override the summary storage directory."
    ),
    drain_timeout: float | None = typer.Option(
        None, "--drain-timeout", help="Seconds to wait for in-flight commands on shutdown."
    ),
):
    """Run the Matrix bot until interrupted.

    Listens for "<command> <query>" messages, replies with a cached or
    freshly generated article summary, and waits for in-flight commands
    to finish on shutdown.
    """
    try:
        cfg = _load(config, log_level, output_dir)
        run_bot(cfg, console=console, drain_timeout=drain_timeout)
    except BotError as exc:
        _fail(exc)


@app.command()
def chat(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", "-o", help="Override the summary storage directory."
    ),
):
    """Read chat lines from stdin and reply on stdout, without a chat server."""
    try:
        cfg = _load(config, log_level, output_dir)
        run_console(cfg, console=console)
    except BotError as exc:
        _fail(exc)


@app.command()
def lookup(
    query: str = typer.Argument(..., help="Search phrase to resolve and summarize."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", "-o", help="Override the summary storage directory."
    ),
):
    """Summarize a single query and print the reply."""
    try:
        cfg = _load(config, log_level, output_dir)
        lookup_once(cfg, query, console=console)
    except BotError as exc:
        _fail(exc)


if __name__ == "__main__":
    app()
