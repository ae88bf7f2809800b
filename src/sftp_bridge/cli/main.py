"""
Main CLI entry point.

Runs the engines outside the serverless runtime, against a local config.yaml
instead of the per-account config bucket.
"""

import asyncio
import json
from dataclasses import replace
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sftp_bridge import __version__
from sftp_bridge.config.loader import FileConfigSource
from sftp_bridge.config.settings import InvocationContext, Settings
from sftp_bridge.exceptions import BridgeError
from sftp_bridge.handler import drain_retry_queue, handle_scheduled, replay_notification
from sftp_bridge.services import Services
from sftp_bridge.utils.logging import setup_logging

app = typer.Typer(
    name="sftp-bridge",
    help="sftp-bridge - Keep SFTP directories and S3 locations in sync",
    add_completion=False,
)

console = Console()

DEFAULT_CONFIG = Path("config.yaml")
CLI_FUNCTION_NAME = "sftp-bridge"


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"sftp-bridge version {__version__}")
        raise typer.Exit()


def _services(config: Path) -> Services:
    services = Services.from_settings(Settings.from_env())
    return replace(services, config_source=FileConfigSource(config))


def _print_results(results: list) -> None:
    if not results:
        console.print("[dim]Nothing to do[/dim]")
        return
    for result in results:
        data = result.to_dict() if hasattr(result, "to_dict") else result
        console.print_json(json.dumps(data, default=str))


@app.callback(invoke_without_command=True)
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        help="Show version and exit.",
    ),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Log level (DEBUG, INFO, WARNING, ERROR)"),
):
    """
    sftp-bridge - Keep SFTP directories and S3 locations in sync.

    Run 'sftp-bridge <command> --help' for help on a specific command.
    """
    setup_logging(log_level, use_rich=True)
    if ctx.invoked_subcommand is None and not version:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command()
def pull(
    streams: list[str] = typer.Argument(..., help="Stream names to pull (use 'poll' to drain the retry queue)"),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to config.yaml"),
) -> None:
    """
    Pull new remote files into S3 for the given streams.
    """
    event = {"resources": [f"rule/{'.'.join(streams)}"]}
    context = InvocationContext(function_name=CLI_FUNCTION_NAME)
    try:
        results = asyncio.run(handle_scheduled(event, context, _services(config)))
    except BridgeError as e:
        console.print(f"[red]Pull failed:[/red] {escape(e.message)}")
        raise typer.Exit(1)
    _print_results(results)


@app.command()
def dispatch(
    event_file: Path = typer.Argument(..., help="JSON file holding a storage notification ({'Records': [...]})"),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to config.yaml"),
) -> None:
    """
    Push the objects named by a storage notification to their SFTP destinations.

    Unlike the serverless handler, a failure is reported instead of queued.
    """
    try:
        notification = json.loads(event_file.read_text())
    except (OSError, ValueError) as e:
        console.print(f"[red]Cannot read notification {event_file}:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    context = InvocationContext(function_name=CLI_FUNCTION_NAME)
    try:
        results = asyncio.run(replay_notification(notification, context, _services(config)))
    except BridgeError as e:
        console.print(f"[red]Dispatch failed:[/red] {escape(e.message)}")
        raise typer.Exit(1)
    _print_results(results)


@app.command()
def drain(
    queue: str = typer.Option(..., "--queue", "-q", help="Retry queue name (the function name in production)"),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to config.yaml"),
    max_batches: int = typer.Option(10, "--max-batches", help="Maximum receive calls"),
    batch_size: int = typer.Option(10, "--batch-size", min=1, max=10, help="Messages per receive"),
) -> None:
    """
    Replay queued notifications (what the "poll" stream of a schedule does).
    """
    services = _services(config)
    services = replace(
        services, settings=replace(services.settings, drain_max_batches=max_batches, drain_batch_size=batch_size)
    )
    try:
        results = asyncio.run(drain_retry_queue(InvocationContext(function_name=queue), services))
    except BridgeError as e:
        console.print(f"[red]Drain failed:[/red] {escape(e.message)}")
        raise typer.Exit(1)
    _print_results(results)


@app.command("streams")
def list_streams(
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to config.yaml"),
) -> None:
    """
    List the configured streams.
    """
    try:
        streams = FileConfigSource(config).load()
    except BridgeError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(1)

    if not streams:
        console.print("[dim]No streams configured[/dim]")
        return

    table = Table(title=f"Streams ({len(streams)})", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("SFTP location", style="green")
    table.add_column("S3 location", style="yellow")
    table.add_column("Retention (days)", style="magenta")
    table.add_column("Host", style="dim")
    for name, stream in streams.items():
        host = (stream.connection or {}).get("host") or (stream.connection or {}).get("hostname") or "-"
        table.add_row(
            name,
            stream.remote_root or "/",
            str(stream.store_location) if stream.store_location else "-",
            str(stream.retention_days),
            host,
        )
    console.print(table)


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
