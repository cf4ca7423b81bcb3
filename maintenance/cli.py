"""
Operator command-line interface for the Station.

Runs the server and the storage maintenance jobs (durable-tier backfill,
re-acquisition) against the same registry and storage the server uses.
"""

import os
import shutil
import subprocess
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shared.config import StationConfig
from shared.errors import ConfigurationError
from shared.logging_setup import configure_logging
from shared.threads import run_inline
from station.context import build_context
from storage_tiers.migration import migrate_to_durable_tier
from storage_tiers.provider_factory import StorageTierFactory

console = Console()


def _load_context(env_file):
    config = StationConfig.from_env(env_file)
    configure_logging(config.log_level, console=console)
    try:
        # Jobs run in the foreground so the command exits when they are done
        return build_context(config, run_in_background=run_inline)
    except ConfigurationError as e:
        console.print(f"[red]❌ {e.message}[/red]")
        sys.exit(1)


@click.group()
@click.version_option(version="1.0.0")
@click.option('--env-file', type=click.Path(dir_okay=False), default=None, help='Load settings from this .env file')
@click.pass_context
def cli(ctx, env_file):
    """
    SoundRelay Station maintenance tool

    Serve the API and keep local and durable audio storage in sync.
    """
    ctx.ensure_object(dict)
    ctx.obj['env_file'] = env_file


@cli.command()
@click.option('--port', type=int, default=None, help='Port to listen on (defaults to STATION_PORT)')
def serve(port):
    """Start the Station server (gevent)."""
    env = dict(os.environ)
    if port:
        env['STATION_PORT'] = str(port)
    # Separate interpreter so gevent can patch before anything else is imported
    result = subprocess.run([sys.executable, "-m", "station"], env=env)
    sys.exit(result.returncode)


@cli.command()
@click.option('--limit', type=click.IntRange(min=1), default=None, help='Only examine this many ready tracks')
@click.pass_context
def migrate(ctx, limit):
    """Upload local-only tracks to durable storage."""
    station = _load_context(ctx.obj['env_file'])
    try:
        report = migrate_to_durable_tier(station.registry, station.resolver, limit=limit)
    except ConfigurationError as e:
        console.print(f"[red]❌ {e.message}[/red]")
        sys.exit(1)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Content ID", style="cyan")
    table.add_column("Title")
    table.add_column("Result")
    table.add_column("Detail", style="dim")
    styles = {"migrated": "green", "skipped": "yellow", "failed": "red"}
    for item in report.results:
        style = styles.get(item.status, "white")
        table.add_row(item.content_id, item.title, f"[{style}]{item.status}[/{style}]", item.reason or item.path or "")
    console.print(table)

    console.print(Panel.fit(
        f"[bold]Total:[/bold] {report.total}   "
        f"[green]Migrated:[/green] {report.migrated}   "
        f"[yellow]Skipped:[/yellow] {report.skipped}   "
        f"[red]Failed:[/red] {report.failed}",
        title="Migration",
        border_style="cyan",
    ))
    if report.needs_reacquisition:
        console.print(
            f"[yellow]{len(report.needs_reacquisition)} tracks are missing everywhere. "
            f"Run [bold]reacquire[/bold] to download them again.[/yellow]"
        )


@cli.command()
@click.option('--limit', type=click.IntRange(min=1), default=10, show_default=True, help='Maximum tracks to re-download')
@click.pass_context
def reacquire(ctx, limit):
    """Re-download ready tracks that are missing from durable storage."""
    station = _load_context(ctx.obj['env_file'])
    try:
        result = station.reacquisition.reacquire(limit=limit)
    except ConfigurationError as e:
        console.print(f"[red]❌ {e.message}[/red]")
        sys.exit(1)

    console.print(f"[bold]{result['message']}[/bold]")
    for item in result['started']:
        console.print(f"  [green]✓[/green] {item['content_id']}  {item['title']}")
    if result['pending']:
        console.print(f"[yellow]{result['pending']} more tracks still pending[/yellow]")
    _print_reacquisition_status(station.reacquisition.status())


def _print_reacquisition_status(status):
    table = Table(show_header=False, box=None)
    table.add_row("Ready tracks", str(status['total']))
    table.add_row("In durable storage", f"[green]{status['in_storage']}[/green]")
    table.add_row("Missing", f"[red]{status['missing']}[/red]" if status['missing'] else "0")
    table.add_row("Re-downloading", str(status['in_progress']))
    console.print(Panel.fit(table, title="Durable storage", border_style="cyan"))


@cli.command()
@click.pass_context
def status(ctx):
    """Show registry and storage status."""
    station = _load_context(ctx.obj['env_file'])

    counts = station.registry.status_counts()
    table = Table(show_header=True, header_style="bold magenta", title="Tracks")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)

    if station.resolver.durable_configured:
        _print_reacquisition_status(station.reacquisition.status())
    else:
        console.print("[yellow]Durable storage not configured (DURABLE_STORAGE_PROVIDER unset)[/yellow]")


@cli.command()
@click.pass_context
def diagnose(ctx):
    """Check yt-dlp, ffmpeg and durable storage."""
    station = _load_context(ctx.obj['env_file'])
    config = station.config

    def mark(ok):
        return "[green]✓[/green]" if ok else "[red]✗[/red]"

    version = station.extractor.version()
    ffmpeg = shutil.which('ffmpeg')
    cookies = config.cookies_file is not None and config.cookies_file.exists()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Check")
    table.add_column("")
    table.add_column("Detail", style="dim")
    table.add_row("yt-dlp", mark(version), version or "not importable by this interpreter")
    table.add_row("ffmpeg", mark(ffmpeg), ffmpeg or "not on PATH (audio conversion will fail)")
    table.add_row("cookies", mark(cookies), str(config.cookies_file) if cookies else "none (bot checks more likely)")
    table.add_row("music dir", mark(config.music_dir.is_dir()), str(config.music_dir))

    durable = station.resolver.durable
    if durable is None:
        table.add_row("durable storage", mark(False), "not configured")
    else:
        name = StorageTierFactory.get_provider_name(config.durable.provider)
        table.add_row("durable storage", mark(durable.probe()), f"{name}: {durable.describe()}")
    console.print(table)


if __name__ == '__main__':
    cli()
