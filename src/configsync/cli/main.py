"""
ConfigSync CLI Main Entry Point.

Provides the command-line interface for one-off syncs, backup management
and the foreground sync service.
"""

from __future__ import annotations

import json
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
import humanize
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from configsync import __version__
from configsync.core.config import (
    CONFIG_HOME,
    ConfigSyncConfig,
    FolderProviderConfig,
    HostedProviderConfig,
    load_config,
)
from configsync.core.errors import ConfigSyncError
from configsync.core.logging import setup_logging
from configsync.core.models import SyncOutcome, SyncResult
from configsync.core.safety import run_preflight
from configsync.providers import create_provider
from configsync.sync.engine import SyncEngine
from configsync.sync.service import SyncService

console = Console()

DEFAULT_CONFIG_PATH = CONFIG_HOME / "config.json"


def get_config(ctx: click.Context) -> ConfigSyncConfig:
    """Get or load configuration from context."""
    if "config" not in ctx.obj:
        config = load_config(ctx.obj.get("config_path"))
        if ctx.obj.get("quiet"):
            config.logging.level = "WARNING"
        setup_logging(config.logging)
        ctx.obj["config"] = config
    return ctx.obj["config"]


def get_engine(ctx: click.Context) -> SyncEngine:
    """Get or create the sync engine from context."""
    if "engine" not in ctx.obj:
        config = get_config(ctx)
        ctx.obj["engine"] = SyncEngine(config.sync, create_provider(config.sync))
    return ctx.obj["engine"]


def _print_result(ctx: click.Context, result: SyncResult) -> None:
    if ctx.obj.get("json_output", False):
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
        return

    if result.outcome == SyncOutcome.SKIPPED:
        console.print(f"[yellow]- {result.message}[/yellow]")
    else:
        console.print(f"[green]✓ {result.message}[/green]")
    if result.backup and not ctx.obj.get("quiet", False):
        console.print(f"[dim]Backup: {result.backup.name}[/dim]")


def _run_operation(
    ctx: click.Context, status_text: str, operation: Callable[[], SyncResult]
) -> None:
    try:
        if ctx.obj.get("json_output", False):
            result = operation()
        else:
            with console.status(status_text):
                result = operation()
    except ConfigSyncError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)
    _print_result(ctx, result)


def _format_time(value: Any) -> str:
    if value is None:
        return "N/A"
    return f"{value.isoformat()} ({humanize.naturaltime(value)})"


@click.group()
@click.version_option(version=__version__, prog_name="ConfigSync")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to configuration file",
)
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    json_output: bool,
    quiet: bool,
) -> None:
    """
    ConfigSync - Keep an application's settings in sync across machines.

    Pushes local edits to a shared folder or the hosted API and pulls newer
    remote settings back, taking a backup before anything is overwritten.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["json_output"] = json_output
    ctx.obj["quiet"] = quiet


@cli.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show preflight checks and local/remote timestamps."""
    config = get_config(ctx)
    engine = get_engine(ctx)
    json_output = ctx.obj.get("json_output", False)

    report = run_preflight(config.sync, engine.safety)
    local_modified = engine.store.modified_at()
    remote_error = None
    try:
        remote = engine.remote_meta()
    except ConfigSyncError as e:
        remote = None
        remote_error = str(e)

    if json_output:
        data = {
            "checks": [
                {
                    "name": c.name,
                    "passed": c.passed,
                    "severity": c.severity,
                    "message": c.message,
                }
                for c in report.checks
            ],
            "local_modified": local_modified.isoformat() if local_modified else None,
            "remote": remote.to_dict() if remote else None,
            "remote_error": remote_error,
        }
        click.echo(json.dumps(data, indent=2, default=str))
        return

    table = Table(title="Preflight Checks")
    table.add_column("Check", style="cyan")
    table.add_column("Status")
    table.add_column("Message", style="white")
    for check in report.checks:
        if check.passed:
            mark = "[green]✓[/green]"
        elif check.severity == "error":
            mark = "[red]✗[/red]"
        else:
            mark = "[yellow]![/yellow]"
        table.add_row(check.name, mark, check.message)
    console.print(table)

    if remote_error:
        remote_line = f"[red]{remote_error}[/red]"
    elif remote is None:
        remote_line = "No remote config yet"
    else:
        remote_line = f"{_format_time(remote.last_modified)} from {remote.device_name}"

    panel = Panel(
        f"""[cyan]Device:[/cyan] {config.sync.device_name}
[cyan]Provider:[/cyan] {engine.provider.name}
[cyan]Store:[/cyan] {config.sync.store_directory}
[cyan]Local Modified:[/cyan] {_format_time(local_modified)}
[cyan]Remote Modified:[/cyan] {remote_line}""",
        title="ConfigSync Status",
    )
    console.print(panel)


@cli.command("sync")
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Reconcile local and remote settings (newest wins)."""
    engine = get_engine(ctx)
    _run_operation(ctx, "Syncing...", engine.sync)


@cli.command("push")
@click.pass_context
def push(ctx: click.Context) -> None:
    """Upload the local settings, replacing the remote copy."""
    engine = get_engine(ctx)
    _run_operation(ctx, "Pushing...", engine.push_to_remote)


@cli.command("pull")
@click.pass_context
def pull(ctx: click.Context) -> None:
    """Download the remote settings, backing up the local copy first."""
    engine = get_engine(ctx)
    _run_operation(ctx, "Pulling...", engine.pull_from_remote)


@cli.command("backups")
@click.pass_context
def list_backups(ctx: click.Context) -> None:
    """List backups, newest first."""
    engine = get_engine(ctx)
    json_output = ctx.obj.get("json_output", False)

    entries = engine.backups.list_backups()

    if json_output:
        click.echo(json.dumps([e.to_dict() for e in entries], indent=2, default=str))
        return

    if not entries:
        console.print("[yellow]No backups found[/yellow]")
        return

    table = Table(title=f"Backups ({len(entries)}/{engine.backups.max_backups})")
    table.add_column("Name", style="cyan")
    table.add_column("Label", style="yellow")
    table.add_column("Created", style="white")
    table.add_column("Size", style="green")

    for entry in entries:
        table.add_row(
            entry.name,
            entry.label,
            humanize.naturaltime(entry.created_at),
            humanize.naturalsize(entry.size_bytes, binary=True),
        )

    console.print(table)


@cli.command("backup")
@click.option("--label", "-l", default="manual", show_default=True, help="Backup label")
@click.pass_context
def create_backup(ctx: click.Context, label: str) -> None:
    """Back up the local settings now."""
    engine = get_engine(ctx)
    json_output = ctx.obj.get("json_output", False)

    if not engine.store.exists():
        console.print(f"[red]No local store in {engine.store_directory}[/red]")
        sys.exit(1)

    try:
        path = engine.backups.create_backup(engine.store_directory, label)
    except ConfigSyncError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    if json_output:
        click.echo(json.dumps({"name": path.name, "path": str(path)}, indent=2))
    else:
        console.print(f"[green]✓ Created backup {path.name}[/green]")


@cli.command("restore")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def restore(ctx: click.Context, name: str, yes: bool) -> None:
    """Restore the backup NAME over the local settings."""
    engine = get_engine(ctx)

    if not yes:
        console.print(
            f"[yellow]This replaces the settings in {engine.store_directory} "
            f"with backup '{name}'.[/yellow]"
        )
        if not click.confirm("Continue?", default=False):
            console.print("[red]Restore cancelled[/red]")
            sys.exit(1)

    _run_operation(ctx, "Restoring...", lambda: engine.restore_backup(name))


@cli.command("run")
@click.pass_context
def run(ctx: click.Context) -> None:
    """Run the sync service in the foreground until Ctrl-C."""
    config = get_config(ctx)

    def on_result(trigger: str, result: SyncResult) -> None:
        if not ctx.obj.get("quiet", False):
            console.print(f"[dim]{trigger}:[/dim] {result.message}")

    service = SyncService(config, on_result=on_result)
    console.print(
        f"[green]Syncing {config.sync.store_directory} via {service.provider.name}[/green] "
        "(Ctrl-C to stop)"
    )
    with service:
        try:
            service.sync_now()
        except ConfigSyncError as e:
            console.print(f"[red]Initial sync failed: {e}[/red]")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Stopping...[/yellow]")


@cli.group("config")
def config_group() -> None:
    """Inspect or create the configuration file."""


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration."""
    config = get_config(ctx)
    data = config.model_dump(mode="json")
    provider = data["sync"]["provider"]
    if provider.get("api_key"):
        provider["api_key"] = "***"
    click.echo(json.dumps(data, indent=2, default=str))


@config_group.command("init")
@click.option(
    "--provider",
    type=click.Choice(["folder", "hosted"]),
    default="folder",
    show_default=True,
)
@click.option("--sync-dir", type=click.Path(file_okay=False, path_type=Path), help="Shared folder")
@click.option("--api-url", help="Hosted API base URL")
@click.option("--api-key", help="Hosted API key")
@click.option("--store-dir", type=click.Path(file_okay=False, path_type=Path), help="Store directory")
@click.option("--device-name", help="Name recorded with every push")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file")
@click.pass_context
def config_init(
    ctx: click.Context,
    provider: str,
    sync_dir: Path | None,
    api_url: str | None,
    api_key: str | None,
    store_dir: Path | None,
    device_name: str | None,
    force: bool,
) -> None:
    """Write a new configuration file."""
    path = ctx.obj.get("config_path") or DEFAULT_CONFIG_PATH

    if path.exists() and not force:
        console.print(f"[red]{path} already exists (use --force to overwrite)[/red]")
        sys.exit(1)

    config = ConfigSyncConfig()
    if provider == "hosted":
        if not api_url or not api_key:
            console.print("[red]--api-url and --api-key are required for the hosted provider[/red]")
            sys.exit(1)
        config.sync.provider = HostedProviderConfig(api_url=api_url, api_key=api_key)
    elif sync_dir is not None:
        config.sync.provider = FolderProviderConfig(sync_directory=sync_dir)

    if store_dir is not None:
        config.sync.store_directory = store_dir.expanduser().resolve()
    if device_name:
        config.sync.device_name = device_name

    config.save(path)
    console.print(f"[green]✓ Wrote {path}[/green]")


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
