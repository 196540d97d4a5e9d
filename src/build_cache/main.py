"""Main entry point for the build-cache CLI.

Provides a Typer-based CLI for rebuilding and restoring cached build
directories.
"""

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from build_cache import __version__
from build_cache.config import CacheConfig, get_config_path, load_config
from build_cache.errors import ConfigError, PhaseError
from build_cache.keys import derive_key, remote_path
from build_cache.logging_config import setup_logging
from build_cache.orchestrator import execute

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="build-cache",
    help="Cache build directories in S3-compatible object storage",
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"build-cache version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """build-cache: Remote cache for build pipeline directories.

    ## Commands

    * [bold cyan]run[/bold cyan] - Rebuild and/or restore the configured mounts
    * [bold cyan]key[/bold cyan] - Show the cache key for a mount and branch
    * [bold cyan]config[/bold cyan] - Show configuration

    ## Getting Started

    1. Upload node_modules after a build:
       [dim]$ build-cache run --rebuild --mount node_modules --branch main[/dim]

    2. Restore it before the next build:
       [dim]$ build-cache run --restore --mount node_modules --branch main[/dim]
    """
    pass


def _load(config_path: Optional[Path]) -> CacheConfig:
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        raise typer.Exit(2)


@app.command()
def run(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config file"
    ),
    rebuild: Optional[bool] = typer.Option(
        None, "--rebuild/--no-rebuild", help="Archive mounts and upload them"
    ),
    restore: Optional[bool] = typer.Option(
        None, "--restore/--no-restore", help="Download and extract cached mounts"
    ),
    mount: Optional[List[str]] = typer.Option(
        None, "--mount", "-m", help="Directory to cache (repeatable)"
    ),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Branch name"),
    repo: Optional[str] = typer.Option(None, "--repo", "-r", help="Repository namespace"),
    log_dir: Optional[Path] = typer.Option(
        None, "--log-dir", help="Also write logs to build_cache.log in this directory"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Rebuild and/or restore the remote cache.

    Settings come from the config file (if any) and BUILD_CACHE_* environment
    variables; command line options take precedence.
    """
    cfg = _load(config_path)
    try:
        cfg = cfg.replace(
            rebuild=rebuild,
            restore=restore,
            mounts=tuple(mount) if mount else None,
            branch=branch,
            repo=repo,
        )
    except ConfigError as e:
        err_console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        raise typer.Exit(2)

    setup_logging("DEBUG" if verbose else cfg.log_level, log_dir)

    try:
        report = execute(cfg)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        raise typer.Exit(2)
    except PhaseError as e:
        err_console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(1)

    table = Table(title="Cache Summary")
    table.add_column("Mount", style="cyan")
    table.add_column("Remote Path")
    for mount_path, path in report.paths.items():
        table.add_row(mount_path, path)
    console.print(table)

    for phase in report.phases:
        console.print(
            f"[green]✓ {phase.value} completed in {report.elapsed[phase]:.2f}s[/green]"
        )


@app.command()
def key(
    mount: str = typer.Argument(..., help="Mount path as written in the configuration"),
    branch: str = typer.Argument(..., help="Branch name"),
    repo: str = typer.Option("", "--repo", "-r", help="Repository namespace"),
) -> None:
    """Show the cache key and remote path for a mount on a branch."""
    cache_key = derive_key(mount, branch)
    console.print(f"[cyan]Key:[/cyan] {cache_key}")
    console.print(f"[cyan]Path:[/cyan] {remote_path(repo, cache_key)}")


@app.command()
def config(
    action: str = typer.Argument(..., help="Action to perform (show, path)"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config file"
    ),
) -> None:
    """Show the resolved configuration or the config file path.

    Examples:
        build-cache config show          # Show all configuration
        build-cache config path          # Show config file path
    """
    if action == "show":
        cfg = _load(config_path)
        lines = [
            f"[cyan]{name}:[/cyan] {escape(value)}"
            for name, value in cfg.as_display_dict().items()
        ]
        console.print(
            Panel.fit("\n".join(lines), title="Configuration", border_style="green")
        )

    elif action == "path":
        console.print(str(config_path or get_config_path()))

    else:
        console.print(f"[red]Unknown action: {action}[/red]")
        console.print("Valid actions: show, path")
        raise typer.Exit(1)


# Entry point for the CLI
def cli_entry() -> None:
    """Entry point for the CLI application."""
    app()


if __name__ == "__main__":
    cli_entry()
