"""Main CLI entry point for ledgerctl."""

import sys
from importlib.metadata import PackageNotFoundError, version as dist_version
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..core.errors import LedgerCtlError
from ..core.log import configure_logging, get_logger, shutdown_logging
from ..core.types import LedgerCtlConfig
from .commands.lease import lease_app
from .commands.registry import registry_app
from .options import GlobalCliOptions, get_app_context

app = typer.Typer(
    name="ledgerctl",
    help="Deployment lease and component registry coordination",
    no_args_is_help=True,
    rich_markup_mode="markdown",
)
app.add_typer(lease_app, name="lease", help="Inspect and recover deployment leases")
app.add_typer(registry_app, name="registry", help="Inspect and tear down registries")
console = Console()
logger = get_logger(__name__)

_VERBOSITY_LEVELS = ("WARNING", "INFO", "DEBUG")
_REPORTED_DISTRIBUTIONS = ("pydantic", "typer", "rich", "psutil", "PyYAML")


def _resolve_log_level(verbose: int, log_level: Optional[str]) -> str:
    if log_level is not None:
        return log_level.upper()
    return _VERBOSITY_LEVELS[min(verbose, len(_VERBOSITY_LEVELS) - 1)]


@app.callback()
def main(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase verbosity level"
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR) - explicit level",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
) -> None:
    """ledgerctl: deployment lease and component registry coordination."""
    if verbose > 0 and log_level is not None:
        console.print("[red]Error: Cannot specify both --verbose and --log-level[/red]")
        raise typer.Exit(1)

    cli_options = GlobalCliOptions(
        verbose=verbose,
        config_file=config_file,
        log_level=_resolve_log_level(verbose, log_level),
    )
    ctx.ensure_object(dict)["cli_options"] = cli_options
    configure_logging(level=cli_options.log_level, enable_console=True, enable_json=False)


@app.command()
def version() -> None:
    """Show ledgerctl and dependency versions."""
    table = Table(title="ledgerctl Version Information")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")
    table.add_row("ledgerctl", __version__)
    for dist in _REPORTED_DISTRIBUTIONS:
        try:
            table.add_row(dist, dist_version(dist))
        except PackageNotFoundError:
            table.add_row(dist, "[red]Not installed[/red]")
    console.print(table)


def _config_rows(cfg: LedgerCtlConfig) -> List[Tuple[str, str]]:
    rows = [
        ("Store Backend", cfg.store.backend.value),
        ("Store Directory", str(cfg.store.root_dir)),
        ("Lease Duration", f"{cfg.lease.duration_seconds}s"),
        ("Lease Renewal Fraction", str(cfg.lease.renewal_fraction)),
        ("Lease Auto Renew", str(cfg.lease.auto_renew)),
        ("Lease Acquire Attempts", str(cfg.lease.acquire_attempts)),
        ("Lease Acquire Timeout", f"{cfg.lease.acquire_timeout}s"),
        ("Persistence Attempts", str(cfg.persistence.attempts)),
        ("Command History Limit", str(cfg.registry.command_history_limit)),
        ("Log Level", cfg.log_level),
    ]
    if cfg.lease.username:
        rows.append(("Lease Username", cfg.lease.username))
    if cfg.log_file:
        rows.append(("Log File", str(cfg.log_file)))
    return rows


@app.command()
def config(ctx: typer.Context) -> None:
    """Show the effective configuration (defaults, file, environment)."""
    table = Table(title="ledgerctl Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for setting, value in _config_rows(get_app_context(ctx).config):
        table.add_row(setting, value)
    console.print(table)


def cli_main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except (LedgerCtlError, OSError) as e:
        logger.error("Unexpected error: %s", e)
        console.print(f"[red]Unexpected error: {e}[/red]")
        sys.exit(1)
    finally:
        shutdown_logging()


if __name__ == "__main__":
    cli_main()
