"""Lease inspection and recovery commands."""

from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ...core.errors import LedgerCtlError
from ...core.log import get_logger
from ...lease.lease import utc_now
from ...lease.manager import LeaseManager
from ..options import get_app_context

console = Console()
logger = get_logger(__name__)
lease_app = typer.Typer(help="Inspect and recover deployment leases")


@lease_app.command()
def status(
    ctx: typer.Context,
    scope: Optional[str] = typer.Argument(None, help="Deployment scope (all when omitted)"),
) -> None:
    """Show who holds the lease of one or all scopes."""
    app_context = get_app_context(ctx)
    manager = app_context.lease_manager
    try:
        scopes = [scope] if scope else manager.list_scopes()
        records = [(s, manager.status(s)) for s in scopes]
    except LedgerCtlError as e:
        console.print(f"[red]Failed to read leases: {escape(e.message)}[/red]")
        raise typer.Exit(1)

    if not any(record for _, record in records):
        target = f"Lease {escape(scope)} is" if scope else "All leases are"
        console.print(f"[green]{target} free[/green]")
        return

    now = utc_now()
    table = Table(title="Deployment Leases")
    table.add_column("Scope", style="cyan")
    table.add_column("Holder", style="green")
    table.add_column("Age", justify="right")
    table.add_column("Status")
    for lease_scope, record in records:
        if record is None:
            table.add_row(lease_scope, "-", "-", "free")
            continue
        state = "[yellow]expired[/yellow]" if record.is_expired(now) else "held"
        table.add_row(
            lease_scope,
            escape(str(record.holder)),
            f"{record.age_seconds(now):.0f}s",
            state,
        )
    console.print(table)


def _release_own(manager: LeaseManager, scope: str) -> None:
    """Release scope as this process and report what happened to the record."""
    lease = manager.create(scope)
    if lease.read_record() is None:
        console.print(f"[green]Lease {escape(scope)} is already free[/green]")
        return

    lease.release()
    remaining = lease.read_record()
    if remaining is None:
        console.print(f"[green]Lease {escape(scope)} released[/green]")
        return

    if lease.is_stale(remaining):
        state = "stale, the next acquire will reclaim it"
    else:
        state = "still live"
    console.print(
        f"[yellow]Lease {escape(scope)} is not held by this process "
        f"(holder {escape(str(remaining.holder))}, {state}); "
        f"use --force to clear it[/yellow]"
    )
    raise typer.Exit(1)


@lease_app.command()
def release(
    ctx: typer.Context,
    scope: str = typer.Argument(..., help="Deployment scope"),
    force: bool = typer.Option(
        False, "--force", help="Remove the lease whoever holds it"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Release a lease. With --force, clear a lease held by someone else."""
    manager = get_app_context(ctx).lease_manager
    try:
        if not force:
            _release_own(manager, scope)
            return

        record = manager.status(scope)
        if record is None:
            console.print(f"[green]Lease {escape(scope)} is already free[/green]")
            return
        if not yes:
            typer.confirm(
                f"Force-release lease {scope} held by {record.holder}?", abort=True
            )
        manager.force_release(scope)
        console.print(
            f"[yellow]Lease {escape(scope)} force-released "
            f"(was held by {escape(str(record.holder))})[/yellow]"
        )
    except LedgerCtlError as e:
        logger.error("Lease release failed: %s", e)
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(1)
