"""Registry inspection and teardown commands."""

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ...core.errors import LeaseConflictError, LedgerCtlError
from ...core.log import get_logger, log_context
from ...registry.registry import ComponentRegistry
from ..options import get_app_context

console = Console()
logger = get_logger(__name__)
registry_app = typer.Typer(help="Inspect and tear down component registries")


def _load(ctx: typer.Context, scope: str) -> ComponentRegistry:
    try:
        registry = get_app_context(ctx).registry_manager(scope).read()
    except LedgerCtlError as e:
        console.print(f"[red]Failed to read registry: {escape(e.message)}[/red]")
        raise typer.Exit(1)
    if registry is None:
        console.print(f"[red]No registry exists for {escape(scope)}[/red]")
        raise typer.Exit(1)
    return registry


@registry_app.command()
def show(
    ctx: typer.Context,
    scope: str = typer.Argument(..., help="Deployment scope"),
) -> None:
    """Show clusters and components recorded for a deployment."""
    registry = _load(ctx, scope)
    metadata = registry.metadata

    summary = Table(title=f"Registry {escape(scope)}")
    summary.add_column("Setting", style="cyan")
    summary.add_column("Value", style="green")
    summary.add_row("Namespace", metadata.namespace)
    summary.add_row("Deployment", metadata.deployment)
    summary.add_row("State", metadata.state.value)
    summary.add_row("Version", str(registry.version))
    summary.add_row("Schema", str(registry.schema_version))
    summary.add_row("Clusters", ", ".join(sorted(registry.clusters)) or "-")
    if metadata.last_updated_by:
        summary.add_row("Last Updated By", escape(metadata.last_updated_by))
    console.print(summary)

    if registry.count() == 0:
        console.print("No components recorded")
        return

    components = Table(title="Components")
    components.add_column("Type", style="cyan")
    components.add_column("Id", justify="right")
    components.add_column("Name", style="green")
    components.add_column("Cluster")
    components.add_column("State")
    for component in registry.all_components():
        components.add_row(
            component.type.value,
            str(component.id),
            component.name,
            component.cluster_reference,
            component.state.value,
        )
    console.print(components)


@registry_app.command()
def history(
    ctx: typer.Context,
    scope: str = typer.Argument(..., help="Deployment scope"),
) -> None:
    """Show the commands that changed a registry, oldest first."""
    registry = _load(ctx, scope)
    if not registry.command_history:
        console.print("No commands recorded")
        return
    for index, command in enumerate(registry.command_history, start=1):
        console.print(f"{index:>3}  {escape(command)}")


@registry_app.command()
def teardown(
    ctx: typer.Context,
    scope: str = typer.Argument(..., help="Deployment scope"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete the registry of a deployment while holding its lease."""
    if not yes:
        typer.confirm(f"Delete the registry of {scope}?", abort=True)

    app_context = get_app_context(ctx)
    try:
        with log_context(scope=scope), app_context.lease_manager.hold(scope) as lease:
            deleted = app_context.registry_manager(scope, lease).delete()
    except LeaseConflictError as e:
        console.print(
            f"[red]Lease {escape(scope)} is held by {escape(str(e.holder))}; "
            f"try again later or force-release it[/red]"
        )
        raise typer.Exit(1)
    except LedgerCtlError as e:
        logger.error("Registry teardown failed: %s", e)
        console.print(f"[red]Teardown failed: {escape(e.message)}[/red]")
        raise typer.Exit(1)

    if deleted:
        console.print(f"[green]Registry {escape(scope)} deleted[/green]")
    else:
        console.print(f"No registry exists for {escape(scope)}")
