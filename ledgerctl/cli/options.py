"""Global CLI options and lazy construction of the application context."""

from pathlib import Path
from typing import Optional

import typer
from pydantic import BaseModel, Field
from rich.console import Console

from ..core.config import ConfigManager
from ..core.context import ApplicationContext
from ..core.errors import ConfigurationError
from ..core.log import get_logger

console = Console()


class GlobalCliOptions(BaseModel):
    """Global CLI options that can be used across all commands."""

    verbose: int = Field(0, description="Increase verbosity level")
    config_file: Optional[Path] = Field(None, description="Configuration file path")
    log_level: str = Field(
        "WARNING", description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )


def get_app_context(ctx: typer.Context) -> ApplicationContext:
    """Application context for this invocation, built on first use."""
    obj = ctx.ensure_object(dict)
    if "app_context" not in obj:
        options: GlobalCliOptions = obj.get("cli_options") or GlobalCliOptions()
        try:
            config = ConfigManager().load_config(options.config_file)
        except ConfigurationError as e:
            console.print(f"[red]Configuration error: {e.message}[/red]")
            raise typer.Exit(1)
        obj["app_context"] = ApplicationContext.create(
            config, logger=get_logger("ledgerctl.cli")
        )
    return obj["app_context"]
