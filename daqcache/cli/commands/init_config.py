"""``daqcache init-config SUITE PATH`` — write a default suite build config."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from daqcache.config import SUITE_DEFAULT_VERSIONS, write_default_build_config
from daqcache.errors import ConfigurationError

console = Console(stderr=True)


def init_config_cmd(
    suite: str = typer.Argument(
        ..., help=f"Suite name: {', '.join(sorted(SUITE_DEFAULT_VERSIONS))}."
    ),
    path: Path = typer.Argument(..., help="Where to write the config file."),
) -> None:
    """Write the default build config for SUITE unless PATH already exists."""
    try:
        created = write_default_build_config(path, suite)
    except ConfigurationError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)

    if created:
        console.print(
            Panel(
                f"[bold green]Default configuration for {suite} written[/bold green]\n"
                f"[bold]Path:[/bold] {path}\n"
                "Review SOFTWARE_BASE, SPACK_DIR and DAQ_SUITE_VERSIONS before building.",
                title="[bold]daqcache init-config[/bold]",
                border_style="green",
            )
        )
    else:
        console.print(f"[yellow]{path} already exists, left unchanged.[/yellow]")
