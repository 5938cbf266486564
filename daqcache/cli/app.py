"""Main Typer application — imports and registers all CLI commands.

Entry point: ``daqcache`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from daqcache.cli.commands.batch_cmd import batch_cmd
from daqcache.cli.commands.init_config import init_config_cmd
from daqcache.cli.commands.publish_cmd import publish_cmd

app = typer.Typer(
    name="daqcache",
    help="Build DAQ suite packages with Spack and publish them to buildcache mirrors.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="publish", help="Install one coordinate and push it to its buildcache.")(publish_cmd)
app.command(name="batch", help="Publish every configuration of a suite build config.")(batch_cmd)
app.command(name="init-config", help="Write a default suite build config.")(init_config_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
