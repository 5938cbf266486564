"""``daqcache batch CONFIG_FILE`` — publish every configuration of a suite.

Reads a suite build-config file (creating the default one for ``--suite``
when it does not exist yet), checks the Spack and mirror directories, and
publishes each ``DAQ_SUITE_VERSIONS`` entry in order.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from daqcache.cli.session import environment_factory, publishing_session, report
from daqcache.config import PublisherSettings, load_build_config, write_default_build_config
from daqcache.core.batch import BatchRunner
from daqcache.core.environment import ensure_mirror_directories
from daqcache.errors import ConfigurationError
from daqcache.models.config import split_entries

console = Console(stderr=True)


def batch_cmd(
    config_file: Path = typer.Argument(..., help="Suite build-config file (.env format)."),
    suite: str = typer.Option(
        None,
        "--suite",
        "-s",
        help="Create the default config for this suite if CONFIG_FILE is missing.",
    ),
    versions: str = typer.Option(
        None,
        "--versions",
        help="Override DAQ_SUITE_VERSIONS (comma-separated version:qualifier:compiler:standard).",
    ),
    mirror_base: Path = typer.Option(
        None, "--mirror-base", "-m", help="Override SPACK_MIRROR_BASE."
    ),
) -> None:
    """Publish every configuration listed in a suite build config.

    A failing configuration does not stop the others. Exits 1 if any
    configuration failed.
    """
    settings = PublisherSettings()
    with publishing_session(settings) as session:
        try:
            if not config_file.exists():
                if not suite:
                    raise ConfigurationError(
                        f"Config file not found: {config_file} (use --suite to create one)"
                    )
                write_default_build_config(config_file, suite)
            build_config = load_build_config(config_file)
            target_base = mirror_base or build_config.spack_mirror_base
            ensure_mirror_directories(
                build_config.spack_dir, build_config.spack_version, target_base
            )
        except ConfigurationError as exc:
            console.print(f"[bold red]{exc}[/bold red]")
            raise typer.Exit(code=1)

        runner = BatchRunner(
            build_config.daq_suite_name,
            environment_factory(
                build_config.spack_root,
                session,
                build_threads=build_config.build_threads,
                debug_build=build_config.debug_build or settings.debug_build,
            ),
            logs_dir=settings.logs_dir,
            hashes_dir=settings.hashes_dir,
            install_tree_root=settings.install_tree_root,
            cleanup=session.cleanup,
        )
        entries = split_entries(versions or build_config.daq_suite_versions)
        report(runner.run(entries, target_base), console)
