"""``daqcache publish NAME VERSION`` — build and push a single coordinate."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from daqcache.cli.session import environment_factory, publishing_session, report
from daqcache.config import PublisherSettings
from daqcache.core.environment import ensure_mirror_directories
from daqcache.core.publisher import Publisher
from daqcache.errors import ConfigurationError, DaqcacheError
from daqcache.models.config import PublishOptions
from daqcache.models.coordinate import CompilerSpec, PackageCoordinate
from daqcache.models.results import BatchResult, PublishResult
from daqcache.models.stages import ErrorKind

console = Console(stderr=True)


def publish_cmd(
    name: str = typer.Argument(..., help="Spack package name, e.g. artdaq-suite."),
    version: str = typer.Argument(..., help="Package version, e.g. v4_01_00."),
    qualifier: list[str] = typer.Option(
        [],
        "--qualifier",
        "-q",
        help="key=value variant, repeatable (s=132, cxxstd=20).",
    ),
    compiler: str = typer.Option(
        "gcc@13.1.0", "--compiler", "-c", help="Compiler, e.g. gcc@13.1.0."
    ),
    arch: str = typer.Option(
        None,
        "--arch",
        help="Spack arch string. When given, `spack arch -o` is not run.",
    ),
    mirror_base: Path = typer.Option(
        ..., "--mirror-base", "-m", help="Buildcache mirror base directory."
    ),
    spack_dir: Path = typer.Option(..., "--spack-dir", help="Spack installation base."),
    spack_version: str = typer.Option(
        ..., "--spack-version", help="Spack release directory under --spack-dir."
    ),
    jobs: int = typer.Option(None, "--jobs", "-j", min=1, help="Parallel build jobs."),
) -> None:
    """Install one package coordinate and push its dependency closure.

    Prints a results table on stderr and ``succeeded=N failed=M warnings=W``
    on stdout. Exits non-zero if the publish failed.
    """
    try:
        compiler_spec = CompilerSpec.parse(compiler)
    except ValueError as exc:
        console.print(f"[bold red]Invalid compiler:[/bold red] {exc}")
        raise typer.Exit(code=2)

    settings = PublisherSettings()
    with publishing_session(settings) as session:
        try:
            ensure_mirror_directories(spack_dir, spack_version, mirror_base)
        except ConfigurationError as exc:
            console.print(f"[bold red]{exc}[/bold red]")
            raise typer.Exit(code=1)

        spack_root = spack_dir / spack_version
        label = f"{name}@{version} {' '.join(qualifier)} {compiler_spec}"
        try:
            environment = environment_factory(
                spack_root, session, arch=arch, build_threads=jobs
            )(compiler_spec)
        except DaqcacheError as exc:
            result = PublishResult(
                coordinate=label, error=ErrorKind.ENVIRONMENT_FAILED, message=str(exc)
            )
            report(BatchResult(suite=name, results=[result]), console)
            return

        try:
            coordinate = PackageCoordinate(
                name=name,
                version=version,
                qualifiers=tuple(qualifier),
                compiler=compiler_spec,
                arch=environment.arch,
            )
        except ValueError as exc:
            console.print(f"[bold red]Invalid coordinate:[/bold red] {exc}")
            raise typer.Exit(code=2)

        publisher = Publisher(
            environment.package_manager,
            PublishOptions(
                jobs=environment.build_threads,
                hashes_dir=settings.hashes_dir or environment.hashes_dir,
                logs_dir=settings.logs_dir,
                install_tree_root=settings.install_tree_root,
            ),
            cleanup=session.cleanup,
        )
        try:
            result = publisher.publish(coordinate, mirror_base)
        except ConfigurationError as exc:
            result = PublishResult(
                coordinate=coordinate.label,
                error=ErrorKind.CONFIGURATION_ERROR,
                message=str(exc),
            )
        report(BatchResult(suite=name, results=[result]), console)
