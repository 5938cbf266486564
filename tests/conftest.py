"""Shared test fixtures for daqcache."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from daqcache.core.environment import SpackEnvironment
from daqcache.models.config import PublishOptions
from daqcache.models.coordinate import CompilerSpec, PackageCoordinate
from tests.fakes import ARCH, INSTALL_ROOT, FakePackageManager


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _drop_daqcache_handlers() -> Iterator[None]:
    """Remove root handlers installed by ``configure_logging`` after each test."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_daqcache", False):
            root.removeHandler(handler)
            handler.close()


@pytest.fixture
def compiler() -> CompilerSpec:
    return CompilerSpec(family="gcc", version="13.1.0")


@pytest.fixture
def coordinate(compiler: CompilerSpec) -> PackageCoordinate:
    """artdaq-suite@v4_01_00 s=132 cxxstd=20 with gcc 13.1.0."""
    return PackageCoordinate(
        name="artdaq-suite",
        version="v4_01_00",
        qualifiers=("s=132", "cxxstd=20"),
        compiler=compiler,
        arch=ARCH,
    )


@pytest.fixture
def fake_pm() -> FakePackageManager:
    return FakePackageManager()


@pytest.fixture
def options(tmp_path: Path) -> PublishOptions:
    return PublishOptions(
        jobs=4,
        hashes_dir=tmp_path / "hashes",
        logs_dir=tmp_path / "logs",
        install_tree_root=INSTALL_ROOT,
    )


@pytest.fixture
def mirror_base(tmp_path: Path) -> Path:
    return tmp_path / "mirror"


@pytest.fixture
def make_environment(tmp_path: Path) -> Callable[..., SpackEnvironment]:
    """Factory fixture: a ``SpackEnvironment`` around a fake package manager."""

    def _factory(
        compiler: CompilerSpec, package_manager: FakePackageManager | None = None
    ) -> SpackEnvironment:
        return SpackEnvironment(
            tmp_path / "spack" / "v1.0.1",
            compiler,
            ARCH,
            package_manager or FakePackageManager(),
            build_threads=2,
        )

    return _factory
