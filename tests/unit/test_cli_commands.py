"""Unit tests for the CLI — command registration and end-to-end behavior
against a fake package manager via typer.testing.CliRunner.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from typer.testing import CliRunner

from daqcache.cli.app import app
from daqcache.cli.commands import batch_cmd as batch_module
from daqcache.cli.commands import publish_cmd as publish_module
from daqcache.cli.session import publishing_session
from daqcache.config import PublisherSettings
from daqcache.errors import SpackEnvironmentError
from tests.fakes import FakePackageManager

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch) -> Path:
    """A working directory with logs redirected and a Spack checkout in place."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DAQCACHE_LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("DAQCACHE_INSTALL_TREE_ROOT", "/daq/software")
    (tmp_path / "spack" / "v1.0.1").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def fake_pm() -> FakePackageManager:
    return FakePackageManager()


@pytest.fixture
def patched_factory(monkeypatch, make_environment, fake_pm):
    """Route every command's environment initialization to the fake."""

    def _environment_factory(spack_root, session, arch=None, **kwargs):
        def _initialize(compiler):
            environment = make_environment(compiler, fake_pm)
            if arch is not None:
                environment.arch = arch
            return environment

        return _initialize

    monkeypatch.setattr(batch_module, "environment_factory", _environment_factory)
    monkeypatch.setattr(publish_module, "environment_factory", _environment_factory)
    return fake_pm


def _write_config(workspace: Path, versions: str) -> Path:
    path = workspace / "build-artdaq-suite.env"
    path.write_text(
        f"SOFTWARE_BASE={workspace}\n"
        "SPACK_DIR=${SOFTWARE_BASE}/spack\n"
        "SPACK_VERSION=v1.0.1\n"
        "SPACK_MIRROR_BASE=${SOFTWARE_BASE}/mirrors/artdaq-suite\n"
        "DAQ_SUITE_NAME=artdaq-suite\n"
        f'DAQ_SUITE_VERSIONS="{versions}"\n'
    )
    return path


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestCliApp:
    """The CLI must register all expected commands and show help."""

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)
        assert "Usage" in result.output or "usage" in result.output.lower()

    def test_help_flag(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "publish" in result.output
        assert "batch" in result.output
        assert "init-config" in result.output

    @pytest.mark.parametrize("command", ["publish", "batch", "init-config"])
    def test_command_help(self, command):
        assert runner.invoke(app, [command, "--help"]).exit_code == 0


# ---------------------------------------------------------------------------
# init-config
# ---------------------------------------------------------------------------


class TestInitConfig:
    def test_creates_file(self, tmp_path):
        path = tmp_path / "build-sbndaq-suite.env"
        result = runner.invoke(app, ["init-config", "sbndaq-suite", str(path)])
        assert result.exit_code == 0
        assert "DAQ_SUITE_NAME=sbndaq-suite" in path.read_text()

    def test_existing_file_untouched(self, tmp_path):
        path = tmp_path / "build.env"
        path.write_text("MINE=1\n")
        result = runner.invoke(app, ["init-config", "artdaq-suite", str(path)])
        assert result.exit_code == 0
        assert path.read_text() == "MINE=1\n"

    def test_unknown_suite(self, tmp_path):
        result = runner.invoke(app, ["init-config", "nope-suite", str(tmp_path / "x.env")])
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# batch
# ---------------------------------------------------------------------------


class TestBatchCommand:
    def test_successful_batch(self, workspace, patched_factory):
        config = _write_config(
            workspace, "v4_01_00:s132:gcc13.1.0:c++20,v3_13_02:s131:gcc13.1.0:c++17"
        )
        result = runner.invoke(app, ["batch", str(config)])
        assert result.exit_code == 0, result.output
        assert "succeeded=2 failed=0 warnings=0" in result.output
        assert (workspace / "mirrors" / "artdaq-suite" / "s132-e28").is_dir()
        assert (workspace / "mirrors" / "artdaq-suite" / "s131-e28").is_dir()

    def test_failure_sets_exit_code(self, workspace, patched_factory):
        patched_factory.fail_install_for = {"v9_99_99"}
        config = _write_config(
            workspace, "v9_99_99:s132:gcc13.1.0:c++20,v4_01_00:s132:gcc13.1.0:c++20"
        )
        result = runner.invoke(app, ["batch", str(config)])
        assert result.exit_code == 1
        assert "succeeded=1 failed=1 warnings=0" in result.output

    def test_versions_and_mirror_override(self, workspace, patched_factory):
        config = _write_config(workspace, "v4_01_00:s132:gcc13.1.0:c++20")
        result = runner.invoke(
            app,
            [
                "batch",
                str(config),
                "--versions",
                "v1_00_00:s120:gcc12.1.0:c++17",
                "--mirror-base",
                str(workspace / "other"),
            ],
        )
        assert result.exit_code == 0, result.output
        assert (workspace / "other" / "s120-e26").is_dir()
        assert patched_factory.calls_to("install")[0].startswith("artdaq-suite@v1_00_00")

    def test_missing_config_without_suite(self, workspace):
        result = runner.invoke(app, ["batch", str(workspace / "missing.env")])
        assert result.exit_code == 1

    def test_missing_spack_directory(self, workspace, patched_factory):
        config = _write_config(workspace, "v4_01_00:s132:gcc13.1.0:c++20")
        config.write_text(config.read_text().replace("SPACK_VERSION=v1.0.1", "SPACK_VERSION=v9"))
        result = runner.invoke(app, ["batch", str(config)])
        assert result.exit_code == 1
        assert patched_factory.calls == []

    def test_default_config_created_for_suite(self, workspace):
        path = workspace / "configs" / "build-artdaq-suite.env"
        # the default config points at /daq/software, which does not exist here
        result = runner.invoke(app, ["batch", str(path), "--suite", "artdaq-suite"])
        assert path.exists()
        assert result.exit_code == 1

    def test_command_log_archived(self, workspace, patched_factory):
        config = _write_config(workspace, "v4_01_00:s132:gcc13.1.0:c++20")
        runner.invoke(app, ["batch", str(config)])
        assert not (workspace / "logs" / "commands.log").exists()
        assert list((workspace / "logs").glob("build.*.log"))


# ---------------------------------------------------------------------------
# publish
# ---------------------------------------------------------------------------


class TestPublishCommand:
    def _args(self, workspace: Path, *extra: str) -> list[str]:
        return [
            "publish",
            "artdaq-suite",
            "v4_01_00",
            "-q",
            "s=132",
            "-q",
            "cxxstd=20",
            "--compiler",
            "gcc@13.1.0",
            "--mirror-base",
            str(workspace / "mirror"),
            "--spack-dir",
            str(workspace / "spack"),
            "--spack-version",
            "v1.0.1",
            *extra,
        ]

    def test_publish(self, workspace, patched_factory):
        result = runner.invoke(app, self._args(workspace))
        assert result.exit_code == 0, result.output
        assert "succeeded=1 failed=0 warnings=0" in result.output
        assert patched_factory.calls_to("push") == ["abc1234", "def5678", "0a1b2c3"]

    def test_arch_override(self, workspace, patched_factory):
        result = runner.invoke(
            app, self._args(workspace, "--arch", "linux-almalinux9-x86_64_v3")
        )
        assert result.exit_code == 0, result.output
        assert "arch=linux-almalinux9-x86_64_v3" in patched_factory.calls_to("install")[0]

    def test_install_failure(self, workspace, patched_factory):
        patched_factory.fail.add("install")
        result = runner.invoke(app, self._args(workspace))
        assert result.exit_code == 1
        assert "succeeded=0 failed=1 warnings=0" in result.output

    def test_environment_failure(self, workspace, monkeypatch):
        def _broken_factory(spack_root, session, **kwargs):
            def _initialize(compiler):
                raise SpackEnvironmentError("no spack here")

            return _initialize

        monkeypatch.setattr(publish_module, "environment_factory", _broken_factory)
        result = runner.invoke(app, self._args(workspace))
        assert result.exit_code == 1
        assert "succeeded=0 failed=1 warnings=0" in result.output

    def test_bad_compiler(self, workspace):
        args = self._args(workspace)
        args[args.index("gcc@13.1.0")] = "gcc"
        result = runner.invoke(app, args)
        assert result.exit_code == 2

    def test_bad_qualifier(self, workspace, patched_factory):
        args = self._args(workspace)
        args[args.index("s=132")] = "s132"
        result = runner.invoke(app, args)
        assert result.exit_code == 2
        assert patched_factory.calls == []


# ---------------------------------------------------------------------------
# Session log rotation
# ---------------------------------------------------------------------------


class TestLogRotation:
    def test_old_logs_rotated_when_session_starts(self, tmp_path):
        logs_dir = tmp_path / "logs"
        logs_dir.mkdir()
        for i in range(3):
            old = logs_dir / f"pkg-v{i}.2024010{i}_000000-install.log"
            old.write_text("old\n")
            os.utime(old, (1_000_000 + i, 1_000_000 + i))

        settings = PublisherSettings(logs_dir=logs_dir, max_logs=1)
        with publishing_session(settings):
            assert sorted(p.name for p in logs_dir.glob("*-install.log")) == [
                "pkg-v2.20240102_000000-install.log"
            ]
            fresh = [logs_dir / f"new-{i}.20250101_000000-install.log" for i in range(3)]
            for path in fresh:
                path.write_text("new\n")

        assert all(path.exists() for path in fresh)

    def test_batch_keeps_its_own_logs(self, workspace, patched_factory, monkeypatch):
        monkeypatch.setenv("DAQCACHE_MAX_LOGS", "1")
        config = _write_config(
            workspace,
            "v3_13_02:s131:gcc13.1.0:c++17,v3_13_02:s132:gcc13.1.0:c++20,"
            "v4_01_00:s132:gcc13.1.0:c++20",
        )
        result = runner.invoke(app, ["batch", str(config)])
        assert result.exit_code == 0, result.output
        assert len(list((workspace / "logs").glob("*-install.log"))) == 3
        assert len(list((workspace / "logs").glob("*-build.log"))) == 3
