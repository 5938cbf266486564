"""Batch entry and publish option models."""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from daqcache.errors import ConfigurationError
from daqcache.models.coordinate import CompilerSpec, PackageCoordinate, format_qualifiers

_ENTRY_SPLIT_RE = re.compile(r"[,\n]")


class BatchEntry(BaseModel):
    """A single configuration from a suite's ``DAQ_SUITE_VERSIONS`` list."""

    model_config = ConfigDict(frozen=True)

    version: str
    qualifier: str
    compiler: CompilerSpec
    standard: str = ""
    raw: str = ""

    @classmethod
    def parse(cls, text: str) -> BatchEntry:
        """Parse ``v4_01_00:s132:gcc13.1.0:c++20``.

        Raises ``ConfigurationError`` for anything that is not exactly four
        colon-separated fields with a parseable compiler.
        """
        raw = text.strip()
        parts = raw.split(":")
        if len(parts) != 4:
            raise ConfigurationError(
                f"Invalid configuration format: {raw!r}, "
                "expected version:qualifier:compiler:standard"
            )
        version, qualifier, compiler, standard = (p.strip() for p in parts)
        if not version:
            raise ConfigurationError(f"Invalid configuration {raw!r}: empty version")
        try:
            compiler_spec = CompilerSpec.parse(compiler)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid configuration {raw!r}: {exc}") from exc
        return cls(
            version=version,
            qualifier=qualifier,
            compiler=compiler_spec,
            standard=standard,
            raw=raw,
        )

    @property
    def qualifiers(self) -> tuple[str, ...]:
        return format_qualifiers(self.qualifier, self.standard)

    def coordinate(self, name: str, arch: str) -> PackageCoordinate:
        """Bind this entry to a package name and a resolved architecture."""
        return PackageCoordinate(
            name=name,
            version=self.version,
            qualifiers=self.qualifiers,
            compiler=self.compiler,
            arch=arch,
        )


def split_entries(versions: str) -> list[str]:
    """Split a ``DAQ_SUITE_VERSIONS`` value into its raw entries.

    Entries are separated by commas or newlines; trailing ``\\`` line
    continuations from shell-style config files are ignored.
    """
    entries: list[str] = []
    for chunk in _ENTRY_SPLIT_RE.split(versions):
        chunk = chunk.strip().rstrip("\\").strip()
        if chunk:
            entries.append(chunk)
    return entries


class PublishOptions(BaseModel):
    """Everything a publish needs besides the coordinate and mirror base.

    Passed explicitly through the call chain instead of being read from
    process-wide environment variables.
    """

    model_config = ConfigDict(frozen=True)

    jobs: int = 1
    hashes_dir: Path
    logs_dir: Path | None = None
    # Artifacts outside this root belong to an upstream and are not pushed.
    install_tree_root: Path = Path("/daq/software")
