"""Package coordinate models — what one publish attempt builds and pushes."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, field_validator

_COMPILER_RE = re.compile(r"^(?:%?(?P<family>[a-z]+)@?)?(?P<version>\d[\w.]*)$")


class CompilerSpec(BaseModel):
    """Compiler a coordinate is built with, e.g. ``gcc@13.1.0``."""

    model_config = ConfigDict(frozen=True)

    family: str = "gcc"
    version: str

    @field_validator("family", "version")
    @classmethod
    def _not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("compiler family and version must be non-empty")
        return value.strip()

    @classmethod
    def parse(cls, text: str) -> CompilerSpec:
        """Parse ``gcc13.1.0``, ``gcc@13.1.0``, ``%gcc@13.1.0`` or ``13.1.0``."""
        match = _COMPILER_RE.match(text.strip())
        if match is None:
            raise ValueError(f"Cannot parse compiler {text!r}")
        return cls(family=match.group("family") or "gcc", version=match.group("version"))

    @property
    def spec_token(self) -> str:
        return f"%{self.family}@{self.version}"

    def __str__(self) -> str:
        return f"{self.family}@{self.version}"


def format_qualifiers(qualifier: str | None, cxxstd: str | None = None) -> tuple[str, ...]:
    """Turn batch-list qualifier fields into Spack variant strings.

    ``s132``, ``s=132`` and ``132`` all become ``s=132``; ``none`` or an
    empty value drops the s qualifier. ``c++20`` and ``20`` become
    ``cxxstd=20``.
    """
    result: list[str] = []
    if qualifier and qualifier != "none":
        clean = qualifier.strip()
        for prefix in ("s=", "s"):
            if clean.startswith(prefix):
                clean = clean[len(prefix):]
        if clean:
            result.append(f"s={clean}")
    if cxxstd:
        std = cxxstd.strip()
        if std.startswith("c++"):
            std = std[len("c++"):]
        if std:
            result.append(f"cxxstd={std}")
    return tuple(result)


class PackageCoordinate(BaseModel):
    """Identifies one buildable package variant.

    ``name``, ``version``, ``compiler.version`` and ``arch`` must be
    non-empty; a missing field is a configuration error raised when the
    coordinate is built, never a failure discovered halfway through a
    publish.

    Qualifiers are kept sorted by key so that every Spack command line and
    every scratch file name built from them is stable.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    qualifiers: tuple[str, ...] = ()
    compiler: CompilerSpec
    arch: str

    @field_validator("name", "version", "arch")
    @classmethod
    def _not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must be non-empty")
        return value.strip()

    @field_validator("qualifiers", mode="before")
    @classmethod
    def _normalize_qualifiers(cls, value: object) -> tuple[str, ...]:
        if isinstance(value, str):
            value = value.split()
        items = [str(q).strip() for q in value or () if str(q).strip()]
        for item in items:
            if "=" not in item:
                raise ValueError(f"qualifier {item!r} is not key=value")
        # dict keeps the last value per key, sorted() makes the order stable
        by_key = {item.split("=", 1)[0]: item for item in items}
        return tuple(by_key[key] for key in sorted(by_key))

    # ------------------------------------------------------------------
    # Qualifier accessors
    # ------------------------------------------------------------------

    def qualifier(self, key: str) -> str | None:
        """Return the value of the ``key=value`` qualifier, if present."""
        for item in self.qualifiers:
            k, v = item.split("=", 1)
            if k == key:
                return v
        return None

    @property
    def s_qualifier(self) -> str | None:
        return self.qualifier("s")

    @property
    def cxxstd(self) -> str | None:
        return self.qualifier("cxxstd")

    @property
    def os_name(self) -> str:
        """Second field of the arch triple (``almalinux9``)."""
        parts = self.arch.split("-")
        return parts[1] if len(parts) > 1 else ""

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def spec_args(self) -> list[str]:
        """Arguments naming this coordinate on a Spack command line."""
        return [
            f"{self.name}@{self.version}",
            *self.qualifiers,
            f"arch={self.arch}",
            self.compiler.spec_token,
        ]

    @property
    def label(self) -> str:
        return " ".join(self.spec_args())

    def path_name(self, delimiter: str = "-") -> str:
        """Deterministic file-name stem for scratch files and logs.

        ``artdaq-suite-v4_01_00-almalinux9-gcc13.1.0-c++20-s132``
        """
        parts: list[str] = []
        if self.os_name:
            parts.append(self.os_name)
        parts.append(f"gcc{self.compiler.version}")
        if self.cxxstd:
            parts.append(f"c++{self.cxxstd}")
        if self.s_qualifier:
            parts.append(f"s{self.s_qualifier}")
        return f"{self.name}-{self.version}{delimiter}" + "-".join(parts)

    def __str__(self) -> str:
        return self.label
