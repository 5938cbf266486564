"""Exception hierarchy shared across daqcache."""

from __future__ import annotations


class DaqcacheError(RuntimeError):
    """Base class for all daqcache errors."""


class ConfigurationError(DaqcacheError):
    """Raised when required configuration is missing or malformed."""


class PackageManagerError(DaqcacheError):
    """Raised when a Spack command exits non-zero.

    Carries the command line, the exit code and the captured output so the
    caller can report where things went wrong.
    """

    def __init__(
        self,
        command: list[str],
        returncode: int,
        output: str = "",
        log_path: str | None = None,
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        self.log_path = log_path
        where = f" (see {log_path})" if log_path else ""
        super().__init__(
            f"{' '.join(self.command)} exited with status {returncode}{where}"
        )


class InvalidTransitionError(DaqcacheError):
    """Raised when a publish run is asked to make an illegal stage transition."""


class SpackEnvironmentError(DaqcacheError):
    """Raised when a Spack installation cannot be located or initialized."""
