from __future__ import annotations

"""Typed error taxonomy.

Local, recoverable conditions (a missing directory, a path present on one side
of a diff only) never surface as exceptions; they are absorbed into the data
model. The classes below cover everything that does propagate.
"""

__all__ = [
    "DistcheckError",
    "ConfigError",
    "FilesystemAccessError",
    "BuildInvocationError",
    "WorkerFailure",
    "BackupRestoreError",
    "CLIError",
    "format_error",
]


class DistcheckError(Exception):
    """Base class for all typed, operator-facing errors in distcheck."""
    pass


class ConfigError(DistcheckError):
    """Configuration invalid, unknown keys, wrong version, etc."""
    pass


class FilesystemAccessError(DistcheckError):
    """Missing or unreadable path. Recovered locally by the fingerprint engine."""
    pass


class BuildInvocationError(DistcheckError):
    """External build command exited non-zero, failed to spawn, or timed out."""

    def __init__(self, message: str, *, returncode: int | None = None, output_tail: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output_tail = output_tail


class WorkerFailure(DistcheckError):
    """A parallel build unit raised or exited abnormally."""
    pass


class BackupRestoreError(DistcheckError):
    """Reading or writing the backup of the file under test failed."""
    pass


class CLIError(DistcheckError):
    """Generic CLI failure wrapper for unexpected errors in CLI code paths."""
    pass


def format_error(e: BaseException) -> str:
    """Return a short, uniform operator-facing message like 'ConfigError: detail'."""
    name = e.__class__.__name__
    msg = str(e).strip()
    return f"{name}: {msg}" if msg else name


__all__ = sorted(__all__)
