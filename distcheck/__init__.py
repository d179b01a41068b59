"""distcheck: build-output reproducibility harness.

Public import roots are `distcheck`, `distcheck.engine` and `distcheck.errors`.
This module also resolves `__version__` deterministically across installs.
"""
from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as _pkg_version

from . import errors as errors  # re-export; noqa: F401


def _version_from_metadata() -> str | None:
    try:
        return _pkg_version("distcheck")
    except PackageNotFoundError:
        return None


def _version_from_resource() -> str | None:
    try:
        from importlib.resources import files

        p = files(__package__).joinpath("VERSION")
        return p.read_text(encoding="utf-8").strip()
    except (FileNotFoundError, OSError):
        return None


__version__ = _version_from_resource() or _version_from_metadata() or "0+unknown"

# Star-export surface (deterministic ordering).
__all__ = [
    "__version__",
    "errors",
]
