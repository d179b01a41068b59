from __future__ import annotations

import os
import tempfile
from pathlib import Path


def logs_dir() -> Path:
    """
    Resolve the logs directory with the following precedence:
    1) DISTCHECK_LOG_DIR
    2) ./.logs under the current working directory (repo default)
    3) {tempdir}/distcheck/logs (final fallback)

    Ensures the directory exists and returns a Path.
    """
    v = os.environ.get("DISTCHECK_LOG_DIR")
    if v:
        p = Path(v)
        p.mkdir(parents=True, exist_ok=True)
        return p.resolve()

    p = Path.cwd() / ".logs"
    try:
        p.mkdir(parents=True, exist_ok=True)
        return p.resolve()
    except OSError:
        t = temp_root() / "distcheck" / "logs"
        t.mkdir(parents=True, exist_ok=True)
        return t.resolve()


def temp_root() -> Path:
    """
    Return the platform's temporary directory as a Path.
    Allows override via DISTCHECK_TMP for tests/CI.
    """
    env = os.environ.get("DISTCHECK_TMP")
    return Path(env) if env else Path(tempfile.gettempdir())


def make_scratch_dir(explicit: str | os.PathLike | None = None) -> Path:
    """
    Create the single top-level scratch directory for one run.

    An explicit directory is created (it must not already hold a previous run's
    build-* dirs, so a fresh uniquely named child is used underneath it).
    """
    base = Path(explicit) if explicit else temp_root()
    base.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix="distcheck-", dir=str(base))).resolve()


def backup_path_for(target: Path) -> Path:
    return target.with_name(target.name + ".distcheck-backup")
