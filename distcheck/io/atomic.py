"""Crash-safe file writes for the input under test and for fingerprint snapshots.

Both writers stage the payload in a hidden sibling file and move it over the
target with ``os.replace``, so a reader (or a build started right after a
restore) sees either the old bytes or the new bytes, never a prefix.
"""
from __future__ import annotations

import json
import os
import stat
import tempfile
from pathlib import Path
from typing import Any

__all__ = ["atomic_write_bytes", "atomic_write_json"]

NEW_FILE_MODE = 0o644


def _stage(final: Path, data: bytes) -> Path:
    fd, name = tempfile.mkstemp(prefix=f".{final.name}.", suffix=".part", dir=str(final.parent))
    staged = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
    except BaseException:
        staged.unlink(missing_ok=True)
        raise
    return staged


def atomic_write_bytes(final_path: Path | str, data: bytes) -> Path:
    """
    Replace ``final_path`` with exactly ``data``.

    Used to back up and restore the mutated source file, so no newline or
    encoding translation happens. An existing target keeps its permission
    bits; a new file gets ``NEW_FILE_MODE``. On failure the target is left
    untouched and the staged file is removed.
    """
    final = Path(final_path)
    final.parent.mkdir(parents=True, exist_ok=True)
    try:
        mode = stat.S_IMODE(final.stat().st_mode)
    except FileNotFoundError:
        mode = NEW_FILE_MODE

    staged = _stage(final, data)
    try:
        os.chmod(staged, mode)
        os.replace(staged, final)
    except BaseException:
        staged.unlink(missing_ok=True)
        raise
    return final


def atomic_write_json(final_path: Path | str, obj: Any) -> Path:
    """Write a snapshot document: sorted keys, 2-space indent, UTF-8, trailing newline."""
    text = json.dumps(obj, sort_keys=True, indent=2, ensure_ascii=False) + "\n"
    return atomic_write_bytes(final_path, text.encode("utf-8"))
