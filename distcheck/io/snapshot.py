from __future__ import annotations

"""
Saved fingerprint sets.

A snapshot is canonical JSON (sorted keys) holding the digest and size of every
file, so a build's output can be diffed later without keeping the tree around.
"""
import json
from pathlib import Path

from ..engine.fingerprint import fingerprint
from ..engine.types import FingerprintSet
from ..errors import FilesystemAccessError
from .atomic import atomic_write_json

__all__ = ["SNAPSHOT_SCHEMA", "load_fingerprints", "read_snapshot", "write_snapshot"]

SNAPSHOT_SCHEMA = "distcheck-fingerprints-v1"


def write_snapshot(path: Path | str, fps: FingerprintSet) -> None:
    payload = {"schema": SNAPSHOT_SCHEMA, **fps.to_dict()}
    atomic_write_json(path, payload)


def read_snapshot(path: Path | str) -> FingerprintSet:
    """Load a saved set. Raises FilesystemAccessError if missing, unreadable or malformed."""
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise FilesystemAccessError(f"cannot read snapshot {p}: {e}") from e
    except json.JSONDecodeError as e:
        raise FilesystemAccessError(f"snapshot {p} is not valid JSON: {e}") from e
    if not isinstance(data, dict) or data.get("schema") != SNAPSHOT_SCHEMA:
        raise FilesystemAccessError(f"{p} is not a distcheck fingerprint snapshot")
    try:
        return FingerprintSet.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise FilesystemAccessError(f"snapshot {p} is malformed: {e}") from e


def load_fingerprints(source: Path | str, extensions, *, algorithm: str = "sha256") -> FingerprintSet:
    """Fingerprint a directory, or read a saved snapshot when ``source`` is a .json file."""
    p = Path(source)
    if p.is_file() and p.suffix == ".json":
        return read_snapshot(p)
    return fingerprint(p, extensions, algorithm=algorithm)
