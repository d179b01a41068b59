"""Content fingerprinting of a directory tree.

Symlink policy: symlinked directories are never descended (``os.walk`` with
``followlinks=False``); symlinked files are read through to their target;
broken links are skipped. Paths are keyed POSIX-style relative to the root so
two independently produced trees compare by path alone.
"""
from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Sequence, Tuple

from ..errors import FilesystemAccessError
from .types import DEFAULT_EXTENSIONS, FileFingerprint, FingerprintSet

__all__ = ["DEFAULT_EXTENSIONS", "fingerprint", "fingerprint_file", "iter_files", "normalize_extensions"]

logger = logging.getLogger(__name__)

_CHUNK = 1 << 20


def norm_path(p: str) -> str:
    return p.replace("\\", "/")


def normalize_extensions(extensions: Iterable[str] | str | None) -> Tuple[str, ...]:
    """Return a sorted, de-duplicated tuple of dotted suffixes. Empty means "all files"."""
    if extensions is None:
        return ()
    if isinstance(extensions, str):
        extensions = [extensions]
    out = set()
    for ext in extensions:
        e = str(ext).strip()
        if not e:
            continue
        out.add(e if e.startswith(".") else "." + e)
    return tuple(sorted(out))


def _matches(name: str, extensions: Sequence[str]) -> bool:
    if not extensions:
        return True
    return any(name.endswith(ext) for ext in extensions)


def iter_files(root: Path, extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> Iterator[Tuple[str, Path]]:
    """Yield (relative POSIX path, absolute path) for matching regular files, sorted by relative path."""
    found = []
    for base, dirs, files in os.walk(root, followlinks=False):
        dirs.sort()
        for name in files:
            if not _matches(name, extensions):
                continue
            full = Path(base) / name
            if not full.is_file():  # broken symlink, socket, fifo
                continue
            rel = norm_path(os.path.relpath(full, root))
            found.append((rel, full))
    found.sort(key=lambda t: t[0])
    yield from found


def fingerprint_file(path: Path, *, algorithm: str = "sha256", rel: Optional[str] = None) -> FileFingerprint:
    """Hash one file. Raises FilesystemAccessError when it cannot be read."""
    h = hashlib.new(algorithm)
    size = 0
    try:
        with open(path, "rb") as f:
            while True:
                b = f.read(_CHUNK)
                if not b:
                    break
                h.update(b)
                size += len(b)
    except OSError as e:
        raise FilesystemAccessError(f"cannot read {path}: {e}") from e
    return FileFingerprint(path=rel if rel is not None else path.name, digest=h.hexdigest(), size=size)


def fingerprint(
    root: Path | str,
    extensions: Iterable[str] | str | None = DEFAULT_EXTENSIONS,
    *,
    algorithm: str = "sha256",
) -> FingerprintSet:
    """
    Fingerprint every matching file under ``root``.

    A missing or unreadable root yields an empty set rather than an error; a
    single unreadable file is skipped and logged. Pure read, no side effects.
    """
    exts = normalize_extensions(extensions)
    hashlib.new(algorithm)  # unknown algorithm is a caller bug, fail loudly
    root_path = Path(root)
    if not root_path.is_dir():
        logger.debug("fingerprint root %s does not exist; returning empty set", root_path)
        return FingerprintSet({}, root=str(root_path), extensions=exts, algorithm=algorithm)

    items: Dict[str, FileFingerprint] = {}
    try:
        for rel, full in iter_files(root_path, exts):
            try:
                items[rel] = fingerprint_file(full, algorithm=algorithm, rel=rel)
            except FilesystemAccessError as e:
                logger.warning("skipping unreadable file: %s", e)
    except OSError as e:
        logger.warning("cannot walk %s (%s); returning empty set", root_path, e)
        items = {}

    logger.debug("fingerprinted %d file(s) under %s", len(items), root_path)
    return FingerprintSet(items, root=str(root_path), extensions=exts, algorithm=algorithm)
