"""
Deterministic diff of two fingerprint sets.

Every path in the union of both sets gets exactly one DiffEntry, in
lexicographic path order:

  absent before, present after   -> added      (delta = +after.size)
  present before, absent after   -> removed    (delta = -before.size)
  both, digests differ           -> changed    (delta = after.size - before.size)
  both, digests equal            -> unchanged  (delta = after.size - before.size, normally 0)

An "unchanged" entry whose sizes disagree is flagged ``size_mismatch`` and
counted as an anomaly. Its status is not altered, so classification depends
only on membership and digest equality, and sizes are conserved:

    sum(e.size_delta) == sum(after sizes) - sum(before sizes)
"""
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from .types import DiffEntry, DiffResult, DiffSummary, FileFingerprint

__all__ = ["diff", "classify"]

logger = logging.getLogger(__name__)


def classify(
    path: str,
    before: Optional[FileFingerprint],
    after: Optional[FileFingerprint],
) -> DiffEntry:
    """Classify one path. At least one side must be present."""
    if before is None and after is None:
        raise ValueError(f"path {path!r} is absent from both sets")

    if before is None:
        assert after is not None
        return DiffEntry(path, "added", None, after.digest, None, after.size, after.size)
    if after is None:
        return DiffEntry(path, "removed", before.digest, None, before.size, None, -before.size)

    delta = after.size - before.size
    if before.digest != after.digest:
        return DiffEntry(path, "changed", before.digest, after.digest, before.size, after.size, delta)

    mismatch = delta != 0
    if mismatch:
        logger.warning(
            "digest %s equal for %s but sizes differ (%d vs %d); hash collision or fingerprint bug",
            before.short,
            path,
            before.size,
            after.size,
        )
    return DiffEntry(
        path, "unchanged", before.digest, after.digest, before.size, after.size, delta, mismatch
    )


def diff(
    before: Mapping[str, FileFingerprint],
    after: Mapping[str, FileFingerprint],
) -> DiffResult:
    """Compare two fingerprint sets. Pure and total; ``diff({}, {})`` is empty."""
    entries: List[DiffEntry] = []
    counts: Dict[str, int] = {"added": 0, "removed": 0, "changed": 0, "unchanged": 0}
    size_delta = 0
    anomalies = 0

    for path in sorted(set(before) | set(after)):
        e = classify(path, before.get(path), after.get(path))
        entries.append(e)
        counts[e.status] += 1
        size_delta += e.size_delta
        if e.size_mismatch:
            anomalies += 1

    summary = DiffSummary(
        total=len(entries),
        added=counts["added"],
        removed=counts["removed"],
        changed=counts["changed"],
        unchanged=counts["unchanged"],
        size_delta=size_delta,
        anomalies=anomalies,
    )
    return DiffResult(entries=tuple(entries), summary=summary)
