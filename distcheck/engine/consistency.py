"""Check parallel build outputs against a reference fingerprint set."""
from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional, Sequence

from .fingerprint import fingerprint
from .types import BuildJobResult, ConsistencyReport, FileFingerprint, FingerprintSet

__all__ = ["check_consistency", "compare_sets"]

logger = logging.getLogger(__name__)


def compare_sets(
    reference: Mapping[str, FileFingerprint],
    candidate: Mapping[str, FileFingerprint],
    job_id: int = 0,
) -> ConsistencyReport:
    """
    Compare ``candidate`` against ``reference`` over the union of their paths.

    A path is consistent only when both sides carry it with equal digest and
    equal size; digest equality alone is not trusted.
    """
    paths = sorted(set(reference) | set(candidate))
    consistent = 0
    inconsistent: List[str] = []
    for p in paths:
        ref = reference.get(p)
        if ref is not None and ref.matches(candidate.get(p)):
            consistent += 1
        else:
            inconsistent.append(p)
    return ConsistencyReport(
        job_id=job_id,
        total_compared=len(paths),
        consistent_count=consistent,
        inconsistent_paths=tuple(inconsistent),
    )


def check_consistency(
    reference: FingerprintSet,
    job_results: Iterable[BuildJobResult],
    *,
    extensions: Optional[Sequence[str]] = None,
    algorithm: Optional[str] = None,
) -> List[ConsistencyReport]:
    """
    Fingerprint each successful job's private output and compare it to ``reference``.

    The filter and hash algorithm default to the ones ``reference`` was built
    with. Failed jobs contribute no report; see ``runner.failed_jobs``.
    """
    exts = tuple(extensions) if extensions is not None else reference.extensions
    algo = algorithm or reference.algorithm
    reports: List[ConsistencyReport] = []
    for result in sorted(job_results, key=lambda r: r.job_id):
        if not result.success:
            continue
        observed = fingerprint(result.output_dir, exts, algorithm=algo)
        report = compare_sets(reference, observed, result.job_id)
        if report.inconsistent_paths:
            logger.warning(
                "build %d: %d of %d file(s) differ from reference",
                result.job_id,
                report.inconsistent_count,
                report.total_compared,
            )
        reports.append(report)
    return reports
