"""Human-readable tables and JSON documents for fingerprints, diffs and consistency results.

Nothing here computes; every function takes finished engine results.
"""
from __future__ import annotations

import sys
from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO

from .cli._io import print_table
from .engine.types import (
    BuildJobResult,
    ConsistencyReport,
    DiffEntry,
    DiffResult,
    FingerprintSet,
    RunOutcome,
)
from .errors import format_error

__all__ = [
    "consistency_summary",
    "diff_to_dict",
    "outcome_to_dict",
    "print_consistency",
    "print_diff",
    "print_fingerprints",
    "print_outcome",
]

_RESULT_LABEL = {
    "added": "new",
    "removed": "removed",
    "changed": "changed",
    "unchanged": "consistent",
}


COMPARED_OVER = "union"
UNION_NOTE = (
    "note: each build is compared over the union of reference and build paths; "
    "a file on only one side counts as inconsistent, so 'compared' can exceed "
    "the reference's file count"
)


def fmt_bytes_delta(n: int) -> str:
    return f"+{n}B" if n > 0 else f"{n}B"


def fmt_pct(x: float) -> str:
    return f"{x:.2f}%"


def _short(digest: Optional[str]) -> str:
    return digest[:8] if digest else "-"


# ---- fingerprints ----


def fingerprint_rows(fps: FingerprintSet) -> List[List[Any]]:
    return [[p, fp.short, fp.size] for p, fp in fps.items()]


def print_fingerprints(fps: FingerprintSet, *, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    print_table(
        fingerprint_rows(fps),
        headers=["file", "digest", "size"],
        title=f"== fingerprints: {fps.root} ({len(fps)} file(s), {fps.total_size}B) ==",
        stream=out,
    )


# ---- diff ----


def diff_row(e: DiffEntry) -> List[str]:
    result = "SIZE MISMATCH" if e.size_mismatch else _RESULT_LABEL[e.status]
    return [e.path, e.status, _short(e.before_digest), _short(e.after_digest), fmt_bytes_delta(e.size_delta), result]


def diff_summary_rows(result: DiffResult) -> List[List[str]]:
    s = result.summary
    rows = [
        ["total files", str(s.total), fmt_pct(100.0 if s.total else 0.0)],
        ["differing", str(s.differing), fmt_pct(s.change_rate)],
        ["added", str(s.added), fmt_pct(s.percent(s.added))],
        ["changed", str(s.changed), fmt_pct(s.percent(s.changed))],
        ["removed", str(s.removed), fmt_pct(s.percent(s.removed))],
        ["unchanged", str(s.unchanged), fmt_pct(s.percent(s.unchanged))],
        ["size change", fmt_bytes_delta(s.size_delta), "-"],
    ]
    if s.anomalies:
        rows.append(["size mismatches", str(s.anomalies), fmt_pct(s.percent(s.anomalies))])
    return rows


def print_diff(result: DiffResult, *, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    print_table(
        [diff_row(e) for e in result.entries],
        headers=["file", "status", "before", "after", "size_delta", "result"],
        title="== build output diff (before -> after) ==",
        stream=out,
    )
    print(file=out)
    print_table(diff_summary_rows(result), headers=["metric", "count", "percent"], title="== diff summary ==", stream=out)


def diff_to_dict(result: DiffResult) -> Dict[str, Any]:
    s = result.summary
    return {
        "entries": [
            {
                "path": e.path,
                "status": e.status,
                "before_digest": e.before_digest,
                "after_digest": e.after_digest,
                "before_size": e.before_size,
                "after_size": e.after_size,
                "size_delta": e.size_delta,
                "size_mismatch": e.size_mismatch,
            }
            for e in result.entries
        ],
        "summary": {
            "total": s.total,
            "added": s.added,
            "removed": s.removed,
            "changed": s.changed,
            "unchanged": s.unchanged,
            "size_delta": s.size_delta,
            "change_rate": round(s.change_rate, 4),
            "anomalies": s.anomalies,
        },
    }


# ---- consistency ----


def consistency_summary(reports: Sequence[ConsistencyReport], results: Sequence[BuildJobResult]) -> Dict[str, Any]:
    compared = sum(r.total_compared for r in reports)
    consistent = sum(r.consistent_count for r in reports)
    return {
        "jobs": len(results),
        "succeeded": sum(1 for r in results if r.success),
        "failed": sum(1 for r in results if not r.success),
        "fully_consistent": sum(1 for r in reports if r.is_consistent),
        "compared": compared,
        "consistent": consistent,
        "inconsistent": compared - consistent,
        "rate": (consistent / compared) if compared else 1.0,
        "compared_over": COMPARED_OVER,
    }


def print_consistency(
    reports: Sequence[ConsistencyReport],
    results: Sequence[BuildJobResult],
    *,
    stream: TextIO | None = None,
) -> None:
    out = stream or sys.stdout
    by_job: Mapping[int, ConsistencyReport] = {r.job_id: r for r in reports}
    rows = []
    for res in sorted(results, key=lambda r: r.job_id):
        rep = by_job.get(res.job_id)
        if rep is None:
            rows.append([res.job_id, "build failed", "-", "-", "-", "-"])
        else:
            rows.append(
                [
                    res.job_id,
                    "ok" if rep.is_consistent else "INCONSISTENT",
                    rep.total_compared,
                    rep.consistent_count,
                    rep.inconsistent_count,
                    fmt_pct(rep.rate * 100.0),
                ]
            )
    print_table(
        rows,
        headers=["build", "status", "compared", "consistent", "inconsistent", "rate"],
        title="== parallel build consistency ==",
        stream=out,
    )
    if not results:
        print("no parallel build results to compare", file=out)

    agg = consistency_summary(reports, results)
    print(file=out)
    print_table(
        [
            ["parallel builds", agg["jobs"], "-"],
            ["succeeded", agg["succeeded"], "-"],
            ["failed", agg["failed"], "-"],
            ["fully consistent", agg["fully_consistent"], "-"],
            ["files compared", agg["compared"], fmt_pct(100.0 if agg["compared"] else 0.0)],
            ["consistent files", agg["consistent"], fmt_pct(agg["rate"] * 100.0)],
            ["inconsistent files", agg["inconsistent"], fmt_pct(100.0 - agg["rate"] * 100.0)],
        ],
        headers=["metric", "count", "percent"],
        title="== consistency summary ==",
        stream=out,
    )
    if reports:
        print(UNION_NOTE, file=out)

    inconsistent = [(r.job_id, p) for r in reports for p in r.inconsistent_paths]
    if inconsistent:
        print(file=out)
        print("inconsistent files:", file=out)
        for job_id, path in inconsistent:
            print(f"  build {job_id}: {path} (possible build nondeterminism)", file=out)
    failed = [r for r in results if not r.success]
    if failed:
        print(file=out)
        print("failed builds:", file=out)
        for r in failed:
            first = (r.error_message or "unknown error").splitlines()[0]
            print(f"  build {r.job_id}: {first}", file=out)


def _job_to_dict(r: BuildJobResult) -> Dict[str, Any]:
    return {
        "job_id": r.job_id,
        "output_dir": str(r.output_dir),
        "success": r.success,
        "error_message": r.error_message,
        "returncode": r.returncode,
        "duration_s": round(r.duration_s, 3),
    }


def consistency_to_dict(reports: Sequence[ConsistencyReport], results: Sequence[BuildJobResult]) -> Dict[str, Any]:
    return {
        "jobs": [_job_to_dict(r) for r in sorted(results, key=lambda r: r.job_id)],
        "reports": [
            {
                "job_id": r.job_id,
                "total_compared": r.total_compared,
                "consistent_count": r.consistent_count,
                "inconsistent_count": r.inconsistent_count,
                "inconsistent_paths": list(r.inconsistent_paths),
                "rate": round(r.rate, 6),
            }
            for r in reports
        ],
        "summary": consistency_summary(reports, results),
    }


# ---- full run ----


def outcome_to_dict(outcome: RunOutcome) -> Dict[str, Any]:
    return {
        "ok": outcome.ok,
        "states": [s.value for s in outcome.states],
        "error": format_error(outcome.error) if outcome.error is not None else None,
        "findings": list(outcome.findings),
        "diff": diff_to_dict(outcome.diff) if outcome.diff is not None else None,
        "consistency": consistency_to_dict(outcome.reports, outcome.job_results),
    }


def print_outcome(outcome: RunOutcome, *, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    if outcome.diff is not None:
        print_diff(outcome.diff, stream=out)
        print(file=out)
        print_consistency(outcome.reports, outcome.job_results, stream=out)
        print(file=out)
    for finding in outcome.findings:
        print(f"FINDING: {finding}", file=out)
    if outcome.error is not None:
        print(f"FAILED: {format_error(outcome.error)}", file=out)
    elif outcome.findings:
        print("FAILED: strict policy violated", file=out)
    else:
        print("OK: reproducibility check completed", file=out)
