"""Pure fingerprint/diff computation plus the build runner and orchestrator."""
from .consistency import check_consistency, compare_sets
from .diff import diff
from .fingerprint import fingerprint
from .orchestrator import run_check
from .runner import failed_jobs, run_build, run_parallel_builds
from .types import (
    BuildJobResult,
    Config,
    ConsistencyReport,
    DiffEntry,
    DiffResult,
    DiffSummary,
    FileFingerprint,
    FingerprintSet,
    RunOutcome,
    RunState,
)

__all__ = [
    "BuildJobResult",
    "Config",
    "ConsistencyReport",
    "DiffEntry",
    "DiffResult",
    "DiffSummary",
    "FileFingerprint",
    "FingerprintSet",
    "RunOutcome",
    "RunState",
    "check_consistency",
    "compare_sets",
    "diff",
    "failed_jobs",
    "fingerprint",
    "run_build",
    "run_check",
    "run_parallel_builds",
]
