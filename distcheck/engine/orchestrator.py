"""Sequencing of one full reproducibility check.

    IDLE -> BACKED_UP -> BUILT_ORIGINAL -> MUTATED -> BUILT_MODIFIED
         -> PARALLEL_BUILT -> COMPARED -> CLEANED_UP -> RESTORED -> DONE

Every step blocks. Any failure logs the error, removes the scratch directory,
restores the file under test from its backup and ends in FAILED. A failed
sequential build is never retried.
"""
from __future__ import annotations

import logging
import os
import platform
import shutil
import sys
from pathlib import Path
from typing import Optional

from ..errors import BackupRestoreError, ConfigError, DistcheckError, format_error
from ..io.atomic import atomic_write_bytes
from ..io.paths import backup_path_for, make_scratch_dir
from .consistency import check_consistency
from .diff import diff
from .fingerprint import fingerprint
from .runner import run_build, run_parallel_builds
from .types import Config, FingerprintSet, RunOutcome, RunState

__all__ = ["InputBackup", "apply_mutation", "evaluate_policy", "run_check"]

logger = logging.getLogger(__name__)


class InputBackup:
    """
    Byte-exact backup of the file under test.

    ``backup()`` writes ``<target>.distcheck-backup`` durably before anything
    touches the target; ``restore()`` writes the bytes back and removes the
    backup. Raw bytes keep the original encoding and line endings intact.
    """

    def __init__(self, target: Path) -> None:
        self.target = Path(target)
        self.backup_path = backup_path_for(self.target)
        self._original: Optional[bytes] = None

    @property
    def active(self) -> bool:
        return self._original is not None

    def backup(self) -> None:
        try:
            data = self.target.read_bytes()
            atomic_write_bytes(self.backup_path, data)
        except OSError as e:
            raise BackupRestoreError(f"cannot back up {self.target}: {e}") from e
        self._original = data
        logger.info("backed up %s -> %s", self.target, self.backup_path)

    def restore(self) -> None:
        if self._original is None:
            return
        try:
            data = self.backup_path.read_bytes() if self.backup_path.exists() else self._original
            atomic_write_bytes(self.target, data)
            self.backup_path.unlink(missing_ok=True)
        except OSError as e:
            raise BackupRestoreError(f"cannot restore {self.target} from {self.backup_path}: {e}") from e
        self._original = None
        logger.info("restored %s", self.target)

    def __enter__(self) -> "InputBackup":
        self.backup()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.restore()
        except BackupRestoreError as e:
            if exc is None:
                raise
            # keep the original error; the restore failure is only logged
            logger.error("%s", format_error(e))


def apply_mutation(target: Path, mutate: dict, *, base: Optional[Path] = None) -> None:
    """Overwrite ``target`` with ``mutate.content_file`` or append ``mutate.append``."""
    encoding = mutate.get("encoding") or "utf-8"
    content_file = mutate.get("content_file")
    append = mutate.get("append")
    try:
        original = target.read_bytes().decode(encoding)
        if content_file:
            src = Path(content_file).expanduser()
            if base is not None and not src.is_absolute():
                src = base / src
            new_text = src.read_bytes().decode(encoding)
        elif append:
            new_text = original + append
        else:
            raise ConfigError("mutate: set content_file or append to change the target")
        if new_text == original:
            logger.warning("mutation leaves %s unchanged; the diff will show no source change", target)
        atomic_write_bytes(target, new_text.encode(encoding))
    except (OSError, UnicodeError) as e:
        raise BackupRestoreError(f"cannot mutate {target}: {e}") from e
    logger.info("mutated %s", target)


def evaluate_policy(outcome: RunOutcome, policy: dict) -> None:
    """Record strict-policy findings on ``outcome`` (parallel failures, inconsistencies)."""
    failed = outcome.failed_jobs
    if policy.get("fail_on_parallel_failure") and failed:
        ids = ", ".join(str(r.job_id) for r in failed)
        outcome.findings.append(f"{len(failed)} parallel build(s) failed: {ids}")
    if policy.get("fail_on_inconsistency"):
        bad = [r for r in outcome.reports if not r.is_consistent]
        if bad:
            ids = ", ".join(str(r.job_id) for r in bad)
            outcome.findings.append(f"{len(bad)} parallel build(s) differ from the reference: {ids}")


def _log_header(cfg: Config, target: Path) -> None:
    from .. import __version__

    logger.info("distcheck %s, Python %s", __version__, platform.python_version())
    logger.info("platform %s %s, pid %d", sys.platform, platform.machine(), os.getpid())
    logger.info("project root %s, output %s", cfg.root.resolve(), cfg.output_dir)
    logger.info("file under test %s", target)


def _build_and_fingerprint(cfg: Config, label: str) -> FingerprintSet:
    logger.info("building %s", label)
    run_build(
        cfg.build["command"],
        cfg.root,
        timeout_s=cfg.build.get("timeout_s"),
        stream_output=bool(cfg.build.get("stream_output")),
    )
    fps = fingerprint(cfg.output_dir, cfg.extensions, algorithm=cfg.algorithm)
    logger.info("%s build: %d matching file(s)", label, len(fps))
    return fps


def _resolve_target(cfg: Config) -> Path:
    raw = cfg.mutate.get("target")
    if not raw:
        raise ConfigError("mutate.target is required for a full check")
    target = Path(raw).expanduser()
    if not target.is_absolute():
        target = cfg.root / target
    if not target.is_file():
        raise ConfigError(f"mutate.target does not exist: {target}")
    if not (cfg.mutate.get("content_file") or cfg.mutate.get("append")):
        raise ConfigError("mutate: set content_file or append to change the target")
    return target


def _remove_scratch(scratch: Optional[Path]) -> None:
    if scratch is None:
        return
    try:
        shutil.rmtree(scratch)
        logger.info("removed scratch directory %s", scratch)
    except OSError as e:
        logger.warning("cannot remove scratch directory %s: %s", scratch, e)


def run_check(cfg: Config) -> RunOutcome:
    """
    Run the full check described by ``cfg``.

    Never raises for harness faults; they are returned in ``outcome.error``
    with the state machine ending in FAILED. Parallel build failures are data,
    recorded in ``outcome.job_results``, and only become findings under the
    strict policy.
    """
    outcome = RunOutcome()
    try:
        target = _resolve_target(cfg)
        _log_header(cfg, target)

        with InputBackup(target):
            outcome.advance(RunState.BACKED_UP)
            scratch: Optional[Path] = None
            try:
                outcome.before = _build_and_fingerprint(cfg, "original")
                outcome.advance(RunState.BUILT_ORIGINAL)

                apply_mutation(target, cfg.mutate, base=cfg.root)
                outcome.advance(RunState.MUTATED)

                outcome.after = _build_and_fingerprint(cfg, "modified")
                outcome.advance(RunState.BUILT_MODIFIED)

                scratch = make_scratch_dir(cfg.parallel.get("scratch_dir"))
                outcome.job_results = run_parallel_builds(
                    int(cfg.parallel.get("jobs", 0)),
                    cfg.build["command"],
                    cfg.root,
                    scratch_dir=scratch,
                    output_dir=cfg.output_dir,
                    timeout_s=cfg.build.get("timeout_s"),
                    max_workers=int(cfg.parallel.get("max_workers", 0)),
                    backend=cfg.parallel.get("backend", "process"),
                )
                outcome.advance(RunState.PARALLEL_BUILT)

                outcome.diff = diff(outcome.before, outcome.after)
                outcome.reports = check_consistency(outcome.after, outcome.job_results)
                outcome.advance(RunState.COMPARED)
            finally:
                _remove_scratch(scratch)
            outcome.advance(RunState.CLEANED_UP)
        outcome.advance(RunState.RESTORED)
    except (DistcheckError, OSError) as e:
        outcome.error = e
        logger.error("check failed after state %s: %s", outcome.state.value, format_error(e))
        outcome.advance(RunState.FAILED)
        return outcome

    evaluate_policy(outcome, cfg.policy)
    outcome.advance(RunState.DONE)
    return outcome
