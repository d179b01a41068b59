"""`distcheck parallel`: concurrent builds checked against a reference build."""
from __future__ import annotations

import argparse
import logging
import shutil
from pathlib import Path
from typing import Optional

from ..engine.consistency import check_consistency
from ..engine.fingerprint import fingerprint
from ..engine.orchestrator import evaluate_policy
from ..engine.runner import run_build, run_parallel_builds
from ..engine.types import RunOutcome
from ..errors import DistcheckError
from ..io.paths import make_scratch_dir
from ..io.snapshot import load_fingerprints
from ..report import consistency_to_dict, print_consistency
from ._config import resolve_config
from ._exit import FINDING, OK
from ._io import print_json
from ._util import add_common_flags, configure_logging, report_error, wants_json
from .run import add_project_flags, project_overrides

logger = logging.getLogger(__name__)


def _entrypoint(ns: argparse.Namespace) -> int:
    configure_logging(ns)
    outcome = RunOutcome()
    scratch: Optional[Path] = None
    try:
        cfg = resolve_config(ns, project_overrides(ns))
        configure_logging(ns, cfg.logging.get("level"))

        if ns.reference:
            reference = load_fingerprints(ns.reference, cfg.extensions, algorithm=cfg.algorithm)
        else:
            logger.info("building reference in %s", cfg.root)
            run_build(cfg.build["command"], cfg.root, timeout_s=cfg.build.get("timeout_s"))
            reference = fingerprint(cfg.output_dir, cfg.extensions, algorithm=cfg.algorithm)
        logger.info("reference: %d matching file(s)", len(reference))

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
        outcome.reports = check_consistency(reference, outcome.job_results)
    except (DistcheckError, OSError) as e:
        return report_error(e)
    finally:
        if scratch is not None:
            shutil.rmtree(scratch, ignore_errors=True)
            logger.info("removed scratch directory %s", scratch)

    evaluate_policy(outcome, cfg.policy)
    if wants_json(ns):
        doc = consistency_to_dict(outcome.reports, outcome.job_results)
        doc["findings"] = list(outcome.findings)
        print_json(doc)
    else:
        print_consistency(outcome.reports, outcome.job_results)
        for finding in outcome.findings:
            print(f"FINDING: {finding}")
    return FINDING if outcome.findings else OK


def register(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "parallel",
        help="run concurrent builds and check them against a reference",
        description=(
            "Run the configured number of builds concurrently, each copying the build "
            "output into its own scratch directory, then compare every successful build "
            "against the reference. Without --reference, one sequential build provides it."
        ),
    )
    add_common_flags(p)
    add_project_flags(p)
    p.add_argument(
        "--reference",
        metavar="DIR_OR_JSON",
        help="reference build output directory or saved snapshot (default: build once first)",
    )
    p.set_defaults(func=_entrypoint, _parser=p)
