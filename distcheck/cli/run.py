"""`distcheck run`: the full backup/build/mutate/build/parallel/compare/restore check."""
from __future__ import annotations

import argparse
import logging
from typing import Any, Dict

from ..engine.orchestrator import run_check
from ..errors import DistcheckError
from ..io.log import append_jsonl
from ..report import outcome_to_dict, print_outcome
from ._config import resolve_config
from ._exit import FINDING, OK
from ._io import print_json
from ._util import add_common_flags, configure_logging, exit_code_for_error, report_error, wants_json

logger = logging.getLogger(__name__)


def add_project_flags(p: argparse.ArgumentParser) -> None:
    """Flags shared by `run` and `parallel` that override config values."""
    p.add_argument("--root", help="project root the build runs in")
    p.add_argument("--output-dir", help="build output directory, relative to --root")
    p.add_argument("--command", help="build command (run through the shell)")
    p.add_argument("--timeout", type=float, help="per-build timeout in seconds")
    p.add_argument("--ext", action="append", help="file extension to fingerprint (repeatable)")
    p.add_argument("--jobs", type=int, help="number of parallel builds")
    p.add_argument("--max-workers", type=int, help="concurrent workers (0 = one per job)")
    p.add_argument("--backend", choices=["process", "thread"], help="parallel worker backend")
    p.add_argument(
        "--strict-parallel",
        action="store_true",
        default=None,
        help="exit 1 when any parallel build fails",
    )
    p.add_argument(
        "--strict-consistency",
        action="store_true",
        default=None,
        help="exit 1 when any parallel build differs from the reference",
    )


def project_overrides(ns: argparse.Namespace) -> Dict[str, Dict[str, Any]]:
    return {
        "project": {"root": ns.root, "output_dir": ns.output_dir},
        "build": {"command": ns.command, "timeout_s": ns.timeout},
        "fingerprint": {"extensions": ns.ext},
        "parallel": {"jobs": ns.jobs, "max_workers": ns.max_workers, "backend": ns.backend},
        "policy": {
            "fail_on_parallel_failure": ns.strict_parallel,
            "fail_on_inconsistency": ns.strict_consistency,
        },
    }


def _overrides(ns: argparse.Namespace) -> Dict[str, Dict[str, Any]]:
    out = project_overrides(ns)
    out["build"]["stream_output"] = ns.show_build_output
    mutate = {"target": ns.target, "append": ns.append, "content_file": ns.content_file}
    # a mutation flag replaces whichever mutation the config file chose
    if ns.append is not None:
        mutate["content_file"] = ""
    elif ns.content_file is not None:
        mutate["append"] = ""
    out["mutate"] = mutate
    return out


def _entrypoint(ns: argparse.Namespace) -> int:
    configure_logging(ns)
    try:
        cfg = resolve_config(ns, _overrides(ns))
    except DistcheckError as e:
        return report_error(e)
    configure_logging(ns, cfg.logging.get("level"))

    outcome = run_check(cfg)

    doc = outcome_to_dict(outcome)
    run_log = cfg.logging.get("run_log")
    if run_log:
        try:
            path = append_jsonl(run_log, doc)
            logger.debug("run record appended to %s", path)
        except OSError as e:
            logger.warning("cannot append run record to %s: %s", run_log, e)

    if wants_json(ns):
        print_json(doc)
    else:
        print_outcome(outcome)

    if outcome.error is not None:
        return exit_code_for_error(outcome.error)
    if outcome.findings:
        return FINDING
    return OK


def register(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "run",
        help="full reproducibility check (build, mutate, rebuild, parallel builds, compare)",
        description=(
            "Back up the file under test, build, mutate it, rebuild, run parallel builds, "
            "diff the two sequential builds, check every parallel build against the "
            "modified build, then clean up and restore."
        ),
    )
    add_common_flags(p)
    add_project_flags(p)
    p.add_argument("--target", help="file under test, relative to --root")
    mut = p.add_mutually_exclusive_group()
    mut.add_argument("--append", help="text appended to the file under test")
    mut.add_argument("--content-file", help="file whose content replaces the file under test")
    p.add_argument(
        "--show-build-output",
        action="store_true",
        default=None,
        help="stream the sequential builds' output instead of capturing it",
    )
    p.set_defaults(func=_entrypoint, _parser=p)
