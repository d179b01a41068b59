"""`distcheck diff`: classify every file between two builds (directories or snapshots)."""
from __future__ import annotations

import argparse

from ..engine.diff import diff
from ..errors import DistcheckError
from ..io.snapshot import load_fingerprints
from ..report import diff_to_dict, print_diff
from ._config import resolve_config
from ._exit import FINDING, OK
from ._io import print_json
from ._util import add_common_flags, configure_logging, report_error, wants_json


def _entrypoint(ns: argparse.Namespace) -> int:
    configure_logging(ns)
    try:
        cfg = resolve_config(
            ns, {"fingerprint": {"extensions": ns.ext, "algorithm": ns.algorithm}}
        )
        configure_logging(ns, cfg.logging.get("level"))
        before = load_fingerprints(ns.before, cfg.extensions, algorithm=cfg.algorithm)
        after = load_fingerprints(ns.after, cfg.extensions, algorithm=cfg.algorithm)
    except (DistcheckError, OSError) as e:
        return report_error(e)

    result = diff(before, after)
    if wants_json(ns):
        print_json(diff_to_dict(result))
    else:
        print_diff(result)

    if ns.fail_on_change and result.summary.differing:
        return FINDING
    return OK


def register(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "diff",
        help="compare two builds file by file",
        description=(
            "Fingerprint BEFORE and AFTER (directories, or .json snapshots written by "
            "`distcheck fingerprint --save`) and report every file as added, removed, "
            "changed or unchanged, with byte size deltas and a summary."
        ),
    )
    add_common_flags(p)
    p.add_argument("before", help="build output (or snapshot) before the change")
    p.add_argument("after", help="build output (or snapshot) after the change")
    p.add_argument("--ext", action="append", help="file extension to include (repeatable)")
    p.add_argument("--algorithm", help="hashlib digest name (default: sha256)")
    p.add_argument(
        "--fail-on-change",
        action="store_true",
        help="exit 1 when any file was added, removed or changed",
    )
    p.set_defaults(func=_entrypoint, _parser=p)
