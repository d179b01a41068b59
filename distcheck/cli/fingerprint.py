"""`distcheck fingerprint`: digest and size of every matching file under a directory."""
from __future__ import annotations

import argparse
import logging

from ..errors import DistcheckError
from ..io.snapshot import load_fingerprints, write_snapshot
from ..report import print_fingerprints
from ._config import resolve_config
from ._exit import OK
from ._io import print_json
from ._util import add_common_flags, configure_logging, report_error, wants_json

logger = logging.getLogger(__name__)


def _entrypoint(ns: argparse.Namespace) -> int:
    configure_logging(ns)
    try:
        cfg = resolve_config(
            ns, {"fingerprint": {"extensions": ns.ext, "algorithm": ns.algorithm}}
        )
        configure_logging(ns, cfg.logging.get("level"))
        fps = load_fingerprints(ns.directory, cfg.extensions, algorithm=cfg.algorithm)
        if ns.save:
            write_snapshot(ns.save, fps)
            logger.info("saved %d fingerprint(s) to %s", len(fps), ns.save)
    except (DistcheckError, OSError) as e:
        return report_error(e)

    if wants_json(ns):
        print_json(fps.to_dict())
    else:
        print_fingerprints(fps)
    return OK


def register(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "fingerprint",
        help="fingerprint the matching files under a directory",
        description=(
            "Compute a content digest and byte size for every file under DIRECTORY whose "
            "name ends with one of the configured extensions. A missing directory yields "
            "an empty set."
        ),
    )
    add_common_flags(p)
    p.add_argument("directory", help="directory to walk (or a saved .json snapshot)")
    p.add_argument("--ext", action="append", help="file extension to include (repeatable)")
    p.add_argument("--algorithm", help="hashlib digest name (default: sha256)")
    p.add_argument("--save", metavar="PATH", help="also write the set as a JSON snapshot")
    p.set_defaults(func=_entrypoint, _parser=p)
