# distcheck/cli/main.py
from __future__ import annotations

import argparse
import sys
from typing import List

from . import diff, fingerprint, parallel, run, validate


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="distcheck",
        description="Build-output reproducibility harness",
        epilog="Exit codes: 0 ok, 1 finding (strict policy), 2 usage/config error, 3 harness failure.",
        allow_abbrev=False,
    )
    from distcheck import __version__ as _VER

    parser.add_argument(
        "--version",
        action="version",
        version=f"distcheck {_VER}",
    )
    subparsers = parser.add_subparsers(dest="command")

    run.register(subparsers)
    fingerprint.register(subparsers)
    diff.register(subparsers)
    parallel.register(subparsers)
    validate.register(subparsers)

    return parser


def main(argv: List[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()
    ns = parser.parse_args(argv)
    if not hasattr(ns, "func"):
        parser.print_help(sys.stderr)
        return 2
    try:
        return ns.func(ns)
    except KeyboardInterrupt:
        print("[distcheck] interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
