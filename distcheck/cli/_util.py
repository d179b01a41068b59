from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from ..errors import ConfigError, DistcheckError, format_error
from ._exit import FATAL, USER_ERR

__all__ = ["add_common_flags", "configure_logging", "exit_code_for_error", "report_error", "wants_json"]

LOG_FORMAT = "[distcheck] %(levelname)s %(name)s: %(message)s"


def add_common_flags(sp: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """
    Wire the flags every subcommand shares:
    - --json / --table (mutually exclusive): JSON document or plain ASCII tables on stdout
    - --quiet / --verbose: stderr log verbosity; stdout remains reserved for command output
    - -c / --config: explicit config file (skips discovery)
    """
    fmt = sp.add_mutually_exclusive_group()
    fmt.add_argument("--json", action="store_true", help="JSON output (stable, machine-readable)")
    fmt.add_argument("--table", action="store_true", help="Plain table output (default)")
    sp.add_argument("--quiet", action="store_true", help="only warnings and errors on stderr")
    sp.add_argument("--verbose", action="store_true", help="debug logging on stderr")
    sp.add_argument("-c", "--config", dest="config", help="config file (default: discovered)")
    return sp


def wants_json(ns: argparse.Namespace) -> bool:
    return bool(getattr(ns, "json", False))


def configure_logging(ns: argparse.Namespace, default_level: Optional[str] = None) -> None:
    """Route all distcheck logging to stderr at the level implied by flags/config."""
    verbose = bool(getattr(ns, "verbose", False))
    quiet = bool(getattr(ns, "quiet", False))
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.getLevelName(default_level or "INFO")
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(stream=sys.stderr, level=level, format=LOG_FORMAT, force=True)


def exit_code_for_error(e: BaseException) -> int:
    if isinstance(e, ConfigError):
        return USER_ERR
    return FATAL


def report_error(e: DistcheckError | OSError) -> int:
    """Print a one-line operator message on stderr and return the matching exit code."""
    print(f"[distcheck] {format_error(e)}", file=sys.stderr)
    return exit_code_for_error(e)
