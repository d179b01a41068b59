"""`distcheck validate`: load, validate and print the effective configuration."""
from __future__ import annotations

import argparse
import os
import sys

from configs.validate import validate_config_verbose

from ..errors import ConfigError, DistcheckError
from ..io.config import apply_env_overrides, read_config_file
from ._config import select_config
from ._exit import OK
from ._io import print_json, print_table
from ._util import add_common_flags, configure_logging, report_error, wants_json


def _entrypoint(ns: argparse.Namespace) -> int:
    configure_logging(ns)
    try:
        selected = select_config(ns)
        raw = read_config_file(selected) if selected else {}
        raw = apply_env_overrides(raw, os.environ)
        try:
            normalized, warnings = validate_config_verbose(raw)
        except ValueError as e:
            raise ConfigError(f"invalid configuration in {selected or '<defaults>'}:\n{e}") from e
    except DistcheckError as e:
        return report_error(e)

    if wants_json(ns):
        print_json(
            {
                "ok": True,
                "source": str(selected) if selected else None,
                "config": normalized,
                "warnings": warnings,
            }
        )
        return OK

    rows = []
    for section in sorted(k for k, v in normalized.items() if isinstance(v, dict)):
        for key in sorted(normalized[section]):
            rows.append([f"{section}.{key}", normalized[section][key]])
    print_table(rows, headers=["key", "value"], title=f"== config ({selected or 'defaults'}) ==")
    if not ns.quiet:
        for w in warnings:
            print(w, file=sys.stderr)
    print("OK: configuration is valid")
    return OK


def register(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "validate",
        help="validate the configuration and print the effective values",
        description=(
            "Discover the config file (--config, $DISTCHECK_CONFIG, ./configs/distcheck.yaml, "
            "then the XDG config dir), apply environment overrides, validate, and print "
            "the normalized values. Exits 2 on an invalid or missing explicit config."
        ),
    )
    add_common_flags(p)
    p.set_defaults(func=_entrypoint, _parser=p)
