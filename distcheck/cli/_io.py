"""stdout rendering shared by the subcommands: JSON documents and plain tables."""
from __future__ import annotations

import json
import sys
from typing import Any, List, Sequence, TextIO

__all__ = ["print_json", "print_table"]


def print_json(obj: Any = None, *, stream: TextIO | None = None) -> None:
    """Dump obj as stable, sorted, indented JSON (no color)."""
    out = stream or sys.stdout
    out.write(json.dumps(obj, sort_keys=True, indent=2, ensure_ascii=False) + "\n")


def _is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def print_table(
    rows: Sequence[Sequence[Any]],
    headers: Sequence[str],
    *,
    title: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """
    Two-space separated columns under a dashed header rule.

    Columns holding only numbers are right-aligned; None renders as "-".
    The title and header are printed even when there are no rows.
    """
    out = stream or sys.stdout
    cells: List[List[str]] = [["-" if c is None else str(c) for c in row] for row in rows]
    widths = [len(h) for h in headers]
    for row in cells:
        widths = [max(w, len(c)) for w, c in zip(widths, row)]
    right = [bool(rows) and all(_is_number(row[i]) for row in rows) for i in range(len(headers))]

    def line(values: Sequence[str]) -> str:
        parts = [v.rjust(w) if r else v.ljust(w) for v, w, r in zip(values, widths, right)]
        return "  ".join(parts).rstrip()

    if title:
        print(title, file=out)
    print(line(list(headers)), file=out)
    print("  ".join("-" * w for w in widths), file=out)
    for row in cells:
        print(line(row), file=out)
