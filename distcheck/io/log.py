import json
import os
from typing import Any, Dict

from . import paths


def append_jsonl(filename: str, record: Dict[str, Any]) -> str:
    """Append one JSON record to ``<logs_dir>/<filename>`` and return the path.

    Binary append avoids platform newline translation; every record ends with a
    single LF so the file stays byte-stable across OSes.
    """
    base = paths.logs_dir()
    os.makedirs(base, exist_ok=True)
    path = os.path.join(base, os.path.basename(filename))
    line = (json.dumps(record, ensure_ascii=False, sort_keys=True) + "\n").encode("utf-8")
    with open(path, "ab") as f:
        f.write(line)
    return path
