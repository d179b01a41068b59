# tests/conftest.py
from __future__ import annotations

import sys
import textwrap
from pathlib import Path
from typing import Any, Dict, Optional

import pytest

from distcheck.engine.types import Config
from distcheck.io.config import config_from_dict

# A tiny stand-in for a frontend bundler. It reads src/main.txt and writes
# dist/js/*.js plus a dist/css file that the default .js filter ignores.
# Files land via os.replace from a staging dir outside dist/, so concurrent
# builds in the same root never expose half-written output.
#
# Switches (marker files in the project root):
#   NONDETERMINISTIC  embed pid + clock in app.js
#   FAIL              exit 3 before writing anything
#   FAIL_NTH=<n>      the n-th build to start exits 4 (claimed via O_EXCL files)
#   SLEEP=<s>         sleep before writing
BUILD_SCRIPT = textwrap.dedent(
    '''
    import os
    import sys
    import time
    from pathlib import Path

    root = Path(__file__).resolve().parent
    src = (root / "src" / "main.txt").read_text(encoding="utf-8")

    if (root / "FAIL").exists():
        print("bundler: fatal error", file=sys.stderr)
        sys.exit(3)

    nth = root / "FAIL_NTH"
    if nth.exists():
        claims = root / ".claims"
        claims.mkdir(exist_ok=True)
        i = 1
        while True:
            try:
                os.close(os.open(str(claims / f"claim-{i}"), os.O_CREAT | os.O_EXCL))
                break
            except FileExistsError:
                i += 1
        if i == int(nth.read_text().strip()):
            print(f"bundler: build #{i} crashed", file=sys.stderr)
            sys.exit(4)

    sleep = root / "SLEEP"
    if sleep.exists():
        time.sleep(float(sleep.read_text().strip()))

    extra = ""
    if (root / "NONDETERMINISTIC").exists():
        extra = f"// built by {os.getpid()} at {time.time_ns()}\\n"

    out = root / "dist"
    staging = root / ".staging"
    staging.mkdir(exist_ok=True)

    def emit(rel, text):
        dest = out / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = staging / f"{os.getpid()}-{dest.name}"
        tmp.write_text(text, encoding="utf-8", newline="\\n")
        os.replace(tmp, dest)

    emit("js/app.js", "export const main = " + repr(src) + ";\\n" + extra)
    emit("js/vendor.js", "/* vendor bundle */\\nexport default 42;\\n")
    emit("css/site.css", "body { margin: 0 }\\n")
    if "lazy" in src:
        emit("js/lazy.js", "export const lazy = true;\\n")
    print("bundler: done")
    '''
).lstrip()

BUILD_CMD = [sys.executable, "build.py"]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep logs, scratch dirs and config discovery inside the test's tmp dir."""
    monkeypatch.setenv("DISTCHECK_LOG_DIR", str(tmp_path / "_logs"))
    monkeypatch.setenv("DISTCHECK_TMP", str(tmp_path / "_tmp"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "_xdg"))
    for var in ("DISTCHECK_CONFIG", "DISTCHECK_JOBS", "DISTCHECK_BUILD_TIMEOUT", "DISTCHECK_BACKEND"):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A buildable project: build.py + src/main.txt, no output yet."""
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "build.py").write_text(BUILD_SCRIPT, encoding="utf-8")
    (root / "src" / "main.txt").write_text("hello\n", encoding="utf-8")
    return root


def make_config(project: Path, **sections: Dict[str, Any]) -> Config:
    """Validated Config for ``project``; keyword args overlay whole sections."""
    raw: Dict[str, Any] = {
        "project": {"root": str(project), "output_dir": "dist"},
        "build": {"command": list(BUILD_CMD), "timeout_s": 60},
        "fingerprint": {"extensions": [".js"]},
        "mutate": {"target": "src/main.txt", "append": "lazy\n"},
        "parallel": {"jobs": 3, "backend": "thread"},
        "logging": {"level": "DEBUG"},
    }
    for name, values in sections.items():
        raw[name] = {**raw.get(name, {}), **values}
    return config_from_dict(raw)


@pytest.fixture
def project_cfg(project: Path) -> Config:
    return make_config(project)


@pytest.fixture
def cfg_for():
    return make_config


def write_tree(root: Path, files: Dict[str, Optional[str]]) -> Path:
    """Create ``root`` with the given relative files (None content is skipped)."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, text in files.items():
        if text is None:
            continue
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(text.encode("utf-8"))
    return root


@pytest.fixture
def tree():
    return write_tree


@pytest.fixture
def build_cmd():
    return list(BUILD_CMD)
