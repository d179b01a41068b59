from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import pytest

from distcheck.cli.main import build_parser, main


def _write_project_config(project: Path, extra: str = "") -> Path:
    cfg = project / "configs" / "distcheck.yaml"
    cfg.parent.mkdir(parents=True, exist_ok=True)
    cfg.write_text(
        "project:\n"
        "  root: .\n"
        "  output_dir: dist\n"
        "build:\n"
        f"  command: [{json.dumps(sys.executable)}, build.py]\n"
        "  timeout_s: 60\n"
        "mutate:\n"
        "  target: src/main.txt\n"
        "  append: \"lazy\\n\"\n"
        "parallel:\n"
        "  jobs: 2\n"
        "  backend: thread\n" + extra,
        encoding="utf-8",
    )
    return cfg


def test_help_lists_every_subcommand(capsys):
    with pytest.raises(SystemExit) as ei:
        build_parser().parse_args(["--help"])
    assert ei.value.code == 0
    out = capsys.readouterr().out
    for name in ("run", "fingerprint", "diff", "parallel", "validate"):
        assert name in out


def test_no_subcommand_prints_help_and_exits_2(capsys):
    assert main([]) == 2
    assert "usage: distcheck" in capsys.readouterr().err


def test_fingerprint_table_and_json(tmp_path: Path, tree, capsys):
    root = tree(tmp_path / "dist", {"a.js": "A", "b.css": "B"})
    assert main(["fingerprint", str(root)]) == 0
    out = capsys.readouterr().out
    assert "a.js" in out
    assert "b.css" not in out

    assert main(["fingerprint", str(root), "--json", "--ext", "css"]) == 0
    doc = json.loads(capsys.readouterr().out)
    assert list(doc["files"]) == ["b.css"]
    assert doc["extensions"] == [".css"]


def test_fingerprint_save_then_diff_against_snapshot(tmp_path: Path, tree, capsys):
    v1 = tree(tmp_path / "v1", {"a.js": "x" * 100})
    snap = tmp_path / "v1.json"
    assert main(["fingerprint", str(v1), "--save", str(snap), "--quiet"]) == 0
    capsys.readouterr()
    v2 = tree(tmp_path / "v2", {"a.js": "y" * 120, "b.js": "z" * 50})

    assert main(["diff", str(snap), str(v2), "--json"]) == 0
    doc = json.loads(capsys.readouterr().out)
    assert doc["summary"]["changed"] == 1
    assert doc["summary"]["added"] == 1
    assert doc["summary"]["size_delta"] == 70

    assert main(["diff", str(snap), str(v2), "--fail-on-change"]) == 1
    out = capsys.readouterr().out
    assert "a.js" in out and "+20B" in out and "+50B" in out


def test_diff_of_missing_dirs_is_empty_and_ok(tmp_path: Path, capsys):
    assert main(["diff", str(tmp_path / "nope1"), str(tmp_path / "nope2"), "--fail-on-change"]) == 0


def test_diff_with_bad_snapshot_is_fatal(tmp_path: Path, capsys):
    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")
    assert main(["diff", str(bad), str(tmp_path)]) == 3
    assert "FilesystemAccessError" in capsys.readouterr().err


def test_validate_reports_effective_config(project: Path, monkeypatch, capsys):
    _write_project_config(project)
    monkeypatch.chdir(project)
    assert main(["validate", "--json"]) == 0
    doc = json.loads(capsys.readouterr().out)
    assert doc["ok"] is True
    assert doc["source"].endswith("distcheck.yaml")
    assert doc["config"]["parallel"]["jobs"] == 2
    assert doc["warnings"] == []


def test_validate_invalid_config_exits_2(tmp_path: Path, capsys):
    bad = tmp_path / "bad.yaml"
    bad.write_text("parallel:\n  backend: gpu\n", encoding="utf-8")
    assert main(["validate", "-c", str(bad)]) == 2
    assert "parallel.backend" in capsys.readouterr().err


def test_explicit_missing_config_exits_2(tmp_path: Path, capsys):
    assert main(["fingerprint", str(tmp_path), "-c", str(tmp_path / "missing.yaml")]) == 2
    assert "config file not found" in capsys.readouterr().err


def test_run_full_check(project: Path, monkeypatch, capsys):
    _write_project_config(project, "logging:\n  run_log: runs.jsonl\n")
    monkeypatch.chdir(project)
    original = (project / "src" / "main.txt").read_bytes()

    assert main(["run"]) == 0

    out = capsys.readouterr().out
    assert "OK: reproducibility check completed" in out
    assert "js/lazy.js" in out
    assert (project / "src" / "main.txt").read_bytes() == original
    log = Path(os.environ["DISTCHECK_LOG_DIR"]) / "runs.jsonl"
    record = json.loads(log.read_text(encoding="utf-8").splitlines()[-1])
    assert record["ok"] is True
    assert record["states"][-1] == "done"


def test_run_json_output(project: Path, monkeypatch, capsys):
    _write_project_config(project)
    monkeypatch.chdir(project)
    assert main(["run", "--json", "--jobs", "1"]) == 0
    doc = json.loads(capsys.readouterr().out)
    assert doc["ok"] is True
    assert doc["diff"]["summary"]["added"] == 1
    assert doc["consistency"]["summary"]["jobs"] == 1
    assert doc["consistency"]["summary"]["rate"] == 1.0


def test_run_strict_consistency_finding_exits_1(project: Path, monkeypatch, capsys):
    _write_project_config(project)
    (project / "NONDETERMINISTIC").touch()
    monkeypatch.chdir(project)
    assert main(["run", "--strict-consistency"]) == 1
    out = capsys.readouterr().out
    assert "possible build nondeterminism" in out
    assert "FINDING:" in out


def test_run_build_failure_exits_3(project: Path, monkeypatch, capsys):
    _write_project_config(project)
    (project / "FAIL").touch()
    monkeypatch.chdir(project)
    original = (project / "src" / "main.txt").read_bytes()
    assert main(["run"]) == 3
    assert "FAILED: BuildInvocationError" in capsys.readouterr().out
    assert (project / "src" / "main.txt").read_bytes() == original


def test_run_missing_target_exits_2(project: Path, monkeypatch, capsys):
    _write_project_config(project)
    monkeypatch.chdir(project)
    assert main(["run", "--target", "src/absent.txt"]) == 2


def test_run_content_file_flag_replaces_config_append(project: Path, monkeypatch, capsys):
    _write_project_config(project)
    (project / "replacement.txt").write_text("totally new\n", encoding="utf-8")
    monkeypatch.chdir(project)
    assert main(["run", "--json", "--content-file", "replacement.txt", "--jobs", "0"]) == 0
    doc = json.loads(capsys.readouterr().out)
    statuses = {e["path"]: e["status"] for e in doc["diff"]["entries"]}
    assert statuses == {"js/app.js": "changed", "js/vendor.js": "unchanged"}


def test_parallel_with_snapshot_reference(project: Path, monkeypatch, tmp_path: Path, capsys):
    _write_project_config(project)
    monkeypatch.chdir(project)
    snap = tmp_path / "ref.json"

    assert main(["parallel", "--json", "--jobs", "2"]) == 0
    doc = json.loads(capsys.readouterr().out)
    assert doc["summary"]["fully_consistent"] == 2
    assert doc["findings"] == []

    assert main(["fingerprint", "dist", "--save", str(snap)]) == 0
    capsys.readouterr()
    (project / "src" / "main.txt").write_text("changed\n", encoding="utf-8")
    assert main(["parallel", "--reference", str(snap), "--strict-consistency"]) == 1
    out = capsys.readouterr().out
    assert "INCONSISTENT" in out
    assert not list((tmp_path / "_tmp").glob("distcheck-*"))
