from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from distcheck.engine.consistency import check_consistency, compare_sets
from distcheck.engine.fingerprint import fingerprint
from distcheck.engine.types import BuildJobResult, FileFingerprint, FingerprintSet


def _fp(path: str, digest: str, size: int) -> FileFingerprint:
    return FileFingerprint(path=path, digest=digest, size=size)


def test_self_comparison_is_fully_consistent(tmp_path: Path, tree):
    ref = fingerprint(tree(tmp_path / "out", {"a.js": "1", "b.js": "2", "c/d.js": "3"}))
    report = compare_sets(ref, ref, job_id=7)
    assert report.job_id == 7
    assert report.total_compared == 3
    assert report.consistent_count == 3
    assert report.inconsistent_paths == ()
    assert report.rate == 1.0
    assert report.is_consistent


def test_one_differing_path():
    ref = FingerprintSet({p: _fp(p, p * 2, 4) for p in ("a.js", "b.js", "c.js", "d.js")})
    cand = dict(ref)
    cand["c.js"] = _fp("c.js", "other", 4)
    report = compare_sets(ref, cand)
    assert report.inconsistent_paths == ("c.js",)
    assert report.consistent_count == 3
    assert report.rate == pytest.approx(3 / 4)


def test_paths_missing_on_either_side_are_inconsistent():
    ref = FingerprintSet({"a.js": _fp("a.js", "1", 1), "gone.js": _fp("gone.js", "2", 2)})
    cand = {"a.js": _fp("a.js", "1", 1), "extra.js": _fp("extra.js", "3", 3)}
    report = compare_sets(ref, cand)
    assert report.total_compared == 3
    assert report.inconsistent_paths == ("extra.js", "gone.js")


def test_equal_digest_but_different_size_is_inconsistent():
    ref = {"a.js": _fp("a.js", "same", 10)}
    cand = {"a.js": _fp("a.js", "same", 11)}
    assert compare_sets(ref, cand).inconsistent_paths == ("a.js",)


def test_empty_sets_are_trivially_consistent():
    report = compare_sets({}, {})
    assert report.total_compared == 0
    assert report.rate == 1.0


def test_check_consistency_skips_failed_jobs(tmp_path: Path, tree):
    files = {"a.js": "same", "b.js": "same too", "notes.txt": "ignored"}
    ref = fingerprint(tree(tmp_path / "ref", files), [".js"])
    good = tree(tmp_path / "build-1", files)
    drift = tree(tmp_path / "build-3", {**files, "b.js": "drifted"})
    results = [
        BuildJobResult(job_id=3, output_dir=drift, success=True),
        BuildJobResult(job_id=2, output_dir=tmp_path / "build-2", success=False, error_message="boom"),
        BuildJobResult(job_id=1, output_dir=good, success=True),
    ]

    reports = check_consistency(ref, results)

    assert [r.job_id for r in reports] == [1, 3]
    assert reports[0].is_consistent
    assert reports[0].total_compared == 2
    assert reports[1].inconsistent_paths == ("b.js",)
    assert reports[1].rate == pytest.approx(0.5)


def test_three_identical_jobs(tmp_path: Path, tree):
    files = {"js/app.js": "app", "js/vendor.js": "vendor"}
    ref = fingerprint(tree(tmp_path / "ref", files))
    results = [
        BuildJobResult(job_id=i, output_dir=tree(tmp_path / f"build-{i}", files), success=True)
        for i in (1, 2, 3)
    ]
    reports = check_consistency(ref, results)
    assert len(reports) == 3
    assert all(r.is_consistent and r.total_compared == 2 for r in reports)


def test_check_consistency_uses_reference_filter(tmp_path: Path, tree):
    ref = fingerprint(tree(tmp_path / "ref", {"a.css": "x"}), [".css"])
    out = tree(tmp_path / "build-1", {"a.css": "x", "b.js": "y"})
    (report,) = check_consistency(ref, [BuildJobResult(job_id=1, output_dir=out, success=True)])
    assert report.is_consistent
    assert report.total_compared == 1


def test_hand_built_reference_uses_the_default_js_filter(tmp_path: Path, tree):
    ref = FingerprintSet({"a.js": _fp("a.js", hashlib.sha256(b"A").hexdigest(), 1)})
    assert ref.extensions == (".js",)
    out = tree(tmp_path / "build-1", {"a.js": "A", "css/site.css": "body{}"})

    (report,) = check_consistency(ref, [BuildJobResult(job_id=1, output_dir=out, success=True)])

    assert report.is_consistent
    assert report.total_compared == 1


def test_total_compared_counts_paths_only_the_build_produced():
    ref = FingerprintSet({"a.js": _fp("a.js", "1", 1)})
    cand = {"a.js": _fp("a.js", "1", 1), "chunk-1.js": _fp("chunk-1.js", "2", 2)}
    report = compare_sets(ref, cand)
    assert report.total_compared == 2 > len(ref)
    assert report.inconsistent_paths == ("chunk-1.js",)
