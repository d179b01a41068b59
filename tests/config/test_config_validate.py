import pytest

from configs.validate import validate_config, validate_config_api, validate_config_verbose


def test_validate_happy_defaults():
    out = validate_config({})
    assert out["version"] == 1
    assert out["build"]["command"] == "npm run build"
    assert out["fingerprint"]["extensions"] == [".js"]
    assert out["parallel"]["jobs"] == 5
    assert out["mutate"]["encoding"] == "utf-8"


@pytest.mark.parametrize(
    "bad_cfg,needle",
    [
        ({"version": 2}, "version"),
        ({"project": {"output_dir": ""}}, "project.output_dir"),
        ({"build": {"command": []}}, "build.command"),
        ({"build": {"command": ["node", 3]}}, "build.command"),
        ({"build": {"timeout_s": 0}}, "build.timeout_s"),
        ({"build": {"stream_output": "sometimes"}}, "build.stream_output"),
        ({"fingerprint": {"extensions": 5}}, "fingerprint.extensions"),
        ({"fingerprint": {"algorithm": "crc-unknown"}}, "fingerprint.algorithm"),
        ({"mutate": {"encoding": "klingon-8"}}, "mutate.encoding"),
        ({"mutate": {"append": "x", "content_file": "y.js"}}, "set only one of content_file or append"),
        ({"parallel": {"jobs": -1}}, "parallel.jobs"),
        ({"parallel": {"max_workers": "lots"}}, "parallel.max_workers"),
        ({"parallel": {"backend": "gpu"}}, "parallel.backend"),
        ({"policy": {"fail_on_inconsistency": "maybe"}}, "policy.fail_on_inconsistency"),
        ({"logging": {"level": "LOUD"}}, "logging.level"),
        ({"build": "make"}, "build must be a mapping"),
    ],
)
def test_validate_raises_on_bad_values(bad_cfg, needle):
    with pytest.raises(ValueError) as ei:
        validate_config(bad_cfg)
    assert needle in str(ei.value)


def test_unknown_keys_get_suggestions():
    with pytest.raises(ValueError) as ei:
        validate_config({"paralel": {}, "build": {"comand": "make"}})
    msg = str(ei.value)
    assert "paralel unknown top-level key (did you mean 'parallel')" in msg
    assert "build.comand unknown key (did you mean 'command')" in msg


def test_all_errors_reported_together():
    ok, errs, cfg = validate_config_api({"parallel": {"jobs": -1, "backend": "gpu"}})
    assert ok is False
    assert cfg is None
    assert len(errs) == 2


def test_normalization():
    out = validate_config(
        {
            "fingerprint": {"extensions": ["css", ".js", "js"], "algorithm": "SHA1"},
            "parallel": {"jobs": "3", "backend": " Thread "},
            "policy": {"fail_on_parallel_failure": "yes"},
            "logging": {"level": "debug"},
            "mutate": {"append": ""},
        }
    )
    assert out["fingerprint"]["extensions"] == [".css", ".js"]
    assert out["fingerprint"]["algorithm"] == "sha1"
    assert out["parallel"]["jobs"] == 3
    assert out["parallel"]["backend"] == "thread"
    assert out["policy"]["fail_on_parallel_failure"] is True
    assert out["logging"]["level"] == "DEBUG"
    assert out["mutate"]["append"] is None


def test_empty_extension_list_means_all_files():
    assert validate_config({"fingerprint": {"extensions": []}})["fingerprint"]["extensions"] == []


def test_validate_does_not_mutate_input():
    raw = {"parallel": {"jobs": "3"}}
    validate_config(raw)
    assert raw == {"parallel": {"jobs": "3"}}


def test_verbose_warnings():
    _, warns = validate_config_verbose({})
    assert any(w.startswith("W[mutate.target]") for w in warns)

    _, warns = validate_config_verbose({"mutate": {"target": "src/a.js"}})
    assert any(w.startswith("W[mutate]") for w in warns)

    _, warns = validate_config_verbose(
        {"mutate": {"target": "a.js", "append": "x"}, "parallel": {"jobs": 4, "max_workers": 2}}
    )
    assert warns == [
        "W[parallel.max_workers]: 2 worker(s) for 4 job(s); builds will be partly serialized."
    ]


def test_shipped_example_config_is_valid():
    from pathlib import Path

    from distcheck.io.config import load_config

    example = Path(__file__).resolve().parents[2] / "configs" / "distcheck.example.yaml"
    cfg = load_config(example, env={})
    assert cfg.mutate["content_file"].endswith(".vue")
    assert cfg.build["timeout_s"] == 900.0
    assert cfg.logging["run_log"] == "distcheck_runs.jsonl"
