"""
Lightweight configuration validation and normalization for distcheck.

Public API:
    validate_config(cfg: dict) -> dict
    validate_config_verbose(cfg: dict) -> (dict, warnings)
    validate_config_api(cfg: dict) -> (ok, errors, dict_or_none)

- Raises ValueError with clear messages (field paths + constraints) on invalid input.
- Returns a **new** normalized dict; the input is not mutated.
- No external dependencies.
"""
from __future__ import annotations
import copy
import hashlib
from typing import Any, Dict, List, Tuple

__all__ = ["CONFIG_VERSION", "DEFAULTS", "validate_config", "validate_config_verbose", "validate_config_api"]

CONFIG_VERSION = 1


# ------------------------------
# Utilities
# ------------------------------

def _ensure_dict(x: Any) -> Dict[str, Any]:
    if isinstance(x, dict):
        return dict(x)
    return {}


def _coerce_bool(v: Any) -> bool | None:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        s = v.strip().lower()
        if s in {"1", "true", "yes", "on"}:
            return True
        if s in {"0", "false", "no", "off"}:
            return False
    return None


def _coerce_int(v: Any) -> int | None:
    if isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _coerce_float(v: Any) -> float | None:
    if isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


# ------------------------------
# Defaults
# ------------------------------

DEFAULTS: Dict[str, Any] = {
    "version": CONFIG_VERSION,
    "project": {"root": ".", "output_dir": "dist"},
    "build": {"command": "npm run build", "timeout_s": None, "stream_output": False},
    "fingerprint": {"extensions": [".js"], "algorithm": "sha256"},
    "mutate": {"target": None, "content_file": None, "append": None, "encoding": "utf-8"},
    "parallel": {"jobs": 5, "max_workers": 0, "backend": "process", "scratch_dir": None},
    "policy": {"fail_on_parallel_failure": False, "fail_on_inconsistency": False},
    "logging": {"level": "INFO", "run_log": None},
}

ALLOWED_TOP = set(DEFAULTS.keys())
ALLOWED_SECTIONS: Dict[str, set[str]] = {
    k: set(v.keys()) for k, v in DEFAULTS.items() if isinstance(v, dict)
}
ALLOWED_BACKENDS = {"process", "thread"}
ALLOWED_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _lev(a: str, b: str) -> int:
    """Tiny Levenshtein distance (edit distance) for did-you-mean suggestions."""
    la, lb = len(a), len(b)
    dp = list(range(lb + 1))
    for i, ca in enumerate(a, 1):
        prev = dp[0]
        dp[0] = i
        for j, cb in enumerate(b, 1):
            ins = dp[j] + 1
            dele = dp[j - 1] + 1
            sub = prev + (0 if ca == cb else 1)
            prev, dp[j] = dp[j], min(ins, dele, sub)
    return dp[-1]


def _suggest_key(bad: str, allowed: set[str]) -> str | None:
    """Return closest allowed key within distance <=2, else None."""
    best_key, best_dist = None, 99
    for k in sorted(allowed):
        d = _lev(bad, k)
        if d < best_dist:
            best_key, best_dist = k, d
    return best_key if best_dist <= 2 else None


# ------------------------------
# Validation helpers
# ------------------------------

def _err(errors: List[str], path: str, msg: str) -> None:
    errors.append(f"{path} {msg}")


def _unknown_keys(errors: List[str], prefix: str, raw: Dict[str, Any], allowed: set[str]) -> None:
    for k in raw.keys():
        if k in allowed:
            continue
        path = f"{prefix}.{k}" if prefix else str(k)
        sug = _suggest_key(str(k), allowed)
        what = "unknown key" if prefix else "unknown top-level key"
        if sug:
            _err(errors, path, f"{what} (did you mean '{sug}')")
        else:
            _err(errors, path, what)


def _opt_str(errors: List[str], path: str, v: Any) -> str | None:
    if v is None:
        return None
    if isinstance(v, str):
        return v if v.strip() else None
    _err(errors, path, "must be a string or null")
    return None


# ------------------------------
# Main validator
# ------------------------------

def _validate_config_normalize_impl(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and normalize a configuration dictionary.

    Returns a NEW dict with defaults merged and fields coerced.
    Raises ValueError on invalid configurations with actionable messages.
    """
    cfg_in = _ensure_dict(cfg)
    errors: List[str] = []
    merged = copy.deepcopy(DEFAULTS)

    _unknown_keys(errors, "", cfg_in, ALLOWED_TOP)

    if "version" in cfg_in:
        ver = _coerce_int(cfg_in.get("version"))
        if ver != CONFIG_VERSION:
            _err(errors, "version", f"must be {CONFIG_VERSION}")

    raw: Dict[str, Dict[str, Any]] = {}
    for section, allowed in ALLOWED_SECTIONS.items():
        val = cfg_in.get(section)
        if val is not None and not isinstance(val, dict):
            _err(errors, section, "must be a mapping")
            val = {}
        raw[section] = _ensure_dict(val)
        _unknown_keys(errors, section, raw[section], allowed)

    # project
    p = merged["project"]
    rp = raw["project"]
    if "root" in rp:
        root = _opt_str(errors, "project.root", rp.get("root"))
        p["root"] = root or "."
    if "output_dir" in rp:
        out = _opt_str(errors, "project.output_dir", rp.get("output_dir"))
        if out is None:
            _err(errors, "project.output_dir", "must be a non-empty string")
        else:
            p["output_dir"] = out

    # build
    b = merged["build"]
    rb = raw["build"]
    if "command" in rb:
        cmd = rb.get("command")
        if isinstance(cmd, str) and cmd.strip():
            b["command"] = cmd
        elif isinstance(cmd, list) and cmd and all(isinstance(x, str) for x in cmd):
            b["command"] = list(cmd)
        else:
            _err(errors, "build.command", "must be a non-empty string or list of strings")
    if "timeout_s" in rb:
        t = rb.get("timeout_s")
        if t is None:
            b["timeout_s"] = None
        else:
            tv = _coerce_float(t)
            if tv is None or tv <= 0:
                _err(errors, "build.timeout_s", "must be > 0 or null")
            else:
                b["timeout_s"] = tv
    if "stream_output" in rb:
        sv = _coerce_bool(rb.get("stream_output"))
        if sv is None:
            _err(errors, "build.stream_output", "must be a boolean")
        else:
            b["stream_output"] = sv

    # fingerprint
    f = merged["fingerprint"]
    rf = raw["fingerprint"]
    if "extensions" in rf:
        exts = rf.get("extensions")
        if isinstance(exts, str):
            exts = [exts]
        if not isinstance(exts, list) or not all(isinstance(x, str) for x in exts):
            _err(errors, "fingerprint.extensions", "must be a list of strings")
        else:
            norm = sorted({(x if x.startswith(".") else "." + x) for x in (s.strip() for s in exts) if x})
            f["extensions"] = norm
    if "algorithm" in rf:
        algo = str(rf.get("algorithm") or "").strip().lower()
        if algo not in hashlib.algorithms_available:
            _err(errors, "fingerprint.algorithm", f"unknown hash algorithm '{algo}'")
        else:
            f["algorithm"] = algo

    # mutate
    m = merged["mutate"]
    rm = raw["mutate"]
    for key in ("target", "content_file", "append"):
        if key in rm:
            if key == "append":
                v = rm.get(key)
                if v is not None and not isinstance(v, str):
                    _err(errors, "mutate.append", "must be a string or null")
                else:
                    m["append"] = v if v else None
            else:
                m[key] = _opt_str(errors, f"mutate.{key}", rm.get(key))
    if "encoding" in rm:
        enc = _opt_str(errors, "mutate.encoding", rm.get("encoding"))
        if enc is not None:
            try:
                "".encode(enc)
                m["encoding"] = enc
            except LookupError:
                _err(errors, "mutate.encoding", f"unknown encoding '{enc}'")
    if m.get("content_file") and m.get("append"):
        _err(errors, "mutate", "set only one of content_file or append")

    # parallel
    par = merged["parallel"]
    rpar = raw["parallel"]
    if "jobs" in rpar:
        j = _coerce_int(rpar.get("jobs"))
        if j is None or j < 0:
            _err(errors, "parallel.jobs", "must be an integer >= 0")
        else:
            par["jobs"] = j
    if "max_workers" in rpar:
        w = _coerce_int(rpar.get("max_workers"))
        if w is None or w < 0:
            _err(errors, "parallel.max_workers", "must be an integer >= 0 (0 = one per job)")
        else:
            par["max_workers"] = w
    if "backend" in rpar:
        be = str(rpar.get("backend") or "").strip().lower()
        if be not in ALLOWED_BACKENDS:
            _err(errors, "parallel.backend", f"must be one of {sorted(ALLOWED_BACKENDS)}")
        else:
            par["backend"] = be
    if "scratch_dir" in rpar:
        par["scratch_dir"] = _opt_str(errors, "parallel.scratch_dir", rpar.get("scratch_dir"))

    # policy
    pol = merged["policy"]
    for key, v in raw["policy"].items():
        if key not in ALLOWED_SECTIONS["policy"]:
            continue
        bv = _coerce_bool(v)
        if bv is None:
            _err(errors, f"policy.{key}", "must be a boolean")
        else:
            pol[key] = bv

    # logging
    lg = merged["logging"]
    rl = raw["logging"]
    if "level" in rl:
        lvl = str(rl.get("level") or "").strip().upper()
        if lvl not in ALLOWED_LEVELS:
            _err(errors, "logging.level", f"must be one of {sorted(ALLOWED_LEVELS)}")
        else:
            lg["level"] = lvl
    if "run_log" in rl:
        lg["run_log"] = _opt_str(errors, "logging.run_log", rl.get("run_log"))

    if errors:
        raise ValueError("\n".join(errors))
    return merged


def validate_config_verbose(cfg: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """
    Validate and normalize configuration, returning (normalized_cfg, warnings).

    Warnings currently include:
    - no mutation configured (the full ``run`` check cannot proceed),
    - max_workers lower than jobs (builds will not all run concurrently).
    """
    normalized = _validate_config_normalize_impl(cfg)
    warnings: List[str] = []
    m = normalized["mutate"]
    if not m.get("target"):
        warnings.append("W[mutate.target]: no mutation target; only fingerprint/diff/parallel commands are usable.")
    elif not (m.get("content_file") or m.get("append")):
        warnings.append("W[mutate]: target set but neither content_file nor append given.")
    par = normalized["parallel"]
    if 0 < par["max_workers"] < par["jobs"]:
        warnings.append(
            f"W[parallel.max_workers]: {par['max_workers']} worker(s) for {par['jobs']} job(s); builds will be partly serialized."
        )
    return normalized, warnings


def validate_config_api(cfg: Dict[str, Any]):
    """Stable, test-friendly API.

    Returns a tuple: (ok: bool, errs: list[str], cfg_or_none).
    Does not raise; wraps the strict normalizer.
    """
    try:
        normalized = _validate_config_normalize_impl(cfg)
        return True, [], normalized
    except ValueError as e:
        msg = str(e).strip()
        errs = msg.split("\n") if msg else ["invalid configuration"]
        return False, errs, None


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Return the normalized config dict or raise ValueError listing every problem."""
    return _validate_config_normalize_impl(cfg)
