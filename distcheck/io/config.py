from __future__ import annotations
from typing import Any, Dict, Mapping, Optional
import logging
import os

import yaml

from configs.validate import validate_config
from ..engine.types import Config
from ..errors import ConfigError

logger = logging.getLogger(__name__)


# ---- small helpers --------------------------------------------------------

def _dict(obj: Any) -> Dict[str, Any]:
    return obj if isinstance(obj, dict) else {}


def apply_env_overrides(raw: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    """
    Merge CI env overrides into the raw config before validation (no effect if absent).
    Supported:
      - DISTCHECK_JOBS=<int>             -> parallel.jobs
      - DISTCHECK_BUILD_TIMEOUT=<float>  -> build.timeout_s
      - DISTCHECK_BACKEND=process|thread -> parallel.backend
    Values are validated together with the file, so a bad override is a ConfigError.
    """
    out = dict(raw)
    jobs = env.get("DISTCHECK_JOBS")
    timeout = env.get("DISTCHECK_BUILD_TIMEOUT")
    backend = env.get("DISTCHECK_BACKEND")
    if jobs:
        out["parallel"] = {**_dict(out.get("parallel")), "jobs": jobs.strip()}
    if timeout:
        out["build"] = {**_dict(out.get("build")), "timeout_s": timeout.strip()}
    if backend:
        out["parallel"] = {**_dict(out.get("parallel")), "backend": backend.strip()}
    return out


def config_from_dict(data: Mapping[str, Any], *, source: Optional[str] = None) -> Config:
    """Validate a raw mapping and build a Config. Raises ConfigError on any problem."""
    try:
        normalized = validate_config(dict(data))
    except ValueError as e:
        where = f" in {source}" if source else ""
        raise ConfigError(f"invalid configuration{where}:\n{e}") from e
    return Config(
        version=normalized["version"],
        project=normalized["project"],
        build=normalized["build"],
        fingerprint=normalized["fingerprint"],
        mutate=normalized["mutate"],
        parallel=normalized["parallel"],
        policy=normalized["policy"],
        logging=normalized["logging"],
        source=source,
    )


# ---- loader ---------------------------------------------------------------

def read_config_file(path: str | os.PathLike) -> Dict[str, Any]:
    """Parse a YAML config file into a raw dict (not yet validated)."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"config file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e
    if loaded is not None and not isinstance(loaded, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    logger.debug("loaded config from %s", path)
    return loaded or {}


def merge_overrides(raw: Mapping[str, Any], overrides: Mapping[str, Any] | None) -> Dict[str, Any]:
    """Overlay section-level overrides (e.g. from CLI flags) onto a raw config; None values are skipped."""
    out = {k: (dict(v) if isinstance(v, dict) else v) for k, v in raw.items()}
    for section, values in (overrides or {}).items():
        if isinstance(values, Mapping):
            picked = {k: v for k, v in values.items() if v is not None}
            if picked:
                out[section] = {**_dict(out.get(section)), **picked}
        elif values is not None:
            out[section] = values
    return out


def load_config(
    path: str | os.PathLike | None = None,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Config:
    """
    Load a YAML config if given; otherwise return defaults.

    Behavior:
      * Missing file at an explicit path is a ConfigError (a typo should not
        silently fall back to defaults).
      * Relative project paths stay relative to the current directory.
      * Precedence: file < env (DISTCHECK_JOBS, DISTCHECK_BUILD_TIMEOUT,
        DISTCHECK_BACKEND) < ``overrides``.
    """
    env = os.environ if env is None else env
    data: Dict[str, Any] = read_config_file(path) if path else {}
    data = merge_overrides(apply_env_overrides(data, env), overrides)
    return config_from_dict(data, source=str(path) if path else None)
