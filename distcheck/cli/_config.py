"""Locate, load and validate the distcheck config for a CLI invocation."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Tuple

from ..engine.types import Config
from ..errors import ConfigError
from ..io.config import load_config

__all__ = [
    "PROJECT_CONFIG",
    "USER_CONFIG",
    "config_candidates",
    "discover_config_path",
    "resolve_config",
    "select_config",
]

logger = logging.getLogger(__name__)

PROJECT_CONFIG = Path("configs") / "distcheck.yaml"
USER_CONFIG = Path("distcheck") / "config.yaml"


def _expand(raw: str) -> Path:
    return Path(os.path.expandvars(raw)).expanduser()


def _as_file(p: Path) -> Optional[Path]:
    # a directory stands for the config.yaml inside it
    candidate = p / "config.yaml" if p.is_dir() else p
    return candidate.resolve() if candidate.is_file() else None


def config_candidates(cwd: Path, env: Mapping[str, str]) -> Iterator[Tuple[Path, str]]:
    """Places searched when no --config is given, highest priority first."""
    if env.get("DISTCHECK_CONFIG"):
        yield _expand(env["DISTCHECK_CONFIG"]), "env:DISTCHECK_CONFIG"
    yield cwd / PROJECT_CONFIG, f"cwd:{PROJECT_CONFIG.as_posix()}"
    xdg = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    yield _expand(xdg) / USER_CONFIG, "xdg"


def discover_config_path(
    explicit: Optional[str],
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Tuple[Optional[Path], str]:
    """
    Return ``(path or None, source tag)``.

    An explicit path is never replaced by discovery: when it does not exist
    the tag is ``explicit-missing`` and the caller reports a user error.
    """
    if explicit:
        wanted = _expand(explicit)
        found = _as_file(wanted)
        return (found, "explicit") if found is not None else (wanted, "explicit-missing")

    for candidate, tag in config_candidates(cwd or Path.cwd(), env if env is not None else {}):
        found = _as_file(candidate)
        if found is not None:
            return found, tag
    return None, "none"


def select_config(ns: Any) -> Optional[Path]:
    """Discovery for a parsed namespace; raises ConfigError for a missing --config."""
    selected, source = discover_config_path(getattr(ns, "config", None), Path.cwd(), os.environ)
    if source == "explicit-missing":
        raise ConfigError(f"config file not found: {selected}")
    logger.debug("config: %s (source=%s)", selected or "built-in defaults", source)
    return selected


def resolve_config(ns: Any, overrides: Optional[Mapping[str, Any]] = None) -> Config:
    """Discover, load and validate the config for a parsed CLI namespace."""
    return load_config(select_config(ns), os.environ, overrides)
