from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Literal, Mapping, Optional, Tuple

DiffStatus = Literal["added", "removed", "changed", "unchanged"]

SHORT_DIGEST_LEN = 8

# files the harness tracks unless a filter is given; an empty filter means every file
DEFAULT_EXTENSIONS: Tuple[str, ...] = (".js",)

# ---- Fingerprints ----


@dataclass(frozen=True)
class FileFingerprint:
    path: str  # POSIX-style, relative to the fingerprinted root
    digest: str  # full hex digest
    size: int

    @property
    def short(self) -> str:
        return self.digest[:SHORT_DIGEST_LEN]

    def matches(self, other: Optional["FileFingerprint"]) -> bool:
        """Exact agreement: digest and size must both match."""
        return other is not None and self.digest == other.digest and self.size == other.size


class FingerprintSet(Mapping[str, FileFingerprint]):
    """Read-only mapping of relative path -> FileFingerprint for one tree snapshot."""

    __slots__ = ("_items", "root", "extensions", "algorithm")

    def __init__(
        self,
        items: Mapping[str, FileFingerprint] | None = None,
        *,
        root: str | None = None,
        extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS,
        algorithm: str = "sha256",
    ) -> None:
        ordered = {k: (items or {})[k] for k in sorted(items or {})}
        self._items = MappingProxyType(ordered)
        self.root = root
        self.extensions = tuple(extensions)
        self.algorithm = algorithm

    def __getitem__(self, key: str) -> FileFingerprint:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FingerprintSet):
            return dict(self._items) == dict(other._items)
        if isinstance(other, Mapping):
            return dict(self._items) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self._items.items()))

    def __repr__(self) -> str:
        return f"FingerprintSet(root={self.root!r}, files={len(self)})"

    @property
    def total_size(self) -> int:
        return sum(fp.size for fp in self._items.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "algorithm": self.algorithm,
            "extensions": list(self.extensions),
            "files": {k: {"digest": v.digest, "size": v.size} for k, v in self._items.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FingerprintSet":
        files = data.get("files") or {}
        exts = data.get("extensions")
        items = {
            str(k): FileFingerprint(path=str(k), digest=str(v["digest"]), size=int(v["size"]))
            for k, v in files.items()
        }
        return cls(
            items,
            root=data.get("root"),
            extensions=DEFAULT_EXTENSIONS if exts is None else tuple(exts),
            algorithm=str(data.get("algorithm") or "sha256"),
        )


# ---- Diff ----


@dataclass(frozen=True)
class DiffEntry:
    path: str
    status: DiffStatus
    before_digest: Optional[str]
    after_digest: Optional[str]
    before_size: Optional[int]
    after_size: Optional[int]
    size_delta: int
    # digests equal but sizes differ: a hash collision or a fingerprinting bug
    size_mismatch: bool = False


@dataclass(frozen=True)
class DiffSummary:
    total: int = 0
    added: int = 0
    removed: int = 0
    changed: int = 0
    unchanged: int = 0
    size_delta: int = 0
    anomalies: int = 0

    @property
    def differing(self) -> int:
        return self.added + self.removed + self.changed

    @property
    def change_rate(self) -> float:
        """Percentage of added, removed or changed paths over all paths."""
        if self.total == 0:
            return 0.0
        return self.differing / self.total * 100.0

    def percent(self, count: int) -> float:
        return count / self.total * 100.0 if self.total else 0.0


@dataclass(frozen=True)
class DiffResult:
    entries: Tuple[DiffEntry, ...]
    summary: DiffSummary

    def by_status(self, status: DiffStatus) -> List[DiffEntry]:
        return [e for e in self.entries if e.status == status]


# ---- Parallel builds ----


@dataclass(frozen=True)
class BuildJobResult:
    job_id: int
    output_dir: Path
    success: bool
    error_message: Optional[str] = None
    returncode: Optional[int] = None
    duration_s: float = 0.0


@dataclass(frozen=True)
class ConsistencyReport:
    """
    One build vs the reference. ``total_compared`` counts the union of both
    path sets, so it can exceed the number of reference files.
    """

    job_id: int
    total_compared: int
    consistent_count: int
    inconsistent_paths: Tuple[str, ...] = ()

    @property
    def inconsistent_count(self) -> int:
        return len(self.inconsistent_paths)

    @property
    def rate(self) -> float:
        """Fraction of compared paths that agree exactly; 1.0 when nothing was compared."""
        if self.total_compared == 0:
            return 1.0
        return self.consistent_count / self.total_compared

    @property
    def is_consistent(self) -> bool:
        return not self.inconsistent_paths


# ---- Config ----


@dataclass
class Config:
    """Normalised run configuration; sections mirror the YAML layout."""

    version: int = 1
    project: Dict[str, Any] = field(default_factory=lambda: {"root": ".", "output_dir": "dist"})
    build: Dict[str, Any] = field(
        default_factory=lambda: {"command": "npm run build", "timeout_s": None, "stream_output": False}
    )
    fingerprint: Dict[str, Any] = field(
        default_factory=lambda: {"extensions": [".js"], "algorithm": "sha256"}
    )
    mutate: Dict[str, Any] = field(
        default_factory=lambda: {
            "target": None,
            "content_file": None,
            "append": None,
            "encoding": "utf-8",
        }
    )
    parallel: Dict[str, Any] = field(
        default_factory=lambda: {"jobs": 5, "max_workers": 0, "backend": "process", "scratch_dir": None}
    )
    policy: Dict[str, Any] = field(
        default_factory=lambda: {"fail_on_parallel_failure": False, "fail_on_inconsistency": False}
    )
    logging: Dict[str, Any] = field(default_factory=lambda: {"level": "INFO", "run_log": None})
    source: Optional[str] = None  # path the config was loaded from, if any

    @property
    def root(self) -> Path:
        return Path(self.project.get("root") or ".").expanduser()

    @property
    def output_dir(self) -> Path:
        """The build's declared output directory, absolute."""
        out = Path(self.project.get("output_dir") or "dist")
        return out if out.is_absolute() else self.root / out

    @property
    def extensions(self) -> Tuple[str, ...]:
        return tuple(self.fingerprint.get("extensions") or ())

    @property
    def algorithm(self) -> str:
        return str(self.fingerprint.get("algorithm") or "sha256")


# ---- Orchestrator ----


class RunState(str, Enum):
    IDLE = "idle"
    BACKED_UP = "backed-up"
    BUILT_ORIGINAL = "built-original"
    MUTATED = "mutated"
    BUILT_MODIFIED = "built-modified"
    PARALLEL_BUILT = "parallel-built"
    COMPARED = "compared"
    CLEANED_UP = "cleaned-up"
    RESTORED = "restored"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunOutcome:
    states: List[RunState] = field(default_factory=lambda: [RunState.IDLE])
    before: Optional[FingerprintSet] = None
    after: Optional[FingerprintSet] = None
    diff: Optional[DiffResult] = None
    job_results: List[BuildJobResult] = field(default_factory=list)
    reports: List[ConsistencyReport] = field(default_factory=list)
    error: Optional[BaseException] = None
    # strict-policy violations; test findings, not harness faults
    findings: List[str] = field(default_factory=list)

    @property
    def state(self) -> RunState:
        return self.states[-1]

    @property
    def failed_jobs(self) -> List[BuildJobResult]:
        return [r for r in self.job_results if not r.success]

    @property
    def ok(self) -> bool:
        return self.error is None and self.state is RunState.DONE

    def advance(self, state: RunState) -> None:
        self.states.append(state)
