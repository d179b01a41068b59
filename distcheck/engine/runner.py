"""Sequential and parallel invocation of the external build command."""
from __future__ import annotations

import logging
import os
import shlex
import shutil
import signal
import subprocess
import time
from functools import partial
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..errors import BuildInvocationError, WorkerFailure
from .types import BuildJobResult
from .util.parallel import Backend, run_parallel

__all__ = ["BuildCommand", "failed_jobs", "run_build", "run_build_job", "run_parallel_builds"]

logger = logging.getLogger(__name__)

BuildCommand = Union[str, Sequence[str]]

_TAIL_CHARS = 2000
# grace period for collecting output after the process group was killed
_REAP_S = 5.0


def _describe(command: BuildCommand) -> str:
    return command if isinstance(command, str) else shlex.join(list(command))


def _tail(text: Optional[str]) -> str:
    if not text:
        return ""
    return text[-_TAIL_CHARS:]


def _popen_group_kwargs() -> dict:
    if os.name == "posix":
        return {"start_new_session": True}
    return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}


def _kill_group(proc: subprocess.Popen) -> None:
    """Kill the build and everything it spawned (npm -> node, sh -> tool)."""
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:
        proc.kill()


def run_build(
    command: BuildCommand,
    cwd: Path,
    *,
    timeout_s: Optional[float] = None,
    stream_output: bool = False,
) -> subprocess.CompletedProcess:
    """
    Run the build command once, blocking. A string command goes through the
    shell; a sequence is executed as argv.

    The build runs in its own process group. On timeout the whole group is
    killed, so no grandchild keeps writing into the output directory.

    Raises BuildInvocationError on spawn failure, timeout or non-zero exit.
    """
    shell = isinstance(command, str)
    args = command if shell else list(command)
    capture = not stream_output
    try:
        proc = subprocess.Popen(
            args,
            cwd=str(cwd),
            shell=shell,
            stdout=subprocess.PIPE if capture else None,
            stderr=subprocess.STDOUT if capture else None,
            text=True,
            **_popen_group_kwargs(),
        )
    except OSError as e:
        raise BuildInvocationError(f"cannot spawn build {_describe(command)}: {e}") from e

    try:
        out, _ = proc.communicate(timeout=timeout_s)
    except subprocess.TimeoutExpired as e:
        _kill_group(proc)
        try:
            out, _ = proc.communicate(timeout=_REAP_S)
        except subprocess.TimeoutExpired:
            # something outside the group still holds the pipe
            proc.wait()
            out = None
        raise BuildInvocationError(
            f"build timed out after {timeout_s}s: {_describe(command)}", output_tail=_tail(out)
        ) from e
    except BaseException:
        _kill_group(proc)
        proc.wait()
        raise

    if proc.returncode != 0:
        raise BuildInvocationError(
            f"build exited with status {proc.returncode}: {_describe(command)}",
            returncode=proc.returncode,
            output_tail=_tail(out),
        )
    return subprocess.CompletedProcess(proc.args, proc.returncode, out, None)


def run_build_job(
    job_id: int,
    command: BuildCommand,
    source_root: str,
    build_output: str,
    private_dir: str,
    timeout_s: Optional[float] = None,
) -> BuildJobResult:
    """
    One isolated build unit: create private dir, build, copy output.

    Runs inside a worker process (or thread). Always returns exactly one
    BuildJobResult; nothing raised here reaches the coordinator.
    """
    started = time.monotonic()
    dest = Path(private_dir)
    try:
        dest.mkdir(parents=True, exist_ok=False)
        run_build(command, Path(source_root), timeout_s=timeout_s)
        src = Path(build_output)
        if not src.is_dir():
            raise BuildInvocationError(f"build produced no output directory at {src}")
        shutil.copytree(src, dest, dirs_exist_ok=True)
    except BuildInvocationError as e:
        detail = f"{e}\n{e.output_tail}".rstrip() if e.output_tail else str(e)
        return BuildJobResult(
            job_id=job_id,
            output_dir=dest,
            success=False,
            error_message=detail,
            returncode=e.returncode,
            duration_s=time.monotonic() - started,
        )
    except (OSError, shutil.Error) as e:
        return BuildJobResult(
            job_id=job_id,
            output_dir=dest,
            success=False,
            error_message=f"{type(e).__name__}: {e}",
            duration_s=time.monotonic() - started,
        )
    return BuildJobResult(
        job_id=job_id,
        output_dir=dest,
        success=True,
        returncode=0,
        duration_s=time.monotonic() - started,
    )


def run_parallel_builds(
    job_count: int,
    build_command: BuildCommand,
    source_root: Path,
    *,
    scratch_dir: Path,
    output_dir: Path | str = "dist",
    timeout_s: Optional[float] = None,
    max_workers: int = 0,
    backend: Backend = "process",
) -> List[BuildJobResult]:
    """
    Launch ``job_count`` independent build units and wait for all of them.

    Each unit builds in ``source_root`` and copies ``output_dir`` (relative to
    the root unless absolute) into ``scratch_dir/build-<id>``. A unit that
    crashes or raises is reported as a failed BuildJobResult (WorkerFailure);
    siblings keep running. Results come back ordered by job id.
    """
    if job_count <= 0:
        return []

    root = Path(source_root).resolve()
    out = Path(output_dir)
    build_output = out if out.is_absolute() else root / out
    scratch = Path(scratch_dir)
    scratch.mkdir(parents=True, exist_ok=True)
    workers = max_workers if max_workers > 0 else job_count

    tasks = []
    for job_id in range(1, job_count + 1):
        thunk = partial(
            run_build_job,
            job_id,
            build_command,
            str(root),
            str(build_output),
            str(scratch / f"build-{job_id}"),
            timeout_s,
        )
        tasks.append((job_id, thunk))

    logger.info(
        "starting %d parallel build(s) (%s backend, %d worker(s)) in %s",
        job_count,
        backend,
        workers,
        root,
    )
    outcome = run_parallel(tasks, max_workers=workers, order_key=lambda k: (k,), backend=backend)

    results: List[BuildJobResult] = [r for _, r in outcome.results]
    for te in outcome.errors:
        failure = WorkerFailure(f"worker for build {te.key} failed: {te.exc_type}: {te.message}")
        results.append(
            BuildJobResult(
                job_id=te.key,
                output_dir=scratch / f"build-{te.key}",
                success=False,
                error_message=str(failure),
            )
        )
    results.sort(key=lambda r: r.job_id)

    for r in results:
        if r.success:
            logger.info("build %d finished in %.1fs", r.job_id, r.duration_s)
        else:
            first_line = (r.error_message or "unknown error").splitlines()[0]
            logger.warning("build %d failed: %s", r.job_id, first_line)
    return results


def failed_jobs(results: Sequence[BuildJobResult]) -> List[BuildJobResult]:
    return [r for r in results if not r.success]
