# distcheck/engine/util/parallel.py
from __future__ import annotations
from dataclasses import dataclass, field
from concurrent.futures import Future, ThreadPoolExecutor
import multiprocessing
from multiprocessing.connection import Connection, wait
from typing import Any, Callable, Dict, Generic, List, Literal, Sequence, Tuple, TypeVar

K = TypeVar("K")  # task key (e.g., job id)
R = TypeVar("R")  # task result

Backend = Literal["process", "thread"]
BACKENDS = ("process", "thread")

__all__ = ["BACKENDS", "Backend", "ParallelOutcome", "TaskError", "run_parallel"]


@dataclass(frozen=True)
class TaskError(Generic[K]):
    key: K
    exc_type: str
    message: str


@dataclass
class ParallelOutcome(Generic[K, R]):
    """Every task's terminal value: a result or a TaskError, each sorted by key."""

    results: List[Tuple[K, R]] = field(default_factory=list)
    errors: List[TaskError[K]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# (submit index, key, succeeded, result or TaskError)
_Done = Tuple[int, Any, bool, Any]


def _unit_main(conn: Connection, fn: Callable[[], Any]) -> None:
    """Child entry point: send exactly one (ok, payload) message, then exit."""
    try:
        msg: Tuple[Any, ...] = (True, fn())
    except Exception as e:  # noqa: BLE001
        msg = (False, type(e).__name__, str(e))
    try:
        conn.send(msg)
    except Exception as e:  # noqa: BLE001  (unpicklable result)
        conn.send((False, type(e).__name__, str(e)))
    finally:
        conn.close()


def _run_isolated(tasks: Sequence[Tuple[K, Callable[[], R]]], workers: int) -> List[_Done]:
    """
    One child process per task, at most ``workers`` alive at a time.

    A child that dies without reporting (signal, os._exit, OOM kill) only
    fails its own task.
    """
    ctx = multiprocessing.get_context()
    queue = list(enumerate(tasks))
    queue.reverse()
    running: Dict[Connection, Tuple[int, K, Any]] = {}
    done: List[_Done] = []

    while queue or running:
        while queue and len(running) < workers:
            idx, (k, fn) = queue.pop()
            recv, send = ctx.Pipe(duplex=False)
            proc = ctx.Process(target=_unit_main, args=(send, fn), name=f"distcheck-par-{idx}")
            try:
                proc.start()
            except Exception as e:  # noqa: BLE001  (e.g. unpicklable thunk)
                recv.close()
                done.append((idx, k, False, TaskError(k, type(e).__name__, str(e))))
                continue
            finally:
                send.close()
            running[recv] = (idx, k, proc)

        for conn in wait(list(running)):
            idx, k, proc = running.pop(conn)
            try:
                msg = conn.recv()
            except EOFError:
                msg = None
            finally:
                conn.close()
            proc.join()
            if msg is None:
                err = TaskError(k, "WorkerExited", f"worker exited with code {proc.exitcode} before reporting a result")
                done.append((idx, k, False, err))
            elif msg[0]:
                done.append((idx, k, True, msg[1]))
            else:
                done.append((idx, k, False, TaskError(k, msg[1], msg[2])))
    return done


def _run_threaded(tasks: Sequence[Tuple[K, Callable[[], R]]], workers: int) -> List[_Done]:
    done: List[_Done] = []
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="distcheck-par") as ex:
        futures: List[Tuple[int, K, Future[R]]] = []
        for idx, (k, fn) in enumerate(tasks):
            futures.append((idx, k, ex.submit(fn)))
        for idx, k, fut in futures:
            try:
                done.append((idx, k, True, fut.result()))
            except Exception as e:  # noqa: BLE001
                done.append((idx, k, False, TaskError(k, type(e).__name__, str(e))))
    return done


def run_parallel(
    tasks: Sequence[Tuple[K, Callable[[], R]]],
    *,
    max_workers: int,
    order_key: Callable[[K], Any],
    backend: Backend = "thread",
) -> ParallelOutcome[K, R]:
    """
    Execute tasks possibly in parallel and collect every outcome deterministically.

    - tasks: sequence of (key, thunk) where thunk() -> R. With the process backend
      the thunk must be picklable (a module-level function or functools.partial of one).
    - max_workers <= 1  => sequential path in the calling process.
    - backend "process" runs each task in its own child process; "thread" shares
      one thread pool.
    - One failing task never cancels the others, even when its process dies;
      the failure is recorded as a TaskError. Results and errors are sorted by
      order_key(key), ties broken by submit index, independent of completion order.
    - Returns only after every task has finished (join barrier).
    """
    if backend not in BACKENDS:
        raise ValueError(f"unknown parallel backend: {backend!r}")
    n = len(tasks)
    if n == 0:
        return ParallelOutcome()

    done: List[_Done] = []
    if max_workers <= 1:
        for idx, (k, fn) in enumerate(tasks):
            try:
                done.append((idx, k, True, fn()))
            except Exception as e:  # noqa: BLE001
                done.append((idx, k, False, TaskError(k, type(e).__name__, str(e))))
    elif backend == "process":
        done = _run_isolated(tasks, max(1, min(max_workers, n)))
    else:
        done = _run_threaded(tasks, max(1, min(max_workers, n)))

    done.sort(key=lambda t: (order_key(t[1]), t[0]))
    return ParallelOutcome(
        results=[(k, payload) for _, k, ok, payload in done if ok],
        errors=[payload for _, _, ok, payload in done if not ok],
    )
