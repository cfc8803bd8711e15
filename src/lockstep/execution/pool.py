"""Worker Pool — bounded-concurrency execution with a completion hand-off.

WHY
───
The scheduler must stay single-threaded so that item records never need a
lock. All parallelism therefore lives here: a ``ThreadPoolExecutor`` runs
the executor for up to ``size`` items at once, and each finished item is
handed back through a ``queue.Queue`` as a :class:`Completion`. Workers never
touch record state; the scheduler applies the outcome when it takes the
completion.

ARCHITECTURE
────────────
::

    WorkerPool(size=4, executor)
      ├── .submit(record)        ─ non-blocking, excess work queues internally
      ├── .take_completed()      ─ block for the next Completion (any order)
      ├── .shutdown()            ─ cancel queued work, join workers (idempotent)
      └── .in_flight             ─ submitted but not yet taken

    worker thread:  executor.execute(spec, worker_id)
                        │  (exceptions → failed ExecutionOutcome)
                        ▼
                    completions queue  ──►  scheduler thread

Worker ids are assigned per thread, ``0 .. size-1``, when the thread starts.
The underlying thread pool is created on first submit, so constructing and
shutting down an unused pool costs nothing.

Related modules:
    scheduler.py           — the only intended caller
    executors/protocol.py  — the contract run on worker threads
"""

from __future__ import annotations

import contextvars
import itertools
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from lockstep.core.errors import InvalidConfigError, PoolClosedError, PoolIdleError
from lockstep.core.logging import get_logger

from .executors.callable import normalize_outcome
from .executors.protocol import ExecutionOutcome, Executor
from .record import ItemRecord

logger = get_logger(__name__)


@dataclass(frozen=True)
class Completion:
    """A finished item, as handed back to the scheduling thread."""

    record: ItemRecord
    outcome: ExecutionOutcome
    worker_id: int

    @property
    def name(self) -> str:
        return self.record.name


class WorkerPool:
    """Runs an executor over submitted records on ``size`` worker threads.

    Example:
        >>> with WorkerPool(2, StubExecutor(), name="demo") as pool:
        ...     pool.submit(record)
        ...     completion = pool.take_completed()
        ...     completion.outcome.success
        True
    """

    def __init__(self, size: int, executor: Executor, name: str = "lockstep"):
        """
        Args:
            size: Maximum concurrent executor calls (>= 1).
            executor: Object satisfying the Executor protocol.
            name: Thread name prefix, also used in log events.

        Raises:
            InvalidConfigError: If *size* is not a positive integer.
        """
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise InvalidConfigError("worker_count", size, f"Worker count must be a positive integer, got {size!r}")

        self._size = size
        self._executor = executor
        self._name = name
        self._pool: ThreadPoolExecutor | None = None
        self._completions: queue.Queue[Completion] = queue.Queue()
        self._in_flight = 0
        self._closed = False

        self._local = threading.local()
        self._ids = itertools.count()
        self._ids_lock = threading.Lock()

    @property
    def size(self) -> int:
        return self._size

    @property
    def name(self) -> str:
        return self._name

    @property
    def in_flight(self) -> int:
        """Records submitted whose completion has not been taken yet."""
        return self._in_flight

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------ #
    # Worker side
    # ------------------------------------------------------------------ #

    def _init_worker(self) -> None:
        with self._ids_lock:
            self._local.worker_id = next(self._ids)

    def _run(self, record: ItemRecord) -> None:
        worker_id: int = getattr(self._local, "worker_id", 0)
        outcome: ExecutionOutcome | None = None
        try:
            outcome = normalize_outcome(self._executor.execute(record.spec, worker_id))
        except Exception as exc:
            logger.warning(
                "pool.executor_raised",
                pool=self._name,
                item=record.name,
                worker_id=worker_id,
                error=f"{type(exc).__name__}: {exc}",
            )
            outcome = ExecutionOutcome.failure(exc)
        except BaseException as exc:
            # SystemExit, KeyboardInterrupt: report the item, then let the exception reach the future
            logger.error(
                "pool.executor_aborted",
                pool=self._name,
                item=record.name,
                worker_id=worker_id,
                error=f"{type(exc).__name__}: {exc}",
            )
            outcome = ExecutionOutcome.failure(exc)
            raise
        finally:
            # every submitted record produces exactly one completion
            if outcome is None:
                outcome = ExecutionOutcome.failure(f"executor for '{record.name}' did not return")
            self._completions.put(Completion(record, outcome, worker_id))

    # ------------------------------------------------------------------ #
    # Scheduler side
    # ------------------------------------------------------------------ #

    def _ensure_started(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self._size,
                thread_name_prefix=self._name,
                initializer=self._init_worker,
            )
            logger.debug("pool.started", pool=self._name, size=self._size)
        return self._pool

    def submit(self, record: ItemRecord) -> None:
        """Queue *record* for execution. Never blocks on the concurrency limit.

        Raises:
            PoolClosedError: If the pool has been shut down.
        """
        if self._closed:
            raise PoolClosedError(self._name)
        pool = self._ensure_started()
        # workers run in a copy of the caller's context so bound log fields (run_id) follow the item
        pool.submit(contextvars.copy_context().run, self._run, record)
        self._in_flight += 1

    def take_completed(self, timeout: float | None = None) -> Completion:
        """Block until a submitted record finishes and return its completion.

        Args:
            timeout: Seconds to wait; None waits indefinitely.

        Raises:
            PoolIdleError: If nothing is in flight, so waiting could never end.
            TimeoutError: If *timeout* elapses first.
        """
        if self._in_flight == 0 and self._completions.empty():
            raise PoolIdleError(self._name)
        try:
            completion = self._completions.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError(
                f"No completion from pool '{self._name}' within {timeout}s"
            ) from None
        self._in_flight -= 1
        return completion

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work, drop queued work and release the workers.

        Items already running are allowed to finish (``wait=True`` joins
        them). Safe to call on an unused pool and more than once.
        """
        if self._closed:
            return
        self._closed = True
        if self._pool is not None:
            self._pool.shutdown(wait=wait, cancel_futures=True)
        logger.debug("pool.shutdown", pool=self._name, abandoned=self._in_flight)

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown(wait=True)
