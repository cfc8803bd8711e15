"""Parallel Scheduler — dependency-ordered dispatch over a worker pool.

WHY
───
Installing a set of packages (or building targets, or running any items
that name their prerequisites) in parallel is only safe if nothing starts
before everything it needs has finished. ``ParallelScheduler`` owns that
ordering: it repeatedly finds the items whose dependencies are all done,
hands them to a :class:`~lockstep.execution.pool.WorkerPool`, and waits for
the next completion, until every item is done or one of them fails.

ARCHITECTURE
────────────
::

    run(items)
      │  build records, reject duplicates / unknown deps / cycles
      ▼
    dispatch pass ── pending ∧ deps done ──► pool.submit(record)   (input order)
      ▲                                          │
      │                                          ▼
      └── record.apply(outcome) ◄── pool.take_completed()   (completion order)

    loop until: every record done  → ScheduleResult
                any record failed  → raise first classified error
                                     or AggregateFailure
    pool.shutdown() on every exit path

Only the scheduling thread mutates records; the pool returns completions
through a queue. On the first failure no further items are submitted;
items already running are left to finish while the pool shuts down.

Example::

    scheduler = ParallelScheduler(CommandExecutor(force=True), worker_count=4)
    result = scheduler.run(manifest.to_items())
    for name, message in result.result_messages.items():
        print(f"Post-install message from {name}:\\n{message}")
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from lockstep.core.errors import (
    AggregateFailure,
    ExecutionFailure,
    InvalidConfigError,
    LockstepError,
    UnresolvableDependenciesError,
    categorize_error,
    is_classified,
)
from lockstep.core.logging import LogContext, get_logger

from .executors.protocol import Executor
from .graph import check_acyclic, check_unique_names
from .pool import Completion, WorkerPool
from .record import ItemRecord, build_records
from .spec import ItemSpec

logger = get_logger(__name__)

PoolFactory = Callable[[int, Executor, str], WorkerPool]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ScheduleResult:
    """Outcome of a successful run: every record, all ``done``."""

    run_id: str
    records: list[ItemRecord]
    started_at: datetime
    completed_at: datetime = field(default_factory=_utcnow)

    @property
    def names(self) -> list[str]:
        return [r.name for r in self.records]

    @property
    def result_messages(self) -> dict[str, str]:
        """``{item: message}`` for items whose executor returned a message."""
        return {r.name: r.result_message for r in self.records if r.result_message}

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[ItemRecord]:
        return iter(self.records)

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging / CLI ``--json`` output."""
        return {
            "run_id": self.run_id,
            "total": len(self.records),
            "duration_seconds": round(self.duration_seconds, 3),
            "items": [r.to_dict() for r in self.records],
        }


class ParallelScheduler:
    """Runs every item exactly once, never before its dependencies.

    Parameters
    ----------
    executor
        Object satisfying :class:`~lockstep.execution.executors.protocol.Executor`.
        Run configuration (force, standalone, ...) is captured by it.
    worker_count
        Maximum concurrent executor calls (>= 1).
    name
        Pool name, used as worker thread prefix and in log events.
    pool_factory
        ``(size, executor, name) -> WorkerPool``; override in tests.
    """

    def __init__(
        self,
        executor: Executor,
        worker_count: int = 1,
        *,
        name: str = "lockstep",
        pool_factory: PoolFactory | None = None,
    ) -> None:
        if isinstance(worker_count, bool) or not isinstance(worker_count, int) or worker_count < 1:
            raise InvalidConfigError(
                "worker_count", worker_count, f"Worker count must be a positive integer, got {worker_count!r}"
            )
        self._executor = executor
        self._worker_count = worker_count
        self._name = name
        self._pool_factory: PoolFactory = pool_factory or WorkerPool

    @classmethod
    def call(
        cls,
        items: Iterable[ItemSpec],
        executor: Executor,
        worker_count: int = 1,
        **kwargs: Any,
    ) -> ScheduleResult:
        """One-shot shortcut: ``ParallelScheduler(executor, worker_count).run(items)``."""
        return cls(executor, worker_count, **kwargs).run(items)

    @property
    def worker_count(self) -> int:
        return self._worker_count

    # ------------------------------------------------------------------ #
    # Run
    # ------------------------------------------------------------------ #

    def run(self, items: Iterable[ItemSpec]) -> ScheduleResult:
        """Process every item and return the completed records.

        Raises:
            DuplicateItemError: Two items share a name (before any dispatch).
            MissingDependencyError: An item depends on an unknown name
                (before any dispatch).
            UnresolvableDependenciesError: The dependencies form a cycle
                (before any dispatch).
            LockstepError: The first classified error reported for a failed
                item, if any.
            AggregateFailure: One or more items failed with opaque errors.
        """
        records = build_records(items)
        all_names = check_unique_names(records)
        for record in records:
            record.dependency_names(all_names)
        check_acyclic(records, all_names)

        run_id = uuid.uuid4().hex[:12]
        started_at = _utcnow()

        with LogContext(run_id=run_id):
            logger.info(
                "scheduler.start",
                items=len(records),
                worker_count=self._worker_count,
            )
            pool = self._pool_factory(self._worker_count, self._executor, self._name)
            try:
                self._dispatch(records, all_names, pool)
                while not self._finished(records):
                    if pool.in_flight == 0:
                        raise UnresolvableDependenciesError([r.name for r in records if r.is_pending])
                    completion = pool.take_completed()
                    self._complete(completion)
                    if not completion.record.is_failed:
                        self._dispatch(records, all_names, pool)
            finally:
                pool.shutdown()

            failed = [r for r in records if r.is_failed]
            if failed:
                logger.error(
                    "scheduler.failed",
                    failed=[r.name for r in failed],
                    done=sum(1 for r in records if r.is_done),
                    total=len(records),
                )
                raise self._aggregate(failed)

            result = ScheduleResult(run_id=run_id, records=records, started_at=started_at)
            logger.info(
                "scheduler.complete",
                items=len(records),
                duration_seconds=round(result.duration_seconds, 3),
            )
            return result

    # ------------------------------------------------------------------ #
    # Loop steps
    # ------------------------------------------------------------------ #

    @staticmethod
    def _finished(records: list[ItemRecord]) -> bool:
        return all(r.is_done for r in records) or any(r.is_failed for r in records)

    def _dispatch(self, records: list[ItemRecord], all_names: set[str], pool: WorkerPool) -> None:
        """Submit, in input order, every pending record whose dependencies are done."""
        done_names = {r.name for r in records if r.is_done}
        for record in records:
            if record.is_pending and record.dependencies_met(done_names, all_names):
                record.mark_queued()
                pool.submit(record)
                logger.debug("scheduler.item_queued", item=record.name)

    def _complete(self, completion: Completion) -> None:
        record = completion.record
        record.apply(completion.outcome, completion.worker_id)
        if record.is_failed:
            logger.warning(
                "scheduler.item_failed",
                item=record.name,
                worker_id=completion.worker_id,
                error=str(record.error),
                category=categorize_error(record.error).value,
                classified=is_classified(record.error),
            )
        else:
            logger.info(
                "scheduler.item_done",
                item=record.name,
                worker_id=completion.worker_id,
                has_message=record.has_result_message,
            )

    @staticmethod
    def _aggregate(failed: list[ItemRecord]) -> LockstepError:
        """First classified error among the failures, else one combined error."""
        for record in failed:
            if is_classified(record.error):
                return record.error
        return AggregateFailure(
            [
                ExecutionFailure(
                    r.name,
                    r.error if r.error is not None else "unknown error",
                    worker_id=r.worker_id,
                )
                for r in failed
            ]
        )


def run_parallel(
    items: Iterable[ItemSpec],
    executor: Executor,
    worker_count: int = 1,
    **kwargs: Any,
) -> ScheduleResult:
    """Module-level shortcut for :meth:`ParallelScheduler.call`."""
    return ParallelScheduler.call(items, executor, worker_count, **kwargs)
