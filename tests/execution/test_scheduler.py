"""
Tests for ParallelScheduler.

Covers:
- Every item of a valid graph ends done
- Nothing starts before its dependencies finished, nothing runs twice
- Failure stops dispatch; dependents of a failed item never run
- Classified errors pass through, opaque ones aggregate
- Missing dependencies, duplicates and cycles fail before any work
- Parallelism with N workers, strict sequence with one
- The pool is shut down on every exit path
"""

import threading
from datetime import UTC, datetime

import pytest
from structlog.testing import capture_logs

from lockstep.core.errors import (
    AggregateFailure,
    CommandFailedError,
    DuplicateItemError,
    ExecutionFailure,
    InvalidConfigError,
    MissingDependencyError,
    UnresolvableDependenciesError,
)
from lockstep.execution.executors import CallableExecutor, ExecutionOutcome, StubExecutor
from lockstep.execution.models import ItemState
from lockstep.execution.pool import WorkerPool
from lockstep.execution.record import ItemRecord
from lockstep.execution.scheduler import ParallelScheduler, ScheduleResult, run_parallel
from lockstep.execution.spec import item_spec


# ── Helpers ──────────────────────────────────────────────────────────────


class OrderCheckingExecutor:
    """Records start order and flags any item started before its dependencies finished."""

    def __init__(self, delay: float = 0.0):
        self._lock = threading.Lock()
        self._delay = delay
        self.finished: set[str] = set()
        self.started: list[str] = []
        self.violations: list[tuple[str, str]] = []

    def execute(self, item, worker_id):
        with self._lock:
            self.started.append(item.name)
            for dep in item.dependencies:
                if not dep.is_development and dep.name != item.name and dep.name not in self.finished:
                    self.violations.append((item.name, dep.name))
        if self._delay:
            threading.Event().wait(self._delay)
        with self._lock:
            self.finished.add(item.name)
        return ExecutionOutcome.ok()


class BarrierExecutor:
    """Succeeds only if ``parties`` calls are in flight at the same time."""

    def __init__(self, parties: int):
        self._barrier = threading.Barrier(parties, timeout=5)

    def execute(self, item, worker_id):
        try:
            self._barrier.wait()
        except threading.BrokenBarrierError:
            return ExecutionOutcome.failure(f"{item.name} ran alone")
        return ExecutionOutcome.ok()


class SpyPoolFactory:
    """pool_factory that keeps the pools it builds."""

    def __init__(self, pool_cls=WorkerPool):
        self.pool_cls = pool_cls
        self.pools: list[WorkerPool] = []

    def __call__(self, size, executor, name):
        pool = self.pool_cls(size, executor, name)
        self.pools.append(pool)
        return pool


class ExplodingPool(WorkerPool):
    """take_completed() fails as if the hand-off broke."""

    def take_completed(self, timeout=None):
        raise RuntimeError("hand-off broke")


def _run(items, executor=None, worker_count=1, **kwargs):
    return ParallelScheduler(executor or StubExecutor(), worker_count, **kwargs).run(items)


class TestConstruction:
    @pytest.mark.parametrize("worker_count", [0, -3, False, "4"])
    def test_invalid_worker_count(self, worker_count):
        with pytest.raises(InvalidConfigError):
            ParallelScheduler(StubExecutor(), worker_count)

    def test_default_single_worker(self):
        assert ParallelScheduler(StubExecutor()).worker_count == 1


class TestSuccessfulRuns:
    """All items of a valid graph end done."""

    def test_fan_out(self, fan_out_items, stub_executor):
        result = _run(fan_out_items, stub_executor, worker_count=2)

        assert isinstance(result, ScheduleResult)
        assert result.names == ["a", "b", "c"]
        assert all(r.state == ItemState.DONE for r in result)
        assert stub_executor.executed[0] == "a"
        assert sorted(stub_executor.executed[1:]) == ["b", "c"]

    def test_single_worker_order(self, fan_out_items, stub_executor):
        _run(fan_out_items, stub_executor, worker_count=1)
        assert stub_executor.executed == ["a", "b", "c"]

    def test_insertion_order_among_ready_items(self, stub_executor):
        _run([item_spec("c"), item_spec("b"), item_spec("a")], stub_executor)
        assert stub_executor.executed == ["c", "b", "a"]

    def test_chain_declared_in_reverse(self, chain_items, stub_executor):
        _run(chain_items, stub_executor, worker_count=3)
        assert stub_executor.executed == ["a", "b", "c", "d", "e"]

    @pytest.mark.parametrize("worker_count", [1, 2, 4])
    def test_dependencies_finish_before_dependents_start(self, worker_count):
        items = [
            item_spec("a"),
            item_spec("b", "a"),
            item_spec("c", "a"),
            item_spec("d", "b", "c"),
            item_spec("e"),
            item_spec("f", "e", "d"),
            item_spec("g"),
            item_spec("h", "g", "a"),
        ]
        executor = OrderCheckingExecutor(delay=0.005)
        result = _run(items, executor, worker_count=worker_count)

        assert executor.violations == []
        assert len(result) == len(items)

    def test_each_item_runs_exactly_once(self, diamond_items, stub_executor):
        _run(diamond_items, stub_executor, worker_count=3)
        assert sorted(stub_executor.executed) == ["a", "b", "c", "d"]

    def test_result_messages(self, fan_out_items):
        executor = StubExecutor(messages={"b": "Thanks for installing b"})
        result = _run(fan_out_items, executor, worker_count=2)
        assert result.result_messages == {"b": "Thanks for installing b"}

    def test_worker_ids_recorded(self, diamond_items):
        result = _run(diamond_items, StubExecutor(), worker_count=2)
        assert all(r.worker_id in (0, 1) for r in result)

    def test_zero_items(self, stub_executor):
        result = _run([], stub_executor, worker_count=4)
        assert len(result) == 0
        assert result.result_messages == {}
        assert stub_executor.call_count == 0

    def test_accepts_any_iterable(self, stub_executor):
        result = _run((item_spec(n) for n in "xyz"), stub_executor)
        assert result.names == ["x", "y", "z"]

    def test_to_dict(self, fan_out_items):
        data = _run(fan_out_items).to_dict()
        assert data["total"] == 3
        assert [i["state"] for i in data["items"]] == ["done", "done", "done"]
        assert len(data["run_id"]) == 12


class TestIgnorableDependencies:
    def test_self_dependency_ignored(self, stub_executor):
        result = _run([item_spec("a", "a")], stub_executor)
        assert result.names == ["a"]
        assert stub_executor.executed == ["a"]

    def test_development_dependency_ignored(self, stub_executor):
        # rspec is not even part of the set
        result = _run([item_spec("rails", "rack", dev=["rspec"]), item_spec("rack")], stub_executor)
        assert stub_executor.executed == ["rack", "rails"]
        assert len(result) == 2


class TestParallelism:
    def test_independent_items_overlap(self):
        items = [item_spec("a"), item_spec("b"), item_spec("c")]
        result = _run(items, BarrierExecutor(3), worker_count=3)
        assert len(result) == 3

    def test_single_worker_is_sequential(self):
        executor = StubExecutor(delay=0.01)
        _run([item_spec(n) for n in "abcd"], executor, worker_count=1)
        assert executor.max_concurrency == 1

    def test_never_exceeds_worker_count(self):
        executor = StubExecutor(delay=0.01)
        _run([item_spec(f"i{n}") for n in range(12)], executor, worker_count=3)
        assert executor.max_concurrency <= 3


class TestFailures:
    """Failure of X stops dispatch and is reported; X's dependents never run."""

    def test_failed_dependency_blocks_dependent(self):
        executor = StubExecutor(fail=["a"])
        with pytest.raises(AggregateFailure) as exc_info:
            _run([item_spec("a"), item_spec("b", "a")], executor, worker_count=2)

        assert executor.executed == ["a"]
        assert exc_info.value.items == ["a"]
        assert str(exc_info.value) == "a: stub failure for a"

    def test_dependents_of_failure_never_start(self, diamond_items):
        executor = StubExecutor(fail=["b"])
        with pytest.raises(AggregateFailure):
            _run(diamond_items, executor, worker_count=2)
        assert "d" not in executor.executed

    def test_classified_error_passes_through(self):
        error = CommandFailedError("a", 3, "no compiler")
        executor = StubExecutor(errors={"a": error})
        with pytest.raises(CommandFailedError) as exc_info:
            _run([item_spec("a"), item_spec("b", "a")], executor)
        assert exc_info.value is error

    def test_executor_exception_is_aggregated(self):
        def broken(item, worker_id, **kwargs):
            raise RuntimeError("disk full")

        with pytest.raises(AggregateFailure) as exc_info:
            _run([item_spec("a")], CallableExecutor(broken))
        assert "a: disk full" in str(exc_info.value)
        failure = exc_info.value.failures[0]
        assert isinstance(failure, ExecutionFailure)
        assert isinstance(failure.error, RuntimeError)
        assert failure.cause is failure.error

    def test_classified_exception_raised_by_executor_passes_through(self):
        def broken(item, worker_id, **kwargs):
            raise CommandFailedError(item.name, 127)

        with pytest.raises(CommandFailedError):
            _run([item_spec("a")], CallableExecutor(broken))

    def test_no_submission_after_failure(self):
        executor = StubExecutor(fail=["a"])
        with pytest.raises(AggregateFailure):
            _run([item_spec("a"), item_spec("b", "a"), item_spec("c", "b")], executor, worker_count=1)
        assert executor.executed == ["a"]


class TestAggregation:
    """First classified error wins; otherwise one combined error."""

    @staticmethod
    def _failed(name, error):
        record = ItemRecord(item_spec(name), state=ItemState.QUEUED)
        record.mark_failed(error)
        return record

    def test_all_opaque(self):
        error = ParallelScheduler._aggregate([self._failed("a", "first"), self._failed("b", "second")])
        assert isinstance(error, AggregateFailure)
        assert str(error) == "a: first\n\nb: second"

    def test_first_classified_wins(self):
        classified = CommandFailedError("b", 1)
        error = ParallelScheduler._aggregate(
            [self._failed("a", "opaque"), self._failed("b", classified), self._failed("c", CommandFailedError("c", 2))]
        )
        assert error is classified

    def test_missing_error_detail(self):
        error = ParallelScheduler._aggregate([self._failed("a", None)])
        assert str(error) == "a: unknown error"


class TestInvalidInput:
    """Structural problems fail before any executor call."""

    def test_missing_dependency(self, stub_executor):
        with pytest.raises(MissingDependencyError) as exc_info:
            _run([item_spec("a"), item_spec("b", "a", "ghost")], stub_executor, worker_count=2)
        assert exc_info.value.item == "b"
        assert exc_info.value.missing == ["ghost"]
        assert stub_executor.call_count == 0

    def test_duplicate_names(self, stub_executor):
        with pytest.raises(DuplicateItemError):
            _run([item_spec("a"), item_spec("a")], stub_executor)
        assert stub_executor.call_count == 0

    def test_cycle(self, stub_executor):
        factory = SpyPoolFactory()
        with pytest.raises(UnresolvableDependenciesError) as exc_info:
            _run(
                [item_spec("ok"), item_spec("a", "b"), item_spec("b", "a")],
                stub_executor,
                worker_count=2,
                pool_factory=factory,
            )
        assert exc_info.value.cycle == ["a", "b", "a"]
        assert stub_executor.call_count == 0
        assert factory.pools == []


class TestPoolLifecycle:
    def test_shutdown_after_success(self, diamond_items):
        factory = SpyPoolFactory()
        _run(diamond_items, worker_count=2, pool_factory=factory, name="spy")
        [pool] = factory.pools
        assert pool.closed is True
        assert pool.name == "spy"
        assert pool.size == 2

    def test_shutdown_after_failure(self, diamond_items):
        factory = SpyPoolFactory()
        with pytest.raises(AggregateFailure):
            _run(diamond_items, StubExecutor(fail=["a"]), pool_factory=factory)
        assert factory.pools[0].closed is True

    def test_shutdown_after_unexpected_error(self, fan_out_items):
        factory = SpyPoolFactory(ExplodingPool)
        with pytest.raises(RuntimeError, match="hand-off broke"):
            _run(fan_out_items, pool_factory=factory)
        assert factory.pools[0].closed is True


class TestShortcuts:
    def test_call(self, fan_out_items, stub_executor):
        result = ParallelScheduler.call(fan_out_items, stub_executor, 2)
        assert len(result) == 3

    def test_run_parallel(self, fan_out_items, stub_executor):
        result = run_parallel(fan_out_items, stub_executor, worker_count=2, name="shortcut")
        assert result.names == ["a", "b", "c"]


class TestScheduleResult:
    def test_duration(self):
        started = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
        finished = datetime(2024, 1, 1, 12, 0, 2, 500000, tzinfo=UTC)
        result = ScheduleResult(run_id="r", records=[], started_at=started, completed_at=finished)
        assert result.duration_seconds == 2.5


class TestLogging:
    def test_lifecycle_events(self, fan_out_items):
        with capture_logs() as logs:
            _run(fan_out_items, worker_count=2)
        events = [entry["event"] for entry in logs]
        assert events[0] == "scheduler.start"
        assert events[-1] == "scheduler.complete"
        assert events.count("scheduler.item_done") == 3
        assert events.count("scheduler.item_queued") == 3

    def test_failure_events(self):
        with capture_logs() as logs:
            with pytest.raises(AggregateFailure):
                _run([item_spec("a")], StubExecutor(fail=["a"]))
        failed = [entry for entry in logs if entry["event"] == "scheduler.item_failed"]
        assert failed[0]["item"] == "a"
        assert failed[0]["classified"] is False
        assert failed[0]["category"] == "UNKNOWN"
        assert any(entry["event"] == "scheduler.failed" for entry in logs)

    def test_classified_failure_category(self):
        executor = StubExecutor(errors={"a": CommandFailedError("a", 2)})
        with capture_logs() as logs:
            with pytest.raises(CommandFailedError):
                _run([item_spec("a")], executor)
        [failed] = [entry for entry in logs if entry["event"] == "scheduler.item_failed"]
        assert failed["category"] == "EXECUTION"
        assert failed["classified"] is True
        assert failed["worker_id"] == 0


class TestAbortingExecutor:
    """An executor raising SystemExit still ends the run."""

    def test_run_terminates(self):
        def exits(item, worker_id, **kwargs):
            raise SystemExit(3)

        outcome = {}

        def target():
            try:
                _run([item_spec("a"), item_spec("b", "a")], CallableExecutor(exits))
            except AggregateFailure as exc:
                outcome["error"] = exc

        thread = threading.Thread(target=target, daemon=True)
        thread.start()
        thread.join(timeout=5)

        assert not thread.is_alive(), "scheduler blocked on an aborted executor"
        error = outcome["error"]
        assert error.items == ["a"]
        assert isinstance(error.failures[0].error, SystemExit)
