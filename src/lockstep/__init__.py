"""
Lockstep - dependency-aware parallel scheduler.

Runs a set of items (package specifications, build targets, ...) on a
bounded pool of workers, never starting an item before everything it
depends on has finished.

    from lockstep import ParallelScheduler, StubExecutor, item_spec

    result = ParallelScheduler(StubExecutor(), worker_count=2).run([
        item_spec("a"),
        item_spec("b", "a"),
        item_spec("c", "a"),
    ])
"""

__version__ = "0.1.0"

from lockstep.core.errors import (
    AggregateFailure,
    LockstepError,
    MissingDependencyError,
    UnresolvableDependenciesError,
)
from lockstep.execution import (
    CallableExecutor,
    CommandExecutor,
    ExecutionOutcome,
    ItemRecord,
    ItemSpec,
    ItemState,
    ParallelScheduler,
    ScheduleResult,
    StubExecutor,
    item_spec,
    run_parallel,
)

__all__ = [
    "__version__",
    "AggregateFailure",
    "LockstepError",
    "MissingDependencyError",
    "UnresolvableDependenciesError",
    "CallableExecutor",
    "CommandExecutor",
    "ExecutionOutcome",
    "ItemRecord",
    "ItemSpec",
    "ItemState",
    "ParallelScheduler",
    "ScheduleResult",
    "StubExecutor",
    "item_spec",
    "run_parallel",
]
