"""Lockstep Execution — dependency-ordered parallel processing of items.

WHY
───
Items that name their prerequisites (package specs, build targets) can be
processed in parallel only if nothing starts before what it needs has
finished. ``lockstep.execution`` provides that contract as three pieces:
records that know when they are eligible, a bounded worker pool, and the
scheduler loop that connects them.

ARCHITECTURE
────────────
::

    ItemSpec (what to run)
      │
      ▼
    ParallelScheduler.run(items)
      ├── ItemRecord        ─ per-item state machine + dependency cache
      ├── graph             ─ duplicate / cycle checks before dispatch
      ├── WorkerPool        ─ ThreadPoolExecutor + completion queue
      └── Executor          ─ the per-item unit of work
            ├─ CallableExecutor (plain function)
            ├─ CommandExecutor  (shell command from the manifest)
            └─ StubExecutor     (no-op, dry-run / tests)
      │
      ▼
    ScheduleResult  |  raised LockstepError / AggregateFailure

MODULE MAP (recommended reading order)
──────────────────────────────────────
  1. spec.py        ─ ItemSpec, Dependency, item_spec()
  2. models.py      ─ ItemState + transition table
  3. record.py      ─ ItemRecord
  4. executors/     ─ Executor protocol + implementations
  5. pool.py        ─ WorkerPool, Completion
  6. graph.py       ─ cycle detection, topological order
  7. scheduler.py   ─ ParallelScheduler (THE public API)
  8. manifest.py    ─ YAML/JSON manifest loading
"""

from .executors import (
    CallableExecutor,
    CommandExecutor,
    ExecutionOutcome,
    Executor,
    StubExecutor,
)
from .graph import check_acyclic, find_cycle, topological_order
from .models import ITEM_VALID_TRANSITIONS, InvalidTransitionError, ItemState, validate_item_transition
from .pool import Completion, WorkerPool
from .record import ItemRecord, build_records
from .scheduler import ParallelScheduler, ScheduleResult, run_parallel
from .spec import Dependency, DependencyType, ItemSpec, item_spec

__all__ = [
    # Spec
    "ItemSpec",
    "Dependency",
    "DependencyType",
    "item_spec",
    # State
    "ItemState",
    "ITEM_VALID_TRANSITIONS",
    "InvalidTransitionError",
    "validate_item_transition",
    "ItemRecord",
    "build_records",
    # Executors
    "Executor",
    "ExecutionOutcome",
    "CallableExecutor",
    "CommandExecutor",
    "StubExecutor",
    # Pool & scheduler
    "WorkerPool",
    "Completion",
    "ParallelScheduler",
    "ScheduleResult",
    "run_parallel",
    # Graph
    "check_acyclic",
    "find_cycle",
    "topological_order",
]
