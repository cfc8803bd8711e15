"""Executor Protocol — the per-item unit of work.

Manifesto:
The scheduler only orders work; what "processing an item" means (fetching,
building, installing) belongs to an executor. ``Executor`` is a
``typing.Protocol`` — any object with an ``execute`` method satisfies it, no
base class required. Configuration the executor needs (``force``,
``standalone``, timeouts) is captured when it is constructed, so the
scheduler passes nothing but the item and the worker id.

ARCHITECTURE
────────────
::

    Executor (Protocol)
      └── .execute(item, worker_id) ─ run once, return ExecutionOutcome

    Implementations:
      CallableExecutor ─ adapts a plain function      (library use)
      StubExecutor     ─ records calls, no side effect (tests / dry-run)
      CommandExecutor  ─ runs payload["command"]       (CLI)

Related modules:
    pool.py      — WorkerPool calls execute() on worker threads
    scheduler.py — applies outcomes to item records

Tags:
    lockstep, execution, executor, protocol, interface

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ..spec import ItemSpec


@dataclass(frozen=True)
class ExecutionOutcome:
    """What an executor reports for one item.

    ``message`` is a human-readable notice to show after success (for an
    installer: the post-install message). ``error`` is whatever diagnostic the
    executor produced on failure: a string or an exception. Exceptions that
    are :class:`~lockstep.core.errors.LockstepError` instances are surfaced
    as-is when the run is aggregated.

    Example:
        >>> ExecutionOutcome.ok("Thanks for installing!").success
        True
        >>> ExecutionOutcome.from_tuple((False, "checksum mismatch")).error
        'checksum mismatch'
    """

    success: bool
    message: str | None = None
    error: Any = None

    @classmethod
    def ok(cls, message: str | None = None) -> ExecutionOutcome:
        return cls(success=True, message=message or None)

    @classmethod
    def failure(cls, error: Any) -> ExecutionOutcome:
        return cls(success=False, error=error)

    @classmethod
    def from_tuple(cls, value: tuple[bool, Any]) -> ExecutionOutcome:
        """Build from a ``(success, message_or_error)`` pair."""
        success, detail = value
        if success:
            return cls.ok(None if detail is None else str(detail))
        return cls.failure(detail)


@runtime_checkable
class Executor(Protocol):
    """Executor adapter - how one item gets processed.

    Must be safe to call concurrently for distinct items; the pool calls it
    from up to ``worker_count`` threads at once.

    Example implementation:
        >>> class EchoExecutor:
        ...     def execute(self, item: ItemSpec, worker_id: int) -> ExecutionOutcome:
        ...         return ExecutionOutcome.ok(f"{item.name} on worker {worker_id}")
    """

    def execute(self, item: ItemSpec, worker_id: int) -> ExecutionOutcome:
        """Process one item.

        Args:
            item: The item to process
            worker_id: Identifier of the worker thread (0-based)

        Returns:
            ExecutionOutcome describing success or failure. Raising is also
            allowed; the pool converts the exception into a failed outcome.
        """
        ...
