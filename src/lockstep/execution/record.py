"""Item records - per-item lifecycle state during a run.

An :class:`ItemRecord` wraps one :class:`~lockstep.execution.spec.ItemSpec`
with the mutable state the scheduler tracks: where the item is in its
lifecycle, the message it produced on success and the error it produced on
failure. Records are created in bulk before scheduling begins, mutated only
by the scheduling thread, and returned to the caller as the run result.

Manifesto:
    Eligibility must be a pure function of the record set. A record knows
    which of its dependencies matter (development-only and self references
    do not), validates them once against the full item set, and answers
    "can I be submitted now?" without any scheduler bookkeeping.

Tags:
    lockstep, execution, record, state-machine, dependencies

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass, field
from typing import Any

from lockstep.core.errors import MissingDependencyError

from .executors.protocol import ExecutionOutcome
from .models import ItemState, validate_item_transition
from .spec import Dependency, ItemSpec


@dataclass
class ItemRecord:
    """Lifecycle record for one item.

    Example:
        >>> rack = ItemRecord(item_spec("rack"))
        >>> rails = ItemRecord(item_spec("rails", "rack", dev=["rspec"]))
        >>> rails.dependency_names({"rails", "rack"})
        ['rack']
        >>> rails.is_submittable([rack, rails])
        False
    """

    spec: ItemSpec
    """The item as supplied by the caller"""

    state: ItemState = ItemState.PENDING
    """Current lifecycle state"""

    result_message: str | None = None
    """Notice returned by the executor on success"""

    error: Any = None
    """Diagnostic returned by the executor on failure"""

    worker_id: int | None = None
    """Worker that ran the item"""

    _dependencies: list[str] | None = field(default=None, init=False, repr=False, compare=False)

    @property
    def name(self) -> str:
        return self.spec.name

    # ------------------------------------------------------------------ #
    # State queries
    # ------------------------------------------------------------------ #

    @property
    def is_pending(self) -> bool:
        return self.state == ItemState.PENDING

    @property
    def is_queued(self) -> bool:
        return self.state == ItemState.QUEUED

    @property
    def is_done(self) -> bool:
        return self.state == ItemState.DONE

    @property
    def is_failed(self) -> bool:
        return self.state == ItemState.FAILED

    @property
    def attempted(self) -> bool:
        """True once the executor has reported back, either way."""
        return self.is_done or self.is_failed

    @property
    def ready_to_enqueue(self) -> bool:
        """Neither queued nor attempted yet."""
        return not self.is_queued and not self.attempted

    @property
    def has_result_message(self) -> bool:
        return bool(self.result_message)

    # ------------------------------------------------------------------ #
    # Dependencies
    # ------------------------------------------------------------------ #

    @property
    def all_dependencies(self) -> tuple[Dependency, ...]:
        """Every declared dependency, ignorable ones included."""
        return self.spec.dependencies

    def ignorable_dependency(self, dep: Dependency) -> bool:
        """Development dependencies and references to itself never gate submission."""
        return dep.is_development or dep.name == self.name

    def dependency_names(self, all_names: Collection[str]) -> list[str]:
        """Names of the dependencies that gate this item.

        Computed on first call and cached. Ignorable dependencies are
        dropped; every remaining name must be in *all_names*.

        Raises:
            MissingDependencyError: If a dependency is not in the item set.
        """
        if self._dependencies is None:
            deps: list[str] = []
            for dep in self.all_dependencies:
                if not self.ignorable_dependency(dep) and dep.name not in deps:
                    deps.append(dep.name)
            missing = [name for name in deps if name not in all_names]
            if missing:
                raise MissingDependencyError(self.name, missing)
            self._dependencies = deps
        return list(self._dependencies)

    def dependencies_met(self, done_names: Collection[str], all_names: Collection[str]) -> bool:
        """True iff every gating dependency is in *done_names*."""
        return all(name in done_names for name in self.dependency_names(all_names))

    def is_satisfied(self, records: Iterable[ItemRecord]) -> bool:
        """True iff every gating dependency's record in *records* is done."""
        records = list(records)
        all_names = {r.name for r in records}
        done_names = {r.name for r in records if r.is_done}
        return self.dependencies_met(done_names, all_names)

    def is_submittable(self, records: Iterable[ItemRecord]) -> bool:
        """Pending and all gating dependencies done."""
        return self.is_pending and self.is_satisfied(records)

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def _transition_to(self, target: ItemState) -> None:
        validate_item_transition(self.state, target)
        self.state = target

    def mark_queued(self) -> None:
        """Mark the record as handed to the pool.

        Raises:
            InvalidTransitionError: If the record is not pending.
        """
        self._transition_to(ItemState.QUEUED)

    def mark_done(self, message: str | None = None) -> None:
        self._transition_to(ItemState.DONE)
        if message:
            self.result_message = message

    def mark_failed(self, error: Any) -> None:
        self._transition_to(ItemState.FAILED)
        self.error = error

    def apply(self, outcome: ExecutionOutcome, worker_id: int | None = None) -> None:
        """Record the executor's outcome for this (queued) item."""
        self.worker_id = worker_id
        if outcome.success:
            self.mark_done(outcome.message)
        else:
            self.mark_failed(outcome.error)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for logging and CLI output."""
        return {
            "name": self.name,
            "state": self.state.value,
            "dependencies": self.spec.dependency_names,
            "result_message": self.result_message,
            "error": None if self.error is None else str(self.error),
            "worker_id": self.worker_id,
        }


def build_records(items: Iterable[ItemSpec]) -> list[ItemRecord]:
    """Create one pending record per item, preserving input order."""
    return [ItemRecord(spec) for spec in items]
