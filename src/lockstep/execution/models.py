"""Item lifecycle state machine.

Every item moves strictly forward through four states. The transition table
below is the single source of truth; :class:`~lockstep.execution.record.ItemRecord`
refuses any move that is not listed.
"""

from __future__ import annotations

from enum import Enum


class InvalidTransitionError(ValueError):
    """Raised when an illegal state transition is attempted.

    Architecture Decision:
        Transition validation is deliberately strict. A record that moves
        backwards or is queued twice indicates a scheduler bug, so it must
        fail loudly rather than silently re-dispatch work.
    """

    def __init__(self, current: str, target: str, enum_name: str = "ItemState") -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid {enum_name} transition: {current} → {target}")


class ItemState(str, Enum):
    """State of one item within a run.

    Valid transition graph::

        PENDING → QUEUED
        QUEUED  → DONE | FAILED
        DONE    → (terminal)
        FAILED  → (terminal)
    """

    PENDING = "pending"  # Created, waiting for dependencies
    QUEUED = "queued"  # Submitted to the worker pool
    DONE = "done"  # Executor reported success
    FAILED = "failed"  # Executor reported failure (or raised)


ITEM_VALID_TRANSITIONS: dict[ItemState, frozenset[ItemState]] = {
    ItemState.PENDING: frozenset({ItemState.QUEUED}),
    ItemState.QUEUED: frozenset({ItemState.DONE, ItemState.FAILED}),
    ItemState.DONE: frozenset(),  # terminal
    ItemState.FAILED: frozenset(),  # terminal
}

TERMINAL_STATES = frozenset({ItemState.DONE, ItemState.FAILED})


def validate_item_transition(current: ItemState, target: ItemState) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal.

    Example:
        >>> validate_item_transition(ItemState.QUEUED, ItemState.DONE)
        >>> validate_item_transition(ItemState.DONE, ItemState.QUEUED)
        Traceback (most recent call last):
        ...
        lockstep.execution.models.InvalidTransitionError: Invalid ItemState transition: done → queued
    """
    allowed = ITEM_VALID_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(current.value, target.value)
