"""Callable Executor — adapt a plain function to the Executor protocol.

Library callers usually have a function, not a class. ``CallableExecutor``
captures the run configuration (``force``, ``standalone``) once and forwards
it to the function on every call, then normalises whatever the function
returns into an :class:`ExecutionOutcome`.

Accepted return values::

    ExecutionOutcome          → used as-is
    (success, detail) tuple   → ExecutionOutcome.from_tuple
    str                       → success with that message
    None                      → success, no message
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..spec import ItemSpec
from .protocol import ExecutionOutcome

ItemFunction = Callable[..., Any]


def normalize_outcome(value: Any) -> ExecutionOutcome:
    """Turn a function's return value into an :class:`ExecutionOutcome`.

    Raises:
        TypeError: For return values of any other shape.
    """
    if isinstance(value, ExecutionOutcome):
        return value
    if value is None:
        return ExecutionOutcome.ok()
    if isinstance(value, str):
        return ExecutionOutcome.ok(value)
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[0], bool):
        return ExecutionOutcome.from_tuple(value)
    raise TypeError(f"Cannot interpret executor result of type {type(value).__name__}: {value!r}")


class CallableExecutor:
    """Wraps ``fn(item, worker_id, *, force, standalone)``.

    Example:
        >>> def install(item, worker_id, *, force, standalone):
        ...     return True, f"installed {item.name}"
        >>> executor = CallableExecutor(install, force=True)
        >>> executor.execute(item_spec("rack"), 0).message
        'installed rack'
    """

    def __init__(self, fn: ItemFunction, *, force: bool = False, standalone: bool = False):
        self._fn = fn
        self.force = force
        self.standalone = standalone

    @property
    def name(self) -> str:
        return getattr(self._fn, "__name__", "callable")

    def execute(self, item: ItemSpec, worker_id: int) -> ExecutionOutcome:
        result = self._fn(item, worker_id, force=self.force, standalone=self.standalone)
        return normalize_outcome(result)
