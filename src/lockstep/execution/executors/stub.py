"""Stub Executor — no-op executor for testing and dry-run.

WHY
───
Sometimes you want to exercise scheduling order, failure handling or a
manifest without actually installing anything. ``StubExecutor`` succeeds
immediately (or fails for the items you name) and records every call so
tests can assert on ordering and concurrency.

ARCHITECTURE
────────────
::

    StubExecutor(fail={"b"}, messages={"a": "hi"}, delay=0.0)
      ├── .execute(item, worker_id) ─ record call, return outcome
      ├── .calls                    ─ [(name, worker_id), ...] in call order
      └── .max_concurrency          ─ peak simultaneous execute() calls

Related modules:
    protocol.py  — Executor protocol
    command.py   — the executor that does real work
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable, Mapping
from typing import Any

from ..spec import ItemSpec
from .protocol import ExecutionOutcome


class StubExecutor:
    """No-op executor for tests and ``--dry-run``.

    Args:
        fail: Item names to report as failed.
        messages: Per-item result messages on success.
        errors: Per-item error objects to report instead of the default text.
        delay: Seconds to sleep inside each call (makes overlap observable).
    """

    def __init__(
        self,
        fail: Iterable[str] = (),
        messages: Mapping[str, str] | None = None,
        errors: Mapping[str, Any] | None = None,
        delay: float = 0.0,
    ):
        self._name = "stub"
        self._fail = set(fail)
        self._messages = dict(messages or {})
        self._errors = dict(errors or {})
        self._delay = delay
        self._lock = threading.Lock()
        self._calls: list[tuple[str, int]] = []
        self._active = 0
        self._max_active = 0

    @property
    def name(self) -> str:
        """Executor name for tracking."""
        return self._name

    def execute(self, item: ItemSpec, worker_id: int) -> ExecutionOutcome:
        with self._lock:
            self._calls.append((item.name, worker_id))
            self._active += 1
            self._max_active = max(self._max_active, self._active)
        try:
            if self._delay:
                time.sleep(self._delay)
            if item.name in self._fail or item.name in self._errors:
                return ExecutionOutcome.failure(
                    self._errors.get(item.name, f"stub failure for {item.name}")
                )
            return ExecutionOutcome.ok(self._messages.get(item.name))
        finally:
            with self._lock:
                self._active -= 1

    # === TEST HELPERS ===

    @property
    def calls(self) -> list[tuple[str, int]]:
        """``(item, worker_id)`` pairs in the order execute() was entered."""
        with self._lock:
            return list(self._calls)

    @property
    def executed(self) -> list[str]:
        """Item names in the order execute() was entered."""
        return [name for name, _ in self.calls]

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self._calls)

    @property
    def max_concurrency(self) -> int:
        """Peak number of simultaneous execute() calls observed."""
        with self._lock:
            return self._max_active
