"""Executors — the per-item unit of work plugged into the scheduler."""

from .callable import CallableExecutor, normalize_outcome
from .command import CommandExecutor
from .protocol import ExecutionOutcome, Executor
from .stub import StubExecutor

__all__ = [
    "Executor",
    "ExecutionOutcome",
    "CallableExecutor",
    "CommandExecutor",
    "StubExecutor",
    "normalize_outcome",
]
