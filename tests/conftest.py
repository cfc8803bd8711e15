"""
Shared pytest fixtures and configuration for lockstep tests.

This module provides:
- Environment and logging isolation (no LOCKSTEP_* leakage between tests)
- Stub executors
- Small item graphs used across scheduler, graph and CLI tests

Usage:
    Fixtures are auto-discovered by pytest; request them as arguments.

    def test_something(stub_executor, diamond_items):
        ...
"""

import logging
import os

import pytest
import structlog

from lockstep.execution import StubExecutor, item_spec


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    """Drop LOCKSTEP_* variables so settings tests see defaults."""
    for key in list(os.environ):
        if key.startswith("LOCKSTEP_"):
            monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo configure_logging() calls made by CLI tests."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)


# =============================================================================
# Executors
# =============================================================================


@pytest.fixture
def stub_executor() -> StubExecutor:
    """Executor that succeeds for every item and records calls."""
    return StubExecutor()


# =============================================================================
# Item Graphs
# =============================================================================


@pytest.fixture
def fan_out_items():
    """a, then b and c (both depend on a)."""
    return [
        item_spec("a"),
        item_spec("b", "a"),
        item_spec("c", "a"),
    ]


@pytest.fixture
def diamond_items():
    """
    Diamond dependency graph:

        a
       / \\
      b   c
       \\ /
        d
    """
    return [
        item_spec("a"),
        item_spec("b", "a"),
        item_spec("c", "a"),
        item_spec("d", "b", "c"),
    ]


@pytest.fixture
def chain_items():
    """a -> b -> c -> d -> e, declared in reverse."""
    return [
        item_spec("e", "d"),
        item_spec("d", "c"),
        item_spec("c", "b"),
        item_spec("b", "a"),
        item_spec("a"),
    ]
