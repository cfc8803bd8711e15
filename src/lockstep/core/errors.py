"""
Structured error types for lockstep.

Every failure the scheduler can report is a typed error carrying a category,
structured context (which item, which worker) and an optional chained cause.
The hierarchy also draws the line the scheduler needs when it aggregates a
failed run: an error that is an instance of :class:`LockstepError` is
*classified* and is surfaced to the caller as-is, anything else (a plain
string, an arbitrary exception raised by an executor) is *opaque* and gets
folded into an :class:`AggregateFailure`.

Manifesto:
    - **Typed Error Hierarchy:** Dependency, execution, config and pool errors
      are distinct types
    - **Classified vs opaque:** ``is_classified()`` decides how a failure is
      surfaced
    - **Rich Context:** Errors carry the item name and worker id for logging
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      LockstepError                               │
        │             (category, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ConfigError          DependencyError         ExecutionError     │
        │  (CONFIG)             (DEPENDENCY)            (EXECUTION)        │
        │       │                    │                       │             │
        │  InvalidConfigError   MissingDependencyError  ExecutionFailure   │
        │                       DuplicateItemError      CommandFailedError │
        │  ManifestError        UnresolvableDependencies AggregateFailure  │
        │  (MANIFEST)                                                      │
        │                       PoolError                                  │
        │                       (POOL)                                     │
        │                            │                                     │
        │                       PoolClosedError                            │
        │                       PoolIdleError                              │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = MissingDependencyError("rails", ["rack"])
    >>> error.category
    <ErrorCategory.DEPENDENCY: 'DEPENDENCY'>
    >>> error.context.item
    'rails'
    >>> is_classified(error), is_classified("exit status 1")
    (True, False)

Tags:
    error-handling, exception-hierarchy, error-context, lockstep

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        DEPENDENCY: Missing, duplicate or cyclic item dependencies
        EXECUTION: An executor reported failure for an item
        CONFIG: Invalid settings or arguments
        MANIFEST: Manifest document could not be parsed or validated
        POOL: Worker pool misuse (closed, idle)
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    DEPENDENCY = "DEPENDENCY"
    EXECUTION = "EXECUTION"
    CONFIG = "CONFIG"
    MANIFEST = "MANIFEST"
    POOL = "POOL"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    ``to_dict()`` serialises only the fields that are set so the result can
    be passed straight to a structured logger.

    Attributes:
        item: Name of the item the error concerns
        worker_id: Worker that was running the item, if any
        metadata: Additional key-value pairs
    """

    item: str | None = None
    worker_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        if self.item is not None:
            result["item"] = self.item
        if self.worker_id is not None:
            result["worker_id"] = self.worker_id
        if self.metadata:
            result.update(self.metadata)
        return result


class LockstepError(Exception):
    """
    Base exception for all lockstep errors.

    Every LockstepError carries:
    - **category:** ErrorCategory enum for classification
    - **context:** ErrorContext with structured metadata
    - **cause:** Optional underlying exception for chaining

    Subclasses set ``default_category``. Being a LockstepError is what makes
    an error *classified*: when a run fails, the scheduler re-raises the first
    classified item error it finds instead of aggregating.

    Examples:
        >>> error = LockstepError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>

        >>> error = LockstepError("install failed").with_context(item="rack", worker_id=2)
        >>> error.to_dict()["context"]
        {'item': 'rack', 'worker_id': 2}

    Guardrails:
        ❌ DON'T: Raise plain Exception for expected failure modes
        ✅ DO: Use the matching LockstepError subclass

        ❌ DON'T: Swallow the original exception
        ✅ DO: Pass it as cause= for error chaining
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> LockstepError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ExecutionError("Failed").with_context(item="rack", attempt=1)
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(LockstepError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


class ManifestError(LockstepError):
    """Manifest document is malformed or fails validation."""

    default_category = ErrorCategory.MANIFEST

    def __init__(self, message: str, *, source: str | None = None, **kwargs: Any):
        self.source = source
        super().__init__(message, **kwargs)


# =============================================================================
# DEPENDENCY ERRORS
# =============================================================================


def _quoted(names: Sequence[str]) -> str:
    return " ".join(f"'{name}'" for name in names)


class DependencyError(LockstepError):
    """Item dependency set is inconsistent. Fatal to the whole run."""

    default_category = ErrorCategory.DEPENDENCY


class MissingDependencyError(DependencyError):
    """An item depends on a name that is not part of the item set."""

    def __init__(self, item: str, missing: Sequence[str]):
        self.item = item
        self.missing = list(missing)
        noun = "items are" if len(self.missing) > 1 else "item is"
        super().__init__(
            f"The lockfile is corrupt. The following {noun} missing from the "
            f"dependency set of '{item}': {_quoted(self.missing)}",
            context=ErrorContext(item=item),
        )


class DuplicateItemError(DependencyError):
    """The same item name was declared more than once."""

    def __init__(self, names: Sequence[str]):
        self.names = list(names)
        super().__init__(f"Duplicate item names: {_quoted(self.names)}")


class UnresolvableDependenciesError(DependencyError):
    """Items can never become submittable (dependency cycle or stall)."""

    def __init__(self, items: Sequence[str], cycle: Sequence[str] | None = None):
        self.items = list(items)
        self.cycle = list(cycle) if cycle else None
        if self.cycle:
            message = f"Cycle detected in dependency graph: {' -> '.join(self.cycle)}"
        else:
            message = f"No progress possible, unresolvable items: {_quoted(self.items)}"
        super().__init__(message)


# =============================================================================
# EXECUTION ERRORS
# =============================================================================


class ExecutionError(LockstepError):
    """Item execution error."""

    default_category = ErrorCategory.EXECUTION


class ExecutionFailure(ExecutionError):
    """An executor reported failure for one item."""

    def __init__(self, item: str, error: Any, *, worker_id: int | None = None):
        self.item = item
        self.error = error
        super().__init__(
            f"{item}: {error}",
            context=ErrorContext(item=item, worker_id=worker_id),
            cause=error if isinstance(error, BaseException) else None,
        )


class CommandFailedError(ExecutionError):
    """An item's shell command exited with a non-zero status."""

    def __init__(self, item: str, returncode: int, stderr: str = ""):
        self.item = item
        self.returncode = returncode
        self.stderr = stderr
        detail = f"\n{stderr}" if stderr else ""
        super().__init__(
            f"Command for '{item}' exited with status {returncode}{detail}",
            context=ErrorContext(item=item, metadata={"returncode": returncode}),
        )


class AggregateFailure(ExecutionError):
    """
    One or more items failed and none of the errors was classified.

    ``failures`` keeps one :class:`ExecutionFailure` per failed item, in input
    order; the message lists each of them so nothing is dropped from the report.
    """

    def __init__(self, failures: Sequence[ExecutionFailure]):
        self.failures = list(failures)
        super().__init__(
            "\n\n".join(failure.message for failure in self.failures),
            context=ErrorContext(metadata={"failed": [failure.item for failure in self.failures]}),
        )

    @property
    def items(self) -> list[str]:
        return [failure.item for failure in self.failures]


# =============================================================================
# POOL ERRORS
# =============================================================================


class PoolError(LockstepError):
    """Worker pool misuse."""

    default_category = ErrorCategory.POOL


class PoolClosedError(PoolError):
    """Work was submitted after the pool was shut down."""

    def __init__(self, pool_name: str):
        self.pool_name = pool_name
        super().__init__(f"Worker pool '{pool_name}' is shut down")


class PoolIdleError(PoolError):
    """A completion was requested while nothing is in flight."""

    def __init__(self, pool_name: str):
        self.pool_name = pool_name
        super().__init__(f"Worker pool '{pool_name}' has no work in flight")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_classified(error: Any) -> bool:
    """Check if an error is a known lockstep condition (as opposed to opaque)."""
    return isinstance(error, LockstepError)


def categorize_error(error: Any) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, LockstepError):
        return error.category
    if isinstance(error, (KeyError, ValueError)):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "LockstepError",
    # Config
    "ConfigError",
    "InvalidConfigError",
    "ManifestError",
    # Dependency
    "DependencyError",
    "MissingDependencyError",
    "DuplicateItemError",
    "UnresolvableDependenciesError",
    # Execution
    "ExecutionError",
    "ExecutionFailure",
    "CommandFailedError",
    "AggregateFailure",
    # Pool
    "PoolError",
    "PoolClosedError",
    "PoolIdleError",
    # Utilities
    "is_classified",
    "categorize_error",
]
