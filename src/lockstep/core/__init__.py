"""Lockstep Core -- errors, logging and settings shared by every layer.

Architecture::

    errors.py     Structured error hierarchy (LockstepError, classified/opaque)
    logging.py    structlog configuration and context helpers
    settings.py   pydantic-settings LockstepSettings (LOCKSTEP_* env vars)

``settings`` is not imported here so that library callers who never touch
configuration do not pay for pydantic-settings at import time.
"""

from lockstep.core.errors import (
    AggregateFailure,
    ErrorCategory,
    ErrorContext,
    LockstepError,
    MissingDependencyError,
    UnresolvableDependenciesError,
    is_classified,
)
from lockstep.core.logging import configure_logging, get_logger

__all__ = [
    "AggregateFailure",
    "ErrorCategory",
    "ErrorContext",
    "LockstepError",
    "MissingDependencyError",
    "UnresolvableDependenciesError",
    "is_classified",
    "configure_logging",
    "get_logger",
]
