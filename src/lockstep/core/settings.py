"""Runtime settings for lockstep.

``LockstepSettings`` gathers the knobs the scheduler consumes but does not
own: how many jobs to run, and the ``force`` / ``standalone`` flags that are
captured by the executor and passed through without interpretation.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not mid-run
    - **Environment-driven:** Reads ``LOCKSTEP_*`` env vars and a .env file
    - **Sensible defaults:** Works out of the box on any machine

Examples:
    >>> import os
    >>> os.environ["LOCKSTEP_JOBS"] = "4"
    >>> LockstepSettings().max_workers
    3

Tags:
    settings, configuration, pydantic, environment, lockstep

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_jobs() -> int:
    return os.cpu_count() or 1


class LockstepSettings(BaseSettings):
    """Settings shared by the CLI and library callers.

    Fields
    ──────
    jobs         : Requested parallelism (defaults to the CPU count)
    force        : Re-run items even if the executor considers them done
    standalone   : Executor-specific isolation flag, passed through opaquely
    log_level    : Structlog log level
    json_logs    : Force JSON (True) or console (False) logs, None = auto
    """

    model_config = SettingsConfigDict(
        env_prefix="LOCKSTEP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jobs: int = Field(default_factory=_default_jobs, ge=1)
    force: bool = False
    standalone: bool = False

    log_level: str = "WARNING"
    json_logs: bool | None = None

    @property
    def max_workers(self) -> int:
        """Worker threads to start: one job is kept for the scheduling thread, minimum 1."""
        return max(self.jobs - 1, 1)
