"""Command Executor — run each item's shell command.

The CLI's real executor. An item's ``payload["command"]`` is run through the
shell with a small environment describing the run; exit status 0 means
success and the last non-empty line of stdout becomes the item's result
message. Items without a command succeed immediately.

Environment passed to each command::

    LOCKSTEP_ITEM        item name
    LOCKSTEP_WORKER      worker id running it
    LOCKSTEP_FORCE       "1" or "0"
    LOCKSTEP_STANDALONE  "1" or "0"

Tags:
    lockstep, execution, executor, subprocess, shell
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from pathlib import Path

from lockstep.core.errors import CommandFailedError, ExecutionError
from lockstep.core.logging import get_logger

from ..spec import ItemSpec
from .protocol import ExecutionOutcome

logger = get_logger(__name__)

STDERR_TAIL_LINES = 20


def _flag(value: bool) -> str:
    return "1" if value else "0"


def _tail(text: str, lines: int = STDERR_TAIL_LINES) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


class CommandExecutor:
    """Runs ``payload["command"]`` for every item.

    Args:
        force: Passed to commands as ``LOCKSTEP_FORCE``.
        standalone: Passed to commands as ``LOCKSTEP_STANDALONE``.
        timeout: Per-command timeout in seconds (None = wait forever).
        cwd: Working directory for commands.
        env: Extra environment variables for every command.
    """

    def __init__(
        self,
        *,
        force: bool = False,
        standalone: bool = False,
        timeout: float | None = None,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ):
        self.force = force
        self.standalone = standalone
        self.timeout = timeout
        self.cwd = str(cwd) if cwd is not None else None
        self._extra_env = dict(env or {})

    @property
    def name(self) -> str:
        return "command"

    def _environment(self, item: ItemSpec, worker_id: int) -> dict[str, str]:
        return {
            **os.environ,
            **self._extra_env,
            "LOCKSTEP_ITEM": item.name,
            "LOCKSTEP_WORKER": str(worker_id),
            "LOCKSTEP_FORCE": _flag(self.force),
            "LOCKSTEP_STANDALONE": _flag(self.standalone),
        }

    def execute(self, item: ItemSpec, worker_id: int) -> ExecutionOutcome:
        command = item.payload.get("command")
        if not command:
            return ExecutionOutcome.ok()

        logger.debug("command.start", item=item.name, worker_id=worker_id, command=command)
        try:
            proc = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                cwd=self.cwd,
                env=self._environment(item, worker_id),
            )
        except subprocess.TimeoutExpired as exc:
            return ExecutionOutcome.failure(
                ExecutionError(
                    f"Command for '{item.name}' timed out after {self.timeout}s",
                    cause=exc,
                ).with_context(item=item.name, worker_id=worker_id)
            )

        if proc.returncode != 0:
            logger.debug(
                "command.failed", item=item.name, worker_id=worker_id, returncode=proc.returncode
            )
            error = CommandFailedError(item.name, proc.returncode, _tail(proc.stderr or ""))
            error.with_context(worker_id=worker_id)
            return ExecutionOutcome.failure(error)

        lines = [line for line in (proc.stdout or "").splitlines() if line.strip()]
        return ExecutionOutcome.ok(lines[-1].strip() if lines else None)
