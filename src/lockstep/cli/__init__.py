"""
CLI layer for lockstep.

Terminal transport only: argument parsing, settings overrides and coloured
output. Scheduling lives in ``lockstep.execution``.

Entry point::

    lockstep --help
"""

from lockstep.cli.app import app

__all__ = ["app"]
