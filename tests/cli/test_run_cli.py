"""Tests for ``lockstep run`` / ``lockstep check`` CLI commands."""

from __future__ import annotations

import json
import sys
from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from lockstep import __version__
from lockstep.cli.app import app
from lockstep.execution.executors import CommandExecutor, StubExecutor
from lockstep.execution.scheduler import ScheduleResult

runner = CliRunner()


# ── Helpers ──────────────────────────────────────────────────────────────


VALID = """
items:
  - name: rack
    command: echo Thanks for installing rack
  - name: rails
    dependencies: [rack, {name: rspec, type: development}]
    command: "true"
  - name: thor
"""

MISSING = """
items:
  - name: rails
    dependencies: [ghost]
"""

CYCLE = """
items:
  - name: a
    dependencies: [b]
  - name: b
    dependencies: [a]
"""


@pytest.fixture
def write_manifest(tmp_path):
    def _write(content: str, name: str = "Lockfile.yaml"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


def _empty_result() -> ScheduleResult:
    now = datetime.now(UTC)
    return ScheduleResult(run_id="r", records=[], started_at=now, completed_at=now)


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"lockstep {__version__}" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "run" in result.output
        assert "check" in result.output


class TestRunDryRun:
    def test_success(self, write_manifest):
        result = runner.invoke(app, ["run", str(write_manifest(VALID)), "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "3 item(s) processed" in result.output
        assert "rack" in result.output

    def test_failure_exits_1(self, write_manifest):
        result = runner.invoke(app, ["run", str(write_manifest(VALID)), "--dry-run", "--fail", "rack"])
        assert result.exit_code == 1
        assert "1 item(s) failed" in result.output
        assert "stub failure for rack" in result.output

    def test_json(self, write_manifest):
        result = runner.invoke(app, ["run", str(write_manifest(VALID)), "--dry-run", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["total"] == 3
        assert {item["name"] for item in data["items"]} == {"rack", "rails", "thor"}
        assert all(item["state"] == "done" for item in data["items"])

    def test_missing_dependency(self, write_manifest):
        result = runner.invoke(app, ["run", str(write_manifest(MISSING)), "--dry-run"])
        assert result.exit_code == 1
        assert "MissingDependencyError" in result.output
        assert "'ghost'" in result.output

    def test_invalid_manifest(self, write_manifest):
        result = runner.invoke(app, ["run", str(write_manifest("items: [{nme: a}]")), "--dry-run"])
        assert result.exit_code == 1
        assert "ManifestError" in result.output

    def test_fail_requires_dry_run(self, write_manifest):
        result = runner.invoke(app, ["run", str(write_manifest(VALID)), "--fail", "rack"])
        assert result.exit_code == 2
        assert "--dry-run" in result.output

    def test_manifest_must_exist(self, tmp_path):
        result = runner.invoke(app, ["run", str(tmp_path / "missing.yaml")])
        assert result.exit_code == 2

    def test_jobs_must_be_positive(self, write_manifest):
        result = runner.invoke(app, ["run", str(write_manifest(VALID)), "--jobs", "0"])
        assert result.exit_code == 2


class TestRunWiring:
    """Settings and flags reach the scheduler and executor."""

    @patch("lockstep.execution.scheduler.ParallelScheduler")
    def test_jobs_to_worker_count(self, mock_cls, write_manifest):
        mock_cls.return_value.run.return_value = _empty_result()

        result = runner.invoke(app, ["run", str(write_manifest(VALID)), "--jobs", "4", "--force"])

        assert result.exit_code == 0, result.output
        executor, worker_count = mock_cls.call_args.args
        assert worker_count == 3
        assert isinstance(executor, CommandExecutor)
        assert executor.force is True
        assert executor.standalone is False
        items = mock_cls.return_value.run.call_args.args[0]
        assert [item.name for item in items] == ["rack", "rails", "thor"]

    @patch("lockstep.execution.scheduler.ParallelScheduler")
    def test_jobs_from_environment(self, mock_cls, write_manifest, monkeypatch):
        monkeypatch.setenv("LOCKSTEP_JOBS", "1")
        mock_cls.return_value.run.return_value = _empty_result()

        result = runner.invoke(app, ["run", str(write_manifest(VALID)), "--dry-run", "--standalone"])

        assert result.exit_code == 0, result.output
        executor, worker_count = mock_cls.call_args.args
        assert worker_count == 1
        assert isinstance(executor, StubExecutor)


@pytest.mark.slow
@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell commands")
class TestRunCommands:
    def test_post_install_message(self, write_manifest):
        result = runner.invoke(app, ["run", str(write_manifest(VALID)), "-j", "3"])
        assert result.exit_code == 0, result.output
        assert "Post-install message from rack:" in result.output
        assert "Thanks for installing rack" in result.output

    def test_command_failure(self, write_manifest):
        manifest = write_manifest("items:\n  - name: broken\n    command: exit 4\n")
        result = runner.invoke(app, ["run", str(manifest)])
        assert result.exit_code == 1
        assert "CommandFailedError" in result.output
        assert "status 4" in result.output

    def test_commands_run_in_manifest_directory(self, write_manifest, tmp_path):
        manifest = write_manifest("items:\n  - name: touch\n    command: touch marker\n")
        result = runner.invoke(app, ["run", str(manifest)])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "marker").exists()


class TestCheck:
    def test_valid(self, write_manifest):
        result = runner.invoke(app, ["check", str(write_manifest(VALID))])
        assert result.exit_code == 0, result.output
        assert "Manifest is valid (3 items)" in result.output

    def test_valid_json_order(self, write_manifest):
        result = runner.invoke(app, ["check", str(write_manifest(VALID)), "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["valid"] is True
        assert data["order"].index("rack") < data["order"].index("rails")

    def test_cycle(self, write_manifest):
        result = runner.invoke(app, ["check", str(write_manifest(CYCLE))])
        assert result.exit_code == 1
        assert "Cycle detected" in result.output

    def test_missing_dependency(self, write_manifest):
        result = runner.invoke(app, ["check", str(write_manifest(MISSING))])
        assert result.exit_code == 1
        assert "lockfile is corrupt" in result.output

    def test_duplicate(self, write_manifest):
        result = runner.invoke(app, ["check", str(write_manifest("items: [{name: a}, {name: a}]"))])
        assert result.exit_code == 1
        assert "DuplicateItemError" in result.output
