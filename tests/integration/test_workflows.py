"""End-to-end workflows through the command line."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from fleet_patcher import __version__
from fleet_patcher.cli import cli
from fleet_patcher.models.command_result import CommandResult
from tests.fakes import FakeExecutor

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from click.testing import Result

COMMANDS = "fleet_patcher.cli.commands"
SUBPROCESS_RUN = "fleet_patcher.services.remote_executor.subprocess.run"


@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Run from a clean directory with logs under tmp_path/logs."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FLEET_PATCHER_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("FLEET_PATCHER_CONFIG_PATH", raising=False)
    monkeypatch.delenv("FLEET_PATCHER_LOG_LEVEL", raising=False)
    monkeypatch.setattr(f"{COMMANDS}.ssh_available", lambda: True)
    return tmp_path / "logs"


@pytest.fixture
def live_executor(monkeypatch: pytest.MonkeyPatch) -> FakeExecutor:
    """Replace the SSH transport for non-dry runs."""
    executor = FakeExecutor()
    monkeypatch.setattr(f"{COMMANDS}.create_executor", lambda settings, recorder: executor)
    return executor


def _invoke(*args: str) -> Result:
    return CliRunner().invoke(cli, list(args))


def _json_report(result: Result) -> dict[str, Any]:
    return json.loads(result.stdout)


def _hosts(bucket: list[dict[str, Any]]) -> list[str]:
    return [entry["host"] for entry in bucket]


class TestPatchingScenarios:
    def test_all_hosts_succeed(
        self,
        isolated_env: Path,
        live_executor: FakeExecutor,
        sample_config_document: dict[str, Any],
        write_config: Callable[[dict[str, Any]], Path],
    ) -> None:
        path = write_config(sample_config_document)

        result = _invoke("--config", str(path), "--output-format", "json")

        assert result.exit_code == 0, result.output
        report = _json_report(result)
        assert _hosts(report["succeeded"]) == ["h1", "h2", "h3"]
        assert report["skipped"] == []
        assert report["failed"] == []
        assert live_executor.commands_for("10.0.1.2") == ["apt-get update", "apt-get -y upgrade"]

    def test_disabled_host_is_skipped(
        self,
        isolated_env: Path,
        live_executor: FakeExecutor,
        sample_config_document: dict[str, Any],
        write_config: Callable[[dict[str, Any]], Path],
    ) -> None:
        sample_config_document["servers"][1]["enabled"] = False
        path = write_config(sample_config_document)

        result = _invoke("--config", str(path), "--output-format", "json")

        assert result.exit_code == 0
        report = _json_report(result)
        assert _hosts(report["succeeded"]) == ["h1", "h3"]
        assert report["skipped"] == [{"host": "h2", "status": "skipped", "reason": "disabled"}]
        assert live_executor.commands_for("10.0.1.2") == []
        assert "qm listsnapshot 102" not in [call.command for call in live_executor.calls]

    def test_snapshot_creation_failure(
        self,
        isolated_env: Path,
        live_executor: FakeExecutor,
        sample_config_document: dict[str, Any],
        write_config: Callable[[dict[str, Any]], Path],
    ) -> None:
        live_executor.on("qm snapshot 101", CommandResult(output="no space\n", exit_status=1))
        path = write_config(sample_config_document)

        result = _invoke("--config", str(path), "--output-format", "json")

        assert result.exit_code == 1
        report = _json_report(result)
        assert report["failed"] == [
            {"host": "h1", "status": "failed", "reason": "snapshot creation failed"}
        ]
        assert _hosts(report["succeeded"]) == ["h2", "h3"]
        assert live_executor.commands_for("10.0.1.1") == []

    def test_single_server(
        self,
        isolated_env: Path,
        live_executor: FakeExecutor,
        sample_config_document: dict[str, Any],
        write_config: Callable[[dict[str, Any]], Path],
    ) -> None:
        template = sample_config_document["servers"][0]
        sample_config_document["servers"] = [
            {**template, "name": f"h{i}", "vmid": 100 + i, "ip": f"10.0.1.{i}"}
            for i in range(1, 6)
        ]
        path = write_config(sample_config_document)

        result = _invoke("--config", str(path), "--server", "h3", "--output-format", "json")

        assert result.exit_code == 0
        report = _json_report(result)
        assert _hosts(report["succeeded"]) == ["h3"]
        assert report["skipped"] == []
        assert report["failed"] == []
        assert {call.address for call in live_executor.calls} == {"10.0.0.10", "10.0.1.3"}

    def test_dry_run_executes_nothing(
        self,
        isolated_env: Path,
        sample_config_document: dict[str, Any],
        write_config: Callable[[dict[str, Any]], Path],
    ) -> None:
        sample_config_document["servers"] = sample_config_document["servers"][:2]
        path = write_config(sample_config_document)

        with patch(SUBPROCESS_RUN) as run:
            result = _invoke("--config", str(path), "--dry-run", "--output-format", "json")

        assert result.exit_code == 0
        run.assert_not_called()
        report = _json_report(result)
        assert _hosts(report["succeeded"]) == ["h1", "h2"]
        assert report["dry_run"] is True
        assert "[DRY RUN] Would execute on root@10.0.1.1: apt-get update" in result.stderr


class TestCommandLine:
    def test_version(self) -> None:
        result = _invoke("--version")
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help(self) -> None:
        result = _invoke("-h")
        assert result.exit_code == 0
        for flag in ("--config", "--server", "--dry-run", "--skip-snapshots", "--skip-updates"):
            assert flag in result.output

    def test_missing_config(self, isolated_env: Path) -> None:
        result = _invoke("--config", "missing.json")
        assert result.exit_code == 1
        assert "Configuration file not found" in result.stderr
        assert not isolated_env.exists()

    def test_default_config_path(
        self,
        isolated_env: Path,
        live_executor: FakeExecutor,
        sample_config_document: dict[str, Any],
        write_config: Callable[[dict[str, Any]], Path],
    ) -> None:
        write_config(sample_config_document)
        result = _invoke("--output-format", "json")
        assert result.exit_code == 0
        assert len(_json_report(result)["succeeded"]) == 3

    def test_invalid_config(
        self,
        isolated_env: Path,
        sample_config_document: dict[str, Any],
        write_config: Callable[[dict[str, Any]], Path],
    ) -> None:
        del sample_config_document["servers"][0]["ip"]
        path = write_config(sample_config_document)
        result = _invoke("--config", str(path))
        assert result.exit_code == 1
        assert "servers.0.ip" in result.stderr

    def test_unknown_server(
        self,
        isolated_env: Path,
        live_executor: FakeExecutor,
        sample_config_document: dict[str, Any],
        write_config: Callable[[dict[str, Any]], Path],
    ) -> None:
        path = write_config(sample_config_document)
        result = _invoke("--config", str(path), "--server", "nope")
        assert result.exit_code == 1
        assert "Server 'nope' not found in configuration" in result.stderr
        assert live_executor.calls == []

    def test_missing_ssh(
        self,
        isolated_env: Path,
        monkeypatch: pytest.MonkeyPatch,
        sample_config_document: dict[str, Any],
        write_config: Callable[[dict[str, Any]], Path],
    ) -> None:
        monkeypatch.setattr(f"{COMMANDS}.ssh_available", lambda: False)
        path = write_config(sample_config_document)
        result = _invoke("--config", str(path))
        assert result.exit_code == 1
        assert "Missing required dependency: ssh" in result.stderr

    def test_skip_flags(
        self,
        isolated_env: Path,
        live_executor: FakeExecutor,
        sample_config_document: dict[str, Any],
        write_config: Callable[[dict[str, Any]], Path],
    ) -> None:
        path = write_config(sample_config_document)
        result = _invoke("--config", str(path), "--skip-snapshots", "--skip-updates")
        assert result.exit_code == 0
        assert live_executor.calls == []

    def test_text_summary_and_artifacts(
        self,
        isolated_env: Path,
        live_executor: FakeExecutor,
        sample_config_document: dict[str, Any],
        write_config: Callable[[dict[str, Any]], Path],
    ) -> None:
        live_executor.on("apt-get -y upgrade", CommandResult(output="E: broken\n", exit_status=100))
        path = write_config(sample_config_document)

        result = _invoke("--config", str(path), "--server", "h2")

        assert result.exit_code == 1
        assert "━━━ FAILED (1) ━━━" in result.stdout
        assert "✗ h2 (update commands failed)" in result.stdout
        assert "manual intervention" in result.stdout

        logs = sorted(isolated_env.iterdir())
        assert [p.name.split("_")[0] for p in logs] == ["patching", "summary"]
        log_text = logs[0].read_text(encoding="utf-8")
        assert "=== Processing: h2 ===" in log_text
        assert "    E: broken" in log_text
        assert "h2 (update commands failed)" in logs[1].read_text(encoding="utf-8")
