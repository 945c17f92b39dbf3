"""Contract tests for the SSH and dry-run executors."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from fleet_patcher.models.inventory import Credential, RunSettings
from fleet_patcher.services.event_recorder import EventRecorder
from fleet_patcher.services.remote_executor import (
    DryRunExecutor,
    MissingCapabilityError,
    RemoteConnectionError,
    RemoteTimeoutError,
    SSHExecutor,
    create_executor,
    render_remote_command,
)

RUN = "fleet_patcher.services.remote_executor.subprocess.run"
WHICH = "fleet_patcher.services.remote_executor.shutil.which"


def _completed(returncode: int = 0, stdout: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout)


class TestRenderRemoteCommand:
    def test_string_passes_through(self) -> None:
        assert render_remote_command("apt-get update && apt-get -y upgrade") == (
            "apt-get update && apt-get -y upgrade"
        )

    def test_argv_is_quoted(self) -> None:
        rendered = render_remote_command(
            ["qm", "snapshot", "101", "s", "--description", "a b; c"]
        )
        assert rendered == "qm snapshot 101 s --description 'a b; c'"


class TestSSHExecutorInvocation:
    def test_key_auth_argv(self) -> None:
        executor = SSHExecutor(ssh_options=("-o", "ConnectTimeout=10"))
        argv, env = executor.build_invocation(
            "10.0.0.5", "root", Credential(key_path="/keys/id"), "uptime"
        )
        assert argv == [
            "ssh",
            "-o",
            "ConnectTimeout=10",
            "-o",
            "BatchMode=yes",
            "-i",
            "/keys/id",
            "--",
            "root@10.0.0.5",
            "uptime",
        ]
        assert env is None

    def test_key_auth_without_key_uses_agent(self) -> None:
        argv, _ = SSHExecutor(ssh_options=()).build_invocation(
            "h", "admin", Credential(), "uptime"
        )
        assert "-i" not in argv
        assert argv[-2:] == ["admin@h", "uptime"]

    def test_password_auth_uses_sshpass_env(self) -> None:
        credential = Credential(method="password", password="s3cret")
        with patch(WHICH, return_value="/usr/bin/sshpass"):
            argv, env = SSHExecutor(ssh_options=()).build_invocation(
                "h", "root", credential, "uptime"
            )
        assert argv[:3] == ["/usr/bin/sshpass", "-e", "ssh"]
        assert "s3cret" not in argv
        assert env is not None
        assert env["SSHPASS"] == "s3cret"

    def test_password_auth_without_sshpass(self) -> None:
        credential = Credential(method="password", password="s3cret")
        with patch(WHICH, return_value=None), pytest.raises(MissingCapabilityError):
            SSHExecutor().build_invocation("h", "root", credential, "uptime")


class TestSSHExecutorExecute:
    def test_returns_output_and_status(self) -> None:
        with patch(RUN, return_value=_completed(3, "E: lock held\n")) as run:
            result = SSHExecutor().execute("h", "root", Credential(), "apt-get update", 600)

        assert result.exit_status == 3
        assert result.output == "E: lock held\n"
        assert result.ok is False
        assert result.dry_run is False
        kwargs = run.call_args.kwargs
        assert kwargs["timeout"] == 600
        assert kwargs["stderr"] is subprocess.STDOUT
        assert kwargs["stdin"] is subprocess.DEVNULL
        assert kwargs["check"] is False

    def test_timeout_raises(self) -> None:
        with patch(RUN, side_effect=subprocess.TimeoutExpired(cmd="ssh", timeout=10)):
            with pytest.raises(RemoteTimeoutError) as excinfo:
                SSHExecutor().execute("h", "root", Credential(), "reboot", 10)
        assert isinstance(excinfo.value, TimeoutError)

    def test_exit_255_is_connection_failure(self) -> None:
        output = "ssh: connect to host h port 22: Connection refused\n"
        with patch(RUN, return_value=_completed(255, output)):
            with pytest.raises(RemoteConnectionError, match="Connection refused") as excinfo:
                SSHExecutor().execute("h", "root", Credential(), "uptime", 30)
        assert isinstance(excinfo.value, ConnectionError)

    def test_missing_ssh_binary(self) -> None:
        with patch(RUN, side_effect=FileNotFoundError("ssh")):
            with pytest.raises(RemoteConnectionError, match="could not start ssh"):
                SSHExecutor().execute("h", "root", Credential(), "uptime", 30)

    def test_argv_command_is_quoted_for_remote_shell(self) -> None:
        with patch(RUN, return_value=_completed()) as run:
            SSHExecutor().execute(
                "pve", "root", Credential(), ["qm", "listsnapshot", "101"], 30
            )
        assert run.call_args.args[0][-1] == "qm listsnapshot 101"


class TestDryRunExecutor:
    def test_reports_instead_of_running(self, recorder: EventRecorder) -> None:
        executor = DryRunExecutor(recorder)
        with patch(RUN) as run:
            result = executor.execute("h1", "root", Credential(), "apt-get update", 600)

        run.assert_not_called()
        assert result.ok is True
        assert result.dry_run is True
        assert executor.calls == [("h1", "root", "apt-get update")]
        assert recorder.events[-1].message == (
            "[DRY RUN] Would execute on root@h1: apt-get update"
        )


class TestCreateExecutor:
    def test_dry_run_selects_dry_run_executor(self) -> None:
        executor = create_executor(RunSettings(dry_run=True), MagicMock())
        assert isinstance(executor, DryRunExecutor)

    def test_live_run_uses_configured_options(self) -> None:
        executor = create_executor(RunSettings(ssh_options=["-p", "2222"]), MagicMock())
        assert isinstance(executor, SSHExecutor)
        assert executor.ssh_options == ("-p", "2222")
