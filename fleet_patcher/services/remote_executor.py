"""Remote command execution over the local OpenSSH client.

Commands are run with ``subprocess.run`` and an argument vector; nothing is
interpolated into a local shell. Password authentication goes through
``sshpass -e`` with the secret in the ``SSHPASS`` environment variable.
"""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from typing import TYPE_CHECKING

import structlog

from fleet_patcher.models.command_result import CommandResult
from fleet_patcher.models.inventory import DEFAULT_SSH_OPTIONS, AuthMethod

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fleet_patcher.models.inventory import Credential, RunSettings
    from fleet_patcher.services.event_recorder import EventRecorder
    from fleet_patcher.services.protocols import RemoteExecutorProtocol

logger = structlog.get_logger(__name__)

# ssh reserves exit status 255 for its own connection and auth failures.
SSH_CONNECTION_FAILURE = 255


class RemoteExecutionError(Exception):
    """Base class for transport-level failures."""


class MissingCapabilityError(RemoteExecutionError):
    """A required local helper (e.g. sshpass) is not available."""


class RemoteTimeoutError(RemoteExecutionError, TimeoutError):
    """The remote command did not finish within its timeout."""


class RemoteConnectionError(RemoteExecutionError, ConnectionError):
    """The SSH connection could not be established or was dropped."""


# Everything a caller should treat as "this remote step failed".
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    RemoteExecutionError,
    TimeoutError,
    ConnectionError,
)


def render_remote_command(command: str | Sequence[str]) -> str:
    """Operator-authored strings pass through; argument vectors are quoted."""
    if isinstance(command, str):
        return command
    return shlex.join(command)


class SSHExecutor:
    """RemoteExecutor backed by the ``ssh`` binary."""

    def __init__(
        self,
        ssh_options: Sequence[str] = DEFAULT_SSH_OPTIONS,
        ssh_binary: str = "ssh",
        sshpass_binary: str = "sshpass",
    ) -> None:
        self.ssh_options = tuple(ssh_options)
        self.ssh_binary = ssh_binary
        self.sshpass_binary = sshpass_binary

    def build_invocation(
        self,
        address: str,
        user: str,
        credential: Credential,
        command: str | Sequence[str],
    ) -> tuple[list[str], dict[str, str] | None]:
        """Return the local argv and environment for one remote command."""
        env: dict[str, str] | None = None
        if credential.method is AuthMethod.PASSWORD:
            sshpass = shutil.which(self.sshpass_binary)
            if sshpass is None:
                msg = "sshpass is required for password authentication but not installed"
                raise MissingCapabilityError(msg)
            env = {**os.environ, "SSHPASS": credential.password or ""}
            argv = [sshpass, "-e", self.ssh_binary, *self.ssh_options]
        else:
            argv = [self.ssh_binary, *self.ssh_options, "-o", "BatchMode=yes"]
            key_path = credential.resolved_key_path()
            if key_path:
                argv.extend(["-i", key_path])

        argv.extend(["--", f"{user}@{address}", render_remote_command(command)])
        return argv, env

    def execute(
        self,
        address: str,
        user: str,
        credential: Credential,
        command: str | Sequence[str],
        timeout: float,
    ) -> CommandResult:
        argv, env = self.build_invocation(address, user, credential, command)
        logger.debug(
            "ssh_execute",
            host=address,
            user=user,
            auth_method=str(credential.method),
            timeout=timeout,
        )
        try:
            completed = subprocess.run(
                argv,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            msg = f"command timed out after {timeout:g}s on {user}@{address}"
            raise RemoteTimeoutError(msg) from exc
        except OSError as exc:
            msg = f"could not start ssh for {user}@{address}: {exc}"
            raise RemoteConnectionError(msg) from exc

        output = completed.stdout or ""
        if completed.returncode == SSH_CONNECTION_FAILURE:
            detail = output.strip().splitlines()[-1] if output.strip() else "no output"
            msg = f"ssh connection to {user}@{address} failed: {detail}"
            raise RemoteConnectionError(msg)

        return CommandResult(output=output, exit_status=completed.returncode)


class DryRunExecutor:
    """RemoteExecutor that reports commands instead of running them."""

    def __init__(self, recorder: EventRecorder) -> None:
        self.recorder = recorder
        self.calls: list[tuple[str, str, str]] = []

    def execute(
        self,
        address: str,
        user: str,
        credential: Credential,
        command: str | Sequence[str],
        timeout: float,
    ) -> CommandResult:
        rendered = render_remote_command(command)
        self.calls.append((address, user, rendered))
        self.recorder.step(f"[DRY RUN] Would execute on {user}@{address}: {rendered}")
        return CommandResult.simulated()


def create_executor(settings: RunSettings, recorder: EventRecorder) -> RemoteExecutorProtocol:
    """Pick the transport for this run."""
    if settings.dry_run:
        return DryRunExecutor(recorder)
    return SSHExecutor(ssh_options=settings.ssh_options)


def ssh_available(ssh_binary: str = "ssh") -> bool:
    return shutil.which(ssh_binary) is not None


def sshpass_available(sshpass_binary: str = "sshpass") -> bool:
    return shutil.which(sshpass_binary) is not None
