"""Inventory models: credentials, hypervisor connections, target hosts, run settings.

The JSON configuration document is validated once into these records. Field
aliases keep the document's historical key names (``vmid``, ``proxmox_host``,
``update_commands``...) while the rest of the package works with typed values.
"""

from __future__ import annotations

import os
import re
import shlex
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fleet_patcher.core.output import OutputLimits

DEFAULT_SSH_OPTIONS: tuple[str, ...] = (
    "-o",
    "StrictHostKeyChecking=no",
    "-o",
    "ConnectTimeout=10",
)

# Proxmox accepts letters, digits, '-' and '_' and requires a leading letter.
_SNAPSHOT_NAME_PATTERN = re.compile(r"[A-Za-z][A-Za-z0-9_-]{1,39}")


class AuthMethod(StrEnum):
    KEY = "key"
    PASSWORD = "password"


class Credential(BaseModel):
    """How to authenticate against a remote host."""

    model_config = ConfigDict(frozen=True)

    method: AuthMethod = AuthMethod.KEY
    key_path: str | None = None
    password: str | None = Field(default=None, repr=False)

    @field_validator("key_path", "password", mode="before")
    @classmethod
    def normalize_null_strings(cls, value: Any) -> Any:
        """Treat empty strings and the literal "null" as absent."""
        if isinstance(value, str) and value.strip() in ("", "null"):
            return None
        return value

    @model_validator(mode="after")
    def validate_password_present(self) -> Credential:
        """Password authentication requires a password."""
        if self.method is AuthMethod.PASSWORD and not self.password:
            msg = "password is required when auth_method is 'password'"
            raise ValueError(msg)
        return self

    def resolved_key_path(self) -> str | None:
        """Key path with a leading ``~`` expanded to the home directory."""
        if self.method is not AuthMethod.KEY or not self.key_path:
            return None
        return os.path.expanduser(self.key_path)


def _collect_credential(data: Any) -> Any:
    """Fold flat ``auth_method``/``ssh_key``/``password`` keys into a credential."""
    if not isinstance(data, dict) or "credential" in data:
        return data
    data = dict(data)
    data["credential"] = {
        "method": data.pop("auth_method", None) or AuthMethod.KEY,
        "key_path": data.pop("ssh_key", None),
        "password": data.pop("password", None),
    }
    return data


class HypervisorConnection(BaseModel):
    """Management endpoint used to manipulate VM snapshots."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    address: str = Field(alias="host")
    user: str
    credential: Credential = Field(default_factory=Credential)

    @model_validator(mode="before")
    @classmethod
    def collect_credential(cls, data: Any) -> Any:
        return _collect_credential(data)

    @field_validator("name", "address", "user")
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return value.strip()


class TargetHost(BaseModel):
    """A virtual machine to be patched."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    hypervisor: str = Field(alias="proxmox_host")
    vm_id: int = Field(alias="vmid")
    address: str = Field(alias="ip")
    user: str
    credential: Credential = Field(default_factory=Credential)
    enabled: bool = False
    commands: tuple[str, ...] = Field(default=(), alias="update_commands")

    @model_validator(mode="before")
    @classmethod
    def collect_credential(cls, data: Any) -> Any:
        return _collect_credential(data)

    @field_validator("name", "address", "user")
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return value.strip()

    @field_validator("vm_id")
    @classmethod
    def validate_vm_id(cls, value: int) -> int:
        """VM ID must be positive."""
        if value <= 0:
            msg = "vmid must be greater than 0"
            raise ValueError(msg)
        return value

    @field_validator("commands")
    @classmethod
    def validate_commands(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        """Update commands must be non-blank strings."""
        for command in value:
            if not command.strip():
                msg = "update_commands must not contain blank entries"
                raise ValueError(msg)
        return value


class RunSettings(BaseModel):
    """Settings for one maintenance pass.

    Document values come from the ``settings`` section; ``host_filter``,
    ``dry_run``, ``skip_snapshots`` and ``skip_updates`` come from the
    command line via :meth:`with_flags`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    query_timeout: float = Field(default=30, alias="ssh_timeout", gt=0)
    command_timeout: float = Field(default=600, gt=0)
    reboot_timeout: float = Field(default=10, gt=0)
    snapshot_delete_timeout: float = Field(default=300, gt=0)
    snapshot_create_timeout: float = Field(default=600, gt=0)
    inter_host_delay: float = Field(default=5, ge=0)
    connect_retries: int = Field(default=2, ge=0, le=5)
    ssh_options: tuple[str, ...] = DEFAULT_SSH_OPTIONS
    snapshot_name: str = "server_patching"
    log_dir: str = "./logs"
    output_max_lines: int = Field(default=50, gt=0)
    output_head_lines: int = Field(default=20, ge=0)
    output_tail_lines: int = Field(default=10, ge=0)

    host_filter: str | None = None
    dry_run: bool = False
    skip_snapshots: bool = False
    skip_updates: bool = False

    @field_validator("ssh_options", mode="before")
    @classmethod
    def split_ssh_options(cls, value: Any) -> Any:
        """Accept the options as a shell-style string or as a list."""
        if isinstance(value, str):
            return tuple(shlex.split(value))
        return value

    @field_validator("snapshot_name")
    @classmethod
    def validate_snapshot_name(cls, value: str) -> str:
        if not _SNAPSHOT_NAME_PATTERN.fullmatch(value):
            msg = (
                "snapshot_name must start with a letter and contain only letters, "
                "digits, '-' or '_' (2-40 characters)"
            )
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def validate_output_limits(self) -> RunSettings:
        """Head and tail slices must fit inside the truncation threshold."""
        if self.output_head_lines + self.output_tail_lines > self.output_max_lines:
            msg = "output_head_lines + output_tail_lines must not exceed output_max_lines"
            raise ValueError(msg)
        return self

    @property
    def output_limits(self) -> OutputLimits:
        return OutputLimits(
            max_lines=self.output_max_lines,
            head_lines=self.output_head_lines,
            tail_lines=self.output_tail_lines,
        )

    def with_flags(
        self,
        *,
        host_filter: str | None = None,
        dry_run: bool = False,
        skip_snapshots: bool = False,
        skip_updates: bool = False,
    ) -> RunSettings:
        return self.model_copy(
            update={
                "host_filter": host_filter,
                "dry_run": dry_run,
                "skip_snapshots": skip_snapshots,
                "skip_updates": skip_updates,
            }
        )

    def resolve_log_dir(self, base_dir: Path) -> Path:
        """Log directory, relative paths being resolved against ``base_dir``."""
        path = Path(self.log_dir).expanduser()
        if path.is_absolute():
            return path
        return base_dir / path


class PatchingConfig(BaseModel):
    """The parsed configuration document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    settings: RunSettings = Field(default_factory=RunSettings)
    hypervisors: dict[str, HypervisorConnection] = Field(
        default_factory=dict, alias="proxmox_hosts"
    )
    targets: list[TargetHost] = Field(default_factory=list, alias="servers")

    @field_validator("hypervisors", mode="before")
    @classmethod
    def inject_hypervisor_names(cls, value: Any) -> Any:
        """Registry keys double as connection names."""
        if not isinstance(value, dict):
            return value
        named: dict[str, Any] = {}
        for key, entry in value.items():
            if isinstance(entry, dict):
                entry = {"name": key, **entry}
            named[key] = entry
        return named

    @model_validator(mode="after")
    def validate_targets(self) -> PatchingConfig:
        """Server names are unique and enabled servers resolve their hypervisor."""
        seen: set[str] = set()
        for target in self.targets:
            if target.name in seen:
                msg = f"duplicate server name: {target.name}"
                raise ValueError(msg)
            seen.add(target.name)
            if target.enabled and target.hypervisor not in self.hypervisors:
                msg = (
                    f"server '{target.name}' references unknown proxmox_host "
                    f"'{target.hypervisor}'"
                )
                raise ValueError(msg)
        return self

    def uses_password_auth(self) -> bool:
        credentials = [target.credential for target in self.targets]
        credentials.extend(connection.credential for connection in self.hypervisors.values())
        return any(credential.method is AuthMethod.PASSWORD for credential in credentials)
