"""Shared test fixtures for Fleet Patcher."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest
import structlog

from fleet_patcher.models.inventory import HypervisorConnection, RunSettings, TargetHost
from fleet_patcher.services.event_recorder import EventRecorder
from tests.fakes import FakeExecutor, fixed_clock

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Loggers configured inside a test must not outlive its captured streams."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder(clock=fixed_clock)


@pytest.fixture
def settings() -> RunSettings:
    """Run settings with no pacing delay and no connection retries."""
    return RunSettings(inter_host_delay=0, connect_retries=0)


@pytest.fixture
def hypervisor() -> HypervisorConnection:
    return HypervisorConnection(name="pve1", address="10.0.0.10", user="root")


@pytest.fixture
def hypervisors(hypervisor: HypervisorConnection) -> dict[str, HypervisorConnection]:
    return {"pve1": hypervisor}


@pytest.fixture
def make_host() -> Callable[..., TargetHost]:
    """Factory for enabled target hosts on pve1."""

    def _make_host(name: str = "h1", vm_id: int = 101, **overrides: Any) -> TargetHost:
        fields: dict[str, Any] = {
            "name": name,
            "hypervisor": "pve1",
            "vm_id": vm_id,
            "address": f"{name}.example.internal",
            "user": "root",
            "enabled": True,
            "commands": ("apt-get update", "apt-get -y upgrade"),
        }
        fields.update(overrides)
        return TargetHost(**fields)

    return _make_host


@pytest.fixture
def sample_config_document() -> dict[str, Any]:
    """A configuration document in the on-disk JSON shape."""
    return {
        "settings": {
            "ssh_timeout": 30,
            "snapshot_name": "server_patching",
            "log_dir": "./logs",
            "inter_host_delay": 0,
        },
        "proxmox_hosts": {
            "pve1": {"host": "10.0.0.10", "user": "root", "ssh_key": "~/.ssh/id_ed25519"},
        },
        "servers": [
            {
                "name": f"h{index}",
                "vmid": 100 + index,
                "proxmox_host": "pve1",
                "ip": f"10.0.1.{index}",
                "user": "root",
                "auth_method": "key",
                "enabled": True,
                "update_commands": ["apt-get update", "apt-get -y upgrade"],
            }
            for index in (1, 2, 3)
        ],
    }


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[dict[str, Any]], Path]:
    def _write(document: dict[str, Any]) -> Path:
        path = tmp_path / "servers.json"
        path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return _write
