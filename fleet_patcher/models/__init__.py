"""Pydantic data models for Fleet Patcher."""

from fleet_patcher.models.command_result import CommandResult
from fleet_patcher.models.config import AppConfig
from fleet_patcher.models.event import EventLevel, RunEvent
from fleet_patcher.models.inventory import (
    DEFAULT_SSH_OPTIONS,
    AuthMethod,
    Credential,
    HypervisorConnection,
    PatchingConfig,
    RunSettings,
    TargetHost,
)
from fleet_patcher.models.outcome import HostOutcome, OutcomeReason, OutcomeStatus, RunReport

__all__ = [
    "DEFAULT_SSH_OPTIONS",
    "AppConfig",
    "AuthMethod",
    "CommandResult",
    "Credential",
    "EventLevel",
    "HostOutcome",
    "HypervisorConnection",
    "OutcomeReason",
    "OutcomeStatus",
    "PatchingConfig",
    "RunEvent",
    "RunReport",
    "RunSettings",
    "TargetHost",
]
