"""Loads and validates the JSON configuration document."""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from pydantic import ValidationError

from fleet_patcher.models.inventory import PatchingConfig

logger = structlog.get_logger(__name__)


class ConfigError(Exception):
    """Base class for configuration problems. Always fatal."""


class ConfigNotFoundError(ConfigError):
    pass


class ConfigValidationError(ConfigError):
    pass


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "<document>"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def parse_config(document: object) -> PatchingConfig:
    """Validate an already-decoded configuration document."""
    if not isinstance(document, dict):
        msg = "configuration document must be a JSON object"
        raise ConfigValidationError(msg)
    try:
        return PatchingConfig.model_validate(document)
    except ValidationError as exc:
        raise ConfigValidationError(_format_validation_error(exc)) from exc


def load_config(path: str | Path) -> PatchingConfig:
    """Read ``path`` and return the validated configuration."""
    config_path = Path(path)
    if not config_path.is_file():
        msg = f"Configuration file not found: {config_path}"
        raise ConfigNotFoundError(msg)

    try:
        document = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON in configuration file {config_path}: {exc}"
        raise ConfigValidationError(msg) from exc

    config = parse_config(document)
    logger.info(
        "config_loaded",
        path=str(config_path),
        servers=len(config.targets),
        hypervisors=len(config.hypervisors),
    )
    return config
