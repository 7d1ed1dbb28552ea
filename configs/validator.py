"""Configuration validation using JSON Schema."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import yaml
from jsonschema import Draft7Validator

from exceptions import ConfigValidationError
from log_config.logger import get_logger

logger = get_logger(__name__)

# JSON Schema for default.yaml configuration
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["camera"],
    "properties": {
        "camera": {
            "type": "object",
            "required": ["backend", "source"],
            "additionalProperties": False,
            "properties": {
                "backend": {"type": "string", "enum": ["opencv", "sim"]},
                "source": {"type": ["integer", "string"]},
                "facing_mode": {"type": "string", "enum": ["environment", "user"]},
                "ideal_width": {"type": "integer", "minimum": 160, "maximum": 7680},
                "ideal_height": {"type": "integer", "minimum": 120, "maximum": 4320},
                "min_width": {"type": ["integer", "null"], "minimum": 1},
                "min_height": {"type": ["integer", "null"], "minimum": 1},
                "open_timeout_s": {"type": "number", "exclusiveMinimum": 0, "maximum": 60},
                "warmup_frames": {"type": "integer", "minimum": 0, "maximum": 300},
            },
        },
        "preview": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "max_width": {"type": "integer", "minimum": 160, "maximum": 3840},
                "refresh_hz": {"type": "integer", "minimum": 1, "maximum": 60},
            },
        },
        "attachments": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "max_attachment_mb": {"type": "number", "exclusiveMinimum": 0, "maximum": 100},
            },
        },
        "logging": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "level": {
                    "type": "string",
                    "enum": ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"],
                },
                "logs_dir": {"type": ["string", "null"]},
            },
        },
    },
}

_VALIDATOR = Draft7Validator(CONFIG_SCHEMA)


def collect_errors(data: Any) -> List[str]:
    """Return human-readable schema violations, empty if valid."""
    errors = []
    for error in sorted(_VALIDATOR.iter_errors(data), key=lambda e: list(e.absolute_path)):
        location = ".".join(str(part) for part in error.absolute_path) or "<root>"
        errors.append(f"{location}: {error.message}")
    return errors


def validate_config(data: Dict[str, Any]) -> None:
    """Validate configuration data against the schema.

    Raises:
        ConfigValidationError: If validation fails
    """
    errors = collect_errors(data)
    if errors:
        for message in errors:
            logger.error(f"Config validation error: {message}")
        raise ConfigValidationError(
            f"Configuration validation failed with {len(errors)} error(s)",
            validation_errors=errors,
        )
    logger.debug("Configuration validated successfully")


def validate_config_file(path: Path) -> None:
    """Validate a YAML configuration file.

    Raises:
        ConfigValidationError: If the file is unreadable or invalid
    """
    try:
        data = yaml.safe_load(Path(path).read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigValidationError(f"Failed to read configuration file {path}: {e}")
    validate_config(data)
