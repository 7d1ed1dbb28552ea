"""Configuration loading for receipt capture."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Union

import yaml

from capture.media_backend import FACING_ENVIRONMENT, StreamConstraints
from configs.validator import validate_config
from exceptions import ConfigError, InvalidConfigError
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default.yaml")


@dataclass(frozen=True)
class CameraConfig:
    backend: str = "opencv"
    source: Union[int, str] = 0
    facing_mode: str = FACING_ENVIRONMENT  # Rear camera
    ideal_width: int = 1920
    ideal_height: int = 1080
    min_width: Optional[int] = None
    min_height: Optional[int] = None
    open_timeout_s: float = 5.0
    warmup_frames: int = 3  # Simulated backend only

    def constraints(self) -> StreamConstraints:
        return StreamConstraints(
            facing_mode=self.facing_mode,
            ideal_width=self.ideal_width,
            ideal_height=self.ideal_height,
            min_width=self.min_width,
            min_height=self.min_height,
        )


@dataclass(frozen=True)
class PreviewConfig:
    max_width: int = 960
    refresh_hz: int = 30


@dataclass(frozen=True)
class AttachmentsConfig:
    max_attachment_mb: float = 10.0


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    logs_dir: Optional[str] = None


@dataclass(frozen=True)
class AppConfig:
    camera: CameraConfig = field(default_factory=CameraConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    attachments: AttachmentsConfig = field(default_factory=AttachmentsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to configuration file (default: bundled default.yaml)

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    try:
        logger.info(f"Loading configuration from {path}")
        if not path.exists():
            raise InvalidConfigError(f"Configuration file not found: {path}")

        data = yaml.safe_load(path.read_text(encoding="utf-8"))

    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise InvalidConfigError(f"Failed to parse configuration file: {e}")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to read configuration file {path}: {e}")
        raise InvalidConfigError(f"Failed to read configuration file {path}: {e}")

    if not isinstance(data, dict):
        raise InvalidConfigError(f"Configuration file {path} does not contain a mapping")

    # Raises ConfigValidationError with the list of violations
    validate_config(data)

    try:
        config = AppConfig(
            camera=CameraConfig(**data["camera"]),
            preview=PreviewConfig(**data.get("preview", {})),
            attachments=AttachmentsConfig(**data.get("attachments", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to construct configuration objects: {e}")
        raise InvalidConfigError(f"Failed to construct configuration: {e}")

    logger.info(
        f"Configuration loaded successfully: {config.camera.backend} backend, source {config.camera.source!r}, "
        f"ideal {config.camera.ideal_width}x{config.camera.ideal_height}"
    )
    return config


def apply_overrides(config: AppConfig, backend: Optional[str] = None, source: Optional[str] = None) -> AppConfig:
    """Return ``config`` with command-line camera overrides applied."""
    camera = config.camera
    if backend is not None:
        camera = replace(camera, backend=backend)
    if source is not None:
        camera = replace(camera, source=int(source) if source.isdigit() else source)
    return replace(config, camera=camera)


__all__ = [
    "AppConfig",
    "apply_overrides",
    "AttachmentsConfig",
    "CameraConfig",
    "ConfigError",
    "LoggingConfig",
    "PreviewConfig",
    "DEFAULT_CONFIG_PATH",
    "load_config",
]
