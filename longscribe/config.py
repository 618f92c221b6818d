"""
longscribe.config - YAML config loading and validation.

Handles loading longscribe.yaml, applying defaults, and validating all
parameters that shape a transcription job.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from longscribe.exceptions import ConfigError

CONFIG_FILENAME = "longscribe.yaml"
DEFAULT_LOCALE = "ko-KR"
DEFAULT_SPEECH_FRIENDLY_EXTENSIONS = ["wav", "m4a", "caf", "aif", "aiff", "flac"]


class TranscriptionConfig(BaseModel):
    """Resolved configuration for transcription jobs."""

    locale: str = DEFAULT_LOCALE
    allow_online_fallback: bool = True
    prefer_on_device: bool = True

    segment_length: float = Field(default=30.0, gt=0.0)
    concurrency: int = Field(default=4, ge=1)
    request_timeout: float = Field(default=300.0, gt=0.0)

    target_encoding: str = "wav"
    sample_rate: int = Field(default=16000, gt=0)
    speech_friendly_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SPEECH_FRIENDLY_EXTENSIONS)
    )

    whisper_model: str = "medium"
    whisper_device: str = "auto"

    online_backend: str = "assemblyai"
    assemblyai_api_key: str | None = None

    @field_validator("locale")
    @classmethod
    def validate_locale(cls, v: str) -> str:
        v = v.strip()
        return v or DEFAULT_LOCALE

    @field_validator("target_encoding")
    @classmethod
    def validate_target_encoding(cls, v: str) -> str:
        valid = {"wav", "m4a", "flac"}
        if v not in valid:
            raise ValueError(f"target_encoding must be one of: {valid}")
        return v

    @field_validator("online_backend")
    @classmethod
    def validate_online_backend(cls, v: str) -> str:
        valid = {"assemblyai", "none"}
        if v not in valid:
            raise ValueError(f"online_backend must be one of: {valid}")
        return v

    @field_validator("speech_friendly_extensions")
    @classmethod
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        return [ext.lower().lstrip(".") for ext in v]

    def resolve_api_key(self) -> str | None:
        """Return the configured AssemblyAI key, falling back to the environment."""
        return self.assemblyai_api_key or os.environ.get("ASSEMBLYAI_API_KEY") or None


def resolve_locale(locale: str | None, default: str = DEFAULT_LOCALE) -> str:
    """Return a usable locale identifier; blank values fall back to the default."""
    if locale is None:
        return default
    locale = locale.strip()
    return locale or default


def load_config(path: Path | None = None) -> TranscriptionConfig:
    """Load and validate configuration.

    Args:
        path: Config file, or a directory containing longscribe.yaml.
            None returns the defaults.

    Raises:
        FileNotFoundError: If the config file does not exist
        ConfigError: If the file is not valid YAML or fails validation
    """
    if path is None:
        return TranscriptionConfig()

    config_file = path / CONFIG_FILENAME if path.is_dir() else path
    if not config_file.exists():
        raise FileNotFoundError(f"No {CONFIG_FILENAME} found at {path}")

    try:
        with open(config_file) as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"{config_file} must contain a mapping")

    try:
        return TranscriptionConfig(**raw_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_file}: {e}") from e


def create_default_config(**overrides: Any) -> dict[str, Any]:
    """Create a default config dict, applying any non-None overrides."""
    defaults = TranscriptionConfig().model_dump(exclude={"assemblyai_api_key"})
    for key, value in overrides.items():
        if value is not None:
            defaults[key] = value
    return defaults


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
