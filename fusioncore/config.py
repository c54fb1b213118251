"""Configuration management for the fusion pipeline."""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from .constants import (
    DEFAULT_MAX_SALVAGE_ATTEMPTS,
    DEFAULT_PREVIEW_CHARS,
    DEFAULT_SALVAGE_TIME_BUDGET,
)
from .error_handling import ConfigurationError


class ExtractionConfig(BaseModel):
    """Resilient JSON extraction settings."""

    allow_partial_recovery: bool = True
    throw_on_error: bool = False
    max_salvage_attempts: int = Field(default=DEFAULT_MAX_SALVAGE_ATTEMPTS, gt=0)
    salvage_time_budget: float = Field(default=DEFAULT_SALVAGE_TIME_BUDGET, gt=0)
    preview_chars: int = Field(default=DEFAULT_PREVIEW_CHARS, gt=0)


class CorrelationConfig(BaseModel):
    """Pair search and scoring settings."""

    correlation_threshold: float = Field(default=0.65, ge=0.0, le=1.0)
    prefilter_min_score: float = Field(default=0.3, ge=0.0, le=1.0)
    rule_based_accept: float = Field(default=0.7, ge=0.0, le=1.0)
    rule_based_weights: Dict[str, float] = Field(
        default_factory=lambda: {"spatial": 0.6, "temporal": 0.4}
    )
    combined_weights: Dict[str, float] = Field(
        default_factory=lambda: {"spatial": 0.4, "temporal": 0.2, "semantic": 0.4}
    )

    @model_validator(mode="after")
    def check_weights(self):
        for name, weights in (
            ("rule_based_weights", self.rule_based_weights),
            ("combined_weights", self.combined_weights),
        ):
            unknown = set(weights) - {"spatial", "temporal", "semantic"}
            if unknown:
                raise ValueError(f"{name} has unknown dimensions: {sorted(unknown)}")
            if any(w < 0 for w in weights.values()):
                raise ValueError(f"{name} must not contain negative weights")
        return self


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    format: str = "json"
    log_file: Optional[str] = None


class FusionConfig(BaseModel):
    """Main configuration for the fusion pipeline."""

    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigManager:
    """Manages configuration loading and validation."""

    DEFAULT_CONFIG = FusionConfig().model_dump()

    # (environment variable, section, key, type)
    ENV_OVERRIDES = [
        ("FUSION_LOG_LEVEL", "logging", "level", str),
        ("FUSION_LOG_FORMAT", "logging", "format", str),
        ("FUSION_LOG_FILE", "logging", "log_file", str),
        ("FUSION_CORRELATION_THRESHOLD", "correlation", "correlation_threshold", float),
        ("FUSION_MAX_SALVAGE_ATTEMPTS", "extraction", "max_salvage_attempts", int),
        ("FUSION_THROW_ON_ERROR", "extraction", "throw_on_error", bool),
    ]

    def __init__(self, config_path: Optional[str] = None, load_env_file: bool = True):
        """Initialize config manager.

        Args:
            config_path: Path to a JSON config file. If None, uses defaults + env vars
            load_env_file: Read a ``.env`` file into the environment first
        """
        self.config_path = Path(config_path) if config_path else None
        self.load_env_file = load_env_file
        self._config: Optional[FusionConfig] = None

    def load(self) -> FusionConfig:
        """Load configuration from file and environment."""
        if self._config:
            return self._config

        if self.load_env_file:
            load_dotenv(find_dotenv(usecwd=True))

        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path:
            if not self.config_path.exists():
                raise ConfigurationError(
                    f"Config file not found: {self.config_path}", config_key="config_path"
                )
            try:
                with open(self.config_path, "r") as f:
                    file_config = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(
                    f"Config file is not valid JSON: {e}", config_key="config_path"
                ) from e
            config_dict = self._deep_merge(config_dict, file_config)

        config_dict = self._apply_env_overrides(config_dict)

        try:
            self._config = FusionConfig(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
        return self._config

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        for env_key, section, key, cast in self.ENV_OVERRIDES:
            raw = os.getenv(env_key)
            if raw is None or raw == "":
                continue

            if cast is bool:
                value = raw.lower() in ("true", "1", "yes")
            else:
                try:
                    value = cast(raw)
                except ValueError as e:
                    raise ConfigurationError(
                        f"Invalid value for {env_key}: {raw!r}", config_key=env_key
                    ) from e

            config.setdefault(section, {})[key] = value

        return config

    def save_template(self, path: str):
        """Save a configuration template file."""
        with open(path, "w") as f:
            json.dump(self.DEFAULT_CONFIG, f, indent=2)

    @property
    def config(self) -> FusionConfig:
        """Get the loaded configuration."""
        if not self._config:
            self._config = self.load()
        return self._config
