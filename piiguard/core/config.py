"""Global and per-pipeline configuration."""

from __future__ import annotations

import logging
import os
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from piiguard.core.errors import ConfigError

logger = logging.getLogger(__name__)


class AppConfig(BaseModel):
    """Process-wide settings, loaded once at startup from the environment."""

    # Logging
    log_level: str = Field(default_factory=lambda: os.environ.get("PIIGUARD_LOG_LEVEL", "INFO"))
    log_format: str = Field(default_factory=lambda: os.environ.get("PIIGUARD_LOG_FORMAT", "text"))  # "text" | "json"

    # Language used when detection finds no signal
    default_language: str = Field(default_factory=lambda: os.environ.get("PIIGUARD_DEFAULT_LANGUAGE", "de"))

    # Server
    host: str = Field(default_factory=lambda: os.environ.get("PIIGUARD_HOST", "127.0.0.1"))
    port: int = Field(
        default_factory=lambda: int(os.environ.get("PIIGUARD_PORT", "8920")),
        ge=0, le=65535,
    )


class EnabledPasses(BaseModel):
    """Named on/off switches for the built-in passes."""
    high_recall: bool = True
    format_validation: bool = True
    context_scoring: bool = True
    address_relationship: bool = True
    document_type: bool = False

    def is_enabled(self, key: str) -> bool:
        # Passes without a switch (custom registrations) are always on
        return getattr(self, key, True)


class PipelineConfig(BaseModel):
    """Per-pipeline detection settings. All overridable per instance."""

    ml_confidence_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    context_window_size: int = Field(default=50, ge=0)
    auto_anonymize_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    enabled_passes: EnabledPasses = Field(default_factory=EnabledPasses)

    # Verbose per-pass logging only; detection results are unaffected
    debug: bool = False

    # Optional metadata-producing behaviors (deny-list counts, context boosts)
    enable_epic8_features: bool = True
    enable_normalization: bool = True

    def merged(self, overrides: dict[str, Any]) -> "PipelineConfig":
        """Return a new, re-validated config with *overrides* applied.

        ``enabled_passes`` is merged key by key rather than replaced.
        """
        data = self.model_dump()
        for key, value in overrides.items():
            if key not in data:
                raise ConfigError(f"Unknown pipeline setting: {key!r}")
            if key == "enabled_passes" and isinstance(value, dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value
        try:
            return PipelineConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc


# Singleton
config = AppConfig()
