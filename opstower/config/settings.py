"""
Pydantic-based configuration settings for Ops Tower risk scoring.

Author: Ops Tower Team
Date: 2026-10-18
"""

import math
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from opstower.core.exceptions import OpsTowerError
from opstower.core.types import DEFAULT_WEIGHTS, FusionThresholds, FusionWeights, Modality


def _check_modality_names(names) -> None:
    for name in names:
        try:
            Modality.parse(name)
        except OpsTowerError:
            raise ValueError(f"Unknown modality: {name}")


class FusionSettings(BaseModel):
    """Weights and decision thresholds for fusion."""

    weights: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_WEIGHTS))

    fraudulent_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    suspicious_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    conflicting_agreement: float = Field(default=0.5, ge=0.0, le=1.0)
    suspicious_agreement: float = Field(default=0.7, ge=0.0, le=1.0)
    conflict_penalty: float = Field(default=0.2, ge=0.0, le=1.0)
    suspicious_penalty: float = Field(default=0.1, ge=0.0, le=1.0)
    high_risk_score: float = Field(default=0.7, ge=0.0, le=1.0)
    convergence_min_modalities: int = Field(default=3, ge=1, le=5)
    convergence_bonus: float = Field(default=0.15, ge=0.0, le=1.0)

    @field_validator("weights")
    @classmethod
    def validate_weights(cls, v: dict[str, float]) -> dict[str, float]:
        """Weights must name known modalities, be finite, non-negative and not all zero."""
        _check_modality_names(v)
        if not all(math.isfinite(w) for w in v.values()):
            raise ValueError("Fusion weights must be finite")
        if any(w < 0 for w in v.values()):
            raise ValueError("Fusion weights must be non-negative")
        if sum(v.values()) <= 0:
            raise ValueError("At least one fusion weight must be positive")
        return v

    @model_validator(mode="after")
    def validate_thresholds(self) -> "FusionSettings":
        """Reject threshold combinations the classifier cannot honour."""
        try:
            self.to_thresholds()
        except OpsTowerError as e:
            raise ValueError(e.message)
        return self

    def to_thresholds(self) -> FusionThresholds:
        """Build the immutable thresholds used by ``fuse``."""
        return FusionThresholds(
            fraudulent=self.fraudulent_threshold,
            suspicious=self.suspicious_threshold,
            conflicting_agreement=self.conflicting_agreement,
            suspicious_agreement=self.suspicious_agreement,
            conflict_penalty=self.conflict_penalty,
            suspicious_penalty=self.suspicious_penalty,
            high_risk_score=self.high_risk_score,
            convergence_min_modalities=self.convergence_min_modalities,
            convergence_bonus=self.convergence_bonus,
        )

    def to_weights(self) -> FusionWeights:
        """Build the initial weight snapshot."""
        return FusionWeights(self.weights)


class CalibrationSettings(BaseModel):
    """Settings for periodic weight recalibration."""

    min_samples: int = Field(default=100, ge=1)
    learning_rate: float = Field(default=0.5, ge=0.0, le=1.0)
    bounds: dict[str, tuple[float, float]] = Field(
        default_factory=lambda: {
            "visual": (0.10, 0.40),
            "audio": (0.10, 0.30),
            "behavioral": (0.15, 0.35),
            "network": (0.10, 0.30),
            "textual": (0.05, 0.20),
        }
    )

    @field_validator("bounds")
    @classmethod
    def validate_bounds(cls, v: dict[str, tuple[float, float]]) -> dict[str, tuple[float, float]]:
        """Bounds must be ordered, non-negative pairs for known modalities."""
        _check_modality_names(v)
        for name, (low, high) in v.items():
            if not 0.0 <= low <= high <= 1.0:
                raise ValueError(f"Invalid bounds for {name}: ({low}, {high})")
        return v


class ObservabilitySettings(BaseModel):
    """Settings for logging and metrics."""

    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_file: Path | None = None
    json_logs: bool = False
    enable_metrics: bool = True


class OpsTowerSettings(BaseSettings):
    """
    Main configuration settings for Ops Tower risk scoring.

    Configuration can be provided via:
    - Environment variables with OPSTOWER_ prefix (nested with ``__``)
    - .env file in current directory
    - Direct instantiation with kwargs

    Example:
        ```python
        # From environment
        # OPSTOWER_FUSION__FRAUDULENT_THRESHOLD=0.75
        settings = OpsTowerSettings()

        # Direct configuration
        settings = OpsTowerSettings(environment="prod")
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="OPSTOWER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core settings
    environment: Literal["dev", "test", "staging", "prod"] = "dev"
    debug: bool = Field(default=False)

    # Component settings
    fusion: FusionSettings = Field(default_factory=FusionSettings)
    calibration: CalibrationSettings = Field(default_factory=CalibrationSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "prod"

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        return self.model_dump()


@lru_cache
def get_settings(env_file: str | None = None) -> OpsTowerSettings:
    """
    Get cached settings instance.

    To reload settings, clear the cache with `get_settings.cache_clear()`.

    Args:
        env_file: Optional path to .env file

    Returns:
        Settings instance
    """
    if env_file:
        return OpsTowerSettings(_env_file=env_file)
    return OpsTowerSettings()
