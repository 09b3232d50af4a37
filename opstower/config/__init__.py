"""
Configuration management for Ops Tower risk scoring.

Uses Pydantic BaseSettings for type-safe, validated configuration
with support for environment variables and .env files.

Author: Ops Tower Team
Date: 2026-10-18
"""

from opstower.config.profiles import (
    Profile,
    get_profile,
    get_settings_for_profile,
    merge_settings,
)
from opstower.config.settings import (
    CalibrationSettings,
    FusionSettings,
    ObservabilitySettings,
    OpsTowerSettings,
    get_settings,
)

__all__ = [
    "OpsTowerSettings",
    "FusionSettings",
    "CalibrationSettings",
    "ObservabilitySettings",
    "get_settings",
    "Profile",
    "get_profile",
    "get_settings_for_profile",
    "merge_settings",
]
