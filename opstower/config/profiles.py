"""
Configuration profiles for different environments.

Author: Ops Tower Team
Date: 2026-10-18
"""

import os
from enum import Enum
from typing import Any

from opstower.config.settings import ObservabilitySettings, OpsTowerSettings


class Profile(str, Enum):
    """Configuration profiles."""

    DEVELOPMENT = "dev"
    STAGING = "staging"
    PRODUCTION = "prod"
    TEST = "test"


def get_profile() -> Profile:
    """
    Get current configuration profile from environment.

    Checks OPSTOWER_ENVIRONMENT or ENV environment variables.
    Falls back to development profile.
    """
    env = os.getenv("OPSTOWER_ENVIRONMENT") or os.getenv("ENV") or "dev"

    try:
        return Profile(env.lower())
    except ValueError:
        return Profile.DEVELOPMENT


def get_development_settings() -> OpsTowerSettings:
    """Development: debug on, verbose logging."""
    return OpsTowerSettings(
        environment="dev",
        debug=True,
        observability=ObservabilitySettings(log_level="DEBUG"),
    )


def get_test_settings() -> OpsTowerSettings:
    """Test: quiet logging, no metrics, calibration possible on small fixtures."""
    return merge_settings(
        OpsTowerSettings(environment="test", debug=True),
        {
            "observability__log_level": "ERROR",
            "observability__enable_metrics": False,
            "calibration__min_samples": 10,
        },
    )


def get_staging_settings() -> OpsTowerSettings:
    """Staging: production-like JSON logs at INFO, metrics enabled."""
    return OpsTowerSettings(
        environment="staging",
        debug=False,
        observability=ObservabilitySettings(log_level="INFO", json_logs=True),
    )


def get_production_settings() -> OpsTowerSettings:
    """Production: JSON logs at WARNING, metrics enabled."""
    return OpsTowerSettings(
        environment="prod",
        debug=False,
        observability=ObservabilitySettings(log_level="WARNING", json_logs=True),
    )


def get_settings_for_profile(profile: Profile | str) -> OpsTowerSettings:
    """
    Get settings for specific profile.

    Args:
        profile: Configuration profile

    Returns:
        Settings instance for the profile
    """
    if isinstance(profile, str):
        profile = Profile(profile)

    profile_map = {
        Profile.DEVELOPMENT: get_development_settings,
        Profile.STAGING: get_staging_settings,
        Profile.TEST: get_test_settings,
        Profile.PRODUCTION: get_production_settings,
    }

    return profile_map[profile]()


def merge_settings(
    base: OpsTowerSettings,
    overrides: dict[str, Any],
) -> OpsTowerSettings:
    """
    Merge settings with overrides.

    Args:
        base: Base settings
        overrides: Setting overrides; ``a__b`` keys address nested settings

    Returns:
        New settings instance with overrides applied
    """
    base_dict = base.model_dump()

    for key, value in overrides.items():
        if "__" in key:
            parts = key.split("__")
            current = base_dict
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = value
        else:
            base_dict[key] = value

    return OpsTowerSettings(**base_dict)
