"""
Ops Tower exceptions.

Author: Ops Tower Team
Date: 2026-10-18
"""

from typing import Any


class OpsTowerError(Exception):
    """Base exception for all Ops Tower errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(OpsTowerError):
    """Raised when the risk engine is misconfigured."""
    pass


class ValidationError(OpsTowerError):
    """
    Raised when aggregator input is invalid.

    Always a caller bug: never retried internally. Web layers should map
    it to ``http_status``.
    """

    http_status = 422

    def __init__(
        self,
        message: str,
        field: str,
        value: Any = None,
        details: dict | None = None
    ):
        details = {"field": field, "value": value, **(details or {})}
        super().__init__(message, details)
        self.field = field
        self.value = value

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"
