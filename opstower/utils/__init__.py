"""
Utility functions for Ops Tower.

Author: Ops Tower Team
Date: 2026-10-18
"""

from opstower.utils.logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
