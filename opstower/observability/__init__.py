"""
Observability for Ops Tower risk scoring.

Author: Ops Tower Team
Date: 2026-10-18
"""

from opstower.observability.metrics import (
    FusionMetrics,
    get_metrics_collector,
    reset_metrics,
)

__all__ = [
    "FusionMetrics",
    "get_metrics_collector",
    "reset_metrics",
]
