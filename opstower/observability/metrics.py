"""
Metrics collection for the risk signal aggregator.

Provides Prometheus-compatible metrics for tracking fusion outcomes,
input rejections and weight calibration.

Author: Ops Tower Team
Date: 2026-10-18
"""

from threading import Lock
from typing import Mapping, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

SCORE_BUCKETS = [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0]


class FusionMetrics:
    """
    Metrics collector for risk fusion.

    Example:
        ```python
        metrics = FusionMetrics(registry=CollectorRegistry())
        metrics.record_fusion("suspicious", 0.55, 0.4, 0.0007)
        print(metrics.export_metrics().decode())
        ```
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics collector.

        Args:
            registry: Prometheus registry (None = global registry)
        """
        registry = registry if registry is not None else REGISTRY
        self.registry = registry
        self._lock = Lock()

        self.fusions_total = Counter(
            "opstower_fusions_total",
            "Total number of fusion runs",
            ["verdict"],
            registry=registry
        )

        self.overall_score_distribution = Histogram(
            "opstower_overall_score",
            "Distribution of fused risk scores",
            buckets=SCORE_BUCKETS,
            registry=registry
        )

        self.confidence_distribution = Histogram(
            "opstower_confidence",
            "Distribution of fusion confidence",
            buckets=SCORE_BUCKETS,
            registry=registry
        )

        self.fusion_latency_seconds = Histogram(
            "opstower_fusion_duration_seconds",
            "Fusion latency in seconds",
            buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1],
            registry=registry
        )

        self.validation_errors_total = Counter(
            "opstower_validation_errors_total",
            "Rejected fusion inputs",
            ["field"],
            registry=registry
        )

        self.calibrations_total = Counter(
            "opstower_weight_calibrations_total",
            "Published weight snapshots",
            registry=registry
        )

        self.modality_weight = Gauge(
            "opstower_modality_weight",
            "Current fusion weight per modality",
            ["modality"],
            registry=registry
        )

    def record_fusion(
        self,
        verdict: str,
        overall_score: float,
        confidence: float,
        latency_seconds: float,
    ) -> None:
        """
        Record one fusion run.

        Args:
            verdict: Verdict value
            overall_score: Fused score (0-1)
            confidence: Confidence (0-1)
            latency_seconds: Time spent fusing and explaining
        """
        with self._lock:
            self.fusions_total.labels(verdict=verdict).inc()
            self.overall_score_distribution.observe(overall_score)
            self.confidence_distribution.observe(confidence)
            self.fusion_latency_seconds.observe(latency_seconds)

    def record_validation_error(self, field: str) -> None:
        """Count a rejected input, labelled by the offending attribute."""
        # scores[3].quality -> quality, weights.visual -> weights
        head, _, attribute = field.rpartition(".")
        if head.endswith("]"):
            label = attribute
        else:
            label = field.split(".", 1)[0].split("[", 1)[0]

        with self._lock:
            self.validation_errors_total.labels(field=label).inc()

    def record_calibration(self, weights: Mapping[str, float]) -> None:
        """Record a newly published weight snapshot."""
        with self._lock:
            self.calibrations_total.inc()
            for modality, weight in weights.items():
                self.modality_weight.labels(modality=modality).set(weight)

    def unregister(self) -> None:
        """Remove this collector's metrics from its registry."""
        for collector in (
            self.fusions_total,
            self.overall_score_distribution,
            self.confidence_distribution,
            self.fusion_latency_seconds,
            self.validation_errors_total,
            self.calibrations_total,
            self.modality_weight,
        ):
            self.registry.unregister(collector)

    def export_metrics(self) -> bytes:
        """
        Export metrics in Prometheus format.

        Returns:
            Metrics in Prometheus text format
        """
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        """Get content type for metrics endpoint."""
        return CONTENT_TYPE_LATEST


# Global metrics collector instance
_global_metrics: Optional[FusionMetrics] = None
_metrics_lock = Lock()


def get_metrics_collector() -> FusionMetrics:
    """
    Get the global metrics collector.

    Returns:
        Global FusionMetrics instance
    """
    global _global_metrics

    if _global_metrics is None:
        with _metrics_lock:
            if _global_metrics is None:
                _global_metrics = FusionMetrics()

    return _global_metrics


def reset_metrics() -> None:
    """Reset the global metrics collector (useful for testing)."""
    global _global_metrics

    with _metrics_lock:
        if _global_metrics is not None:
            _global_metrics.unregister()
        _global_metrics = None
