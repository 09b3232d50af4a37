"""
Multi-modal risk fusion engine.

Combines per-modality risk scores into a single bounded score using a
weighted, correlation-adjusted fusion rule.

Author: Ops Tower Team
Date: 2026-10-18
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

import numpy as np
from loguru import logger

from opstower.config.settings import OpsTowerSettings, get_settings
from opstower.core.exceptions import ValidationError
from opstower.core.types import (
    ALL_MODALITIES,
    FusedResult,
    FusionMetadata,
    FusionThresholds,
    FusionWeights,
    Verdict,
)
from opstower.events.bus import EventBus
from opstower.events.types import FusionCompletedEvent, ThresholdExceededEvent
from opstower.fusion.adaptive_learning import WeightStore
from opstower.fusion.explainer import Explanation, ExplanationGenerator
from opstower.fusion.validators import (
    CorrelationInput,
    ScoreInput,
    validate_correlations,
    validate_scores,
    validate_weights,
)
from opstower.observability.metrics import FusionMetrics, get_metrics_collector

DEFAULT_THRESHOLDS = FusionThresholds()


def _empty_result(timestamp: datetime, weights_version: int) -> FusedResult:
    """Defined default for input with no usable modality."""
    return FusedResult(
        overall_score=0.0,
        confidence=0.0,
        verdict=Verdict.GENUINE,
        primary_concerns=frozenset(),
        correlation_penalty=0.0,
        metadata=FusionMetadata(
            modalities_used=(),
            data_quality=0.0,
            timestamp=timestamp,
            weights_version=weights_version,
        ),
    )


def fuse(
    scores: Iterable[ScoreInput],
    correlations: Iterable[CorrelationInput],
    weights: FusionWeights,
    thresholds: Optional[FusionThresholds] = None,
    timestamp: Optional[datetime] = None,
) -> FusedResult:
    """
    Fuse per-modality risk scores into one result.

    Pure function: no I/O, no shared state. Only the immutable ``weights``
    snapshot passed in is read, so concurrent calls need no locking.

    Args:
        scores: At most one score per modality
        correlations: Pairwise agreement between modality signals
        weights: Weight snapshot to apply
        thresholds: Decision constants (defaults apply when omitted)
        timestamp: Result timestamp; defaults to now (UTC)

    Returns:
        Fused result

    Raises:
        ValidationError: If any input is out of range, unknown or duplicated
    """
    thresholds = thresholds or DEFAULT_THRESHOLDS
    weights = validate_weights(weights)
    validated_scores = validate_scores(scores)
    validated_correlations = validate_correlations(correlations)
    timestamp = timestamp or datetime.now(timezone.utc)

    present = [s for s in validated_scores if s.quality > 0]
    if not present:
        return _empty_result(timestamp, weights.version)

    present_modalities = {s.modality for s in present}
    applied = weights.renormalized_over(s.modality for s in present)
    if all(weights[m] == 0 for m in present_modalities):
        logger.debug("All present modalities have zero weight, using uniform weights")

    values = np.array([s.score for s in present], dtype=float)
    qualities = np.array([s.quality for s in present], dtype=float)
    effective = qualities * np.array([applied[s.modality] for s in present], dtype=float)

    base_score = float(np.clip(np.dot(values, effective) / effective.sum(), 0.0, 1.0))

    # Only pairs whose both sides were observed can reveal a contradiction
    agreements = [
        c.agreement
        for c in validated_correlations
        if c.modality_a in present_modalities and c.modality_b in present_modalities
    ]
    average_agreement = float(np.mean(agreements)) if agreements else 1.0

    if average_agreement < thresholds.conflicting_agreement:
        correlation_penalty = thresholds.conflict_penalty
    elif average_agreement < thresholds.suspicious_agreement:
        correlation_penalty = thresholds.suspicious_penalty
    else:
        correlation_penalty = 0.0

    high_risk = frozenset(
        s.modality.value for s in present if s.score > thresholds.high_risk_score
    )
    if len(high_risk) >= thresholds.convergence_min_modalities:
        convergence_bonus = thresholds.convergence_bonus
    else:
        convergence_bonus = 0.0

    overall_score = float(np.clip(base_score + correlation_penalty + convergence_bonus, 0.0, 1.0))

    data_quality = float(qualities.mean())
    coverage = len(present) / len(ALL_MODALITIES)
    confidence = float(np.clip(coverage * data_quality * (1.0 - np.var(values)), 0.0, 1.0))

    return FusedResult(
        overall_score=overall_score,
        confidence=confidence,
        verdict=thresholds.classify(overall_score),
        primary_concerns=high_risk,
        correlation_penalty=correlation_penalty,
        convergence_bonus=convergence_bonus,
        base_score=base_score,
        average_agreement=average_agreement,
        modality_scores={s.modality.value: s.score for s in present},
        applied_weights={m.value: w for m, w in applied.items()},
        metadata=FusionMetadata(
            modalities_used=tuple(s.modality.value for s in present),
            data_quality=data_quality,
            timestamp=timestamp,
            weights_version=weights.version,
        ),
    )


@dataclass(frozen=True)
class RiskAssessment:
    """Fused result for a subject together with its explanation."""
    subject_id: str
    result: FusedResult
    explanation: Explanation

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "subject_id": self.subject_id,
            **self.result.to_dict(),
            "explanation": self.explanation.to_dict(),
        }


class RiskSignalAggregator:
    """
    Service wrapper around :func:`fuse`.

    Reads weights from a copy-on-write ``WeightStore`` and, when given,
    records metrics and emits events on an explicitly supplied bus.
    """

    def __init__(
        self,
        weight_store: WeightStore,
        thresholds: Optional[FusionThresholds] = None,
        metrics: Optional[FusionMetrics] = None,
        event_bus: Optional[EventBus] = None,
        explainer: Optional[ExplanationGenerator] = None,
    ):
        """
        Initialize aggregator.

        Args:
            weight_store: Source of weight snapshots
            thresholds: Decision constants
            metrics: Optional metrics collector
            event_bus: Optional bus for completion/threshold events
            explainer: Explanation generator (built from thresholds if omitted)
        """
        self.weight_store = weight_store
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self.metrics = metrics
        self.event_bus = event_bus
        self.explainer = explainer or ExplanationGenerator(self.thresholds)

        logger.info(
            f"RiskSignalAggregator initialized with weights v{weight_store.snapshot().version}"
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[OpsTowerSettings] = None,
        event_bus: Optional[EventBus] = None,
        metrics: Optional[FusionMetrics] = None,
    ) -> "RiskSignalAggregator":
        """
        Build an aggregator and its weight store from settings.

        Uses the global metrics collector when metrics are enabled and
        none is supplied.
        """
        settings = settings or get_settings()
        if metrics is None and settings.observability.enable_metrics:
            metrics = get_metrics_collector()

        store = WeightStore(settings.fusion.to_weights(), event_bus=event_bus, metrics=metrics)
        return cls(
            store,
            thresholds=settings.fusion.to_thresholds(),
            metrics=metrics,
            event_bus=event_bus,
        )

    def fuse(
        self,
        scores: Iterable[ScoreInput],
        correlations: Iterable[CorrelationInput] = (),
        timestamp: Optional[datetime] = None,
    ) -> FusedResult:
        """Fuse against a single snapshot of the current weights."""
        snapshot = self.weight_store.snapshot()
        return fuse(scores, correlations, snapshot, self.thresholds, timestamp)

    def assess(
        self,
        subject_id: str,
        scores: Iterable[ScoreInput],
        correlations: Iterable[CorrelationInput] = (),
        language: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> RiskAssessment:
        """
        Fuse scores for a subject and explain the outcome.

        Args:
            subject_id: User or session being assessed
            scores: Per-modality scores
            correlations: Cross-modal agreement pairs
            language: Detected conversation language, if known
            timestamp: Result timestamp

        Returns:
            Risk assessment
        """
        start_time = time.perf_counter()

        try:
            result = self.fuse(scores, correlations, timestamp)
        except ValidationError as e:
            logger.warning(f"Rejected input for {subject_id}: {e}")
            if self.metrics:
                self.metrics.record_validation_error(e.field)
            raise

        explanation = self.explainer.explain(result, language=language)
        latency = time.perf_counter() - start_time

        if self.metrics:
            self.metrics.record_fusion(
                verdict=result.verdict.value,
                overall_score=result.overall_score,
                confidence=result.confidence,
                latency_seconds=latency,
            )

        logger.debug(
            f"Assessed {subject_id}: score={result.overall_score:.3f} "
            f"verdict={result.verdict.value} in {latency * 1000:.2f}ms"
        )

        if self.event_bus:
            self._emit_events(subject_id, result, explanation)

        return RiskAssessment(subject_id=subject_id, result=result, explanation=explanation)

    def _emit_events(self, subject_id: str, result: FusedResult, explanation: Explanation) -> None:
        self.event_bus.emit(
            FusionCompletedEvent(
                source="risk_signal_aggregator",
                subject_id=subject_id,
                overall_score=result.overall_score,
                verdict=result.verdict.value,
                primary_concerns=sorted(result.primary_concerns),
                weights_version=result.metadata.weights_version,
            )
        )

        if result.verdict is Verdict.FRAUDULENT:
            self.event_bus.emit(
                ThresholdExceededEvent(
                    source="risk_signal_aggregator",
                    subject_id=subject_id,
                    overall_score=result.overall_score,
                    threshold=self.thresholds.fraudulent,
                    concern_tags=list(explanation.concern_tags),
                    recommended_actions=list(explanation.recommendations),
                    emergency_flags=list(explanation.emergency_flags),
                )
            )

