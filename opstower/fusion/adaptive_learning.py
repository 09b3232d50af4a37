"""
Weight calibration for the risk signal aggregator.

Recomputes fusion weights from labeled historical outcomes and publishes
them copy-on-write so in-flight fusions keep their snapshot.

Author: Ops Tower Team
Date: 2026-10-18
"""

from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from loguru import logger
from sklearn.metrics import roc_auc_score

from opstower.config.settings import CalibrationSettings
from opstower.core.types import ALL_MODALITIES, FusionWeights, Modality
from opstower.events.bus import EventBus
from opstower.events.types import WeightsCalibratedEvent
from opstower.fusion.validators import ScoreInput, validate_scores, validate_weights
from opstower.observability.metrics import FusionMetrics

# Per-modality weight bounds applied after blending
DEFAULT_BOUNDS: Dict[str, Tuple[float, float]] = {
    "visual": (0.10, 0.40),
    "audio": (0.10, 0.30),
    "behavioral": (0.15, 0.35),
    "network": (0.10, 0.30),
    "textual": (0.05, 0.20),
}


@dataclass(frozen=True)
class CalibrationSample:
    """A historical subject with its final, confirmed outcome."""
    subject_id: str
    is_fraud: bool
    scores: Tuple[ScoreInput, ...] = field(default_factory=tuple)


@dataclass
class ModalityPerformance:
    """How well one modality separated fraud from genuine subjects."""
    modality: str
    samples: int
    auc: Optional[float]
    skill: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "modality": self.modality,
            "samples": self.samples,
            "auc": self.auc,
            "skill": self.skill,
        }


class WeightCalibrator:
    """
    Recalibrates fusion weights from labeled history.

    Each modality's skill is its Gini coefficient (2·AUC − 1, floored at 0)
    over the samples where it was observed. Skill shares are blended into
    the current weights, clamped to per-modality bounds and renormalized.
    """

    def __init__(
        self,
        min_samples: int = 100,
        learning_rate: float = 0.5,
        bounds: Optional[Mapping[str, Tuple[float, float]]] = None,
    ):
        """
        Initialize calibrator.

        Args:
            min_samples: Minimum labeled samples before weights change
            learning_rate: Blend factor between current and skill-based weights
            bounds: (low, high) weight bounds per modality
        """
        if not 0.0 <= learning_rate <= 1.0:
            raise ValueError(f"learning_rate must be within [0, 1], got {learning_rate}")
        self.min_samples = min_samples
        self.learning_rate = learning_rate
        self.bounds = dict(DEFAULT_BOUNDS if bounds is None else bounds)

        for name, (low, high) in self.bounds.items():
            Modality.parse(name, field_name=f"bounds.{name}")
            if not 0.0 <= low <= high:
                raise ValueError(f"Invalid bounds for {name}: ({low}, {high})")

    @classmethod
    def from_settings(cls, settings: CalibrationSettings) -> "WeightCalibrator":
        """Build a calibrator from calibration settings."""
        return cls(
            min_samples=settings.min_samples,
            learning_rate=settings.learning_rate,
            bounds=settings.bounds,
        )

    def evaluate(self, samples: Sequence[CalibrationSample]) -> Dict[str, ModalityPerformance]:
        """
        Measure per-modality discrimination on labeled samples.

        Args:
            samples: Labeled historical samples

        Returns:
            Performance keyed by modality name
        """
        columns: Dict[Modality, List[Tuple[float, float, int]]] = {m: [] for m in ALL_MODALITIES}

        for sample in samples:
            for score in validate_scores(sample.scores):
                if score.quality > 0:
                    columns[score.modality].append(
                        (score.score, score.quality, 1 if sample.is_fraud else 0)
                    )

        performance = {}
        for modality, rows in columns.items():
            auc = skill = None
            labels = [label for _, _, label in rows]
            if len(set(labels)) == 2:
                values = np.array([r[0] for r in rows])
                qualities = np.array([r[1] for r in rows])
                auc = float(roc_auc_score(labels, values, sample_weight=qualities))
                skill = max(0.0, 2.0 * auc - 1.0)
            performance[modality.value] = ModalityPerformance(
                modality=modality.value,
                samples=len(rows),
                auc=auc,
                skill=skill,
            )

        return performance

    def calibrate(
        self,
        samples: Sequence[CalibrationSample],
        current: FusionWeights,
    ) -> FusionWeights:
        """
        Compute recalibrated weights.

        Returns ``current`` itself when there is too little data or no
        modality shows any skill. Never mutates ``current``.

        Args:
            samples: Labeled historical samples
            current: Weights in effect now

        Returns:
            New weights (non-negative, summing to 1)
        """
        current = validate_weights(current)

        if len(samples) < self.min_samples:
            logger.info(
                f"Skipping calibration: {len(samples)} samples < {self.min_samples} required"
            )
            return current

        performance = self.evaluate(samples)
        skills = {name: p.skill for name, p in performance.items() if p.skill is not None}
        total_skill = sum(skills.values())

        if total_skill <= 0:
            logger.warning("No modality separated fraud from genuine outcomes, keeping weights")
            return current

        # Evaluated modalities share the weight mass they already hold
        evaluated_mass = sum(current[name] for name in skills)
        blended = {}
        for modality in ALL_MODALITIES:
            name = modality.value
            target = evaluated_mass * skills[name] / total_skill if name in skills else current[name]
            weight = (1.0 - self.learning_rate) * current[name] + self.learning_rate * target
            if name in self.bounds:
                low, high = self.bounds[name]
                weight = float(np.clip(weight, low, high))
            blended[name] = weight

        calibrated = FusionWeights(blended, version=current.version)
        logger.info(f"Fusion weights calibrated from {len(samples)} samples: {calibrated.as_dict()}")
        return calibrated


class WeightStore:
    """
    Holder of the current weight snapshot.

    Readers call :meth:`snapshot` and keep the returned immutable object
    for the duration of a fusion. Publishing swaps a single reference, so a
    reader observes either the old or the new snapshot in full.
    """

    def __init__(
        self,
        initial: Optional[FusionWeights] = None,
        event_bus: Optional[EventBus] = None,
        metrics: Optional[FusionMetrics] = None,
    ):
        """
        Initialize weight store.

        Args:
            initial: Starting weights (defaults apply when omitted)
            event_bus: Optional bus notified on every publish
            metrics: Optional metrics collector
        """
        self._current = validate_weights(initial) if initial is not None else FusionWeights()
        self._lock = Lock()
        self.event_bus = event_bus
        self.metrics = metrics

    def snapshot(self) -> FusionWeights:
        """Return the current immutable weights."""
        return self._current

    def publish(self, weights: FusionWeights, sample_count: int = 0) -> FusionWeights:
        """
        Atomically replace the current weights.

        Args:
            weights: New weights
            sample_count: Labeled samples behind this update, if any

        Returns:
            The published snapshot, stamped with the next version
        """
        weights = validate_weights(weights)

        with self._lock:
            previous = self._current
            published = weights.with_version(previous.version + 1)
            self._current = published

        logger.info(f"Published fusion weights v{published.version}: {published.as_dict()}")

        if self.metrics:
            self.metrics.record_calibration(published.as_dict())

        if self.event_bus:
            self.event_bus.emit(
                WeightsCalibratedEvent(
                    source="weight_store",
                    version=published.version,
                    previous_version=previous.version,
                    weights=published.as_dict(),
                    sample_count=sample_count,
                )
            )

        return published

    def recalibrate(
        self,
        calibrator: WeightCalibrator,
        samples: Sequence[CalibrationSample],
    ) -> FusionWeights:
        """
        Calibrate from the current snapshot and publish the result.

        Nothing is published when the calibrator keeps the weights.
        """
        current = self.snapshot()
        calibrated = calibrator.calibrate(samples, current)
        if calibrated is current:
            return current
        return self.publish(calibrated, sample_count=len(samples))
