"""
Core data model for the risk signal aggregator.

Author: Ops Tower Team
Date: 2026-10-18
"""

import math
import numbers
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Optional, Tuple, Union

from opstower.core.exceptions import ConfigurationError, ValidationError


class Modality(Enum):
    """Analysis channels that can contribute a risk score."""

    VISUAL = "visual"
    AUDIO = "audio"
    BEHAVIORAL = "behavioral"
    NETWORK = "network"
    TEXTUAL = "textual"

    @classmethod
    def parse(cls, value: Union["Modality", str], field_name: str = "modality") -> "Modality":
        """Resolve a modality from an enum member or its name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        raise ValidationError(f"unknown modality {value!r}", field=field_name, value=value)


ALL_MODALITIES: Tuple[Modality, ...] = tuple(Modality)

DEFAULT_WEIGHTS: Dict[str, float] = {
    "visual": 0.25,
    "audio": 0.20,
    "behavioral": 0.25,
    "network": 0.20,
    "textual": 0.10,
}


class Verdict(Enum):
    """Categorical outcome of a fusion run."""

    GENUINE = "genuine"
    SUSPICIOUS = "suspicious"
    FRAUDULENT = "fraudulent"


@dataclass(frozen=True)
class ModalityScore:
    """A single risk estimate from one analysis channel."""

    modality: Modality
    score: float  # 0.0 to 1.0, higher = more suspicious
    quality: float = 1.0  # 0.0 = no data

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        modality = self.modality.value if isinstance(self.modality, Modality) else self.modality
        return {"modality": modality, "score": self.score, "quality": self.quality}


@dataclass(frozen=True)
class CorrelationPair:
    """Agreement between the underlying signals of two modalities."""

    modality_a: Modality
    modality_b: Modality
    agreement: float  # 1.0 = fully consistent, 0.0 = contradictory

    @property
    def key(self) -> FrozenSet[Modality]:
        """Direction-independent identity of the pair."""
        return frozenset((Modality.parse(self.modality_a), Modality.parse(self.modality_b)))

    @classmethod
    def from_signals(
        cls,
        modality_a: Union[Modality, str],
        modality_b: Union[Modality, str],
        value_a: float,
        value_b: float,
    ) -> "CorrelationPair":
        """
        Derive agreement from two readings of the same quantity.

        E.g. stress level estimated from voice and from touch behaviour.
        """
        return cls(
            modality_a=Modality.parse(modality_a, "modality_a"),
            modality_b=Modality.parse(modality_b, "modality_b"),
            agreement=1.0 - abs(float(value_a) - float(value_b)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "modality_a": Modality.parse(self.modality_a).value,
            "modality_b": Modality.parse(self.modality_b).value,
            "agreement": self.agreement,
        }


class FusionWeights(Mapping):
    """
    Immutable modality weight snapshot.

    Weights are renormalized to sum to 1.0 on construction; modalities
    missing from the input get weight 0. Updates return a new instance.
    """

    __slots__ = ("_weights", "_version")

    def __init__(
        self,
        weights: Optional[Mapping[Union[Modality, str], float]] = None,
        version: int = 0,
    ):
        raw = DEFAULT_WEIGHTS if weights is None else weights
        parsed: Dict[Modality, float] = {m: 0.0 for m in ALL_MODALITIES}

        for key, value in raw.items():
            modality = Modality.parse(key, field_name=f"weights.{key}")
            field_name = f"weights.{modality.value}"
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ValidationError("weight must be a number", field=field_name, value=value)
            weight = float(value)
            if not math.isfinite(weight) or weight < 0:
                raise ValidationError(
                    "weight must be finite and non-negative", field=field_name, value=value
                )
            parsed[modality] = weight

        total = sum(parsed.values())
        if total <= 0:
            raise ValidationError("at least one weight must be positive", field="weights", value=dict(raw))

        self._weights = MappingProxyType({m: w / total for m, w in parsed.items()})
        self._version = int(version)

    @property
    def version(self) -> int:
        return self._version

    def __getitem__(self, key: Union[Modality, str]) -> float:
        try:
            modality = Modality.parse(key)
        except ValidationError:
            raise KeyError(key) from None
        return self._weights[modality]

    def __iter__(self) -> Iterator[Modality]:
        return iter(self._weights)

    def __len__(self) -> int:
        return len(self._weights)

    def __repr__(self) -> str:
        body = ", ".join(f"{m.value}={w:.4f}" for m, w in self._weights.items())
        return f"FusionWeights({body}, version={self._version})"

    def updated(self, **changes: float) -> "FusionWeights":
        """Return a renormalized copy with some weights replaced."""
        merged = {m.value: w for m, w in self._weights.items()}
        merged.update(changes)
        return FusionWeights(merged, version=self._version)

    def with_version(self, version: int) -> "FusionWeights":
        """Same weights, new version; values are shared, not renormalized."""
        clone = object.__new__(FusionWeights)
        clone._weights = self._weights
        clone._version = int(version)
        return clone

    def renormalized_over(self, modalities: Iterable[Modality]) -> Dict[Modality, float]:
        """
        Restrict weights to ``modalities`` and rescale them to sum to 1.

        Falls back to uniform weights when every listed modality has weight 0.
        """
        present = list(dict.fromkeys(modalities))
        if not present:
            return {}
        total = sum(self._weights[m] for m in present)
        if total <= 0:
            return {m: 1.0 / len(present) for m in present}
        return {m: self._weights[m] / total for m in present}

    def as_dict(self) -> Dict[str, float]:
        """Plain ``{name: weight}`` dictionary."""
        return {m.value: w for m, w in self._weights.items()}


@dataclass(frozen=True)
class FusionThresholds:
    """Decision constants for fusion; all configurable."""

    fraudulent: float = 0.7
    suspicious: float = 0.4
    conflicting_agreement: float = 0.5
    suspicious_agreement: float = 0.7
    conflict_penalty: float = 0.2
    suspicious_penalty: float = 0.1
    high_risk_score: float = 0.7
    convergence_min_modalities: int = 3
    convergence_bonus: float = 0.15

    def __post_init__(self):
        for name in (
            "fraudulent",
            "suspicious",
            "conflicting_agreement",
            "suspicious_agreement",
            "conflict_penalty",
            "suspicious_penalty",
            "high_risk_score",
            "convergence_bonus",
        ):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")
        if self.suspicious >= self.fraudulent:
            raise ConfigurationError("suspicious threshold must be below fraudulent threshold")
        if self.conflicting_agreement > self.suspicious_agreement:
            raise ConfigurationError("conflicting_agreement must not exceed suspicious_agreement")
        if self.convergence_min_modalities < 1:
            raise ConfigurationError("convergence_min_modalities must be at least 1")

    def classify(self, score: float) -> Verdict:
        """Map an overall score onto a verdict."""
        if score > self.fraudulent:
            return Verdict.FRAUDULENT
        if score > self.suspicious:
            return Verdict.SUSPICIOUS
        return Verdict.GENUINE


@dataclass(frozen=True)
class FusionMetadata:
    """Bookkeeping attached to a fused result."""

    modalities_used: Tuple[str, ...]
    data_quality: float
    timestamp: datetime
    weights_version: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modalities_used": list(self.modalities_used),
            "data_quality": self.data_quality,
            "timestamp": self.timestamp.isoformat(),
            "weights_version": self.weights_version,
        }


@dataclass(frozen=True)
class FusedResult:
    """Output of one aggregation run."""

    overall_score: float
    confidence: float
    verdict: Verdict
    primary_concerns: FrozenSet[str]
    correlation_penalty: float
    metadata: FusionMetadata
    convergence_bonus: float = 0.0
    base_score: float = 0.0
    average_agreement: float = 1.0
    modality_scores: Mapping[str, float] = field(default_factory=dict, hash=False)
    applied_weights: Mapping[str, float] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        # Store read-only views
        object.__setattr__(self, "modality_scores", MappingProxyType(dict(self.modality_scores)))
        object.__setattr__(self, "applied_weights", MappingProxyType(dict(self.applied_weights)))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "overall_score": self.overall_score,
            "confidence": self.confidence,
            "verdict": self.verdict.value,
            "primary_concerns": sorted(self.primary_concerns),
            "correlation_penalty": self.correlation_penalty,
            "convergence_bonus": self.convergence_bonus,
            "base_score": self.base_score,
            "average_agreement": self.average_agreement,
            "modality_scores": dict(self.modality_scores),
            "applied_weights": dict(self.applied_weights),
            "metadata": self.metadata.to_dict(),
        }
