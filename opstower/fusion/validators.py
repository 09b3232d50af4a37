"""
Input validation for the risk signal aggregator.

Bad input is surfaced, never clamped: every check raises
``ValidationError`` naming the offending field.

Author: Ops Tower Team
Date: 2026-10-18
"""

import math
import numbers
from collections.abc import Mapping
from typing import Any, Iterable, List, Set, Tuple, Union

from opstower.core.exceptions import ValidationError
from opstower.core.types import CorrelationPair, FusionWeights, Modality, ModalityScore

ScoreInput = Union[ModalityScore, Mapping]
CorrelationInput = Union[CorrelationPair, Mapping]


def check_unit_interval(value: Any, field: str) -> float:
    """Return ``value`` as a float, raising unless it is finite and within [0, 1]."""
    if isinstance(value, bool):
        raise ValidationError("expected a number, got a boolean", field=field, value=value)
    if not isinstance(value, numbers.Real):
        raise ValidationError("expected a number", field=field, value=value)
    number = float(value)
    if not math.isfinite(number):
        raise ValidationError("value must be finite", field=field, value=value)
    if number < 0.0 or number > 1.0:
        raise ValidationError(f"value {number} outside [0, 1]", field=field, value=value)
    return number


def _get(item: Any, name: str, field: str) -> Any:
    if isinstance(item, Mapping):
        if name not in item:
            raise ValidationError("missing required field", field=field)
        return item[name]
    try:
        return getattr(item, name)
    except AttributeError:
        raise ValidationError("missing required field", field=field)


def validate_scores(scores: Iterable[ScoreInput]) -> Tuple[ModalityScore, ...]:
    """
    Normalize score input into ``ModalityScore`` instances.

    Accepts dataclass instances or mappings with ``modality``, ``score``
    and ``quality`` keys. Duplicate modalities are rejected.
    """
    if scores is None:
        return ()

    validated: List[ModalityScore] = []
    seen: Set[Modality] = set()

    for i, item in enumerate(scores):
        prefix = f"scores[{i}]"
        modality = Modality.parse(_get(item, "modality", f"{prefix}.modality"), f"{prefix}.modality")
        score = check_unit_interval(_get(item, "score", f"{prefix}.score"), f"{prefix}.score")

        if isinstance(item, Mapping):
            raw_quality = item.get("quality", 1.0)
        else:
            raw_quality = _get(item, "quality", f"{prefix}.quality")
        quality = check_unit_interval(raw_quality, f"{prefix}.quality")

        if modality in seen:
            raise ValidationError(
                f"duplicate score for modality {modality.value!r}",
                field=f"{prefix}.modality",
                value=modality.value,
            )
        seen.add(modality)
        validated.append(ModalityScore(modality=modality, score=score, quality=quality))

    return tuple(validated)


def validate_correlations(correlations: Iterable[CorrelationInput]) -> Tuple[CorrelationPair, ...]:
    """
    Normalize correlation input into ``CorrelationPair`` instances.

    A pair is keyed independent of direction, so (A, B) followed by
    (B, A) counts as a duplicate.
    """
    if correlations is None:
        return ()

    validated: List[CorrelationPair] = []
    seen = set()

    for i, item in enumerate(correlations):
        prefix = f"correlations[{i}]"
        modality_a = Modality.parse(
            _get(item, "modality_a", f"{prefix}.modality_a"), f"{prefix}.modality_a"
        )
        modality_b = Modality.parse(
            _get(item, "modality_b", f"{prefix}.modality_b"), f"{prefix}.modality_b"
        )
        if modality_a is modality_b:
            raise ValidationError(
                "correlation must relate two distinct modalities",
                field=f"{prefix}.modality_b",
                value=modality_b.value,
            )
        agreement = check_unit_interval(
            _get(item, "agreement", f"{prefix}.agreement"), f"{prefix}.agreement"
        )

        pair = CorrelationPair(modality_a=modality_a, modality_b=modality_b, agreement=agreement)
        if pair.key in seen:
            raise ValidationError(
                f"duplicate correlation for {modality_a.value}/{modality_b.value}",
                field=prefix,
                value=pair.to_dict(),
            )
        seen.add(pair.key)
        validated.append(pair)

    return tuple(validated)


def validate_weights(weights: Union[FusionWeights, Mapping, None]) -> FusionWeights:
    """Coerce a plain mapping into a ``FusionWeights`` snapshot."""
    if isinstance(weights, FusionWeights):
        return weights
    if weights is None:
        raise ValidationError("weights are required", field="weights")
    if not isinstance(weights, Mapping):
        raise ValidationError("weights must be a mapping", field="weights", value=weights)
    return FusionWeights(weights)
