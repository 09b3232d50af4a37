"""
Core types and errors for Ops Tower risk scoring.

Author: Ops Tower Team
Date: 2026-10-18
"""

from opstower.core.exceptions import ConfigurationError, OpsTowerError, ValidationError
from opstower.core.types import (
    ALL_MODALITIES,
    DEFAULT_WEIGHTS,
    CorrelationPair,
    FusedResult,
    FusionMetadata,
    FusionThresholds,
    FusionWeights,
    Modality,
    ModalityScore,
    Verdict,
)

__all__ = [
    "OpsTowerError",
    "ConfigurationError",
    "ValidationError",
    "ALL_MODALITIES",
    "DEFAULT_WEIGHTS",
    "Modality",
    "ModalityScore",
    "CorrelationPair",
    "FusionWeights",
    "FusionThresholds",
    "FusionMetadata",
    "FusedResult",
    "Verdict",
]
