"""
Ops Tower: risk signal aggregation for ride-hailing trust & safety.

Fuses per-modality risk scores (visual, audio, behavioral, network,
textual) for drivers and passengers into a bounded risk score, a verdict
and operator-facing explanations.

Author: Ops Tower Team
Date: 2026-10-18
"""

__version__ = "0.1.0"
__author__ = "Ops Tower Team"
__license__ = "MIT"

from opstower.core.exceptions import OpsTowerError, ValidationError
from opstower.core.types import (
    CorrelationPair,
    FusedResult,
    FusionThresholds,
    FusionWeights,
    Modality,
    ModalityScore,
    Verdict,
)
from opstower.fusion.adaptive_learning import CalibrationSample, WeightCalibrator, WeightStore
from opstower.fusion.fusion_engine import RiskAssessment, RiskSignalAggregator, fuse

__all__ = [
    "fuse",
    "RiskSignalAggregator",
    "RiskAssessment",
    "WeightStore",
    "WeightCalibrator",
    "CalibrationSample",
    "Modality",
    "ModalityScore",
    "CorrelationPair",
    "FusionWeights",
    "FusionThresholds",
    "FusedResult",
    "Verdict",
    "OpsTowerError",
    "ValidationError",
]
