"""
Multi-modal risk fusion for Ops Tower.

This module combines per-modality risk scores (visual, audio, behavioral,
network, textual) into a single bounded risk score with a verdict, and
keeps fusion weights calibrated against confirmed outcomes.

Author: Ops Tower Team
Date: 2026-10-18
"""

from opstower.fusion.adaptive_learning import (
    CalibrationSample,
    ModalityPerformance,
    WeightCalibrator,
    WeightStore,
)
from opstower.fusion.explainer import (
    Explanation,
    ExplanationGenerator,
)
from opstower.fusion.fusion_engine import (
    RiskAssessment,
    RiskSignalAggregator,
    fuse,
)
from opstower.fusion.validators import (
    validate_correlations,
    validate_scores,
    validate_weights,
)

__all__ = [
    "fuse",
    "RiskSignalAggregator",
    "RiskAssessment",
    "ExplanationGenerator",
    "Explanation",
    "WeightCalibrator",
    "WeightStore",
    "CalibrationSample",
    "ModalityPerformance",
    "validate_scores",
    "validate_correlations",
    "validate_weights",
]
