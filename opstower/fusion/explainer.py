"""
Explanation generator for fused risk results.

Turns a ``FusedResult`` into concern tags, recommendations and
emergency flags for the operations dashboard.

Author: Ops Tower Team
Date: 2026-10-18
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from opstower.core.types import FusedResult, FusionThresholds

CONCERN_TAGS: Dict[str, str] = {
    "visual": "visual_authentication_failure",
    "audio": "voice_spoofing_detected",
    "behavioral": "behavioral_anomaly_critical",
    "network": "fraud_network_connection",
    "textual": "suspicious_communication_patterns",
}

# Recommendations triggered by individual concern tags
TAG_RECOMMENDATIONS: Dict[str, str] = {
    "voice_spoofing_detected": "require_in_person_verification",
    "behavioral_anomaly_critical": "behavioral_re_training_required",
    "fraud_network_connection": "investigate_network_connections",
    "cross_modal_inconsistency": "comprehensive_multi_modal_review",
}

REGIONAL_LANGUAGES = frozenset({"tagalog", "filipino", "cebuano", "ilocano"})


@dataclass(frozen=True)
class Explanation:
    """Human-facing explanation of a fused result."""

    summary: str
    concern_tags: Tuple[str, ...]
    secondary_concerns: Tuple[str, ...]
    recommendations: Tuple[str, ...]
    emergency_flags: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "summary": self.summary,
            "concern_tags": list(self.concern_tags),
            "secondary_concerns": list(self.secondary_concerns),
            "recommendations": list(self.recommendations),
            "emergency_flags": list(self.emergency_flags),
        }


class ExplanationGenerator:
    """
    Generates explanations for fused risk results.

    Deterministic: the same result always yields the same explanation.
    """

    def __init__(
        self,
        thresholds: Optional[FusionThresholds] = None,
        critical_score: float = 0.9,
        confirmed_modality_score: float = 0.8,
        confirmed_modality_count: int = 3,
        identity_theft_score: float = 0.9,
        organized_network_score: float = 0.85,
    ):
        """
        Initialize explanation generator.

        Args:
            thresholds: Fusion thresholds used for concern tags
            critical_score: Overall score that raises ``critical_fraud_risk``
            confirmed_modality_score: Per-modality score counted as confirmed
            confirmed_modality_count: Confirmed modalities that raise
                ``multi_modal_fraud_confirmed``
            identity_theft_score: Visual and audio score for ``identity_theft_suspected``
            organized_network_score: Network score for ``organized_fraud_network``
        """
        self.thresholds = thresholds or FusionThresholds()
        self.critical_score = critical_score
        self.confirmed_modality_score = confirmed_modality_score
        self.confirmed_modality_count = confirmed_modality_count
        self.identity_theft_score = identity_theft_score
        self.organized_network_score = organized_network_score

    def explain(self, result: FusedResult, language: Optional[str] = None) -> Explanation:
        """
        Explain a fused result.

        Args:
            result: Result to explain
            language: Detected conversation language, if known

        Returns:
            Explanation
        """
        concern_tags = self._concern_tags(result)
        explanation = Explanation(
            summary=self._summary(result),
            concern_tags=concern_tags,
            secondary_concerns=self._secondary_concerns(result),
            recommendations=self._recommendations(result, concern_tags, language),
            emergency_flags=self._emergency_flags(result),
        )

        if explanation.emergency_flags:
            logger.warning(f"Emergency flags raised: {', '.join(explanation.emergency_flags)}")

        return explanation

    def _concern_tags(self, result: FusedResult) -> Tuple[str, ...]:
        tags: List[str] = [
            CONCERN_TAGS[modality]
            for modality in CONCERN_TAGS
            if modality in result.primary_concerns
        ]

        # No observed pairs means average_agreement stays at 1.0
        if result.average_agreement < self.thresholds.conflicting_agreement:
            tags.append("cross_modal_inconsistency")
        if result.average_agreement < self.thresholds.suspicious_agreement:
            tags.append("multi_modal_deception_indicators")

        return tuple(tags)

    def _secondary_concerns(self, result: FusedResult) -> Tuple[str, ...]:
        scores = result.modality_scores
        concerns: List[str] = []

        visual = scores.get("visual")
        if visual is not None and self.thresholds.suspicious < visual <= self.thresholds.high_risk_score:
            concerns.append("moderate_visual_concerns")

        if scores.get("behavioral", 0.0) > 0.5:
            concerns.append("stress_indicators_detected")

        return tuple(concerns)

    def _recommendations(
        self,
        result: FusedResult,
        concern_tags: Tuple[str, ...],
        language: Optional[str],
    ) -> Tuple[str, ...]:
        score = result.overall_score
        recommendations: List[str] = []

        if score > 0.8:
            recommendations += ["immediate_account_suspension", "escalate_to_fraud_investigation_team"]
        elif score > 0.6:
            recommendations += ["enhanced_verification_required", "monitor_all_activities"]
        elif score > self.thresholds.suspicious:
            recommendations += ["periodic_re_verification", "flag_for_pattern_monitoring"]

        for tag in concern_tags:
            if tag in TAG_RECOMMENDATIONS:
                recommendations.append(TAG_RECOMMENDATIONS[tag])

        if language and language.strip().lower() in REGIONAL_LANGUAGES:
            recommendations.append("apply_regional_fraud_patterns")

        return tuple(recommendations)

    def _emergency_flags(self, result: FusedResult) -> Tuple[str, ...]:
        scores = result.modality_scores
        flags: List[str] = []

        if result.overall_score > self.critical_score:
            flags.append("critical_fraud_risk")

        confirmed = [m for m, s in scores.items() if s > self.confirmed_modality_score]
        if len(confirmed) >= self.confirmed_modality_count:
            flags.append("multi_modal_fraud_confirmed")

        if (
            scores.get("visual", 0.0) > self.identity_theft_score
            and scores.get("audio", 0.0) > self.identity_theft_score
        ):
            flags.append("identity_theft_suspected")

        if scores.get("network", 0.0) > self.organized_network_score:
            flags.append("organized_fraud_network")

        return tuple(flags)

    def _summary(self, result: FusedResult) -> str:
        used = result.metadata.modalities_used
        if not used:
            return "No modality data available; subject treated as genuine."

        summary = (
            f"Analysis of {len(used)} modalities ({', '.join(used)}) rated the subject "
            f"{result.verdict.value} with risk {result.overall_score:.2f} "
            f"and {result.confidence:.0%} confidence."
        )
        if result.primary_concerns:
            summary += f" Primary concerns: {', '.join(sorted(result.primary_concerns))}."
        if result.correlation_penalty > 0:
            summary += f" Cross-modal disagreement added {result.correlation_penalty:.2f}."
        if result.convergence_bonus > 0:
            summary += f" Convergent evidence added {result.convergence_bonus:.2f}."
        return summary
