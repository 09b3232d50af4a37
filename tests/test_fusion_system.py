"""
Tests for the multi-modal risk fusion engine.

Author: Ops Tower Team
Date: 2026-10-18
"""

import itertools
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest
from loguru import logger
from prometheus_client import CollectorRegistry

from opstower.core.exceptions import ValidationError
from opstower.core.types import (
    CorrelationPair,
    FusedResult,
    FusionThresholds,
    FusionWeights,
    Modality,
    ModalityScore,
    Verdict,
)
from opstower.events import EventBus, FusionCompletedEvent, ThresholdExceededEvent
from opstower.fusion.adaptive_learning import WeightStore
from opstower.fusion.explainer import ExplanationGenerator
from opstower.fusion.fusion_engine import RiskAssessment, RiskSignalAggregator, fuse
from opstower.observability.metrics import FusionMetrics

FIXED_TIME = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)


@pytest.fixture
def weights():
    """Default fusion weights."""
    return FusionWeights()


def score(modality, value, quality=1.0):
    return ModalityScore(modality=Modality(modality), score=value, quality=quality)


class TestFuse:
    """Test the pure fusion function."""

    def test_empty_input(self, weights):
        """Test that empty input yields the defined default result."""
        result = fuse([], [], weights)

        assert isinstance(result, FusedResult)
        assert result.overall_score == 0.0
        assert result.confidence == 0.0
        assert result.verdict == Verdict.GENUINE
        assert result.primary_concerns == frozenset()
        assert result.correlation_penalty == 0.0
        assert result.metadata.modalities_used == ()

    def test_zero_quality_scores_treated_as_absent(self, weights):
        """Test that scores without data behave like empty input."""
        result = fuse([score("visual", 0.9, quality=0.0)], [], weights)

        assert result.overall_score == 0.0
        assert result.verdict == Verdict.GENUINE

    def test_single_modality(self, weights):
        """Test that a lone modality carries the whole weight."""
        result = fuse([score("network", 0.55)], [], weights, timestamp=FIXED_TIME)

        assert result.base_score == pytest.approx(0.55)
        assert result.overall_score == pytest.approx(0.55)
        assert result.verdict == Verdict.SUSPICIOUS
        assert result.applied_weights == {"network": pytest.approx(1.0)}
        assert result.metadata.modalities_used == ("network",)
        # 1 of 5 modalities, full quality, no variance
        assert result.confidence == pytest.approx(0.2)

    def test_quality_weighted_base_score(self, weights):
        """Test that quality scales each modality's contribution."""
        result = fuse(
            [score("visual", 1.0, quality=0.5), score("audio", 0.0, quality=1.0)],
            [],
            weights,
        )

        # visual 0.25 * 0.5 against audio 0.20 * 1.0
        assert result.base_score == pytest.approx(0.125 / 0.325)
        assert result.metadata.data_quality == pytest.approx(0.75)

    def test_missing_modality_redistributes_weight(self, weights):
        """Test that applied weights sum to one when a modality is absent."""
        scores = [
            score("visual", 0.3),
            score("audio", 0.6),
            score("behavioral", 0.2),
            score("network", 0.9),
        ]

        result = fuse(scores, [], weights)

        assert "textual" not in result.applied_weights
        assert abs(sum(result.applied_weights.values()) - 1.0) < 1e-9
        assert result.applied_weights["visual"] == pytest.approx(0.25 / 0.9)
        assert result.applied_weights["network"] == pytest.approx(0.20 / 0.9)

    def test_zero_weight_modalities_fall_back_to_uniform(self):
        """Test uniform weighting when every present modality has weight 0."""
        weights = FusionWeights({"visual": 1.0})

        result = fuse([score("audio", 0.3), score("textual", 0.5)], [], weights)

        assert result.applied_weights == {
            "audio": pytest.approx(0.5),
            "textual": pytest.approx(0.5),
        }
        assert result.base_score == pytest.approx(0.4)

    def test_conflict_penalty(self, weights):
        """Test that contradicting modalities add the conflict penalty."""
        result = fuse(
            [score("visual", 0.2), score("audio", 0.2)],
            [CorrelationPair(Modality.VISUAL, Modality.AUDIO, agreement=0.1)],
            weights,
        )

        assert result.base_score == pytest.approx(0.2)
        assert result.correlation_penalty == pytest.approx(0.2)
        assert result.overall_score == pytest.approx(0.4)
        assert result.average_agreement == pytest.approx(0.1)

    def test_suspicious_agreement_penalty(self, weights):
        """Test the smaller penalty for partial agreement."""
        result = fuse(
            [score("visual", 0.2), score("audio", 0.2)],
            [CorrelationPair(Modality.VISUAL, Modality.AUDIO, agreement=0.6)],
            weights,
        )

        assert result.correlation_penalty == pytest.approx(0.1)
        assert result.overall_score == pytest.approx(0.3)

    def test_consistent_agreement_no_penalty(self, weights):
        """Test that agreement at or above the suspicious threshold is free."""
        result = fuse(
            [score("visual", 0.2), score("audio", 0.2)],
            [CorrelationPair(Modality.VISUAL, Modality.AUDIO, agreement=0.7)],
            weights,
        )

        assert result.correlation_penalty == 0.0

    def test_correlations_with_absent_modality_ignored(self, weights):
        """Test that a pair is only used when both sides were observed."""
        result = fuse(
            [score("visual", 0.2), score("audio", 0.2, quality=0.0)],
            [
                CorrelationPair(Modality.VISUAL, Modality.AUDIO, agreement=0.0),
                CorrelationPair(Modality.VISUAL, Modality.NETWORK, agreement=0.0),
            ],
            weights,
        )

        assert result.average_agreement == 1.0
        assert result.correlation_penalty == 0.0
        assert result.overall_score == pytest.approx(0.2)

    def test_average_agreement_over_present_pairs(self, weights):
        """Test that agreement is averaged across all relevant pairs."""
        result = fuse(
            [score("visual", 0.1), score("audio", 0.1), score("behavioral", 0.1)],
            [
                {"modality_a": "visual", "modality_b": "audio", "agreement": 0.9},
                {"modality_a": "audio", "modality_b": "behavioral", "agreement": 0.3},
            ],
            weights,
        )

        assert result.average_agreement == pytest.approx(0.6)
        assert result.correlation_penalty == pytest.approx(0.1)

    def test_convergence_bonus(self, weights):
        """Test that three independent high-risk channels add the bonus."""
        scores = [score("visual", 0.8), score("audio", 0.8), score("behavioral", 0.8)]

        result = fuse(scores, [], weights)

        assert result.base_score == pytest.approx(0.8)
        assert result.convergence_bonus == pytest.approx(0.15)
        assert result.overall_score >= 0.8 + 0.15 - 1e-9
        assert result.overall_score == pytest.approx(0.95)
        assert result.verdict == Verdict.FRAUDULENT
        assert result.primary_concerns == frozenset({"visual", "audio", "behavioral"})

    def test_convergence_needs_three_modalities(self, weights):
        """Test that two high-risk channels do not earn the bonus."""
        result = fuse([score("visual", 0.8), score("audio", 0.8)], [], weights)

        assert result.convergence_bonus == 0.0
        assert result.overall_score == pytest.approx(0.8)

    def test_score_capped_at_one(self, weights):
        """Test that penalty and bonus cannot push the score above 1."""
        scores = [score(m.value, 0.95) for m in Modality]
        correlations = [CorrelationPair(Modality.VISUAL, Modality.AUDIO, agreement=0.0)]

        result = fuse(scores, correlations, weights)

        assert result.overall_score == 1.0
        assert result.verdict == Verdict.FRAUDULENT

    def test_verdict_boundaries(self, weights):
        """Test that thresholds are exclusive."""
        assert fuse([score("visual", 0.4)], [], weights).verdict == Verdict.GENUINE
        assert fuse([score("visual", 0.41)], [], weights).verdict == Verdict.SUSPICIOUS
        assert fuse([score("visual", 0.7)], [], weights).verdict == Verdict.SUSPICIOUS
        assert fuse([score("visual", 0.71)], [], weights).verdict == Verdict.FRAUDULENT

    def test_confidence_penalizes_variance(self, weights):
        """Test that disagreeing scores lower confidence."""
        agreeing = fuse([score("visual", 0.5), score("audio", 0.5)], [], weights)
        split = fuse([score("visual", 1.0), score("audio", 0.0)], [], weights)

        assert agreeing.confidence == pytest.approx(0.4)
        # population variance of (1, 0) is 0.25
        assert split.confidence == pytest.approx(0.4 * 0.75)

    def test_confidence_grows_with_coverage(self, weights):
        """Test that more modalities with data raise confidence."""
        two = fuse([score("visual", 0.5), score("audio", 0.5)], [], weights)
        five = fuse([score(m.value, 0.5) for m in Modality], [], weights)

        assert five.confidence == pytest.approx(1.0)
        assert five.confidence > two.confidence

    def test_primary_concerns(self, weights):
        """Test that only modalities above the high-risk score are concerns."""
        result = fuse(
            [score("visual", 0.71), score("network", 0.7), score("textual", 0.95)],
            [],
            weights,
        )

        assert result.primary_concerns == frozenset({"visual", "textual"})

    def test_custom_thresholds(self, weights):
        """Test that thresholds are configurable."""
        strict = FusionThresholds(fraudulent=0.5, suspicious=0.2)

        result = fuse([score("visual", 0.55)], [], weights, thresholds=strict)

        assert result.verdict == Verdict.FRAUDULENT

    def test_accepts_mappings(self, weights):
        """Test that plain dict input is accepted."""
        result = fuse(
            [{"modality": "visual", "score": 0.6, "quality": 1.0}, {"modality": "audio", "score": 0.6}],
            [],
            {"visual": 1, "audio": 1},
        )

        assert result.overall_score == pytest.approx(0.6)
        assert result.applied_weights == {"visual": pytest.approx(0.5), "audio": pytest.approx(0.5)}

    def test_to_dict(self, weights):
        """Test result serialization."""
        result = fuse([score("visual", 0.9)], [], weights, timestamp=FIXED_TIME)

        data = result.to_dict()

        assert data["verdict"] == "fraudulent"
        assert data["primary_concerns"] == ["visual"]
        assert data["metadata"]["timestamp"] == FIXED_TIME.isoformat()
        assert data["metadata"]["modalities_used"] == ["visual"]

    def test_result_is_immutable(self, weights):
        """Test that a result and its score mappings cannot be changed."""
        result = fuse([score("visual", 0.3)], [], weights, timestamp=FIXED_TIME)

        with pytest.raises(TypeError):
            result.modality_scores["network"] = 0.99
        with pytest.raises(TypeError):
            result.applied_weights["visual"] = 0.0

        assert dict(result.modality_scores) == {"visual": 0.3}
        assert ExplanationGenerator().explain(result).emergency_flags == ()
        assert hash(result) == hash(fuse([score("visual", 0.3)], [], weights, timestamp=FIXED_TIME))


class TestFuseProperties:
    """Test invariants that hold across inputs."""

    @pytest.fixture
    def weights(self):
        return FusionWeights()

    def test_determinism(self, weights):
        """Test that identical input yields an identical result."""
        scores = [score("visual", 0.62, 0.9), score("network", 0.33, 0.7), score("textual", 0.8)]
        correlations = [CorrelationPair(Modality.VISUAL, Modality.NETWORK, 0.45)]

        first = fuse(scores, correlations, weights, timestamp=FIXED_TIME)
        second = fuse(scores, correlations, weights, timestamp=FIXED_TIME)

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_bounds(self, weights):
        """Test score and confidence bounds over a grid of inputs."""
        values = [0.0, 0.35, 0.75, 1.0]
        qualities = [0.0, 0.5, 1.0]

        for v1, v2, v3, q, agreement in itertools.product(values, values, values, qualities, [0.0, 0.6, 1.0]):
            result = fuse(
                [score("visual", v1, q), score("audio", v2), score("network", v3, 1.0 - q)],
                [CorrelationPair(Modality.VISUAL, Modality.AUDIO, agreement)],
                weights,
            )
            assert 0.0 <= result.overall_score <= 1.0
            assert 0.0 <= result.confidence <= 1.0

    def test_monotonic_in_single_score(self, weights):
        """Test that raising one score never lowers the overall score."""
        others = [score("audio", 0.72), score("behavioral", 0.75, 0.6), score("network", 0.1)]
        correlations = [CorrelationPair(Modality.VISUAL, Modality.AUDIO, 0.55)]

        previous = -1.0
        for step in range(101):
            visual = score("visual", step / 100, quality=0.8)
            result = fuse([visual] + others, correlations, weights)
            assert result.overall_score >= previous - 1e-12
            previous = result.overall_score


class TestValidation:
    """Test input rejection."""

    @pytest.fixture
    def weights(self):
        return FusionWeights()

    def test_score_out_of_range(self, weights):
        """Test that a score above 1 is rejected, not clamped."""
        with pytest.raises(ValidationError) as exc_info:
            fuse([{"modality": "visual", "score": 1.5, "quality": 1.0}], [], weights)

        assert exc_info.value.field.endswith("score")
        assert exc_info.value.value == 1.5

    def test_negative_quality(self, weights):
        """Test that negative quality is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            fuse([score("audio", 0.5, quality=-0.1)], [], weights)

        assert exc_info.value.field == "scores[0].quality"

    def test_non_finite_score(self, weights):
        """Test that NaN never reaches the arithmetic."""
        with pytest.raises(ValidationError) as exc_info:
            fuse([score("audio", float("nan"))], [], weights)

        assert exc_info.value.field.endswith("score")

    def test_unknown_modality(self, weights):
        """Test that unknown modality names are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            fuse([{"modality": "lidar", "score": 0.5}], [], weights)

        assert exc_info.value.field == "scores[0].modality"

    def test_duplicate_modality(self, weights):
        """Test that two scores for one modality are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            fuse([score("visual", 0.1), score("visual", 0.9)], [], weights)

        assert exc_info.value.field == "scores[1].modality"

    def test_negative_weight(self):
        """Test that negative weights are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            fuse([score("visual", 0.5)], [], {"visual": -0.1, "audio": 1.0})

        assert exc_info.value.field == "weights.visual"

    def test_invalid_correlation_agreement(self, weights):
        """Test that agreement must lie in [0, 1]."""
        with pytest.raises(ValidationError) as exc_info:
            fuse(
                [score("visual", 0.5), score("audio", 0.5)],
                [CorrelationPair(Modality.VISUAL, Modality.AUDIO, agreement=1.2)],
                weights,
            )

        assert exc_info.value.field == "correlations[0].agreement"

    def test_bad_input_reported_even_when_empty_after_filtering(self, weights):
        """Test that validation runs before zero-quality filtering."""
        with pytest.raises(ValidationError):
            fuse([score("visual", 0.5, quality=0.0)], [{"modality_a": "visual", "modality_b": "x", "agreement": 1}], weights)

    def test_http_status(self):
        """Test that validation errors map to a client error."""
        error = ValidationError("bad", field="scores[0].score", value=2)

        assert error.http_status == 422
        assert error.details["field"] == "scores[0].score"
        assert "scores[0].score" in str(error)


class TestRiskSignalAggregator:
    """Test the aggregator service wrapper."""

    @pytest.fixture
    def registry(self):
        return CollectorRegistry()

    @pytest.fixture
    def metrics(self, registry):
        return FusionMetrics(registry=registry)

    @pytest.fixture
    def bus(self):
        return EventBus()

    @pytest.fixture
    def aggregator(self, metrics, bus):
        return RiskSignalAggregator(WeightStore(), metrics=metrics, event_bus=bus)

    def test_fuse_uses_store_snapshot(self):
        """Test that fusion reads the store's current weights."""
        store = WeightStore(FusionWeights({"visual": 1.0, "audio": 3.0}))
        aggregator = RiskSignalAggregator(store)

        result = aggregator.fuse([score("visual", 1.0), score("audio", 0.0)])

        assert result.base_score == pytest.approx(0.25)

    def test_assess(self, aggregator):
        """Test assessment of a high-risk driver."""
        assessment = aggregator.assess(
            "driver-1024",
            [score("visual", 0.95), score("audio", 0.92), score("network", 0.9)],
            timestamp=FIXED_TIME,
        )

        assert isinstance(assessment, RiskAssessment)
        assert assessment.subject_id == "driver-1024"
        assert assessment.result.verdict == Verdict.FRAUDULENT
        assert "identity_theft_suspected" in assessment.explanation.emergency_flags

        data = assessment.to_dict()
        assert data["subject_id"] == "driver-1024"
        assert data["verdict"] == "fraudulent"
        assert "recommendations" in data["explanation"]

    def test_assess_records_metrics(self, aggregator, registry):
        """Test that successful assessments are counted by verdict."""
        aggregator.assess("passenger-7", [score("textual", 0.2)])
        aggregator.assess("passenger-8", [score("textual", 0.9)])

        assert registry.get_sample_value("opstower_fusions_total", {"verdict": "genuine"}) == 1.0
        assert registry.get_sample_value("opstower_fusions_total", {"verdict": "fraudulent"}) == 1.0

    def test_assess_counts_validation_errors(self, aggregator, registry):
        """Test that rejected input is counted and re-raised."""
        with pytest.raises(ValidationError):
            aggregator.assess("passenger-9", [score("textual", 3.0)])

        assert registry.get_sample_value(
            "opstower_validation_errors_total", {"field": "score"}
        ) == 1.0

    def test_assess_emits_events(self, aggregator, bus):
        """Test completion and threshold events."""
        completed = []
        exceeded = []
        bus.subscribe(FusionCompletedEvent, completed.append)
        bus.subscribe(ThresholdExceededEvent, exceeded.append)

        aggregator.assess("driver-1", [score("behavioral", 0.3)])
        aggregator.assess("driver-2", [score("behavioral", 0.9)], language="Cebuano")

        assert [e.subject_id for e in completed] == ["driver-1", "driver-2"]
        assert completed[1].verdict == "fraudulent"
        assert len(exceeded) == 1
        assert exceeded[0].subject_id == "driver-2"
        assert exceeded[0].threshold == 0.7
        assert "apply_regional_fraud_patterns" in exceeded[0].recommended_actions

    def test_no_events_on_validation_error(self, aggregator, bus):
        """Test that rejected input produces no events."""
        received = []
        bus.subscribe_all(received.append)

        with pytest.raises(ValidationError):
            aggregator.assess("driver-3", [{"modality": "visual", "score": -1}])

        assert received == []


class TestConcurrentSnapshots:
    """Test fusion while weights are being republished."""

    @pytest.fixture(autouse=True)
    def quiet_logs(self):
        logger.disable("opstower")
        yield
        logger.enable("opstower")

    def test_results_match_exactly_one_snapshot(self):
        """Test that concurrent fusions never mix two weight snapshots."""
        old = FusionWeights()
        new = FusionWeights(
            {"visual": 0.05, "audio": 0.05, "behavioral": 0.10, "network": 0.60, "textual": 0.20}
        )
        scores = [
            score("visual", 0.9),
            score("audio", 0.1),
            score("behavioral", 0.5),
            score("network", 0.3),
            score("textual", 0.7),
        ]

        expected_old = fuse(scores, [], old, timestamp=FIXED_TIME)
        expected_new = fuse(scores, [], new, timestamp=FIXED_TIME)
        assert expected_old.overall_score != pytest.approx(expected_new.overall_score)

        store = WeightStore(old)
        aggregator = RiskSignalAggregator(store)
        stop = threading.Event()

        def swap():
            while not stop.is_set():
                store.publish(new)
                store.publish(old)

        swapper = threading.Thread(target=swap)
        swapper.start()
        try:
            with ThreadPoolExecutor(max_workers=16) as pool:
                results = list(
                    pool.map(lambda _: aggregator.fuse(scores, timestamp=FIXED_TIME), range(1000))
                )
        finally:
            stop.set()
            swapper.join()

        allowed = [
            (expected_old.overall_score, expected_old.confidence, expected_old.applied_weights),
            (expected_new.overall_score, expected_new.confidence, expected_new.applied_weights),
        ]
        assert len(results) == 1000
        for result in results:
            assert (result.overall_score, result.confidence, result.applied_weights) in allowed
