"""
Expression Diagnostics — Overlap Classifier Tests

Behavior results are built by hand so each decision branch can be driven
to its boundary independently.
"""

import logging

import pytest

from ..models import (
    BehaviorResult,
    CandidateMetrics,
    GateImplication,
    GateOverlap,
    GateParseInfo,
    GateParseReport,
    GateParseStatus,
    ImplicationRelation,
    IntensityStats,
    NestingDirection,
    OverlapClassification,
    PassRates,
)
from ..overlap_classifier import OverlapClassifier


CANDIDATE = CandidateMetrics(active_axis_overlap=1.0, sign_agreement=1.0, weight_cosine_similarity=0.95)

EQUAL = GateImplication(a_implies_b=True, b_implies_a=True, relation=ImplicationRelation.EQUAL)
A_NARROWER = GateImplication(a_implies_b=True, b_implies_a=False, relation=ImplicationRelation.NARROWER)
B_NARROWER = GateImplication(a_implies_b=False, b_implies_a=True, relation=ImplicationRelation.WIDER)
OVERLAPPING = GateImplication(
    a_implies_b=False, b_implies_a=False, relation=ImplicationRelation.OVERLAPPING,
)


def _report(status=GateParseStatus.COMPLETE):
    return GateParseReport(status=status, total_gates=1, parsed_gates=1)


def _behavior(
    on_either=0.5,
    on_both=0.5,
    correlation=0.99,
    mad=0.01,
    dominance_p=0.1,
    dominance_q=0.1,
    co_pass=0.99,
    p_a_given_b=0.9,
    p_b_given_a=0.9,
    implication=EQUAL,
    parse_status=GateParseStatus.COMPLETE,
):
    return BehaviorResult(
        sample_count=1000,
        gate_overlap=GateOverlap(
            on_either_rate=on_either, on_both_rate=on_both, p_only_rate=0.0, q_only_rate=0.0,
        ),
        intensity=IntensityStats(
            pearson_correlation=correlation,
            mean_abs_diff=mad,
            dominance_p=dominance_p,
            dominance_q=dominance_q,
            co_pass_correlation=co_pass,
        ),
        pass_rates=PassRates(
            pass_rate_a=on_both,
            pass_rate_b=on_both,
            co_pass_rate=on_both,
            co_pass_count=int(on_both * 1000),
            p_a_given_b=p_a_given_b,
            p_b_given_a=p_b_given_a,
        ),
        high_coactivation=(),
        gate_implication=implication,
        gate_parse_info=GateParseInfo(
            prototype_a=_report(parse_status), prototype_b=_report(parse_status),
        ),
    )


@pytest.fixture
def classifier():
    return OverlapClassifier()


# ---------------------------------------------------------------------------
# 1. Classification
# ---------------------------------------------------------------------------

class TestClassify:
    def test_missing_behavior(self, classifier):
        result = classifier.classify(CANDIDATE, None)
        assert result.type is OverlapClassification.NOT_REDUNDANT
        assert result.nesting_direction is None

    def test_merge(self, classifier):
        result = classifier.classify(CANDIDATE, _behavior())
        assert result.type is OverlapClassification.MERGE_RECOMMENDED
        assert result.metrics["gate_overlap_ratio"] == pytest.approx(1.0)
        assert result.metrics["weight_cosine_similarity"] == 0.95
        assert result.thresholds["min_correlation_for_merge"] == 0.98

    def test_merge_boundaries_inclusive(self, classifier):
        """ratio exactly 0.9 and MAD exactly 0.03 still merge."""
        result = classifier.classify(CANDIDATE, _behavior(on_either=0.5, on_both=0.45, mad=0.03))
        assert result.type is OverlapClassification.MERGE_RECOMMENDED

    def test_merge_blocked_by_dominance(self, classifier):
        result = classifier.classify(CANDIDATE, _behavior(dominance_p=0.96))
        assert result.type is OverlapClassification.KEEP_DISTINCT

    def test_merge_blocked_by_rare_activation(self, classifier):
        result = classifier.classify(CANDIDATE, _behavior(on_either=0.04, on_both=0.04))
        assert result.type is OverlapClassification.KEEP_DISTINCT

    def test_deterministic_nesting_beats_merge(self, classifier):
        """One-directional gate implication turns merge-level behavior into nesting."""
        result = classifier.classify(CANDIDATE, _behavior(implication=A_NARROWER))
        assert result.type is OverlapClassification.NESTED_SIBLINGS
        assert result.nesting_direction is NestingDirection.A_CONTAINS_B

    def test_deterministic_nesting_b(self, classifier):
        result = classifier.classify(CANDIDATE, _behavior(implication=B_NARROWER))
        assert result.nesting_direction is NestingDirection.B_CONTAINS_A

    def test_partial_parse_ignores_implication(self, classifier):
        """Implication from partially parsed gates is not trusted."""
        result = classifier.classify(
            CANDIDATE,
            _behavior(implication=A_NARROWER, parse_status=GateParseStatus.PARTIAL),
        )
        assert result.type is OverlapClassification.MERGE_RECOMMENDED

    def test_vacuous_implication_ignored(self, classifier):
        vacuous = GateImplication(
            a_implies_b=True, b_implies_a=False,
            relation=ImplicationRelation.NARROWER, is_vacuous=True,
        )
        result = classifier.classify(CANDIDATE, _behavior(implication=vacuous))
        assert result.type is OverlapClassification.MERGE_RECOMMENDED

    def test_behavioral_nesting(self, classifier):
        behavior = _behavior(on_either=0.5, on_both=0.3, p_b_given_a=0.99, p_a_given_b=0.6)
        result = classifier.classify(CANDIDATE, behavior)
        assert result.type is OverlapClassification.NESTED_SIBLINGS
        assert result.nesting_direction is NestingDirection.A_CONTAINS_B

    def test_nesting_needs_co_pass_correlation(self, classifier):
        behavior = _behavior(
            on_either=0.5, on_both=0.3, p_b_given_a=0.99, p_a_given_b=0.6, co_pass=0.3,
        )
        assert classifier.classify(CANDIDATE, behavior).type is OverlapClassification.KEEP_DISTINCT

    def test_separation(self, classifier):
        behavior = _behavior(
            on_either=0.5, on_both=0.4, correlation=0.9, mad=0.1,
            p_a_given_b=0.85, p_b_given_a=0.85, implication=OVERLAPPING,
        )
        assert classifier.classify(CANDIDATE, behavior).type is OverlapClassification.NEEDS_SEPARATION

    def test_negligible_co_activation(self, classifier):
        behavior = _behavior(on_either=0.3, on_both=0.005, correlation=0.2, mad=0.2,
                             implication=OVERLAPPING)
        assert classifier.classify(CANDIDATE, behavior).type is OverlapClassification.NOT_REDUNDANT

    def test_never_active(self, classifier):
        behavior = _behavior(on_either=0.0, on_both=0.0, correlation=None, mad=None, co_pass=None,
                             p_a_given_b=None, p_b_given_a=None, implication=OVERLAPPING)
        assert classifier.classify(CANDIDATE, behavior).type is OverlapClassification.NOT_REDUNDANT

    def test_classification_logged(self, caplog):
        classifier = OverlapClassifier(logger=logging.getLogger("test.classifier"))
        with caplog.at_level(logging.DEBUG, logger="test.classifier"):
            classifier.classify(CANDIDATE, _behavior())
        assert "Classified as MERGE_RECOMMENDED" in caplog.text


# ---------------------------------------------------------------------------
# 2. Near misses
# ---------------------------------------------------------------------------

class TestNearMiss:
    def test_gate_overlap_near_miss(self, classifier):
        behavior = _behavior(on_either=0.5, on_both=0.4, correlation=0.5, implication=OVERLAPPING)
        result = classifier.check_near_miss(CANDIDATE, behavior)
        assert result.is_near_miss
        assert "gate overlap 0.800" in result.reason
        assert result.threshold_proximity["gate_overlap_ratio"]["met"] is False

    def test_correlation_near_miss(self, classifier):
        behavior = _behavior(correlation=0.95)
        result = classifier.check_near_miss(CANDIDATE, behavior)
        assert result.is_near_miss
        assert "correlation 0.950" in result.reason

    def test_far_from_thresholds(self, classifier):
        behavior = _behavior(on_either=0.5, on_both=0.15, correlation=0.3)
        assert not classifier.check_near_miss(CANDIDATE, behavior).is_near_miss

    def test_rare_pair_not_near_miss(self, classifier):
        behavior = _behavior(on_either=0.01, on_both=0.008, correlation=0.95)
        assert not classifier.check_near_miss(CANDIDATE, behavior).is_near_miss

    def test_missing_behavior(self, classifier):
        assert not classifier.check_near_miss(CANDIDATE, None).is_near_miss
