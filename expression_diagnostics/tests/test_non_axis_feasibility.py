"""
Expression Diagnostics — Non-Axis Clause Feasibility Tests

Covers:
    - Classification boundaries (RARE ceiling, UNOBSERVED vs UNREACHABLE)
    - Extremum / margin / p95 per operator direction
    - Delta clauses, skipped contexts, empty corpora
    - Clause id stability and extractor wiring
"""

import logging

import pytest

from .. import analyze_clause_feasibility
from ..config import FeasibilityConfig
from ..models import (
    ClauseSignal,
    ComparisonOperator,
    FeasibilityClassification,
    NonAxisClause,
)
from ..non_axis_feasibility import (
    NonAxisFeasibilityAnalyzer,
    make_clause_id,
    previous_path,
)
from ..ports.clauses import ClauseExtractorPort


def _joy(values):
    return [{"emotions": {"joy": v}} for v in values]


def _clause(op, threshold, **kwargs):
    return NonAxisClause(var_path="emotions.joy", operator=op, threshold=threshold, **kwargs)


class FakeExtractor(ClauseExtractorPort):
    def extract(self, expression):
        return [_clause(">=", t) for t in expression["thresholds"]]


@pytest.fixture
def analyzer():
    return NonAxisFeasibilityAnalyzer()


# ---------------------------------------------------------------------------
# 1. Classification
# ---------------------------------------------------------------------------

class TestClassification:
    def test_rare_at_ceiling(self, analyzer):
        """5 passes in 10,000 sits exactly on the rare ceiling."""
        contexts = _joy([0.95] * 5 + [0.1] * 9995)
        result = analyzer.analyze_clause(_clause(">", 0.9), contexts)

        assert result.classification is FeasibilityClassification.RARE
        assert result.pass_rate == 0.0005
        assert result.sample_count == 10000
        assert result.max_value == 0.95
        assert result.min_value is None
        assert result.margin_max == pytest.approx(0.05)
        assert result.p95_value == pytest.approx(0.1)
        assert result.evidence.sample_index == 0
        assert "rarely met" in result.evidence.note

    def test_unobserved_when_max_equals_strict_threshold(self, analyzer):
        result = analyzer.analyze_clause(_clause(">", 0.5), _joy([0.1, 0.3, 0.5]))
        assert result.classification is FeasibilityClassification.UNOBSERVED
        assert result.pass_rate == 0.0
        assert result.margin_max == 0.0

    def test_unreachable_lower_bound(self, analyzer):
        result = analyzer.analyze_clause(_clause(">=", 0.5), _joy([0.1, 0.4, 0.2]))
        assert result.classification is FeasibilityClassification.EMPIRICALLY_UNREACHABLE
        assert result.max_value == 0.4
        assert result.margin_max == pytest.approx(-0.1)
        assert result.evidence.sample_index == 1

    def test_unreachable_upper_bound(self, analyzer):
        result = analyzer.analyze_clause(_clause("<=", 0.1), _joy([0.3, 0.2, 0.5]))
        assert result.classification is FeasibilityClassification.EMPIRICALLY_UNREACHABLE
        assert result.min_value == 0.2
        assert result.max_value is None
        assert result.evidence.sample_index == 1

    def test_ok(self, analyzer):
        result = analyzer.analyze_clause(_clause(">=", 0.5), _joy([0.2, 0.6, 0.8]))
        assert result.classification is FeasibilityClassification.OK
        assert result.pass_rate == pytest.approx(2 / 3)
        assert result.max_value == 0.8
        assert result.evidence.sample_index == 2
        assert result.population == "in_regime"
        assert result.signal is ClauseSignal.FINAL

    def test_configurable_rare_ceiling(self):
        analyzer = NonAxisFeasibilityAnalyzer(config=FeasibilityConfig(rare_pass_rate_ceiling=0.5))
        result = analyzer.analyze_clause(_clause(">=", 0.5), _joy([0.2, 0.6, 0.1]))
        assert result.classification is FeasibilityClassification.RARE


# ---------------------------------------------------------------------------
# 2. Corpus handling
# ---------------------------------------------------------------------------

class TestCorpus:
    @pytest.mark.parametrize("contexts", [None, [], "not a corpus"])
    def test_unknown_without_corpus(self, analyzer, contexts):
        result = analyzer.analyze_clause(_clause(">=", 0.5), contexts)
        assert result.classification is FeasibilityClassification.UNKNOWN
        assert result.pass_rate is None
        assert result.max_value is None
        assert result.p95_value is None
        assert result.margin_max is None
        assert result.sample_count == 0

    def test_unknown_when_path_never_present(self, analyzer):
        result = analyzer.analyze_clause(_clause(">=", 0.5), [{"emotions": {}}, {"moodAxes": {}}])
        assert result.classification is FeasibilityClassification.UNKNOWN

    def test_non_numeric_values_skipped(self, analyzer):
        contexts = [
            {"emotions": {"joy": 0.6}},
            {"emotions": {}},
            {"emotions": {"joy": "high"}},
            {"emotions": {"joy": True}},
            {"emotions": {"joy": float("nan")}},
        ]
        result = analyzer.analyze_clause(_clause(">=", 0.5), contexts)
        assert result.sample_count == 1
        assert result.pass_rate == 1.0

    def test_delta_clause(self, analyzer):
        contexts = [
            {"emotions": {"joy": 0.8}, "previousEmotions": {"joy": 0.3}},
            {"emotions": {"joy": 0.5}, "previousEmotions": {"joy": 0.45}},
            {"emotions": {"joy": 0.9}},
        ]
        result = analyzer.analyze_clause(_clause(">=", 0.4, is_delta=True), contexts)
        assert result.signal is ClauseSignal.DELTA
        assert result.sample_count == 2
        assert result.pass_rate == 0.5
        assert result.max_value == pytest.approx(0.5)

    def test_previous_path(self):
        assert previous_path("emotions.joy") == "previousEmotions.joy"
        assert previous_path("moodAxes.valence") == "previousMoodAxes.valence"


# ---------------------------------------------------------------------------
# 3. Identity and wiring
# ---------------------------------------------------------------------------

class TestIdentity:
    def test_clause_id_stable(self):
        a = _clause(">=", 0.5, source_path="prerequisites[0]")
        b = _clause(ComparisonOperator.GTE, 0.5, source_path="prerequisites[0]")
        assert make_clause_id(a) == make_clause_id(b)
        assert len(make_clause_id(a)) == 16

    def test_clause_id_distinguishes_threshold(self):
        assert make_clause_id(_clause(">=", 0.5)) != make_clause_id(_clause(">=", 0.6))

    def test_int_and_float_threshold_same_id(self):
        assert make_clause_id(_clause(">=", 1)) == make_clause_id(_clause(">=", 1.0))

    def test_analyze_keeps_order_and_drops_junk(self, analyzer):
        clauses = [_clause(">=", 0.5), "junk", _clause("<", 0.5)]
        results = analyzer.analyze(clauses, _joy([0.2, 0.6]))
        assert [r.operator for r in results] == [ComparisonOperator.GTE, ComparisonOperator.LT]

    def test_analyze_expression_without_extractor(self, analyzer, caplog):
        """No extractor: empty result and a warning, never an exception."""
        with caplog.at_level(logging.WARNING):
            results = analyzer.analyze_expression({"thresholds": [0.5]}, _joy([0.6]))
        assert results == []
        assert "no clause_extractor" in caplog.text

    def test_analyze_expression(self):
        analyzer = NonAxisFeasibilityAnalyzer(clause_extractor=FakeExtractor())
        results = analyzer.analyze_expression({"thresholds": [0.5, 0.9]}, _joy([0.6, 0.7]))
        assert [r.classification for r in results] == [
            FeasibilityClassification.OK,
            FeasibilityClassification.EMPIRICALLY_UNREACHABLE,
        ]
        assert analyzer.analyze_expression(None, _joy([0.6])) == []

    def test_extractor_type_checked(self):
        with pytest.raises(TypeError, match="ClauseExtractorPort"):
            NonAxisFeasibilityAnalyzer(clause_extractor=object())

    def test_convenience_function(self):
        results = analyze_clause_feasibility([_clause(">=", 0.5)], _joy([0.6]))
        assert results[0].classification is FeasibilityClassification.OK
