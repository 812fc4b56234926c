"""
Expression Diagnostics — Prototype Overlap Analyzer Tests

End-to-end runs of the default pipeline over a deterministic corpus:
    - threat sweeps 0..100, valence a scrambled permutation, arousal fixed
    - narrow_joy gated to threat [0.25, 0.75], broad_joy to [0.0, 1.0]
"""

import pytest

from .. import analyze_prototype_overlap
from ..behavioral_overlap_evaluator import BehavioralOverlapEvaluator
from ..candidate_pair_filter import CandidatePairFilter
from ..gate_banding import GateBandingSuggestionBuilder
from ..intensity_engine import WeightedIntensityCalculator
from ..models import (
    ClassificationResult,
    NestingDirection,
    OverlapClassification,
    Prototype,
    SuggestionType,
)
from ..overlap_classifier import OverlapClassifier
from ..ports.registry import PrototypeRegistryPort
from ..prototype_overlap_analyzer import PrototypeOverlapAnalyzer
from ..recommendation_builder import OverlapRecommendationBuilder


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeRegistry(PrototypeRegistryPort):
    def __init__(self, prototypes):
        self.prototypes = list(prototypes)

    def get_all_prototypes(self):
        return list(self.prototypes)

    def get_prototypes_by_type(self, prototype_type):
        return [p for p in self.prototypes if p.type == prototype_type]


class SpyBandingBuilder(GateBandingSuggestionBuilder):
    def __init__(self):
        super().__init__()
        self.calls = []

    def build_suggestions(self, classification, gate_implication, prototype_a_id, prototype_b_id):
        self.calls.append((classification.type, prototype_a_id, prototype_b_id))
        return super().build_suggestions(
            classification, gate_implication, prototype_a_id, prototype_b_id,
        )


class KeepDistinctClassifier(OverlapClassifier):
    def classify(self, candidate_metrics, behavior):
        return ClassificationResult(
            type=OverlapClassification.KEEP_DISTINCT,
            thresholds=self.thresholds(),
            metrics=self.extract_metrics(candidate_metrics, behavior),
        )


JOY_WEIGHTS = {"valence": 0.8, "arousal": 0.2}

NARROW = Prototype(id="narrow_joy", weights=JOY_WEIGHTS, gates=("threat >= 0.25", "threat <= 0.75"))
BROAD = Prototype(id="broad_joy", weights=JOY_WEIGHTS, gates=("threat >= 0.0", "threat <= 1.0"))
FEAR = Prototype(id="fear", weights={"threat": 1.0})
TWIN_A = Prototype(id="twin_a", weights=JOY_WEIGHTS)
TWIN_B = Prototype(id="twin_b", weights=JOY_WEIGHTS)


@pytest.fixture
def contexts():
    return [
        {"moodAxes": {"threat": i, "valence": (i * 37) % 101, "arousal": 50}}
        for i in range(101)
    ]


def _analyzer(registry, banding_builder=None, classifier=None):
    return PrototypeOverlapAnalyzer(
        prototype_registry=registry,
        candidate_filter=CandidatePairFilter(),
        behavioral_evaluator=BehavioralOverlapEvaluator(WeightedIntensityCalculator()),
        classifier=classifier or OverlapClassifier(),
        banding_builder=banding_builder or GateBandingSuggestionBuilder(),
        recommendation_builder=OverlapRecommendationBuilder(),
    )


# ---------------------------------------------------------------------------
# 1. End to end
# ---------------------------------------------------------------------------

class TestNestedPipeline:
    def test_nested_pair_gets_gate_band(self, contexts):
        registry = FakeRegistry([NARROW, BROAD, FEAR])
        report = PrototypeOverlapAnalyzer.create(registry).analyze(contexts)

        assert len(report.recommendations) == 1
        rec = report.recommendations[0]
        assert rec.classification is OverlapClassification.NESTED_SIBLINGS
        assert rec.nesting_direction is NestingDirection.A_CONTAINS_B
        assert rec.type == "prototype_nesting_suggestion"
        assert rec.severity == pytest.approx(1.0)

        assert len(rec.suggested_gate_bands) == 1
        band = rec.suggested_gate_bands[0]
        assert band.type is SuggestionType.GATE_BAND
        assert band.affected_prototype == "broad_joy"
        assert band.suggested_gate == "threat < 0.25"

    def test_metadata(self, contexts):
        registry = FakeRegistry([NARROW, BROAD, FEAR])
        meta = PrototypeOverlapAnalyzer.create(registry).analyze(contexts).metadata

        assert meta["prototype_family"] == "all"
        assert meta["total_prototypes"] == 3
        assert meta["candidate_pairs_found"] == 1
        assert meta["candidate_pairs_evaluated"] == 1
        assert meta["redundant_pairs_found"] == 1
        assert meta["filtering_stats"]["rejected_by_active_axis_overlap"] == 2
        assert set(meta["classification_breakdown"]) == {c.value for c in OverlapClassification}
        assert meta["classification_breakdown"]["nested_siblings"] == 1
        insight = meta["summary_insight"]
        assert insight["status"] == "redundant_found"
        assert insight["closest_pair"]["prototype_a"] == "narrow_joy"


# ---------------------------------------------------------------------------
# 2. Banding is only requested where it applies
# ---------------------------------------------------------------------------

class TestBandingGuard:
    def test_merge_never_requests_bands(self, contexts):
        spy = SpyBandingBuilder()
        report = _analyzer(FakeRegistry([TWIN_A, TWIN_B]), banding_builder=spy).analyze(contexts)

        rec = report.recommendations[0]
        assert rec.classification is OverlapClassification.MERGE_RECOMMENDED
        assert rec.suggested_gate_bands == ()
        assert spy.calls == []

    def test_keep_distinct_never_requests_bands(self, contexts):
        spy = SpyBandingBuilder()
        analyzer = _analyzer(
            FakeRegistry([TWIN_A, TWIN_B]), banding_builder=spy, classifier=KeepDistinctClassifier(),
        )
        report = analyzer.analyze(contexts)

        assert report.recommendations == []
        assert spy.calls == []
        assert report.metadata["classification_breakdown"]["keep_distinct"] == 1
        assert report.metadata["summary_insight"]["status"] == "well_differentiated"

    def test_nested_requests_bands_once(self, contexts):
        spy = SpyBandingBuilder()
        _analyzer(FakeRegistry([NARROW, BROAD]), banding_builder=spy).analyze(contexts)
        assert spy.calls == [(OverlapClassification.NESTED_SIBLINGS, "narrow_joy", "broad_joy")]


# ---------------------------------------------------------------------------
# 3. Edges and wiring
# ---------------------------------------------------------------------------

class TestAnalyzerEdges:
    def test_too_few_prototypes(self, contexts):
        report = _analyzer(FakeRegistry([TWIN_A])).analyze(contexts)
        assert report.recommendations == []
        assert report.near_misses == []
        assert report.metadata["total_prototypes"] == 1
        assert report.metadata["summary_insight"]["status"] == "no_candidates"

    def test_family_filter(self, contexts):
        lust = Prototype(id="lust", type="sexual", weights={"sexual_arousal": 1.0})
        registry = FakeRegistry([TWIN_A, TWIN_B, lust])
        report = _analyzer(registry).analyze(contexts, prototype_family="sexual")
        assert report.metadata["prototype_family"] == "sexual"
        assert report.metadata["total_prototypes"] == 1

    def test_progress_callback(self, contexts):
        calls = []
        _analyzer(FakeRegistry([TWIN_A, TWIN_B])).analyze(
            contexts, on_progress=lambda stage, done, total: calls.append((stage, done, total)),
        )
        assert calls == [("filtering", 0, 1), ("filtering", 1, 1), ("evaluating", 1, 1)]

    def test_convenience_function(self, contexts):
        report = analyze_prototype_overlap(FakeRegistry([TWIN_A, TWIN_B]), contexts)
        assert report.recommendations[0].type == "prototype_merge_suggestion"

    def test_registry_required(self):
        with pytest.raises(ValueError, match="requires prototype_registry"):
            _analyzer(None)

    def test_registry_type_checked(self):
        with pytest.raises(TypeError, match="PrototypeRegistryPort"):
            _analyzer(object())
