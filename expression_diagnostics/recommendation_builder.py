"""
Expression Diagnostics — Overlap Recommendation Builder

Assembles one Recommendation per actionable pair.

Severity (clamped to [0, 1]):
    merge_recommended   (correlation + gate_overlap_ratio) / 2 - mean_abs_diff
    nested_siblings     (P(broader | narrower) + co_pass_correlation) / 2
    needs_separation    (gate_overlap_ratio + correlation) / 2
    other               weight_cosine_similarity * 0.3

Confidence, piecewise linear in on_either_rate r:
    r >= 0.20        0.9 .. 1.0
    0.10 <= r < 0.20 0.7 .. 0.9
    0.05 <= r < 0.10 0.5 .. 0.7
    r < 0.05         0.3 .. 0.5
"""

from typing import Any, Dict, List, Optional, Sequence

from .config import OverlapConfig
from .models import (
    BehaviorResult,
    CandidateMetrics,
    ClassificationResult,
    DivergenceExample,
    GateBandSuggestion,
    NestingDirection,
    OverlapClassification,
    Prototype,
    Recommendation,
)
from .ports.checks import LoggerLike, resolve_logger

RECOMMENDATION_TYPES = {
    OverlapClassification.MERGE_RECOMMENDED: "prototype_merge_suggestion",
    OverlapClassification.NESTED_SIBLINGS: "prototype_nesting_suggestion",
    OverlapClassification.NEEDS_SEPARATION: "prototype_separation_suggestion",
}
INFO_TYPE = "prototype_overlap_info"


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _or_zero(value: Optional[float]) -> float:
    return 0.0 if value is None else value


class OverlapRecommendationBuilder:

    def __init__(self, config: Optional[OverlapConfig] = None, logger: Optional[LoggerLike] = None):
        self.config = config or OverlapConfig()
        self.logger = resolve_logger(logger, "OverlapRecommendationBuilder")

    # -----------------------------------------------------------------
    # Scores
    # -----------------------------------------------------------------

    def compute_severity(self, classification: ClassificationResult) -> float:
        m = classification.metrics
        kind = classification.type
        corr = _or_zero(m.get("pearson_correlation"))
        ratio = _or_zero(m.get("gate_overlap_ratio"))

        if kind is OverlapClassification.MERGE_RECOMMENDED:
            score = (corr + ratio) / 2 - _or_zero(m.get("mean_abs_diff"))
        elif kind is OverlapClassification.NESTED_SIBLINGS:
            if classification.nesting_direction is NestingDirection.A_CONTAINS_B:
                conditional = m.get("p_b_given_a")
            else:
                conditional = m.get("p_a_given_b")
            score = (_or_zero(conditional) + _or_zero(m.get("co_pass_correlation"))) / 2
        elif kind is OverlapClassification.NEEDS_SEPARATION:
            score = (ratio + corr) / 2
        else:
            score = _or_zero(m.get("weight_cosine_similarity")) * 0.3
        return _clamp01(score)

    @staticmethod
    def compute_confidence(on_either_rate: Optional[float]) -> float:
        r = max(0.0, _or_zero(on_either_rate))
        if r >= 0.2:
            return 0.9 + 0.1 * min(1.0, (r - 0.2) / 0.8)
        if r >= 0.1:
            return 0.7 + 0.2 * (r - 0.1) / 0.1
        if r >= 0.05:
            return 0.5 + 0.2 * (r - 0.05) / 0.05
        return 0.3 + 0.2 * r / 0.05

    # -----------------------------------------------------------------
    # Evidence
    # -----------------------------------------------------------------

    def _weight_evidence(self, a: Prototype, b: Prototype) -> Dict[str, List[Dict[str, Any]]]:
        eps = self.config.active_axis_epsilon
        shared = []
        differentiators = []
        axes = list(a.weights) + [x for x in b.weights if x not in a.weights]
        for axis in axes:
            wa = a.weights.get(axis, 0.0)
            wb = b.weights.get(axis, 0.0)
            active_a = abs(wa) >= eps
            active_b = abs(wb) >= eps
            if active_a and active_b:
                if (wa > 0) == (wb > 0):
                    shared.append({"axis": axis, "weight_a": wa, "weight_b": wb})
                else:
                    differentiators.append({
                        "axis": axis, "weight_a": wa, "weight_b": wb, "reason": "opposite_sign",
                    })
            elif active_a:
                differentiators.append({
                    "axis": axis, "weight_a": wa, "weight_b": wb, "reason": "only_in_A",
                })
            elif active_b:
                differentiators.append({
                    "axis": axis, "weight_a": wa, "weight_b": wb, "reason": "only_in_B",
                })
        shared.sort(key=lambda d: -(abs(d["weight_a"]) + abs(d["weight_b"])))
        return {"shared_drivers": shared, "key_differentiators": differentiators}

    @staticmethod
    def _actions(
        a_id: str, b_id: str, classification: ClassificationResult, has_bands: bool
    ) -> List[str]:
        kind = classification.type
        if kind is OverlapClassification.MERGE_RECOMMENDED:
            return [
                f"Consider merging {a_id} and {b_id} into a single prototype.",
                "Alias the retired prototype to the survivor so existing expressions keep resolving.",
            ]
        if kind is OverlapClassification.NESTED_SIBLINGS:
            if classification.nesting_direction is NestingDirection.A_CONTAINS_B:
                narrower, broader = a_id, b_id
            else:
                narrower, broader = b_id, a_id
            return [
                f"{narrower} only fires inside {broader}'s active region; keep both only if "
                f"{narrower} is meant as a specialization of {broader}.",
                f"Band {broader}'s gates so the two prototypes cover separate regions."
                if has_bands else
                f"Tighten {broader}'s gates or fold {narrower} into it.",
            ]
        if kind is OverlapClassification.NEEDS_SEPARATION:
            return [
                f"Differentiate {a_id} and {b_id}: they co-fire heavily but their intensities diverge.",
                "Apply the suggested gate bands or mutual-exclusion rule.",
            ]
        return ["No action needed; the prototypes are behaviorally distinct."]

    # -----------------------------------------------------------------
    # Public
    # -----------------------------------------------------------------

    def build(
        self,
        prototype_a: Prototype,
        prototype_b: Prototype,
        classification: ClassificationResult,
        candidate_metrics: CandidateMetrics,
        behavior_summary: Optional[BehaviorResult],
        divergence_examples: Sequence[DivergenceExample] = (),
        banding_suggestions: Sequence[GateBandSuggestion] = (),
        family: str = "emotion",
    ) -> Recommendation:
        bands = tuple(banding_suggestions or ())
        metrics = dict(classification.metrics)
        evidence: Dict[str, Any] = self._weight_evidence(prototype_a, prototype_b)
        evidence["divergence_examples"] = list(divergence_examples or ())

        if behavior_summary is not None:
            implication = behavior_summary.gate_implication
            evidence["gate_implication"] = implication
            evidence["implication_relation"] = implication.relation.value if implication else None
            evidence["high_coactivation"] = list(behavior_summary.high_coactivation)
            evidence["pass_rates"] = behavior_summary.pass_rates

        recommendation = Recommendation(
            type=RECOMMENDATION_TYPES.get(classification.type, INFO_TYPE),
            classification=classification.type,
            prototype_family=family,
            prototype_a=prototype_a.id,
            prototype_b=prototype_b.id,
            severity=self.compute_severity(classification),
            confidence=self.compute_confidence(metrics.get("on_either_rate")),
            actions=tuple(self._actions(prototype_a.id, prototype_b.id, classification, bool(bands))),
            candidate_metrics=candidate_metrics,
            behavior_metrics=metrics,
            evidence=evidence,
            suggested_gate_bands=bands,
            nesting_direction=classification.nesting_direction,
        )
        self.logger.debug(
            f"OverlapRecommendationBuilder: {recommendation.type} for "
            f"{prototype_a.id} / {prototype_b.id} - severity={recommendation.severity:.3f}, "
            f"confidence={recommendation.confidence:.3f}"
        )
        return recommendation
