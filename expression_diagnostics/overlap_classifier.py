"""
Expression Diagnostics — Overlap Classifier

Pure mapping from candidate metrics + behavior result to one classification.
Decision order, first match wins:

    1. merge_recommended  live pair, gate overlap ratio, correlation and MAD all
                          at merge level, neither side dominates, and no
                          one-directional gate implication
    2. nested_siblings    one-directional implication (deterministic from gate
                          intervals when both parse cleanly, else behavioral
                          from P(B|A) / P(A|B)) with co-pass correlation at
                          least min_correlation_for_nesting
    3. needs_separation   heavy co-occurrence, no nesting, high correlation,
                          intensities still differ (MAD above merge level)
    4. not_redundant      no behavior result, or co-activation negligible
    5. keep_distinct      everything else

gate_overlap_ratio = on_both_rate / on_either_rate   (on_either = 0 → 0)
"""

from typing import Any, Dict, Optional

from .config import OverlapConfig
from .models import (
    BehaviorResult,
    CandidateMetrics,
    ClassificationResult,
    GateParseStatus,
    NearMissResult,
    NestingDirection,
    OverlapClassification,
)
from .ports.checks import LoggerLike, resolve_logger


def _fmt(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.4f}"


class OverlapClassifier:

    def __init__(self, config: Optional[OverlapConfig] = None, logger: Optional[LoggerLike] = None):
        self.config = config or OverlapConfig()
        self.logger = resolve_logger(logger, "OverlapClassifier")

    def thresholds(self) -> Dict[str, float]:
        cfg = self.config
        return {
            "min_on_either_rate_for_merge": cfg.min_on_either_rate_for_merge,
            "min_gate_overlap_ratio": cfg.min_gate_overlap_ratio,
            "min_correlation_for_merge": cfg.min_correlation_for_merge,
            "max_mean_abs_diff_for_merge": cfg.max_mean_abs_diff_for_merge,
            "min_dominance_for_subsumption": cfg.min_dominance_for_subsumption,
            "nested_conditional_threshold": cfg.nested_conditional_threshold,
            "min_correlation_for_nesting": cfg.min_correlation_for_nesting,
            "separation_min_gate_overlap_ratio": cfg.separation_min_gate_overlap_ratio,
            "separation_min_correlation": cfg.separation_min_correlation,
            "negligible_on_both_rate": cfg.negligible_on_both_rate,
        }

    @staticmethod
    def extract_metrics(
        candidate_metrics: Optional[CandidateMetrics], behavior: Optional[BehaviorResult]
    ) -> Dict[str, Any]:
        """Flatten Stage A and Stage B metrics into one mapping."""
        metrics: Dict[str, Any] = {
            "active_axis_overlap": candidate_metrics.active_axis_overlap if candidate_metrics else 0.0,
            "sign_agreement": candidate_metrics.sign_agreement if candidate_metrics else 0.0,
            "weight_cosine_similarity": (
                candidate_metrics.weight_cosine_similarity if candidate_metrics else 0.0
            ),
        }
        if behavior is None:
            return metrics
        go = behavior.gate_overlap
        it = behavior.intensity
        pr = behavior.pass_rates
        metrics.update({
            "sample_count": behavior.sample_count,
            "on_either_rate": go.on_either_rate,
            "on_both_rate": go.on_both_rate,
            "p_only_rate": go.p_only_rate,
            "q_only_rate": go.q_only_rate,
            "gate_overlap_ratio": behavior.gate_overlap_ratio,
            "pearson_correlation": it.pearson_correlation,
            "mean_abs_diff": it.mean_abs_diff,
            "dominance_p": it.dominance_p,
            "dominance_q": it.dominance_q,
            "co_pass_correlation": it.co_pass_correlation,
            "global_mean_abs_diff": it.global_mean_abs_diff,
            "global_l2_distance": it.global_l2_distance,
            "global_output_correlation": it.global_output_correlation,
            "p_a_given_b": pr.p_a_given_b,
            "p_b_given_a": pr.p_b_given_a,
        })
        return metrics

    # -----------------------------------------------------------------
    # Criteria
    # -----------------------------------------------------------------

    @staticmethod
    def _deterministic_narrower(behavior: BehaviorResult) -> Optional[str]:
        """'a' or 'b' when gate intervals prove one-directional implication."""
        implication = behavior.gate_implication
        info = behavior.gate_parse_info
        if implication is None or info is None or implication.is_vacuous:
            return None
        if (info.prototype_a.status is not GateParseStatus.COMPLETE
                or info.prototype_b.status is not GateParseStatus.COMPLETE):
            return None
        if implication.a_implies_b == implication.b_implies_a:
            return None
        return "a" if implication.a_implies_b else "b"

    def _behavioral_narrower(self, metrics: Dict[str, Any]) -> Optional[str]:
        p_a_given_b = metrics.get("p_a_given_b")
        p_b_given_a = metrics.get("p_b_given_a")
        if p_a_given_b is None or p_b_given_a is None:
            return None
        t = self.config.nested_conditional_threshold
        if p_b_given_a >= t and p_a_given_b < t:
            return "a"
        if p_a_given_b >= t and p_b_given_a < t:
            return "b"
        return None

    def _is_merge(self, metrics: Dict[str, Any], behavior: BehaviorResult) -> bool:
        cfg = self.config
        corr = metrics["pearson_correlation"]
        mad = metrics["mean_abs_diff"]
        if metrics["on_either_rate"] < cfg.min_on_either_rate_for_merge:
            return False
        if metrics["gate_overlap_ratio"] < cfg.min_gate_overlap_ratio:
            return False
        if corr is None or corr < cfg.min_correlation_for_merge:
            return False
        if mad is None or mad > cfg.max_mean_abs_diff_for_merge:
            return False
        if (metrics["dominance_p"] >= cfg.min_dominance_for_subsumption
                or metrics["dominance_q"] >= cfg.min_dominance_for_subsumption):
            return False
        return self._deterministic_narrower(behavior) is None

    def _nesting(self, metrics: Dict[str, Any], behavior: BehaviorResult) -> Optional[NestingDirection]:
        narrower = self._deterministic_narrower(behavior) or self._behavioral_narrower(metrics)
        if narrower is None:
            return None
        corr = metrics["co_pass_correlation"]
        if corr is None or corr < self.config.min_correlation_for_nesting:
            return None
        return NestingDirection.A_CONTAINS_B if narrower == "a" else NestingDirection.B_CONTAINS_A

    def _is_separation(self, metrics: Dict[str, Any]) -> bool:
        cfg = self.config
        if metrics["gate_overlap_ratio"] < cfg.separation_min_gate_overlap_ratio:
            return False
        p_a_given_b = metrics.get("p_a_given_b")
        p_b_given_a = metrics.get("p_b_given_a")
        if p_a_given_b is not None and p_b_given_a is not None:
            t = cfg.nested_conditional_threshold
            if p_a_given_b >= t or p_b_given_a >= t:
                return False
        corr = metrics["pearson_correlation"]
        if corr is None or corr < cfg.separation_min_correlation:
            return False
        mad = metrics["mean_abs_diff"]
        return mad is not None and mad > cfg.max_mean_abs_diff_for_merge

    # -----------------------------------------------------------------
    # Public
    # -----------------------------------------------------------------

    def classify(
        self, candidate_metrics: Optional[CandidateMetrics], behavior: Optional[BehaviorResult]
    ) -> ClassificationResult:
        metrics = self.extract_metrics(candidate_metrics, behavior)
        thresholds = self.thresholds()

        if behavior is None:
            return self._result(OverlapClassification.NOT_REDUNDANT, thresholds, metrics)

        if self._is_merge(metrics, behavior):
            return self._result(OverlapClassification.MERGE_RECOMMENDED, thresholds, metrics)

        direction = self._nesting(metrics, behavior)
        if direction is not None:
            return self._result(OverlapClassification.NESTED_SIBLINGS, thresholds, metrics, direction)

        if self._is_separation(metrics):
            return self._result(OverlapClassification.NEEDS_SEPARATION, thresholds, metrics)

        if (metrics["on_either_rate"] == 0
                or metrics["on_both_rate"] < self.config.negligible_on_both_rate):
            return self._result(OverlapClassification.NOT_REDUNDANT, thresholds, metrics)

        return self._result(OverlapClassification.KEEP_DISTINCT, thresholds, metrics)

    def _result(
        self,
        kind: OverlapClassification,
        thresholds: Dict[str, float],
        metrics: Dict[str, Any],
        direction: Optional[NestingDirection] = None,
    ) -> ClassificationResult:
        summary = (
            f"gate_overlap_ratio={_fmt(metrics.get('gate_overlap_ratio'))}, "
            f"correlation={_fmt(metrics.get('pearson_correlation'))}, "
            f"mean_abs_diff={_fmt(metrics.get('mean_abs_diff'))}"
        )
        if direction is not None:
            summary += f", direction={direction.value}"
        self.logger.debug(f"OverlapClassifier: Classified as {kind.value.upper()} - {summary}")
        return ClassificationResult(
            type=kind, thresholds=thresholds, metrics=metrics, nesting_direction=direction,
        )

    def check_near_miss(
        self, candidate_metrics: Optional[CandidateMetrics], behavior: Optional[BehaviorResult]
    ) -> NearMissResult:
        """
        Pairs close to the merge thresholds without meeting them.

        Near miss: live pair (on_either above the merge floor) whose correlation
        or gate overlap ratio sits between its near-miss and merge thresholds,
        or both clear near-miss level while mean abs diff blocked the merge.
        """
        metrics = self.extract_metrics(candidate_metrics, behavior)
        if behavior is None:
            return NearMissResult(is_near_miss=False, metrics=metrics)

        cfg = self.config
        corr = metrics["pearson_correlation"]
        ratio = metrics["gate_overlap_ratio"]
        mad = metrics["mean_abs_diff"]

        if metrics["on_either_rate"] < cfg.min_on_either_rate_for_merge:
            return NearMissResult(is_near_miss=False, metrics=metrics)

        high_corr = (
            corr is not None
            and cfg.near_miss_correlation_threshold <= corr < cfg.min_correlation_for_merge
        )
        high_overlap = cfg.near_miss_gate_overlap_ratio <= ratio < cfg.min_gate_overlap_ratio

        reasons = []
        if high_corr:
            reasons.append(f"correlation {corr:.3f} (threshold: {cfg.min_correlation_for_merge})")
        if high_overlap:
            reasons.append(f"gate overlap {ratio:.3f} (threshold: {cfg.min_gate_overlap_ratio})")

        both_near = (
            corr is not None
            and corr >= cfg.near_miss_correlation_threshold
            and ratio >= cfg.near_miss_gate_overlap_ratio
        )
        if both_near and not reasons and (mad is None or mad > cfg.max_mean_abs_diff_for_merge):
            reasons.append(
                f"mean abs diff {_fmt(mad)} (threshold: {cfg.max_mean_abs_diff_for_merge})"
            )

        if not reasons:
            return NearMissResult(is_near_miss=False, metrics=metrics)

        proximity = {
            "correlation": {
                "value": corr,
                "near_miss_threshold": cfg.near_miss_correlation_threshold,
                "merge_threshold": cfg.min_correlation_for_merge,
                "met": corr is not None and corr >= cfg.min_correlation_for_merge,
            },
            "gate_overlap_ratio": {
                "value": ratio,
                "near_miss_threshold": cfg.near_miss_gate_overlap_ratio,
                "merge_threshold": cfg.min_gate_overlap_ratio,
                "met": ratio >= cfg.min_gate_overlap_ratio,
            },
        }
        reason = "; ".join(reasons)
        self.logger.debug(f"OverlapClassifier: Near-miss detected - {reason}")
        return NearMissResult(
            is_near_miss=True, metrics=metrics, reason=reason, threshold_proximity=proximity,
        )
