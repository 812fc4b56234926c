"""
Expression Diagnostics — Prototype Overlap Analyzer

Orchestrates the redundancy pipeline over a prototype catalog:

    registry lookup → candidate filter → behavioral evaluation per pair
    → classification → gate banding (nested_siblings / needs_separation only)
    → recommendation

Non-actionable pairs (keep_distinct, not_redundant) never reach the
recommendation builder; they are screened for near misses instead.

Closest-pair composite score:
    gate_overlap_ratio · w_gate + (correlation + 1) / 2 · w_corr + (1 - global_MAD) · w_diff
"""

from typing import Any, Callable, Dict, List, Optional

from .behavioral_overlap_evaluator import BehavioralOverlapEvaluator
from .candidate_pair_filter import CandidatePairFilter
from .config import OverlapConfig
from .gate_banding import GateBandingSuggestionBuilder
from .intensity_engine import WeightedIntensityCalculator
from .models import (
    BehaviorResult,
    CandidatePair,
    FilterStats,
    NearMissPair,
    OverlapClassification,
    OverlapReport,
    Prototype,
    Recommendation,
)
from .overlap_classifier import OverlapClassifier
from .ports.checks import LoggerLike, require_port, resolve_logger
from .ports.intensity import PrototypeIntensityPort
from .ports.registry import PrototypeRegistryPort
from .recommendation_builder import OverlapRecommendationBuilder

ProgressCallback = Callable[[str, int, int], None]


class PrototypeOverlapAnalyzer:
    """Stateless beyond its injected collaborators; safe to reuse across runs."""

    def __init__(
        self,
        prototype_registry: PrototypeRegistryPort,
        candidate_filter: CandidatePairFilter,
        behavioral_evaluator: BehavioralOverlapEvaluator,
        classifier: OverlapClassifier,
        banding_builder: GateBandingSuggestionBuilder,
        recommendation_builder: OverlapRecommendationBuilder,
        config: Optional[OverlapConfig] = None,
        logger: Optional[LoggerLike] = None,
    ):
        owner = "PrototypeOverlapAnalyzer"
        self.registry = require_port(prototype_registry, PrototypeRegistryPort, "prototype_registry", owner)
        self.candidate_filter = require_port(candidate_filter, CandidatePairFilter, "candidate_filter", owner)
        self.behavioral_evaluator = require_port(
            behavioral_evaluator, BehavioralOverlapEvaluator, "behavioral_evaluator", owner,
        )
        self.classifier = require_port(classifier, OverlapClassifier, "classifier", owner)
        self.banding_builder = require_port(
            banding_builder, GateBandingSuggestionBuilder, "banding_builder", owner,
        )
        self.recommendation_builder = require_port(
            recommendation_builder, OverlapRecommendationBuilder, "recommendation_builder", owner,
        )
        self.config = config or OverlapConfig()
        self.logger = resolve_logger(logger, owner)

    @classmethod
    def create(
        cls,
        prototype_registry: PrototypeRegistryPort,
        config: Optional[OverlapConfig] = None,
        intensity_calculator: Optional[PrototypeIntensityPort] = None,
        logger: Optional[LoggerLike] = None,
    ) -> "PrototypeOverlapAnalyzer":
        """Wire the default pipeline around a registry."""
        config = config or OverlapConfig()
        calculator = intensity_calculator or WeightedIntensityCalculator(
            mood_axis_scale=config.mood_axis_scale, trait_axis_scale=config.trait_axis_scale,
        )
        return cls(
            prototype_registry=prototype_registry,
            candidate_filter=CandidatePairFilter(config=config, logger=logger),
            behavioral_evaluator=BehavioralOverlapEvaluator(calculator, config=config, logger=logger),
            classifier=OverlapClassifier(config=config, logger=logger),
            banding_builder=GateBandingSuggestionBuilder(logger=logger),
            recommendation_builder=OverlapRecommendationBuilder(config=config, logger=logger),
            config=config,
            logger=logger,
        )

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _load_prototypes(self, family: Optional[str]) -> List[Prototype]:
        if family is None:
            found = self.registry.get_all_prototypes()
        else:
            found = self.registry.get_prototypes_by_type(family)
        if not isinstance(found, (list, tuple)):
            return []
        return [p for p in found if isinstance(p, Prototype)]

    def composite_score(self, behavior: BehaviorResult) -> float:
        weights = self.config.composite_weights
        corr = behavior.intensity.pearson_correlation
        global_mad = behavior.intensity.global_mean_abs_diff
        norm_corr = (corr + 1) / 2 if corr is not None else 0.0
        diff_term = 1 - global_mad if global_mad is not None else 0.0
        return (
            behavior.gate_overlap_ratio * weights.get("gate_overlap", 0.0)
            + norm_corr * weights.get("correlation", 0.0)
            + diff_term * weights.get("global_diff", 0.0)
        )

    @staticmethod
    def summary_insight(
        pairs_evaluated: int,
        breakdown: Dict[str, int],
        redundant_count: int,
        near_miss_count: int,
        closest_pair: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        if pairs_evaluated == 0:
            return {
                "status": "no_candidates",
                "message": (
                    "No structurally similar pairs found. Prototypes are already "
                    "well-differentiated at the structural level."
                ),
                "closest_pair": None,
            }
        if redundant_count > 0:
            parts = [
                f"{breakdown[kind.value]} {label}"
                for kind, label in (
                    (OverlapClassification.MERGE_RECOMMENDED, "merge"),
                    (OverlapClassification.NESTED_SIBLINGS, "nested"),
                    (OverlapClassification.NEEDS_SEPARATION, "separation"),
                )
                if breakdown[kind.value] > 0
            ]
            return {
                "status": "redundant_found",
                "message": (
                    f"Found {redundant_count} overlapping pair(s) ({', '.join(parts)}). "
                    f"Review recommendations above."
                ),
                "closest_pair": closest_pair,
            }
        if near_miss_count > 0:
            return {
                "status": "near_misses",
                "message": (
                    f"All {pairs_evaluated} structurally similar pairs were behaviorally distinct, "
                    f"but {near_miss_count} pair(s) came close to redundancy thresholds."
                ),
                "closest_pair": closest_pair,
            }
        return {
            "status": "well_differentiated",
            "message": (
                f"All {pairs_evaluated} structurally similar pairs were behaviorally distinct. "
                f"Your prototypes are well-differentiated."
            ),
            "closest_pair": closest_pair,
        }

    def _empty_report(self, family: Optional[str], total: int, stats: FilterStats) -> OverlapReport:
        breakdown = {kind.value: 0 for kind in OverlapClassification}
        return OverlapReport(
            recommendations=[],
            near_misses=[],
            metadata=self._metadata(family, total, stats, 0, 0, 0, breakdown, None),
        )

    def _metadata(
        self,
        family: Optional[str],
        total: int,
        stats: FilterStats,
        evaluated: int,
        redundant: int,
        near_misses: int,
        breakdown: Dict[str, int],
        closest_pair: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        return {
            "prototype_family": family or "all",
            "total_prototypes": total,
            "candidate_pairs_found": stats.passed_filter,
            "candidate_pairs_evaluated": evaluated,
            "redundant_pairs_found": redundant,
            "sample_count_per_pair": self.config.sample_count_per_pair,
            "filtering_stats": stats.to_dict(),
            "classification_breakdown": breakdown,
            "summary_insight": self.summary_insight(
                evaluated, breakdown, redundant, near_misses, closest_pair,
            ),
        }

    # -----------------------------------------------------------------
    # Public
    # -----------------------------------------------------------------

    def analyze(
        self,
        contexts: Any,
        prototype_family: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> OverlapReport:
        prototypes = self._load_prototypes(prototype_family)
        self.logger.info(
            f"PrototypeOverlapAnalyzer: Found {len(prototypes)} prototypes for family "
            f"'{prototype_family or 'all'}'"
        )
        if len(prototypes) < 2:
            return self._empty_report(prototype_family, len(prototypes), FilterStats())

        if on_progress:
            on_progress("filtering", 0, 1)
        filtered = self.candidate_filter.filter_candidates(prototypes)
        if on_progress:
            on_progress("filtering", 1, 1)

        candidates: List[CandidatePair] = filtered.candidates
        breakdown = {kind.value: 0 for kind in OverlapClassification}
        recommendations: List[Recommendation] = []
        near_misses: List[NearMissPair] = []
        closest_pair: Optional[Dict[str, Any]] = None
        closest_score = None

        for done, pair in enumerate(candidates, start=1):
            a, b = pair.prototype_a, pair.prototype_b
            behavior = self.behavioral_evaluator.evaluate(a, b, contexts)
            classification = self.classifier.classify(pair.candidate_metrics, behavior)
            breakdown[classification.type.value] += 1

            score = self.composite_score(behavior)
            if closest_score is None or score > closest_score:
                closest_score = score
                closest_pair = {
                    "prototype_a": a.id,
                    "prototype_b": b.id,
                    "composite_score": score,
                    "gate_overlap_ratio": behavior.gate_overlap_ratio,
                    "correlation": behavior.intensity.pearson_correlation,
                    "global_mean_abs_diff": behavior.intensity.global_mean_abs_diff,
                }

            if classification.type.is_actionable:
                bands = []
                if classification.type.needs_gate_banding:
                    bands = self.banding_builder.build_suggestions(
                        classification, behavior.gate_implication, a.id, b.id,
                    )
                recommendations.append(self.recommendation_builder.build(
                    a, b, classification, pair.candidate_metrics, behavior,
                    behavior.divergence_examples, bands,
                    a.type if a.type == b.type else "mixed",
                ))
            else:
                near_miss = self.classifier.check_near_miss(pair.candidate_metrics, behavior)
                if near_miss.is_near_miss:
                    near_misses.append(NearMissPair(
                        prototype_a=a.id,
                        prototype_b=b.id,
                        near_miss=near_miss,
                        candidate_metrics=pair.candidate_metrics,
                    ))

            if on_progress:
                on_progress("evaluating", done, len(candidates))

        recommendations.sort(key=lambda r: -r.severity)
        near_misses.sort(key=lambda n: -(n.near_miss.metrics.get("pearson_correlation") or 0.0))
        near_misses = near_misses[:self.config.max_near_miss_pairs_to_report]

        self.logger.info(
            f"PrototypeOverlapAnalyzer: Analysis complete - {len(recommendations)} overlapping "
            f"pairs found from {len(candidates)} candidates"
        )
        return OverlapReport(
            recommendations=recommendations,
            near_misses=near_misses,
            metadata=self._metadata(
                prototype_family, len(prototypes), filtered.stats, len(candidates),
                len(recommendations), len(near_misses), breakdown, closest_pair,
            ),
        )
