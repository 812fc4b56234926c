"""
Expression Diagnostics — Candidate Pair Filter (Stage A)

Cheap vector heuristics that keep the O(n²) behavioral evaluation tractable.
A pair is rejected at the first heuristic it fails; stats record which one.

Formulas:
    active(P)          = {axis : |w_axis| >= active_axis_epsilon}
    active_axis_overlap = |active(A) ∩ active(B)| / |active(A) ∪ active(B)|     (∪ = ∅ → 0)
    sign_agreement      = matching signs on active(A) ∩ active(B) / |∩|         (∩ = ∅ → 0)
    cosine              = A·B / (|A| |B|) over all weighted axes                (zero norm → 0)
"""

import itertools
import math
from typing import Dict, List, Optional, Sequence

from .config import OverlapConfig
from .models import CandidateFilterResult, CandidateMetrics, CandidatePair, FilterStats, Prototype
from .ports.checks import LoggerLike, resolve_logger


class CandidatePairFilter:
    """Stateless apart from configuration."""

    def __init__(self, config: Optional[OverlapConfig] = None, logger: Optional[LoggerLike] = None):
        self.config = config or OverlapConfig()
        self.logger = resolve_logger(logger, "CandidatePairFilter")

    # -----------------------------------------------------------------
    # Vector heuristics
    # -----------------------------------------------------------------

    def active_axes(self, weights: Dict[str, float]) -> set:
        eps = self.config.active_axis_epsilon
        return {axis for axis, w in weights.items() if abs(w) >= eps}

    def compute_metrics(self, a: Prototype, b: Prototype) -> CandidateMetrics:
        active_a = self.active_axes(a.weights)
        active_b = self.active_axes(b.weights)
        union = active_a | active_b
        shared = active_a & active_b

        overlap = len(shared) / len(union) if union else 0.0
        if shared:
            agree = sum(
                1 for axis in shared
                if math.copysign(1.0, a.weights[axis]) == math.copysign(1.0, b.weights[axis])
            )
            sign_agreement = agree / len(shared)
        else:
            sign_agreement = 0.0

        return CandidateMetrics(
            active_axis_overlap=overlap,
            sign_agreement=sign_agreement,
            weight_cosine_similarity=self.cosine_similarity(a.weights, b.weights),
        )

    @staticmethod
    def cosine_similarity(wa: Dict[str, float], wb: Dict[str, float]) -> float:
        axes = set(wa) | set(wb)
        dot = sum(wa.get(x, 0.0) * wb.get(x, 0.0) for x in axes)
        norm_a = math.sqrt(sum(v * v for v in wa.values()))
        norm_b = math.sqrt(sum(v * v for v in wb.values()))
        if norm_a == 0 or norm_b == 0:
            return 0.0
        return dot / (norm_a * norm_b)

    # -----------------------------------------------------------------
    # Filtering
    # -----------------------------------------------------------------

    def filter_candidates(self, prototypes: Optional[Sequence[Prototype]]) -> CandidateFilterResult:
        """Every unordered pair, reduced to those worth behavioral evaluation."""
        stats = FilterStats()
        valid = [p for p in (prototypes or []) if isinstance(p, Prototype)]
        candidates: List[CandidatePair] = []
        cfg = self.config

        for a, b in itertools.combinations(valid, 2):
            stats.total_possible_pairs += 1
            if not a.weights or not b.weights:
                stats.rejected_by_missing_weights += 1
                continue

            metrics = self.compute_metrics(a, b)
            if metrics.active_axis_overlap < cfg.candidate_min_active_axis_overlap:
                stats.rejected_by_active_axis_overlap += 1
                continue
            if metrics.sign_agreement < cfg.candidate_min_sign_agreement:
                stats.rejected_by_sign_agreement += 1
                continue
            if metrics.weight_cosine_similarity < cfg.candidate_min_cosine_similarity:
                stats.rejected_by_cosine_similarity += 1
                continue

            candidates.append(CandidatePair(prototype_a=a, prototype_b=b, candidate_metrics=metrics))

        stats.passed_filter = len(candidates)
        if len(candidates) > cfg.max_candidate_pairs:
            candidates.sort(key=lambda c: (
                -c.candidate_metrics.weight_cosine_similarity,
                c.prototype_a.id,
                c.prototype_b.id,
            ))
            stats.truncated = len(candidates) - cfg.max_candidate_pairs
            candidates = candidates[:cfg.max_candidate_pairs]
            self.logger.warning(
                f"CandidatePairFilter: {stats.truncated} candidate pairs dropped "
                f"(max_candidate_pairs={cfg.max_candidate_pairs})"
            )

        self.logger.info(
            f"CandidatePairFilter: {len(candidates)}/{stats.total_possible_pairs} pairs passed "
            f"(overlap={stats.rejected_by_active_axis_overlap}, "
            f"sign={stats.rejected_by_sign_agreement}, "
            f"cosine={stats.rejected_by_cosine_similarity}, "
            f"no_weights={stats.rejected_by_missing_weights})"
        )
        return CandidateFilterResult(candidates=candidates, stats=stats)
