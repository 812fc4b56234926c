"""
Expression Diagnostics — Gate Banding Suggestions

Turns per-axis implication evidence into concrete gate edits.

For every axis where one prototype's interval nests strictly inside the
other's, the broader prototype gets a band that stops at the narrower one's
boundary:

    narrower [lo, hi] inside broader  ->  broader gets  axis < lo   (or <= lo if lo is open)
                                          or            axis > hi   (or >= hi if hi is open)

The side leaving the broader prototype more room wins; ties go to the lower side.
needs_separation without a clean one-directional implication also yields an
expression_suppression suggestion (mutual exclusion at expression time).
"""

import math
from typing import List, Optional

from .models import (
    AxisImplicationEvidence,
    AxisInterval,
    ClassificationResult,
    GateBandSuggestion,
    GateImplication,
    ImplicationRelation,
    OverlapClassification,
    SuggestionType,
)
from .ports.checks import LoggerLike, resolve_logger

INF = float("inf")


def _room_below(narrower: AxisInterval, broader: AxisInterval) -> Optional[float]:
    if narrower.lower is None:
        return None
    if broader.lower is None:
        return INF
    if narrower.lower > broader.lower:
        return narrower.lower - broader.lower
    return None


def _room_above(narrower: AxisInterval, broader: AxisInterval) -> Optional[float]:
    if narrower.upper is None:
        return None
    if broader.upper is None:
        return INF
    if narrower.upper < broader.upper:
        return broader.upper - narrower.upper
    return None


class GateBandingSuggestionBuilder:

    def __init__(self, logger: Optional[LoggerLike] = None):
        self.logger = resolve_logger(logger, "GateBandingSuggestionBuilder")

    def _band_for_axis(
        self, evidence: AxisImplicationEvidence, prototype_a_id: str, prototype_b_id: str
    ) -> Optional[GateBandSuggestion]:
        if evidence.a_subset_b == evidence.b_subset_a:
            return None
        if evidence.interval_a.unsatisfiable or evidence.interval_b.unsatisfiable:
            return None

        if evidence.a_subset_b:
            narrower, broader = evidence.interval_a, evidence.interval_b
            narrower_id, broader_id = prototype_a_id, prototype_b_id
        else:
            narrower, broader = evidence.interval_b, evidence.interval_a
            narrower_id, broader_id = prototype_b_id, prototype_a_id

        below = _room_below(narrower, broader)
        above = _room_above(narrower, broader)
        if below is None and above is None:
            return None

        axis = evidence.axis
        if below is not None and (
            above is None or below > above or math.isclose(below, above, abs_tol=1e-9)
        ):
            operator = "<=" if narrower.lower_strict else "<"
            threshold = narrower.lower
            where = "below"
        else:
            operator = ">=" if narrower.upper_strict else ">"
            threshold = narrower.upper
            where = "above"

        return GateBandSuggestion(
            type=SuggestionType.GATE_BAND,
            affected_prototype=broader_id,
            reference_prototype=narrower_id,
            axis=axis,
            operator=operator,
            suggested_threshold=threshold,
            reason=(
                f"{broader_id} is active wherever {narrower_id} is on '{axis}'; "
                f"add gate '{axis} {operator} {threshold:.2f}' so {broader_id} only "
                f"fires {where} {narrower_id}'s band."
            ),
        )

    def build_suggestions(
        self,
        classification: ClassificationResult,
        gate_implication: Optional[GateImplication],
        prototype_a_id: str,
        prototype_b_id: str,
    ) -> List[GateBandSuggestion]:
        """
        Raises:
            ValueError: classification does not call for banding
        """
        kind = classification.type
        if not kind.needs_gate_banding:
            raise ValueError(
                f"Gate banding applies only to nested_siblings and needs_separation, "
                f"got {kind.value}"
            )

        suggestions: List[GateBandSuggestion] = []
        if gate_implication is not None:
            for evidence in gate_implication.evidence:
                band = self._band_for_axis(evidence, prototype_a_id, prototype_b_id)
                if band is not None:
                    suggestions.append(band)

        clean_subset = gate_implication is not None and gate_implication.relation in (
            ImplicationRelation.NARROWER, ImplicationRelation.WIDER,
        )
        if kind is OverlapClassification.NEEDS_SEPARATION and not clean_subset:
            suggestions.append(GateBandSuggestion(
                type=SuggestionType.EXPRESSION_SUPPRESSION,
                reason=(
                    f"{prototype_a_id} and {prototype_b_id} co-fire without a clean gate "
                    f"subset; add a mutual-exclusion rule at expression evaluation instead "
                    f"of editing gates."
                ),
            ))

        self.logger.debug(
            f"GateBandingSuggestionBuilder: {len(suggestions)} suggestion(s) for "
            f"{prototype_a_id} / {prototype_b_id} ({kind.value})"
        )
        return suggestions
