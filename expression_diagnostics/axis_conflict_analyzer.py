"""
Expression Diagnostics — Axis Conflict Analyzer

Turns detected sign conflicts between a prototype's axis weights and a
regime's bounds into a binary-choice remediation:

    Option A  relax the regime constraint (names the clauses creating it)
    Option B  change the emotion (alternatives with a regime-compatible sign,
              plus the always-present "move the weight toward zero" fallback)

Severity:
    score = max(lost_intensity) / clause.threshold_value
    score > 0.3 → high,  0.15 <= score <= 0.3 → medium,  else low
    threshold missing / <= 0, or no numeric lost_intensity → impact scale
    (impact >= 0.2 → high, >= 0.1 → medium, else low)
"""

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .config import AxisConflictConfig
from .models import AxisConflict, AxisConflictReport, Severity
from .ports.checks import LoggerLike, require_port, resolve_logger
from .ports.similarity import EmotionSimilarityPort


def title_case_axis(axis: str) -> str:
    """snake_case axis name to Title Case ("sexual_arousal" → "Sexual Arousal")."""
    return " ".join(part.capitalize() for part in str(axis).split("_") if part)


def _finite(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def _fmt(value: Optional[float], signed: bool = False) -> str:
    if value is None:
        return "n/a"
    return f"{value:+.2f}" if signed else f"{value:.2f}"


def _conflict_from_mapping(data: Mapping[str, Any]) -> AxisConflict:
    sources = data.get("sources")
    if not isinstance(sources, (list, tuple)):
        sources = ()
    return AxisConflict(
        conflict_type=data.get("conflict_type"),
        axis=data.get("axis", ""),
        weight=data.get("weight"),
        constraint_min=data.get("constraint_min"),
        constraint_max=data.get("constraint_max"),
        lost_raw_sum=data.get("lost_raw_sum"),
        lost_intensity=data.get("lost_intensity"),
        sources=tuple(s for s in sources if isinstance(s, Mapping)),
    )


class AxisConflictAnalyzer:

    def __init__(
        self,
        config: Optional[AxisConflictConfig] = None,
        emotion_similarity: Optional[EmotionSimilarityPort] = None,
        logger: Optional[LoggerLike] = None,
    ):
        self.config = config or AxisConflictConfig()
        self.emotion_similarity = (
            require_port(emotion_similarity, EmotionSimilarityPort, "emotion_similarity",
                         "AxisConflictAnalyzer")
            if emotion_similarity is not None else None
        )
        self.logger = resolve_logger(logger, "AxisConflictAnalyzer")

    # -----------------------------------------------------------------
    # Normalization
    # -----------------------------------------------------------------

    @staticmethod
    def normalize(conflicts: Any) -> List[AxisConflict]:
        """Drop records without a conflict type; mappings become AxisConflict."""
        if not isinstance(conflicts, (list, tuple)):
            return []
        result = []
        for item in conflicts:
            if isinstance(item, Mapping):
                item = _conflict_from_mapping(item)
            if isinstance(item, AxisConflict) and item.conflict_type:
                result.append(item)
        return result

    # -----------------------------------------------------------------
    # Severity
    # -----------------------------------------------------------------

    def severity_from_impact(self, impact: Any) -> Severity:
        value = _finite(impact) or 0.0
        if value >= self.config.impact_high:
            return Severity.HIGH
        if value >= self.config.impact_medium:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def max_lost_intensity(conflicts: Iterable[AxisConflict]) -> Optional[float]:
        values = [v for v in (_finite(c.lost_intensity) for c in conflicts) if v is not None]
        return max(values) if values else None

    def get_severity(self, axis_conflicts: Any, clause: Any = None, impact: Any = None) -> Severity:
        if isinstance(clause, Mapping):
            threshold = _finite(clause.get("threshold_value"))
        else:
            threshold = _finite(getattr(clause, "threshold_value", None))
        lost = self.max_lost_intensity(self.normalize(axis_conflicts))

        if threshold is None or threshold <= 0 or lost is None:
            return self.severity_from_impact(impact)

        score = lost / threshold
        if score > self.config.severity_high_ratio:
            return Severity.HIGH
        if score >= self.config.severity_medium_ratio:
            return Severity.MEDIUM
        return Severity.LOW

    def confidence_from_samples(self, mood_sample_count: Any) -> Severity:
        count = _finite(mood_sample_count) or 0.0
        if count >= self.config.confidence_high_samples:
            return Severity.HIGH
        if count >= self.config.confidence_medium_samples:
            return Severity.MEDIUM
        return Severity.LOW

    # -----------------------------------------------------------------
    # Report pieces
    # -----------------------------------------------------------------

    def _evidence(self, conflict: AxisConflict, mood_sample_count: Any) -> Dict[str, Any]:
        weight = _finite(conflict.weight)
        lo = _finite(conflict.constraint_min)
        hi = _finite(conflict.constraint_max)
        lost_raw = _finite(conflict.lost_raw_sum)
        lost_intensity = _finite(conflict.lost_intensity)
        regime = f"[{lo:.2f}, {hi:.2f}]" if lo is not None and hi is not None else "n/a"
        axis_label = title_case_axis(conflict.axis)
        return {
            "label": (
                f"Axis conflict ({conflict.conflict_type}): {axis_label} weight "
                f"{_fmt(weight, signed=True)}, regime {regime}, "
                f"lost raw sum {_fmt(lost_raw)}, lost intensity {_fmt(lost_intensity)}"
            ),
            "summary": (
                f"The regime holds {axis_label} in {regime}, which works against a "
                f"weight of {_fmt(weight, signed=True)} and costs {_fmt(lost_intensity)} intensity."
            ),
            "conflict_type": conflict.conflict_type,
            "axis": conflict.axis,
            "weight": weight,
            "constraint_min": lo,
            "constraint_max": hi,
            "lost_raw_sum": lost_raw,
            "lost_intensity": lost_intensity,
            "sources": list(conflict.sources),
            "population": {
                "name": "mood-regime",
                "count": _finite(mood_sample_count),
            },
        }

    @staticmethod
    def _source_clauses(conflicts: Iterable[AxisConflict]) -> List[str]:
        texts: List[str] = []
        for conflict in conflicts:
            for source in conflict.sources:
                var_path = source.get("var_path")
                operator = source.get("operator")
                if not var_path or not operator:
                    continue
                threshold = source.get("threshold")
                text = f"{var_path} {operator} {threshold if threshold is not None else 'n/a'}"
                if text not in texts:
                    texts.append(text)
        return texts

    def _alternatives(self, conflicts: Iterable[AxisConflict], prototype_id: str) -> List[Dict[str, Any]]:
        if self.emotion_similarity is None:
            return []
        excluded = {prototype_id, str(prototype_id).split(":")[-1]}
        found: List[Dict[str, Any]] = []
        seen = set()
        for conflict in conflicts:
            weight = _finite(conflict.weight)
            if not weight:
                continue
            wanted_sign = -1 if weight > 0 else 1
            try:
                matches = self.emotion_similarity.find_emotions_with_compatible_axis_sign(
                    conflict.axis, wanted_sign,
                ) or []
            except Exception as e:
                self.logger.warning(
                    f"AxisConflictAnalyzer: similarity lookup failed for {conflict.axis}: {e}"
                )
                continue
            for match in matches:
                name = match.get("emotion_name") if isinstance(match, Mapping) else None
                if not name or name in excluded or name in seen:
                    continue
                seen.add(name)
                found.append({
                    "emotion_name": name,
                    "axis": conflict.axis,
                    "axis_weight": match.get("axis_weight"),
                })
                if len(found) >= self.config.max_alternative_emotions:
                    return found
        return found

    # -----------------------------------------------------------------
    # Public
    # -----------------------------------------------------------------

    def analyze(
        self, axis_conflicts: Any, prototype_id: str = "", mood_sample_count: Any = None
    ) -> AxisConflictReport:
        conflicts = self.normalize(axis_conflicts)
        confidence = self.confidence_from_samples(mood_sample_count)
        if not conflicts:
            return AxisConflictReport(
                actions=[], structured_actions={}, evidence=[], confidence=confidence,
            )

        evidence = [
            self._evidence(c, mood_sample_count)
            for c in conflicts[:self.config.max_conflicts_in_evidence]
        ]
        clauses = self._source_clauses(conflicts)
        alternatives = self._alternatives(conflicts, prototype_id)
        axes = ", ".join(dict.fromkeys(title_case_axis(c.axis) for c in conflicts))

        if clauses:
            option_a = f"Option A: Relax the regime bound(s) created by: {', '.join(clauses)}."
        else:
            option_a = f"Option A: Relax the regime bounds on {axes} that oppose the prototype weight."
        fallback = (
            f"Option B: Keep the regime and move the conflicting {axes} weight(s) of "
            f"{prototype_id or 'the prototype'} toward zero."
        )
        actions = [option_a]
        if alternatives:
            names = ", ".join(a["emotion_name"] for a in alternatives)
            actions.append(f"Option B: Use an emotion whose {axes} weight fits the regime: {names}.")
        actions.append(fallback)
        if confidence is Severity.LOW:
            actions.append(
                f"Low confidence due to limited mood samples (N={_finite(mood_sample_count) or 0:.0f})."
            )

        structured = {
            "choice": "binary",
            "option_a": {
                "label": "Relax regime",
                "description": option_a,
                "clauses": clauses,
            },
            "option_b": {
                "label": "Change emotion",
                "alternatives": alternatives,
                "fallback": fallback,
            },
        }
        self.logger.debug(
            f"AxisConflictAnalyzer: {len(conflicts)} conflict(s) for {prototype_id or 'prototype'}, "
            f"{len(alternatives)} alternative(s)"
        )
        return AxisConflictReport(
            actions=actions, structured_actions=structured, evidence=evidence, confidence=confidence,
        )
