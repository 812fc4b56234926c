"""
Expression Diagnostics — Intensity Engine

Default PrototypeIntensityPort implementation.

Formula:
    x_i       = normalized axis value (mood / mood_axis_scale, traits / trait_axis_scale)
    intensity = clamp(Σ w_i · x_i / Σ |w_i|, 0, 1)        (Σ|w| = 0 → 0)

Axis lookup order: affect traits → sexual axes → mood axes.
Axes absent from a context read as 0 for gates and intensity.
"""

from functools import lru_cache
from typing import Any, Dict, Mapping, Optional

from .gate_constraints import GateConstraint, parse_gate
from .models import Prototype
from .ports.intensity import PrototypeIntensityPort

MOOD_DOMAINS = ("moodAxes", "mood")
SEXUAL_DOMAINS = ("sexualStates", "sexualAxes", "sexual")
TRAIT_DOMAIN = "affectTraits"
SEXUAL_AROUSAL_ALIASES = {"SA": "sexual_arousal"}


@lru_cache(maxsize=4096)
def _cached_gate(gate: str) -> Optional[GateConstraint]:
    return parse_gate(gate)


def _numeric(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class WeightedIntensityCalculator(PrototypeIntensityPort):
    """Stateless weighted-sum evaluator. Safe to share between analyzers."""

    def __init__(self, mood_axis_scale: float = 100.0, trait_axis_scale: float = 100.0):
        if mood_axis_scale <= 0 or trait_axis_scale <= 0:
            raise ValueError(
                f"axis scales must be > 0, got mood={mood_axis_scale}, traits={trait_axis_scale}"
            )
        self.mood_axis_scale = mood_axis_scale
        self.trait_axis_scale = trait_axis_scale

    def resolve_axis(self, axis: str, context: Dict[str, Any]) -> Optional[float]:
        if not isinstance(context, Mapping):
            return None
        axis = SEXUAL_AROUSAL_ALIASES.get(axis, axis)

        traits = context.get(TRAIT_DOMAIN)
        if isinstance(traits, Mapping) and axis in traits:
            value = _numeric(traits[axis])
            if value is not None:
                return value / self.trait_axis_scale

        if axis == "sexual_arousal":
            value = _numeric(context.get("sexualArousal"))
            if value is not None:
                return value

        for domain in SEXUAL_DOMAINS:
            values = context.get(domain)
            if isinstance(values, Mapping) and axis in values:
                value = _numeric(values[axis])
                if value is not None:
                    return value

        for domain in MOOD_DOMAINS:
            values = context.get(domain)
            if isinstance(values, Mapping) and axis in values:
                value = _numeric(values[axis])
                if value is not None:
                    return value / self.mood_axis_scale

        return None

    def _axis_or_zero(self, axis: str, context: Dict[str, Any]) -> float:
        value = self.resolve_axis(axis, context)
        return 0.0 if value is None else value

    def gates_pass(self, prototype: Prototype, context: Dict[str, Any]) -> bool:
        for gate in prototype.gates:
            constraint = _cached_gate(gate) if isinstance(gate, str) else None
            if constraint is None:
                # unparseable gates are reported by the evaluator, not enforced
                continue
            if not constraint.holds(self._axis_or_zero(constraint.axis, context)):
                return False
        return True

    def compute_intensity(self, prototype: Prototype, context: Dict[str, Any]) -> float:
        raw = 0.0
        max_raw = 0.0
        for axis, weight in prototype.weights.items():
            raw += weight * self._axis_or_zero(axis, context)
            max_raw += abs(weight)
        if max_raw == 0:
            return 0.0
        return min(1.0, max(0.0, raw / max_raw))
