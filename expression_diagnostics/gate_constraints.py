"""
Expression Diagnostics — Gate Constraints

Gate strings ("valence >= 0.20", "threat < 0.5") parsed into per-axis
intervals, plus the deterministic implication test between two prototypes.

Interval semantics:
    missing bound    -> unbounded on that side
    missing axis     -> (-inf, +inf)
    lower > upper, or lower == upper with an open end -> unsatisfiable

Implication:
    A => B  iff  for every axis in axes(A) ∪ axes(B): interval_A ⊆ interval_B
    An unsatisfiable A implies anything (vacuous truth).
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .models import (
    AxisImplicationEvidence,
    AxisInterval,
    GateImplication,
    GateParseReport,
    GateParseStatus,
    ImplicationRelation,
)
from .ports.checks import LoggerLike, resolve_logger

GATE_PATTERN = re.compile(r"^(\w+)\s*(>=|<=|>|<|==)\s*(-?\d*\.?\d+)$")
EQUALITY_TOLERANCE = 1e-4


@dataclass(frozen=True)
class GateConstraint:
    axis: str
    operator: str
    value: float

    def holds(self, axis_value: float) -> bool:
        if self.operator == ">=":
            return axis_value >= self.value
        if self.operator == "<=":
            return axis_value <= self.value
        if self.operator == ">":
            return axis_value > self.value
        if self.operator == "<":
            return axis_value < self.value
        return abs(axis_value - self.value) < EQUALITY_TOLERANCE


def parse_gate(gate: object) -> Optional[GateConstraint]:
    """Parse one gate string; None when it does not match the gate grammar."""
    if not isinstance(gate, str):
        return None
    match = GATE_PATTERN.match(gate.strip())
    if not match:
        return None
    return GateConstraint(axis=match.group(1), operator=match.group(2), value=float(match.group(3)))


def parse_gates(gates: Iterable[object]) -> Tuple[List[GateConstraint], GateParseReport]:
    parsed: List[GateConstraint] = []
    unparsed: List[str] = []
    gate_list = list(gates or ())
    for gate in gate_list:
        constraint = parse_gate(gate)
        if constraint is None:
            unparsed.append(str(gate))
        else:
            parsed.append(constraint)

    if len(parsed) == len(gate_list):
        status = GateParseStatus.COMPLETE
    elif not parsed:
        status = GateParseStatus.FAILED
    else:
        status = GateParseStatus.PARTIAL
    report = GateParseReport(
        status=status,
        total_gates=len(gate_list),
        parsed_gates=len(parsed),
        unparsed_gates=tuple(unparsed),
    )
    return parsed, report


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------

def _tighten_lower(interval: Dict, value: float, strict: bool) -> None:
    if interval["lower"] is None or value > interval["lower"]:
        interval["lower"] = value
        interval["lower_strict"] = strict
    elif value == interval["lower"] and strict:
        interval["lower_strict"] = True


def _tighten_upper(interval: Dict, value: float, strict: bool) -> None:
    if interval["upper"] is None or value < interval["upper"]:
        interval["upper"] = value
        interval["upper_strict"] = strict
    elif value == interval["upper"] and strict:
        interval["upper_strict"] = True


def build_axis_intervals(constraints: Iterable[GateConstraint]) -> Dict[str, AxisInterval]:
    """Intersect all constraints per axis into a single interval."""
    raw: Dict[str, Dict] = {}
    for c in constraints:
        interval = raw.setdefault(c.axis, {
            "lower": None, "upper": None, "lower_strict": False, "upper_strict": False,
        })
        if c.operator in (">=", ">"):
            _tighten_lower(interval, c.value, c.operator == ">")
        elif c.operator in ("<=", "<"):
            _tighten_upper(interval, c.value, c.operator == "<")
        else:
            _tighten_lower(interval, c.value, False)
            _tighten_upper(interval, c.value, False)

    result = {}
    for axis, iv in raw.items():
        lower, upper = iv["lower"], iv["upper"]
        unsatisfiable = (
            lower is not None and upper is not None and (
                lower > upper
                or (lower == upper and (iv["lower_strict"] or iv["upper_strict"]))
            )
        )
        result[axis] = AxisInterval(unsatisfiable=unsatisfiable, **iv)
    return result


def interval_subset(a: AxisInterval, b: AxisInterval) -> bool:
    """True when every value admitted by `a` is admitted by `b`."""
    if a.unsatisfiable:
        return True
    if b.unsatisfiable:
        return False

    if b.lower is not None:
        if a.lower is None or a.lower < b.lower:
            return False
        if a.lower == b.lower and b.lower_strict and not a.lower_strict:
            return False

    if b.upper is not None:
        if a.upper is None or a.upper > b.upper:
            return False
        if a.upper == b.upper and b.upper_strict and not a.upper_strict:
            return False

    return True


def intervals_disjoint(a: AxisInterval, b: AxisInterval) -> bool:
    """Strictly separated intervals; touching endpoints count as overlapping."""
    if a.unsatisfiable or b.unsatisfiable:
        return False
    if a.upper is not None and b.lower is not None and a.upper < b.lower:
        return True
    if b.upper is not None and a.lower is not None and b.upper < a.lower:
        return True
    return False


UNBOUNDED = AxisInterval()


class GateImplicationEvaluator:
    """Deterministic nesting test between two prototypes' gate intervals."""

    def __init__(self, logger: Optional[LoggerLike] = None):
        self.logger = resolve_logger(logger, "GateImplicationEvaluator")

    def evaluate(
        self,
        intervals_a: Mapping[str, AxisInterval],
        intervals_b: Mapping[str, AxisInterval],
    ) -> GateImplication:
        intervals_a = intervals_a or {}
        intervals_b = intervals_b or {}
        axes = list(intervals_a)
        axes.extend(axis for axis in intervals_b if axis not in intervals_a)

        a_unsat = any(iv.unsatisfiable for iv in intervals_a.values())
        b_unsat = any(iv.unsatisfiable for iv in intervals_b.values())

        evidence = []
        counter_examples = []
        any_disjoint = False
        for axis in axes:
            ia = intervals_a.get(axis, UNBOUNDED)
            ib = intervals_b.get(axis, UNBOUNDED)
            a_sub = interval_subset(ia, ib)
            b_sub = interval_subset(ib, ia)
            evidence.append(AxisImplicationEvidence(
                axis=axis, interval_a=ia, interval_b=ib, a_subset_b=a_sub, b_subset_a=b_sub,
            ))
            if not (a_sub and b_sub):
                counter_examples.append(axis)
            if intervals_disjoint(ia, ib):
                any_disjoint = True

        a_implies_b = a_unsat or all(e.a_subset_b for e in evidence)
        b_implies_a = b_unsat or all(e.b_subset_a for e in evidence)

        if a_implies_b and b_implies_a:
            relation = ImplicationRelation.EQUAL
        elif a_implies_b:
            relation = ImplicationRelation.NARROWER
        elif b_implies_a:
            relation = ImplicationRelation.WIDER
        elif any_disjoint:
            relation = ImplicationRelation.DISJOINT
        else:
            relation = ImplicationRelation.OVERLAPPING

        if a_unsat or b_unsat:
            side = "A" if a_unsat else "B"
            self.logger.debug(
                f"GateImplicationEvaluator: prototype {side} gates are unsatisfiable, "
                f"implication is vacuous"
            )
        self.logger.debug(
            f"GateImplicationEvaluator: A→B={str(a_implies_b).lower()}, "
            f"B→A={str(b_implies_a).lower()}, relation={relation.value}"
        )

        return GateImplication(
            a_implies_b=a_implies_b,
            b_implies_a=b_implies_a,
            relation=relation,
            evidence=tuple(evidence),
            counter_example_axes=tuple(counter_examples),
            is_vacuous=a_unsat or b_unsat,
        )
