"""
Expression Diagnostics — Behavioral Overlap Evaluator (Stage B)

Runs both prototypes of a candidate pair over the sampled context corpus and
summarizes how their activations and intensities relate. All statistics are
computed once per pair and passed downstream untouched.

Per context i (first sample_count_per_pair valid contexts):
    on_A[i]  = gates of A pass            I_A[i] = intensity_A if on_A else 0
    on_B[i]  = gates of B pass            I_B[i] = intensity_B if on_B else 0

Formulas:
    on_either_rate  = mean(on_A | on_B)       on_both_rate = mean(on_A & on_B)
    p_only_rate     = mean(on_A & ~on_B)      q_only_rate  = mean(~on_A & on_B)
    pearson, MAD    = over contexts where on_A | on_B
    co_pass_corr    = pearson over contexts where on_A & on_B
    dominance_p     = mean(I_A > I_B + δ)  over on_A & on_B      (none → 0)
    global_*        = over every evaluated context
    high_coact(t)   = count(I_A > t and I_B > t), ratio = count / n
"""

from typing import Any, List, Mapping, Optional, Sequence

import numpy as np

from .config import OverlapConfig
from .gate_constraints import GateImplicationEvaluator, build_axis_intervals, parse_gates
from .models import (
    BehaviorResult,
    DivergenceExample,
    GateImplication,
    GateOverlap,
    GateParseInfo,
    HighCoactivation,
    IntensityStats,
    PassRates,
    Prototype,
)
from .ports.checks import LoggerLike, require_port, resolve_logger
from .ports.intensity import PrototypeIntensityPort


def pearson(xs: np.ndarray, ys: np.ndarray) -> Optional[float]:
    """Pearson r; None with fewer than two points or zero variance."""
    if len(xs) < 2:
        return None
    sx = np.std(xs)
    sy = np.std(ys)
    if sx == 0 or sy == 0:
        return None
    r = float(np.mean((xs - np.mean(xs)) * (ys - np.mean(ys))) / (sx * sy))
    return max(-1.0, min(1.0, r))


def _rate(mask: np.ndarray, n: int) -> float:
    return float(np.count_nonzero(mask) / n) if n > 0 else 0.0


def _conditional(joint: int, given: int) -> Optional[float]:
    return joint / given if given > 0 else None


class BehavioralOverlapEvaluator:
    """Evaluates one candidate pair against the corpus."""

    def __init__(
        self,
        intensity_calculator: PrototypeIntensityPort,
        config: Optional[OverlapConfig] = None,
        gate_implication_evaluator: Optional[GateImplicationEvaluator] = None,
        logger: Optional[LoggerLike] = None,
    ):
        self.intensity_calculator = require_port(
            intensity_calculator, PrototypeIntensityPort,
            "intensity_calculator", "BehavioralOverlapEvaluator",
        )
        self.config = config or OverlapConfig()
        self.logger = resolve_logger(logger, "BehavioralOverlapEvaluator")
        self.gate_implication_evaluator = (
            gate_implication_evaluator or GateImplicationEvaluator(logger=self.logger)
        )

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _select_contexts(self, contexts: Any) -> List[Mapping[str, Any]]:
        if not isinstance(contexts, (list, tuple)):
            return []
        valid = [c for c in contexts if isinstance(c, Mapping)]
        return valid[:self.config.sample_count_per_pair]

    def _run(self, prototype: Prototype, contexts: Sequence[Mapping[str, Any]]):
        calc = self.intensity_calculator
        passes = np.zeros(len(contexts), dtype=bool)
        intensities = np.zeros(len(contexts), dtype=np.float64)
        for i, ctx in enumerate(contexts):
            if calc.gates_pass(prototype, ctx):
                passes[i] = True
                intensities[i] = calc.compute_intensity(prototype, ctx)
        return passes, intensities

    def _gate_analysis(self, a: Prototype, b: Prototype):
        constraints_a, report_a = parse_gates(a.gates)
        constraints_b, report_b = parse_gates(b.gates)
        for proto, report in ((a, report_a), (b, report_b)):
            if report.unparsed_gates:
                self.logger.warning(
                    f"BehavioralOverlapEvaluator: {len(report.unparsed_gates)} unparseable "
                    f"gate(s) on {proto.id}: {', '.join(report.unparsed_gates)}"
                )
        implication: GateImplication = self.gate_implication_evaluator.evaluate(
            build_axis_intervals(constraints_a), build_axis_intervals(constraints_b),
        )
        return implication, GateParseInfo(prototype_a=report_a, prototype_b=report_b)

    def _referenced_axes(self, a: Prototype, b: Prototype) -> List[str]:
        axes = list(a.weights)
        for axis in b.weights:
            if axis not in axes:
                axes.append(axis)
        for proto in (a, b):
            constraints, _ = parse_gates(proto.gates)
            for c in constraints:
                if c.axis not in axes:
                    axes.append(c.axis)
        return axes

    def _divergence_examples(
        self,
        a: Prototype,
        b: Prototype,
        contexts: Sequence[Mapping[str, Any]],
        int_a: np.ndarray,
        int_b: np.ndarray,
    ) -> tuple:
        diff = np.abs(int_a - int_b)
        order = np.argsort(-diff, kind="stable")
        axes = self._referenced_axes(a, b)
        examples = []
        for idx in order[:self.config.divergence_examples_k]:
            if diff[idx] <= 0:
                break
            ctx = contexts[idx]
            axis_values = {}
            for axis in axes:
                value = self.intensity_calculator.resolve_axis(axis, ctx)
                if value is not None:
                    axis_values[axis] = value
            examples.append(DivergenceExample(
                context_index=int(idx),
                intensity_a=float(int_a[idx]),
                intensity_b=float(int_b[idx]),
                abs_diff=float(diff[idx]),
                axis_values=axis_values,
            ))
        return tuple(examples)

    # -----------------------------------------------------------------
    # Public
    # -----------------------------------------------------------------

    def evaluate(self, prototype_a: Prototype, prototype_b: Prototype, contexts: Any) -> BehaviorResult:
        samples = self._select_contexts(contexts)
        n = len(samples)
        implication, parse_info = self._gate_analysis(prototype_a, prototype_b)

        on_a, int_a = self._run(prototype_a, samples)
        on_b, int_b = self._run(prototype_b, samples)
        either = on_a | on_b
        both = on_a & on_b

        gate_overlap = GateOverlap(
            on_either_rate=_rate(either, n),
            on_both_rate=_rate(both, n),
            p_only_rate=_rate(on_a & ~on_b, n),
            q_only_rate=_rate(~on_a & on_b, n),
        )

        delta = self.config.dominance_delta
        joint = int(np.count_nonzero(both))
        if joint > 0:
            dominance_p = float(np.mean(int_a[both] > int_b[both] + delta))
            dominance_q = float(np.mean(int_b[both] > int_a[both] + delta))
        else:
            dominance_p = dominance_q = 0.0

        if np.any(either):
            mean_abs_diff = float(np.mean(np.abs(int_a[either] - int_b[either])))
        else:
            mean_abs_diff = None

        if n > 0:
            global_diff = int_a - int_b
            global_mad = float(np.mean(np.abs(global_diff)))
            global_l2 = float(np.sqrt(np.mean(global_diff ** 2)))
        else:
            global_mad = global_l2 = None

        intensity = IntensityStats(
            pearson_correlation=pearson(int_a[either], int_b[either]),
            mean_abs_diff=mean_abs_diff,
            dominance_p=dominance_p,
            dominance_q=dominance_q,
            co_pass_correlation=pearson(int_a[both], int_b[both]),
            global_mean_abs_diff=global_mad,
            global_l2_distance=global_l2,
            global_output_correlation=pearson(int_a, int_b),
        )

        count_a = int(np.count_nonzero(on_a))
        count_b = int(np.count_nonzero(on_b))
        pass_rates = PassRates(
            pass_rate_a=_rate(on_a, n),
            pass_rate_b=_rate(on_b, n),
            co_pass_rate=_rate(both, n),
            co_pass_count=joint,
            p_a_given_b=_conditional(joint, count_b),
            p_b_given_a=_conditional(joint, count_a),
        )

        high_coactivation = tuple(
            HighCoactivation(
                threshold=t,
                count=int(np.count_nonzero((int_a > t) & (int_b > t))),
                ratio=_rate((int_a > t) & (int_b > t), n),
            )
            for t in self.config.high_coactivation_thresholds
        )

        self.logger.debug(
            f"BehavioralOverlapEvaluator: {prototype_a.id} vs {prototype_b.id} over {n} contexts - "
            f"on_either={gate_overlap.on_either_rate:.4f}, on_both={gate_overlap.on_both_rate:.4f}"
        )

        return BehaviorResult(
            sample_count=n,
            gate_overlap=gate_overlap,
            intensity=intensity,
            pass_rates=pass_rates,
            high_coactivation=high_coactivation,
            gate_implication=implication,
            gate_parse_info=parse_info,
            divergence_examples=self._divergence_examples(
                prototype_a, prototype_b, samples, int_a, int_b,
            ),
        )
