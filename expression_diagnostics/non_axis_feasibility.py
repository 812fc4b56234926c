"""
Expression Diagnostics — Non-Axis Clause Feasibility

Evaluates each extracted clause against the sampled corpus, independently of
every other clause.

Per clause (contexts without a numeric value at the path are skipped):
    value      = ctx[var_path]                     (final)
               = ctx[var_path] - ctx[previous path] (delta; emotions.joy → previousEmotions.joy)
    pass_rate  = passing / observed
    extremum   = max(values) for >=, >     min(values) for <=, <
    p95        = 95th percentile, linear interpolation between order statistics
    margin_max = extremum - threshold

Classification, first match wins:
    pass_rate == 0 and extremum strictly on the wrong side → EMPIRICALLY_UNREACHABLE
    pass_rate == 0                                         → UNOBSERVED
    pass_rate <= rare_pass_rate_ceiling                    → RARE
    otherwise                                              → OK
    no observations                                        → UNKNOWN
"""

import hashlib
import json
import math
from typing import Any, List, Mapping, Optional

import numpy as np

from .config import FeasibilityConfig
from .models import (
    ClauseFeasibilityResult,
    ClauseSignal,
    FeasibilityClassification,
    FeasibilityEvidence,
    NonAxisClause,
)
from .ports.checks import LoggerLike, require_port, resolve_logger
from .ports.clauses import ClauseExtractorPort


def make_clause_id(clause: NonAxisClause) -> str:
    """Stable id from clause identity; key order and platform do not matter."""
    payload = json.dumps(
        {
            "var_path": clause.var_path,
            "operator": clause.operator.value,
            "threshold": float(clause.threshold),
            "source_path": clause.source_path,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def previous_path(var_path: str) -> str:
    root, sep, rest = var_path.partition(".")
    return f"previous{root[:1].upper()}{root[1:]}{sep}{rest}"


def resolve_path(context: Any, var_path: str) -> Optional[float]:
    node = context
    for part in var_path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    if isinstance(node, bool) or not isinstance(node, (int, float)):
        return None
    value = float(node)
    return value if math.isfinite(value) else None


class NonAxisFeasibilityAnalyzer:

    def __init__(
        self,
        config: Optional[FeasibilityConfig] = None,
        clause_extractor: Optional[ClauseExtractorPort] = None,
        logger: Optional[LoggerLike] = None,
    ):
        self.config = config or FeasibilityConfig()
        self.clause_extractor = (
            require_port(clause_extractor, ClauseExtractorPort, "clause_extractor",
                         "NonAxisFeasibilityAnalyzer")
            if clause_extractor is not None else None
        )
        self.logger = resolve_logger(logger, "NonAxisFeasibilityAnalyzer")

    def _value(self, context: Any, clause: NonAxisClause) -> Optional[float]:
        current = resolve_path(context, clause.var_path)
        if current is None or not clause.is_delta:
            return current
        previous = resolve_path(context, previous_path(clause.var_path))
        if previous is None:
            return None
        return current - previous

    def _result(
        self,
        clause: NonAxisClause,
        classification: FeasibilityClassification,
        evidence: FeasibilityEvidence,
        sample_count: int = 0,
        pass_rate: Optional[float] = None,
        extremum: Optional[float] = None,
        p95: Optional[float] = None,
    ) -> ClauseFeasibilityResult:
        lower_bound = clause.operator.is_lower_bound
        return ClauseFeasibilityResult(
            clause_id=make_clause_id(clause),
            var_path=clause.var_path,
            operator=clause.operator,
            threshold=clause.threshold,
            clause_type=clause.clause_type,
            source_path=clause.source_path,
            signal=ClauseSignal.DELTA if clause.is_delta else ClauseSignal.FINAL,
            classification=classification,
            pass_rate=pass_rate,
            max_value=extremum if lower_bound else None,
            min_value=None if lower_bound else extremum,
            p95_value=p95,
            margin_max=None if extremum is None else extremum - clause.threshold,
            sample_count=sample_count,
            evidence=evidence,
        )

    def analyze_clause(self, clause: NonAxisClause, contexts: Any) -> ClauseFeasibilityResult:
        label = f"{clause.var_path} {clause.operator.value} {clause.threshold}"
        corpus = contexts if isinstance(contexts, (list, tuple)) else []
        if not corpus:
            return self._result(
                clause, FeasibilityClassification.UNKNOWN,
                FeasibilityEvidence(note=f"{label}: no sampled contexts available"),
            )

        indices = []
        observed = []
        for i, ctx in enumerate(corpus):
            value = self._value(ctx, clause)
            if value is not None:
                indices.append(i)
                observed.append(value)
        if not observed:
            return self._result(
                clause, FeasibilityClassification.UNKNOWN,
                FeasibilityEvidence(
                    note=f"{label}: no context carried a numeric value at {clause.var_path}"
                ),
            )

        values = np.array(observed, dtype=np.float64)
        n = len(values)
        op = clause.operator
        passing = int(sum(1 for v in observed if op.passes(v, clause.threshold)))
        pass_rate = passing / n

        pos = int(np.argmax(values)) if op.is_lower_bound else int(np.argmin(values))
        extremum = float(values[pos])
        p95 = float(np.percentile(values, 95))
        sample_ref = indices[pos]

        if passing == 0:
            hard_limit = (
                extremum < clause.threshold if op.is_lower_bound else extremum > clause.threshold
            )
            if hard_limit:
                kind = FeasibilityClassification.EMPIRICALLY_UNREACHABLE
                bound = "max" if op.is_lower_bound else "min"
                note = (
                    f"{label} is empirically unreachable: observed {bound} {extremum:.4f} "
                    f"never crosses the threshold in {n} contexts"
                )
            else:
                kind = FeasibilityClassification.UNOBSERVED
                note = (
                    f"{label} never passed in {n} contexts; the observed extremum "
                    f"{extremum:.4f} reaches the threshold without satisfying it"
                )
        elif pass_rate <= self.config.rare_pass_rate_ceiling:
            kind = FeasibilityClassification.RARE
            note = f"{label} is rarely met: {passing} of {n} contexts pass ({pass_rate:.4%})"
        else:
            kind = FeasibilityClassification.OK
            note = f"{label} is met in {passing} of {n} contexts ({pass_rate:.2%})"

        self.logger.debug(f"NonAxisFeasibilityAnalyzer: {kind.value} - {note}")
        return self._result(
            clause, kind, FeasibilityEvidence(note=note, sample_index=sample_ref),
            sample_count=n, pass_rate=pass_rate, extremum=extremum, p95=p95,
        )

    def analyze(self, clauses: Any, contexts: Any) -> List[ClauseFeasibilityResult]:
        clause_list = [
            c for c in (clauses if isinstance(clauses, (list, tuple)) else [])
            if isinstance(c, NonAxisClause)
        ]
        corpus_size = len(contexts) if isinstance(contexts, (list, tuple)) else 0
        self.logger.info(
            f"NonAxisFeasibilityAnalyzer: analyzing {len(clause_list)} clause(s) "
            f"over {corpus_size} context(s)"
        )
        return [self.analyze_clause(clause, contexts) for clause in clause_list]

    def analyze_expression(self, expression: Any, contexts: Any) -> List[ClauseFeasibilityResult]:
        """
        Extract clauses through the injected extractor, then analyze them.

        Without a configured extractor nothing can be extracted; a warning is
        logged and the result is empty.
        """
        if self.clause_extractor is None:
            self.logger.warning(
                "NonAxisFeasibilityAnalyzer: no clause_extractor configured, "
                "skipping expression analysis"
            )
            return []
        if expression is None:
            return []
        return self.analyze(self.clause_extractor.extract(expression), contexts)
