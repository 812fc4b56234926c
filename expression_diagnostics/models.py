"""
Expression Diagnostics — Data Models

Frozen data contracts shared by the overlap and feasibility analyzers.
Classification enums are closed: no free-form strings reach callers.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class OverlapClassification(str, Enum):
    """Relationship between two prototypes, derived from overlap metrics."""
    MERGE_RECOMMENDED = "merge_recommended"
    NESTED_SIBLINGS = "nested_siblings"
    NEEDS_SEPARATION = "needs_separation"
    KEEP_DISTINCT = "keep_distinct"
    NOT_REDUNDANT = "not_redundant"

    @property
    def is_actionable(self) -> bool:
        return self in ACTIONABLE_CLASSIFICATIONS

    @property
    def needs_gate_banding(self) -> bool:
        return self in BANDING_CLASSIFICATIONS


ACTIONABLE_CLASSIFICATIONS = frozenset({
    OverlapClassification.MERGE_RECOMMENDED,
    OverlapClassification.NESTED_SIBLINGS,
    OverlapClassification.NEEDS_SEPARATION,
})

BANDING_CLASSIFICATIONS = frozenset({
    OverlapClassification.NESTED_SIBLINGS,
    OverlapClassification.NEEDS_SEPARATION,
})


class NestingDirection(str, Enum):
    """
    Direction of a nested-siblings relation.

    A_contains_B: A's gates imply B's. A's active region sits inside B's,
    so every activation of A is also an activation of B.
    """
    A_CONTAINS_B = "A_contains_B"
    B_CONTAINS_A = "B_contains_A"


class ImplicationRelation(str, Enum):
    EQUAL = "equal"
    NARROWER = "narrower"
    WIDER = "wider"
    DISJOINT = "disjoint"
    OVERLAPPING = "overlapping"


class GateParseStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"


class ComparisonOperator(str, Enum):
    """Operators allowed in non-axis clauses."""
    GTE = ">="
    GT = ">"
    LTE = "<="
    LT = "<"

    @property
    def is_lower_bound(self) -> bool:
        """True when the clause needs the value to be high (>=, >)."""
        return self in (ComparisonOperator.GTE, ComparisonOperator.GT)

    def passes(self, value: float, threshold: float) -> bool:
        if self is ComparisonOperator.GTE:
            return value >= threshold
        if self is ComparisonOperator.GT:
            return value > threshold
        if self is ComparisonOperator.LTE:
            return value <= threshold
        return value < threshold


class FeasibilityClassification(str, Enum):
    """Empirical reachability of a non-axis clause over the corpus."""
    EMPIRICALLY_UNREACHABLE = "EMPIRICALLY_UNREACHABLE"
    RARE = "RARE"
    OK = "OK"
    UNOBSERVED = "UNOBSERVED"
    UNKNOWN = "UNKNOWN"


class ClauseSignal(str, Enum):
    FINAL = "final"
    DELTA = "delta"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SuggestionType(str, Enum):
    GATE_BAND = "gate_band"
    EXPRESSION_SUPPRESSION = "expression_suppression"


class VarPathIssue(str, Enum):
    UNKNOWN_ROOT = "unknown_root"
    INVALID_NESTING = "invalid_nesting"
    UNKNOWN_NESTED_KEY = "unknown_nested_key"


# ========== Catalog ==========

@dataclass(frozen=True)
class Prototype:
    """
    Immutable catalog entry for a behavioral prototype.

    weights: axis name -> signed weight (the behavioral vector)
    gates:   axis threshold strings, e.g. "threat <= 0.20"
    """
    id: str
    type: str = "emotion"
    weights: Dict[str, float] = field(default_factory=dict)
    gates: Tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id:
            raise ValueError(f"prototype id must be a non-empty string, got {self.id!r}")
        for axis, weight in self.weights.items():
            if isinstance(weight, bool) or not isinstance(weight, (int, float)):
                raise ValueError(
                    f"weight for axis '{axis}' must be numeric, got {weight!r} "
                    f"(prototype={self.id})"
                )
        if not isinstance(self.gates, tuple):
            object.__setattr__(self, "gates", tuple(self.gates))


# ========== Candidate filtering ==========

@dataclass(frozen=True)
class CandidateMetrics:
    active_axis_overlap: float
    sign_agreement: float
    weight_cosine_similarity: float


@dataclass(frozen=True)
class CandidatePair:
    prototype_a: Prototype
    prototype_b: Prototype
    candidate_metrics: CandidateMetrics


@dataclass
class FilterStats:
    """Counts explaining why pairs were or were not escalated."""
    total_possible_pairs: int = 0
    passed_filter: int = 0
    rejected_by_missing_weights: int = 0
    rejected_by_active_axis_overlap: int = 0
    rejected_by_sign_agreement: int = 0
    rejected_by_cosine_similarity: int = 0
    truncated: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class CandidateFilterResult:
    candidates: List[CandidatePair]
    stats: FilterStats


# ========== Gate constraints ==========

@dataclass(frozen=True)
class AxisInterval:
    """
    Feasible interval for one axis. None means unbounded on that side.
    Strict flags mark open ends (from > or <).
    """
    lower: Optional[float] = None
    upper: Optional[float] = None
    lower_strict: bool = False
    upper_strict: bool = False
    unsatisfiable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GateParseReport:
    status: GateParseStatus
    total_gates: int
    parsed_gates: int
    unparsed_gates: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AxisImplicationEvidence:
    axis: str
    interval_a: AxisInterval
    interval_b: AxisInterval
    a_subset_b: bool
    b_subset_a: bool


@dataclass(frozen=True)
class GateImplication:
    a_implies_b: bool
    b_implies_a: bool
    relation: ImplicationRelation
    evidence: Tuple[AxisImplicationEvidence, ...] = ()
    counter_example_axes: Tuple[str, ...] = ()
    is_vacuous: bool = False


# ========== Behavioral overlap ==========

@dataclass(frozen=True)
class GateOverlap:
    on_either_rate: float
    on_both_rate: float
    p_only_rate: float
    q_only_rate: float


@dataclass(frozen=True)
class IntensityStats:
    """
    pearson_correlation / mean_abs_diff: contexts where at least one is on.
    dominance_p / dominance_q: co-active contexts only.
    global_*: every evaluated context (off = 0 intensity).
    """
    pearson_correlation: Optional[float]
    mean_abs_diff: Optional[float]
    dominance_p: float
    dominance_q: float
    co_pass_correlation: Optional[float] = None
    global_mean_abs_diff: Optional[float] = None
    global_l2_distance: Optional[float] = None
    global_output_correlation: Optional[float] = None


@dataclass(frozen=True)
class PassRates:
    pass_rate_a: float
    pass_rate_b: float
    co_pass_rate: float
    co_pass_count: int
    p_a_given_b: Optional[float]
    p_b_given_a: Optional[float]


@dataclass(frozen=True)
class HighCoactivation:
    threshold: float
    count: int
    ratio: float


@dataclass(frozen=True)
class DivergenceExample:
    context_index: int
    intensity_a: float
    intensity_b: float
    abs_diff: float
    axis_values: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class GateParseInfo:
    prototype_a: GateParseReport
    prototype_b: GateParseReport


@dataclass(frozen=True)
class BehaviorResult:
    sample_count: int
    gate_overlap: GateOverlap
    intensity: IntensityStats
    pass_rates: PassRates
    high_coactivation: Tuple[HighCoactivation, ...]
    gate_implication: Optional[GateImplication]
    gate_parse_info: Optional[GateParseInfo]
    divergence_examples: Tuple[DivergenceExample, ...] = ()

    @property
    def gate_overlap_ratio(self) -> float:
        either = self.gate_overlap.on_either_rate
        return self.gate_overlap.on_both_rate / either if either > 0 else 0.0


# ========== Classification / recommendation ==========

@dataclass(frozen=True)
class ClassificationResult:
    type: OverlapClassification
    thresholds: Dict[str, float]
    metrics: Dict[str, Any]
    nesting_direction: Optional[NestingDirection] = None

    def __post_init__(self):
        nested = self.type is OverlapClassification.NESTED_SIBLINGS
        if nested and self.nesting_direction is None:
            raise ValueError("nested_siblings requires a nesting_direction")
        if not nested and self.nesting_direction is not None:
            raise ValueError(
                f"nesting_direction is only valid for nested_siblings, got {self.type.value}"
            )


@dataclass(frozen=True)
class NearMissResult:
    is_near_miss: bool
    metrics: Dict[str, Any]
    reason: Optional[str] = None
    threshold_proximity: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class GateBandSuggestion:
    """
    One remediation suggestion.

    gate_band: tighten `affected_prototype` on `axis` with `suggested_gate`.
    expression_suppression: no gate edit; add mutual exclusion between the pair.
    """
    type: SuggestionType
    reason: str
    affected_prototype: Optional[str] = None
    axis: Optional[str] = None
    operator: Optional[str] = None
    suggested_threshold: Optional[float] = None
    reference_prototype: Optional[str] = None

    @property
    def suggested_gate(self) -> Optional[str]:
        if self.type is not SuggestionType.GATE_BAND:
            return None
        return f"{self.axis} {self.operator} {self.suggested_threshold:.2f}"


@dataclass(frozen=True)
class Recommendation:
    type: str
    classification: OverlapClassification
    prototype_family: str
    prototype_a: str
    prototype_b: str
    severity: float
    confidence: float
    actions: Tuple[str, ...]
    candidate_metrics: CandidateMetrics
    behavior_metrics: Dict[str, Any]
    evidence: Dict[str, Any]
    suggested_gate_bands: Tuple[GateBandSuggestion, ...] = ()
    nesting_direction: Optional[NestingDirection] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["classification"] = self.classification.value
        data["nesting_direction"] = (
            self.nesting_direction.value if self.nesting_direction else None
        )
        data["suggested_gate_bands"] = [
            {**asdict(s), "type": s.type.value, "suggested_gate": s.suggested_gate}
            for s in self.suggested_gate_bands
        ]
        return data


@dataclass(frozen=True)
class NearMissPair:
    prototype_a: str
    prototype_b: str
    near_miss: NearMissResult
    candidate_metrics: CandidateMetrics


@dataclass(frozen=True)
class OverlapReport:
    recommendations: List[Recommendation]
    near_misses: List[NearMissPair]
    metadata: Dict[str, Any]


# ========== Feasibility ==========

@dataclass(frozen=True)
class NonAxisClause:
    var_path: str
    operator: ComparisonOperator
    threshold: float
    is_delta: bool = False
    clause_type: str = "non_axis"
    source_path: str = ""

    def __post_init__(self):
        if not isinstance(self.operator, ComparisonOperator):
            object.__setattr__(self, "operator", ComparisonOperator(self.operator))
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, (int, float)):
            raise ValueError(
                f"threshold must be numeric, got {self.threshold!r} (var_path={self.var_path})"
            )


@dataclass(frozen=True)
class FeasibilityEvidence:
    note: str
    sample_index: Optional[int] = None


@dataclass(frozen=True)
class ClauseFeasibilityResult:
    """
    Per-clause reachability. Statistics are None when nothing was observed.

    extremum is max for >= / > and min for <= / <; only the relevant one is set.
    margin_max = extremum - threshold (may be negative).
    """
    clause_id: str
    var_path: str
    operator: ComparisonOperator
    threshold: float
    clause_type: str
    source_path: str
    signal: ClauseSignal
    classification: FeasibilityClassification
    pass_rate: Optional[float]
    max_value: Optional[float]
    min_value: Optional[float]
    p95_value: Optional[float]
    margin_max: Optional[float]
    sample_count: int
    evidence: FeasibilityEvidence
    population: str = "in_regime"


# ========== Axis conflicts ==========

@dataclass(frozen=True)
class AxisConflict:
    conflict_type: Optional[str]
    axis: str
    weight: Optional[float] = None
    constraint_min: Optional[float] = None
    constraint_max: Optional[float] = None
    lost_raw_sum: Optional[float] = None
    lost_intensity: Optional[float] = None
    sources: Tuple[Dict[str, Any], ...] = ()


@dataclass(frozen=True)
class AxisConflictReport:
    actions: List[str]
    structured_actions: Dict[str, Any]
    evidence: List[Dict[str, Any]]
    confidence: Severity = Severity.LOW


# ========== Variable paths ==========

@dataclass(frozen=True)
class KnownKeys:
    """
    Catalog of context keys.

    nested_keys: root -> allowed keys. A root missing from the mapping
    places no restriction on its nested keys.
    """
    top_level: frozenset
    scalar_keys: frozenset = frozenset()
    nested_keys: Dict[str, frozenset] = field(default_factory=dict)


@dataclass(frozen=True)
class VarPathValidation:
    is_valid: bool
    reason: Optional[VarPathIssue] = None
    suggestion: Optional[str] = None


@dataclass(frozen=True)
class VarPathWarning:
    path: str
    reason: VarPathIssue
    suggestion: str


@dataclass(frozen=True)
class SamplingCoverageVariable:
    variable_path: str
    domain: str
    min: float
    max: float
