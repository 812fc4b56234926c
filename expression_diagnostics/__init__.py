"""
Expression Diagnostics v1.0.0

Offline analysis of a behavioral prototype catalog and of the expressions
authored against it:

    - prototype overlap (merge / nest / separate recommendations)
    - non-axis clause feasibility over a sampled context corpus
    - axis sign conflict remediation
    - variable path validation

Every analyzer takes its collaborators by injection; nothing here talks to a
network, a database or the filesystem beyond load_config().
"""

from typing import Any, List, Optional

from .models import (
    OverlapClassification,
    NestingDirection,
    ImplicationRelation,
    GateParseStatus,
    ComparisonOperator,
    FeasibilityClassification,
    ClauseSignal,
    Severity,
    SuggestionType,
    VarPathIssue,
    Prototype,
    CandidateMetrics,
    CandidatePair,
    FilterStats,
    AxisInterval,
    GateImplication,
    BehaviorResult,
    ClassificationResult,
    NearMissResult,
    GateBandSuggestion,
    Recommendation,
    OverlapReport,
    NonAxisClause,
    ClauseFeasibilityResult,
    AxisConflict,
    AxisConflictReport,
    KnownKeys,
    VarPathValidation,
    VarPathWarning,
    SamplingCoverageVariable,
)
from .config import (
    OverlapConfig,
    FeasibilityConfig,
    AxisConflictConfig,
    DiagnosticsConfig,
    load_config,
)
from .gate_constraints import GateImplicationEvaluator, parse_gates, build_axis_intervals
from .intensity_engine import WeightedIntensityCalculator
from .candidate_pair_filter import CandidatePairFilter
from .behavioral_overlap_evaluator import BehavioralOverlapEvaluator
from .overlap_classifier import OverlapClassifier
from .gate_banding import GateBandingSuggestionBuilder
from .recommendation_builder import OverlapRecommendationBuilder
from .prototype_overlap_analyzer import PrototypeOverlapAnalyzer
from .non_axis_feasibility import NonAxisFeasibilityAnalyzer, make_clause_id
from .axis_conflict_analyzer import AxisConflictAnalyzer
from .var_path_validator import VariablePathValidator, build_known_context_keys
from .ports import (
    PrototypeRegistryPort,
    PrototypeIntensityPort,
    EmotionSimilarityPort,
    ClauseExtractorPort,
)
from .ports.checks import LoggerLike

__version__ = "1.0.0"

__all__ = [
    "OverlapClassification",
    "NestingDirection",
    "ImplicationRelation",
    "GateParseStatus",
    "ComparisonOperator",
    "FeasibilityClassification",
    "ClauseSignal",
    "Severity",
    "SuggestionType",
    "VarPathIssue",
    "Prototype",
    "CandidateMetrics",
    "CandidatePair",
    "FilterStats",
    "AxisInterval",
    "GateImplication",
    "BehaviorResult",
    "ClassificationResult",
    "NearMissResult",
    "GateBandSuggestion",
    "Recommendation",
    "OverlapReport",
    "NonAxisClause",
    "ClauseFeasibilityResult",
    "AxisConflict",
    "AxisConflictReport",
    "KnownKeys",
    "VarPathValidation",
    "VarPathWarning",
    "SamplingCoverageVariable",
    "OverlapConfig",
    "FeasibilityConfig",
    "AxisConflictConfig",
    "DiagnosticsConfig",
    "load_config",
    "GateImplicationEvaluator",
    "parse_gates",
    "build_axis_intervals",
    "WeightedIntensityCalculator",
    "CandidatePairFilter",
    "BehavioralOverlapEvaluator",
    "OverlapClassifier",
    "GateBandingSuggestionBuilder",
    "OverlapRecommendationBuilder",
    "PrototypeOverlapAnalyzer",
    "NonAxisFeasibilityAnalyzer",
    "make_clause_id",
    "AxisConflictAnalyzer",
    "VariablePathValidator",
    "build_known_context_keys",
    "PrototypeRegistryPort",
    "PrototypeIntensityPort",
    "EmotionSimilarityPort",
    "ClauseExtractorPort",
    "analyze_prototype_overlap",
    "analyze_clause_feasibility",
]


def analyze_prototype_overlap(
    registry: PrototypeRegistryPort,
    contexts: List[Any],
    prototype_family: Optional[str] = None,
    config: Optional[OverlapConfig] = None,
    logger: Optional[LoggerLike] = None,
) -> OverlapReport:
    """
    Primary entry point for redundancy analysis.

    Wires the default pipeline (weighted intensity, stock filter, classifier,
    banding and recommendation builders) around the given registry.
    """
    analyzer = PrototypeOverlapAnalyzer.create(registry, config=config, logger=logger)
    return analyzer.analyze(contexts, prototype_family=prototype_family)


def analyze_clause_feasibility(
    clauses: List[NonAxisClause],
    contexts: List[Any],
    config: Optional[FeasibilityConfig] = None,
    logger: Optional[LoggerLike] = None,
) -> List[ClauseFeasibilityResult]:
    """Classify each clause's reachability over the sampled corpus."""
    return NonAxisFeasibilityAnalyzer(config=config, logger=logger).analyze(clauses, contexts)
