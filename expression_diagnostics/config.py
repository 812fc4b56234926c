"""
Expression Diagnostics — Configuration

All numeric cut points used by the classifiers and severity scoring live here
so they can be tuned without touching analyzer logic.

Load order for load_config():
    1. explicit path argument
    2. EXPRESSION_DIAGNOSTICS_CONFIG environment variable
    3. defaults
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Tuple

CONFIG_ENV_VAR = "EXPRESSION_DIAGNOSTICS_CONFIG"


def _env(k, d=None):
    v = os.getenv(k)
    return v if v and v.strip() else d


def _check_probability(owner: str, name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{owner}.{name} must be in [0, 1], got {value}")


def _check_correlation(owner: str, name: str, value: float) -> None:
    if not -1.0 <= value <= 1.0:
        raise ValueError(f"{owner}.{name} must be in [-1, 1], got {value}")


def _check_positive_int(owner: str, name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{owner}.{name} must be a positive integer, got {value!r}")


def _check_positive(owner: str, name: str, value: float) -> None:
    if not value > 0:
        raise ValueError(f"{owner}.{name} must be > 0, got {value}")


@dataclass
class OverlapConfig:
    """Thresholds for candidate filtering, behavioral evaluation and classification."""
    # Candidate filter (Stage A)
    active_axis_epsilon: float = 0.08
    candidate_min_active_axis_overlap: float = 0.6
    candidate_min_sign_agreement: float = 0.8
    candidate_min_cosine_similarity: float = 0.85
    max_candidate_pairs: int = 5000

    # Behavioral evaluation (Stage B)
    sample_count_per_pair: int = 8000
    divergence_examples_k: int = 5
    dominance_delta: float = 0.05
    high_coactivation_thresholds: Tuple[float, ...] = (0.4, 0.6, 0.8)
    mood_axis_scale: float = 100.0
    trait_axis_scale: float = 100.0

    # Classification
    min_on_either_rate_for_merge: float = 0.05
    min_gate_overlap_ratio: float = 0.9
    min_correlation_for_merge: float = 0.98
    max_mean_abs_diff_for_merge: float = 0.03
    min_dominance_for_subsumption: float = 0.95
    nested_conditional_threshold: float = 0.97
    min_correlation_for_nesting: float = 0.5
    separation_min_gate_overlap_ratio: float = 0.7
    separation_min_correlation: float = 0.8
    negligible_on_both_rate: float = 0.01

    # Near misses and ranking
    near_miss_correlation_threshold: float = 0.9
    near_miss_gate_overlap_ratio: float = 0.75
    max_near_miss_pairs_to_report: int = 10
    composite_weights: Dict[str, float] = field(default_factory=lambda: {
        "gate_overlap": 0.5,
        "correlation": 0.3,
        "global_diff": 0.2,
    })

    def __post_init__(self):
        owner = "OverlapConfig"
        for name in (
            "candidate_min_active_axis_overlap",
            "candidate_min_sign_agreement",
            "min_on_either_rate_for_merge",
            "min_gate_overlap_ratio",
            "min_dominance_for_subsumption",
            "nested_conditional_threshold",
            "separation_min_gate_overlap_ratio",
            "negligible_on_both_rate",
            "near_miss_gate_overlap_ratio",
        ):
            _check_probability(owner, name, getattr(self, name))
        for name in (
            "candidate_min_cosine_similarity",
            "min_correlation_for_merge",
            "min_correlation_for_nesting",
            "separation_min_correlation",
            "near_miss_correlation_threshold",
        ):
            _check_correlation(owner, name, getattr(self, name))
        for name in (
            "max_candidate_pairs",
            "sample_count_per_pair",
            "divergence_examples_k",
            "max_near_miss_pairs_to_report",
        ):
            _check_positive_int(owner, name, getattr(self, name))
        for name in (
            "active_axis_epsilon",
            "dominance_delta",
            "max_mean_abs_diff_for_merge",
            "mood_axis_scale",
            "trait_axis_scale",
        ):
            _check_positive(owner, name, getattr(self, name))

        self.high_coactivation_thresholds = tuple(self.high_coactivation_thresholds)
        for t in self.high_coactivation_thresholds:
            _check_probability(owner, "high_coactivation_thresholds", t)
        for key, weight in self.composite_weights.items():
            _check_probability(owner, f"composite_weights[{key}]", weight)


@dataclass
class FeasibilityConfig:
    """Cut points for non-axis clause reachability."""
    rare_pass_rate_ceiling: float = 0.0005
    mood_axis_range: Tuple[float, float] = (-100.0, 100.0)

    def __post_init__(self):
        _check_probability("FeasibilityConfig", "rare_pass_rate_ceiling",
                           self.rare_pass_rate_ceiling)
        self.mood_axis_range = tuple(self.mood_axis_range)
        if len(self.mood_axis_range) != 2 or self.mood_axis_range[0] >= self.mood_axis_range[1]:
            raise ValueError(
                f"FeasibilityConfig.mood_axis_range must be (min, max) with min < max, "
                f"got {self.mood_axis_range}"
            )


@dataclass
class AxisConflictConfig:
    """Severity and confidence cut points for axis sign conflicts."""
    severity_high_ratio: float = 0.3
    severity_medium_ratio: float = 0.15
    impact_high: float = 0.2
    impact_medium: float = 0.1
    max_conflicts_in_evidence: int = 3
    max_alternative_emotions: int = 3
    confidence_high_samples: int = 500
    confidence_medium_samples: int = 200

    def __post_init__(self):
        owner = "AxisConflictConfig"
        if self.severity_medium_ratio > self.severity_high_ratio:
            raise ValueError(
                f"{owner}.severity_medium_ratio ({self.severity_medium_ratio}) must not "
                f"exceed severity_high_ratio ({self.severity_high_ratio})"
            )
        if self.impact_medium > self.impact_high:
            raise ValueError(
                f"{owner}.impact_medium ({self.impact_medium}) must not exceed "
                f"impact_high ({self.impact_high})"
            )
        for name in (
            "max_conflicts_in_evidence",
            "max_alternative_emotions",
            "confidence_high_samples",
            "confidence_medium_samples",
        ):
            _check_positive_int(owner, name, getattr(self, name))


_SECTIONS = {
    "overlap": OverlapConfig,
    "feasibility": FeasibilityConfig,
    "axis_conflict": AxisConflictConfig,
}


@dataclass
class DiagnosticsConfig:
    overlap: OverlapConfig = field(default_factory=OverlapConfig)
    feasibility: FeasibilityConfig = field(default_factory=FeasibilityConfig)
    axis_conflict: AxisConflictConfig = field(default_factory=AxisConflictConfig)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "DiagnosticsConfig":
        """
        Build from a nested ({"overlap": {...}}) or flat mapping.

        Flat keys are routed to whichever section declares them.
        Unknown keys raise ValueError.
        """
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"config must be a mapping, got {type(data).__name__}")

        buckets: Dict[str, Dict[str, Any]] = {name: {} for name in _SECTIONS}
        owners = {
            f.name: section
            for section, section_cls in _SECTIONS.items()
            for f in fields(section_cls)
        }
        for key, value in data.items():
            if key in _SECTIONS:
                if not isinstance(value, Mapping):
                    raise ValueError(f"config section '{key}' must be a mapping")
                buckets[key].update(value)
            elif key in owners:
                buckets[owners[key]][key] = value
            else:
                raise ValueError(f"Unknown config key: '{key}'")

        kwargs = {}
        for section, section_cls in _SECTIONS.items():
            known = {f.name for f in fields(section_cls)}
            unknown = set(buckets[section]) - known
            if unknown:
                raise ValueError(
                    f"Unknown keys in config section '{section}': {', '.join(sorted(unknown))}"
                )
            kwargs[section] = section_cls(**buckets[section])
        return cls(**kwargs)


def load_config(path: Optional[str] = None) -> DiagnosticsConfig:
    """Load configuration from a JSON file, the env var, or defaults."""
    path = path or _env(CONFIG_ENV_VAR)
    if not path:
        return DiagnosticsConfig()
    with open(path, "r", encoding="utf-8") as fh:
        raw = json.load(fh)
    return DiagnosticsConfig.from_dict(raw)
