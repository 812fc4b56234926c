"""
Expression Diagnostics — Variable Path Validator Tests
"""

import pytest

from ..models import VarPathIssue
from ..var_path_validator import VariablePathValidator, build_known_context_keys, iter_var_paths


def _expression(*logic):
    return {"id": "expr", "prerequisites": [{"logic": item} for item in logic]}


@pytest.fixture
def known():
    return build_known_context_keys(
        emotion_names=["joy", "fear"], sexual_state_names=["lust"], mood_axes=["valence"],
    )


@pytest.fixture
def validator():
    return VariablePathValidator()


# ---------------------------------------------------------------------------
# 1. Single paths
# ---------------------------------------------------------------------------

class TestValidatePath:
    def test_valid_nested(self, validator, known):
        assert validator.validate_var_path("emotions.joy", known).is_valid

    def test_valid_scalar(self, validator, known):
        assert validator.validate_var_path("sexualArousal", known).is_valid

    def test_unrestricted_root(self, validator, known):
        """Roots without a key catalog accept any nested key."""
        assert validator.validate_var_path("affectTraits.empathy", known).is_valid

    def test_unknown_root(self, validator, known):
        result = validator.validate_var_path("emotion.joy", known)
        assert result.reason is VarPathIssue.UNKNOWN_ROOT
        assert result.suggestion.startswith('Unknown root variable "emotion".')

    def test_scalar_cannot_nest(self, validator, known):
        result = validator.validate_var_path("sexualArousal.level", known)
        assert result.reason is VarPathIssue.INVALID_NESTING
        assert "is a scalar value" in result.suggestion

    def test_unknown_nested_key(self, validator, known):
        result = validator.validate_var_path("emotions.rage", known)
        assert result.reason is VarPathIssue.UNKNOWN_NESTED_KEY
        assert result.suggestion == 'Unknown key "rage" in "emotions". Known keys: fear, joy'

    def test_key_list_truncated(self, validator):
        known = build_known_context_keys(emotion_names=[f"e{i}" for i in range(7)])
        result = validator.validate_var_path("emotions.rage", known)
        assert result.suggestion.endswith("e0, e1, e2, e3, e4...")

    def test_missing_path(self, validator, known):
        result = validator.validate_var_path(None, known)
        assert not result.is_valid
        assert result.reason is VarPathIssue.UNKNOWN_ROOT
        assert validator.domain_for_path(None) is None

    def test_missing_catalog(self, validator):
        result = validator.validate_var_path("emotions.joy", None)
        assert not result.is_valid
        assert result.reason is VarPathIssue.UNKNOWN_ROOT
        assert result.suggestion == 'Unknown root variable "emotions". Valid roots: (none available)'

    def test_empty_key_list(self, validator):
        known = build_known_context_keys()
        result = validator.validate_var_path("emotions.joy", known)
        assert result.suggestion.endswith("(none available)")


# ---------------------------------------------------------------------------
# 2. Expressions
# ---------------------------------------------------------------------------

class TestExpressions:
    def test_warnings_deduplicated(self, validator, known):
        expr = _expression({"and": [
            {">=": [{"var": "emotions.joy"}, 0.5]},
            {"<": [{"var": "emotion.fear"}, 0.2]},
            {">": [{"var": "emotion.fear"}, 0.1]},
        ]})
        warnings = validator.validate_expression_var_paths(expr, known)
        assert [w.path for w in warnings] == ["emotion.fear"]
        assert warnings[0].reason is VarPathIssue.UNKNOWN_ROOT

    def test_missing_expression(self, validator, known):
        assert validator.validate_expression_var_paths(None, known) == []
        assert validator.validate_expression_var_paths({"id": "x"}, known) == []

    def test_expression_without_catalog(self, validator):
        expr = _expression({">=": [{"var": "emotions.joy"}, 0.5]})
        assert validator.validate_expression_var_paths(expr, None) == []

    def test_var_with_default(self):
        assert list(iter_var_paths({"var": ["emotions.joy", 0]})) == ["emotions.joy"]

    def test_domain_for_path(self, validator):
        assert validator.domain_for_path("moodAxes.valence") == ("moodAxes", -100.0, 100.0)
        assert validator.domain_for_path("emotions.joy") == ("emotions", 0.0, 1.0)
        assert validator.domain_for_path("previousSexualStates.lust")[0] == "sexualStates"
        assert validator.domain_for_path("affectTraits.empathy") is None
        assert validator.domain_for_path("emotions") is None

    def test_sampling_coverage(self, validator):
        expr = _expression(
            {">=": [{"var": "emotions.joy"}, 0.5]},
            {"and": [
                {"<": [{"var": "moodAxes.valence"}, 10]},
                {">": [{"var": "emotions.joy"}, 0.1]},
                {">": [{"var": "affectTraits.empathy"}, 0.1]},
            ]},
        )
        coverage = validator.collect_sampling_coverage_variables(expr)
        assert [(v.variable_path, v.domain) for v in coverage] == [
            ("emotions.joy", "emotions"),
            ("moodAxes.valence", "moodAxes"),
        ]

    def test_referenced_emotions(self, validator):
        expr = _expression({"and": [
            {">=": [{"var": "emotions.joy"}, 0.5]},
            {"<": [{"var": "previousEmotions.fear"}, 0.2]},
            {">": [{"var": "EMOTIONS.awe"}, 0.1]},
            {">": [{"var": "moodAxes.valence"}, 0.1]},
        ]})
        assert validator.extract_referenced_emotions(expr) == {"joy", "fear", "awe"}

    def test_filter_emotions_exact_intersection(self):
        emotions = {"joy": 0.5, "fear": 0.2, "awe": 0.1}
        assert VariablePathValidator.filter_emotions(emotions, {"joy", "rage"}) == {"joy": 0.5}
        assert VariablePathValidator.filter_emotions(None, {"joy"}) == {}
        assert VariablePathValidator.filter_emotions(emotions, set()) == {}

    def test_filter_emotions_non_mapping(self):
        assert VariablePathValidator.filter_emotions(["joy"], {"joy"}) == {}
