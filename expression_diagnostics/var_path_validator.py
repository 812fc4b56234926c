"""
Expression Diagnostics — Variable Path Validator

Stateless helpers for dotted context paths ("emotions.joy", "moodAxes.valence"):
validation against a known-keys catalog, sampling-domain lookup, and emotion
reference extraction from an expression's prerequisite logic tree.

Expressions are plain mappings: {"id": ..., "prerequisites": [{"logic": {...}}]}
where logic is a JSON-Logic tree whose leaves reference paths as {"var": "a.b"}.
"""

import re
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from .models import (
    KnownKeys,
    SamplingCoverageVariable,
    VarPathIssue,
    VarPathValidation,
    VarPathWarning,
)

MAX_SUGGESTED_KEYS = 5

EMOTION_PATH_PATTERN = re.compile(r"^(?:previous)?emotions\.(\w+)$", re.IGNORECASE)

UNIT_RANGE = (0.0, 1.0)

# prefix -> canonical domain
DOMAIN_PREFIXES = {
    "emotions": "emotions",
    "previousEmotions": "emotions",
    "moodAxes": "moodAxes",
    "mood": "moodAxes",
    "previousMoodAxes": "moodAxes",
    "previousMood": "moodAxes",
    "sexualStates": "sexualStates",
    "sexual": "sexualStates",
    "previousSexualStates": "sexualStates",
    "previousSexual": "sexualStates",
}


def build_known_context_keys(
    emotion_names: Iterable[str] = (),
    sexual_state_names: Iterable[str] = (),
    mood_axes: Iterable[str] = (),
) -> KnownKeys:
    """Catalog matching the shape of a sampled context."""
    emotions = frozenset(emotion_names)
    sexual = frozenset(sexual_state_names)
    mood = frozenset(mood_axes)
    scalar = frozenset({"sexualArousal", "previousSexualArousal"})
    nested = {
        "emotions": emotions,
        "previousEmotions": emotions,
        "sexualStates": sexual,
        "previousSexualStates": sexual,
        "moodAxes": mood,
        "previousMoodAxes": mood,
    }
    top_level = frozenset(nested) | scalar | {"affectTraits"}
    return KnownKeys(top_level=top_level, scalar_keys=scalar, nested_keys=nested)


def _format_key_list(keys: Iterable[str]) -> str:
    ordered = sorted(keys)
    if not ordered:
        return "(none available)"
    text = ", ".join(ordered[:MAX_SUGGESTED_KEYS])
    if len(ordered) > MAX_SUGGESTED_KEYS:
        text += "..."
    return text


def iter_var_paths(logic: Any) -> Iterator[str]:
    """Yield every {"var": ...} path in a logic tree, depth first."""
    if isinstance(logic, Mapping):
        var = logic.get("var")
        if isinstance(var, str):
            yield var
            return
        if isinstance(var, (list, tuple)) and var and isinstance(var[0], str):
            yield var[0]
            return
        for value in logic.values():
            yield from iter_var_paths(value)
    elif isinstance(logic, (list, tuple)):
        for item in logic:
            yield from iter_var_paths(item)


def _prerequisites(expression: Any) -> List[Any]:
    if not isinstance(expression, Mapping):
        return []
    prereqs = expression.get("prerequisites")
    return list(prereqs) if isinstance(prereqs, (list, tuple)) else []


class VariablePathValidator:
    """Stateless path utility. All methods are pure functions."""

    def __init__(self, mood_axis_range: Tuple[float, float] = (-100.0, 100.0)):
        self.mood_axis_range = (float(mood_axis_range[0]), float(mood_axis_range[1]))

    def validate_var_path(self, path: str, known_keys: KnownKeys) -> VarPathValidation:
        if not isinstance(path, str) or not path:
            return VarPathValidation(
                is_valid=False,
                reason=VarPathIssue.UNKNOWN_ROOT,
                suggestion=f"Variable path must be a non-empty string, got {path!r}",
            )
        parts = path.split(".")
        root = parts[0]

        if not isinstance(known_keys, KnownKeys) or root not in known_keys.top_level:
            top_level = known_keys.top_level if isinstance(known_keys, KnownKeys) else ()
            return VarPathValidation(
                is_valid=False,
                reason=VarPathIssue.UNKNOWN_ROOT,
                suggestion=(
                    f'Unknown root variable "{root}". '
                    f"Valid roots: {_format_key_list(top_level)}"
                ),
            )

        if len(parts) > 1 and root in known_keys.scalar_keys:
            return VarPathValidation(
                is_valid=False,
                reason=VarPathIssue.INVALID_NESTING,
                suggestion=f'"{root}" is a scalar value and cannot have nested properties like "{path}"',
            )

        if len(parts) > 1:
            nested_key = parts[1]
            allowed = known_keys.nested_keys.get(root)
            if allowed is not None and nested_key not in allowed:
                return VarPathValidation(
                    is_valid=False,
                    reason=VarPathIssue.UNKNOWN_NESTED_KEY,
                    suggestion=(
                        f'Unknown key "{nested_key}" in "{root}". '
                        f"Known keys: {_format_key_list(allowed)}"
                    ),
                )

        return VarPathValidation(is_valid=True)

    def validate_expression_var_paths(
        self, expression: Any, known_keys: KnownKeys
    ) -> List[VarPathWarning]:
        """One warning per distinct invalid path, in first-seen order."""
        if not isinstance(known_keys, KnownKeys):
            return []
        warnings: List[VarPathWarning] = []
        seen: Set[str] = set()
        for prereq in _prerequisites(expression):
            logic = prereq.get("logic") if isinstance(prereq, Mapping) else None
            for path in iter_var_paths(logic):
                if path in seen:
                    continue
                seen.add(path)
                result = self.validate_var_path(path, known_keys)
                if not result.is_valid:
                    warnings.append(VarPathWarning(
                        path=path, reason=result.reason, suggestion=result.suggestion,
                    ))
        return warnings

    def domain_for_path(self, path: str) -> Optional[Tuple[str, float, float]]:
        """(domain, min, max) for a recognized numeric path, else None."""
        if not isinstance(path, str):
            return None
        prefix, _, key = path.partition(".")
        domain = DOMAIN_PREFIXES.get(prefix)
        if domain is None or not key:
            return None
        low, high = self.mood_axis_range if domain == "moodAxes" else UNIT_RANGE
        return domain, low, high

    def collect_sampling_coverage_variables(
        self, expression: Any
    ) -> List[SamplingCoverageVariable]:
        """
        Numeric variables referenced by the expression with their sampling range.

        Unrecognized paths are skipped; they may be non-numeric or external.
        """
        found: Dict[str, SamplingCoverageVariable] = {}
        for prereq in _prerequisites(expression):
            for path in iter_var_paths(prereq):
                if path in found:
                    continue
                resolved = self.domain_for_path(path)
                if resolved is None:
                    continue
                domain, low, high = resolved
                found[path] = SamplingCoverageVariable(
                    variable_path=path, domain=domain, min=low, max=high,
                )
        return list(found.values())

    def extract_referenced_emotions(self, expression: Any) -> Set[str]:
        names: Set[str] = set()
        for prereq in _prerequisites(expression):
            for path in iter_var_paths(prereq):
                match = EMOTION_PATH_PATTERN.match(path)
                if match:
                    names.add(match.group(1))
        return names

    @staticmethod
    def filter_emotions(
        all_emotions: Optional[Mapping[str, Any]], referenced_names: Iterable[str]
    ) -> Dict[str, Any]:
        """Project emotion values onto the referenced names; values are untouched."""
        referenced = set(referenced_names or ())
        if not isinstance(all_emotions, Mapping) or not referenced:
            return {}
        return {name: value for name, value in all_emotions.items() if name in referenced}
