"""
Intensity Port - Abstract interface for per-context prototype evaluation.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..models import Prototype


class PrototypeIntensityPort(ABC):
    """Evaluates a prototype's gates and intensity against one sampled context."""

    @abstractmethod
    def gates_pass(self, prototype: Prototype, context: Dict[str, Any]) -> bool:
        """True when every parseable gate of the prototype holds."""
        pass

    @abstractmethod
    def compute_intensity(self, prototype: Prototype, context: Dict[str, Any]) -> float:
        """Ungated intensity in [0, 1]."""
        pass

    @abstractmethod
    def resolve_axis(self, axis: str, context: Dict[str, Any]) -> Optional[float]:
        """Normalized axis value, or None when the context has no value for it."""
        pass
