"""
Similarity Port - Abstract interface for emotion substitution lookups.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class EmotionSimilarityPort(ABC):

    @abstractmethod
    def find_emotions_with_compatible_axis_sign(
        self, axis: str, sign: int
    ) -> List[Dict[str, Any]]:
        """
        Emotions whose weight on `axis` has the given sign.

        Args:
            axis: Axis name, e.g. "threat"
            sign: +1 or -1

        Returns:
            [{"emotion_name": str, "axis_weight": float}, ...], strongest first
        """
        pass
