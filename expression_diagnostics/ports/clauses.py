"""
Clause Extractor Port - Abstract interface for non-axis clause extraction.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..models import NonAxisClause


class ClauseExtractorPort(ABC):

    @abstractmethod
    def extract(self, expression: Dict[str, Any]) -> List[NonAxisClause]:
        """All non-axis clauses in the expression's prerequisite tree."""
        pass
