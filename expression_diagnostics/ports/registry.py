"""
Registry Port - Abstract interface for the prototype catalog.

The catalog is authored and validated elsewhere; the engine only reads it.
"""

from abc import ABC, abstractmethod
from typing import List

from ..models import Prototype


class PrototypeRegistryPort(ABC):
    """Read-only access to prototype records."""

    @abstractmethod
    def get_all_prototypes(self) -> List[Prototype]:
        """Every prototype in the catalog, all families."""
        pass

    @abstractmethod
    def get_prototypes_by_type(self, prototype_type: str) -> List[Prototype]:
        """
        Prototypes of one family.

        Args:
            prototype_type: Family tag, e.g. "emotion" or "sexual"

        Returns:
            Possibly empty list; unknown families are not an error.
        """
        pass
