"""
Ports - Abstract interfaces for external collaborators.

Ports define the contracts that adapters must implement.
Analyzers check their dependencies against these at construction time,
so a registry or similarity service can be swapped for a fake in tests.
"""

from .registry import PrototypeRegistryPort
from .intensity import PrototypeIntensityPort
from .similarity import EmotionSimilarityPort
from .clauses import ClauseExtractorPort
from .checks import require_port, resolve_logger

__all__ = [
    "PrototypeRegistryPort",
    "PrototypeIntensityPort",
    "EmotionSimilarityPort",
    "ClauseExtractorPort",
    "require_port",
    "resolve_logger",
]
