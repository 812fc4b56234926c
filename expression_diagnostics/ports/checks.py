"""
Construction-time dependency checks shared by every analyzer.
"""

import logging
from typing import Optional, Type, TypeVar, Union

T = TypeVar("T")

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


def require_port(dependency: Optional[T], port: Type[T], name: str, owner: str) -> T:
    """
    Fail fast on a missing or wrongly-typed dependency.

    Raises:
        ValueError: dependency is None
        TypeError: dependency does not implement `port`
    """
    if dependency is None:
        raise ValueError(f"{owner} requires {name}")
    if not isinstance(dependency, port):
        raise TypeError(
            f"{owner}: {name} must implement {port.__name__}, "
            f"got {type(dependency).__name__}"
        )
    return dependency


def resolve_logger(logger: Optional[LoggerLike], owner: str) -> LoggerLike:
    """Injected logger, or the component's own stdlib logger."""
    if logger is None:
        return logging.getLogger(f"expression_diagnostics.{owner}")
    if not isinstance(logger, (logging.Logger, logging.LoggerAdapter)):
        raise TypeError(
            f"{owner}: logger must be a logging.Logger, got {type(logger).__name__}"
        )
    return logger
