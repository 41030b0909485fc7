"""Error hierarchy for fragtree."""

from __future__ import annotations

from typing import Any, Mapping, Optional


class FragtreeError(Exception):
    """Base exception for fragtree failures."""

    def __init__(
        self,
        message: str,
        *,
        user_message: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.user_message = message if user_message is None else user_message
        self.context = dict(context) if context else {}

    def log_message(self) -> str:
        if not self.context:
            return str(self)
        return f"{self}: {self.context}"


class ConfigError(FragtreeError):
    """Configuration loading or validation error."""


class GraphError(FragtreeError):
    """Malformed fragmentation graph."""


class BackendError(FragtreeError):
    """Backend registration or execution error."""


class SolverError(FragtreeError):
    """A colorful subtree computation failed."""


class ConsistencyError(SolverError):
    """Solver output or model state violates an internal invariant.

    Raised when the verifier disagrees with the backend score, when the
    reconstructed tree is not a tree, or when a model is used before it
    was built. These always indicate a bug in the model, the edge index or
    a backend adapter and are never turned into a "no solution" result.
    """


__all__ = [
    "FragtreeError",
    "ConfigError",
    "GraphError",
    "BackendError",
    "SolverError",
    "ConsistencyError",
]
