"""Named factories for MIP backends and warm start heuristics.

Backends and heuristics register a class (or any zero-argument-capable
callable) under a short name; the solver instantiates a fresh object per
solve, so registered entries never carry solve state.
"""

from __future__ import annotations

import builtins
from collections.abc import Callable, Iterable
from typing import Any, Optional

from fragtree.errors import BackendError

BACKEND = "backend"
HEURISTIC = "heuristic"
DEFAULT_KINDS = (BACKEND, HEURISTIC)

Factory = Callable[..., Any]


def _require_name(label: str, value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise TypeError(f"{label} must be a non-empty string.")
    return value


def _choices(names: Iterable[str]) -> str:
    return ", ".join(sorted(names)) or "<none>"


def _summary(factory: Factory) -> str:
    doc = getattr(factory, "__doc__", None) or ""
    lines = [line.strip() for line in doc.strip().splitlines()]
    return lines[0] if lines else ""


class Registry:
    """Factories grouped by kind, then by name."""

    def __init__(self, kinds: Iterable[str] = DEFAULT_KINDS) -> None:
        self._factories: dict[str, dict[str, Factory]] = {
            _require_name("kind", kind): {} for kind in kinds
        }

    def _kind(self, kind: str) -> dict[str, Factory]:
        try:
            return self._factories[_require_name("kind", kind)]
        except KeyError:
            raise KeyError(
                f"Unknown registry kind: {kind!r}. Available kinds: {_choices(self._factories)}."
            ) from None

    def register(
        self,
        kind: str,
        name: str,
        factory: Factory,
        *,
        overwrite: bool = False,
    ) -> None:
        entries = self._kind(kind)
        name = _require_name("name", name)
        if not callable(factory):
            raise TypeError(f"{kind} {name!r} must be registered with a callable factory.")
        if name in entries and not overwrite:
            raise ValueError(
                f"{kind} {name!r} is already registered; use overwrite=True to replace."
            )
        entries[name] = factory

    def get(self, kind: str, name: str) -> Factory:
        entries = self._kind(kind)
        try:
            return entries[_require_name("name", name)]
        except KeyError:
            raise KeyError(
                f"{kind} {name!r} is not registered. Available: {_choices(entries)}."
            ) from None

    def list(self, kind: str) -> list[str]:
        return sorted(self._kind(kind))

    def describe(self, kind: str) -> dict[str, str]:
        """First docstring line of every factory of ``kind``, by name."""
        return {name: _summary(factory) for name, factory in sorted(self._kind(kind).items())}


_DEFAULT_REGISTRY = Registry()


def register(kind: str, name: str, factory: Factory, *, overwrite: bool = False) -> None:
    _DEFAULT_REGISTRY.register(kind, name, factory, overwrite=overwrite)


def get(kind: str, name: str) -> Factory:
    return _DEFAULT_REGISTRY.get(kind, name)


def list(kind: str) -> builtins.list[str]:
    return _DEFAULT_REGISTRY.list(kind)


def describe(kind: str) -> dict[str, str]:
    return _DEFAULT_REGISTRY.describe(kind)


def _resolve(kind: str, name: str, registry: Optional[Registry]) -> Factory:
    registry = registry or _DEFAULT_REGISTRY
    try:
        return registry.get(kind, name)
    except KeyError as exc:
        raise BackendError(
            f"{kind.capitalize()} {name!r} is not registered. "
            f"Available: {_choices(registry.list(kind))}.",
            context={"kind": kind},
        ) from exc


def resolve_backend(name: str, *, registry: Optional[Registry] = None) -> Factory:
    return _resolve(BACKEND, name, registry)


def resolve_heuristic(name: str, *, registry: Optional[Registry] = None) -> Factory:
    return _resolve(HEURISTIC, name, registry)


__all__ = [
    "BACKEND",
    "HEURISTIC",
    "DEFAULT_KINDS",
    "Registry",
    "register",
    "get",
    "list",
    "describe",
    "resolve_backend",
    "resolve_heuristic",
]
