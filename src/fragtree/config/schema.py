"""Structured config schema for Hydra and plain mappings."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
import math
from typing import Any, Mapping, Optional

from hydra.core.config_store import ConfigStore

from fragtree.errors import ConfigError

DEFAULT_BACKEND = "highs"
DEFAULT_TOLERANCE = 1e-9


def _as_lower_bound(value: Any) -> float:
    if value is None:
        return -math.inf
    if isinstance(value, bool):
        raise ConfigError(f"solver.lower_bound must be a number, got {value!r}.")
    try:
        bound = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"solver.lower_bound must be a number, got {value!r}.") from exc
    if math.isnan(bound) or bound == math.inf:
        raise ConfigError(f"solver.lower_bound must be finite or -inf, got {value!r}.")
    return bound


def _as_seconds(value: Any, label: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ConfigError(f"{label} must be an integer, got {value!r}.")
    try:
        seconds = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{label} must be an integer, got {value!r}.") from exc
    if seconds < 0:
        raise ConfigError(f"{label} must be >= 0, got {seconds}.")
    return seconds


@dataclass
class SolverConfig:
    """Settings of one colorful subtree computation.

    ``time_limit`` and ``seconds_per_decomposition`` are in seconds, 0 means
    unbounded. ``num_cpus`` is a hint forwarded to backends as a thread count.
    """

    backend: str = DEFAULT_BACKEND
    lower_bound: float = -math.inf
    time_limit: int = 0
    seconds_per_decomposition: int = 0
    num_cpus: int = 1
    warm_start: Optional[str] = None
    tolerance: float = DEFAULT_TOLERANCE

    @classmethod
    def from_mapping(cls, cfg: Optional[Mapping[str, Any]]) -> "SolverConfig":
        if cfg is None:
            return cls()
        if not isinstance(cfg, Mapping):
            raise ConfigError(f"solver config must be a mapping, got {type(cfg)!r}.")
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(cfg) - known)
        if unknown:
            raise ConfigError(f"Unknown solver config keys: {unknown}.")

        backend = cfg.get("backend", DEFAULT_BACKEND)
        if not isinstance(backend, str) or not backend.strip():
            raise ConfigError("solver.backend must be a non-empty string.")
        warm_start = cfg.get("warm_start")
        if warm_start is not None and (not isinstance(warm_start, str) or not warm_start.strip()):
            raise ConfigError("solver.warm_start must be a heuristic name or null.")
        num_cpus = _as_seconds(cfg.get("num_cpus", 1), "solver.num_cpus")
        if num_cpus < 1:
            raise ConfigError("solver.num_cpus must be >= 1.")
        try:
            tolerance = float(cfg.get("tolerance", DEFAULT_TOLERANCE))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"solver.tolerance must be a number, got {cfg.get('tolerance')!r}.") from exc
        if not tolerance > 0:
            raise ConfigError("solver.tolerance must be positive.")
        return cls(
            backend=backend,
            lower_bound=_as_lower_bound(cfg.get("lower_bound")),
            time_limit=_as_seconds(cfg.get("time_limit"), "solver.time_limit"),
            seconds_per_decomposition=_as_seconds(
                cfg.get("seconds_per_decomposition"),
                "solver.seconds_per_decomposition",
            ),
            num_cpus=num_cpus,
            warm_start=warm_start,
            tolerance=tolerance,
        )

    def replace(self, **overrides: Any) -> "SolverConfig":
        payload = self.to_dict()
        payload.update({key: value for key, value in overrides.items() if value is not None})
        return SolverConfig.from_mapping(payload)

    def to_dict(self) -> dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass
class HydraSolverConfig:
    # lower_bound: null means unbounded
    backend: str = DEFAULT_BACKEND
    lower_bound: Optional[float] = None
    time_limit: int = 0
    seconds_per_decomposition: int = 0
    num_cpus: int = 1
    warm_start: Optional[str] = None
    tolerance: float = DEFAULT_TOLERANCE


@dataclass
class AppConfig:
    solver: HydraSolverConfig = field(default_factory=HydraSolverConfig)
    log_level: str = "INFO"


def register_configs() -> None:
    cs = ConfigStore.instance()
    cs.store(group="schema", name="base", node=AppConfig, package="_global_")


__all__ = ["AppConfig", "HydraSolverConfig", "SolverConfig", "register_configs"]
