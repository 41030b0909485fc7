"""Hydra config composition and solver config loading."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Optional, Union

from hydra import compose, initialize_config_dir
from hydra.core.global_hydra import GlobalHydra
from omegaconf import OmegaConf
import yaml

from fragtree.config.schema import SolverConfig, register_configs
from fragtree.errors import ConfigError
from fragtree.io_utils import read_yaml_payload

DEFAULT_CONFIG_PATH = "configs"
DEFAULT_CONFIG_NAME = "default"


def _normalize_config_name(config_name: str) -> str:
    if config_name.endswith((".yaml", ".yml")):
        return Path(config_name).stem
    return config_name


def compose_config(
    *,
    config_path: Union[Path, str] = DEFAULT_CONFIG_PATH,
    config_name: str = DEFAULT_CONFIG_NAME,
    overrides: Optional[Sequence[str]] = None,
) -> Any:
    register_configs()
    config_dir = Path(config_path)
    if not config_dir.is_absolute():
        config_dir = (Path.cwd() / config_dir).resolve()
    if not config_dir.exists():
        raise ConfigError(f"Config directory not found: {config_dir}")
    if GlobalHydra.instance().is_initialized():
        GlobalHydra.instance().clear()
    with initialize_config_dir(config_dir=str(config_dir), version_base=None):
        return compose(
            config_name=_normalize_config_name(config_name),
            overrides=[item for item in overrides or [] if item and item != "--"],
        )


def resolve_config(cfg: Any) -> dict[str, Any]:
    if not OmegaConf.is_config(cfg):
        if isinstance(cfg, Mapping):
            return dict(cfg)
        raise ConfigError("Config must be a mapping or an OmegaConf object.")
    resolved = OmegaConf.to_container(
        cfg,
        resolve=True,
        throw_on_missing=False,
    )
    if not isinstance(resolved, dict):
        raise ConfigError("Resolved config must be a mapping.")
    return resolved


def format_config(cfg: Any) -> str:
    return OmegaConf.to_yaml(cfg, resolve=True)


def solver_config_from(cfg: Any) -> SolverConfig:
    """Extract a :class:`SolverConfig` from a composed or loaded config.

    Accepts either a full app config with a ``solver`` section or the
    solver section itself.
    """
    resolved = resolve_config(cfg)
    section = resolved.get("solver", resolved)
    if section is None:
        section = {}
    if isinstance(section, Mapping):
        section = {key: value for key, value in section.items() if key != "log_level"}
    return SolverConfig.from_mapping(section)


def _read_config_file(path: Union[str, Path]) -> Mapping[str, Any]:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")
    try:
        payload = read_yaml_payload(path)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load config from {path}: {exc}") from exc
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ConfigError(f"Config {path} must contain a mapping.")
    return payload


def log_level_from(cfg: Any) -> Optional[str]:
    """Top-level ``log_level`` of a composed or loaded config, if any."""
    level = resolve_config(cfg).get("log_level")
    return None if level is None else str(level)


def load_config(path: Union[str, Path]) -> SolverConfig:
    return solver_config_from(_read_config_file(path))


def load_log_level(path: Union[str, Path]) -> Optional[str]:
    return log_level_from(_read_config_file(path))


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_CONFIG_NAME",
    "compose_config",
    "resolve_config",
    "format_config",
    "solver_config_from",
    "log_level_from",
    "load_config",
    "load_log_level",
]
