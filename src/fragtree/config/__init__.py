"""Configuration schema and loaders."""

from fragtree.config.schema import AppConfig, SolverConfig, register_configs

__all__ = ["AppConfig", "SolverConfig", "register_configs"]
