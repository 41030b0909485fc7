"""Optimal colorful subtrees of fragmentation graphs."""

__version__ = "0.1.0"

__all__ = ["__version__"]
