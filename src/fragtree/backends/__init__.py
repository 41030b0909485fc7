"""Bundled MIP backends; importing this package registers them."""

from fragtree.backends.base import MIPBackend, SolverState
from fragtree.backends.highs import HighsBackend
from fragtree.backends.pulp_cbc import PulpBackend

__all__ = ["MIPBackend", "SolverState", "HighsBackend", "PulpBackend"]
