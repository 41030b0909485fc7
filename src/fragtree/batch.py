"""Run independent colorful subtree computations in parallel."""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ProcessPoolExecutor
import logging
import os
from typing import Optional, Union

from fragtree.config.schema import SolverConfig
from fragtree.graph import FragmentationGraph
from fragtree.logging_utils import log_elapsed
from fragtree.solver import SolveResult, solve_colorful_subtree

logger = logging.getLogger(__name__)

BatchOutcome = Union[SolveResult, Exception]


def _solve_one(graph: FragmentationGraph, config: SolverConfig) -> SolveResult:
    with log_elapsed(logger, f"Graph with {graph.number_of_edges()} losses"):
        return solve_colorful_subtree(graph, config)


def default_workers(config: SolverConfig) -> int:
    cpus = os.cpu_count() or 1
    return max(cpus // max(config.num_cpus, 1), 1)


def solve_batch(
    graphs: Sequence[FragmentationGraph],
    config: Optional[SolverConfig] = None,
    *,
    max_workers: Optional[int] = None,
) -> list[BatchOutcome]:
    """Solve every graph, returning results in input order.

    A failing computation shows up as its exception in the result list and
    does not cancel the others.
    """
    config = config or SolverConfig()
    if not graphs:
        return []
    workers = max_workers or default_workers(config)
    logger.info("Solving %d graphs with %d workers.", len(graphs), workers)
    outcomes: list[BatchOutcome] = []
    with ProcessPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_solve_one, graph, config) for graph in graphs]
        for position, future in enumerate(futures):
            try:
                outcomes.append(future.result())
            except Exception as exc:
                logger.error("Graph %d failed: %s", position, exc)
                outcomes.append(exc)
    return outcomes


__all__ = ["BatchOutcome", "default_workers", "solve_batch"]
