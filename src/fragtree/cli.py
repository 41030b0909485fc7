"""CLI entry point."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Optional, Sequence

import yaml

from fragtree.batch import solve_batch
from fragtree.config.schema import SolverConfig
from fragtree.errors import FragtreeError
from fragtree.hydra_utils import (
    DEFAULT_CONFIG_NAME,
    DEFAULT_CONFIG_PATH,
    compose_config,
    format_config,
    load_config,
    load_log_level,
    solver_config_from,
)
from fragtree.io_utils import read_graph, write_json_atomic
from fragtree.logging_utils import (
    DEFAULT_LOGGER_NAME,
    configure_logging,
    log_elapsed,
    log_exception,
    resolve_log_level,
    run_with_error_handling,
)
from fragtree.registry import BACKEND, HEURISTIC, describe
from fragtree.solver import ColorfulSubtreeSolver, SolveResult

logger = logging.getLogger(__name__)


def _register_help_subcommand(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    parser: argparse.ArgumentParser,
) -> None:
    def _handler(_args: argparse.Namespace) -> None:
        parser.print_help()

    help_parser = subparsers.add_parser(
        "help",
        help="Show top-level help.",
        description="Show top-level help.",
    )
    help_parser.set_defaults(handler=_handler)


def _cfg_handler(args: argparse.Namespace) -> None:
    cfg = compose_config(
        config_path=args.config_path,
        config_name=args.config_name,
        overrides=args.overrides,
    )
    if args.solver:
        settings = solver_config_from(cfg).to_dict()
        print(yaml.safe_dump(settings, default_flow_style=False, sort_keys=False), end="")
        return
    print(format_config(cfg), end="")


def _register_cfg_subcommand(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    cfg_parser = subparsers.add_parser(
        "cfg",
        help="Compose and print Hydra config.",
        description="Compose and print Hydra config.",
    )
    cfg_parser.add_argument(
        "--config-path",
        default=DEFAULT_CONFIG_PATH,
        help="Path to the Hydra config directory.",
    )
    cfg_parser.add_argument(
        "--config-name",
        default=DEFAULT_CONFIG_NAME,
        help="Hydra config name (without extension).",
    )
    cfg_parser.add_argument(
        "--solver",
        action="store_true",
        help="Print the validated solver settings instead of the raw config.",
    )
    cfg_parser.add_argument(
        "overrides",
        nargs=argparse.REMAINDER,
        help="Hydra overrides (ex: solver.backend=pulp solver.time_limit=60).",
    )
    cfg_parser.set_defaults(handler=_cfg_handler)


def _solver_config(args: argparse.Namespace) -> SolverConfig:
    config = load_config(args.config) if args.config else SolverConfig()
    return config.replace(
        backend=args.backend,
        lower_bound=args.lower_bound,
        time_limit=args.time_limit,
        num_cpus=args.num_cpus,
        warm_start=args.warm_start,
    )


def _apply_config_log_level(args: argparse.Namespace) -> None:
    if not args.config or args.verbose:
        return
    level = load_log_level(args.config)
    if level is not None:
        logging.getLogger(DEFAULT_LOGGER_NAME).setLevel(resolve_log_level(level))


def _result_payload(path: Path, result: object) -> dict[str, object]:
    if isinstance(result, Exception):
        return {"graph": str(path), "status": "error", "error": str(result)}
    if not isinstance(result, SolveResult):
        raise TypeError(f"Unexpected solve result for {path}: {type(result).__name__}.")
    if result.tree is None:
        return {
            "graph": str(path),
            "status": type(result).__name__.lower(),
            "reason": getattr(result, "reason", ""),
        }
    return {
        "graph": str(path),
        "status": "optimal",
        "score": result.score,
        "tree": result.tree.to_dict(),
    }


def _solve_handler(args: argparse.Namespace) -> None:
    _apply_config_log_level(args)
    config = _solver_config(args)
    paths = [Path(item) for item in args.graphs]
    graphs = [read_graph(path) for path in paths]
    with log_elapsed(logger, f"Solving {len(graphs)} graph(s)"):
        if len(graphs) == 1:
            results: list[object] = [
                ColorfulSubtreeSolver.from_config(graphs[0], config).solve()
            ]
        else:
            results = list(solve_batch(graphs, config, max_workers=args.workers))
    payload = [_result_payload(path, result) for path, result in zip(paths, results)]
    if args.output:
        write_json_atomic(Path(args.output), payload if len(payload) > 1 else payload[0])
        return
    for entry in payload:
        if entry["status"] == "optimal":
            print(json.dumps(entry, indent=2, sort_keys=True))
        else:
            print(f"{entry['graph']}: no solution ({entry['status']})")


def _register_solve_subcommand(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    solve_parser = subparsers.add_parser(
        "solve",
        help="Compute optimal colorful subtrees of fragmentation graphs.",
        description="Compute optimal colorful subtrees of fragmentation graphs.",
    )
    solve_parser.add_argument(
        "graphs",
        nargs="+",
        help="Graph files (JSON or YAML).",
    )
    solve_parser.add_argument("--config", default=None, help="Solver config YAML.")
    solve_parser.add_argument("--backend", default=None, help="MIP backend name.")
    solve_parser.add_argument(
        "--lower-bound",
        type=float,
        default=None,
        help="Discard trees scoring below this value.",
    )
    solve_parser.add_argument(
        "--time-limit",
        type=int,
        default=None,
        help="Seconds per graph (0: unbounded).",
    )
    solve_parser.add_argument(
        "--num-cpus",
        type=int,
        default=None,
        help="Threads per solve handed to the backend.",
    )
    solve_parser.add_argument(
        "--warm-start",
        default=None,
        help="Heuristic used to seed the MIP (ex: greedy).",
    )
    solve_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel solves when several graphs are given (default: CPU count).",
    )
    solve_parser.add_argument("--output", default=None, help="Write results to this JSON file.")
    solve_parser.set_defaults(handler=_solve_handler)


def _backends_handler(args: argparse.Namespace) -> None:
    for kind in (BACKEND, HEURISTIC):
        for name, summary in describe(kind).items():
            print(f"{kind}\t{name}\t{summary}")


def _register_backends_subcommand(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    backends_parser = subparsers.add_parser(
        "backends",
        help="List registered MIP backends and heuristics.",
        description="List registered MIP backends and heuristics.",
    )
    backends_parser.set_defaults(handler=_backends_handler)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fragtree",
        description="Optimal colorful subtrees of fragmentation graphs.",
    )
    parser.add_argument(
        "--traceback",
        action="store_true",
        help="Show full traceback on errors.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log solver progress at debug level.",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    _register_help_subcommand(subparsers, parser)
    _register_cfg_subcommand(subparsers)
    _register_solve_subcommand(subparsers)
    _register_backends_subcommand(subparsers)
    return parser


def _cli_main(
    *,
    cli_logger: logging.Logger,
    argv: Optional[Sequence[str]] = None,
) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        raise SystemExit(2)
    if args.verbose:
        cli_logger.setLevel(logging.DEBUG)
    try:
        args.handler(args)
    except FragtreeError as exc:
        log_exception(cli_logger, exc, show_traceback=args.traceback)
        raise SystemExit(1) from None


def main() -> None:
    """Entry point with standard logging/error handling."""
    logger = configure_logging()
    run_with_error_handling(_cli_main, logger=logger, cli_logger=logger)


if __name__ == "__main__":
    main()
