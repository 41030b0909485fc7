"""Logging setup and error reporting for the fragtree CLI and batch runs."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
import logging
import time
from typing import Any, TypeVar, Union

from fragtree.errors import ConfigError, FragtreeError

DEFAULT_LOGGER_NAME = "fragtree"
DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_T = TypeVar("_T")

LevelLike = Union[int, str]


def resolve_log_level(level: LevelLike) -> int:
    """Accept numeric levels and level names as written in solver configs."""
    if isinstance(level, int):
        return level
    name = str(level).strip().upper()
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        raise ConfigError(f"Unknown log level: {level!r}.")
    return resolved


def configure_logging(
    level: LevelLike = DEFAULT_LOG_LEVEL,
    *,
    verbose: bool = False,
    logger_name: str = DEFAULT_LOGGER_NAME,
    fmt: str = DEFAULT_LOG_FORMAT,
    force: bool = False,
) -> logging.Logger:
    """Install a stderr handler and return the package logger.

    ``verbose`` lowers the package logger to DEBUG regardless of ``level``
    so backend progress and model sizes become visible.
    """
    numeric = logging.DEBUG if verbose else resolve_log_level(level)
    logging.basicConfig(level=numeric, format=fmt, force=force)
    logger = logging.getLogger(logger_name)
    logger.setLevel(numeric)
    return logger


def get_user_message(exc: BaseException) -> str:
    if isinstance(exc, FragtreeError):
        return exc.user_message
    return f"Unexpected error: {exc}"


def log_exception(
    logger: logging.Logger,
    exc: BaseException,
    *,
    show_traceback: bool = False,
) -> str:
    user_message = get_user_message(exc)
    logger.error(user_message)
    if isinstance(exc, FragtreeError) and exc.context:
        logger.debug("Error context: %s", exc.log_message())
    logger.log(
        logging.ERROR if show_traceback else logging.DEBUG,
        "Detailed traceback:",
        exc_info=exc,
    )
    return user_message


@contextmanager
def log_elapsed(logger: logging.Logger, label: str) -> Iterator[None]:
    """Log how long the enclosed block took, also when it raises."""
    start_clock = time.perf_counter()
    try:
        yield
    finally:
        logger.debug("%s took %.3f s.", label, time.perf_counter() - start_clock)


def run_with_error_handling(
    func: Callable[..., _T],
    *args: Any,
    logger: logging.Logger,
    show_traceback: bool = False,
    **kwargs: Any,
) -> _T:
    try:
        return func(*args, **kwargs)
    except Exception as exc:
        log_exception(logger, exc, show_traceback=show_traceback)
        raise


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_LOG_FORMAT",
    "resolve_log_level",
    "configure_logging",
    "get_user_message",
    "log_exception",
    "log_elapsed",
    "run_with_error_handling",
]
