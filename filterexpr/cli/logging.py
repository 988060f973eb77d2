from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

_LOGGER_NAME = "filterexpr"
_FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True, slots=True)
class PreviousLoggingState:
    level: int
    handlers: list[logging.Handler]
    propagate: bool


def _level_for_verbosity(verbosity: int) -> int:
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def configure_logging(
    *,
    verbosity: int,
    log_file: Path | None,
    enable_file: bool,
) -> PreviousLoggingState:
    """
    Route the package logger to a rich stderr handler (and optionally a file).

    Returns the previous logger state so the caller can restore it on exit.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    previous = PreviousLoggingState(
        level=logger.level,
        handlers=list(logger.handlers),
        propagate=logger.propagate,
    )

    console_level = _level_for_verbosity(verbosity)
    handlers: list[logging.Handler] = []

    console_handler = RichHandler(
        console=Console(file=sys.stderr),
        show_path=False,
        rich_tracebacks=verbosity >= 2,
    )
    console_handler.setLevel(console_level)
    handlers.append(console_handler)

    if enable_file and log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError:
            # Unwritable log location; keep console logging only.
            file_handler = None
        if file_handler is not None:
            file_handler.setLevel(logging.DEBUG if verbosity >= 2 else logging.INFO)
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
            handlers.append(file_handler)

    logger.handlers = handlers
    logger.setLevel(min(h.level for h in handlers))
    logger.propagate = False
    return previous


def restore_logging(previous: PreviousLoggingState) -> None:
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in logger.handlers:
        if handler not in previous.handlers:
            handler.close()
    logger.handlers = previous.handlers
    logger.setLevel(previous.level)
    logger.propagate = previous.propagate
