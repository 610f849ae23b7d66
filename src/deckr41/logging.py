"""Logging for deckr41.

Each subsystem logs through a child of the `deckr41` logger, e.g.
get_logger("rc_nodes.tree"), and its lines are tagged `[D41:rc_nodes.tree]`.

Records go to the file named by `logging.file` or D41_LOG. Without a
file they are rendered by rich on an interactive stderr, and nothing is
installed otherwise since editors read the process's stderr.

Verbosity (`logging.verbose`, `deckr41 -v N`):
    0 error, 1 warn, 2 info, 3 verbose, 4 trace
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from deckr41.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

ROOT_NAME = "deckr41"
NAMESPACE = "D41"
LOG_FILE_ENV = "D41_LOG"

FILE_FORMAT = "%(asctime)s %(label)s [%(namespace)s] %(message)s"
CONSOLE_FORMAT = "[%(namespace)s] %(message)s"

logger = logging.getLogger(ROOT_NAME)

_VERBOSITY = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)

_LEVEL_NAMES = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "verbose": VERBOSE,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_LABELS = {
    TRACE: "trace",
    logging.DEBUG: "debug",
    VERBOSE: "verbose",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}

_initialized = False


def namespace_for(name: str) -> str:
    """`deckr41.backend.job` -> `D41:backend.job`; the root is just `D41`."""
    if name == ROOT_NAME:
        return NAMESPACE
    return f"{NAMESPACE}:{name.removeprefix(ROOT_NAME + '.')}"


class NamespaceFilter(logging.Filter):
    """Stamps `namespace` and a short lowercase `label` on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.namespace = namespace_for(record.name)
        record.label = _LABELS.get(record.levelno, record.levelname.lower())
        return True


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level; `verbose` wins over `level`, unknown names mean info."""
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY[min(max(config.verbose, 0), len(_VERBOSITY) - 1)]
    if config.level:
        return _LEVEL_NAMES.get(config.level.lower(), logging.INFO)
    return logging.INFO


def _console_handler() -> logging.Handler:
    handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install the deckr41 handler. Only the first call has an effect."""
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)

    path = (config.file if config else None) or os.environ.get(LOG_FILE_ENV)
    handler: logging.Handler | None = None
    open_error: OSError | None = None
    if path:
        try:
            handler = logging.FileHandler(os.path.expanduser(path), encoding="utf-8")
        except OSError as e:
            open_error = e
        else:
            handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%H:%M:%S"))

    if handler is None and sys.stderr.isatty():
        handler = _console_handler()
    if handler is None:
        return

    handler.setLevel(level)
    handler.addFilter(NamespaceFilter())
    logger.addHandler(handler)
    if open_error is not None:
        logger.warning("Cannot open log file %s: %s", path, open_error)


def reset_logging() -> None:
    """Remove installed handlers so setup_logging() can run again."""
    global _initialized
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    _initialized = False


def get_logger(name: str | None = None) -> logging.Logger:
    """The `deckr41` logger, or its child `deckr41.<name>`."""
    return logger.getChild(name) if name else logger
