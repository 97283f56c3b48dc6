"""
Logging configuration for the Centrality Engine.

One stderr handler (plus an optional file handler) on the root logger;
every module logs through ``logging.getLogger(__name__)`` under the
``centrality_engine`` namespace. Pipeline stages run on worker threads, so
the detailed format carries the thread name.
"""

import logging
import sys
import time
from pathlib import Path
from typing import Optional

from ..core.exceptions import CentralityEngineError, format_exception_chain


CONSOLE_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DETAILED_FORMAT = (
    '%(asctime)s [%(levelname)s] %(name)s '
    '(%(threadName)s %(filename)s:%(lineno)d): %(message)s'
)
QUIET_FORMAT = '[%(levelname)s] %(message)s'

PACKAGE_LOGGER = 'centrality_engine'

# Library loggers that are chatty at DEBUG
NOISY_LOGGERS = ('asyncio', 'concurrent.futures')


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
    detailed: bool = False,
    quiet: bool = False,
) -> None:
    """
    Configure logging for a CLI run.

    Args:
        level: Console level for the package logger (default: INFO)
        log_file: Also write DEBUG-level records with thread info here
        format_string: Console format (overrides detailed/quiet)
        detailed: Console format with thread and source location
        quiet: Warnings and errors only, short format
    """
    if quiet:
        level = logging.WARNING
    fmt = format_string or (DETAILED_FORMAT if detailed else QUIET_FORMAT if quiet else CONSOLE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(fmt))
    console.setLevel(level)
    handlers = [console]

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    # Root passes everything; each handler filters on its own level
    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if log_file else level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Logger inside the package namespace.

    Example:
        logger = get_logger("pipeline")   # centrality_engine.pipeline
    """
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + '.'):
        return logging.getLogger(name)
    return logging.getLogger(f'{PACKAGE_LOGGER}.{name}')


def log_exception(logger: logging.Logger, exc: BaseException, context: str = "") -> None:
    """
    Log a failure.

    Engine errors are expected outcomes (bad input, empty graph, timeout):
    they are logged with their cause chain and the traceback goes to DEBUG.
    Anything else is logged with the full traceback.

    Args:
        logger: Logger instance
        exc: Exception to log
        context: Optional prefix such as the failing operation
    """
    prefix = f"{context}: " if context else ""
    if isinstance(exc, CentralityEngineError):
        logger.error(f"{prefix}{format_exception_chain(exc)}")
        logger.debug("Traceback", exc_info=exc)
    else:
        logger.error(f"{prefix}{exc}", exc_info=exc)


class LogContext:
    """
    Times one pipeline stage and logs its start, end and failure.

    Example:
        with LogContext(logger, "Scoring graph", tag="[3fa2c1d0]") as stage:
            calculator.compute(graph)
        stage.elapsed   # seconds
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        level: int = logging.DEBUG,
        tag: str = "",
    ):
        self.logger = logger
        self.operation = f"{tag} {operation}" if tag else operation
        self.level = level
        self.elapsed: Optional[float] = None
        self._start: Optional[float] = None

    def __enter__(self) -> 'LogContext':
        self._start = time.perf_counter()
        self.logger.log(self.level, f"{self.operation}...")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.elapsed = time.perf_counter() - self._start
        if exc_type is None:
            self.logger.log(self.level, f"{self.operation} done in {self.elapsed:.3f}s")
        else:
            self.logger.warning(
                f"{self.operation} failed after {self.elapsed:.3f}s "
                f"({exc_type.__name__}: {exc_val})"
            )
        return False
