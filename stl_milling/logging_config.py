"""
Structured logging for the stl_milling package.

Provides:
- JSON-lines formatter for machine-readable run logs (numpy values included)
- Console formatter that tags each line with the pipeline stage
- log_timing context manager used around pipeline stages
- LogContext for run-wide fields (mesh name, stage) carried by every record

Usage:
    from stl_milling.logging_config import LogContext, setup_logging

    setup_logging(level=logging.INFO, json_file="planner.log.json")

    with LogContext(mesh="bracket.stl"):
        logger.info("Directions selected", extra={"n_directions": 10})
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

import numpy as np

PACKAGE_LOGGER = "stl_milling"

# Attributes every LogRecord carries; anything else came in through `extra=`
# or from a LogContext
_RESERVED_KEYS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'asctime', 'taskName',
})

# Arrays longer than this are summarized instead of listed
_MAX_LISTED_ITEMS = 16

_context_fields: ContextVar[Dict[str, Any]] = ContextVar("stl_milling_log_fields", default={})
_active_context: ContextVar[Optional['LogContext']] = ContextVar("stl_milling_log_context", default=None)


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_KEYS}


def _json_default(value: Any) -> Any:
    """Encoder hook for numpy scalars and arrays, paths and anything else."""
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        if value.size <= _MAX_LISTED_ITEMS:
            return value.tolist()
        return f"array(shape={value.shape}, dtype={value.dtype})"
    return str(value)


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Output format:
        {"timestamp": "...", "level": "INFO", "logger": "...", "message": "...",
         "stage": "visibility", ...}
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.levelno >= logging.WARNING:
            entry["location"] = f"{record.filename}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if self.include_extra:
            entry.update(_extra_fields(record))
        return json.dumps(entry, ensure_ascii=False, default=_json_default)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter.

    Format: HH:MM:SS LEVEL    module (stage): message [key=value ...]
    The "stl_milling." prefix is stripped from logger names and the stage
    (set by the pipeline through LogContext) is shown next to the module.
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True, show_extra: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.show_extra = show_extra

    @staticmethod
    def _format_value(value: Any) -> str:
        if isinstance(value, (float, np.floating)):
            return f"{value:.3g}"
        if isinstance(value, np.ndarray):
            return f"<{'x'.join(map(str, value.shape))} {value.dtype}>"
        if isinstance(value, (list, tuple)) and len(value) > 3:
            return f"[{len(value)} items]"
        return str(value)

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_colors and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"

        source = record.name
        if source.startswith(PACKAGE_LOGGER + "."):
            source = source[len(PACKAGE_LOGGER) + 1:]
        extras = _extra_fields(record)
        stage = extras.pop("stage", None)
        if stage:
            source = f"{source} ({stage})"

        line = f"{datetime.fromtimestamp(record.created):%H:%M:%S} {level} {source}: {record.getMessage()}"
        if self.show_extra and extras:
            line += " [" + " ".join(f"{k}={self._format_value(v)}" for k, v in extras.items()) + "]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextFilter(logging.Filter):
    """Copy the fields of the active LogContext onto each record.

    Fields passed explicitly through `extra=` win over context fields.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _context_fields.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def setup_logging(
    level: int = logging.INFO,
    json_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """Configure the package logger.

    Every handler created here carries a ContextFilter, so LogContext
    fields reach both the console and the JSON file.

    Args:
        level: minimum log level
        json_file: optional JSON-lines log file
        console: log to stderr in human-readable form
        use_colors: ANSI colors on the console (only when stderr is a tty)

    Returns:
        The configured "stl_milling" logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers = []
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        colors = use_colors and hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
        console_handler.setFormatter(ConsoleFormatter(use_colors=colors))
        handlers.append(console_handler)
    if json_file:
        json_handler = logging.FileHandler(Path(json_file), encoding='utf-8')
        json_handler.setFormatter(JSONFormatter())
        handlers.append(json_handler)

    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(ContextFilter())
        logger.addHandler(handler)

    logger.propagate = False
    return logger


@contextmanager
def log_timing(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    **fields: Any
) -> Iterator[Dict[str, Any]]:
    """Log the start and the end of an operation with its duration.

    The yielded dict may be filled with results (counts, sizes); they are
    attached to the completion record. A failure is logged at ERROR and
    re-raised.

    Example:
        with log_timing(logger, "Set cover", n_directions=10) as info:
            survived = solver.solve(coverage)
            info["n_survived"] = len(survived)
    """
    results: Dict[str, Any] = {}
    start = time.perf_counter()
    logger.log(level, "%s: started", operation, extra={"event": "start", "operation": operation, **fields})

    try:
        yield results
    except Exception as exc:
        elapsed = time.perf_counter() - start
        logger.error(
            "%s: failed after %.3f s: %s", operation, elapsed, exc,
            extra={"event": "error", "operation": operation, "elapsed_seconds": elapsed, **fields},
        )
        raise

    elapsed = time.perf_counter() - start
    results["elapsed_seconds"] = elapsed
    logger.log(
        level, "%s: done in %.3f s", operation, elapsed,
        extra={"event": "done", "operation": operation, **fields, **results},
    )


class LogContext:
    """Fields attached to every package record logged inside the scope.

    Contexts nest: the inner one adds to (and may override) the fields of
    the outer one. State lives in context variables, so each thread sees
    its own context.

    Example:
        with LogContext(mesh="bracket.stl"):
            with LogContext(stage="visibility"):
                logger.info("Checking directions")   # carries mesh and stage
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._tokens = None

    def __enter__(self) -> 'LogContext':
        merged = {**_context_fields.get(), **self.fields}
        self._tokens = (_context_fields.set(merged), _active_context.set(self))
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        fields_token, context_token = self._tokens
        _active_context.reset(context_token)
        _context_fields.reset(fields_token)
        self._tokens = None

    @staticmethod
    def current() -> Optional['LogContext']:
        """Innermost active context, if any."""
        return _active_context.get()

    @staticmethod
    def active_fields() -> Dict[str, Any]:
        """Fields of all active contexts merged."""
        return dict(_context_fields.get())
