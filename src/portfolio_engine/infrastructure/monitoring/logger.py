"""
Structured logging for the portfolio engine.

Engine code logs through ``ContextLogger`` (structlog, key/value fields) or
plain ``logging`` loggers in the services; both end up on the root handlers
configured by ``setup_logging``. Console output always goes to stderr so that
CLI response bodies on stdout stay machine-readable.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from structlog.stdlib import LoggerFactory
import colorama
from colorama import Fore, Style

LOG_FILE_NAME = "portfolio_engine.log"

# Timing thresholds (ms) above which an operation is logged at INFO / WARNING
SLOW_OPERATION_MS = 1000
VERY_SLOW_OPERATION_MS = 5000

# Attributes every LogRecord carries; anything else came from `extra`
_RECORD_ATTRIBUTES = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRIBUTES and not key.startswith('_')
    }


def _structlog_processors(json_output: bool) -> List[Any]:
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer(default=str))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def setup_logging(
    log_level: str = "INFO",
    log_dir: str = "logs",
    enable_console: bool = True,
    enable_file: bool = False,
    enable_json: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5
) -> None:
    """
    Configure structlog and the root logging handlers.

    Args:
        log_level: Threshold for the console handler
        log_dir: Directory for the rotating log file
        enable_console: Log to stderr
        enable_file: Log everything down to DEBUG to ``log_dir/portfolio_engine.log``
        enable_json: One JSON object per line instead of human-readable text
        max_file_size: Rotation size of the log file in bytes
        backup_count: Rotated files to keep
    """
    level = getattr(logging, log_level.upper())
    colorama.init()

    structlog.configure(
        processors=_structlog_processors(enable_json),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(JsonFormatter() if enable_json else ConsoleLineFormatter(sys.stderr.isatty()))
        console_handler.setLevel(level)
        root_logger.addHandler(console_handler)

    if enable_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path / LOG_FILE_NAME,
            maxBytes=max_file_size,
            backupCount=backup_count
        )
        file_handler.setFormatter(JsonFormatter() if enable_json else ConsoleLineFormatter(use_colors=False))
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(logging.DEBUG if enable_file else level)


class ConsoleLineFormatter(logging.Formatter):
    """Single-line formatter: time, level, logger, message, then extra fields."""

    LEVEL_COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Style.BRIGHT,
    }

    def __init__(self, use_colors: bool = False):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record):
        level = f"{record.levelname:<8}"
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{Style.RESET_ALL}"

        line = (
            f"{datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]} "
            f"{level} {record.name}: {record.getMessage()}"
        )
        fields = _record_fields(record)
        if fields:
            line += " " + " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per record, extra fields inlined."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'location': f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for key, value in _record_fields(record).items():
            entry.setdefault(key, value)
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextLogger:
    """structlog logger that carries fields such as the portfolio id into every event."""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)
        self._context: Dict[str, Any] = {}

    def add_context(self, **kwargs) -> "ContextLogger":
        self._context.update(kwargs)
        return self

    def log(self, level: str, event: str, **fields):
        getattr(self.logger, level)(event, **{**self._context, **fields})

    def debug(self, event: str, **fields):
        self.log('debug', event, **fields)

    def info(self, event: str, **fields):
        self.log('info', event, **fields)

    def warning(self, event: str, **fields):
        self.log('warning', event, **fields)

    def error(self, event: str, **fields):
        self.log('error', event, **fields)


class OptimizationLogger(ContextLogger):
    """Lifecycle events of one optimizer run."""

    def __init__(self, portfolio_id: Optional[str] = None):
        super().__init__("portfolio_engine.optimization")
        if portfolio_id:
            self.add_context(portfolio_id=portfolio_id)

    def log_solve_started(self, objective: str, holdings: int, **fields):
        self.info("Optimization started", objective=objective, holdings=holdings, **fields)

    def log_solve_finished(self, status: str, iterations: int, expected_return: float, expected_risk: float, **fields):
        self.info(
            "Optimization finished",
            status=status,
            iterations=iterations,
            expected_return=round(expected_return, 6),
            expected_risk=round(expected_risk, 6),
            **fields
        )

    def log_infeasible(self, reasons: List[str], **fields):
        self.warning("Optimization infeasible", reasons=reasons, **fields)


class PerformanceLogger(ContextLogger):
    """Endpoint timings; slow operations are promoted to INFO and WARNING."""

    def __init__(self):
        super().__init__("portfolio_engine.performance")

    def log_timing(self, operation: str, duration_ms: float, **fields):
        if duration_ms < SLOW_OPERATION_MS:
            level = 'debug'
        elif duration_ms < VERY_SLOW_OPERATION_MS:
            level = 'info'
        else:
            level = 'warning'
        self.log(level, "Operation timing", operation=operation, duration_ms=round(duration_ms, 2), **fields)


def get_optimization_logger(portfolio_id: Optional[str] = None) -> OptimizationLogger:
    return OptimizationLogger(portfolio_id)


def get_performance_logger() -> PerformanceLogger:
    return PerformanceLogger()


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(name)
