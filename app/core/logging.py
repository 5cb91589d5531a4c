"""
Structured logging configuration with JSON formatter.

This module provides:
- JSONFormatter for structured JSON logging
- ContextualLogger to stamp batch job / entity context on every line
- setup_json_logging used by the API and the job runner when LOG_JSON is set

Example output:
{
    "timestamp": "2026-10-18T02:00:01.123456+00:00",
    "level": "INFO",
    "logger": "app.jobs.batch",
    "message": "Batch 3 applied: 1000 rows",
    "job": "clear-orphan-folders"
}
"""
import logging
import json
import sys
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'taskName', 'message',
})


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    Emits timestamp, level, logger, message, source location, exception info
    and every field passed through ``extra=``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_entry[key] = self._serialize_value(value)

        return json.dumps(log_entry, default=str, ensure_ascii=False)

    def _serialize_value(self, value: Any) -> Any:
        """Serialize values json.dumps cannot handle natively."""
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if hasattr(value, 'value') and hasattr(value, 'name'):
            # Enum members (entity kinds, statuses)
            return value.value
        if isinstance(value, Exception):
            return {"type": type(value).__name__, "message": str(value)}
        return value


class ContextualLogger:
    """
    Wrapper for logger that adds contextual information to all log messages.

    Usage:
        logger = ContextualLogger(logging.getLogger(__name__))
        logger.set_context(job="daily-usage-rollup", period="2026-10-17")
        logger.info("Batch applied")  # includes job and period
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.context: Dict[str, Any] = {}

    def set_context(self, **kwargs):
        self.context.update(kwargs)

    def clear_context(self):
        self.context.clear()

    def _log_with_context(self, level: int, msg: str, *args, **kwargs):
        extra = dict(kwargs.get('extra') or {})
        extra.update(self.context)
        kwargs['extra'] = extra
        self.logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs['exc_info'] = True
        self._log_with_context(logging.ERROR, msg, *args, **kwargs)


def setup_json_logging(
    level: str = "INFO",
    logger_name: Optional[str] = None
) -> logging.Logger:
    """
    Setup JSON logging for a logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Name of logger to configure (None for root logger)

    Returns:
        Configured logger with JSON formatter
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter())
    logger.addHandler(console_handler)

    # Root keeps propagation semantics; named loggers must not double-log
    if logger_name:
        logger.propagate = False

    return logger


def configure_logging(level: str, json_output: bool) -> None:
    """Configure root logging for the API process or a job runner."""
    if json_output:
        setup_json_logging(level)
        return

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def get_logger(name: str, with_context: bool = False):
    """
    Get logger with optional contextual logging support.

    Args:
        name: Logger name (typically __name__)
        with_context: Whether to return ContextualLogger wrapper
    """
    logger = logging.getLogger(name)

    if with_context:
        return ContextualLogger(logger)

    return logger
