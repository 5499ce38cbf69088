"""Structured Logger with JSON Formatting.

Provides structured logging with JSON output for machine-readable logs.
``configure_logging`` installs the JSON formatter on the root logger once at
startup; module loggers then only need ``StructuredLogger(__name__)`` or the
standard ``logging.getLogger(__name__)``.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from apiinsight.lib.distributed_tracing import get_correlation_id

# Extra attributes copied from log records into the JSON payload
CONTEXT_FIELDS = (
    'tenant',
    'project',
    'bucket_start',
    'job',
    'count',
    'duration_ms',
    'endpoint',
    'status_code',
)

SENSITIVE_KEYS = ('token', 'password', 'api_key', 'key', 'authorization')

_event_logger = logging.getLogger('apiinsight.events')


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'request_id': get_correlation_id(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        return json.dumps(log_data, default=str)


def configure_logging(level: str = 'INFO') -> None:
    """Install the JSON formatter on the root logger (idempotent)."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root.handlers:
        if isinstance(handler.formatter, JSONFormatter):
            return

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)


class StructuredLogger:
    """Logger wrapper taking context as keyword arguments.

    Usage:
        logger = StructuredLogger(__name__)
        logger.info('Events ingested', tenant='42', project='payments', count=10)
        logger.error('Bucket upsert failed', exc_info=True, bucket_start=...)
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def info(self, message: str, **extra: Any) -> None:
        self.logger.info(message, extra=extra)

    def warning(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        self.logger.warning(message, exc_info=exc_info, extra=extra)

    def error(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        self.logger.error(message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **extra: Any) -> None:
        self.logger.debug(message, extra=extra)


def log_event(event: str, level: str = 'INFO', context: Optional[Dict[str, Any]] = None) -> None:
    """Log a named structured event with the current correlation ID.

    Sensitive keys (tokens, passwords, API keys) are stripped from the context.

    Args:
        event: Event name (e.g., "ingest.accepted", "aggregation.hour_completed")
        level: Log level (INFO, WARNING, ERROR, DEBUG)
        context: Additional context dictionary

    Example:
        log_event('retention.sweep_completed', context={'deleted': 120})
    """
    log_entry = {
        'event': event,
        'correlation_id': get_correlation_id(),
        **(context or {}),
    }

    for key in SENSITIVE_KEYS:
        log_entry.pop(key, None)

    _event_logger.log(
        getattr(logging, level.upper(), logging.INFO), json.dumps(log_entry, default=str)
    )
