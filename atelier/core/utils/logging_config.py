"""
Structured logging for Atelier.

JSON lines in production, a compact coloured format in development.
Every module logs through a child of the `atelier` logger.
"""

import os
import sys
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Optional


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        context = getattr(record, 'context', None)
        if context:
            log_entry.update(context)

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for local runs."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        reset = self.RESET if color else ''

        timestamp = datetime.now().strftime('%H:%M:%S')
        location = f'{record.name}:{record.lineno}'

        base = f'{color}[{timestamp}] {record.levelname:8}{reset} {location:40} {record.getMessage()}'

        context = getattr(record, 'context', None)
        if context:
            extras = ' | '.join(f'{k}={v}' for k, v in context.items())
            base = f'{base} | {extras}'

        if record.exc_info:
            base = f'{base}\n{self.formatException(record.exc_info)}'

        return base


def setup_logging(
    level: str = 'INFO',
    json_format: Optional[bool] = None,
    logger_name: str = 'atelier'
) -> logging.Logger:
    """Configure and return the application logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Force JSON output. None auto-detects: JSON when
            PRODUCTION=true or when running under gunicorn.
        logger_name: Root of the logger tree to configure.
    """
    if json_format is None:
        json_format = os.environ.get('PRODUCTION', '').lower() == 'true' or \
                      'gunicorn' in os.environ.get('SERVER_SOFTWARE', '')

    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logger.level)
    handler.setFormatter(JSONFormatter() if json_format else DevelopmentFormatter())

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str = 'atelier') -> logging.Logger:
    """Get a logger; dotted names become children of `atelier`."""
    return logging.getLogger(name)


_local = threading.local()
_factory_lock = threading.Lock()
_factory_installed = False


def _install_record_factory():
    """Install (once) a record factory that copies the thread's context."""
    global _factory_installed
    with _factory_lock:
        if _factory_installed:
            return
        base_factory = logging.getLogRecordFactory()

        def record_factory(*args, **kwargs):
            record = base_factory(*args, **kwargs)
            stack = getattr(_local, 'stack', None)
            if stack:
                merged = {}
                for ctx in stack:
                    merged.update(ctx)
                record.context = merged
            return record

        logging.setLogRecordFactory(record_factory)
        _factory_installed = True


class LogContext:
    """Attach key/value context to records logged by this thread inside the block.

        with LogContext(mutation='task.create', projet_id=12):
            logger.info('...')
    """

    def __init__(self, **context):
        self.context = context

    def __enter__(self):
        _install_record_factory()
        if not hasattr(_local, 'stack'):
            _local.stack = []
        _local.stack.append(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _local.stack.pop()
        return False
