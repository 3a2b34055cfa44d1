"""
Logging utilities for the audit pipeline.
"""

import logging
import logging.handlers
import json
import sys
from pathlib import Path
from typing import Dict, Any, Optional
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        for key in ('worker', 'row', 'url', 'event_type'):
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, ensure_ascii=False)


class AuditLogAdapter(logging.LoggerAdapter):
    """Logger adapter that adds worker context."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Add extra context to log messages."""
        if 'extra' not in kwargs:
            kwargs['extra'] = {}

        kwargs['extra'].update(self.extra)

        return msg, kwargs

    def log_job_event(self, level: int, job, message: str, **kwargs):
        """Log an event tied to one job."""
        extra = kwargs.get('extra', {})
        extra['row'] = job.row
        extra['url'] = job.url
        extra['event_type'] = 'job_event'
        kwargs['extra'] = extra
        self.log(level, f"[row {job.row}] {message}", **kwargs)


class NoiseFilter(logging.Filter):
    """Filter to suppress chatty third-party logs."""

    def __init__(self, suppress_modules: Optional[list] = None):
        super().__init__()
        self.suppress_modules = suppress_modules or [
            'aiohttp.access',
            'aiohttp.internal',
        ]

    def filter(self, record: logging.LogRecord) -> bool:
        return not any(record.name.startswith(module) for module in self.suppress_modules)


def setup_logging(config: Dict[str, Any],
                  enable_json: bool = False,
                  enable_noise_filtering: bool = True) -> logging.Logger:
    """
    Setup logging for the audit run.

    Args:
        config: Logging configuration dictionary
        enable_json: Enable JSON formatted logging
        enable_noise_filtering: Enable filtering of noisy logs

    Returns:
        Configured root logger
    """
    log_file = Path(config.get('file', 'logs/robots_audit.log'))
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.get('level', 'INFO').upper()))

    root_logger.handlers.clear()

    if enable_json:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            config.get('format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    if enable_noise_filtering:
        console_handler.addFilter(NoiseFilter())
    root_logger.addHandler(console_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    if enable_noise_filtering:
        file_handler.addFilter(NoiseFilter())
    root_logger.addHandler(file_handler)

    error_log_file = log_file.parent / 'errors.log'
    error_handler = logging.handlers.RotatingFileHandler(
        error_log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=3,
        encoding='utf-8'
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    root_logger.addHandler(error_handler)

    third_party_loggers = {
        'aiohttp': logging.WARNING,
        'asyncio': logging.WARNING,
        'bs4': logging.WARNING,
        'openpyxl': logging.WARNING,
    }

    for logger_name, level in third_party_loggers.items():
        logging.getLogger(logger_name).setLevel(level)

    root_logger.info("Logging system initialized")
    root_logger.info(f"Log file: {log_file}")
    root_logger.info(f"Log level: {config.get('level', 'INFO')}")

    return root_logger


def get_audit_logger(name: str, **extra_context) -> AuditLogAdapter:
    """
    Get a logger carrying extra context on every record.

    Args:
        name: Logger name
        **extra_context: Fields such as the worker name

    Returns:
        AuditLogAdapter instance
    """
    return AuditLogAdapter(logging.getLogger(name), extra_context)
