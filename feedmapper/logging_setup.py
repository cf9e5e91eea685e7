"""
Structured logging configuration.
Sets up JSON-formatted logs with optional redaction patterns.
"""

import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger


class RedactingFilter(logging.Filter):
    """Filter that redacts credential values (key=value / key: value) from logs."""

    REDACT_PATTERNS = [
        'api_key',
        'apikey',
        'authorization',
        'password',
        'secret',
        'token',
    ]

    _pattern = re.compile(
        r'(?i)\b(' + '|'.join(REDACT_PATTERNS) + r')(["\']?\s*[:=]\s*["\']?)(?:bearer\s+)?[^\s"\',}]+'
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive fields from log record."""
        if isinstance(record.msg, str):
            redacted = self._pattern.sub(r'\1\2[REDACTED]', record.msg)
            if redacted != record.msg:
                record.msg = redacted
        return True


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: str = "INFO",
    json_format: bool = True,
    console_output: bool = True,
) -> Optional[Path]:
    """
    Configure structured logging.

    Args:
        log_dir: Directory to write log files (no file logging if None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON-formatted file logs if True
        console_output: Also output to console if True

    Returns:
        Path of the log file, if one was created
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers
    root_logger.handlers.clear()

    redact_filter = RedactingFilter()
    log_file = None

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"feedmapper_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.addFilter(redact_filter)

        if json_format:
            formatter = jsonlogger.JsonFormatter(
                '%(asctime)s %(levelname)s %(name)s %(message)s',
                timestamp=True
            )
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )

        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Console goes to stderr so CLI table output on stdout stays clean
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.addFilter(redact_filter)
        console_handler.setFormatter(logging.Formatter('%(levelname)s - %(name)s - %(message)s'))
        root_logger.addHandler(console_handler)

    if log_file:
        root_logger.info(f"Logging initialized: {log_file}")
    return log_file


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with a given name."""
    return logging.getLogger(name)
