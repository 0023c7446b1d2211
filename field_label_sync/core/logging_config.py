"""
Clean, minimal logging configuration for the Field Label Sync service.
"""

import logging
import sys
import re
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from field_label_sync.core.config import get_settings

SERVICE_NAME = "field-label-sync"

# Global flag to track if logging has been set up
_logging_configured = False


class TokenMaskingFilter(logging.Filter):
    """Filter to mask Jira API tokens and basic-auth headers in log messages."""

    TOKEN_PATTERNS = [
        re.compile(r'(Authorization:\s*Basic\s+)([A-Za-z0-9+/=]+)', re.IGNORECASE),
        re.compile(r'(api[_-]?token[=:]\s*)([A-Za-z0-9_\-=]+)', re.IGNORECASE),
    ]

    @classmethod
    def mask(cls, text: str) -> str:
        for pattern in cls.TOKEN_PATTERNS:
            text = pattern.sub(lambda m: f"{m.group(1)}***", text)
        return text

    def filter(self, record):
        """Mask tokens in log message."""
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)

        if record.args:
            if isinstance(record.args, tuple):
                record.args = tuple(
                    self.mask(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )
            elif isinstance(record.args, dict):
                record.args = {
                    k: self.mask(v) if isinstance(v, str) else v
                    for k, v in record.args.items()
                }

        return True


def setup_logging(force_reconfigure=False):
    """
    Clean, minimal logging setup for the service.

    Rules:
    - DEBUG: Console only (development debugging)
    - INFO+: Console + File (important events)
    - File rotation: 10MB max, 5 backups
    - Silence noisy third-party libraries
    """
    global _logging_configured

    if _logging_configured and not force_reconfigure:
        return

    settings = get_settings()
    level = logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    # Clear any existing handlers
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Standard formatter
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    token_filter = TokenMaskingFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(token_filter)
    root_logger.addHandler(console_handler)

    # File handler with rotation
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_dir / f"{SERVICE_NAME}.log",
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    file_handler.setFormatter(formatter)
    file_handler.addFilter(token_filter)
    root_logger.addHandler(file_handler)

    root_logger.setLevel(level)

    _silence_third_party_loggers(settings.DEBUG)

    _logging_configured = True


def _silence_third_party_loggers(debug: bool):
    """Reduce verbosity of noisy third-party libraries."""

    # HTTP libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    # Message queue
    logging.getLogger("pika").setLevel(logging.WARNING)

    # Cache
    logging.getLogger("redis").setLevel(logging.WARNING)

    # Background jobs
    logging.getLogger("apscheduler").setLevel(logging.INFO)

    if not debug:
        logging.getLogger("uvicorn").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a clean logger instance.

    Args:
        name: Logger name. If None, uses calling module name.

    Returns:
        Standard Python logger instance.
    """
    if name is None:
        import inspect
        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get('__name__', 'unknown')
        else:
            name = 'unknown'

    return logging.getLogger(name)


class RunLoggerAdapter(logging.LoggerAdapter):
    """Attaches refresh-run fields to every record and prefixes the message."""

    def process(self, msg: Any, kwargs: Any):
        fields = {k: v for k, v in self.extra.items() if v is not None}
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        if fields:
            prefix = " ".join(f"{k}={v}" for k, v in fields.items())
            return f"[{prefix}] {msg}", kwargs
        return msg, kwargs

    def bind(self, **fields: Any) -> "RunLoggerAdapter":
        """Return a new adapter carrying these fields in addition to the current ones."""
        merged = dict(self.extra)
        merged.update(fields)
        return RunLoggerAdapter(self.logger, merged)


def get_run_logger(name: Optional[str] = None, run_id: Optional[str] = None, **fields: Any) -> RunLoggerAdapter:
    """
    Get a logger bound to one refresh run.

    Every record emitted through it carries ``run_id`` (and any extra fields
    such as ``context_id``) as record attributes.
    """
    extra = {"run_id": run_id, "context_id": None}
    extra.update(fields)
    return RunLoggerAdapter(get_logger(name), extra)
