"""
oobwatch Logging

Logger helpers for the library and a dictConfig-based setup for applications
that embed it. Records may carry a ``structured_data`` mapping; values under
secret-bearing keys are masked before they reach any handler.
"""

import logging
import logging.config
import re
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .config import get_config

REDACTED = "***"

SENSITIVE_FIELDS = frozenset(
    {
        "secret",
        "secret-key",
        "secret_key",
        "auth_token",
        "authorization",
        "private_key",
        "aes_key",
    }
)

# key=value, key: value and "key": "value" forms
_SENSITIVE_TEXT = re.compile(
    r"(?i)\b(secret(?:[-_]key)?|(?:auth[-_])?token)(\"?\s*[=:]\s*\"?)([^\s\"'&,;}]+)"
)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DETAILED_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def redact_text(text: str) -> str:
    """Mask ``secret=...``-style values inside free text."""
    return _SENSITIVE_TEXT.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", text)


def redact_fields(data: Any) -> Any:
    """
    Copy ``data`` with every value under a sensitive key masked.

    Nested mappings and sequences are walked; strings are scanned with
    ``redact_text``.
    """
    if isinstance(data, dict):
        return {
            key: REDACTED
            if str(key).lower() in SENSITIVE_FIELDS
            else redact_fields(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return type(data)(redact_fields(item) for item in data)
    if isinstance(data, str):
        return redact_text(data)
    return data


class SecretRedactionFilter(logging.Filter):
    """Masks secrets in the message and structured data of every record it sees."""

    def filter(self, record: logging.LogRecord) -> bool:
        data = getattr(record, "structured_data", None)
        if data:
            record.structured_data = redact_fields(data)

        message = record.getMessage()
        redacted = redact_text(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class StructuredFormatter(logging.Formatter):
    """Appends ``structured_data`` to the formatted message, leaving the record untouched."""

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        data = getattr(record, "structured_data", None)
        if data:
            line = f"{line} | Data: {data}"
        return line


def build_logging_config(
    level: str,
    log_file: Optional[Path] = None,
    enable_structured: bool = True,
    max_bytes: int = 10_000_000,
    backup_count: int = 5,
) -> Dict[str, Any]:
    """
    Build the dictConfig mapping used by ``setup_logging``.

    Every handler gets the redaction filter. The ``oobwatch`` logger logs at
    ``level``; aiohttp is held at WARNING.
    """
    formatter_class = StructuredFormatter if enable_structured else logging.Formatter
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "console",
            "filters": ["redact_secrets"],
            "stream": sys.stderr,
        }
    }
    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "file",
            "filters": ["redact_secrets"],
            "filename": str(log_file),
            "maxBytes": max_bytes,
            "backupCount": backup_count,
            "encoding": "utf-8",
        }

    names = list(handlers)
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"redact_secrets": {"()": SecretRedactionFilter}},
        "formatters": {
            "console": {"()": formatter_class, "format": LOG_FORMAT, "datefmt": DATE_FORMAT},
            "file": {
                "()": formatter_class,
                "format": DETAILED_LOG_FORMAT,
                "datefmt": DATE_FORMAT,
            },
        },
        "handlers": handlers,
        "loggers": {
            "oobwatch": {"level": level, "handlers": names, "propagate": False},
            "aiohttp": {"level": "WARNING", "handlers": names, "propagate": False},
        },
        "root": {"level": "WARNING", "handlers": names},
    }


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    enable_structured: bool = True,
) -> None:
    """
    Configure logging for applications embedding the client.

    The library itself never calls this; it only emits records on the
    ``oobwatch`` logger hierarchy.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            defaults to the configured level
        log_file: Rotating log file; defaults to the configured path, if any
        enable_structured: Append structured data to formatted lines
    """
    settings = get_config().logging

    if log_file is None and settings.file_path:
        log_file = Path(settings.file_path)
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        build_logging_config(
            (log_level or settings.level).upper(),
            log_file=log_file,
            enable_structured=enable_structured,
            max_bytes=settings.max_file_size,
            backup_count=settings.backup_count,
        )
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_structured(
    logger: logging.Logger, level: int, message: str, **structured_data: Any
) -> None:
    """
    Log ``message`` with ``structured_data`` attached to the record.

    Sensitive fields are masked here as well, so records stay clean even when
    the application never installs the redaction filter.
    """
    logger.log(
        level,
        message,
        extra={"structured_data": redact_fields(structured_data)},
        stacklevel=2,
    )
