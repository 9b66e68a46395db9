"""
Logging configuration with secret redaction.

Validation logs end up in public CI output, so API tokens and credentials
must never reach a handler unmasked.
"""

import re
import logging
import json
from typing import Any, Dict, Iterable, Optional
from datetime import datetime, timezone

from deploy_validator.utils.config import SECRET_PATTERNS, Settings


# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'taskName', 'message',
})


class RedactingFilter(logging.Filter):
    """Filter that redacts sensitive information from log records."""

    REDACTION_PATTERNS = [
        re.compile(pattern, re.IGNORECASE) for pattern in SECRET_PATTERNS
    ]

    VALUE_PATTERNS = [
        re.compile(r'Bearer\s+[A-Za-z0-9\-_\.]+', re.IGNORECASE),
        re.compile(r'Basic\s+[A-Za-z0-9\+/=]+', re.IGNORECASE),
        re.compile(r'gh[pousr]_[A-Za-z0-9]+'),  # GitHub tokens
        re.compile(r'eyJ[A-Za-z0-9\-_]+\.eyJ[A-Za-z0-9\-_]+'),  # JWTs
    ]

    REDACTED = "[REDACTED]"

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive data from log record."""
        if isinstance(record.msg, str):
            record.msg = self._redact_string(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._redact_string(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True

    def _redact_string(self, text: str) -> str:
        """Redact sensitive patterns from a string."""
        result = text

        for pattern in self.VALUE_PATTERNS:
            result = pattern.sub(self.REDACTED, result)

        # key=value and key: value pairs with a sensitive key
        for pattern in self.REDACTION_PATTERNS:
            result = re.sub(
                rf'({pattern.pattern})\s*[=:]\s*["\']?([^"\'\s,}}]+)["\']?',
                rf'\1={self.REDACTED}',
                result,
                flags=re.IGNORECASE
            )

        return result


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def __init__(self):
        super().__init__()
        self.redacting_filter = RedactingFilter()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        self.redacting_filter.filter(record)

        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(settings: Settings) -> None:
    """Configure process logging from the run settings."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    root_logger.handlers.clear()

    # stderr, so the report on stdout stays clean
    handler = logging.StreamHandler()

    if settings.LOG_FORMAT.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))

    handler.addFilter(RedactingFilter())

    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def redact_dict(
    data: Dict[str, Any],
    keys_to_redact: Optional[Iterable[str]] = None
) -> Dict[str, Any]:
    """Redact sensitive keys from a dictionary."""
    if keys_to_redact is None:
        keys_to_redact = SECRET_PATTERNS
    keys_to_redact = list(keys_to_redact)

    redacted = {}
    for key, value in data.items():
        should_redact = any(
            re.search(pattern, key, re.IGNORECASE)
            for pattern in keys_to_redact
        )

        if should_redact:
            redacted[key] = "[REDACTED]" if value is not None else None
        elif isinstance(value, dict):
            redacted[key] = redact_dict(value, keys_to_redact)
        elif isinstance(value, list):
            redacted[key] = [
                redact_dict(item, keys_to_redact) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            redacted[key] = value

    return redacted
