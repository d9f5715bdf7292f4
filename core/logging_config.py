"""
Core Module - Logging Setup.

============================================================
PURPOSE
============================================================
Structured logging for the aggregator with:
- JSON or text output on stdout
- Credential masking for upstream API keys

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log raw API keys
2. Mask sensitive headers (x-api-key, x-glacier-api-key, ...)

============================================================
"""

import json
import logging
import sys
from typing import Dict, Optional


# ============================================================
# SENSITIVE DATA
# ============================================================

SENSITIVE_HEADERS = {
    "authorization",
    "x-api-key",
    "x-glacier-api-key",
    "api-key",
}


def mask_value(value: Optional[str], show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Return a copy of ``headers`` with sensitive values masked."""
    if not headers:
        return {}

    masked = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            masked[key] = mask_value(str(value))
        else:
            masked[key] = value
    return masked


# ============================================================
# FORMATTERS
# ============================================================

class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Set up root logging.

    Args:
        level: Log level name
        log_format: Output format (json or text)

    Returns:
        The application logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # aiohttp access noise
    logging.getLogger("aiohttp").setLevel(max(log_level, logging.WARNING))

    return logging.getLogger("chain_metrics")


__all__ = [
    "SENSITIVE_HEADERS",
    "mask_value",
    "mask_headers",
    "JsonFormatter",
    "setup_logging",
]
