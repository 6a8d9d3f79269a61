"""
Logging utilities for the API process and the operations scripts.

Every handler installed here masks bearer tokens and OAuth token fields, so a
provider error body or request line echoed into a log never carries a secret.
"""

import logging
import re
import sys

_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+", re.IGNORECASE),
    re.compile(
        r"""((?:access_token|refresh_token|client_secret)["']?\s*[:=]\s*["']?)[^"'&\s,}]+"""
    ),
)


def redact(message: str) -> str:
    for pattern in _SECRET_PATTERNS:
        message = pattern.sub(r"\1[redacted]", message)
    return message


class SecretRedactingFilter(logging.Filter):
    """Rewrite the formatted message of each record with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        rendered = record.getMessage()
        cleaned = redact(rendered)
        if cleaned != rendered:
            record.msg = cleaned
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once with the shared line format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SecretRedactingFilter) for f in handler.filters):
            handler.addFilter(SecretRedactingFilter())
    # httpx logs every request line at INFO, including token endpoint calls.
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["SecretRedactingFilter", "configure_logging", "redact"]
