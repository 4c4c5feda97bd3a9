"""Logging configuration with secret redaction."""

import logging
import re
from typing import ClassVar


class SecretRedactingFilter(logging.Filter):
    """Filter that redacts credentials from log messages."""

    SECRET_PATTERNS: ClassVar[list[tuple[re.Pattern[str], str]]] = [
        # GitHub tokens (ghp_, gho_, ghu_, ghs_, ghr_ followed by 20+ alphanumeric chars)
        (re.compile(r"gh[pousr]_[a-zA-Z0-9]{20,}"), "[REDACTED_GH_TOKEN]"),
        # GitHub fine-grained PAT
        (re.compile(r"github_pat_[a-zA-Z0-9_]+"), "[REDACTED_GH_PAT]"),
        # Authorization headers, with or without a scheme
        (
            re.compile(
                r"(Authorization['\"]?\s*[:=]\s*['\"]?)(?:(?:Basic|Bearer|Token)\s+)?[^\s,'\"\]]+",
                re.IGNORECASE,
            ),
            r"\1[REDACTED]",
        ),
        # Generic Bearer tokens
        (re.compile(r"Bearer\s+[a-zA-Z0-9_\-\.]+"), "Bearer [REDACTED]"),
        # Tokens and passwords in key=value format
        (re.compile(r"((?:token|password)[=:]\s*)[^\s,\]]+", re.IGNORECASE), r"\1[REDACTED]"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter and redact secrets from log record."""
        record.msg = self._redact(str(record.msg))
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True

    def _redact(self, text: str) -> str:
        """Redact secrets from text."""
        for pattern, replacement in self.SECRET_PATTERNS:
            text = pattern.sub(replacement, text)
        return text


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
) -> None:
    """Configure logging for the application.

    Args:
        verbose: Enable debug level logging.
        json_format: Use JSON format for logs (useful for structured logging).
    """
    level = logging.DEBUG if verbose else logging.INFO

    if json_format:
        format_str = '{"time": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'
    else:
        format_str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Add secret redaction filter to all handlers
    root_logger = logging.getLogger()
    redaction_filter = SecretRedactingFilter()

    for handler in root_logger.handlers:
        handler.addFilter(redaction_filter)

    # httpx logs every request at INFO, including full URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

