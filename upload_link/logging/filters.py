"""
Custom logging filters for upload_link.

Request headers often carry credentials. :class:`SensitiveDataFilter` masks
them before records reach any handler.
"""

import logging
import re
from typing import List, Pattern, Tuple


class SensitiveDataFilter(logging.Filter):
    """Filter to mask sensitive data in log messages."""

    def __init__(self) -> None:
        """Initialize sensitive data filter."""
        super().__init__()

        self.rules: List[Tuple[Pattern[str], str]] = [
            # Bearer and basic credentials
            (re.compile(r"\b(bearer|basic)(\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE), r"\1\2***MASKED***"),
            # Header-style secrets: authorization, cookies, api keys, tokens
            (
                re.compile(
                    r"""(['"]?(?:authorization|proxy-authorization|cookie|set-cookie|x-api-key|api[_-]?key|x-auth-token|token|secret)['"]?\s*[:=]\s*['"]?)(?!\*\*\*MASKED)(?!bearer\s|basic\s)([^'",}\s]+)""",
                    re.IGNORECASE,
                ),
                r"\1***MASKED***",
            ),
            # URLs with credentials
            (re.compile(r"(https?://[^:/\s]+):([^@/\s]+)@", re.IGNORECASE), r"\1:***MASKED***@"),
        ]

    def mask(self, message: str) -> str:
        """Return ``message`` with all sensitive values masked."""
        for pattern, replacement in self.rules:
            message = pattern.sub(replacement, message)
        return message

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter log record to mask sensitive data."""
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # malformed format arguments; leave the record as it is
            return True

        record.msg = self.mask(message)
        record.args = ()
        return True
