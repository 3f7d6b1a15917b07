"""Error taxonomy & redaction helpers.

Failures during a mirror pass fall into three buckets:

- recoverable and ignored: target listing, cache reads, reference resolution
- recoverable and logged: cache writes
- fatal: source listing and issue creation (propagate to the caller)

This module does not decide which bucket applies; callers do. It only
classifies an exception into a stable category string and scrubs tokens out
of messages before they reach the log.

Public API:
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gh[ous]_[A-Za-z0-9]{20,40}"),  # OAuth / app tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"Bearer\s+[A-Za-z0-9_\-\.]{8,}"),
]

_REDACTION_PLACEHOLDER = "<redacted>"

_NOT_FOUND_STATUSES = frozenset({404, 410})
_AUTH_STATUSES = frozenset({401})


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Redact sensitive tokens in arbitrary text."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    HTTP status (when the exception carries one) wins over message sniffing:
    - 404 / 410 -> 'github.not_found'
    - 401 -> 'github.auth'
    - 'rate limit' in message -> 'github.rate_limit', transient
    - network-y keywords or a requests transport error -> 'network', transient
    - JSON decode errors -> 'parse'
    - fallback -> 'generic'
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__
    status = getattr(exc, "status", None)
    details = {"status": status} if isinstance(status, int) else None

    if status in _NOT_FOUND_STATUSES:
        return ErrorInfo("github.not_found", redact(msg), name, details=details)
    if status in _AUTH_STATUSES:
        return ErrorInfo("github.auth", redact(msg), name, details=details)
    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", redact(msg), name, transient=True, details=details)
    if name in {"ConnectionError", "Timeout", "ConnectTimeout", "ReadTimeout"} or any(
        k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")
    ):
        return ErrorInfo("network", redact(msg), name, transient=True, details=details)
    if name == "JSONDecodeError" or "expecting value" in low:
        return ErrorInfo("parse", redact(msg), name, details=details)
    return ErrorInfo("generic", redact(msg), name, details=details)


__all__ = ["ErrorInfo", "classify_error", "redact"]
