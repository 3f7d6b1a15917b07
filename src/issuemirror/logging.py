"""Structured logging for issue-mirror.

Progress lines go to stdout, either as plain ``asctime level message`` lines
or as one JSON object per line when JSON logging is enabled. Both formats
pass through :func:`issuemirror.errors.redact` so a token echoed back in an
API error never reaches the log.
"""

from __future__ import annotations

import copy
import json
import logging
import sys
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from .errors import ErrorInfo, redact

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}

PLAIN_FORMAT = "%(asctime)s %(levelname)s %(message)s"


class RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
        }
        for k, v in record.__dict__.items():
            if k in _RESERVED_ATTRS or k.startswith("_") or k in entry:
                continue
            entry[k] = redact(v) if isinstance(v, str) else v
        return json.dumps(entry, default=str)


class StructuredLogger:
    """Thin facade over :mod:`logging` with mirror-pass helpers.

    ``bind`` returns a copy that stamps extra fields (typically the source and
    target repositories) onto every record it emits.
    """

    def __init__(
        self, name: str = "issuemirror", json_logging: bool = False, level: str = "INFO"
    ) -> None:
        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        for h in list(self._logger.handlers):
            self._logger.removeHandler(h)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter() if json_logging else RedactingFormatter(PLAIN_FORMAT))
        self._logger.addHandler(handler)
        self._logger.propagate = False
        self._context: dict[str, Any] = {}

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def bind(self, **fields: Any) -> StructuredLogger:
        bound = copy.copy(self)
        bound._context = {**self._context, **fields}
        return bound

    def _log(self, level: int, message: str, extra: Mapping[str, Any]) -> None:
        self._logger.log(level, message, extra={**self._context, **extra})

    def log_operation(self, operation: str, **kw: Any) -> None:
        self._log(logging.INFO, f"Operation: {operation}", {"operation": operation, **kw})

    def log_issue_action(
        self,
        action: str,
        title: str,
        *,
        source_number: int | None = None,
        issue_number: int | None = None,
        dry_run: bool = False,
    ) -> None:
        extra: dict[str, Any] = {"operation": f"issue_{action}", "title": title, "dry_run": dry_run}
        if source_number:
            extra["source_number"] = source_number
        if issue_number:
            extra["issue_number"] = issue_number
        msg = (
            f"issue {action} {title!r}"
            + (f" from #{source_number}" if source_number else "")
            + (f" as #{issue_number}" if issue_number else "")
            + (" [DRY]" if dry_run else "")
        )
        self._log(logging.INFO, msg, extra)

    def log_summary(self, existing: int, copied: int, remaining: int, **kw: Any) -> None:
        extra = {
            "operation": "mirror_summary",
            "existing": existing,
            "copied": copied,
            "remaining": remaining,
            **kw,
        }
        self._log(
            logging.INFO,
            f"Mirror pass: {existing} existing, {copied} copied, {remaining} remaining",
            extra,
        )

    def log_failure(
        self, message: str, info: ErrorInfo, level: int = logging.ERROR, **kw: Any
    ) -> None:
        """Log a classified failure; transient ones are flagged for the reader."""
        extra: dict[str, Any] = {
            "error": info.message,
            "category": info.category,
            "error_type": info.original_type,
            "transient": info.transient,
            **kw,
        }
        if info.details:
            extra.update(info.details)
        suffix = f" [{info.category}{', transient' if info.transient else ''}]"
        self._log(level, message + suffix, extra)

    def log_performance(self, operation: str, duration_ms: float, **kw: Any) -> None:
        extra = {"operation": operation, "duration_ms": round(duration_ms, 2), **kw}
        self._log(logging.INFO, f"Performance: {operation} completed in {duration_ms:.2f}ms", extra)

    def log_error(self, message: str, error: str | None = None, **kw: Any) -> None:
        extra = dict(kw)
        if error:
            extra["error"] = error
        self._log(logging.ERROR, message, extra)

    def debug(self, message: str, **kw: Any) -> None:
        self._log(logging.DEBUG, message, kw)

    def info(self, message: str, **kw: Any) -> None:
        self._log(logging.INFO, message, kw)

    def warning(self, message: str, **kw: Any) -> None:
        self._log(logging.WARNING, message, kw)

    @contextmanager
    def timed_operation(self, operation: str, **kw: Any) -> Iterator[None]:  # noqa: D401
        start = time.perf_counter()
        self.log_operation(f"{operation}_start", **kw)
        try:
            yield
            self.log_performance(operation, (time.perf_counter() - start) * 1000, **kw)
        except Exception as exc:
            self.log_error(f"operation {operation} failed", error=str(exc), **kw)
            raise


_GLOBAL: StructuredLogger | None = None


def get_logger() -> StructuredLogger:
    global _GLOBAL  # noqa: PLW0603
    if _GLOBAL is None:
        _GLOBAL = StructuredLogger()
    return _GLOBAL


def configure_logging(json_logging: bool = False, level: str = "INFO") -> StructuredLogger:
    global _GLOBAL  # noqa: PLW0603
    _GLOBAL = StructuredLogger(json_logging=json_logging, level=level)
    return _GLOBAL


__all__ = [
    "JSONFormatter",
    "RedactingFormatter",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]
