from __future__ import annotations

import json
import math
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .logging import get_logger
from .models import CacheSnapshot, Issue

DEFAULT_CACHE_FILE = "source-issues-cache.json"
DEFAULT_TTL_SECONDS = 60 * 60


@dataclass
class IssueCache:
    """Time-boxed on-disk snapshot of the source issue listing.

    Missing, corrupt and stale files all read back as ``None``. Writes go
    through a temp file so a crash mid-write never leaves half a document,
    but concurrent runs still race (last write wins).
    """

    path: Path
    ttl_seconds: float = DEFAULT_TTL_SECONDS
    clock: Callable[[], float] = field(default=time.time, repr=False)

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def read_snapshot(self) -> CacheSnapshot | None:
        logger = get_logger()
        if not self.path.exists():
            return None
        try:
            raw: Any = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.info("Error reading cache, will fetch fresh data", error=str(exc))
            return None
        if not isinstance(raw, dict):
            return None
        timestamp = raw.get("timestamp")
        entries = raw.get("issues")
        try:
            if (
                isinstance(timestamp, bool)
                or not isinstance(timestamp, (int, float))
                or not math.isfinite(timestamp)
                or not isinstance(entries, list)
            ):
                raise ValueError("expected finite numeric timestamp and an issues list")
            issues = tuple(Issue.from_dict(e) for e in entries if isinstance(e, dict))
            return CacheSnapshot(captured_at=int(timestamp), issues=issues)
        except (TypeError, ValueError, OverflowError) as exc:
            logger.info(
                "Cache document malformed, will fetch fresh data",
                cache=str(self.path),
                error=str(exc),
            )
            return None

    def load(self) -> tuple[Issue, ...] | None:
        snapshot = self.read_snapshot()
        if snapshot is None:
            return None
        age_ms = self._now_ms() - snapshot.captured_at
        if age_ms >= self.ttl_seconds * 1000:
            get_logger().info("Cache expired, will fetch fresh data", age_ms=age_ms)
            return None
        captured = datetime.fromtimestamp(snapshot.captured_at / 1000, tz=timezone.utc)
        get_logger().info(
            f"Using cached data from {captured.isoformat()}", cached=len(snapshot.issues)
        )
        return snapshot.issues

    def store(self, issues: Iterable[Issue]) -> bool:
        snapshot = CacheSnapshot(captured_at=self._now_ms(), issues=tuple(issues))
        payload = {
            "timestamp": snapshot.captured_at,
            "issues": [issue.to_dict() for issue in snapshot.issues],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            get_logger().warning("Error writing cache", error=str(exc), cache=str(self.path))
            return False
        get_logger().info(f"Cached {len(snapshot.issues)} issues", cache=str(self.path))
        return True


__all__ = ["DEFAULT_CACHE_FILE", "DEFAULT_TTL_SECONDS", "IssueCache"]
