from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Issue:
    """Narrow view of a remote issue.

    Only the fields the mirror pass consumes are kept; everything else the
    REST API returns is dropped at the boundary. ``body`` is never ``None``.
    """

    number: int
    title: str
    body: str
    owner: str
    repo: str

    @property
    def key(self) -> tuple[str, str]:
        """Dedup key: exact (title, body)."""
        return (self.title, self.body)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any], *, owner: str, repo: str) -> Issue:
        number = payload.get("number")
        return cls(
            number=number if isinstance(number, int) else 0,
            title=str(payload.get("title") or ""),
            body=str(payload.get("body") or ""),
            owner=owner,
            repo=repo,
        )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Issue:
        return cls(
            number=int(raw.get("number") or 0),
            title=str(raw.get("title") or ""),
            body=str(raw.get("body") or ""),
            owner=str(raw.get("owner") or ""),
            repo=str(raw.get("repo") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "body": self.body,
            "owner": self.owner,
            "repo": self.repo,
        }


@dataclass(frozen=True)
class ReferencedIssue:
    owner: str
    repo: str
    number: int
    title: str
    body: str


@dataclass(frozen=True)
class ProcessedIssue:
    """Creation candidate produced from one source issue."""

    title: str
    body: str
    origin: Issue

    @property
    def key(self) -> tuple[str, str]:
        return (self.title, self.body)


@dataclass(frozen=True)
class CacheSnapshot:
    captured_at: int  # epoch milliseconds
    issues: tuple[Issue, ...]


__all__ = ["Issue", "ReferencedIssue", "ProcessedIssue", "CacheSnapshot"]
