"""Cross-issue reference resolution.

A reference is a URL of the form ``https://<host>/<owner>/<repo>/issues/<n>``.
Bodies consisting of exactly one such URL are *mirror links* and get replaced
wholesale by the referenced issue; any other body may embed several
references whose bodies are stitched together.

Resolution never raises for expected failures. Callers get a
:class:`ResolveResult` carrying either the referenced issue or a
:class:`ResolveError` describing why it could not be fetched.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Protocol

import requests

from .errors import classify_error
from .github_rest import GitHubAPIError
from .logging import get_logger
from .models import Issue, ReferencedIssue

DEFAULT_HOST = "github.com"
DEFAULT_MAX_WORKERS = 4
_NOT_FOUND_STATUSES = frozenset({404, 410})


class IssueFetcher(Protocol):
    def get_issue(self, owner: str, repo: str, number: int) -> Issue: ...


@lru_cache(maxsize=8)
def issue_url_pattern(host: str = DEFAULT_HOST) -> re.Pattern[str]:
    return re.compile(
        rf"https://{re.escape(host)}/(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+)/issues/(?P<number>\d+)"
    )


def is_mirror_link(body: str | None, host: str = DEFAULT_HOST) -> bool:
    if not body:
        return False
    return issue_url_pattern(host).fullmatch(body.strip()) is not None


def find_issue_urls(body: str | None, host: str = DEFAULT_HOST) -> list[str]:
    if not body:
        return []
    return [m.group(0) for m in issue_url_pattern(host).finditer(body)]


class ResolveErrorKind(str, Enum):
    NO_MATCH = "no_match"
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"


@dataclass(frozen=True)
class ResolveError:
    kind: ResolveErrorKind
    url: str
    message: str = ""


@dataclass(frozen=True)
class ResolveResult:
    url: str
    issue: ReferencedIssue | None = None
    error: ResolveError | None = None

    @property
    def ok(self) -> bool:
        return self.issue is not None

    @property
    def value(self) -> ReferencedIssue | None:
        return self.issue


class ReferenceResolver:
    """Fetch the issue a reference URL points at."""

    def __init__(
        self,
        client: IssueFetcher,
        *,
        host: str = DEFAULT_HOST,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self.client = client
        self.host = host
        self.max_workers = max(1, max_workers)
        self.logger = get_logger()

    def _failure(
        self, url: str, kind: ResolveErrorKind, exc: BaseException | None = None
    ) -> ResolveResult:
        message = ""
        if exc is not None:
            info = classify_error(exc)
            message = info.message
            self.logger.log_failure(
                f"reference {url} unresolved ({kind.value})", info, level=logging.DEBUG, url=url
            )
        return ResolveResult(url=url, error=ResolveError(kind=kind, url=url, message=message))

    def resolve(self, url: str) -> ResolveResult:
        match = issue_url_pattern(self.host).fullmatch(url.strip())
        if match is None:
            return self._failure(url, ResolveErrorKind.NO_MATCH)
        owner, repo, number = match.group("owner"), match.group("repo"), int(match.group("number"))
        try:
            issue = self.client.get_issue(owner, repo, number)
        except GitHubAPIError as exc:
            kind = (
                ResolveErrorKind.NOT_FOUND
                if exc.status in _NOT_FOUND_STATUSES
                else ResolveErrorKind.TRANSPORT
            )
            return self._failure(url, kind, exc)
        except requests.RequestException as exc:
            return self._failure(url, ResolveErrorKind.TRANSPORT, exc)
        return ResolveResult(
            url=url,
            issue=ReferencedIssue(
                owner=owner,
                repo=repo,
                number=number,
                title=issue.title,
                body=issue.body or "",
            ),
        )

    def resolve_many(self, urls: Sequence[str]) -> list[ResolveResult]:
        """Resolve independent references concurrently, keeping input order."""
        if not urls:
            return []
        if len(urls) == 1 or self.max_workers == 1:
            return [self.resolve(url) for url in urls]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(urls))) as pool:
            return list(pool.map(self.resolve, urls))


__all__ = [
    "DEFAULT_HOST",
    "IssueFetcher",
    "ReferenceResolver",
    "ResolveError",
    "ResolveErrorKind",
    "ResolveResult",
    "find_issue_urls",
    "is_mirror_link",
    "issue_url_pattern",
]
