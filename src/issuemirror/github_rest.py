from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

import requests

from .models import Issue

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "issue-mirror-rest/0.1.0"
HTTP_ERROR_STATUS = 400
DEFAULT_PER_PAGE = 100
REQUEST_TIMEOUT = 30


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST API returns an error status."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


@dataclass
class GitHubRestClient:
    """Lightweight REST client for the issue operations a mirror pass needs.

    Transport errors from ``requests`` are not wrapped; HTTP error statuses
    become :class:`GitHubAPIError`. Nothing is retried.

    ``requests.Session`` is not documented as thread-safe, so calls made from
    threads other than the one that built the client get a session of their
    own carrying the same headers. An injected ``session`` is always used
    as-is; sharing it across threads is the caller's decision.
    """

    token: str | None = None
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)
    _local: threading.local = field(init=False, repr=False)
    _owner_thread: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        if self.token:
            self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)
        self._local = threading.local()
        self._owner_thread = threading.get_ident()

    def _thread_session(self) -> requests.Session:
        if self.session is not None or threading.get_ident() == self._owner_thread:
            return self._session
        session: requests.Session | None = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self._session.headers)
            self._local.session = session
        return session

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        session = self._thread_session()
        response = session.request(
            method,
            url,
            params=params,
            json=json_body,
            headers=session.headers,
            timeout=REQUEST_TIMEOUT,
        )
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            return response.json()
        return None

    # ---- Issue operations --------------------------------------------
    def list_issues(
        self,
        owner: str,
        repo: str,
        *,
        state: str = "all",
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> list[Issue]:
        params = {"state": state, "page": page, "per_page": per_page}
        data = self._request("GET", f"/repos/{owner}/{repo}/issues", params=params)
        if not isinstance(data, list):
            return []
        return [
            Issue.from_api(entry, owner=owner, repo=repo)
            for entry in data
            if isinstance(entry, dict)
        ]

    def list_all_issues(
        self,
        owner: str,
        repo: str,
        *,
        state: str = "all",
        per_page: int = DEFAULT_PER_PAGE,
    ) -> list[Issue]:
        """Walk pages from 1 until one comes back short."""
        results: list[Issue] = []
        page = 1
        while True:
            batch = self.list_issues(owner, repo, state=state, page=page, per_page=per_page)
            results.extend(batch)
            if len(batch) < per_page:
                break
            page += 1
        return results

    def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        data = self._request("GET", f"/repos/{owner}/{repo}/issues/{number}")
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Unexpected payload for {owner}/{repo}#{number}")
        return Issue.from_api(data, owner=owner, repo=repo)

    def create_issue(self, owner: str, repo: str, *, title: str, body: str) -> Issue:
        payload: dict[str, Any] = {"title": title, "body": body}
        data = self._request("POST", f"/repos/{owner}/{repo}/issues", json_body=payload)
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Unexpected payload creating issue in {owner}/{repo}")
        return Issue.from_api(data, owner=owner, repo=repo)


def split_repo(slug: str) -> tuple[str, str]:
    """Split ``owner/repo`` into its parts."""
    owner, sep, repo = slug.strip().partition("/")
    if not sep or not owner or not repo or "/" in repo:
        raise ValueError(f"Repository must be in owner/repo form: {slug!r}")
    return owner, repo


__all__ = [
    "DEFAULT_API_URL",
    "GitHubAPIError",
    "GitHubRestClient",
    "split_repo",
]
