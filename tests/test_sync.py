from typing import Any

import pytest
import requests

from issuemirror.cache import IssueCache
from issuemirror.config import MirrorConfig
from issuemirror.github_rest import GitHubAPIError
from issuemirror.models import Issue
from issuemirror.sync import REFERENCE_SEPARATOR, MirrorSync

SOURCE = "ubiquity/devpool-directory"
TARGET = "ShivTestOrg/repo-price"


class FakeIssueStore:
    """In-memory stand-in for the REST client, keyed by owner/repo."""

    def __init__(self) -> None:
        self.repos: dict[str, list[Issue]] = {SOURCE: [], TARGET: []}
        self.list_errors: dict[str, Exception] = {}
        self.get_errors: dict[tuple[str, str, int], Exception] = {}
        self.create_errors: dict[str, Exception] = {}
        self.list_calls: list[str] = []
        self.get_calls: list[tuple[str, str, int]] = []
        self.created: list[tuple[str, str]] = []

    def add(self, slug: str, number: int, title: str, body: str) -> Issue:
        owner, repo = slug.split("/")
        issue = Issue(number=number, title=title, body=body, owner=owner, repo=repo)
        self.repos.setdefault(slug, []).append(issue)
        return issue

    def list_all_issues(
        self, owner: str, repo: str, *, state: str = "all", per_page: int = 100
    ) -> list[Issue]:
        slug = f"{owner}/{repo}"
        self.list_calls.append(slug)
        if slug in self.list_errors:
            raise self.list_errors[slug]
        return list(self.repos.get(slug, []))

    def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        self.get_calls.append((owner, repo, number))
        if (owner, repo, number) in self.get_errors:
            raise self.get_errors[(owner, repo, number)]
        for issue in self.repos.get(f"{owner}/{repo}", []):
            if issue.number == number:
                return issue
        raise GitHubAPIError("Not Found", status=404)

    def create_issue(self, owner: str, repo: str, *, title: str, body: str) -> Issue:
        if title in self.create_errors:
            raise self.create_errors[title]
        slug = f"{owner}/{repo}"
        number = len(self.repos.setdefault(slug, [])) + 1
        self.created.append((title, body))
        return self.add(slug, number, title, body)


def _engine(store: FakeIssueStore, tmp_path: Any, **overrides: Any) -> MirrorSync:
    cfg = MirrorConfig(
        source_repo=SOURCE,
        target_repo=TARGET,
        cache_file=tmp_path / "cache.json",
        **overrides,
    )
    return MirrorSync(cfg, store, IssueCache(cfg.cache_file))


def test_batch_limit_stops_scan(tmp_path):
    store = FakeIssueStore()
    for n in range(1, 11):
        store.add(SOURCE, n, f"Issue {n}", f"body {n}")

    summary = _engine(store, tmp_path, batch_size=3).run()

    assert [t for t, _ in store.created] == ["Issue 1", "Issue 2", "Issue 3"]
    assert summary["copied"] == 3
    assert summary["scanned"] == 3
    assert summary["remaining"] == 7


def test_batch_limit_does_not_resolve_unscanned_issues(tmp_path):
    store = FakeIssueStore()
    store.add("a/b", 1, "Ref", "referenced")
    for n in range(1, 11):
        store.add(SOURCE, n, f"Issue {n}", f"see https://github.com/a/b/issues/1 #{n}")

    _engine(store, tmp_path, batch_size=3).run()

    assert len(store.get_calls) == 3


def test_regular_issue_references_are_substituted(tmp_path):
    store = FakeIssueStore()
    store.add("a/b", 5, "Five", "X")
    store.add("a/b", 6, "Six", "Y")
    body = "see https://github.com/a/b/issues/5 and https://github.com/a/b/issues/6"
    store.add(SOURCE, 1, "Original", body)

    _engine(store, tmp_path).run()

    assert store.created == [("Original", "X\n\n---\n\nY")]
    assert REFERENCE_SEPARATOR == "\n\n---\n\n"


def test_regular_issue_partial_resolution_uses_resolved_only(tmp_path):
    store = FakeIssueStore()
    store.add("a/b", 6, "Six", "Y")
    body = "https://github.com/a/b/issues/5 then https://github.com/a/b/issues/6"
    store.add(SOURCE, 1, "Original", body)

    _engine(store, tmp_path).run()

    assert store.created == [("Original", "Y")]


def test_regular_issue_without_resolvable_refs_is_copied_verbatim(tmp_path):
    store = FakeIssueStore()
    body = "broken link https://github.com/a/b/issues/404 here"
    store.add(SOURCE, 1, "Original", body)
    store.add(SOURCE, 2, "Plain", "")

    _engine(store, tmp_path).run()

    assert store.created == [("Original", body), ("Plain", "")]


def test_mirror_link_replaces_title_and_body(tmp_path):
    store = FakeIssueStore()
    store.add("ubiquity/pay.ubq.fi", 42, "Real title", "Real body")
    store.add(SOURCE, 1, "Placeholder", "  https://github.com/ubiquity/pay.ubq.fi/issues/42\n")

    _engine(store, tmp_path).run()

    assert store.created == [("Real title", "Real body")]


def test_unresolved_mirror_link_is_skipped(tmp_path):
    store = FakeIssueStore()
    store.add(SOURCE, 1, "Placeholder", "https://github.com/a/b/issues/404")
    store.add(SOURCE, 2, "Next", "next body")

    summary = _engine(store, tmp_path).run()

    assert store.created == [("Next", "next body")]
    assert summary["unresolved"] == 1


def test_mirror_link_transport_failure_is_skipped(tmp_path):
    store = FakeIssueStore()
    store.add("a/b", 1, "Ref", "ref body")
    store.get_errors[("a", "b", 1)] = requests.ConnectionError("connection reset")
    store.add(SOURCE, 1, "Placeholder", "https://github.com/a/b/issues/1")

    summary = _engine(store, tmp_path).run()

    assert store.created == []
    assert summary["copied"] == 0


def test_duplicates_are_skipped(tmp_path):
    store = FakeIssueStore()
    store.add(TARGET, 1, "Issue 1", "body 1")
    store.add(TARGET, 2, "Issue 2", "different body")
    for n in (1, 2, 3):
        store.add(SOURCE, n, f"Issue {n}", f"body {n}")

    summary = _engine(store, tmp_path).run()

    assert [t for t, _ in store.created] == ["Issue 2", "Issue 3"]
    assert summary["existing"] == 2
    assert summary["duplicates"] == 1


def test_second_run_creates_nothing(tmp_path):
    store = FakeIssueStore()
    store.add("a/b", 9, "Ref", "ref body")
    store.add(SOURCE, 1, "Link", "https://github.com/a/b/issues/9")
    store.add(SOURCE, 2, "Refs", "see https://github.com/a/b/issues/9")
    store.add(SOURCE, 3, "Plain", "plain")

    first = _engine(store, tmp_path, batch_size=10).run()
    second = _engine(store, tmp_path, batch_size=10).run()

    assert first["copied"] == 3
    assert second["copied"] == 0
    assert second["duplicates"] == 3
    assert second["remaining"] == 0


def test_source_listing_is_served_from_cache(tmp_path):
    store = FakeIssueStore()
    store.add(SOURCE, 1, "Issue 1", "body 1")

    _engine(store, tmp_path, batch_size=10).run()
    _engine(store, tmp_path, batch_size=10).run()

    assert store.list_calls.count(SOURCE) == 1
    assert store.list_calls.count(TARGET) == 2


def test_target_listing_failure_is_treated_as_empty(tmp_path):
    store = FakeIssueStore()
    store.add(TARGET, 1, "Issue 1", "body 1")
    store.add(SOURCE, 1, "Issue 1", "body 1")
    store.list_errors[TARGET] = GitHubAPIError("boom", status=500)

    summary = _engine(store, tmp_path).run()

    assert summary["existing"] == 0
    assert store.created == [("Issue 1", "body 1")]


def test_source_listing_failure_is_fatal(tmp_path):
    store = FakeIssueStore()
    store.list_errors[SOURCE] = GitHubAPIError("boom", status=502)

    with pytest.raises(GitHubAPIError):
        _engine(store, tmp_path).run()
    assert not (tmp_path / "cache.json").exists()


def test_creation_failure_propagates_and_keeps_earlier_creations(tmp_path):
    store = FakeIssueStore()
    for n in (1, 2, 3):
        store.add(SOURCE, n, f"Issue {n}", f"body {n}")
    store.create_errors["Issue 2"] = GitHubAPIError("forbidden", status=403)

    with pytest.raises(GitHubAPIError):
        _engine(store, tmp_path).run()
    assert store.created == [("Issue 1", "body 1")]


def test_dry_run_creates_nothing(tmp_path):
    store = FakeIssueStore()
    store.add(SOURCE, 1, "Issue 1", "body 1")

    summary = _engine(store, tmp_path, dry_run=True).run()

    assert store.created == []
    assert summary["dry_run"] is True
    assert summary["created"] == [{"source_number": 1, "number": None, "title": "Issue 1"}]


def test_corrupt_cache_falls_back_to_listing_source(tmp_path):
    store = FakeIssueStore()
    store.add(SOURCE, 1, "Issue 1", "body 1")
    (tmp_path / "cache.json").write_text(
        '{"timestamp": NaN, "issues": [{"number": "abc", "title": "stale"}]}'
    )

    summary = _engine(store, tmp_path).run()

    assert store.list_calls.count(SOURCE) == 1
    assert store.created == [("Issue 1", "body 1")]
    assert summary["source_total"] == 1


def test_cache_write_failure_does_not_stop_the_pass(tmp_path):
    store = FakeIssueStore()
    for n in (1, 2):
        store.add(SOURCE, n, f"Issue {n}", f"body {n}")
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    cfg = MirrorConfig(source_repo=SOURCE, target_repo=TARGET, cache_file=blocker / "cache.json")

    summary = MirrorSync(cfg, store, IssueCache(cfg.cache_file)).run()

    assert store.created == [("Issue 1", "body 1"), ("Issue 2", "body 2")]
    assert summary["copied"] == 2
    assert not (blocker / "cache.json").exists()
