"""Mirror pass: copy new source issues into the target repository.

One linear pass, no branching back:

1. list every target issue (all states) to build the dedup set
2. list source issues, through the on-disk cache
3. transform each source issue, drop duplicates, stop at ``batch_size``
4. create the accepted candidates in source order
5. report counts

Only the source listing and issue creation are fatal. A failed target
listing degrades to an empty dedup set, and a failed reference degrades to
"no content from that reference".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, TypedDict

import requests

from .cache import IssueCache
from .config import MirrorConfig
from .errors import classify_error
from .github_rest import GitHubAPIError, GitHubRestClient
from .logging import get_logger
from .models import Issue, ProcessedIssue
from .references import ReferenceResolver, find_issue_urls, is_mirror_link

REFERENCE_SEPARATOR = "\n\n---\n\n"
PAGE_SIZE = 100


class IssueStore(Protocol):
    def list_all_issues(
        self, owner: str, repo: str, *, state: str = ..., per_page: int = ...
    ) -> list[Issue]: ...

    def get_issue(self, owner: str, repo: str, number: int) -> Issue: ...

    def create_issue(self, owner: str, repo: str, *, title: str, body: str) -> Issue: ...


class CreatedEntry(TypedDict):
    source_number: int
    number: int | None
    title: str


class MirrorSummary(TypedDict):
    source_repo: str
    target_repo: str
    dry_run: bool
    existing: int
    copied: int
    remaining: int
    scanned: int
    duplicates: int
    unresolved: int
    source_total: int
    created: list[CreatedEntry]


@dataclass
class SyncPlan:
    candidates: list[ProcessedIssue] = field(default_factory=list)
    scanned: int = 0
    duplicates: int = 0
    unresolved: int = 0


class MirrorSync:
    def __init__(
        self,
        cfg: MirrorConfig,
        client: IssueStore,
        cache: IssueCache,
        resolver: ReferenceResolver | None = None,
    ) -> None:
        self.cfg = cfg
        self.client = client
        self.cache = cache
        self.resolver = resolver or ReferenceResolver(
            client, host=cfg.reference_host, max_workers=cfg.reference_workers
        )
        self.logger = get_logger().bind(source_repo=cfg.source_repo, target_repo=cfg.target_repo)

    @classmethod
    def from_config(
        cls,
        cfg: MirrorConfig,
        token: str | None,
        session: requests.Session | None = None,
    ) -> MirrorSync:
        client = GitHubRestClient(token=token, base_url=cfg.api_url, session=session)
        cache = IssueCache(cfg.cache_file, ttl_seconds=cfg.cache_ttl_seconds)
        return cls(cfg, client, cache)

    # --- loading ----------------------------------------------------------
    def load_existing(self) -> list[Issue]:
        owner, repo = self.cfg.target
        try:
            existing = self.client.list_all_issues(owner, repo, state="all", per_page=PAGE_SIZE)
        except (GitHubAPIError, requests.RequestException) as exc:
            self.logger.log_failure(
                f"Failed to list target issues in {self.cfg.target_repo}; assuming none exist",
                classify_error(exc),
            )
            return []
        self.logger.info(f"Found {len(existing)} existing issues in {self.cfg.target_repo}")
        return existing

    def load_source(self) -> tuple[Issue, ...]:
        cached = self.cache.load()
        if cached is not None:
            return cached
        owner, repo = self.cfg.source
        with self.logger.timed_operation("list_source", repo=self.cfg.source_repo):
            issues = tuple(
                self.client.list_all_issues(owner, repo, state="all", per_page=PAGE_SIZE)
            )
        self.cache.store(issues)
        return issues

    # --- transformation ---------------------------------------------------
    def transform(self, issue: Issue) -> ProcessedIssue | None:
        """Turn a source issue into a creation candidate, or ``None`` to skip it."""
        host = self.cfg.reference_host
        if is_mirror_link(issue.body, host):
            result = self.resolver.resolve(issue.body.strip())
            if result.value is None:
                self.logger.info(
                    f"Skipping #{issue.number}: mirror link {result.url} could not be resolved",
                    reason=result.error.kind.value if result.error else None,
                )
                return None
            return ProcessedIssue(title=result.value.title, body=result.value.body, origin=issue)

        urls = find_issue_urls(issue.body, host)
        results = self.resolver.resolve_many(urls)
        # Referenced issues with an empty body contribute nothing
        bodies = [r.value.body for r in results if r.value is not None and r.value.body]
        if bodies:
            return ProcessedIssue(
                title=issue.title, body=REFERENCE_SEPARATOR.join(bodies), origin=issue
            )
        return ProcessedIssue(title=issue.title, body=issue.body, origin=issue)

    def plan(self, source: tuple[Issue, ...], existing: list[Issue]) -> SyncPlan:
        existing_keys = {issue.key for issue in existing}
        plan = SyncPlan()
        for issue in source:
            if len(plan.candidates) >= self.cfg.batch_size:
                break
            plan.scanned += 1
            candidate = self.transform(issue)
            if candidate is None:
                plan.unresolved += 1
                continue
            if candidate.key in existing_keys:
                plan.duplicates += 1
                continue
            plan.candidates.append(candidate)
        return plan

    # --- creation ---------------------------------------------------------
    def create(self, candidates: list[ProcessedIssue]) -> list[CreatedEntry]:
        owner, repo = self.cfg.target
        created: list[CreatedEntry] = []
        for candidate in candidates:
            if self.cfg.dry_run:
                self.logger.log_issue_action(
                    "create", candidate.title, source_number=candidate.origin.number, dry_run=True
                )
                created.append(
                    CreatedEntry(
                        source_number=candidate.origin.number, number=None, title=candidate.title
                    )
                )
                continue
            try:
                issue = self.client.create_issue(
                    owner, repo, title=candidate.title, body=candidate.body
                )
            except Exception as exc:
                self.logger.log_failure(
                    f"Failed to create issue {candidate.title!r} in {self.cfg.target_repo}",
                    classify_error(exc),
                    source_number=candidate.origin.number,
                    created_so_far=len(created),
                )
                raise
            self.logger.log_issue_action(
                "create",
                candidate.title,
                source_number=candidate.origin.number,
                issue_number=issue.number,
            )
            created.append(
                CreatedEntry(
                    source_number=candidate.origin.number,
                    number=issue.number,
                    title=candidate.title,
                )
            )
        return created

    def run(self) -> MirrorSummary:
        existing = self.load_existing()
        source = self.load_source()
        self.logger.info(f"Found {len(source)} issues in {self.cfg.source_repo}")
        plan = self.plan(source, existing)
        created = self.create(plan.candidates)
        summary = MirrorSummary(
            source_repo=self.cfg.source_repo,
            target_repo=self.cfg.target_repo,
            dry_run=self.cfg.dry_run,
            existing=len(existing),
            copied=len(created),
            # Only scanned issues are known duplicates, so this overestimates
            # whenever the scan stopped at the batch limit.
            remaining=max(0, len(source) - plan.duplicates - len(created)),
            scanned=plan.scanned,
            duplicates=plan.duplicates,
            unresolved=plan.unresolved,
            source_total=len(source),
            created=created,
        )
        self.logger.log_summary(
            summary["existing"],
            summary["copied"],
            summary["remaining"],
            scanned=summary["scanned"],
            duplicates=summary["duplicates"],
            unresolved=summary["unresolved"],
            dry_run=summary["dry_run"],
        )
        return summary


__all__ = ["MirrorSync", "MirrorSummary", "CreatedEntry", "SyncPlan", "REFERENCE_SEPARATOR"]
