"""issue-mirror - copy GitHub issues from one repository into another.

High-level public API:

from issuemirror import MirrorSync, load_config

cfg = load_config()                       # YAML file + ISSUE_MIRROR_* env vars
summary = MirrorSync.from_config(cfg, token).run()
print(summary['copied'], summary['remaining'])

The ``issue-mirror`` console script wraps exactly this.
"""

from __future__ import annotations

from .cache import IssueCache
from .config import ConfigError, MirrorConfig, load_config
from .models import Issue, ProcessedIssue, ReferencedIssue
from .references import ReferenceResolver, find_issue_urls, is_mirror_link
from .sync import MirrorSummary, MirrorSync

# Version constant (keep in sync with pyproject.toml)
__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "Issue",
    "IssueCache",
    "MirrorConfig",
    "MirrorSummary",
    "MirrorSync",
    "ProcessedIssue",
    "ReferenceResolver",
    "ReferencedIssue",
    "find_issue_urls",
    "is_mirror_link",
    "load_config",
    "__version__",
]
