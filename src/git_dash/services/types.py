"""Record types shared by all providers.

Every field has an empty or zero default so that a provider which cannot
populate a field still hands out a fully constructed record.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 timestamp as returned by GitHub or Azure DevOps.

    Azure DevOps sends up to seven fractional digits, which older
    ``datetime.fromisoformat`` implementations reject, so the fraction is
    truncated to microseconds first. Missing values map to the epoch.
    """
    if not value:
        return EPOCH
    text = value.strip().replace("Z", "+00:00")
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Repository:
    name: str = ""
    name_with_owner: str = ""
    is_archived: bool = False


@dataclass
class Assignees:
    logins: List[str] = field(default_factory=list)
    total_count: int = 0


@dataclass
class Comment:
    author: str = ""
    body: str = ""
    updated_at: datetime = EPOCH


@dataclass
class Comments:
    nodes: List[Comment] = field(default_factory=list)
    total_count: int = 0


@dataclass
class Review:
    author: str = ""
    body: str = ""
    state: str = ""
    updated_at: datetime = EPOCH


@dataclass
class Reviews:
    nodes: List[Review] = field(default_factory=list)
    total_count: int = 0


@dataclass
class Label:
    name: str = ""
    color: str = ""


@dataclass
class Labels:
    nodes: List[Label] = field(default_factory=list)


@dataclass
class ChangedFile:
    path: str = ""
    additions: int = 0
    deletions: int = 0
    change_type: str = ""


@dataclass
class ChangedFiles:
    nodes: List[ChangedFile] = field(default_factory=list)
    total_count: int = 0


@dataclass
class PageInfo:
    """Forward-only pagination cursor."""
    has_next_page: bool = False
    start_cursor: str = ""
    end_cursor: str = ""


@dataclass
class PullRequestData:
    """Pull request as returned by a provider."""
    number: int = 0
    title: str = ""
    body: str = ""
    author: str = ""
    author_association: str = ""
    updated_at: datetime = EPOCH
    created_at: datetime = EPOCH
    url: str = ""
    state: str = "open"
    mergeable: str = ""
    review_decision: str = ""
    additions: int = 0
    deletions: int = 0
    head_ref_name: str = ""
    base_ref_name: str = ""
    head_repository: str = ""
    repository: Repository = field(default_factory=Repository)
    assignees: Assignees = field(default_factory=Assignees)
    comments: Comments = field(default_factory=Comments)
    reviews: Reviews = field(default_factory=Reviews)
    review_requests_count: int = 0
    files: ChangedFiles = field(default_factory=ChangedFiles)
    is_draft: bool = False
    labels: Labels = field(default_factory=Labels)
    merge_state_status: str = ""
    status_check_rollup: str = ""


@dataclass
class IssueData:
    """Issue (or work item) as returned by a provider."""
    number: int = 0
    title: str = ""
    body: str = ""
    state: str = "open"
    author: str = ""
    author_association: str = ""
    updated_at: datetime = EPOCH
    created_at: datetime = EPOCH
    url: str = ""
    repository: Repository = field(default_factory=Repository)
    assignees: Assignees = field(default_factory=Assignees)
    comments: Comments = field(default_factory=Comments)
    reactions_count: int = 0
    labels: Labels = field(default_factory=Labels)


@dataclass
class PullRequestsResponse:
    prs: List[PullRequestData] = field(default_factory=list)
    total_count: int = 0
    page_info: PageInfo = field(default_factory=PageInfo)


@dataclass
class IssuesResponse:
    issues: List[IssueData] = field(default_factory=list)
    total_count: int = 0
    page_info: PageInfo = field(default_factory=PageInfo)
