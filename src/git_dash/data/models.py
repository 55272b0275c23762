"""Platform-neutral records consumed by the dashboard."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from ..services.types import (
    EPOCH,
    Assignees,
    ChangedFiles,
    Comments,
    Labels,
    Reviews,
)


@dataclass
class Repository:
    name: str = ""
    name_with_owner: str = ""
    is_archived: bool = False


@dataclass
class PageInfo:
    has_next_page: bool = False
    start_cursor: str = ""
    end_cursor: str = ""


@dataclass
class PullRequestData:
    """Pull request row of the dashboard."""
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

    def get_repo_name_with_owner(self) -> str:
        return self.repository.name_with_owner


@dataclass
class IssueData:
    """Issue row of the dashboard."""
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

    def get_repo_name_with_owner(self) -> str:
        return self.repository.name_with_owner


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
