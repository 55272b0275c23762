"""Conversion of provider records into dashboard records."""

import copy
from typing import Optional

from ..services import types as provider_types
from .models import (
    IssueData,
    IssuesResponse,
    PageInfo,
    PullRequestData,
    PullRequestsResponse,
    Repository,
)


def convert_page_info(page_info: Optional[provider_types.PageInfo]) -> PageInfo:
    if page_info is None:
        return PageInfo()
    return PageInfo(
        has_next_page=page_info.has_next_page,
        start_cursor=page_info.start_cursor,
        end_cursor=page_info.end_cursor,
    )


def to_provider_page_info(page_info: Optional[PageInfo]) -> Optional[provider_types.PageInfo]:
    if page_info is None:
        return None
    return provider_types.PageInfo(
        has_next_page=page_info.has_next_page,
        start_cursor=page_info.start_cursor,
        end_cursor=page_info.end_cursor,
    )


def _convert_repository(repository: provider_types.Repository) -> Repository:
    return Repository(
        name=repository.name,
        name_with_owner=repository.name_with_owner,
        is_archived=repository.is_archived,
    )


def convert_pull_request(pr: provider_types.PullRequestData) -> PullRequestData:
    """Map a provider pull request onto the dashboard record.

    Nested collections are copied so the dashboard never shares state with a
    provider; missing values stay at their empty defaults.
    """
    return PullRequestData(
        number=pr.number,
        title=pr.title,
        body=pr.body,
        author=pr.author,
        author_association=pr.author_association,
        updated_at=pr.updated_at,
        created_at=pr.created_at,
        url=pr.url,
        state=pr.state,
        mergeable=pr.mergeable,
        review_decision=pr.review_decision,
        additions=pr.additions,
        deletions=pr.deletions,
        head_ref_name=pr.head_ref_name,
        base_ref_name=pr.base_ref_name,
        head_repository=pr.head_repository,
        repository=_convert_repository(pr.repository),
        assignees=copy.deepcopy(pr.assignees),
        comments=copy.deepcopy(pr.comments),
        reviews=copy.deepcopy(pr.reviews),
        review_requests_count=pr.review_requests_count,
        files=copy.deepcopy(pr.files),
        is_draft=pr.is_draft,
        labels=copy.deepcopy(pr.labels),
        merge_state_status=pr.merge_state_status,
        status_check_rollup=pr.status_check_rollup,
    )


def convert_issue(issue: provider_types.IssueData) -> IssueData:
    """Map a provider issue onto the dashboard record."""
    return IssueData(
        number=issue.number,
        title=issue.title,
        body=issue.body,
        state=issue.state,
        author=issue.author,
        author_association=issue.author_association,
        updated_at=issue.updated_at,
        created_at=issue.created_at,
        url=issue.url,
        repository=_convert_repository(issue.repository),
        assignees=copy.deepcopy(issue.assignees),
        comments=copy.deepcopy(issue.comments),
        reactions_count=issue.reactions_count,
        labels=copy.deepcopy(issue.labels),
    )


def convert_pull_requests_response(response: provider_types.PullRequestsResponse) -> PullRequestsResponse:
    return PullRequestsResponse(
        prs=[convert_pull_request(pr) for pr in response.prs],
        total_count=response.total_count,
        page_info=convert_page_info(response.page_info),
    )


def convert_issues_response(response: provider_types.IssuesResponse) -> IssuesResponse:
    return IssuesResponse(
        issues=[convert_issue(issue) for issue in response.issues],
        total_count=response.total_count,
        page_info=convert_page_info(response.page_info),
    )
