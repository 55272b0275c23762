"""Dashboard data layer: canonical records and provider-aware fetching."""

from .models import (
    PageInfo,
    PullRequestData,
    IssueData,
    PullRequestsResponse,
    IssuesResponse,
)
from .provider_integration import (
    init_providers,
    get_current_provider,
    get_provider_info,
    get_provider_manager,
    set_provider_manager,
    fetch_pull_requests_with_provider,
    fetch_issues_with_provider,
    fetch_pull_request_with_provider,
)
from .commands import PrAction, resolve_pr_command

__all__ = [
    "PageInfo",
    "PullRequestData",
    "IssueData",
    "PullRequestsResponse",
    "IssuesResponse",
    "init_providers",
    "get_current_provider",
    "get_provider_info",
    "get_provider_manager",
    "set_provider_manager",
    "fetch_pull_requests_with_provider",
    "fetch_issues_with_provider",
    "fetch_pull_request_with_provider",
    "PrAction",
    "resolve_pr_command",
]
