"""Single-backend GitHub access used when no provider is active.

These functions predate the provider layer and always talk to github.com
with ambient gh CLI credentials.
"""

import logging
import threading
from typing import Optional

from ..services.git_platform import ProviderConfig, ProviderType
from ..services.github import GitHubProvider
from .convert import (
    convert_issues_response,
    convert_pull_request,
    convert_pull_requests_response,
    to_provider_page_info,
)
from .models import IssuesResponse, PageInfo, PullRequestData, PullRequestsResponse

logger = logging.getLogger(__name__)

_client: Optional[GitHubProvider] = None
_client_lock = threading.Lock()


def _get_client() -> GitHubProvider:
    global _client
    with _client_lock:
        if _client is None:
            _client = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB))
        return _client


def fetch_pull_requests(query: str, limit: int, page_info: Optional[PageInfo] = None) -> PullRequestsResponse:
    logger.debug(f"Fetching PRs query={query!r} limit={limit}")
    response = _get_client().fetch_pull_requests(query, limit, to_provider_page_info(page_info))
    return convert_pull_requests_response(response)


def fetch_issues(query: str, limit: int, page_info: Optional[PageInfo] = None) -> IssuesResponse:
    logger.debug(f"Fetching issues query={query!r} limit={limit}")
    response = _get_client().fetch_issues(query, limit, to_provider_page_info(page_info))
    return convert_issues_response(response)


def fetch_pull_request(url: str) -> PullRequestData:
    logger.debug(f"Fetching PR {url}")
    return convert_pull_request(_get_client().fetch_pull_request(url))
