"""Bridge between the dashboard data layer and the provider layer.

The fetch wrappers use the active provider when there is one that supports
the requested item kind, and the legacy GitHub functions otherwise. Once a
provider has been called its errors are returned as they are; they never
trigger the legacy path.
"""

import logging
import threading
from typing import TYPE_CHECKING, Optional, Tuple

from ..services.git_platform import AuthInfo, GitProvider, ProviderType
from ..services.provider_manager import ProviderManager
from . import github_api
from .convert import (
    convert_issues_response,
    convert_pull_request,
    convert_pull_requests_response,
    to_provider_page_info,
)
from .models import IssuesResponse, PageInfo, PullRequestData, PullRequestsResponse

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

_manager: Optional[ProviderManager] = None
_manager_lock = threading.Lock()


def get_provider_manager() -> ProviderManager:
    """Process-wide manager, created on first use."""
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = ProviderManager()
        return _manager


def set_provider_manager(manager: Optional[ProviderManager]) -> None:
    """Replace the process-wide manager (None resets to a fresh one on next use)."""
    global _manager
    with _manager_lock:
        _manager = manager


def init_providers(settings: Optional["Settings"], repo_path: Optional[str] = None,
                   manager: Optional[ProviderManager] = None) -> GitProvider:
    """Initialize the active provider from settings and the repo at repo_path.

    Without repo_path the repository named by settings.repo_path is used.
    """
    return (manager or get_provider_manager()).initialize_provider(settings, repo_path)


def get_current_provider(manager: Optional[ProviderManager] = None) -> Optional[GitProvider]:
    """The active provider, or None before a successful init_providers."""
    return (manager or get_provider_manager()).get_current_provider()


def get_provider_info(manager: Optional[ProviderManager] = None) -> Tuple[ProviderType, AuthInfo]:
    """Type and auth state of the active provider.

    Raises:
        ProviderNotInitializedError: Before any successful initialization
    """
    return (manager or get_provider_manager()).get_provider_info()


def fetch_pull_requests_with_provider(query: str,
                                      limit: int,
                                      page_info: Optional[PageInfo] = None,
                                      manager: Optional[ProviderManager] = None) -> PullRequestsResponse:
    provider = get_current_provider(manager)
    if provider is None:
        logger.debug("No provider available")
    elif not provider.supports_pull_requests():
        logger.debug(f"Provider {provider.get_type().value} doesn't support pull requests")
    else:
        logger.debug(f"Using provider {provider.get_type().value} for pull requests")
        response = provider.fetch_pull_requests(query, limit, to_provider_page_info(page_info))
        logger.debug(f"Provider fetch successful, count={len(response.prs)}")
        return convert_pull_requests_response(response)

    logger.debug("Falling back to legacy GitHub implementation")
    return github_api.fetch_pull_requests(query, limit, page_info)


def fetch_issues_with_provider(query: str,
                               limit: int,
                               page_info: Optional[PageInfo] = None,
                               manager: Optional[ProviderManager] = None) -> IssuesResponse:
    provider = get_current_provider(manager)
    if provider is not None and provider.supports_issues():
        response = provider.fetch_issues(query, limit, to_provider_page_info(page_info))
        return convert_issues_response(response)

    logger.debug("Falling back to legacy GitHub implementation for issues")
    return github_api.fetch_issues(query, limit, page_info)


def fetch_pull_request_with_provider(url: str,
                                     manager: Optional[ProviderManager] = None) -> PullRequestData:
    provider = get_current_provider(manager)
    if provider is not None and provider.supports_pull_requests():
        return convert_pull_request(provider.fetch_pull_request(url))

    logger.debug("Falling back to legacy GitHub implementation for a single PR")
    return github_api.fetch_pull_request(url)
