"""Provider layer for git-dash."""

from .git_platform import (
    GitProvider,
    ProviderType,
    ProviderConfig,
    AuthInfo,
    GitPlatformError,
    ConfigurationError,
    AuthenticationError,
    CapabilityUnavailableError,
    TransportError,
    RateLimitError,
    InvalidUrlError,
    ProviderNotInitializedError,
    ProviderInitializationError,
)
from .types import (
    PageInfo,
    PullRequestData,
    IssueData,
    PullRequestsResponse,
    IssuesResponse,
)
from .remote_url import RemoteInfo, parse_git_remote_url, get_provider_config_from_remote
from .github import GitHubProvider
from .azure_devops import AzureDevOpsProvider
from .factory import new_provider
from .provider_manager import ProviderManager, get_token_from_environment

__all__ = [
    "GitProvider",
    "GitHubProvider",
    "AzureDevOpsProvider",
    "ProviderManager",
    "ProviderType",
    "ProviderConfig",
    "AuthInfo",
    "RemoteInfo",
    "PageInfo",
    "PullRequestData",
    "IssueData",
    "PullRequestsResponse",
    "IssuesResponse",
    "new_provider",
    "parse_git_remote_url",
    "get_provider_config_from_remote",
    "get_token_from_environment",
    "GitPlatformError",
    "ConfigurationError",
    "AuthenticationError",
    "CapabilityUnavailableError",
    "TransportError",
    "RateLimitError",
    "InvalidUrlError",
    "ProviderNotInitializedError",
    "ProviderInitializationError",
]
