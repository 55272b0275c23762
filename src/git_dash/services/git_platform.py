"""Abstract base class and shared types for git platform providers."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from .types import IssuesResponse, PageInfo, PullRequestData, PullRequestsResponse

logger = logging.getLogger(__name__)


class ProviderType(str, Enum):
    """Source control platforms a provider can talk to."""
    GITHUB = "github"
    AZURE_DEVOPS = "azure-devops"

    @classmethod
    def parse(cls, value: Union["ProviderType", str, None]) -> Optional["ProviderType"]:
        """Return the matching provider type, or None for unknown values."""
        if isinstance(value, cls):
            return value
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class ProviderConfig:
    """Resolved configuration for a single provider instance.

    Instances are never mutated; use ``dataclasses.replace`` to derive a new one.
    """
    type: Union[ProviderType, str]
    organization: str = ""
    project: str = ""
    base_url: str = ""
    token: str = ""

    @property
    def type_name(self) -> str:
        """String form of the configured type, known or not."""
        if isinstance(self.type, ProviderType):
            return self.type.value
        return str(self.type)


@dataclass
class AuthInfo:
    """Authentication state reported by a provider."""
    username: str = ""
    is_logged_in: bool = False
    token_source: str = ""


class GitPlatformError(Exception):
    """Base exception for git platform operations."""
    pass


class ConfigurationError(GitPlatformError):
    """Required provider settings (organization, project, ...) are missing."""
    pass


class AuthenticationError(GitPlatformError):
    """No usable credential, or the platform rejected it."""
    pass


class CapabilityUnavailableError(GitPlatformError):
    """Operation is not implemented or not supported by the platform."""
    pass


class TransportError(GitPlatformError):
    """Network failure or unexpected HTTP response."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RateLimitError(TransportError):
    """Rate limit exceeded."""
    pass


class InvalidUrlError(GitPlatformError):
    """URL does not have the shape the provider expects."""
    pass


class ProviderNotInitializedError(GitPlatformError):
    """No provider has been initialized yet."""
    pass


class ProviderInitializationError(GitPlatformError):
    """Constructing a provider failed."""

    def __init__(self, message: str, provider_type: str):
        super().__init__(message)
        self.provider_type = provider_type


class GitProvider(ABC):
    """Capability contract every platform backend implements.

    Fetch operations are blocking and never retried. Command builders only
    describe what to run: they return an argument vector (program first) and
    leave process execution to the caller. A builder that returns an empty
    list means "not available"; one that raises CapabilityUnavailableError
    carries the authoritative reason.
    """

    def __init__(self, config: ProviderConfig):
        """Initialize the provider.

        Args:
            config: Resolved provider configuration
        """
        self.config = config
        self.token = config.token

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def get_type(self) -> ProviderType:
        """Platform this provider talks to."""
        pass

    @abstractmethod
    def fetch_pull_requests(self,
                            query: str,
                            limit: int,
                            page_info: Optional[PageInfo] = None) -> PullRequestsResponse:
        """Search pull requests.

        Args:
            query: Free-text filter, combined with a platform-specific qualifier
            limit: Maximum number of items in the page
            page_info: Cursor of the previous page, None for the first page

        Returns:
            PullRequestsResponse with the page, total count and next cursor

        Raises:
            ConfigurationError: If required identifying settings are missing
            AuthenticationError: If no credential is available
            TransportError: For network or API failures
        """
        pass

    @abstractmethod
    def fetch_issues(self,
                     query: str,
                     limit: int,
                     page_info: Optional[PageInfo] = None) -> IssuesResponse:
        """Search issues (or their platform analogue).

        Same contract as fetch_pull_requests.
        """
        pass

    @abstractmethod
    def fetch_pull_request(self, url: str) -> PullRequestData:
        """Resolve a single pull request from its web URL.

        Raises:
            CapabilityUnavailableError: If the provider cannot do this
        """
        pass

    @abstractmethod
    def supports_pull_requests(self) -> bool:
        pass

    @abstractmethod
    def supports_issues(self) -> bool:
        pass

    @abstractmethod
    def get_auth_info(self) -> AuthInfo:
        """Query the current authentication state (never cached)."""
        pass

    @abstractmethod
    def get_diff_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        pass

    @abstractmethod
    def get_checkout_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        pass

    @abstractmethod
    def get_merge_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        pass

    @abstractmethod
    def get_close_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        pass

    @abstractmethod
    def get_reopen_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        pass

    @abstractmethod
    def get_ready_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        pass

    @abstractmethod
    def get_update_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        pass

    @abstractmethod
    def get_watch_checks_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        pass

    def _log_operation(self, operation: str, **kwargs):
        """Log provider operation for debugging.

        Args:
            operation: Operation name
            **kwargs: Additional context
        """
        context = {
            'provider': self.get_type().value,
            'operation': operation,
            'organization': self.config.organization,
            **kwargs
        }

        if 'token' in context:
            context['token'] = '***MASKED***'

        self.logger.debug(f"Provider operation {operation}", extra={'context': context})
