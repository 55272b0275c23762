"""Selection, initialization and ownership of the active provider."""

import logging
import os
import threading
from dataclasses import replace
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from ..git import GitCommandError, get_origin_url
from .azure_devops import TOKEN_ENV_VARS as AZURE_DEVOPS_TOKEN_ENV_VARS
from .factory import new_provider
from .git_platform import (
    AuthInfo,
    GitPlatformError,
    GitProvider,
    ProviderConfig,
    ProviderInitializationError,
    ProviderNotInitializedError,
    ProviderType,
)
from .remote_url import get_provider_config_from_remote

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


def get_token_from_environment(provider_type) -> str:
    """Look up a provider token in the environment.

    GitHub relies on ambient gh CLI authentication, so an empty token is
    valid there. Azure DevOps checks AZURE_DEVOPS_TOKEN, ADO_PAT and
    AZURE_PAT in that order.
    """
    if ProviderType.parse(provider_type) == ProviderType.AZURE_DEVOPS:
        logger.debug("Looking for Azure DevOps token in environment variables")
        for name in AZURE_DEVOPS_TOKEN_ENV_VARS:
            token = os.environ.get(name, "")
            if token:
                logger.debug(f"Found {name}")
                return token
        logger.debug("No Azure DevOps token found in environment variables")
    return ""


class ProviderManager:
    """Owns the provider selection policy and the single active provider.

    Precedence: explicit configuration, then detection from the git remote,
    then a bare GitHub configuration. Reads and writes of the active provider
    are serialized so re-initialization while fetches run is safe.
    """

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._providers: Dict[str, GitProvider] = {}
        self._current: Optional[GitProvider] = None
        self._lock = threading.RLock()

    @property
    def providers(self) -> Dict[str, GitProvider]:
        """Providers created so far, keyed by type string."""
        with self._lock:
            return dict(self._providers)

    def resolve_config(self, settings: Optional["Settings"], repo_path: str = ".") -> ProviderConfig:
        """Work out the provider configuration without constructing anything."""
        self.logger.debug(f"Resolving provider configuration for {repo_path!r}")

        explicit = settings.provider_config() if settings is not None else None
        if explicit is not None:
            self.logger.debug(f"Using explicit provider configuration type={explicit.type_name}")
            config = explicit
        else:
            self.logger.debug("Auto-detecting provider from git remote")
            try:
                config = self.detect_provider_from_git(repo_path)
                self.logger.debug(
                    f"Detected provider type={config.type_name} org={config.organization!r} "
                    f"project={config.project!r}"
                )
            except (GitCommandError, GitPlatformError) as e:
                self.logger.debug(f"Failed to detect provider from git remote: {e}")
                config = ProviderConfig(type=ProviderType.GITHUB)

        if not config.token:
            config = replace(config, token=get_token_from_environment(config.type))
        return config

    def initialize_provider(self, settings: Optional["Settings"],
                            repo_path: Optional[str] = None) -> GitProvider:
        """Select, construct and activate a provider.

        repo_path defaults to settings.repo_path, then the working directory.
        The provider is registered under the configured type string. On
        failure the previously active provider stays in place.

        Raises:
            ProviderInitializationError: If the provider could not be constructed
        """
        if repo_path is None:
            repo_path = (settings.repo_path if settings is not None else None) or "."
        config = self.resolve_config(settings, repo_path)

        try:
            provider = new_provider(config)
        except Exception as e:
            raise ProviderInitializationError(
                f"failed to initialize {config.type_name} provider: {e}", config.type_name
            ) from e

        key = config.type_name
        with self._lock:
            self._providers[key] = provider
            self._current = provider

        self.logger.debug(f"Initialized provider type={key} organization={config.organization!r}")
        return provider

    def get_current_provider(self) -> Optional[GitProvider]:
        """The active provider, or None before initialization."""
        with self._lock:
            return self._current

    def detect_provider_from_git(self, repo_path: str = ".") -> ProviderConfig:
        """Derive a provider configuration from the origin remote.

        Raises:
            GitCommandError: If the origin remote cannot be read
        """
        remote_url = get_origin_url(repo_path or ".")
        self.logger.debug(f"Got remote URL {remote_url}")
        return get_provider_config_from_remote(remote_url)

    def get_provider_info(self) -> Tuple[ProviderType, AuthInfo]:
        """Type and authentication state of the active provider.

        Raises:
            ProviderNotInitializedError: If no provider has been initialized
        """
        provider = self.get_current_provider()
        if provider is None:
            raise ProviderNotInitializedError("no provider initialized")
        return provider.get_type(), provider.get_auth_info()
