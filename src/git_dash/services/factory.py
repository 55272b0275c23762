"""Construction of provider instances from a resolved configuration."""

import logging

from .azure_devops import AzureDevOpsProvider
from .git_platform import GitProvider, ProviderConfig, ProviderType
from .github import GitHubProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES = {
    ProviderType.GITHUB: GitHubProvider,
    ProviderType.AZURE_DEVOPS: AzureDevOpsProvider,
}


def new_provider(config: ProviderConfig) -> GitProvider:
    """Create the provider for config.type.

    Unrecognised types resolve to GitHub for backward compatibility; only the
    chosen provider's own setup can raise.
    """
    provider_type = ProviderType.parse(config.type)
    if provider_type is None:
        logger.debug(f"Unknown provider type {config.type_name!r}, defaulting to GitHub")
        provider_type = ProviderType.GITHUB

    return PROVIDER_CLASSES[provider_type](config)
