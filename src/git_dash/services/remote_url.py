"""Classification of git remote URLs into provider coordinates."""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .git_platform import ProviderConfig, ProviderType

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

GITHUB_BASE_URL = "https://github.com"
AZURE_DEVOPS_BASE_URL = "https://dev.azure.com"

_REPO = r"(.+?)(?:\.git)?/?$"

# SSH short forms rewritten to HTTPS before classification
_GITHUB_SSH = re.compile(r"^git@github\.com:([^/]+)/" + _REPO)
_AZURE_SSH = re.compile(r"^git@ssh\.dev\.azure\.com:v3/([^/]+)/([^/]+)/" + _REPO)

# Tried in list order; the TFS grammar is last and relies on its deeper path
_AZURE_CLOUD = re.compile(r"^https://(?:[^@/]+@)?dev\.azure\.com/([^/]+)/([^/]+)/_git/" + _REPO)
_AZURE_VISUALSTUDIO = re.compile(r"^https://(?:[^@/]+@)?([^./]+)\.visualstudio\.com/(?:DefaultCollection/)?([^/]+)/_git/" + _REPO)
_AZURE_TFS = re.compile(r"^(https?)://([^/]+)/tfs/([^/]+)/([^/]+)/_git/" + _REPO)

_GITHUB_HTTPS = re.compile(r"^https://(?:[^@/]+@)?github\.com/([^/]+)/" + _REPO)


@dataclass(frozen=True)
class RemoteInfo:
    """Provider coordinates derived from a remote URL."""
    provider: ProviderType
    organization: str
    project: str
    repository: str
    base_url: str

    @property
    def is_unknown(self) -> bool:
        """True when the URL matched no grammar and this is the GitHub guess."""
        return self.organization == UNKNOWN and self.repository == UNKNOWN


def convert_ssh_to_https(ssh_url: str) -> str:
    """Rewrite a known SSH remote to its HTTPS equivalent.

    Unrecognised SSH hosts are returned unchanged.
    """
    match = _GITHUB_SSH.match(ssh_url)
    if match:
        return f"{GITHUB_BASE_URL}/{match.group(1)}/{match.group(2)}.git"

    match = _AZURE_SSH.match(ssh_url)
    if match:
        org, project, repo = match.groups()
        return f"{AZURE_DEVOPS_BASE_URL}/{org}/{project}/_git/{repo}"

    return ssh_url


def _parse_azure_devops_url(url: str) -> Optional[RemoteInfo]:
    match = _AZURE_CLOUD.match(url)
    if match:
        org, project, repo = match.groups()
        return RemoteInfo(ProviderType.AZURE_DEVOPS, org, project, repo, AZURE_DEVOPS_BASE_URL)

    match = _AZURE_VISUALSTUDIO.match(url)
    if match:
        org, project, repo = match.groups()
        return RemoteInfo(ProviderType.AZURE_DEVOPS, org, project, repo,
                          f"https://{org}.visualstudio.com")

    match = _AZURE_TFS.match(url)
    if match:
        scheme, server, collection, project, repo = match.groups()
        # The collection plays the organization role on-premises
        return RemoteInfo(ProviderType.AZURE_DEVOPS, collection, project, repo,
                          f"{scheme}://{server}")

    return None


def _parse_github_url(url: str) -> RemoteInfo:
    match = _GITHUB_HTTPS.match(url)
    if match:
        owner, repo = match.groups()
        return RemoteInfo(ProviderType.GITHUB, owner, "", repo, GITHUB_BASE_URL)

    return RemoteInfo(ProviderType.GITHUB, UNKNOWN, "", UNKNOWN, GITHUB_BASE_URL)


def parse_git_remote_url(remote_url: str) -> RemoteInfo:
    """Classify a git remote URL.

    Azure DevOps grammars are tried before GitHub. A URL matching nothing is
    not an error: it yields a GitHub RemoteInfo whose organization and
    repository are ``"unknown"``.

    Args:
        remote_url: Raw remote URL (HTTPS or SSH)

    Returns:
        RemoteInfo for the URL
    """
    url = (remote_url or "").strip()

    if url.startswith("git@"):
        url = convert_ssh_to_https(url)

    info = _parse_azure_devops_url(url)
    if info is None:
        info = _parse_github_url(url)

    if info.is_unknown:
        logger.warning(f"Could not classify git remote {remote_url!r}, assuming GitHub")
    return info


def get_provider_config_from_remote(remote_url: str) -> ProviderConfig:
    """Build a provider configuration (without token) from a remote URL."""
    info = parse_git_remote_url(remote_url)
    return ProviderConfig(
        type=info.provider,
        organization=info.organization,
        project=info.project,
        base_url=info.base_url,
    )
