"""Resolution of pull request actions into commands for the caller to run."""

import logging
from enum import Enum
from typing import List, Optional

from ..services.git_platform import CapabilityUnavailableError, GitProvider
from ..services.github import gh_pr_command
from ..services.provider_manager import ProviderManager
from .provider_integration import get_current_provider

logger = logging.getLogger(__name__)


class PrAction(str, Enum):
    """Pull request actions the dashboard can trigger."""
    DIFF = "diff"
    CHECKOUT = "checkout"
    MERGE = "merge"
    CLOSE = "close"
    REOPEN = "reopen"
    READY = "ready"
    UPDATE = "update"
    WATCH_CHECKS = "watch_checks"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


_BUILDERS = {
    PrAction.DIFF: "get_diff_command",
    PrAction.CHECKOUT: "get_checkout_command",
    PrAction.MERGE: "get_merge_command",
    PrAction.CLOSE: "get_close_command",
    PrAction.REOPEN: "get_reopen_command",
    PrAction.READY: "get_ready_command",
    PrAction.UPDATE: "get_update_command",
    PrAction.WATCH_CHECKS: "get_watch_checks_command",
}


def resolve_pr_command(action: PrAction,
                       pr_number: int,
                       repo_name_with_owner: str,
                       provider: Optional[GitProvider] = None,
                       manager: Optional[ProviderManager] = None) -> List[str]:
    """Argument vector (program first) for a pull request action.

    Uses provider, or the active provider when none is passed, and the plain
    ``gh pr`` command when no provider is active.

    Raises:
        CapabilityUnavailableError: If the provider has no command for the
            action; a builder's own error is propagated unchanged
    """
    action = PrAction(action)
    if provider is None:
        provider = get_current_provider(manager)

    if provider is None:
        logger.debug(f"No provider, using gh for {action.label}")
        return gh_pr_command(action.value, pr_number, repo_name_with_owner)

    args = getattr(provider, _BUILDERS[action])(pr_number, repo_name_with_owner)
    if not args:
        raise CapabilityUnavailableError(f"{action.label} command not available for this provider")

    logger.debug(f"Resolved {action.label} command: {args}")
    return list(args)
