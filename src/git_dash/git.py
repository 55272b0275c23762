"""Minimal git helpers used for provider auto-detection."""

import logging
import subprocess
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


class GitCommandError(Exception):
    """A git command failed or git is not available."""
    pass


def get_origin_url(repo_path: Union[str, Path] = ".", timeout: int = 5) -> str:
    """Return the URL of the ``origin`` remote of the repository at repo_path.

    Raises:
        GitCommandError: If git is missing, times out, or no origin is configured
    """
    cmd = ["git", "config", "--get", "remote.origin.url"]
    try:
        result = subprocess.run(
            cmd,
            cwd=str(repo_path or "."),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise GitCommandError(f"git timed out after {timeout}s in {repo_path}") from e
    except OSError as e:
        raise GitCommandError(f"Failed to run git in {repo_path}: {e}") from e

    url = result.stdout.strip()
    if result.returncode != 0 or not url:
        error_msg = result.stderr.strip() if result.stderr else "no origin remote"
        raise GitCommandError(f"Failed to get git remote URL for {repo_path}: {error_msg}")

    logger.debug(f"Found origin remote {url} for {repo_path}")
    return url
