"""Tests for the git helpers."""

import subprocess
from unittest.mock import patch

import pytest

from git_dash.git import GitCommandError, get_origin_url


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestGetOriginUrl:
    """Test origin remote lookup."""

    def test_returns_stripped_url(self):
        with patch("git_dash.git.subprocess.run",
                   return_value=completed(stdout="git@github.com:acme/core.git\n")) as mock_run:
            url = get_origin_url("/work/core")

        assert url == "git@github.com:acme/core.git"
        assert mock_run.call_args.args[0] == ["git", "config", "--get", "remote.origin.url"]
        assert mock_run.call_args.kwargs["cwd"] == "/work/core"

    def test_no_origin(self):
        with patch("git_dash.git.subprocess.run", return_value=completed(returncode=1)):
            with pytest.raises(GitCommandError, match="no origin remote"):
                get_origin_url()

    def test_not_a_repository(self):
        error = "fatal: not in a git directory"
        with patch("git_dash.git.subprocess.run", return_value=completed(returncode=128, stderr=error)):
            with pytest.raises(GitCommandError, match="not in a git directory"):
                get_origin_url("/tmp")

    def test_git_missing(self):
        with patch("git_dash.git.subprocess.run", side_effect=FileNotFoundError("git")):
            with pytest.raises(GitCommandError):
                get_origin_url()

    def test_permission_denied(self):
        with patch("git_dash.git.subprocess.run", side_effect=PermissionError("denied")):
            with pytest.raises(GitCommandError, match="denied"):
                get_origin_url("/srv/locked")

    def test_timeout(self):
        with patch("git_dash.git.subprocess.run",
                   side_effect=subprocess.TimeoutExpired(cmd="git", timeout=5)):
            with pytest.raises(GitCommandError, match="timed out"):
                get_origin_url(timeout=5)

    def test_real_repository(self, tmp_path):
        try:
            subprocess.run(["git", "init", "-q", str(tmp_path)], check=True, capture_output=True)
            subprocess.run(["git", "-C", str(tmp_path), "remote", "add", "origin",
                            "https://dev.azure.com/acme/widgets/_git/core"], check=True, capture_output=True)
        except (FileNotFoundError, subprocess.CalledProcessError):
            pytest.skip("git is not available")

        assert get_origin_url(tmp_path) == "https://dev.azure.com/acme/widgets/_git/core"
