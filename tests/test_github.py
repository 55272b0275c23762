"""Tests for the GitHub provider."""

import os
import subprocess
from unittest.mock import Mock, patch

import pytest
import requests
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import Timeout

from git_dash.services.git_platform import (
    AuthenticationError,
    GitPlatformError,
    ProviderConfig,
    ProviderType,
    RateLimitError,
    TransportError,
)
from git_dash.services.github import (
    GitHubProvider,
    gh_pr_command,
    make_issues_query,
    make_pull_requests_query,
)
from git_dash.services.types import PageInfo


def make_response(status_code=200, json_data=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = json_data or {}
    response.text = text
    return response


def pr_node(number=1, archived=False, **overrides):
    node = {
        "number": number,
        "title": f"PR {number}",
        "body": "Body",
        "author": {"login": "octocat"},
        "authorAssociation": "MEMBER",
        "updatedAt": "2024-03-02T10:00:00Z",
        "createdAt": "2024-03-01T10:00:00Z",
        "url": f"https://github.com/acme/core/pull/{number}",
        "state": "OPEN",
        "mergeable": "MERGEABLE",
        "reviewDecision": "APPROVED",
        "additions": 10,
        "deletions": 2,
        "headRefName": "feature",
        "baseRefName": "main",
        "headRepository": {"name": "core"},
        "repository": {"name": "core", "nameWithOwner": "acme/core", "isArchived": archived},
        "assignees": {"nodes": [{"login": "hubot"}], "totalCount": 1},
        "comments": {"nodes": [{"author": {"login": "hubot"}, "body": "LGTM",
                                "updatedAt": "2024-03-02T09:00:00Z"}], "totalCount": 1},
        "reviews": {"nodes": [{"author": {"login": "hubot"}, "body": "", "state": "APPROVED",
                               "updatedAt": "2024-03-02T09:30:00Z"}], "totalCount": 1},
        "reviewRequests": {"totalCount": 2},
        "files": {"nodes": [{"path": "main.py", "additions": 10, "deletions": 2,
                             "changeType": "MODIFIED"}], "totalCount": 1},
        "isDraft": False,
        "labels": {"nodes": [{"name": "bug", "color": "d73a4a"}]},
        "mergeStateStatus": "CLEAN",
        "commits": {"nodes": [{"commit": {"statusCheckRollup": {"state": "SUCCESS"}}}]},
    }
    node.update(overrides)
    return node


def issue_node(number=1, archived=False):
    return {
        "number": number,
        "title": f"Issue {number}",
        "body": "Body",
        "state": "CLOSED",
        "author": {"login": "octocat"},
        "authorAssociation": "NONE",
        "updatedAt": "2024-03-02T10:00:00Z",
        "createdAt": "2024-03-01T10:00:00Z",
        "url": f"https://github.com/acme/core/issues/{number}",
        "repository": {"name": "core", "nameWithOwner": "acme/core", "isArchived": archived},
        "assignees": {"nodes": [], "totalCount": 0},
        "comments": {"nodes": [], "totalCount": 3},
        "reactions": {"totalCount": 4},
        "labels": {"nodes": []},
    }


def search_payload(nodes, count=None, has_next=False, end_cursor="Y3Vyc29yOjI="):
    return {"data": {"search": {
        "nodes": nodes,
        "issueCount": len(nodes) if count is None else count,
        "pageInfo": {"hasNextPage": has_next, "startCursor": "Y3Vyc29yOjE=", "endCursor": end_cursor},
    }}}


@pytest.fixture
def provider():
    return GitHubProvider(ProviderConfig(type=ProviderType.GITHUB, token="ghp_test_token"))


class TestGitHubProviderSetup:
    """Test GitHub provider initialization."""

    def test_initialization_default(self):
        provider = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB))

        assert provider.token == ""
        assert provider.base_url == "https://github.com"
        assert provider.api_url == "https://api.github.com/graphql"
        assert provider.host is None

    def test_initialization_enterprise(self):
        provider = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB,
                                                 base_url="https://github.enterprise.com/"))

        assert provider.base_url == "https://github.enterprise.com"
        assert provider.api_url == "https://github.enterprise.com/api/graphql"
        assert provider.host == "github.enterprise.com"

    def test_initialization_custom_api_url(self):
        provider = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB),
                                  api_url="https://localhost:3000/graphql/")

        assert provider.api_url == "https://localhost:3000/graphql"

    def test_capabilities(self, provider):
        assert provider.get_type() == ProviderType.GITHUB
        assert provider.supports_pull_requests()
        assert provider.supports_issues()


class TestResolveToken:
    """Test GitHub credential lookup."""

    def test_config_token_first(self, provider):
        with patch.dict(os.environ, {"GH_TOKEN": "env-token"}):
            assert provider.resolve_token() == ("ghp_test_token", "config")

    def test_environment_token(self):
        provider = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB))

        with patch.dict(os.environ, {"GH_TOKEN": "", "GITHUB_TOKEN": "env-token"}):
            assert provider.resolve_token() == ("env-token", "GITHUB_TOKEN")

    def test_gh_cli_token(self):
        provider = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB))
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="gho_cli\n", stderr="")

        with patch.dict(os.environ, {"GH_TOKEN": "", "GITHUB_TOKEN": ""}), \
                patch("git_dash.services.github.subprocess.run", return_value=completed) as mock_run:
            assert provider.resolve_token() == ("gho_cli", "GitHub CLI")

        assert mock_run.call_args.args[0] == ["gh", "auth", "token"]

    def test_gh_cli_enterprise_hostname(self):
        provider = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB, base_url="https://ghe.corp"))
        completed = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="not logged in")

        with patch.dict(os.environ, {"GH_TOKEN": "", "GITHUB_TOKEN": ""}), \
                patch("git_dash.services.github.subprocess.run", return_value=completed) as mock_run:
            assert provider.resolve_token() == ("", "")

        assert mock_run.call_args.args[0] == ["gh", "auth", "token", "--hostname", "ghe.corp"]

    def test_gh_not_executable(self):
        provider = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB))

        with patch.dict(os.environ, {"GH_TOKEN": "", "GITHUB_TOKEN": ""}), \
                patch("git_dash.services.github.subprocess.run", side_effect=PermissionError("gh")):
            assert provider.resolve_token() == ("", "")
            assert not provider.get_auth_info().is_logged_in

    def test_gh_missing(self):
        provider = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB))

        with patch.dict(os.environ, {"GH_TOKEN": "", "GITHUB_TOKEN": ""}), \
                patch("git_dash.services.github.subprocess.run", side_effect=FileNotFoundError("gh")):
            assert provider.resolve_token() == ("", "")


class TestFetchPullRequests:
    """Test pull request search."""

    def test_query_and_variables(self, provider):
        with patch.object(provider.session, "post",
                          return_value=make_response(json_data=search_payload([pr_node()]))) as mock_post:
            provider.fetch_pull_requests("author:@me", 20)

        body = mock_post.call_args.kwargs["json"]
        assert body["variables"] == {"query": "is:pr author:@me sort:updated", "limit": 20, "endCursor": None}
        assert "search(type: ISSUE" in body["query"]
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "bearer ghp_test_token"
        assert mock_post.call_args.args[0] == "https://api.github.com/graphql"

    def test_parses_nodes(self, provider):
        with patch.object(provider.session, "post",
                          return_value=make_response(json_data=search_payload([pr_node(7)], has_next=True))):
            response = provider.fetch_pull_requests("", 10)

        assert response.total_count == 1
        assert response.page_info.has_next_page
        assert response.page_info.end_cursor == "Y3Vyc29yOjI="

        pr = response.prs[0]
        assert pr.number == 7
        assert pr.state == "open"
        assert pr.author == "octocat"
        assert pr.repository.name_with_owner == "acme/core"
        assert pr.assignees.logins == ["hubot"]
        assert pr.comments.nodes[0].body == "LGTM"
        assert pr.reviews.nodes[0].state == "APPROVED"
        assert pr.review_requests_count == 2
        assert pr.files.nodes[0].path == "main.py"
        assert pr.labels.nodes[0].name == "bug"
        assert pr.status_check_rollup == "SUCCESS"
        assert pr.created_at.year == 2024

    def test_merged_state_lowercased(self, provider):
        payload = search_payload([pr_node(state="MERGED")])
        with patch.object(provider.session, "post", return_value=make_response(json_data=payload)):
            response = provider.fetch_pull_requests("", 10)

        assert response.prs[0].state == "merged"

    def test_archived_repositories_skipped(self, provider):
        payload = search_payload([pr_node(1), pr_node(2, archived=True)], count=2)
        with patch.object(provider.session, "post", return_value=make_response(json_data=payload)):
            response = provider.fetch_pull_requests("", 10)

        assert [pr.number for pr in response.prs] == [1]
        assert response.total_count == 2

    def test_page_cursor_forwarded(self, provider):
        with patch.object(provider.session, "post",
                          return_value=make_response(json_data=search_payload([]))) as mock_post:
            provider.fetch_pull_requests("", 10, PageInfo(has_next_page=True, end_cursor="abc"))

        assert mock_post.call_args.kwargs["json"]["variables"]["endCursor"] == "abc"

    def test_missing_fields_use_defaults(self, provider):
        payload = search_payload([{"number": 3, "repository": None, "author": None}])
        with patch.object(provider.session, "post", return_value=make_response(json_data=payload)):
            pr = provider.fetch_pull_requests("", 10).prs[0]

        assert pr.author == ""
        assert pr.labels.nodes == []
        assert pr.status_check_rollup == ""


class TestFetchIssues:
    """Test issue search."""

    def test_fetch_issues(self, provider):
        payload = search_payload([issue_node(5), issue_node(6, archived=True)])
        with patch.object(provider.session, "post", return_value=make_response(json_data=payload)) as mock_post:
            response = provider.fetch_issues("label:bug", 5)

        assert mock_post.call_args.kwargs["json"]["variables"]["query"] == "is:issue label:bug sort:updated"
        assert [issue.number for issue in response.issues] == [5]
        issue = response.issues[0]
        assert issue.state == "closed"
        assert issue.reactions_count == 4
        assert issue.comments.total_count == 3


class TestFetchPullRequest:
    """Test single pull request lookup."""

    def test_fetch_by_url(self, provider):
        payload = {"data": {"resource": pr_node(42)}}
        with patch.object(provider.session, "post", return_value=make_response(json_data=payload)) as mock_post:
            pr = provider.fetch_pull_request("https://github.com/acme/core/pull/42")

        assert pr.number == 42
        assert mock_post.call_args.kwargs["json"]["variables"] == {"url": "https://github.com/acme/core/pull/42"}

    def test_not_found(self, provider):
        with patch.object(provider.session, "post",
                          return_value=make_response(json_data={"data": {"resource": None}})):
            with pytest.raises(GitPlatformError, match="not found"):
                provider.fetch_pull_request("https://github.com/acme/core/pull/404")


class TestGraphQLErrors:
    """Test error mapping of the GraphQL transport."""

    def test_no_credentials(self):
        provider = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB))

        with patch.object(provider, "resolve_token", return_value=("", "")), \
                patch.object(provider.session, "post") as mock_post:
            with pytest.raises(AuthenticationError) as exc_info:
                provider.fetch_pull_requests("", 10)

        assert "GH_TOKEN" in str(exc_info.value)
        mock_post.assert_not_called()

    def test_unauthorized(self, provider):
        with patch.object(provider.session, "post", return_value=make_response(401, text="Bad credentials")):
            with pytest.raises(AuthenticationError):
                provider.fetch_issues("", 10)

    def test_rate_limited(self, provider):
        response = make_response(403, text="API rate limit exceeded")
        with patch.object(provider.session, "post", return_value=response):
            with pytest.raises(RateLimitError):
                provider.fetch_pull_requests("", 10)

    def test_server_error_keeps_body(self, provider):
        with patch.object(provider.session, "post", return_value=make_response(502, text="bad gateway")):
            with pytest.raises(TransportError) as exc_info:
                provider.fetch_pull_requests("", 10)

        assert exc_info.value.status_code == 502
        assert exc_info.value.body == "bad gateway"
        assert "bad gateway" in str(exc_info.value)

    def test_graphql_errors(self, provider):
        payload = {"errors": [{"message": "Field 'foo' doesn't exist"}]}
        with patch.object(provider.session, "post", return_value=make_response(json_data=payload, text="{}")):
            with pytest.raises(TransportError, match="Field 'foo'"):
                provider.fetch_pull_requests("", 10)

    def test_timeout(self, provider):
        with patch.object(provider.session, "post", side_effect=Timeout()):
            with pytest.raises(TransportError, match="timed out"):
                provider.fetch_pull_requests("", 10)

    def test_connection_error(self, provider):
        with patch.object(provider.session, "post", side_effect=RequestsConnectionError("refused")):
            with pytest.raises(TransportError):
                provider.fetch_pull_requests("", 10)

    def test_non_json_body(self, provider):
        response = requests.Response()
        response.status_code = 200
        response._content = b"<html>captive portal</html>"

        with patch.object(provider.session, "post", return_value=response):
            with pytest.raises(TransportError) as exc_info:
                provider.fetch_pull_requests("", 10)

        assert exc_info.value.status_code == 200
        assert exc_info.value.body == "<html>captive portal</html>"

    def test_unexpected_json_shape(self, provider):
        with patch.object(provider.session, "post",
                          return_value=make_response(json_data=["not", "an", "object"], text='["not"]')):
            with pytest.raises(TransportError) as exc_info:
                provider.fetch_issues("", 10)

        assert exc_info.value.body == '["not"]'

    def test_not_retried(self, provider):
        with patch.object(provider.session, "post", return_value=make_response(500, text="oops")) as mock_post:
            with pytest.raises(TransportError):
                provider.fetch_pull_requests("", 10)

        assert mock_post.call_count == 1


class TestAuthInfo:
    """Test auth info reporting."""

    def test_logged_in(self, provider):
        payload = {"data": {"viewer": {"login": "octocat"}}}
        with patch.object(provider.session, "post", return_value=make_response(json_data=payload)):
            info = provider.get_auth_info()

        assert info.username == "octocat"
        assert info.is_logged_in
        assert info.token_source == "config"

    def test_not_logged_in(self):
        provider = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB))

        with patch.object(provider, "resolve_token", return_value=("", "")):
            info = provider.get_auth_info()

        assert not info.is_logged_in
        assert info.username == ""


class TestCommands:
    """Test gh command builders."""

    def test_queries(self):
        assert make_pull_requests_query("repo:acme/core") == "is:pr repo:acme/core sort:updated"
        assert make_issues_query("is:open") == "is:issue is:open sort:updated"

    @pytest.mark.parametrize("method,expected", [
        ("get_diff_command", ["gh", "pr", "diff", "12", "-R", "acme/core"]),
        ("get_checkout_command", ["gh", "pr", "checkout", "12", "-R", "acme/core"]),
        ("get_merge_command", ["gh", "pr", "merge", "12", "-R", "acme/core"]),
        ("get_close_command", ["gh", "pr", "close", "12", "-R", "acme/core"]),
        ("get_reopen_command", ["gh", "pr", "reopen", "12", "-R", "acme/core"]),
        ("get_ready_command", ["gh", "pr", "ready", "12", "-R", "acme/core"]),
        ("get_update_command", ["gh", "pr", "update-branch", "12", "-R", "acme/core"]),
        ("get_watch_checks_command",
         ["gh", "pr", "checks", "--watch", "--fail-fast", "12", "-R", "acme/core"]),
    ])
    def test_command_builders(self, provider, method, expected):
        assert getattr(provider, method)(12, "acme/core") == expected

    def test_enterprise_host_prefix(self):
        provider = GitHubProvider(ProviderConfig(type=ProviderType.GITHUB, base_url="https://ghe.corp"))

        assert provider.get_diff_command(3, "acme/core") == ["gh", "pr", "diff", "3", "-R", "ghe.corp/acme/core"]

    def test_builders_do_not_execute(self, provider):
        with patch("git_dash.services.github.subprocess.run") as mock_run:
            provider.get_merge_command(1, "acme/core")

        mock_run.assert_not_called()

    def test_gh_pr_command_unknown_action(self):
        with pytest.raises(KeyError):
            gh_pr_command("rebase", 1, "acme/core")
