"""GitHub provider implementation backed by the GraphQL search API."""

import logging
import os
import subprocess
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import requests
from requests.exceptions import RequestException, Timeout

from .git_platform import (
    AuthenticationError,
    AuthInfo,
    GitPlatformError,
    GitProvider,
    ProviderConfig,
    ProviderType,
    RateLimitError,
    TransportError,
)
from .types import (
    Assignees,
    ChangedFile,
    ChangedFiles,
    Comment,
    Comments,
    IssueData,
    IssuesResponse,
    Label,
    Labels,
    PageInfo,
    PullRequestData,
    PullRequestsResponse,
    Repository,
    Review,
    Reviews,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

GITHUB_URL = "https://github.com"
GITHUB_API_URL = "https://api.github.com"

TOKEN_ENV_VARS = ("GH_TOKEN", "GITHUB_TOKEN")

PULL_REQUEST_FIELDS = """
    number
    title
    body
    author { login }
    authorAssociation
    updatedAt
    createdAt
    url
    state
    mergeable
    reviewDecision
    additions
    deletions
    headRefName
    baseRefName
    headRepository { name }
    repository { name nameWithOwner isArchived }
    assignees(first: 3) { nodes { login } totalCount }
    comments(last: 5) { nodes { author { login } body updatedAt } totalCount }
    reviews(last: 3) { nodes { author { login } body state updatedAt } totalCount }
    reviewRequests { totalCount }
    files(first: 50) { nodes { path additions deletions changeType } totalCount }
    isDraft
    labels(first: 20) { nodes { name color } }
    mergeStateStatus
    commits(last: 1) { nodes { commit { statusCheckRollup { state } } } }
"""

ISSUE_FIELDS = """
    number
    title
    body
    state
    author { login }
    authorAssociation
    updatedAt
    createdAt
    url
    repository { name nameWithOwner isArchived }
    assignees(first: 3) { nodes { login } totalCount }
    comments(last: 5) { nodes { author { login } body updatedAt } totalCount }
    reactions { totalCount }
    labels(first: 20) { nodes { name color } }
"""

SEARCH_PULL_REQUESTS = """
query SearchPullRequests($query: String!, $limit: Int!, $endCursor: String) {
  search(type: ISSUE, first: $limit, after: $endCursor, query: $query) {
    nodes { ... on PullRequest { %s } }
    issueCount
    pageInfo { hasNextPage startCursor endCursor }
  }
}
""" % PULL_REQUEST_FIELDS

SEARCH_ISSUES = """
query SearchIssues($query: String!, $limit: Int!, $endCursor: String) {
  search(type: ISSUE, first: $limit, after: $endCursor, query: $query) {
    nodes { ... on Issue { %s } }
    issueCount
    pageInfo { hasNextPage startCursor endCursor }
  }
}
""" % ISSUE_FIELDS

FETCH_PULL_REQUEST = """
query FetchPullRequest($url: URI!) {
  resource(url: $url) { ... on PullRequest { %s } }
}
""" % PULL_REQUEST_FIELDS

VIEWER = "query Viewer { viewer { login } }"

GH_PR_SUBCOMMANDS = {
    "diff": ["diff"],
    "checkout": ["checkout"],
    "merge": ["merge"],
    "close": ["close"],
    "reopen": ["reopen"],
    "ready": ["ready"],
    "update": ["update-branch"],
    "watch_checks": ["checks", "--watch", "--fail-fast"],
}


def make_pull_requests_query(query: str) -> str:
    return f"is:pr {query} sort:updated"


def make_issues_query(query: str) -> str:
    return f"is:issue {query} sort:updated"


def gh_pr_command(action: str, pr_number: int, repo_name_with_owner: str,
                  host: Optional[str] = None) -> List[str]:
    """Build a ``gh pr`` invocation for one of the pull request actions.

    Args:
        action: Key of GH_PR_SUBCOMMANDS
        pr_number: Pull request number
        repo_name_with_owner: ``owner/repo``
        host: GitHub Enterprise host name, None for github.com
    """
    repo = f"{host}/{repo_name_with_owner}" if host else repo_name_with_owner
    return ["gh", "pr", *GH_PR_SUBCOMMANDS[action], str(pr_number), "-R", repo]


class GitHubProvider(GitProvider):
    """GitHub provider talking to the GraphQL API."""

    def __init__(self, config: ProviderConfig, api_url: Optional[str] = None):
        """Initialize GitHub provider.

        Args:
            config: Provider configuration; base_url selects GitHub Enterprise
            api_url: GraphQL endpoint (auto-detected if not provided)
        """
        super().__init__(config)
        self.base_url = (config.base_url or GITHUB_URL).rstrip("/")

        # Auto-detect API URL based on base URL
        if api_url is None:
            if self.base_url == GITHUB_URL:
                self.api_url = f"{GITHUB_API_URL}/graphql"
            else:
                # GitHub Enterprise Server
                self.api_url = f"{self.base_url}/api/graphql"
        else:
            self.api_url = api_url.rstrip("/")

        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "User-Agent": "git-dash/1.0",
        })

        self.logger.debug(f"Created GitHub provider for {self.base_url}")

    @property
    def host(self) -> Optional[str]:
        """Enterprise host name, None for github.com."""
        if self.base_url == GITHUB_URL:
            return None
        return urlparse(self.base_url).netloc or None

    def get_type(self) -> ProviderType:
        return ProviderType.GITHUB

    def supports_pull_requests(self) -> bool:
        return True

    def supports_issues(self) -> bool:
        return True

    def resolve_token(self) -> Tuple[str, str]:
        """Find a credential: config, then environment, then the gh CLI.

        Returns:
            Tuple of (token, source); both empty when nothing is available
        """
        if self.token:
            return self.token, "config"

        for name in TOKEN_ENV_VARS:
            value = os.environ.get(name, "").strip()
            if value:
                return value, name

        cmd = ["gh", "auth", "token"]
        if self.host:
            cmd.extend(["--hostname", self.host])
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=10)
        except (OSError, subprocess.TimeoutExpired) as e:
            self.logger.debug(f"gh CLI token lookup failed: {e}")
            return "", ""

        token = result.stdout.strip()
        if result.returncode == 0 and token:
            return token, "GitHub CLI"
        return "", ""

    def get_auth_info(self) -> AuthInfo:
        """Report the login of the authenticated viewer."""
        self._log_operation("get_auth_info")

        token, source = self.resolve_token()
        if not token:
            return AuthInfo(username="", is_logged_in=False, token_source="")

        data = self._graphql(VIEWER, {}, token=token)
        login = (data.get("viewer") or {}).get("login", "")
        return AuthInfo(username=login, is_logged_in=bool(login), token_source=source)

    def fetch_pull_requests(self,
                            query: str,
                            limit: int,
                            page_info: Optional[PageInfo] = None) -> PullRequestsResponse:
        """Search pull requests with ``is:pr <query> sort:updated``."""
        end_cursor = page_info.end_cursor if page_info and page_info.end_cursor else None
        self._log_operation("fetch_pull_requests", query=query, limit=limit, end_cursor=end_cursor)

        data = self._graphql(SEARCH_PULL_REQUESTS, {
            "query": make_pull_requests_query(query),
            "limit": limit,
            "endCursor": end_cursor,
        })
        search = data.get("search") or {}

        prs = []
        for node in search.get("nodes") or []:
            if not node:
                continue
            pr = self._parse_pull_request(node)
            if pr.repository.is_archived:
                continue
            prs.append(pr)

        self.logger.debug(f"Fetched {len(prs)} pull requests (total {search.get('issueCount', 0)})")
        return PullRequestsResponse(
            prs=prs,
            total_count=search.get("issueCount", 0),
            page_info=self._parse_page_info(search.get("pageInfo")),
        )

    def fetch_issues(self,
                     query: str,
                     limit: int,
                     page_info: Optional[PageInfo] = None) -> IssuesResponse:
        """Search issues with ``is:issue <query> sort:updated``."""
        end_cursor = page_info.end_cursor if page_info and page_info.end_cursor else None
        self._log_operation("fetch_issues", query=query, limit=limit, end_cursor=end_cursor)

        data = self._graphql(SEARCH_ISSUES, {
            "query": make_issues_query(query),
            "limit": limit,
            "endCursor": end_cursor,
        })
        search = data.get("search") or {}

        issues = []
        for node in search.get("nodes") or []:
            if not node:
                continue
            issue = self._parse_issue(node)
            if issue.repository.is_archived:
                continue
            issues.append(issue)

        self.logger.debug(f"Fetched {len(issues)} issues (total {search.get('issueCount', 0)})")
        return IssuesResponse(
            issues=issues,
            total_count=search.get("issueCount", 0),
            page_info=self._parse_page_info(search.get("pageInfo")),
        )

    def fetch_pull_request(self, url: str) -> PullRequestData:
        """Resolve one pull request by its URL."""
        self._log_operation("fetch_pull_request", url=url)

        data = self._graphql(FETCH_PULL_REQUEST, {"url": url})
        node = data.get("resource")
        if not node:
            raise GitPlatformError(f"Pull request not found: {url}")
        return self._parse_pull_request(node)

    def get_diff_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return gh_pr_command("diff", pr_number, repo_name_with_owner, self.host)

    def get_checkout_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return gh_pr_command("checkout", pr_number, repo_name_with_owner, self.host)

    def get_merge_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return gh_pr_command("merge", pr_number, repo_name_with_owner, self.host)

    def get_close_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return gh_pr_command("close", pr_number, repo_name_with_owner, self.host)

    def get_reopen_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return gh_pr_command("reopen", pr_number, repo_name_with_owner, self.host)

    def get_ready_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return gh_pr_command("ready", pr_number, repo_name_with_owner, self.host)

    def get_update_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return gh_pr_command("update", pr_number, repo_name_with_owner, self.host)

    def get_watch_checks_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return gh_pr_command("watch_checks", pr_number, repo_name_with_owner, self.host)

    def _graphql(self,
                 query: str,
                 variables: Dict[str, Any],
                 token: Optional[str] = None,
                 timeout: int = 30) -> Dict[str, Any]:
        """Run a GraphQL document and return its ``data`` object."""
        if token is None:
            token, _ = self.resolve_token()
        if not token:
            raise AuthenticationError(
                "GitHub authentication is required. Run `gh auth login` "
                f"or set one of {', '.join(TOKEN_ENV_VARS)}"
            )

        try:
            response = self.session.post(
                self.api_url,
                json={"query": query, "variables": variables},
                headers={"Authorization": f"bearer {token}"},
                timeout=timeout,
            )
        except Timeout as e:
            raise TransportError(f"Request to {self.api_url} timed out") from e
        except RequestException as e:
            raise TransportError(f"GitHub API request failed: {e}") from e

        if response.status_code == 401:
            raise AuthenticationError("Invalid or expired GitHub token")
        if response.status_code in (403, 429) and "rate limit" in response.text.lower():
            raise RateLimitError("GitHub API rate limit exceeded",
                                 status_code=response.status_code, body=response.text)
        if response.status_code != 200:
            raise TransportError(f"GitHub API error: {response.text}",
                                 status_code=response.status_code, body=response.text)

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(f"GitHub API returned a non-JSON response: {e}",
                                 status_code=response.status_code, body=response.text) from e
        if not isinstance(payload, dict):
            raise TransportError("GitHub API returned an unexpected response",
                                 status_code=response.status_code, body=response.text)

        errors = payload.get("errors")
        if errors:
            messages = "; ".join(error.get("message", str(error)) for error in errors)
            raise TransportError(f"GitHub GraphQL error: {messages}",
                                 status_code=response.status_code, body=response.text)

        return payload.get("data") or {}

    @staticmethod
    def _parse_page_info(data: Optional[Dict]) -> PageInfo:
        data = data or {}
        return PageInfo(
            has_next_page=bool(data.get("hasNextPage")),
            start_cursor=data.get("startCursor") or "",
            end_cursor=data.get("endCursor") or "",
        )

    @staticmethod
    def _login(data: Optional[Dict]) -> str:
        return (data or {}).get("login") or ""

    def _parse_repository(self, data: Optional[Dict]) -> Repository:
        data = data or {}
        return Repository(
            name=data.get("name", ""),
            name_with_owner=data.get("nameWithOwner", ""),
            is_archived=bool(data.get("isArchived")),
        )

    def _parse_assignees(self, data: Optional[Dict]) -> Assignees:
        data = data or {}
        return Assignees(
            logins=[self._login(node) for node in data.get("nodes") or []],
            total_count=data.get("totalCount", 0),
        )

    def _parse_comments(self, data: Optional[Dict]) -> Comments:
        data = data or {}
        return Comments(
            nodes=[
                Comment(
                    author=self._login(node.get("author")),
                    body=node.get("body") or "",
                    updated_at=parse_timestamp(node.get("updatedAt")),
                )
                for node in data.get("nodes") or []
            ],
            total_count=data.get("totalCount", 0),
        )

    def _parse_labels(self, data: Optional[Dict]) -> Labels:
        data = data or {}
        return Labels(nodes=[
            Label(name=node.get("name", ""), color=node.get("color", ""))
            for node in data.get("nodes") or []
        ])

    def _parse_pull_request(self, node: Dict) -> PullRequestData:
        """Parse a PullRequest GraphQL node."""
        reviews = node.get("reviews") or {}
        files = node.get("files") or {}

        rollup = ""
        commit_nodes = (node.get("commits") or {}).get("nodes") or []
        if commit_nodes:
            status = (commit_nodes[-1].get("commit") or {}).get("statusCheckRollup") or {}
            rollup = status.get("state") or ""

        return PullRequestData(
            number=node.get("number", 0),
            title=node.get("title") or "",
            body=node.get("body") or "",
            author=self._login(node.get("author")),
            author_association=node.get("authorAssociation") or "",
            updated_at=parse_timestamp(node.get("updatedAt")),
            created_at=parse_timestamp(node.get("createdAt")),
            url=node.get("url") or "",
            state=(node.get("state") or "open").lower(),
            mergeable=node.get("mergeable") or "",
            review_decision=node.get("reviewDecision") or "",
            additions=node.get("additions", 0),
            deletions=node.get("deletions", 0),
            head_ref_name=node.get("headRefName") or "",
            base_ref_name=node.get("baseRefName") or "",
            head_repository=(node.get("headRepository") or {}).get("name", ""),
            repository=self._parse_repository(node.get("repository")),
            assignees=self._parse_assignees(node.get("assignees")),
            comments=self._parse_comments(node.get("comments")),
            reviews=Reviews(
                nodes=[
                    Review(
                        author=self._login(review.get("author")),
                        body=review.get("body") or "",
                        state=review.get("state") or "",
                        updated_at=parse_timestamp(review.get("updatedAt")),
                    )
                    for review in reviews.get("nodes") or []
                ],
                total_count=reviews.get("totalCount", 0),
            ),
            review_requests_count=(node.get("reviewRequests") or {}).get("totalCount", 0),
            files=ChangedFiles(
                nodes=[
                    ChangedFile(
                        path=changed.get("path", ""),
                        additions=changed.get("additions", 0),
                        deletions=changed.get("deletions", 0),
                        change_type=changed.get("changeType") or "",
                    )
                    for changed in files.get("nodes") or []
                ],
                total_count=files.get("totalCount", 0),
            ),
            is_draft=bool(node.get("isDraft")),
            labels=self._parse_labels(node.get("labels")),
            merge_state_status=node.get("mergeStateStatus") or "",
            status_check_rollup=rollup,
        )

    def _parse_issue(self, node: Dict) -> IssueData:
        """Parse an Issue GraphQL node."""
        return IssueData(
            number=node.get("number", 0),
            title=node.get("title") or "",
            body=node.get("body") or "",
            state=(node.get("state") or "open").lower(),
            author=self._login(node.get("author")),
            author_association=node.get("authorAssociation") or "",
            updated_at=parse_timestamp(node.get("updatedAt")),
            created_at=parse_timestamp(node.get("createdAt")),
            url=node.get("url") or "",
            repository=self._parse_repository(node.get("repository")),
            assignees=self._parse_assignees(node.get("assignees")),
            comments=self._parse_comments(node.get("comments")),
            reactions_count=(node.get("reactions") or {}).get("totalCount", 0),
            labels=self._parse_labels(node.get("labels")),
        )
