"""Azure DevOps provider implementation backed by the REST API."""

import base64
import logging
import re
from typing import Any, Dict, List, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from requests.exceptions import RequestException, Timeout

from .git_platform import (
    AuthenticationError,
    AuthInfo,
    CapabilityUnavailableError,
    ConfigurationError,
    GitProvider,
    InvalidUrlError,
    ProviderConfig,
    ProviderType,
    RateLimitError,
    TransportError,
)
from .types import (
    Assignees,
    Comments,
    IssueData,
    IssuesResponse,
    Label,
    Labels,
    PageInfo,
    PullRequestData,
    PullRequestsResponse,
    Repository,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://dev.azure.com"
API_VERSION = "7.1"

TOKEN_ENV_VARS = ("AZURE_DEVOPS_TOKEN", "ADO_PAT", "AZURE_PAT")

CLOSED_WORK_ITEM_STATES = {"closed", "done", "removed", "resolved", "completed"}

WORK_ITEM_FIELDS = [
    "System.Id",
    "System.Title",
    "System.State",
    "System.CreatedBy",
    "System.CreatedDate",
    "System.ChangedDate",
    "System.Description",
    "System.AssignedTo",
    "System.Tags",
    "System.CommentCount",
]

_PULL_REQUEST_URL = re.compile(r"/_git/([^/]+)/pullrequest/(\d+)/?(?:[?#].*)?$", re.IGNORECASE)


class _AzureModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


_ModelT = TypeVar("_ModelT", bound=_AzureModel)


class AzureIdentity(_AzureModel):
    display_name: str = Field("", alias="displayName")
    unique_name: str = Field("", alias="uniqueName")


class AzureProjectRef(_AzureModel):
    name: str = ""


class AzureRepositoryRef(_AzureModel):
    name: str = ""
    web_url: str = Field("", alias="webUrl")
    project: AzureProjectRef = Field(default_factory=AzureProjectRef)


class AzureReviewer(AzureIdentity):
    vote: int = 0


class AzureLabel(_AzureModel):
    name: str = ""
    active: bool = True


class AzurePullRequest(_AzureModel):
    """Pull request object of the ``git/pullrequests`` endpoint."""
    pull_request_id: int = Field(0, alias="pullRequestId")
    title: str = ""
    description: str = ""
    status: str = ""
    created_by: AzureIdentity = Field(default_factory=AzureIdentity, alias="createdBy")
    creation_date: Optional[str] = Field(None, alias="creationDate")
    closed_date: Optional[str] = Field(None, alias="closedDate")
    source_ref_name: str = Field("", alias="sourceRefName")
    target_ref_name: str = Field("", alias="targetRefName")
    merge_status: str = Field("", alias="mergeStatus")
    is_draft: bool = Field(False, alias="isDraft")
    repository: AzureRepositoryRef = Field(default_factory=AzureRepositoryRef)
    reviewers: List[AzureReviewer] = Field(default_factory=list)
    labels: List[AzureLabel] = Field(default_factory=list)
    url: str = ""


class AzurePullRequestsResponse(_AzureModel):
    value: List[AzurePullRequest] = Field(default_factory=list)
    count: int = 0


class AzureWorkItemRef(_AzureModel):
    id: int
    url: str = ""


class AzureWiqlResponse(_AzureModel):
    work_items: List[AzureWorkItemRef] = Field(default_factory=list, alias="workItems")


class AzureWorkItem(_AzureModel):
    id: int
    fields: Dict[str, Any] = Field(default_factory=dict)
    url: str = ""


class AzureWorkItemsResponse(_AzureModel):
    value: List[AzureWorkItem] = Field(default_factory=list)
    count: int = 0


def map_pull_request_status(status: str) -> str:
    """Map an Azure DevOps pull request status onto open/closed/merged."""
    if status == "completed":
        return "merged"
    if status == "abandoned":
        return "closed"
    return "open"


def map_work_item_state(state: str) -> str:
    """Map a work item state onto open/closed."""
    if (state or "").strip().lower() in CLOSED_WORK_ITEM_STATES:
        return "closed"
    return "open"


def _strip_ref(ref_name: str) -> str:
    prefix = "refs/heads/"
    return ref_name[len(prefix):] if ref_name.startswith(prefix) else ref_name


def _wiql_quote(value: str) -> str:
    return value.replace("'", "''")


def _identity_name(value: Any) -> str:
    # Work item identity fields are objects on 7.x and strings on older servers
    if isinstance(value, dict):
        return value.get("displayName") or value.get("uniqueName") or ""
    return str(value or "")


def review_decision(reviewers: List[AzureReviewer]) -> str:
    """Summarize reviewer votes the way GitHub reports a review decision.

    Votes are 10 (approved), 5 (approved with suggestions), 0 (no vote),
    -5 (waiting for author) and -10 (rejected).
    """
    votes = [reviewer.vote for reviewer in reviewers]
    if any(vote < 0 for vote in votes):
        return "CHANGES_REQUESTED"
    if any(vote > 0 for vote in votes):
        return "APPROVED"
    if votes:
        return "REVIEW_REQUIRED"
    return ""


class AzureDevOpsProvider(GitProvider):
    """Azure DevOps provider: pull requests plus work items as issues."""

    def __init__(self, config: ProviderConfig):
        """Initialize Azure DevOps provider.

        Args:
            config: Provider configuration with organization, project and PAT
        """
        super().__init__(config)
        self.organization = config.organization
        self.project = config.project
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")

        self.session = requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "git-dash/1.0",
        })
        if self.token:
            self.session.headers.update({"Authorization": self.auth_header(self.token)})

        self.logger.debug(
            f"Created Azure DevOps provider org={self.organization!r} project={self.project!r} "
            f"base_url={self.base_url} has_token={bool(self.token)}"
        )

    @staticmethod
    def auth_header(token: str) -> str:
        """Basic auth header value: empty user name plus PAT."""
        encoded = base64.b64encode(f":{token}".encode("utf-8")).decode("ascii")
        return f"Basic {encoded}"

    @property
    def project_url(self) -> str:
        return f"{self.base_url}/{self.organization}/{self.project}"

    def get_type(self) -> ProviderType:
        return ProviderType.AZURE_DEVOPS

    def supports_pull_requests(self) -> bool:
        return True

    def supports_issues(self) -> bool:
        return True

    def get_auth_info(self) -> AuthInfo:
        return AuthInfo(
            username="azure-user",
            is_logged_in=bool(self.token),
            token_source="Personal Access Token" if self.token else "",
        )

    def fetch_pull_requests(self,
                            query: str,
                            limit: int,
                            page_info: Optional[PageInfo] = None) -> PullRequestsResponse:
        """List pull requests of the project.

        The cursor is the ``$skip`` offset of the next page.
        """
        self._log_operation("fetch_pull_requests", query=query, limit=limit)
        self._check_ready()

        skip = self._skip_from(page_info)
        params = {"api-version": API_VERSION, "$top": limit}
        if skip:
            params["$skip"] = skip

        response = self._make_request("GET", "/_apis/git/pullrequests", params=params)
        azure_response = self._parse(response, AzurePullRequestsResponse)

        self.logger.debug(f"Fetched {azure_response.count} Azure DevOps pull requests")

        prs = [self.convert_pull_request(pr) for pr in azure_response.value]
        return PullRequestsResponse(
            prs=prs,
            total_count=azure_response.count,
            page_info=self._next_page(skip, len(prs), limit),
        )

    def fetch_issues(self,
                     query: str,
                     limit: int,
                     page_info: Optional[PageInfo] = None) -> IssuesResponse:
        """Run a WIQL query for the project's work items and load their fields.

        WIQL returns every matching id, so the page is sliced locally and
        total_count is the full match count.
        """
        self._log_operation("fetch_issues", query=query, limit=limit)
        self._check_ready()

        skip = self._skip_from(page_info)
        wiql = (
            "SELECT [System.Id] FROM workitems "
            f"WHERE [System.TeamProject] = '{_wiql_quote(self.project)}' "
            "ORDER BY [System.ChangedDate] DESC"
        )
        response = self._make_request(
            "POST",
            "/_apis/wit/wiql",
            params={"api-version": API_VERSION},
            data={"query": wiql},
        )
        refs = self._parse(response, AzureWiqlResponse).work_items
        page = refs[skip:skip + limit]

        issues: List[IssueData] = []
        if page:
            details = self._make_request(
                "GET",
                "/_apis/wit/workitems",
                params={
                    "ids": ",".join(str(ref.id) for ref in page),
                    "fields": ",".join(WORK_ITEM_FIELDS),
                    "api-version": API_VERSION,
                },
            )
            work_items = self._parse(details, AzureWorkItemsResponse).value
            issues = [self.convert_work_item(item) for item in work_items]

        self.logger.debug(f"Fetched {len(issues)} Azure DevOps work items")
        return IssuesResponse(
            issues=issues,
            total_count=len(refs),
            page_info=PageInfo(
                has_next_page=skip + len(page) < len(refs),
                start_cursor=str(skip),
                end_cursor=str(skip + len(page)),
            ),
        )

    def fetch_pull_request(self, url: str) -> PullRequestData:
        """Fetch a pull request from its ``.../_git/{repo}/pullrequest/{id}`` URL."""
        self._log_operation("fetch_pull_request", url=url)
        self._check_ready()

        match = _PULL_REQUEST_URL.search(url or "")
        if not match:
            raise InvalidUrlError(f"Not an Azure DevOps pull request URL: {url}")

        response = self._make_request(
            "GET",
            f"/_apis/git/pullrequests/{match.group(2)}",
            params={"api-version": API_VERSION},
        )
        return self.convert_pull_request(self._parse(response, AzurePullRequest))

    def get_diff_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        raise CapabilityUnavailableError(
            "Diff is not supported by the Azure DevOps CLI; open the pull request in the browser"
        )

    def get_checkout_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return self._az_pr_command("checkout", pr_number, with_org=False)

    def get_merge_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return self._az_pr_command("update", pr_number, "--status", "completed")

    def get_close_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return self._az_pr_command("update", pr_number, "--status", "abandoned")

    def get_reopen_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return self._az_pr_command("update", pr_number, "--status", "active")

    def get_ready_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        return self._az_pr_command("update", pr_number, "--draft", "false")

    def get_update_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        raise CapabilityUnavailableError(
            "Updating a pull request branch is not supported for Azure DevOps"
        )

    def get_watch_checks_command(self, pr_number: int, repo_name_with_owner: str) -> List[str]:
        # No CLI command blocks until policies finish
        return []

    def _az_pr_command(self, subcommand: str, pr_number: int, *extra: str,
                       with_org: bool = True) -> List[str]:
        cmd = ["az", "repos", "pr", subcommand, "--id", str(pr_number), *extra]
        if with_org and self.organization:
            cmd.extend(["--org", f"{self.base_url}/{self.organization}"])
        return cmd

    def _check_ready(self) -> None:
        if not self.organization or not self.project:
            raise ConfigurationError("Azure DevOps organization and project are required")
        if not self.token:
            raise AuthenticationError(
                "Azure DevOps Personal Access Token is required. "
                "Set AZURE_DEVOPS_TOKEN, ADO_PAT, or AZURE_PAT environment variable"
            )

    @staticmethod
    def _skip_from(page_info: Optional[PageInfo]) -> int:
        if page_info and page_info.end_cursor.isdigit():
            return int(page_info.end_cursor)
        return 0

    @staticmethod
    def _next_page(skip: int, received: int, limit: int) -> PageInfo:
        return PageInfo(
            has_next_page=received >= limit > 0,
            start_cursor=str(skip),
            end_cursor=str(skip + received),
        )

    def _make_request(self,
                      method: str,
                      endpoint: str,
                      params: Optional[Dict] = None,
                      data: Optional[Dict] = None,
                      timeout: int = 30) -> requests.Response:
        """Make an HTTP request below the project URL."""
        url = f"{self.project_url}{endpoint}"
        self.logger.debug(f"Azure DevOps {method} {url}")

        try:
            response = self.session.request(method, url, params=params, json=data, timeout=timeout)
        except Timeout as e:
            raise TransportError(f"Request to {url} timed out") from e
        except RequestException as e:
            raise TransportError(f"Azure DevOps API request failed: {e}") from e

        if response.status_code in (401, 203):
            # 203 is the sign-in page served for a rejected PAT
            raise AuthenticationError("Invalid or expired Azure DevOps Personal Access Token")
        if response.status_code == 429:
            raise RateLimitError("Azure DevOps API rate limit exceeded",
                                 status_code=response.status_code, body=response.text)
        if response.status_code != 200:
            raise TransportError(f"Azure DevOps API error: {response.text}",
                                 status_code=response.status_code, body=response.text)
        return response

    def _parse(self, response: requests.Response, model: Type[_ModelT]) -> _ModelT:
        """Validate a JSON body against model, keeping the raw body on failure."""
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransportError(f"Unexpected Azure DevOps response: {e}",
                                 status_code=response.status_code, body=response.text) from e

    def convert_pull_request(self, azure_pr: AzurePullRequest) -> PullRequestData:
        """Convert an Azure DevOps pull request into the shared record."""
        created_at = parse_timestamp(azure_pr.creation_date)
        updated_at = parse_timestamp(azure_pr.closed_date) if azure_pr.closed_date else created_at
        repo = azure_pr.repository
        head_ref = _strip_ref(azure_pr.source_ref_name)

        return PullRequestData(
            number=azure_pr.pull_request_id,
            title=azure_pr.title,
            body=azure_pr.description,
            author=azure_pr.created_by.display_name,
            author_association="MEMBER",
            updated_at=updated_at,
            created_at=created_at,
            url=self._pull_request_web_url(azure_pr),
            state=map_pull_request_status(azure_pr.status),
            mergeable="UNKNOWN",
            review_decision=review_decision(azure_pr.reviewers),
            head_ref_name=head_ref,
            base_ref_name=_strip_ref(azure_pr.target_ref_name),
            head_repository=repo.name,
            repository=Repository(
                name=repo.name,
                name_with_owner=f"{repo.project.name}/{repo.name}",
                is_archived=False,
            ),
            review_requests_count=sum(1 for reviewer in azure_pr.reviewers if reviewer.vote == 0),
            is_draft=azure_pr.is_draft,
            labels=Labels(nodes=[Label(name=label.name) for label in azure_pr.labels if label.active]),
            merge_state_status=azure_pr.merge_status,
        )

    def convert_work_item(self, item: AzureWorkItem) -> IssueData:
        """Convert a work item into the shared issue record.

        Labels and reactions have no direct equivalent; tags become labels.
        """
        fields = item.fields
        assigned = _identity_name(fields.get("System.AssignedTo"))
        tags = [tag.strip() for tag in (fields.get("System.Tags") or "").split(";") if tag.strip()]

        return IssueData(
            number=item.id,
            title=fields.get("System.Title") or "",
            body=fields.get("System.Description") or "",
            state=map_work_item_state(fields.get("System.State") or ""),
            author=_identity_name(fields.get("System.CreatedBy")),
            author_association="MEMBER",
            updated_at=parse_timestamp(fields.get("System.ChangedDate")),
            created_at=parse_timestamp(fields.get("System.CreatedDate")),
            url=f"{self.project_url}/_workitems/edit/{item.id}",
            repository=Repository(name=self.project, name_with_owner=f"{self.organization}/{self.project}"),
            assignees=Assignees(logins=[assigned] if assigned else [], total_count=1 if assigned else 0),
            comments=Comments(total_count=int(fields.get("System.CommentCount") or 0)),
            labels=Labels(nodes=[Label(name=tag) for tag in tags]),
        )

    def _pull_request_web_url(self, azure_pr: AzurePullRequest) -> str:
        if azure_pr.repository.web_url:
            return f"{azure_pr.repository.web_url}/pullrequest/{azure_pr.pull_request_id}"
        return azure_pr.url
