"""GitLab REST API client for merge request metrics retrieval."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import requests

from .config import Config
from .errors import UpstreamError
from .models import MergeRequest, MergeRequestDetail, Project

logger = logging.getLogger(__name__)


class GitLabClient:
    """Small, typed client for the GitLab v4 project and merge request APIs.

    Requests are issued once; failures surface as ``UpstreamError`` without
    retrying.
    """

    _API_PREFIX = "/api/v4"
    _PAGE_SIZE = 100
    _TIMEOUT_SECONDS = 10

    def __init__(self, config: Config, timeout_seconds: int = _TIMEOUT_SECONDS) -> None:
        """Initialize an authenticated GitLab API client.

        Args:
            config: Validated runtime configuration including URI and API key.
            timeout_seconds: Per-request timeout in seconds.
        """
        self._config = config
        self._timeout_seconds = timeout_seconds

        base_url = config.gitlab_uri.rstrip("/")
        if not base_url.endswith(self._API_PREFIX):
            base_url += self._API_PREFIX
        self._base_url = base_url

        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "PRIVATE-TOKEN": config.gitlab_api_key,
            }
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _build_url(self, path: str) -> str:
        """Build a fully qualified API URL from a path below ``/api/v4``."""
        return f"{self._base_url}/{path.lstrip('/')}"

    def _format_datetime(self, value: datetime) -> str:
        """Format a datetime as UTC ISO8601 suitable for GitLab query params."""
        utc_value = value.astimezone(timezone.utc)
        return utc_value.isoformat().replace("+00:00", "Z")

    def _parse_datetime(self, value: Optional[str]) -> Optional[datetime]:
        """Parse GitLab ISO8601 timestamps into timezone-aware datetimes."""
        if not value:
            return None

        normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError as exc:
            raise UpstreamError(f"GitLab API returned an invalid timestamp: {value!r}") from exc
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Execute a single GET request and decode its JSON body.

        Raises:
            UpstreamError: If the request fails, returns HTTP >= 400,
                or does not return valid JSON.
        """
        url = self._build_url(path)

        try:
            response = self._session.get(url, params=params, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            raise UpstreamError(f"GitLab request failed: GET {url}: {exc}") from exc

        if response.status_code >= 400:
            raise UpstreamError(
                "GitLab API request failed: "
                f"GET {url} returned {response.status_code} - {response.text}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"GitLab API returned invalid JSON: GET {url}") from exc

    def _get_object(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = self._get_json(path, params=params)
        if not isinstance(payload, dict):
            raise UpstreamError(f"GitLab API returned unexpected payload shape: GET {path}")
        return payload

    def _paginate(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Collect every item of a paged list endpoint.

        Pages are requested with ``page``/``per_page`` until one comes back
        empty. A failing page raises and the items gathered so far are dropped.
        Items repeated on a later page, which offset pagination yields when
        entries shift while paging, are kept once by ``id``.
        """
        items: List[Dict[str, Any]] = []
        seen_ids: Set[Any] = set()
        page = 1

        while True:
            query = dict(params)
            query["page"] = page
            query["per_page"] = self._PAGE_SIZE

            payload = self._get_json(path, params=query)
            if not isinstance(payload, list):
                raise UpstreamError(f"GitLab API returned unexpected payload shape: GET {path}")

            if not payload:
                break

            for item in payload:
                item_id = item.get("id") if isinstance(item, dict) else None
                if item_id is not None:
                    if item_id in seen_ids:
                        continue
                    seen_ids.add(item_id)
                items.append(item)
            page += 1

        return items

    def list_projects(self, archived: bool = False) -> List[Project]:
        """List all projects visible to the API key.

        Args:
            archived: Value of GitLab's ``archived`` filter; ``False`` lists
                only projects that are not archived.
        """
        items = self._paginate(
            "projects",
            {"archived": str(archived).lower(), "simple": "true"},
        )

        projects: List[Project] = []
        for item in items:
            project_id = item.get("id")
            if project_id is None:
                raise UpstreamError(f"GitLab project payload is missing 'id': payload={item}")
            projects.append(
                Project(
                    id=str(project_id),
                    path_with_namespace=str(item.get("path_with_namespace") or ""),
                )
            )

        logger.info("Found a total of %d projects", len(projects), extra={"projects_total": len(projects)})
        return projects

    def list_merge_requests(
        self,
        updated_after: datetime,
        target_branch: str = "master",
        scope: str = "all",
        exclude_wip: bool = True,
        state: Optional[str] = None,
    ) -> List[MergeRequest]:
        """List merge requests updated after ``updated_after``.

        Args:
            updated_after: Only merge requests updated after this instant are returned.
            target_branch: Only merge requests targeting this branch are returned.
            scope: GitLab ``scope`` filter (``all``, ``created_by_me``, ``assigned_to_me``).
            exclude_wip: Exclude work-in-progress (draft) merge requests.
            state: Optional lifecycle state filter.
        """
        params: Dict[str, Any] = {
            "updated_after": self._format_datetime(updated_after),
            "target_branch": target_branch,
            "scope": scope,
        }
        if exclude_wip:
            params["wip"] = "no"
        if state is not None:
            params["state"] = state

        items = self._paginate("merge_requests", params)
        merge_requests = [self._merge_request_from_payload(item) for item in items]

        logger.info(
            "Found a total of %d merge requests",
            len(merge_requests),
            extra={"merge_requests_total": len(merge_requests)},
        )
        return merge_requests

    def get_merge_request(self, project_id: str, iid: int) -> MergeRequestDetail:
        """Fetch a single merge request with its timestamps, change count and outcome."""
        payload = self._get_object(f"projects/{project_id}/merge_requests/{iid}")

        return MergeRequestDetail(
            merge_request=self._merge_request_from_payload(payload),
            merged_at=self._parse_datetime(payload.get("merged_at")),
            closed_at=self._parse_datetime(payload.get("closed_at")),
            merge_error=payload.get("merge_error") or None,
        )

    def get_approval_configuration(self, project_id: str, iid: int) -> int:
        """Fetch how many approvals a merge request still needs."""
        payload = self._get_object(f"projects/{project_id}/merge_requests/{iid}/approvals")

        try:
            return int(payload.get("approvals_left") or 0)
        except (TypeError, ValueError) as exc:
            raise UpstreamError(
                f"GitLab approvals payload has an invalid 'approvals_left': payload={payload}"
            ) from exc

    def compare_branches(self, project_id: str, from_ref: str, to_ref: str) -> List[str]:
        """Compare two refs of a project and return the unified diff text of each changed file."""
        payload = self._get_object(
            f"projects/{project_id}/repository/compare",
            params={"from": from_ref, "to": to_ref},
        )
        return [str(diff.get("diff") or "") for diff in payload.get("diffs") or []]

    def _merge_request_from_payload(self, item: Dict[str, Any]) -> MergeRequest:
        merge_request_id = item.get("id")
        iid = item.get("iid")
        project_id = item.get("project_id")

        if merge_request_id is None or iid is None or project_id is None:
            raise UpstreamError(
                f"GitLab merge request payload is missing required fields: payload={item}"
            )

        return MergeRequest(
            id=str(merge_request_id),
            iid=int(iid),
            project_id=str(project_id),
            state=str(item.get("state") or ""),
            target_branch=str(item.get("target_branch") or ""),
            source_branch=str(item.get("source_branch") or ""),
            title=str(item.get("title") or ""),
            created_at=self._parse_datetime(item.get("created_at")),
            updated_at=self._parse_datetime(item.get("updated_at")),
            changes_count=str(item.get("changes_count") or ""),
            assignees=len(item.get("assignees") or []),
        )


def count_diff_lines(diffs: Iterable[str]) -> Tuple[int, int]:
    """Count added and deleted lines across unified diff texts.

    A line counts when it follows a newline and starts with ``+`` or ``-``;
    the leading hunk header of each diff is never counted.
    """
    additions = 0
    deletions = 0
    for diff in diffs:
        additions += diff.count("\n+")
        deletions += diff.count("\n-")
    return additions, deletions
