"""GitLab API client wrapper"""
import gitlab
import logging
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union
from datetime import datetime, timezone

from devlog.errors import ValidationError
from devlog.models.merge_request import MergeRequest, MergeRequestFilter
from devlog.services.retry import with_retries

logger = logging.getLogger(__name__)

DateInput = Union[str, datetime, None]

DEFAULT_PER_PAGE = 100

_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{3})?Z$")


def _to_datetime(value: DateInput, param: str) -> Optional[datetime]:
    """Accept a datetime or a strict ISO8601 UTC string (`2024-01-31T12:00:00Z`)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and _ISO_RE.match(value):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f'Invalid ISO 8601 date format for "{param}" parameter') from None
    else:
        raise ValidationError(f'Invalid ISO 8601 date format for "{param}" parameter')
    # Assume UTC if tzinfo is missing.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_window(since: DateInput, until: DateInput) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Parse and check a `since`/`until` pair before anything hits the network."""
    since_dt = _to_datetime(since, "since")
    until_dt = _to_datetime(until, "until")
    if since_dt is not None and until_dt is not None and since_dt >= until_dt:
        raise ValidationError('"since" must be earlier than "until"')
    return since_dt, until_dt


def _in_window(mr: MergeRequest, field: str, since: Optional[datetime], until: Optional[datetime]) -> bool:
    value = getattr(mr, field)
    if since is not None and value < since:
        return False
    if until is not None and value > until:
        return False
    return True


class GitLabClient:
    """Read-only access to merged merge requests"""

    def __init__(
        self,
        url: str,
        access_token: str,
        *,
        timeout: Optional[float] = 30,
        max_retries: int = 3,
        base_delay_s: float = 1.0,
    ):
        """Initialize GitLab client"""
        self.url = url
        self.max_retries = max_retries
        self.base_delay_s = base_delay_s
        self.gl = gitlab.Gitlab(url, private_token=access_token, timeout=timeout)
        self.gl.auth()

    def _with_retries(self, fn, *, label: Optional[str] = None):
        """Run callable with exponential backoff on rate limiting."""
        return with_retries(
            fn, max_attempts=self.max_retries, base_delay_s=self.base_delay_s, label=label
        )

    @staticmethod
    def _window_params(mr_filter: MergeRequestFilter, since: Optional[datetime], until: Optional[datetime]) -> Dict[str, Any]:
        field = mr_filter.window_field
        prefix = "updated" if field == "updated_at" else "created"
        params: Dict[str, Any] = {
            "state": "merged",
            "order_by": field,
            "sort": "desc",
        }
        if mr_filter.by_author:
            params["author_username"] = mr_filter.author_username
            params["scope"] = "all"
        if since is not None:
            params[f"{prefix}_after"] = since.isoformat()
        if until is not None:
            params[f"{prefix}_before"] = until.isoformat()
        return params

    def _manager(self, mr_filter: MergeRequestFilter):
        """MR manager: one project, or instance-wide for author search."""
        if mr_filter.project_id:
            return self.gl.projects.get(mr_filter.project_id, lazy=True).mergerequests
        return self.gl.mergerequests

    def _to_merge_requests(
        self,
        raw: List[Any],
        mr_filter: MergeRequestFilter,
        since: Optional[datetime],
        until: Optional[datetime],
    ) -> List[MergeRequest]:
        mrs = []
        for obj in raw:
            mr = MergeRequest.from_api(obj)
            if not mr.is_merged or not _in_window(mr, mr_filter.window_field, since, until):
                logger.debug(f"Dropping MR !{mr.iid} ({mr.state}) outside merged window")
                continue
            mrs.append(mr)
        return mrs

    def list_merged(
        self,
        mr_filter: MergeRequestFilter,
        since: DateInput = None,
        until: DateInput = None,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> List[MergeRequest]:
        """Get all merged MRs for the filter and window (all pages)"""
        if not mr_filter.author_username and not mr_filter.project_id:
            raise ValidationError("An author username or a project id is required")
        since_dt, until_dt = resolve_window(since, until)
        params = self._window_params(mr_filter, since_dt, until_dt)
        try:
            manager = self._manager(mr_filter)
            raw = self._with_retries(
                lambda: manager.list(get_all=True, per_page=per_page, **params),
                label="list merge requests",
            )
        except Exception as e:
            logger.error(
                f"Failed to list merged merge requests for {mr_filter.describe()} "
                f"(since={since_dt and since_dt.isoformat()}, until={until_dt and until_dt.isoformat()}): {e}"
            )
            raise
        return self._to_merge_requests(raw, mr_filter, since_dt, until_dt)

    def list_merged_mrs(
        self,
        project_id: Union[int, str],
        since: DateInput = None,
        until: DateInput = None,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> List[MergeRequest]:
        """Get merged MRs of one project, windowed on creation time"""
        return self.list_merged(MergeRequestFilter(project_id=project_id), since, until, per_page)

    def list_merged_mrs_by_author(
        self,
        author: str,
        since: DateInput = None,
        until: DateInput = None,
        project_id: Optional[Union[int, str]] = None,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> List[MergeRequest]:
        """Get an author's merged MRs across all projects (or one), windowed on update time"""
        return self.list_merged(
            MergeRequestFilter(author_username=author, project_id=project_id), since, until, per_page
        )

    def iter_merged_mr_pages(
        self,
        mr_filter: MergeRequestFilter,
        since: DateInput = None,
        until: DateInput = None,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> Iterator[List[MergeRequest]]:
        """Yield merged MRs one API page at a time.

        Stops on an empty page or a page shorter than `per_page`. Dates are
        validated when iteration starts, before the first request.
        """
        if not mr_filter.author_username and not mr_filter.project_id:
            raise ValidationError("An author username or a project id is required")
        since_dt, until_dt = resolve_window(since, until)
        params = self._window_params(mr_filter, since_dt, until_dt)
        manager = self._manager(mr_filter)

        page = 1
        while True:
            try:
                raw = self._with_retries(
                    lambda: manager.list(page=page, per_page=per_page, **params),
                    label=f"list merge requests page {page}",
                )
            except Exception as e:
                logger.error(f"Failed to paginate merged merge requests for {mr_filter.describe()} (page {page}): {e}")
                raise
            raw = list(raw)
            if not raw:
                return
            yield self._to_merge_requests(raw, mr_filter, since_dt, until_dt)
            if len(raw) < per_page:
                return
            page += 1

    def get_merge_request(self, project_id: Union[int, str], mr_iid: int) -> MergeRequest:
        """Get a specific merge request by IID"""
        try:
            project = self.gl.projects.get(project_id, lazy=True)
            return MergeRequest.from_api(self._with_retries(lambda: project.mergerequests.get(mr_iid)))
        except gitlab.exceptions.GitlabGetError as e:
            logger.error(f"Failed to get merge request !{mr_iid} from project {project_id}: {e}")
            raise

    def get_project(self, project_id: Union[int, str]):
        """Get project by ID or path"""
        try:
            return self._with_retries(lambda: self.gl.projects.get(project_id))
        except gitlab.exceptions.GitlabGetError as e:
            logger.error(f"Failed to get project {project_id}: {e}")
            raise

    def list_projects(self, membership: bool = True, search: Optional[str] = None, per_page: int = DEFAULT_PER_PAGE) -> List[Any]:
        """List projects accessible to the current user"""
        params: Dict[str, Any] = {"membership": membership, "order_by": "created_at", "sort": "desc"}
        if search:
            params["search"] = search
        try:
            return self._with_retries(lambda: self.gl.projects.list(get_all=True, per_page=per_page, **params))
        except Exception as e:
            logger.error(f"Failed to list projects (membership={membership}, search={search}): {e}")
            raise
