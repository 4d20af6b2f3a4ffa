"""Merge request model"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

Label = Union[str, Dict[str, Any]]


def parse_gitlab_datetime(value: Any) -> Optional[datetime]:
    """Parse GitLab ISO8601 timestamps into UTC tz-aware datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class MergeRequestAuthor:
    """Author of a merge request"""

    id: int
    name: str
    username: str


@dataclass(frozen=True)
class MergeRequest:
    """A merge request as returned by the GitLab API (read-only)."""

    id: int
    iid: int
    title: str
    state: str
    author: MergeRequestAuthor
    source_branch: str
    target_branch: str
    created_at: datetime
    updated_at: datetime
    web_url: str
    project_id: Optional[int] = None
    description: Optional[str] = None
    merged_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    labels: Tuple[Label, ...] = ()

    @property
    def is_merged(self) -> bool:
        return self.state == "merged"

    @classmethod
    def from_api(cls, obj: Any) -> "MergeRequest":
        """Build from a python-gitlab object or a raw API dict."""
        data: Dict[str, Any] = getattr(obj, "attributes", None) or obj
        author = data.get("author") or {}
        return cls(
            id=int(data["id"]),
            iid=int(data["iid"]),
            project_id=data.get("project_id"),
            title=data.get("title") or "",
            description=data.get("description"),
            state=data.get("state") or "",
            author=MergeRequestAuthor(
                id=int(author.get("id") or 0),
                name=author.get("name") or "",
                username=author.get("username") or "",
            ),
            source_branch=data.get("source_branch") or "",
            target_branch=data.get("target_branch") or "",
            created_at=parse_gitlab_datetime(data["created_at"]),
            updated_at=parse_gitlab_datetime(data["updated_at"]),
            merged_at=parse_gitlab_datetime(data.get("merged_at")),
            closed_at=parse_gitlab_datetime(data.get("closed_at")),
            web_url=data.get("web_url") or "",
            labels=tuple(data.get("labels") or ()),
        )


@dataclass(frozen=True)
class MergeRequestFilter:
    """Which merge requests to read.

    By project: every merged MR of one project, windowed on `created_at`.
    By author: the author's merged MRs across all accessible projects (or just
    `project_id` when set), windowed on `updated_at`.
    """

    author_username: Optional[str] = None
    project_id: Optional[Union[int, str]] = None

    @property
    def by_author(self) -> bool:
        return bool(self.author_username)

    @property
    def window_field(self) -> str:
        return "updated_at" if self.by_author else "created_at"

    def describe(self) -> Dict[str, Any]:
        return {
            "author": self.author_username,
            "project_id": self.project_id or "all projects",
        }
