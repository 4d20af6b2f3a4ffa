"""Sync run configuration and result"""

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional, Union

from devlog.config import DEFAULT_UNIQUE_KEY_PROP, Settings
from devlog.errors import ConfigurationError
from devlog.models.merge_request import MergeRequestFilter


@dataclass(frozen=True)
class SyncConfig:
    """Resolved, immutable settings for one sync run."""

    database_id: str
    author_username: Optional[str] = None
    project_id: Optional[Union[int, str]] = None
    unique_key_property: str = DEFAULT_UNIQUE_KEY_PROP
    days_back: int = 7
    max_retries: int = 3
    per_page: int = 100
    concurrency: int = 3
    base_delay_s: float = 1.0

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "SyncConfig":
        config = cls(
            database_id=settings.notion_db_id,
            author_username=settings.gitlab_author_username,
            project_id=settings.gitlab_project_id,
            unique_key_property=settings.notion_unique_key_prop or DEFAULT_UNIQUE_KEY_PROP,
        )
        # Explicit overrides win; None means "keep the environment value".
        return replace(config, **{k: v for k, v in overrides.items() if v is not None})

    @property
    def mr_filter(self) -> MergeRequestFilter:
        return MergeRequestFilter(author_username=self.author_username, project_id=self.project_id)

    def validate(self) -> None:
        """Raise ConfigurationError before any network call if the run cannot proceed."""
        if not self.author_username and not self.project_id:
            raise ConfigurationError("GITLAB_AUTHOR_USERNAME or GITLAB_PROJECT_ID is required")
        if not self.database_id:
            raise ConfigurationError("NOTION_DB_ID is required")
        if not self.unique_key_property:
            raise ConfigurationError("Unique key property name must not be empty")
        if self.days_back < 1:
            raise ConfigurationError(f"days_back must be at least 1 (got {self.days_back})")
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must not be negative (got {self.max_retries})")
        if not 1 <= self.per_page <= 100:
            raise ConfigurationError(f"per_page must be between 1 and 100 (got {self.per_page})")
        if self.concurrency < 1:
            raise ConfigurationError(f"concurrency must be at least 1 (got {self.concurrency})")


@dataclass
class SyncError:
    mr_iid: int
    error: str


@dataclass
class SyncResult:
    """Counts and per-record failures of one sync run (never persisted)."""

    total: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[SyncError] = field(default_factory=list)
    duration_ms: int = 0

    def record_failure(self, mr_iid: int, message: str) -> None:
        self.failed += 1
        self.errors.append(SyncError(mr_iid=mr_iid, error=message))

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)
