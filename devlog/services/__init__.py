"""Services"""

from devlog.services.gitlab_client import GitLabClient
from devlog.services.notion_client import NotionClient
from devlog.services.sync_service import MrSyncService

__all__ = ["GitLabClient", "NotionClient", "MrSyncService"]
