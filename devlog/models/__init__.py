"""Data models"""

from devlog.models.merge_request import MergeRequest, MergeRequestAuthor, MergeRequestFilter
from devlog.models.sync import SyncConfig, SyncError, SyncResult

__all__ = [
    "MergeRequest",
    "MergeRequestAuthor",
    "MergeRequestFilter",
    "SyncConfig",
    "SyncError",
    "SyncResult",
]
