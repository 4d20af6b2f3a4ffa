"""Merge request → Notion synchronization service"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from devlog.models import MergeRequest, SyncConfig, SyncResult
from devlog.services.gitlab_client import GitLabClient
from devlog.services.limiter import ConcurrencyLimiter
from devlog.services.mr_mapper import map_mr_to_properties, unique_key_for
from devlog.services.notion_client import NotionClient, UpsertOutcome

logger = logging.getLogger(__name__)


class MrSyncService:
    """Upsert the merged MRs of a time window into a Notion database"""

    def __init__(
        self,
        gitlab_client: GitLabClient,
        notion_client: NotionClient,
        limiter_factory: Callable[[int], ConcurrencyLimiter] = ConcurrencyLimiter,
    ):
        self.gitlab = gitlab_client
        self.notion = notion_client
        self.limiter_factory = limiter_factory

    @staticmethod
    def _utcnow() -> datetime:
        return datetime.now(timezone.utc)

    def _sync_one(self, mr: MergeRequest, config: SyncConfig) -> UpsertOutcome:
        unique_key = unique_key_for(mr)
        properties = map_mr_to_properties(mr)
        outcome = self.notion.create_or_update_page(
            unique_key,
            properties,
            database_id=config.database_id,
            unique_key_property=config.unique_key_property,
            max_retries=config.max_retries,
        )
        logger.info(
            f"Synced MR {mr.iid}: {mr.title} (author={mr.author.name}, "
            f"{'created' if outcome.created else 'updated'})"
        )
        return outcome

    def sync_window(self, config: SyncConfig) -> SyncResult:
        """Sync the merged MRs of the last `config.days_back` days.

        Configuration and fetch errors propagate. A failure while writing one
        MR is recorded in the result and the rest of the batch carries on.
        """
        started = time.monotonic()
        config.validate()

        logger.info(
            f"Starting MR sync to Notion: {config.mr_filter.describe()}, "
            f"database={config.database_id}, days_back={config.days_back}"
        )

        until = self._utcnow()
        since = until - timedelta(days=config.days_back)
        result = SyncResult()

        try:
            logger.info(f"Fetching merged MRs from GitLab (since={since.isoformat()}, until={until.isoformat()})")
            mrs = self.gitlab.list_merged(config.mr_filter, since=since, until=until, per_page=config.per_page)
        except Exception as e:
            logger.error(f"MR sync failed after {int((time.monotonic() - started) * 1000)}ms: {e}")
            raise

        result.total = len(mrs)
        logger.info(f"Found {len(mrs)} merged MRs to sync")

        with self.limiter_factory(config.concurrency) as limiter:
            settled = limiter.map_settled(lambda mr: self._sync_one(mr, config), mrs)

        for item in settled:
            mr = item.item
            if item.ok:
                # The lookup result tells us which branch the upsert took.
                if item.value.created:
                    result.created += 1
                else:
                    result.updated += 1
                continue
            message = str(item.error) or item.error.__class__.__name__
            result.record_failure(mr.iid, message)
            logger.error(f"Failed to sync MR {mr.iid} ({mr.title}): {message}")

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"MR sync completed: total={result.total}, created={result.created}, "
            f"updated={result.updated}, failed={result.failed}, duration={result.duration_ms}ms"
        )
        return result
