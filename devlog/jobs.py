"""Job dispatch for scheduled runs

Run with the job name in the JOB environment variable:

    JOB=syncMr python -m devlog.jobs
"""

import enum
import logging
import os
import sys
from typing import Callable, Dict, Optional

from devlog.config import Settings, load_settings
from devlog.logging_config import configure_logging
from devlog.models import SyncConfig, SyncResult
from devlog.services import GitLabClient, MrSyncService, NotionClient

logger = logging.getLogger(__name__)


class JobName(str, enum.Enum):
    """Registered jobs"""
    SYNC_MR = "syncMr"


def available_jobs() -> str:
    return ", ".join(job.value for job in JobName)


def resolve_job(name: str) -> Optional[JobName]:
    try:
        return JobName(name)
    except ValueError:
        return None


def print_sync_summary(result: SyncResult) -> None:
    print(f"Synced {result.total} MR(s) to Notion")
    print(f"   Created: {result.created}, Updated: {result.updated}, Failed: {result.failed}")
    if result.errors:
        print("\nErrors:")
        for err in result.errors:
            print(f"   MR {err.mr_iid}: {err.error}")


def build_sync_service(settings: Settings, config: SyncConfig) -> MrSyncService:
    """Construct both API clients once for this process."""
    gitlab_client = GitLabClient(
        settings.gitlab_host,
        settings.gitlab_token,
        timeout=settings.gitlab_timeout,
        max_retries=config.max_retries,
        base_delay_s=config.base_delay_s,
    )
    notion_client = NotionClient(
        settings.notion_token,
        config.database_id,
        config.unique_key_property,
        timeout=settings.notion_timeout,
        max_retries=config.max_retries,
        base_delay_s=config.base_delay_s,
    )
    return MrSyncService(gitlab_client, notion_client)


def sync_mr_job(settings: Settings) -> int:
    """Sync merged MRs of the last week to Notion; 1 if any MR failed."""
    try:
        config = SyncConfig.from_settings(settings)
        config.validate()
        service = build_sync_service(settings, config)
        result = service.sync_window(config)
    except Exception as e:
        print(f"Sync failed: {e}", file=sys.stderr)
        return 1

    print_sync_summary(result)
    return 1 if result.failed > 0 else 0


JOBS: Dict[JobName, Callable[[Settings], int]] = {
    JobName.SYNC_MR: sync_mr_job,
}


def run_job(job_name: str, settings: Optional[Settings] = None) -> int:
    """Run a job by name and return its exit code"""
    job = resolve_job(job_name)
    if job is None:
        print(f"Unknown job: {job_name}", file=sys.stderr)
        print(f"Available jobs: {available_jobs()}")
        return 1

    try:
        if settings is None:
            settings = load_settings()
            configure_logging(settings.log_level)
            if settings.is_development:
                logger.debug(f"Environment variables loaded (APP_ENV={settings.app_env})")
        print(f"Running job: {job.value}")
        exit_code = JOBS[job](settings)
    except Exception as e:
        print(f"Job failed: {job.value}: {e}", file=sys.stderr)
        return 1

    print(f"Job completed: {job.value}")
    return exit_code


def main(environ: Optional[Dict[str, str]] = None) -> int:
    """CLI entry point; the job name comes from JOB"""
    environ = os.environ if environ is None else environ
    job_name = (environ.get("JOB") or "").strip()
    if not job_name:
        print("JOB environment variable is required", file=sys.stderr)
        print("Usage: JOB=<jobName> python -m devlog.jobs")
        print(f"Available jobs: {available_jobs()}")
        return 1
    return run_job(job_name)


if __name__ == "__main__":
    sys.exit(main())
