import io
import logging
import os
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import Mock, patch

logging.disable(logging.CRITICAL)


def _settings():
    from devlog.config import Settings

    with patch.dict(os.environ, {}, clear=True):
        return Settings(
            _env_file=None,
            gitlab_host="https://gitlab.example",
            gitlab_token="glpat-x",
            gitlab_author_username="alice",
            notion_token="secret",
            notion_db_id="db1",
        )


def _run(fn, *args, **kwargs):
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = fn(*args, **kwargs)
    return code, out.getvalue(), err.getvalue()


class JobDispatchTests(unittest.TestCase):
    def test_every_job_name_has_a_handler(self):
        from devlog.jobs import JOBS, JobName

        self.assertEqual(set(JOBS), set(JobName))
        self.assertEqual(JobName("syncMr"), JobName.SYNC_MR)

    def test_missing_job_name_prints_usage(self):
        from devlog.jobs import main

        code, out, err = _run(main, {})

        self.assertEqual(code, 1)
        self.assertIn("JOB environment variable is required", err)
        self.assertIn("Usage:", out)
        self.assertIn("Available jobs: syncMr", out)

    def test_unknown_job_lists_available_jobs(self):
        from devlog.jobs import main

        with patch("devlog.jobs.load_settings") as load:
            code, out, err = _run(main, {"JOB": "nope"})

        self.assertEqual(code, 1)
        self.assertIn("Unknown job: nope", err)
        self.assertIn("Available jobs: syncMr", out)
        load.assert_not_called()

    def test_configuration_error_fails_the_job(self):
        from devlog.errors import ConfigurationError
        from devlog.jobs import main

        with patch("devlog.jobs.load_settings", side_effect=ConfigurationError("NOTION_TOKEN: Field required")):
            code, _, err = _run(main, {"JOB": "syncMr"})

        self.assertEqual(code, 1)
        self.assertIn("NOTION_TOKEN", err)


class SyncMrJobTests(unittest.TestCase):
    def _service(self, result=None, error=None):
        service = Mock()
        if error is not None:
            service.sync_window.side_effect = error
        else:
            service.sync_window.return_value = result
        return service

    def test_success_exits_zero_and_prints_summary(self):
        from devlog.jobs import run_job
        from devlog.models import SyncResult

        service = self._service(SyncResult(total=2, created=1, updated=1))
        with patch("devlog.jobs.build_sync_service", return_value=service):
            code, out, _ = _run(run_job, "syncMr", settings=_settings())

        self.assertEqual(code, 0)
        self.assertIn("Synced 2 MR(s) to Notion", out)
        self.assertIn("Created: 1, Updated: 1, Failed: 0", out)
        self.assertNotIn("Errors:", out)
        config = service.sync_window.call_args[0][0]
        self.assertEqual(config.author_username, "alice")
        self.assertEqual(config.database_id, "db1")

    def test_partial_failure_exits_one_and_lists_errors(self):
        from devlog.jobs import run_job
        from devlog.models import SyncError, SyncResult

        result = SyncResult(total=2, created=1, failed=1, errors=[SyncError(mr_iid=7, error="boom")])
        with patch("devlog.jobs.build_sync_service", return_value=self._service(result)):
            code, out, _ = _run(run_job, "syncMr", settings=_settings())

        self.assertEqual(code, 1)
        self.assertIn("Failed: 1", out)
        self.assertIn("MR 7: boom", out)

    def test_fatal_sync_error_exits_one(self):
        from devlog.jobs import run_job

        service = self._service(error=RuntimeError("gitlab down"))
        with patch("devlog.jobs.build_sync_service", return_value=service):
            code, out, err = _run(run_job, "syncMr", settings=_settings())

        self.assertEqual(code, 1)
        self.assertIn("Sync failed: gitlab down", err)
        self.assertNotIn("Synced", out)

    def test_build_sync_service_wires_clients(self):
        from devlog.jobs import build_sync_service
        from devlog.models import SyncConfig

        settings = _settings()
        config = SyncConfig.from_settings(settings, max_retries=2)
        with patch("devlog.jobs.GitLabClient") as gl_cls, patch("devlog.jobs.NotionClient") as notion_cls:
            service = build_sync_service(settings, config)

        gl_cls.assert_called_once_with(
            "https://gitlab.example", "glpat-x", timeout=30, max_retries=2, base_delay_s=1.0
        )
        notion_cls.assert_called_once_with(
            "secret", "db1", "MR IID", timeout=60, max_retries=2, base_delay_s=1.0
        )
        self.assertIs(service.gitlab, gl_cls.return_value)
        self.assertIs(service.notion, notion_cls.return_value)


if __name__ == "__main__":
    unittest.main()
