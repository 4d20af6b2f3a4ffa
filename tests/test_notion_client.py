import logging
import unittest

import requests

logging.disable(logging.CRITICAL)


class _Resp:
    def __init__(self, status_code=200, body=None, reason=""):
        self.status_code = status_code
        self._body = body if body is not None else {}
        self.reason = reason

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._body


class _FakeSession:
    def __init__(self, responses):
        self.headers = {}
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, json=None, timeout=None):
        self.calls.append((method, url, json, timeout))
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


def _client(responses, **kwargs):
    from devlog.services.notion_client import NotionClient

    session = _FakeSession(responses)
    sleeps = []
    client = NotionClient("secret", "db1", session=session, sleep=sleeps.append, **kwargs)
    return client, session, sleeps


class NotionClientTests(unittest.TestCase):
    def test_sets_auth_and_version_headers(self):
        _, session, _ = _client([])

        self.assertEqual(session.headers["Authorization"], "Bearer secret")
        self.assertEqual(session.headers["Notion-Version"], "2022-06-28")

    def test_find_page_queries_title_equals_with_page_size_one(self):
        client, session, _ = _client([_Resp(body={"results": [{"id": "p1"}]})])

        page = client.find_page_by_unique_key("MR-1")

        self.assertEqual(page, {"id": "p1"})
        method, url, payload, timeout = session.calls[0]
        self.assertEqual(method, "POST")
        self.assertEqual(url, "https://api.notion.com/v1/databases/db1/query")
        self.assertEqual(payload, {"filter": {"property": "MR IID", "title": {"equals": "MR-1"}}, "page_size": 1})
        self.assertEqual(timeout, 60)

    def test_upsert_creates_with_unique_key_when_missing(self):
        client, session, _ = _client([_Resp(body={"results": []}), _Resp(body={"id": "new"})])
        props = {"Title": {"title": [{"text": {"content": "T"}}]}}

        outcome = client.create_or_update_page("MR-1", props, database_id="db2")

        self.assertTrue(outcome.created)
        self.assertEqual(outcome.page, {"id": "new"})
        self.assertEqual(len(session.calls), 2)
        self.assertIn("/databases/db2/query", session.calls[0][1])
        method, url, payload, _ = session.calls[1]
        self.assertEqual((method, url), ("POST", "https://api.notion.com/v1/pages"))
        self.assertEqual(payload["parent"], {"database_id": "db2"})
        self.assertEqual(payload["properties"]["MR IID"], {"title": [{"text": {"content": "MR-1"}}]})
        self.assertEqual(payload["properties"]["Title"], props["Title"])
        # Caller's dict is untouched.
        self.assertNotIn("MR IID", props)

    def test_upsert_updates_existing_page_without_unique_key(self):
        client, session, _ = _client([_Resp(body={"results": [{"id": "p9"}]}), _Resp(body={"id": "p9"})])
        props = {
            "Title": {"title": [{"text": {"content": "T"}}]},
            "Key": {"title": [{"text": {"content": "MR-1"}}]},
        }

        outcome = client.create_or_update_page("MR-1", props, unique_key_property="Key")

        self.assertFalse(outcome.created)
        self.assertEqual(session.calls[0][2]["filter"]["property"], "Key")
        method, url, payload, _ = session.calls[1]
        self.assertEqual((method, url), ("PATCH", "https://api.notion.com/v1/pages/p9"))
        self.assertEqual(payload, {"properties": {"Title": props["Title"]}})

    def test_rate_limit_is_retried_with_backoff(self):
        limited = _Resp(429, {"object": "error", "status": 429, "code": "rate_limited", "message": "slow"})
        client, session, sleeps = _client([limited, _Resp(body={"results": []})], base_delay_s=1.0)

        self.assertEqual(client.query_database(), [])
        self.assertEqual(len(session.calls), 2)
        self.assertEqual(sleeps, [1.0])

    def test_rate_limit_exhaustion_raises(self):
        from devlog.errors import RateLimitError

        limited = _Resp(429, {"code": "rate_limited", "message": "slow"})
        client, session, sleeps = _client([limited, limited, limited], base_delay_s=0.5)

        with self.assertRaises(RateLimitError) as ctx:
            client.query_database(max_retries=2)

        self.assertEqual(ctx.exception.status, 429)
        self.assertEqual(len(session.calls), 3)
        self.assertEqual(sleeps, [0.5, 1.0])

    def test_other_errors_are_not_retried(self):
        from devlog.errors import NotionApiError, RateLimitError

        bad = _Resp(400, {"code": "validation_error", "message": "Title is not a property"}, reason="Bad Request")
        client, session, sleeps = _client([bad])

        with self.assertRaises(NotionApiError) as ctx:
            client.create_page({})

        self.assertNotIsInstance(ctx.exception, RateLimitError)
        self.assertEqual(ctx.exception.status, 400)
        self.assertEqual(ctx.exception.code, "validation_error")
        self.assertIn("Title is not a property", str(ctx.exception))
        self.assertEqual(len(session.calls), 1)
        self.assertEqual(sleeps, [])

    def test_connection_errors_become_api_errors(self):
        from devlog.errors import NotionApiError

        client, _, _ = _client([requests.exceptions.ConnectionError("down")])

        with self.assertRaises(NotionApiError) as ctx:
            client.get_page("p1")
        self.assertIn("Cannot connect", str(ctx.exception))

    def test_archive_and_search_payloads(self):
        client, session, _ = _client([_Resp(body={"id": "p1"}), _Resp(body={"results": [{"id": "d"}]})])

        client.archive_page("p1")
        results = client.search("Dev Log", filter={"property": "object", "value": "database"})

        self.assertEqual(session.calls[0][:3], ("PATCH", "https://api.notion.com/v1/pages/p1", {"archived": True}))
        self.assertEqual(session.calls[1][2], {"filter": {"property": "object", "value": "database"}, "query": "Dev Log"})
        self.assertEqual(results, [{"id": "d"}])


if __name__ == "__main__":
    unittest.main()
