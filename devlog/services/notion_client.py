"""Notion API client wrapper"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from devlog.config import DEFAULT_UNIQUE_KEY_PROP
from devlog.errors import NotionApiError, RateLimitError
from devlog.services.retry import DEFAULT_BASE_DELAY_S, DEFAULT_MAX_RETRIES, with_retries

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

PropertiesMap = Dict[str, Dict[str, Any]]


def _handle_api_error(response: requests.Response) -> NotionApiError:
    """Convert an HTTP error response into a NotionApiError."""
    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = {}
    code = body.get("code") if isinstance(body, dict) else None
    detail = body.get("message") if isinstance(body, dict) else None

    messages = {
        400: "Notion: Bad request",
        401: "Notion: Authentication failed. Check NOTION_TOKEN!",
        403: "Notion: Access denied. Share the database with the integration!",
        404: "Notion: Resource not found. Check NOTION_DB_ID!",
        409: "Notion: Conflict while saving. Try again.",
        429: "Notion: Too many requests.",
        500: "Notion: Server error. The service may be temporarily unavailable.",
        502: "Notion: Bad gateway. The service may be temporarily unavailable.",
        503: "Notion: Service unavailable. Try again later.",
    }
    message = messages.get(status, f"Notion: HTTP {status} - {response.reason}")
    if detail:
        message = f"{message} ({detail})"

    error_cls = RateLimitError if status == 429 or code == "rate_limited" else NotionApiError
    return error_cls(message, status=status, code=code)


def title_property(content: str) -> Dict[str, Any]:
    return {"title": [{"text": {"content": content}}]}


@dataclass
class UpsertOutcome:
    """The written page and whether it was newly created."""

    page: Dict[str, Any]
    created: bool


class NotionClient:
    """Client for the Notion database/page endpoints used by the sync."""

    def __init__(
        self,
        token: str,
        database_id: str,
        unique_key_property: str = DEFAULT_UNIQUE_KEY_PROP,
        *,
        timeout: float = 60,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_s: float = DEFAULT_BASE_DELAY_S,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.database_id = database_id
        self.unique_key_property = unique_key_property
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay_s = base_delay_s
        self._sleep = sleep
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Notion-Version": NOTION_VERSION,
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    def _send(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{NOTION_API_URL}{path}"
        try:
            r = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.ConnectionError:
            raise NotionApiError("Notion: Cannot connect to api.notion.com. Check your network!")
        except requests.exceptions.Timeout:
            raise NotionApiError("Notion: Connection timed out. The server may be slow.")

        if not r.ok:
            raise _handle_api_error(r)
        return r.json()

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        max_retries: Optional[int] = None,
    ) -> Dict[str, Any]:
        return with_retries(
            lambda: self._send(method, path, payload),
            max_attempts=self.max_retries if max_retries is None else max_retries,
            base_delay_s=self.base_delay_s,
            sleep=self._sleep,
            label=f"{method} {path}",
        )

    def query_database(
        self,
        filter: Optional[Dict[str, Any]] = None,
        *,
        database_id: Optional[str] = None,
        page_size: Optional[int] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        start_cursor: Optional[str] = None,
        max_retries: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Query a database, returning the result pages"""
        payload: Dict[str, Any] = {}
        if filter is not None:
            payload["filter"] = filter
        if page_size is not None:
            payload["page_size"] = page_size
        if sorts:
            payload["sorts"] = sorts
        if start_cursor:
            payload["start_cursor"] = start_cursor
        db_id = database_id or self.database_id
        response = self._request("POST", f"/databases/{db_id}/query", payload, max_retries=max_retries)
        return response.get("results", [])

    def find_page_by_unique_key(
        self,
        unique_key: str,
        *,
        database_id: Optional[str] = None,
        unique_key_property: Optional[str] = None,
        max_retries: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """Find the page whose unique-key title equals `unique_key`"""
        results = self.query_database(
            {"property": unique_key_property or self.unique_key_property, "title": {"equals": unique_key}},
            database_id=database_id,
            page_size=1,
            max_retries=max_retries,
        )
        return results[0] if results else None

    def create_page(
        self, properties: PropertiesMap, *, database_id: Optional[str] = None, max_retries: Optional[int] = None
    ) -> Dict[str, Any]:
        """Create a page in a database"""
        payload = {"parent": {"database_id": database_id or self.database_id}, "properties": properties}
        return self._request("POST", "/pages", payload, max_retries=max_retries)

    def update_page(
        self, page_id: str, properties: PropertiesMap, *, max_retries: Optional[int] = None
    ) -> Dict[str, Any]:
        """Update page properties in place"""
        return self._request("PATCH", f"/pages/{page_id}", {"properties": properties}, max_retries=max_retries)

    def get_page(self, page_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/pages/{page_id}")

    def archive_page(self, page_id: str) -> Dict[str, Any]:
        return self._request("PATCH", f"/pages/{page_id}", {"archived": True})

    def get_database(self, database_id: Optional[str] = None) -> Dict[str, Any]:
        return self._request("GET", f"/databases/{database_id or self.database_id}")

    def search(self, query: Optional[str] = None, **params: Any) -> List[Dict[str, Any]]:
        """Workspace-wide search"""
        payload: Dict[str, Any] = dict(params)
        if query:
            payload["query"] = query
        return self._request("POST", "/search", payload).get("results", [])

    def create_or_update_page(
        self,
        unique_key: str,
        properties: PropertiesMap,
        *,
        database_id: Optional[str] = None,
        unique_key_property: Optional[str] = None,
        max_retries: Optional[int] = None,
    ) -> UpsertOutcome:
        """Upsert a page keyed by its unique-key title property.

        Not atomic: two concurrent upserts of the same key can both create.
        """
        key_prop = unique_key_property or self.unique_key_property
        existing = self.find_page_by_unique_key(
            unique_key, database_id=database_id, unique_key_property=key_prop, max_retries=max_retries
        )
        if existing is not None:
            logger.info(f"Updating existing page with unique key: {unique_key}")
            update_props = {k: v for k, v in properties.items() if k != key_prop}
            page = self.update_page(existing["id"], update_props, max_retries=max_retries)
            return UpsertOutcome(page=page, created=False)

        logger.info(f"Creating new page with unique key: {unique_key}")
        create_props = dict(properties)
        create_props[key_prop] = title_property(unique_key)
        page = self.create_page(create_props, database_id=database_id, max_retries=max_retries)
        return UpsertOutcome(page=page, created=True)
