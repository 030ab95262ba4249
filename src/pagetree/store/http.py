"""HTTP client wrapper for a remote page document API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from pagetree.tree.errors import DuplicatePageError, StoreError
from pagetree.tree.models import Page

from .base import PageQuery, PageStore, RedirectStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DocumentApiAuth:
    """Bearer token sent with every document API request."""

    token: str


class HttpPageStore(PageStore, RedirectStore):
    """Thin wrapper above a JSON document API exposing page and redirect collections."""

    def __init__(
        self,
        *,
        base_url: str,
        auth: Optional[DocumentApiAuth] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {auth.token}"} if auth else None
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpPageStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------
    async def _request(self, method: str, url: str, **kwargs) -> Optional[dict]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(f"Document API unreachable: {exc}") from exc
        if response.status_code == 404:
            return None
        if response.status_code == 409:
            detail = _json_or_empty(response)
            raise DuplicatePageError(detail.get("field", "slug"), detail.get("value", ""))
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StoreError(f"Document API error {response.status_code} for {method} {url}") from exc
        return _json_or_empty(response)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------
    async def find(self, query: PageQuery) -> list[Page]:
        data = await self._request("POST", "pages/query", json=query.to_payload()) or {}
        pages = [Page.from_document(result) for result in data.get("results", [])]
        logger.debug("find %s -> %d page(s)", query, len(pages))
        return pages

    async def insert(self, page: Page) -> Page:
        data = await self._request("POST", "pages", json=page.to_document())
        return Page.from_document(data) if data else page

    async def update(self, slug: str, changes: Mapping[str, Any]) -> None:
        payload = {"slug": slug, "set": {name: value for name, value in changes.items() if name != "url"}}
        if await self._request("PATCH", "pages", json=payload) is None:
            raise StoreError(f"No page stored under slug {slug!r}")

    async def delete(self, slug: str) -> None:
        if await self._request("DELETE", "pages", params={"slug": slug}) is None:
            raise StoreError(f"No page stored under slug {slug!r}")

    async def allocate_rank(self, slug: str, floor: int) -> int:
        data = await self._request("POST", "pages/ranks", json={"slug": slug, "floor": floor})
        if not data or "value" not in data:
            raise StoreError(f"No rank counter for page {slug!r}")
        return int(data["value"])

    async def ensure_indexes(self) -> None:
        await self._request(
            "POST",
            "indexes",
            json={"field": "path", "unique": True, "sparse": True},
        )

    # ------------------------------------------------------------------
    # Redirects
    # ------------------------------------------------------------------
    async def lookup(self, from_slug: str) -> Optional[str]:
        data = await self._request("GET", "redirects", params={"from": from_slug})
        if not data:
            return None
        return data.get("to")

    async def upsert(self, from_slug: str, to_slug: str) -> None:
        await self._request("PUT", "redirects", json={"from": from_slug, "to": to_slug})


def _json_or_empty(response: httpx.Response) -> dict:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def create_store(*, base_url: str, token: Optional[str] = None, timeout: float = 30.0) -> HttpPageStore:
    auth = DocumentApiAuth(token=token) if token else None
    return HttpPageStore(base_url=base_url, auth=auth, timeout=timeout)
