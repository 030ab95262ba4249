"""In-process page store, optionally persisted to a JSON file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from pagetree.tree.errors import DuplicatePageError, StoreError
from pagetree.tree.models import Page, Redirect

from .base import PageQuery, PageStore, RedirectStore

logger = logging.getLogger(__name__)

_DEFAULTS: dict[str, Any] = {"areas": {}, "type_data": {}}

RANK_COUNTER_FIELD = "child_rank"


class MemoryPageStore(PageStore, RedirectStore):
    """Keep page documents and redirects in dictionaries.

    A page's child rank counter lives on its own document under
    ``RANK_COUNTER_FIELD``, so it is deleted with the page and follows it
    through renames.

    No method awaits while it touches shared state, so each call is atomic
    with respect to other tasks on the same event loop.
    """

    def __init__(
        self,
        pages: Iterable[Page] = (),
        redirects: Iterable[Redirect] = (),
    ) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._redirects: dict[str, str] = {}
        for page in pages:
            self._documents[page.slug] = page.to_document()
        for redirect in redirects:
            self._redirects[redirect.from_slug] = redirect.to_slug

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------
    async def find(self, query: PageQuery) -> list[Page]:
        documents = [doc for doc in self._documents.values() if query.matches(doc)]
        # Stable sorts applied from the least significant key.
        for name, direction in reversed(query.sort):
            documents.sort(key=lambda doc: _sort_key(doc.get(name)), reverse=direction < 0)
        pages = []
        for document in documents:
            data = dict(document)
            for name in query.exclude:
                if name in _DEFAULTS:
                    data[name] = type(_DEFAULTS[name])()
            pages.append(Page.from_document(data))
        logger.debug("find %s -> %d page(s)", query, len(pages))
        return pages

    async def insert(self, page: Page) -> Page:
        if page.slug in self._documents:
            raise DuplicatePageError("slug", page.slug)
        self._check_path_available(page.path)
        self._documents[page.slug] = page.to_document()
        return Page.from_document(self._documents[page.slug])

    async def update(self, slug: str, changes: Mapping[str, Any]) -> None:
        document = self._documents.get(slug)
        if document is None:
            raise StoreError(f"No page stored under slug {slug!r}")
        new_slug = changes.get("slug", slug)
        if new_slug != slug and new_slug in self._documents:
            raise DuplicatePageError("slug", new_slug)
        new_path = changes.get("path", document.get("path"))
        if new_path != document.get("path"):
            self._check_path_available(new_path)
        updated = dict(document)
        updated.update({name: value for name, value in changes.items() if name != "url"})
        del self._documents[slug]
        self._documents[new_slug] = updated

    async def delete(self, slug: str) -> None:
        if self._documents.pop(slug, None) is None:
            raise StoreError(f"No page stored under slug {slug!r}")

    async def allocate_rank(self, slug: str, floor: int) -> int:
        document = self._documents.get(slug)
        if document is None:
            raise StoreError(f"No page stored under slug {slug!r}")
        value = max(document.get(RANK_COUNTER_FIELD, 0), floor) + 1
        document[RANK_COUNTER_FIELD] = value
        return value

    async def ensure_indexes(self) -> None:
        seen: set[str] = set()
        for document in self._documents.values():
            path = document.get("path")
            if path is None:
                continue
            if path in seen:
                raise DuplicatePageError("path", path)
            seen.add(path)

    def _check_path_available(self, path: Optional[str]) -> None:
        if path is None:
            return
        for document in self._documents.values():
            if document.get("path") == path:
                raise DuplicatePageError("path", path)

    # ------------------------------------------------------------------
    # Redirects
    # ------------------------------------------------------------------
    async def lookup(self, from_slug: str) -> Optional[str]:
        return self._redirects.get(from_slug)

    async def upsert(self, from_slug: str, to_slug: str) -> None:
        self._redirects[from_slug] = to_slug

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def snapshot(self) -> dict[str, Any]:
        return {
            "pages": [dict(document) for document in self._documents.values()],
            "redirects": [
                {"from": from_slug, "to": to_slug} for from_slug, to_slug in self._redirects.items()
            ],
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> "MemoryPageStore":
        store = cls(redirects=[Redirect(item["from"], item["to"]) for item in data.get("redirects", [])])
        # Whole documents, including store-only fields such as the rank counter.
        for item in data.get("pages", []):
            store._documents[item["slug"]] = dict(item)
        return store


class JsonFilePageStore(MemoryPageStore):
    """Memory store loaded from and flushed to a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        data: Mapping[str, Any] = {}
        if path.exists():
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        source = MemoryPageStore.from_snapshot(data)
        super().__init__()
        self._documents = source._documents
        self._redirects = source._redirects

    def flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as handle:
            json.dump(self.snapshot(), handle, indent=2, sort_keys=True)
        logger.debug("Wrote %d page(s) to %s", len(self._documents), self.path)


def _sort_key(value: Any) -> tuple[int, Any]:
    # Missing values sort first, like a document store does for absent fields.
    if value is None:
        return (0, 0)
    return (1, value)
