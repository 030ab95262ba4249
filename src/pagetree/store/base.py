"""Abstract document store capabilities consumed by the page tree engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from pagetree.tree.models import Page

ASCENDING = 1
DESCENDING = -1


@dataclass(slots=True)
class PageQuery:
    """Flat predicate set understood by every page store.

    All predicates that are set must hold (logical AND). ``exclude`` names
    fields to leave empty in the returned pages.
    """

    slug: Optional[str] = None
    slugs: Optional[Sequence[str]] = None
    paths: Optional[Sequence[str]] = None
    path_prefix: Optional[str] = None
    level_gt: Optional[int] = None
    level_lte: Optional[int] = None
    sort: tuple[tuple[str, int], ...] = ()
    exclude: tuple[str, ...] = ()

    def matches(self, document: Mapping[str, Any]) -> bool:
        slug = document.get("slug")
        path = document.get("path")
        level = document.get("level")
        if self.slug is not None and slug != self.slug:
            return False
        if self.slugs is not None and slug not in self.slugs:
            return False
        if self.paths is not None and path not in self.paths:
            return False
        if self.path_prefix is not None and not (path or "").startswith(self.path_prefix):
            return False
        if self.level_gt is not None and not (level is not None and level > self.level_gt):
            return False
        if self.level_lte is not None and not (level is not None and level <= self.level_lte):
            return False
        return True

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for name in ("slug", "path_prefix", "level_gt", "level_lte"):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        if self.slugs is not None:
            payload["slugs"] = list(self.slugs)
        if self.paths is not None:
            payload["paths"] = list(self.paths)
        if self.sort:
            payload["sort"] = [[name, direction] for name, direction in self.sort]
        if self.exclude:
            payload["exclude"] = list(self.exclude)
        return payload


class PageStore(ABC):
    """Port for page document operations."""

    @abstractmethod
    async def find(self, query: PageQuery) -> list[Page]:
        """Return every page matching ``query``, in its requested order."""

    async def find_one(self, query: PageQuery) -> Optional[Page]:
        pages = await self.find(query)
        return pages[0] if pages else None

    @abstractmethod
    async def insert(self, page: Page) -> Page:
        """Persist a new page. Raises ``DuplicatePageError`` on slug or path reuse."""

    @abstractmethod
    async def update(self, slug: str, changes: Mapping[str, Any]) -> None:
        """Set ``changes`` on the page currently stored under ``slug``."""

    @abstractmethod
    async def delete(self, slug: str) -> None:
        """Remove the page stored under ``slug``."""

    @abstractmethod
    async def allocate_rank(self, slug: str, floor: int) -> int:
        """Atomically bump the child rank counter kept on page ``slug`` to ``max(counter, floor) + 1``.

        The counter belongs to the page document: removing the page drops it
        and renaming the page carries it along.
        """

    @abstractmethod
    async def ensure_indexes(self) -> None:
        """Ensure unique slugs and a unique sparse index on ``path``."""


class RedirectStore(ABC):
    """Port for the redirect collaborator."""

    @abstractmethod
    async def lookup(self, from_slug: str) -> Optional[str]:
        """Return the current address for a former address, if one was recorded."""

    @abstractmethod
    async def upsert(self, from_slug: str, to_slug: str) -> None:
        """Record ``from_slug -> to_slug``, replacing any earlier mapping."""
