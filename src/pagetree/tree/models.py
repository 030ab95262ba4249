"""Typed models for pages, redirects and query results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping, Optional

# Fields that are never needed to draw navigation and can be large.
HEAVY_FIELDS = ("areas", "type_data")


@dataclass(slots=True)
class Page:
    """A page record as persisted in the document store."""

    slug: str
    path: str
    level: int
    rank: int
    title: str
    type: str = "default"
    areas: dict[str, Any] = field(default_factory=dict)
    type_data: dict[str, Any] = field(default_factory=dict)
    url: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        """Return the persisted representation; ``url`` is not stored."""

        return {
            "slug": self.slug,
            "path": self.path,
            "level": self.level,
            "rank": self.rank,
            "title": self.title,
            "type": self.type,
            "areas": dict(self.areas),
            "type_data": dict(self.type_data),
        }

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "Page":
        return cls(
            slug=data["slug"],
            path=data["path"],
            level=int(data["level"]),
            rank=int(data.get("rank", 0)),
            title=data.get("title", ""),
            type=data.get("type") or "default",
            areas=dict(data.get("areas") or {}),
            type_data=dict(data.get("type_data") or {}),
        )


@dataclass(slots=True)
class PageNode:
    """A page with its nested children, as returned by descendant queries."""

    page: Page
    children: list["PageNode"] = field(default_factory=list)

    def iter_subtree(self) -> Iterator["PageNode"]:
        """Yield the node and all descendants in depth-first order."""

        yield self
        for child in self.children:
            yield from child.iter_subtree()


def iter_forest(nodes: Iterable[PageNode]) -> Iterator[PageNode]:
    for node in nodes:
        yield from node.iter_subtree()


@dataclass(slots=True)
class Redirect:
    """Mapping from a page's former address to its current one."""

    from_slug: str
    to_slug: str


@dataclass(slots=True)
class BestMatch:
    """Result of resolving a requested address against the page tree."""

    page: Optional[Page] = None
    best_page: Optional[Page] = None
    remainder: str = ""
