"""Dataclasses representing a page tree exported to a local directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional


@dataclass(slots=True)
class LocalPageMetadata:
    """Metadata persisted in the frontmatter of a local page file."""

    title: str
    slug: Optional[str] = None
    type: str = "default"
    rank: Optional[int] = None
    areas: dict[str, Any] = field(default_factory=dict)
    type_data: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class LocalPage:
    """Representation of a page stored on disk."""

    path: Path
    metadata: LocalPageMetadata
    body: str
    children: list["LocalPage"] = field(default_factory=list)

    @property
    def directory(self) -> Path:
        return self.path.parent

    def iter_subtree(self) -> Iterator["LocalPage"]:
        """Yield the page and all descendants in depth-first order."""

        yield self
        for child in self.children:
            yield from child.iter_subtree()
