"""Local filesystem mirror of a page tree."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

import frontmatter

from pagetree.tree.paths import last_segment

from .models import LocalPage, LocalPageMetadata

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from pagetree.content.converters import ContentConverter
    from pagetree.tree.models import Page, PageNode


PAGE_FILENAME = "page.md"
BODY_AREA = "body"


class LocalRepository:
    """Persist pages as Markdown files with YAML frontmatter.

    Each page lives in its own directory named after the last segment of
    its path; the root page sits at the repository root. The ``body`` area
    is written as Markdown, every other area stays in the frontmatter.
    """

    def __init__(self, root: Path, *, converter: "ContentConverter") -> None:
        self.root = root
        self.converter = converter

    # ------------------------------------------------------------------
    # Export helpers (store -> disk)
    # ------------------------------------------------------------------
    def write_tree(self, root_page: "Page", descendants: Iterable["PageNode"]) -> int:
        """Persist a page and its nested descendants, returning the number of files written."""

        self.root.mkdir(parents=True, exist_ok=True)
        self._dump_page(self.root / PAGE_FILENAME, root_page)
        written = 1
        for node in descendants:
            written += self._write_node(self.root, node)
        return written

    def _write_node(self, parent_directory: Path, node: "PageNode") -> int:
        directory = parent_directory / last_segment(node.page.path)
        directory.mkdir(parents=True, exist_ok=True)
        self._dump_page(directory / PAGE_FILENAME, node.page)
        written = 1
        for child in node.children:
            written += self._write_node(directory, child)
        return written

    def _dump_page(self, file_path: Path, page: "Page") -> None:
        areas = dict(page.areas)
        body_html = areas.pop(BODY_AREA, "")
        body = self.converter.html_to_markdown(body_html) if isinstance(body_html, str) and body_html else ""
        post = frontmatter.Post(body)
        post.metadata.update(
            {
                "title": page.title,
                "slug": page.slug,
                "type": page.type,
                "rank": page.rank,
            }
        )
        if areas:
            post.metadata["areas"] = areas
        if page.type_data:
            post.metadata["type_data"] = page.type_data
        with file_path.open("w", encoding="utf-8") as handle:
            frontmatter.dump(post, handle)

    # ------------------------------------------------------------------
    # Import helpers (disk -> models)
    # ------------------------------------------------------------------
    def read_tree(self) -> LocalPage:
        """Load all local pages from disk into memory."""

        page_file = self.root / PAGE_FILENAME
        if not page_file.exists():
            raise FileNotFoundError(f"Missing {PAGE_FILENAME!r} in repository root {self.root}")
        return self._read_directory(self.root)

    def _read_directory(self, directory: Path) -> LocalPage:
        page_file = directory / PAGE_FILENAME
        post = frontmatter.load(page_file)
        metadata = LocalPageMetadata(
            title=post.metadata.get("title", directory.name),
            slug=_as_optional_str(post.metadata.get("slug")),
            type=post.metadata.get("type") or "default",
            rank=_as_optional_int(post.metadata.get("rank")),
            areas=dict(post.metadata.get("areas") or {}),
            type_data=dict(post.metadata.get("type_data") or {}),
        )
        page = LocalPage(path=page_file, metadata=metadata, body=post.content)
        children = [self._read_directory(child) for child in self.iter_page_directories(directory)]
        children.sort(key=lambda child: (child.metadata.rank is None, child.metadata.rank or 0, child.directory.name))
        page.children.extend(children)
        return page

    def areas_for(self, page: LocalPage) -> dict:
        areas = dict(page.metadata.areas)
        if page.body.strip():
            areas[BODY_AREA] = self.converter.markdown_to_html(page.body)
        return areas

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------
    def iter_page_directories(self, parent: Path) -> Iterable[Path]:
        for candidate in sorted(parent.iterdir()):
            if candidate.is_dir() and (candidate / PAGE_FILENAME).exists():
                yield candidate


def _as_optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _as_optional_int(value: object) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
