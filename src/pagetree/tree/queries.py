"""Read-only tree queries over a flat page store."""

from __future__ import annotations

import logging
from typing import Optional

from pagetree.store.base import ASCENDING, PageQuery, PageStore

from .models import HEAVY_FIELDS, BestMatch, Page, PageNode
from .paths import ancestor_paths, boundary_prefixes, parent_path, subtree_prefix

logger = logging.getLogger(__name__)


class TreeQueries:
    """Answer ancestor, descendant and address queries for pages.

    Hierarchy is read from the materialized ``path`` field with prefix and
    level-range predicates; no query walks the tree one level at a time.
    ``root`` is the mount prefix used to fill in ``Page.url``.
    """

    def __init__(self, store: PageStore, *, root: str = "") -> None:
        self.store = store
        self.root = root

    def _with_url(self, page: Page) -> Page:
        page.url = self.root + page.slug
        return page

    async def get_page(self, slug: str) -> Optional[Page]:
        page = await self.store.find_one(PageQuery(slug=slug))
        return self._with_url(page) if page else None

    async def resolve_best_match(self, requested_slug: str) -> BestMatch:
        """Find the exact page for ``requested_slug`` or its longest ``/``-boundary prefix."""

        candidates = await self.store.find(PageQuery(slugs=boundary_prefixes(requested_slug)))
        if not candidates:
            return BestMatch()

        for candidate in candidates:
            if candidate.slug == requested_slug:
                page = self._with_url(candidate)
                return BestMatch(page=page, best_page=page, remainder="")

        best = max(candidates, key=lambda candidate: len(candidate.slug))
        remainder = requested_slug[len(subtree_prefix(best.slug)):]
        return BestMatch(page=None, best_page=self._with_url(best), remainder=remainder)

    async def get_ancestors(self, page: Page) -> list[Page]:
        """Return the ancestors of ``page``, root first, without their content."""

        paths = ancestor_paths(page.path)
        if not paths:
            return []
        ancestors = await self.store.find(
            PageQuery(paths=paths, sort=(("level", ASCENDING),), exclude=HEAVY_FIELDS)
        )
        ancestors.sort(key=lambda ancestor: ancestor.level)
        return [self._with_url(ancestor) for ancestor in ancestors]

    async def get_descendants(self, page: Page, depth: int = 1) -> list[PageNode]:
        """Return the subtree below ``page`` down to ``depth`` levels as a forest.

        Results arrive sorted by level, so a parent is always placed before
        its children and one pass is enough to nest them.
        """

        if depth < 1:
            return []
        pages = await self.store.find(
            PageQuery(
                path_prefix=subtree_prefix(page.path),
                level_gt=page.level,
                level_lte=page.level + depth,
                sort=(("level", ASCENDING), ("rank", ASCENDING)),
                exclude=HEAVY_FIELDS,
            )
        )

        children: list[PageNode] = []
        nodes_by_path: dict[str, PageNode] = {}
        for descendant in pages:
            node = PageNode(page=self._with_url(descendant))
            nodes_by_path[descendant.path] = node
            parent = nodes_by_path.get(parent_path(descendant.path))
            if parent is not None:
                parent.children.append(node)
            else:
                children.append(node)
        logger.debug("%d descendant(s) of %s within depth %d", len(pages), page.path, depth)
        return children
