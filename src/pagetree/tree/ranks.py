"""Sibling rank allocation."""

from __future__ import annotations

import logging

from pagetree.store.base import PageStore

from .models import Page
from .queries import TreeQueries

logger = logging.getLogger(__name__)


class RankAllocator:
    """Hand out the rank of the next child of a page.

    The current children only provide a floor; the value itself comes from
    the store's per-parent counter, so two concurrent insertions under the
    same parent never receive the same rank.
    """

    def __init__(self, queries: TreeQueries, store: PageStore) -> None:
        self.queries = queries
        self.store = store

    async def next_rank(self, parent: Page) -> int:
        children = await self.queries.get_descendants(parent, depth=1)
        floor = max((child.page.rank for child in children), default=0)
        rank = await self.store.allocate_rank(parent.slug, floor)
        logger.debug("Allocated rank %d under %s (floor %d)", rank, parent.slug, floor)
        return rank
