"""Insert, rename and remove pages while keeping the tree consistent."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

from pagetree.serve.permissions import ADD_PAGE, EDIT, Authorizer, PageRequest
from pagetree.store.base import PageQuery, PageStore, RedirectStore

from .errors import (
    CascadeError,
    HasChildrenError,
    ImmutableRootError,
    PageNotFoundError,
    PageValidationError,
    PermissionDeniedError,
)
from .models import HEAVY_FIELDS, Page
from .paths import ROOT, child_path, last_segment, normalize_slug, parent_path, slugify, subtree_prefix
from .queries import TreeQueries
from .ranks import RankAllocator
from .types import TypeRegistry

logger = logging.getLogger(__name__)

NEW_PAGE_TITLE = "New Page"
UNTITLED_PAGE_TITLE = "Untitled Page"


class MutationEngine:
    """Apply structural changes to the page tree.

    ``path`` is the authoritative hierarchy field. A rename rewrites the
    renamed page's path and slug, then rewrites the path of every page
    below it and derives each descendant's new slug from its own stored
    slug. Nothing is rolled back when a later step fails;
    ``resume_cascade`` finishes a rename whose descendant updates failed.
    """

    def __init__(
        self,
        *,
        store: PageStore,
        redirects: RedirectStore,
        queries: TreeQueries,
        ranks: RankAllocator,
        registry: TypeRegistry,
        authorizer: Authorizer,
        cascade_concurrency: int = 8,
    ) -> None:
        self.store = store
        self.redirects = redirects
        self.queries = queries
        self.ranks = ranks
        self.registry = registry
        self.authorizer = authorizer
        self.cascade_concurrency = max(1, cascade_concurrency)

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------
    async def insert(
        self,
        parent_slug: str,
        title: str,
        type_name: Optional[str],
        content: Optional[Mapping[str, Any]],
        request: PageRequest,
        *,
        areas: Optional[Mapping[str, Any]] = None,
    ) -> Page:
        """Create a page titled ``title`` as the last child of ``parent_slug``.

        ``areas`` seeds the new page's editable content; it is written with
        the page under the same ``add-page`` permission.
        """

        title = (title or "").strip() or NEW_PAGE_TITLE
        page_type = self.registry.resolve(type_name)

        parent = await self._get_page(parent_slug)
        await self.authorize(request, ADD_PAGE, parent)
        sanitized = await page_type.sanitize(content)
        rank = await self.ranks.next_rank(parent)

        segment = slugify(title)
        page = Page(
            slug=child_path(parent.slug, segment),
            path=child_path(parent.path, segment),
            level=parent.level + 1,
            rank=rank,
            title=title,
            type=page_type.name,
            areas=dict(areas or {}),
        )
        if sanitized is not None:
            page.type_data[page_type.name] = sanitized

        stored = await self.store.insert(page)
        logger.info("Inserted %s under %s with rank %d", stored.slug, parent.slug, stored.rank)
        return stored

    # ------------------------------------------------------------------
    # Rename / edit
    # ------------------------------------------------------------------
    async def rename(
        self,
        original_slug: str,
        title: str,
        slug: str,
        type_name: Optional[str],
        content: Optional[Mapping[str, Any]],
        request: PageRequest,
    ) -> Page:
        """Update a page's title, type, content and address.

        When the address changes every descendant follows it and a redirect
        from the old address is recorded. Descendants' old addresses are not
        redirected.
        """

        title = (title or "").strip() or UNTITLED_PAGE_TITLE
        page_type = self.registry.resolve(type_name)
        new_slug = normalize_slug(slug)

        page = await self._get_page(original_slug)
        await self.authorize(request, EDIT, page)

        if page.path == ROOT or original_slug == ROOT:
            if new_slug != original_slug:
                raise ImmutableRootError()
            new_path = page.path
        else:
            if new_slug == ROOT:
                raise PageValidationError("Only the home page can use the address '/'")
            new_path = child_path(parent_path(page.path), last_segment(new_slug))

        sanitized = await page_type.sanitize(content)
        type_data = dict(page.type_data)
        if sanitized is not None:
            type_data[page_type.name] = sanitized

        old_path = page.path
        changes = {
            "title": title,
            "slug": new_slug,
            "path": new_path,
            "type": page_type.name,
            "type_data": type_data,
        }
        await self.store.update(original_slug, changes)
        await self.redirects.upsert(original_slug, new_slug)

        page.title = title
        page.slug = new_slug
        page.path = new_path
        page.type = page_type.name
        page.type_data = type_data
        page.url = self.queries.root + new_slug

        if new_slug != original_slug or new_path != old_path:
            await self._cascade(original_slug, new_slug, old_path, new_path)
        logger.info("Updated %s (now %s)", original_slug, new_slug)
        return page

    async def update_content(
        self,
        slug: str,
        title: str,
        areas: Mapping[str, Any],
        request: PageRequest,
    ) -> Page:
        """Replace a page's title and areas, leaving its address alone."""

        page = await self._get_page(slug)
        await self.authorize(request, EDIT, page)
        title = (title or "").strip() or page.title
        await self.store.update(slug, {"title": title, "areas": dict(areas)})
        page.title = title
        page.areas = dict(areas)
        logger.info("Updated content of %s", slug)
        return page

    async def resume_cascade(
        self,
        original_slug: str,
        request: PageRequest,
        *,
        old_path: Optional[str] = None,
    ) -> Page:
        """Move the descendants a failed rename left under the old address.

        The renamed page is found through the redirect recorded for
        ``original_slug``. ``old_path`` defaults to the page's current path
        with its last segment taken from ``original_slug``; pass
        ``CascadeError.old_path`` when the page used a custom slug. Running
        it after the tree is consistent changes nothing.
        """

        new_slug = await self.redirects.lookup(original_slug)
        if new_slug is None:
            raise PageNotFoundError(original_slug)
        page = await self._get_page(new_slug)
        await self.authorize(request, EDIT, page)
        if page.path == ROOT:
            return page
        if old_path is None:
            old_path = child_path(parent_path(page.path), last_segment(original_slug))
        if old_path != page.path or original_slug != new_slug:
            await self._cascade(original_slug, new_slug, old_path, page.path)
        logger.info("Resumed cascade %s -> %s", original_slug, new_slug)
        return page

    async def _cascade(self, old_slug: str, new_slug: str, old_path: str, new_path: str) -> None:
        old_path_prefix = subtree_prefix(old_path)
        new_path_prefix = subtree_prefix(new_path)
        old_slug_prefix = subtree_prefix(old_slug)
        new_slug_prefix = subtree_prefix(new_slug)

        descendants = await self.store.find(PageQuery(path_prefix=old_path_prefix, exclude=HEAVY_FIELDS))
        if not descendants:
            return
        logger.debug("Cascading %s -> %s to %d descendant(s)", old_slug, new_slug, len(descendants))

        semaphore = asyncio.Semaphore(self.cascade_concurrency)

        async def _move(descendant: Page) -> None:
            changes = {"path": new_path_prefix + descendant.path[len(old_path_prefix):]}
            if descendant.slug.startswith(old_slug_prefix):
                changes["slug"] = new_slug_prefix + descendant.slug[len(old_slug_prefix):]
            async with semaphore:
                await self.store.update(descendant.slug, changes)

        results = await asyncio.gather(*(_move(d) for d in descendants), return_exceptions=True)

        renamed: list[str] = []
        failed: dict[str, Exception] = {}
        for descendant, result in zip(descendants, results):
            if isinstance(result, Exception):
                failed[descendant.slug] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                renamed.append(descendant.slug)
        if failed:
            logger.warning(
                "Cascade of %s -> %s failed for %d of %d descendant(s)",
                old_slug,
                new_slug,
                len(failed),
                len(descendants),
            )
            raise CascadeError(old_slug, renamed, failed, new_slug=new_slug, old_path=old_path)

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------
    async def remove(self, slug: str, request: PageRequest) -> str:
        """Delete a leaf page and return its parent's slug."""

        page = await self._get_page(slug)
        ancestors = await self.queries.get_ancestors(page)
        if not ancestors:
            raise ImmutableRootError()
        parent = ancestors[-1]
        await self.authorize(request, ADD_PAGE, parent)

        children = await self.queries.get_descendants(page, depth=1)
        if children:
            raise HasChildrenError(page.slug, len(children))

        await self.store.delete(page.slug)
        logger.info("Removed %s", page.slug)
        return parent.slug

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _get_page(self, slug: str) -> Page:
        page = await self.queries.get_page(slug)
        if page is None:
            raise PageNotFoundError(slug)
        return page

    async def authorize(self, request: PageRequest, action: str, page: Page) -> None:
        """Raise ``PermissionDeniedError`` unless ``request`` may perform ``action`` on ``page``."""

        if not await self.authorizer.check(request, action, page):
            logger.warning("Permission %s denied on %s for %r", action, page.slug, request.user)
            raise PermissionDeniedError(action, page.slug)
