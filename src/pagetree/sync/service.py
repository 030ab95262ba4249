"""Export and import workflows between a page store and the local filesystem."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pagetree.local.models import LocalPage
from pagetree.local.repository import LocalRepository
from pagetree.serve.permissions import EDIT, PageRequest
from pagetree.store.base import PageQuery
from pagetree.tree.errors import PageNotFoundError
from pagetree.tree.models import iter_forest
from pagetree.tree.mutations import MutationEngine
from pagetree.tree.queries import TreeQueries

logger = logging.getLogger(__name__)

# Deep enough for any real site; descendant queries are bounded by level.
EXPORT_DEPTH = 64


@dataclass(slots=True)
class SyncResult:
    """Report produced after an export or import."""

    processed_pages: int
    created_pages: int = 0
    updated_pages: int = 0


class SyncService:
    """Coordinate moving a page tree between the store and a local workspace."""

    def __init__(self, queries: TreeQueries, mutations: MutationEngine, repository: LocalRepository) -> None:
        self.queries = queries
        self.mutations = mutations
        self.repository = repository

    # ------------------------------------------------------------------
    # Export (store -> local)
    # ------------------------------------------------------------------
    async def export_tree(self, root_slug: str = "/") -> SyncResult:
        """Write the page at ``root_slug`` and everything below it to the workspace."""

        root = await self.queries.get_page(root_slug)
        if root is None:
            raise PageNotFoundError(root_slug)

        forest = await self.queries.get_descendants(root, depth=EXPORT_DEPTH)
        paths = [node.page.path for node in iter_forest(forest)]
        if paths:
            # Descendant queries leave out areas; fetch them for the files.
            full_pages = {page.path: page for page in await self.queries.store.find(PageQuery(paths=paths))}
            for node in iter_forest(forest):
                node.page = full_pages.get(node.page.path, node.page)

        written = self.repository.write_tree(root, forest)
        logger.info("Exported %d page(s) from %s to %s", written, root_slug, self.repository.root)
        return SyncResult(processed_pages=written)

    # ------------------------------------------------------------------
    # Import (local -> store)
    # ------------------------------------------------------------------
    async def import_tree(self, request: PageRequest) -> SyncResult:
        """Create missing pages from the workspace and refresh the content of existing ones.

        Edit permission on every existing page is checked before anything is
        written, so a refused import leaves the store untouched.
        """

        local_root = self.repository.read_tree()
        root_slug = local_root.metadata.slug or "/"
        root = await self.queries.get_page(root_slug)
        if root is None:
            raise PageNotFoundError(root_slug)
        await self._check_edit_permissions(local_root, root_slug, request)

        result = SyncResult(processed_pages=0)
        await self._refresh(local_root, root_slug, request, result)
        for child in local_root.children:
            await self._import_subtree(child, root_slug, request, result)
        return result

    async def _check_edit_permissions(self, local_root: LocalPage, root_slug: str, request: PageRequest) -> None:
        for local_page in local_root.iter_subtree():
            slug = root_slug if local_page is local_root else local_page.metadata.slug
            if not slug:
                continue
            existing = await self.queries.get_page(slug)
            if existing is not None:
                await self.mutations.authorize(request, EDIT, existing)

    async def _import_subtree(
        self,
        local_page: LocalPage,
        parent_slug: str,
        request: PageRequest,
        result: SyncResult,
    ) -> None:
        metadata = local_page.metadata
        existing = await self.queries.get_page(metadata.slug) if metadata.slug else None
        if existing is not None:
            slug = existing.slug
            await self._refresh(local_page, slug, request, result)
        else:
            created = await self.mutations.insert(
                parent_slug,
                metadata.title,
                metadata.type,
                metadata.type_data.get(metadata.type),
                request,
                areas=self.repository.areas_for(local_page),
            )
            slug = created.slug
            metadata.slug = slug
            result.processed_pages += 1
            result.created_pages += 1

        for child in local_page.children:
            await self._import_subtree(child, slug, request, result)

    async def _refresh(self, local_page: LocalPage, slug: str, request: PageRequest, result: SyncResult) -> None:
        await self.mutations.update_content(
            slug,
            local_page.metadata.title,
            self.repository.areas_for(local_page),
            request,
        )
        result.processed_pages += 1
        result.updated_pages += 1
