"""Wire the tree engine components together around one store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from pagetree.config import PageTreeConfig
from pagetree.serve.permissions import AllowAllAuthorizer, Authorizer
from pagetree.serve.resolver import PageRequestResolver, ServeOptions
from pagetree.store.base import PageStore, RedirectStore
from pagetree.store.http import HttpPageStore, create_store
from pagetree.store.memory import JsonFilePageStore, MemoryPageStore
from pagetree.tree.models import Page
from pagetree.tree.mutations import MutationEngine
from pagetree.tree.queries import TreeQueries
from pagetree.tree.ranks import RankAllocator
from pagetree.tree.types import DEFAULT_TYPE, TypeRegistry, build_registry

logger = logging.getLogger(__name__)

AnyStore = Union[MemoryPageStore, HttpPageStore]


@dataclass(slots=True)
class Site:
    """One page tree: its store, type registry and engine components."""

    store: PageStore
    redirects: RedirectStore
    registry: TypeRegistry
    queries: TreeQueries
    ranks: RankAllocator
    mutations: MutationEngine
    resolver: PageRequestResolver

    async def ensure_root(self, title: str = "Home", type_name: str = DEFAULT_TYPE) -> Page:
        """Create the home page if the store does not have one yet."""

        await self.store.ensure_indexes()
        root = await self.queries.get_page("/")
        if root is not None:
            return root
        root = Page(slug="/", path="/", level=0, rank=0, title=title, type=self.registry.resolve(type_name).name)
        logger.info("Creating home page %r", title)
        return await self.store.insert(root)

    async def close(self) -> None:
        if isinstance(self.store, HttpPageStore):
            await self.store.aclose()
        elif isinstance(self.store, JsonFilePageStore):
            self.store.flush()


def create_site(
    store: AnyStore,
    *,
    registry: Optional[TypeRegistry] = None,
    authorizer: Optional[Authorizer] = None,
    options: Optional[ServeOptions] = None,
    cascade_concurrency: int = 8,
) -> Site:
    registry = registry or build_registry()
    authorizer = authorizer or AllowAllAuthorizer()
    options = options or ServeOptions()
    queries = TreeQueries(store, root=options.root)
    ranks = RankAllocator(queries, store)
    mutations = MutationEngine(
        store=store,
        redirects=store,
        queries=queries,
        ranks=ranks,
        registry=registry,
        authorizer=authorizer,
        cascade_concurrency=cascade_concurrency,
    )
    resolver = PageRequestResolver(
        queries=queries,
        redirects=store,
        registry=registry,
        authorizer=authorizer,
        options=options,
    )
    return Site(
        store=store,
        redirects=store,
        registry=registry,
        queries=queries,
        ranks=ranks,
        mutations=mutations,
        resolver=resolver,
    )


def site_from_config(config: PageTreeConfig, *, authorizer: Optional[Authorizer] = None) -> Site:
    if config.store.base_url:
        store: AnyStore = create_store(
            base_url=config.store.base_url,
            token=config.store.token,
            timeout=config.store.timeout,
        )
    else:
        store = JsonFilePageStore(config.store.file)
    options = ServeOptions(
        root=config.serve.root,
        depth=config.serve.depth,
        load=list(config.serve.load),
        template_path=config.serve.template_path,
        type_paths=dict(config.serve.type_paths),
    )
    return create_site(
        store,
        registry=config.build_registry(),
        authorizer=authorizer,
        options=options,
        cascade_concurrency=config.engine.cascade_concurrency,
    )
