"""Resolve a requested address into a page response for the rendering layer."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Union

from pagetree.store.base import RedirectStore
from pagetree.tree.models import Page, PageNode
from pagetree.tree.queries import TreeQueries
from pagetree.tree.types import DEFAULT_TYPE, TypeRegistry

from .permissions import EDIT_PAGE, VIEW_PAGE, Authorizer, PageRequest

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    PAGE = "page"
    REDIRECT = "redirect"
    NOT_FOUND = "notfound"
    LOGIN_REQUIRED = "loginRequired"
    INSUFFICIENT = "insufficient"
    SERVER_ERROR = "serverError"


STATUS_CODES = {
    Outcome.PAGE: 200,
    Outcome.REDIRECT: 302,
    Outcome.NOT_FOUND: 404,
    Outcome.LOGIN_REQUIRED: 401,
    Outcome.INSUFFICIENT: 403,
    Outcome.SERVER_ERROR: 500,
}

# Stand-in for a shared page that has not been created yet.
EMPTY_PAGE: Mapping[str, Any] = {"areas": {}}


@dataclass(slots=True)
class ResolutionContext:
    """Per-request state shared with loaders and the not-found handler."""

    request: PageRequest
    slug: str
    page: Optional[Page] = None
    best_page: Optional[Page] = None
    remainder: str = ""
    ancestors: list[Page] = field(default_factory=list)
    children: list[PageNode] = field(default_factory=list)
    edit: bool = False
    login_required: bool = False
    insufficient: bool = False
    extras: dict[str, Any] = field(default_factory=dict)
    template_type: Optional[str] = None
    template: Optional[str] = None


Loader = Callable[[ResolutionContext], Awaitable[Optional[Mapping[str, Any]]]]
LoadStep = Union[str, Loader]
NotFoundHandler = Callable[[ResolutionContext], Awaitable[None]]


@dataclass(slots=True)
class ServeOptions:
    """How pages are served from a mount point.

    ``load`` entries are either page slugs, fetched and exposed under the
    slug as their name, or coroutine functions receiving the context and
    returning extra named values.
    """

    root: str = ""
    depth: int = 1
    load: Sequence[LoadStep] = ()
    notfound: Optional[NotFoundHandler] = None
    template_path: str = "views"
    type_paths: Mapping[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class PageResponse:
    """Everything the rendering collaborator needs to produce a response."""

    outcome: Outcome
    status_code: int
    template: Optional[str]
    context: dict[str, Any]
    location: Optional[str] = None
    error: Optional[BaseException] = None


class Renderer(ABC):
    """Port for template rendering."""

    @abstractmethod
    def render(self, template: str, context: Mapping[str, Any]) -> str:
        """Render ``template`` with ``context`` into a response body."""


def locate_template(type_name: str, options: ServeOptions, override: Optional[str] = None) -> str:
    if override:
        return override
    directory = options.type_paths.get(type_name, options.template_path)
    return f"{directory.rstrip('/')}/{type_name}.html"


class PageRequestResolver:
    """Walk one request through lookup, permissions, relatives, loaders and fallbacks."""

    def __init__(
        self,
        *,
        queries: TreeQueries,
        redirects: RedirectStore,
        registry: TypeRegistry,
        authorizer: Authorizer,
        options: Optional[ServeOptions] = None,
    ) -> None:
        self.queries = queries
        self.redirects = redirects
        self.registry = registry
        self.authorizer = authorizer
        self.options = options or ServeOptions()

    async def resolve(self, request: PageRequest) -> PageResponse:
        slug = request.slug or "/"
        if not slug.startswith("/"):
            slug = "/" + slug
        context = ResolutionContext(request=request, slug=slug)

        error: Optional[BaseException] = None
        try:
            await self._find_page(context)
            await self._check_permissions(context)
            await self._attach_relatives(context)
            await self._run_loaders(context)
            location = await self._handle_missing(context)
            if location is not None:
                return PageResponse(
                    outcome=Outcome.REDIRECT,
                    status_code=STATUS_CODES[Outcome.REDIRECT],
                    template=None,
                    context={"slug": context.slug},
                    location=location,
                )
        except Exception as exc:
            logger.exception("Failed to resolve %s", context.slug)
            error = exc
        return self._respond(context, error)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    async def _find_page(self, context: ResolutionContext) -> None:
        match = await self.queries.resolve_best_match(context.slug)
        context.page = match.page
        context.best_page = match.best_page
        context.remainder = match.remainder

    async def _check_permissions(self, context: ResolutionContext) -> None:
        if context.best_page is None:
            return
        request = context.request
        if not await self.authorizer.check(request, VIEW_PAGE, context.best_page):
            if request.user is not None:
                context.insufficient = True
            else:
                context.login_required = True
            return
        context.edit = await self.authorizer.check(request, EDIT_PAGE, context.best_page)

    async def _attach_relatives(self, context: ResolutionContext) -> None:
        if context.best_page is None:
            return
        context.ancestors = await self.queries.get_ancestors(context.best_page)
        context.children = await self.queries.get_descendants(context.best_page, self.options.depth)

    async def _run_loaders(self, context: ResolutionContext) -> None:
        steps = self.options.load
        if callable(steps):
            steps = [steps]
        if not steps:
            return
        tasks = [asyncio.ensure_future(self._run_loader(step, context)) for step in steps]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            # Loaders never outlive the request.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        for values in results:
            if values:
                context.extras.update(values)

    async def _run_loader(self, step: LoadStep, context: ResolutionContext) -> Optional[Mapping[str, Any]]:
        if isinstance(step, str):
            page = await self.queries.get_page(step)
            return {step: page if page is not None else dict(EMPTY_PAGE)}
        return await step(context)

    async def _handle_missing(self, context: ResolutionContext) -> Optional[str]:
        if context.page is not None:
            return None
        target = await self.redirects.lookup(context.slug)
        if target is not None:
            logger.debug("Redirecting %s to %s", context.slug, target)
            return self.options.root + target
        if self.options.notfound is not None:
            await self.options.notfound(context)
        return None

    # ------------------------------------------------------------------
    # Outcome
    # ------------------------------------------------------------------
    def _select_outcome(self, context: ResolutionContext, error: Optional[BaseException]) -> tuple[Outcome, str]:
        if error is not None:
            return Outcome.SERVER_ERROR, Outcome.SERVER_ERROR.value
        if context.login_required:
            return Outcome.LOGIN_REQUIRED, Outcome.LOGIN_REQUIRED.value
        if context.insufficient:
            return Outcome.INSUFFICIENT, Outcome.INSUFFICIENT.value
        if context.page is not None:
            type_name = context.page.type if context.page.type in self.registry else DEFAULT_TYPE
            return Outcome.PAGE, type_name
        return Outcome.NOT_FOUND, Outcome.NOT_FOUND.value

    def _respond(self, context: ResolutionContext, error: Optional[BaseException]) -> PageResponse:
        outcome, type_name = self._select_outcome(context, error)
        type_name = context.template_type or type_name
        provide_page = outcome is Outcome.PAGE

        values: dict[str, Any] = {
            "edit": context.edit,
            "slug": context.slug,
            "page": context.page if provide_page else None,
            "user": context.request.user,
            "best_page": context.best_page if provide_page else None,
            "remainder": context.remainder,
            "ancestors": context.ancestors if provide_page else [],
            "children": context.children if provide_page else [],
            "type": type_name,
        }
        for name, value in context.extras.items():
            values.setdefault(name, value)

        return PageResponse(
            outcome=outcome,
            status_code=STATUS_CODES[outcome],
            template=locate_template(type_name, self.options, context.template),
            context=values,
            error=error,
        )


def render(response: PageResponse, renderer: Renderer) -> str:
    if response.template is None:
        raise ValueError(f"{response.outcome.value} responses have no template to render")
    return renderer.render(response.template, response.context)
