"""Permission collaborator interface and simple policies."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from pagetree.tree.models import Page

logger = logging.getLogger(__name__)

VIEW_PAGE = "view-page"
EDIT_PAGE = "edit-page"
EDIT = "edit"
ADD_PAGE = "add-page"


@dataclass(slots=True)
class PageRequest:
    """The parts of an incoming request the engine cares about."""

    slug: str = "/"
    user: Optional[str] = None
    extras: dict[str, Any] = field(default_factory=dict)


class Authorizer(ABC):
    """Decide whether a request may perform an action on a page."""

    @abstractmethod
    async def check(self, request: PageRequest, action: str, page: Optional[Page]) -> bool:
        """Return ``True`` when ``action`` is allowed on ``page``."""


class AllowAllAuthorizer(Authorizer):
    async def check(self, request: PageRequest, action: str, page: Optional[Page]) -> bool:
        return True


class EditorAuthorizer(Authorizer):
    """Everyone may view; only listed editors may edit or add pages."""

    def __init__(self, editors: Iterable[str], *, public: bool = True) -> None:
        self.editors = frozenset(editors)
        self.public = public

    async def check(self, request: PageRequest, action: str, page: Optional[Page]) -> bool:
        if action == VIEW_PAGE:
            allowed = self.public or request.user is not None
        else:
            allowed = request.user in self.editors
        if not allowed:
            logger.debug("Denied %s on %s for %r", action, page.slug if page else None, request.user)
        return allowed
