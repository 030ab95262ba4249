"""Typed exception hierarchy for page tree operations.

Every exception carries a short ``status`` string so that outer surfaces
(the CLI, an HTTP layer) can report a structured outcome without inspecting
exception classes themselves.
"""

from __future__ import annotations

from typing import Iterable, Optional


class PageTreeError(Exception):
    """Base exception for all page tree errors."""

    status = "error"

    def to_status(self) -> dict[str, str]:
        return {"status": self.status, "message": str(self)}


class PageNotFoundError(PageTreeError):
    """Raised when a page (or the parent of a new page) does not exist."""

    status = "notfound"

    def __init__(self, slug: str):
        super().__init__(f"Page {slug!r} not found")
        self.slug = slug


class PermissionDeniedError(PageTreeError):
    """Raised when the permission collaborator refuses an action."""

    status = "forbidden"

    def __init__(self, action: str, slug: Optional[str]):
        super().__init__(f"Permission {action!r} denied on page {slug!r}")
        self.action = action
        self.slug = slug


class PageValidationError(PageTreeError):
    """Raised when submitted data is rejected before any write."""

    status = "invalid"


class PathError(PageValidationError):
    """Raised for paths or slugs that are not anchored at the root."""

    def __init__(self, path: str):
        super().__init__(f"Path {path!r} is not anchored at '/'")
        self.path = path


class ImmutableRootError(PageTreeError):
    """Raised when an operation would change or remove the home page."""

    status = "immutable-root"

    def __init__(self, message: str = "The home page cannot be renamed or removed"):
        super().__init__(message)


class HasChildrenError(PageTreeError):
    """Raised when removing a page that still has child pages."""

    status = "has-children"

    def __init__(self, slug: str, child_count: int):
        super().__init__(f"Remove the {child_count} child page(s) of {slug!r} first")
        self.slug = slug
        self.child_count = child_count


class StoreError(PageTreeError):
    """Raised for any failure surfaced by the document store."""

    status = "store-error"


class DuplicatePageError(StoreError):
    """Raised when a write would break slug or path uniqueness."""

    def __init__(self, field: str, value: str):
        super().__init__(f"A page with {field} {value!r} already exists")
        self.field = field
        self.value = value


class CascadeError(StoreError):
    """Raised when some descendant updates of a rename failed.

    Updates that already landed are not rolled back.
    ``MutationEngine.resume_cascade`` moves the descendants listed in
    ``failed`` once the store accepts writes again.
    """

    def __init__(
        self,
        slug: str,
        renamed: Iterable[str],
        failed: dict[str, Exception],
        *,
        new_slug: Optional[str] = None,
        old_path: Optional[str] = None,
    ):
        self.slug = slug
        self.new_slug = new_slug
        self.old_path = old_path
        self.renamed = list(renamed)
        self.failed = dict(failed)
        super().__init__(
            f"Renaming {slug!r} left {len(self.failed)} descendant(s) with their old address "
            f"({len(self.renamed)} updated)"
        )


class RegistryFrozenError(PageTreeError):
    """Raised when page types or groups are registered after the registry is frozen."""

    def __init__(self, name: str):
        super().__init__(f"Cannot register {name!r}: the type registry is frozen")
        self.name = name
