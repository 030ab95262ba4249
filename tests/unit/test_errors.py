"""Unit tests for pagetree.tree.errors."""

import pytest

from pagetree.tree.errors import (
    CascadeError,
    DuplicatePageError,
    HasChildrenError,
    ImmutableRootError,
    PageNotFoundError,
    PageTreeError,
    PageValidationError,
    PathError,
    PermissionDeniedError,
    RegistryFrozenError,
    StoreError,
)


class TestHierarchy:
    """Every error is a PageTreeError with its own status."""

    @pytest.mark.parametrize(
        "error, status",
        [
            (PageNotFoundError("/x"), "notfound"),
            (PermissionDeniedError("edit", "/x"), "forbidden"),
            (PageValidationError("bad"), "invalid"),
            (PathError("x"), "invalid"),
            (ImmutableRootError(), "immutable-root"),
            (HasChildrenError("/x", 2), "has-children"),
            (StoreError("down"), "store-error"),
            (DuplicatePageError("slug", "/x"), "store-error"),
            (CascadeError("/x", [], {}), "store-error"),
        ],
    )
    def test_status(self, error, status):
        assert isinstance(error, PageTreeError)
        assert error.status == status
        assert error.to_status() == {"status": status, "message": str(error)}

    def test_store_error_subclasses(self):
        assert issubclass(DuplicatePageError, StoreError)
        assert issubclass(CascadeError, StoreError)


class TestMessages:
    """Errors keep the context they were raised with."""

    def test_not_found(self):
        error = PageNotFoundError("/about")
        assert error.slug == "/about"
        assert str(error) == "Page '/about' not found"

    def test_permission_denied(self):
        error = PermissionDeniedError("add-page", "/about")
        assert (error.action, error.slug) == ("add-page", "/about")

    def test_has_children(self):
        error = HasChildrenError("/about", 3)
        assert error.child_count == 3
        assert "3 child page(s)" in str(error)

    def test_cascade(self):
        error = CascadeError("/about", ["/about/a"], {"/about/b": RuntimeError("x")})
        assert error.renamed == ["/about/a"]
        assert list(error.failed) == ["/about/b"]
        assert "1 descendant(s)" in str(error)

    def test_registry_frozen(self):
        assert RegistryFrozenError("blog").name == "blog"
