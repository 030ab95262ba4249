"""Unit tests for the HTTP document API store."""

import asyncio
import json

import httpx
import pytest

from pagetree.store.base import ASCENDING, PageQuery
from pagetree.store.http import DocumentApiAuth, HttpPageStore
from pagetree.tree.errors import DuplicatePageError, StoreError
from tests.helpers import make_page


def _document(slug, rank=1):
    return make_page(slug, rank=rank).to_document()


class FakeDocumentApi:
    """Record requests and answer them from a routing table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404)
        return handler(request)


def call(api, operation):
    async def _run():
        async with HttpPageStore(
            base_url="https://docs.example.com/api",
            auth=DocumentApiAuth(token="secret"),
            transport=httpx.MockTransport(api),
        ) as store:
            return await operation(store)

    return asyncio.run(_run())


class TestFind:
    """Test cases for HttpPageStore.find."""

    def test_posts_query_and_parses_results(self):
        api = FakeDocumentApi({
            ("POST", "/api/pages/query"): lambda request: httpx.Response(
                200, json={"results": [_document("/"), _document("/about")]}
            ),
        })
        query = PageQuery(paths=["/", "/about"], sort=(("level", ASCENDING),), exclude=("areas",))
        pages = call(api, lambda store: store.find(query))

        assert [page.slug for page in pages] == ["/", "/about"]
        sent = json.loads(api.requests[0].content)
        assert sent == {"paths": ["/", "/about"], "sort": [["level", 1]], "exclude": ["areas"]}
        assert api.requests[0].headers["Authorization"] == "Bearer secret"

    def test_server_error_becomes_store_error(self):
        api = FakeDocumentApi({("POST", "/api/pages/query"): lambda request: httpx.Response(500)})
        with pytest.raises(StoreError):
            call(api, lambda store: store.find(PageQuery()))

    def test_transport_error_becomes_store_error(self):
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StoreError):
            call(unreachable, lambda store: store.find(PageQuery()))


class TestWrites:
    """Test cases for page writes."""

    def test_insert_conflict(self):
        api = FakeDocumentApi({
            ("POST", "/api/pages"): lambda request: httpx.Response(409, json={"field": "path", "value": "/about"}),
        })
        with pytest.raises(DuplicatePageError) as exc_info:
            call(api, lambda store: store.insert(make_page("/about")))
        assert exc_info.value.field == "path"

    def test_update_sends_changes(self):
        api = FakeDocumentApi({("PATCH", "/api/pages"): lambda request: httpx.Response(200, json={"ok": True})})
        call(api, lambda store: store.update("/about", {"slug": "/company", "url": "/x/company"}))
        assert json.loads(api.requests[0].content) == {"slug": "/about", "set": {"slug": "/company"}}

    def test_update_missing_page(self):
        api = FakeDocumentApi({})
        with pytest.raises(StoreError):
            call(api, lambda store: store.update("/missing", {"title": "x"}))

    def test_delete_passes_slug(self):
        api = FakeDocumentApi({("DELETE", "/api/pages"): lambda request: httpx.Response(204)})
        call(api, lambda store: store.delete("/about/team"))
        assert api.requests[0].url.params["slug"] == "/about/team"

    def test_allocate_rank(self):
        api = FakeDocumentApi({
            ("POST", "/api/pages/ranks"): lambda request: httpx.Response(200, json={"value": 4}),
        })
        assert call(api, lambda store: store.allocate_rank("/about", 3)) == 4
        assert json.loads(api.requests[0].content) == {"slug": "/about", "floor": 3}

    def test_allocate_rank_for_missing_page(self):
        with pytest.raises(StoreError):
            call(FakeDocumentApi({}), lambda store: store.allocate_rank("/missing", 0))


class TestRedirects:
    """Test cases for redirect lookups over HTTP."""

    def test_lookup_hit(self):
        api = FakeDocumentApi({
            ("GET", "/api/redirects"): lambda request: httpx.Response(200, json={"from": "/about", "to": "/company"}),
        })
        assert call(api, lambda store: store.lookup("/about")) == "/company"
        assert api.requests[0].url.params["from"] == "/about"

    def test_lookup_miss(self):
        assert call(FakeDocumentApi({}), lambda store: store.lookup("/about")) is None

    def test_upsert(self):
        api = FakeDocumentApi({("PUT", "/api/redirects"): lambda request: httpx.Response(204)})
        call(api, lambda store: store.upsert("/about", "/company"))
        assert json.loads(api.requests[0].content) == {"from": "/about", "to": "/company"}
