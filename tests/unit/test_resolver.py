"""Unit tests for the page request resolver."""

import asyncio

import pytest

from pagetree.serve.permissions import VIEW_PAGE, Authorizer, EditorAuthorizer, PageRequest
from pagetree.serve.resolver import Outcome, Renderer, ServeOptions, locate_template, render
from pagetree.site import create_site
from pagetree.tree.models import Page
from pagetree.tree.types import PageType, build_registry
from tests.helpers import slugs


def resolve(site, slug, user=None):
    return asyncio.run(site.resolver.resolve(PageRequest(slug=slug, user=user)))


class DenyViewAuthorizer(Authorizer):
    async def check(self, request, action, page):
        return action != VIEW_PAGE


class RecordingRenderer(Renderer):
    def __init__(self):
        self.calls = []

    def render(self, template, context):
        self.calls.append((template, context))
        return f"<html>{template}</html>"


class TestExactMatch:
    """Requests that hit a page exactly."""

    def test_renders_page_with_relatives(self, site):
        response = resolve(site, "/about")
        assert response.outcome is Outcome.PAGE
        assert response.status_code == 200
        assert response.context["page"].slug == "/about"
        assert [page.slug for page in response.context["ancestors"]] == ["/"]
        assert slugs(response.context["children"]) == ["/about/team", "/about/history"]
        assert response.context["remainder"] == ""

    def test_unregistered_type_uses_default_template(self, site):
        """The seeded home page has type 'home', which is not registered."""
        response = resolve(site, "/")
        assert response.template == "views/default.html"

    def test_registered_type_uses_type_path(self, store):
        registry = build_registry(types=[PageType(name="default"), PageType(name="home")])
        options = ServeOptions(type_paths={"home": "themes/site"})
        site = create_site(store, registry=registry, options=options)
        assert resolve(site, "/").template == "themes/site/home.html"

    def test_adds_leading_slash(self, site):
        response = resolve(site, "about")
        assert response.context["slug"] == "/about"
        assert response.outcome is Outcome.PAGE

    def test_children_depth_follows_options(self, store):
        site = create_site(store, options=ServeOptions(depth=2))
        about, _contact = resolve(site, "/").context["children"]
        assert slugs(about.children) == ["/about/team", "/about/history"]


class TestPermissions:
    """View and edit permission handling."""

    def test_anonymous_denied_needs_login(self, store):
        site = create_site(store, authorizer=DenyViewAuthorizer())
        response = resolve(site, "/about")
        assert response.outcome is Outcome.LOGIN_REQUIRED
        assert response.status_code == 401
        assert response.context["page"] is None
        assert response.template == "views/loginRequired.html"

    def test_signed_in_denied_is_insufficient(self, store):
        site = create_site(store, authorizer=DenyViewAuthorizer())
        response = resolve(site, "/about", user="bob")
        assert response.outcome is Outcome.INSUFFICIENT
        assert response.status_code == 403
        assert response.context["page"] is None

    def test_edit_flag_for_editors_only(self, store):
        site = create_site(store, authorizer=EditorAuthorizer(["alice"]))
        assert resolve(site, "/about", user="alice").context["edit"] is True
        assert resolve(site, "/about").context["edit"] is False
        assert resolve(site, "/about").outcome is Outcome.PAGE


class TestPartialMatch:
    """Requests below an existing page."""

    def test_best_page_without_page_is_not_found(self, site):
        response = resolve(site, "/about/team/alice")
        assert response.outcome is Outcome.NOT_FOUND
        assert response.status_code == 404
        assert response.context["page"] is None
        assert response.context["remainder"] == "alice"
        assert response.template == "views/notfound.html"

    def test_loader_can_accept_partial_match(self, store):
        async def accept_profiles(context):
            if context.best_page is not None and context.remainder:
                context.page = context.best_page
                context.template_type = "profile"
            return {"profile": context.remainder}

        site = create_site(store, options=ServeOptions(load=[accept_profiles]))
        response = resolve(site, "/about/team/alice")
        assert response.outcome is Outcome.PAGE
        assert response.context["page"].slug == "/about/team"
        assert response.context["profile"] == "alice"
        assert response.template == "views/profile.html"


class TestLoaders:
    """Declarative and procedural load steps."""

    def test_slug_loaders_expose_pages_or_placeholders(self, store):
        site = create_site(store, options=ServeOptions(load=["/contact", "/global"]))
        context = resolve(site, "/about").context
        assert context["/contact"].title == "Contact"
        assert context["/global"] == {"areas": {}}

    def test_loaders_run_concurrently(self, store):
        """Each loader waits for the other, which only works if both run at once."""
        first_started = asyncio.Event()
        second_started = asyncio.Event()

        async def first(context):
            first_started.set()
            await asyncio.wait_for(second_started.wait(), timeout=1)
            return {"first": True}

        async def second(context):
            second_started.set()
            await asyncio.wait_for(first_started.wait(), timeout=1)
            return {"second": True}

        site = create_site(store, options=ServeOptions(load=[first, second]))
        context = resolve(site, "/about").context
        assert context["first"] is True
        assert context["second"] is True

    def test_loader_failure_is_a_server_error(self, store):
        async def broken(context):
            raise RuntimeError("database on fire")

        site = create_site(store, options=ServeOptions(load=[broken]))
        response = resolve(site, "/about")
        assert response.outcome is Outcome.SERVER_ERROR
        assert response.status_code == 500
        assert response.context["page"] is None
        assert isinstance(response.error, RuntimeError)

    def test_failure_cancels_the_other_loaders(self, store):
        """A failed loader stops its siblings before the response is built."""
        cancelled = []

        async def slow(context):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append("slow")
                raise
            return {"slow": True}

        async def broken(context):
            await asyncio.sleep(0)
            raise RuntimeError("database on fire")

        site = create_site(store, options=ServeOptions(load=[slow, broken]))

        async def _resolve():
            response = await site.resolver.resolve(PageRequest(slug="/about"))
            return response, list(cancelled)

        response, seen = asyncio.run(_resolve())
        assert response.outcome is Outcome.SERVER_ERROR
        assert seen == ["slow"]

    def test_extras_never_replace_fixed_keys(self, store):
        async def sneaky(context):
            return {"page": "not a page", "sidebar": "links"}

        site = create_site(store, options=ServeOptions(load=[sneaky]))
        context = resolve(site, "/about").context
        assert context["page"].slug == "/about"
        assert context["sidebar"] == "links"

    def test_explicit_template_wins(self, store):
        async def override(context):
            context.template = "special/landing.html"

        site = create_site(store, options=ServeOptions(load=[override]))
        assert resolve(site, "/nowhere/at/all").template == "special/landing.html"


class TestMissingPages:
    """Redirects and not-found handling."""

    def test_redirects_renamed_page(self, site):
        asyncio.run(site.mutations.rename("/about", "Company", "/company", None, None, PageRequest(user="e")))
        response = resolve(site, "/about")
        assert response.outcome is Outcome.REDIRECT
        assert response.status_code == 302
        assert response.location == "/company"

    def test_redirect_location_uses_mount_root(self, store):
        site = create_site(store, options=ServeOptions(root="/site"))
        asyncio.run(site.mutations.rename("/about", "Company", "/company", None, None, PageRequest(user="e")))
        assert resolve(site, "/about").location == "/site/company"

    def test_cascaded_descendants_are_not_redirected(self, site):
        """After renaming /about, the old /about/team address is simply gone."""
        asyncio.run(site.mutations.rename("/about", "Company", "/company", None, None, PageRequest(user="e")))
        response = resolve(site, "/about/team")
        assert response.outcome is Outcome.NOT_FOUND
        assert response.location is None
        assert response.context["remainder"] == "about/team"
        assert resolve(site, "/company/team").outcome is Outcome.PAGE

    def test_notfound_handler_can_synthesize_page(self, store):
        async def wiki(context):
            context.page = Page(slug=context.slug, path=context.slug, level=1, rank=0, title="New")

        site = create_site(store, options=ServeOptions(notfound=wiki))
        response = resolve(site, "/draft")
        assert response.outcome is Outcome.PAGE
        assert response.context["page"].title == "New"
        assert response.template == "views/default.html"

    def test_redirect_checked_before_notfound_handler(self, store):
        calls = []

        async def wiki(context):
            calls.append(context.slug)

        site = create_site(store, options=ServeOptions(notfound=wiki))
        asyncio.run(site.mutations.rename("/about", "Company", "/company", None, None, PageRequest(user="e")))
        assert resolve(site, "/about").outcome is Outcome.REDIRECT
        assert calls == []


class TestRendering:
    """Template location and the renderer hand-off."""

    def test_render_passes_template_and_context(self, site):
        renderer = RecordingRenderer()
        body = render(resolve(site, "/contact"), renderer)
        assert body == "<html>views/default.html</html>"
        template, context = renderer.calls[0]
        assert context["page"].slug == "/contact"

    def test_render_refuses_redirects(self, site):
        asyncio.run(site.mutations.rename("/about", "Company", "/company", None, None, PageRequest(user="e")))
        with pytest.raises(ValueError):
            render(resolve(site, "/about"), RecordingRenderer())

    def test_locate_template_precedence(self):
        options = ServeOptions(template_path="views/", type_paths={"blog": "blog/views"})
        assert locate_template("page", options) == "views/page.html"
        assert locate_template("blog", options) == "blog/views/blog.html"
        assert locate_template("blog", options, "x/y.html") == "x/y.html"
