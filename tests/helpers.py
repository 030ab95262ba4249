"""Helpers shared by the test modules."""

from pagetree.tree.models import Page
from pagetree.tree.paths import level_of


def make_page(slug, rank=1, title=None, path=None, **kwargs):
    """Build a page whose path follows its slug unless told otherwise."""
    path = path or slug
    return Page(
        slug=slug,
        path=path,
        level=level_of(path),
        rank=rank,
        title=title or slug.rsplit("/", 1)[-1].title() or "Home",
        **kwargs,
    )


def seed_pages():
    return [
        make_page("/", rank=0, title="Home", type="home"),
        make_page("/about", rank=1, title="About", areas={"body": "<p>About us</p>"}),
        make_page("/about/team", rank=1, title="Team"),
        make_page("/about/history", rank=2, title="History"),
        make_page("/contact", rank=2, title="Contact"),
    ]


def tree_shape(store):
    """Return the structural fields of every stored page as a set."""
    return {
        (doc["slug"], doc["path"], doc["level"], doc["rank"])
        for doc in store.snapshot()["pages"]
    }


def slugs(nodes):
    return [node.page.slug for node in nodes]
