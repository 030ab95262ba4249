"""Shared fixtures: a small seeded page tree held in memory.

    /               Home
    /about          About     (rank 1)
    /about/team     Team      (rank 1)
    /about/history  History   (rank 2)
    /contact        Contact   (rank 2)
"""

import pytest

from pagetree.serve.permissions import PageRequest
from pagetree.site import create_site
from pagetree.store.memory import MemoryPageStore
from tests.helpers import seed_pages


@pytest.fixture
def store():
    return MemoryPageStore(pages=seed_pages())


@pytest.fixture
def site(store):
    return create_site(store)


@pytest.fixture
def request_ctx():
    return PageRequest(slug="/", user="editor")
