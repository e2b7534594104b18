"""
Shared pytest fixtures for nebula tests.

Everything runs against an in-memory key-value store with a controllable
clock and deterministic ids.
"""

import itertools

import pytest
from fastapi.testclient import TestClient

from nebula.config import Settings
from nebula.kv import MemoryKV
from nebula.main import create_app
from nebula.models import Category, Link, LinkTree
from nebula.session import SessionCodec
from nebula.storage import LinkStore

SECRET = "test-secret"
START_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float):
        self.now += int(seconds * 1000)


def make_tree(spec) -> LinkTree:
    """Build a tree from {category_id: [link_id, ...]} (insertion ordered)."""
    return LinkTree(
        categories=[
            Category(
                id=cid,
                name=f"Category {cid}",
                links=[
                    Link(id=lid, title=f"Link {lid}", url=f"https://{lid}.example.com/", icon="")
                    for lid in link_ids
                ],
            )
            for cid, link_ids in spec.items()
        ]
    )


def layout(tree: LinkTree):
    return {c.id: [l.id for l in c.links] for c in tree.categories}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ids():
    counter = itertools.count(1)
    return lambda: f"id{next(counter)}"


@pytest.fixture
def kv():
    return MemoryKV()


@pytest.fixture
def store(kv, ids):
    return LinkStore(kv, id_factory=ids)


@pytest.fixture
def codec(clock):
    return SessionCodec(SECRET, clock=clock)


@pytest.fixture
def settings(tmp_path):
    return Settings(session_secret=SECRET, data_dir=tmp_path, cookie_secure=False)


@pytest.fixture
def client(settings, kv, clock):
    app = create_app(settings, kv=kv, clock=clock)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def logged_in(client):
    """Client past the forced password change, with a valid session cookie."""
    resp = client.post("/login", data={"user": "admin", "pass": "admin123456"}, follow_redirects=False)
    assert resp.status_code == 302
    resp = client.post(
        "/api/change-password", json={"oldPass": "admin123456", "newPass": "correct horse"}
    )
    assert resp.status_code == 200
    return client
