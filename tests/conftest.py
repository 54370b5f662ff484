import os
from contextlib import asynccontextmanager
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("MONGODB_URI", "mongomock://localhost/wiki_test")
os.environ.setdefault("WIKI_ENABLED", "true")
os.environ.setdefault("WIKI_REQUIRE_AUTH", "true")
os.environ.setdefault("WIKI_STRICT_TREE", "false")

from db_mongo import SESSIONS, get_db
from main import app
from server.src.modules.wiki_repo import WikiMongoRepo
from server.src.modules import wiki_tasks
from server.src.modules.wiki_service import WikiService


class RecordingSink:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.indexed: list[dict[str, Any]] = []
        self.unindexed: list[str] = []

    def index(self, document):
        if self.fail:
            raise RuntimeError("search backend down")
        self.indexed.append(document)

    def unindex(self, doc_id):
        if self.fail:
            raise RuntimeError("search backend down")
        self.unindexed.append(doc_id)


@pytest.fixture(autouse=True)
def clean_state():
    db = get_db()
    for name in db.list_collection_names():
        db.drop_collection(name)
    SESSIONS.clear()
    yield
    SESSIONS.clear()


@pytest.fixture
def repo():
    return WikiMongoRepo(get_db())


@pytest.fixture
def sink(monkeypatch):
    recording = RecordingSink()
    monkeypatch.setattr(wiki_tasks, "get_search_sink", lambda: recording)
    return recording


@pytest.fixture
def indexer(sink):
    return wiki_tasks.SearchIndexer()


@pytest.fixture
def service(repo, indexer):
    return WikiService(repo, indexer=indexer, strict_tree=False)


@asynccontextmanager
async def wiki_client(
    auth_token: str | None = "test-token",
    role: str = "admin",
    username: str = "tester",
    wiki_role: str | None = None,
):
    headers: dict[str, str] = {}
    if auth_token:
        SESSIONS[auth_token] = (username, role)
        headers["Authorization"] = f"Bearer {auth_token}"
    if wiki_role:
        get_db()["users"].update_one(
            {"username": username},
            {"$set": {"username": username, "wiki_role": wiki_role}},
            upsert=True,
        )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=headers) as client:
        yield client
