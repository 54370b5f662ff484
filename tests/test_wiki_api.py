import hashlib

import pytest

from db_mongo import get_db
from tests.conftest import wiki_client
from tests.helpers import create_page, create_wiki


@pytest.mark.asyncio
async def test_create_and_get_wiki():
    async with wiki_client() as client:
        created = await create_wiki(client, "Engineering", content="# Eng")
        assert created["name"] == "Engineering"
        assert created["content"] == "# Eng"
        assert created["tag"] == "docs"

        read = await client.get(f"/api/wikis/{created['id']}")
        assert read.status_code == 200
        assert read.json()["content"] == "# Eng"

        listed = await client.get("/api/wikis")
        assert listed.status_code == 200
        assert [w["id"] for w in listed.json()["wikis"]] == [created["id"]]


@pytest.mark.asyncio
async def test_unknown_ids_are_not_found():
    async with wiki_client() as client:
        wiki = await client.get("/api/wikis/nope")
        assert wiki.status_code == 404
        assert wiki.json()["error"] == "entity:notfound"
        assert wiki.json()["data"] == "Wiki"

        page = await client.get("/api/wikis/wikipages/nope")
        assert page.status_code == 404
        assert page.json()["data"] == "WikiPage"


@pytest.mark.asyncio
async def test_page_round_trip_and_update():
    async with wiki_client() as client:
        wiki = await create_wiki(client, "W")
        page = await create_page(client, wiki["id"], "Intro", content="first draft")
        assert page["display_order"] == 0

        read = await client.get(f"/api/wikis/wikipages/{page['id']}")
        assert read.status_code == 200
        assert read.json()["content"] == "first draft"

        updated = await client.post(f"/api/wikis/wikipages/{page['id']}", json={"content": "second draft"})
        assert updated.status_code == 200
        assert updated.json()["content"] == "second draft"
        assert updated.json()["name"] == "Intro"

        stale = await client.post(
            f"/api/wikis/wikipages/{page['id']}",
            json={"name": "Late", "version": page["version"]},
        )
        assert stale.status_code == 409
        assert stale.json()["error"] == "entity:conflict"


@pytest.mark.asyncio
async def test_tree_endpoint_nested_and_flat():
    async with wiki_client() as client:
        wiki = await create_wiki(client, "W")
        p1 = await create_page(client, wiki["id"], "P1")
        p2 = await create_page(client, wiki["id"], "P2")
        p3 = await create_page(client, wiki["id"], "P3", parent_id=p1["id"])

        tree = await client.get(f"/api/wikis/{wiki['id']}/wikipages")
        assert tree.status_code == 200
        children = tree.json()["children"]
        assert [c["id"] for c in children] == [p1["id"], p2["id"]]
        assert children[0]["children"][0]["id"] == p3["id"]

        flat = await client.get(f"/api/wikis/{wiki['id']}/wikipages", params={"flatten": "true"})
        assert flat.status_code == 200
        rows = flat.json()["children"]
        assert [(r["name"], r["depth"]) for r in rows] == [("P1", 0), ("P3", 1), ("P2", 0)]


@pytest.mark.asyncio
async def test_move_endpoint():
    async with wiki_client() as client:
        wiki = await create_wiki(client, "W")
        a = await create_page(client, wiki["id"], "A")
        b = await create_page(client, wiki["id"], "B")
        c = await create_page(client, wiki["id"], "C")

        moved = await client.post(f"/api/wikis/wikipages/{c['id']}/move", json={"parent_id": "", "index": 0})
        assert moved.status_code == 200
        assert moved.json()["display_order"] == 0

        tree = await client.get(f"/api/wikis/{wiki['id']}/wikipages")
        assert [(n["name"], n["display_order"]) for n in tree.json()["children"]] == [("C", 0), ("A", 1), ("B", 2)]

        too_far = await client.post(f"/api/wikis/wikipages/{a['id']}/move", json={"parent_id": "", "index": 5})
        assert too_far.status_code == 400
        assert too_far.json()["data"] == "index"

        nested = await client.post(f"/api/wikis/wikipages/{b['id']}/move", json={"parent_id": a["id"], "index": 0})
        assert nested.status_code == 200
        cyclic = await client.post(f"/api/wikis/wikipages/{a['id']}/move", json={"parent_id": b["id"], "index": 0})
        assert cyclic.status_code == 409


@pytest.mark.asyncio
async def test_delete_rules():
    async with wiki_client() as client:
        wiki = await create_wiki(client, "W")
        parent = await create_page(client, wiki["id"], "Parent")
        child = await create_page(client, wiki["id"], "Child", parent_id=parent["id"])

        assert (await client.post(f"/api/wikis/wikipages/{parent['id']}/delete")).status_code == 409
        assert (await client.post(f"/api/wikis/{wiki['id']}/delete")).status_code == 409

        deleted = await client.post(f"/api/wikis/wikipages/{child['id']}/delete")
        assert deleted.status_code == 200
        assert deleted.json() == {"id": child["id"]}
        assert (await client.post(f"/api/wikis/wikipages/{parent['id']}/delete")).status_code == 200

        removed = await client.post(f"/api/wikis/{wiki['id']}/delete")
        assert removed.status_code == 200
        assert (await client.get(f"/api/wikis/{wiki['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_navigation_menus():
    async with wiki_client() as client:
        beta = await create_wiki(client, "Beta")
        alpha = await create_wiki(client, "Alpha")
        menus = await client.get("/api/wikis/navigation")
        assert menus.status_code == 200
        assert menus.json() == [
            {"name": "Alpha", "url": f"/wiki/{alpha['id']}"},
            {"name": "Beta", "url": f"/wiki/{beta['id']}"},
        ]


@pytest.mark.asyncio
async def test_search_reflects_page_changes():
    async with wiki_client() as client:
        wiki = await create_wiki(client, "W")
        page = await create_page(client, wiki["id"], "Deploy", content="kubernetes rollout notes")

        found = await client.get("/api/wikis/search", params={"q": "Kubernetes"})
        assert found.status_code == 200
        assert [row["id"] for row in found.json()] == [page["id"]]
        assert found.json()[0]["url"] == f"/wiki/{wiki['id']}/{page['id']}"

        await client.post(f"/api/wikis/wikipages/{page['id']}/delete")
        gone = await client.get("/api/wikis/search", params={"q": "kubernetes"})
        assert gone.json() == []


@pytest.mark.asyncio
async def test_reads_require_auth():
    async with wiki_client(auth_token=None) as client:
        response = await client.get("/api/wikis")
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_viewer_cannot_write():
    async with wiki_client(role="user") as client:
        listed = await client.get("/api/wikis")
        assert listed.status_code == 200
        created = await client.post("/api/wikis", json={"name": "W", "description": "", "content": "x"})
        assert created.status_code == 403


@pytest.mark.asyncio
async def test_wiki_role_override_grants_edit():
    async with wiki_client(role="user", wiki_role="editor") as client:
        created = await client.post("/api/wikis", json={"name": "W", "description": "", "content": "x"})
        assert created.status_code == 200


@pytest.mark.asyncio
async def test_request_validation():
    async with wiki_client() as client:
        missing = await client.post("/api/wikis", json={"name": "W"})
        assert missing.status_code == 422
        wiki = await create_wiki(client, "W")
        blank = await client.post(f"/api/wikis/{wiki['id']}/wikipages", json={"name": "   ", "content": "x"})
        assert blank.status_code == 400
        assert blank.json()["data"] == "name"


@pytest.mark.asyncio
async def test_login_token_opens_wiki_routes():
    get_db()["users"].insert_one(
        {"username": "ana", "password_hash": hashlib.sha256(b"s3cret").hexdigest(), "role": "moderator"}
    )
    async with wiki_client(auth_token=None) as client:
        bad = await client.post("/auth/login", json={"username": "ana", "password": "nope"})
        assert bad.status_code == 401

        login = await client.post("/auth/login", json={"username": "ana", "password": "s3cret"})
        assert login.status_code == 200
        token = login.json()["token"]
        headers = {"Authorization": f"Bearer {token}"}

        me = await client.get("/auth/me", headers=headers)
        assert me.json()["role"] == "moderator"
        created = await client.post("/api/wikis", json={"name": "W", "description": "", "content": "x"}, headers=headers)
        assert created.status_code == 200

        await client.post("/auth/logout", headers=headers)
        assert (await client.get("/api/wikis", headers=headers)).status_code == 401
