async def create_wiki(client, name: str, content: str = "wiki body"):
    payload = {"name": name, "description": f"About {name}", "content": content, "tag": "docs"}
    resp = await client.post("/api/wikis", json=payload)
    resp.raise_for_status()
    return resp.json()


async def create_page(client, wiki_id: str, name: str, parent_id: str = "", content: str = "page body"):
    payload = {"name": name, "parent_id": parent_id, "content": content}
    resp = await client.post(f"/api/wikis/{wiki_id}/wikipages", json=payload)
    resp.raise_for_status()
    return resp.json()


def orders(repo, wiki_id: str, parent_id: str = "") -> dict[str, int]:
    return {page["name"]: page["display_order"] for page in repo.sibling_pages(wiki_id, parent_id)}
