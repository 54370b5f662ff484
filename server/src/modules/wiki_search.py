from __future__ import annotations

import re
from typing import Any, Protocol

from pymongo import ASCENDING
from pymongo.collection import Collection

from server.src.modules.wiki_helpers import iso_utc, page_url, utc_now

WIKI_SEARCH_COL = "wiki_search_index"


class SearchSink(Protocol):
    def index(self, document: dict[str, Any]) -> None: ...

    def unindex(self, doc_id: str) -> None: ...


class MongoSearchSink:
    """Keeps one flattened search document per wiki or wiki page."""

    def __init__(self, collection: Collection):
        self.collection = collection
        self.collection.create_index([("id", ASCENDING)], unique=True, name="ux_wiki_search_id")

    def index(self, document: dict[str, Any]) -> None:
        doc = dict(document)
        doc["indexed_at"] = utc_now()
        self.collection.replace_one({"id": doc["id"]}, doc, upsert=True)

    def unindex(self, doc_id: str) -> None:
        self.collection.delete_one({"id": str(doc_id or "").strip()})

    def search(self, query: str, limit: int = 20) -> list[dict[str, Any]]:
        clean = str(query or "").strip()
        if not clean:
            return []
        rx = {"$regex": re.escape(clean), "$options": "i"}
        rows = self.collection.find(
            {"$or": [{"name": rx}, {"description": rx}, {"content": rx}]},
            {"_id": 0, "id": 1, "type": 1, "name": 1, "description": 1, "url": 1, "updated_at": 1},
        ).limit(int(limit))
        return list(rows)


def search_document(record: dict[str, Any]) -> dict[str, Any]:
    """Index document for a Wiki or WikiPage record that carries ``content``."""
    if record.get("wiki_id"):
        url = page_url(record)
    else:
        url = "/wiki/" + str(record.get("id") or "")
    return {
        "type": "wiki",
        "id": str(record.get("id") or ""),
        "name": str(record.get("name") or ""),
        "description": str(record.get("description") or ""),
        "content": str(record.get("content") or ""),
        "created_at": iso_utc(record.get("created_at")),
        "updated_at": iso_utc(record.get("updated_at")),
        "url": url,
        "upvotes": 0,
    }
