from __future__ import annotations

from typing import Any, Iterable

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from db_mongo import get_db, is_mock_uri, next_id_str
from settings import settings
from server.src.modules.wiki_config import get_wiki_settings
from server.src.modules.wiki_errors import Conflict
from server.src.modules.wiki_helpers import utc_now


WIKIS_COL = "wikis"
WIKI_PAGES_COL = "wiki_pages"
WIKI_TEXTS_COL = "wiki_texts"
WIKI_ID_SEQUENCE = "wiki_ids"


def _is_mock() -> bool:
    return is_mock_uri(settings.mongodb_uri)


def _collection_exists(db, name: str) -> bool:
    try:
        items = list(db.list_collection_names())
        return name in items
    except Exception:
        return False


def _validator_for(name: str) -> dict[str, Any]:
    if name == WIKIS_COL:
        return {
            "$jsonSchema": {
                "bsonType": "object",
                "required": ["id", "name", "content_id", "version", "created_at", "updated_at"],
                "properties": {
                    "id": {"bsonType": "string"},
                    "name": {"bsonType": "string"},
                    "description": {"bsonType": ["string", "null"]},
                    "tag": {"bsonType": ["string", "null"]},
                    "content_id": {"bsonType": "string"},
                    "cover_id": {"bsonType": ["string", "null"]},
                    "version": {"bsonType": "int"},
                    "created_at": {"bsonType": ["date", "string"]},
                    "updated_at": {"bsonType": ["date", "string"]},
                },
            }
        }
    if name == WIKI_PAGES_COL:
        return {
            "$jsonSchema": {
                "bsonType": "object",
                "required": ["id", "wiki_id", "parent_id", "content_id", "name", "display_order", "version"],
                "properties": {
                    "id": {"bsonType": "string"},
                    "wiki_id": {"bsonType": "string"},
                    "parent_id": {"bsonType": "string"},
                    "content_id": {"bsonType": "string"},
                    "name": {"bsonType": "string"},
                    "display_order": {"bsonType": "int", "minimum": 0},
                    "version": {"bsonType": "int"},
                    "created_at": {"bsonType": ["date", "string"]},
                    "updated_at": {"bsonType": ["date", "string"]},
                },
            }
        }
    if name == WIKI_TEXTS_COL:
        return {
            "$jsonSchema": {
                "bsonType": "object",
                "required": ["id", "ref_id", "value"],
                "properties": {
                    "id": {"bsonType": "string"},
                    "ref_id": {"bsonType": "string"},
                    "value": {"bsonType": "string"},
                    "created_at": {"bsonType": ["date", "string"]},
                },
            }
        }
    return {}


def _ensure_collection_with_validator(db, name: str) -> None:
    validator = _validator_for(name)
    if _collection_exists(db, name):
        if _is_mock() or not validator:
            return
        db.command({"collMod": name, "validator": validator, "validationLevel": "moderate"})
        return
    if _is_mock() or not validator:
        db.create_collection(name)
    else:
        db.create_collection(name, validator=validator, validationLevel="moderate")


def ensure_wiki_collections_and_indexes() -> None:
    cfg = get_wiki_settings()
    if not cfg.enabled:
        return
    db = get_db()
    for name in (WIKIS_COL, WIKI_PAGES_COL, WIKI_TEXTS_COL):
        _ensure_collection_with_validator(db, name)

    db[WIKIS_COL].create_index([("id", ASCENDING)], unique=True, name="ux_wiki_id")
    db[WIKIS_COL].create_index([("name", ASCENDING)], name="ix_wiki_name")

    db[WIKI_PAGES_COL].create_index([("id", ASCENDING)], unique=True, name="ux_wiki_page_id")
    db[WIKI_PAGES_COL].create_index(
        [("wiki_id", ASCENDING), ("parent_id", ASCENDING), ("display_order", ASCENDING)],
        name="ix_wiki_page_group_order",
    )
    db[WIKI_PAGES_COL].create_index([("parent_id", ASCENDING)], name="ix_wiki_page_parent")

    db[WIKI_TEXTS_COL].create_index([("id", ASCENDING)], unique=True, name="ux_wiki_text_id")
    db[WIKI_TEXTS_COL].create_index([("ref_id", ASCENDING), ("created_at", DESCENDING)], name="ix_wiki_text_ref")


class RecordStore:
    """Record-level access to one collection, keyed by the string ``id`` field.

    Records come back as plain dicts without Mongo's ``_id``. Writes touch a
    single document each; there is no multi-record transaction.
    """

    def __init__(self, collection: Collection, entity: str, versioned: bool = False):
        self.collection = collection
        self.entity = entity
        self.versioned = versioned

    @staticmethod
    def _doc_without_mongo_id(doc: dict[str, Any] | None) -> dict[str, Any]:
        if not isinstance(doc, dict):
            return {}
        out = dict(doc)
        out.pop("_id", None)
        return out

    def find(self, record_id: str) -> dict[str, Any]:
        clean_id = str(record_id or "").strip()
        if not clean_id:
            return {}
        return self._doc_without_mongo_id(self.collection.find_one({"id": clean_id}, {"_id": 0}))

    def find_all(
        self,
        where: dict[str, Any] | None = None,
        sort: Iterable[tuple[str, int]] | None = None,
    ) -> list[dict[str, Any]]:
        cursor = self.collection.find(dict(where or {}), {"_id": 0})
        if sort:
            cursor = cursor.sort(list(sort))
        return [self._doc_without_mongo_id(row) for row in cursor]

    def create(self, fields: dict[str, Any]) -> dict[str, Any]:
        now = utc_now()
        doc = dict(fields)
        doc.setdefault("created_at", now)
        doc.setdefault("updated_at", now)
        if self.versioned:
            doc.setdefault("version", 1)
        self.collection.insert_one(doc)
        return self._doc_without_mongo_id(doc)

    def update(self, record_id: str, fields: dict[str, Any], version: int | None = None) -> dict[str, Any]:
        """Apply ``fields`` to one record and return it as stored afterwards.

        With ``version`` the write only lands if the stored version still
        matches; a stale version raises Conflict. Versioned stores bump the
        version on every write.
        """
        clean_id = str(record_id or "").strip()
        query: dict[str, Any] = {"id": clean_id}
        update_doc: dict[str, Any] = {"$set": {**fields, "updated_at": utc_now()}}
        if version is not None:
            query["version"] = int(version)
        if self.versioned:
            update_doc["$inc"] = {"version": 1}
        result = self.collection.update_one(query, update_doc)
        if not result.matched_count:
            if version is not None and self.find(clean_id):
                raise Conflict(self.entity, f"{self.entity} was modified by another request.")
            return {}
        return self.find(clean_id)

    def destroy(self, record_id: str) -> bool:
        result = self.collection.delete_one({"id": str(record_id or "").strip()})
        return bool(result.deleted_count)

    def destroy_all(self, where: dict[str, Any]) -> int:
        result = self.collection.delete_many(dict(where))
        return int(result.deleted_count)

    def count(self, where: dict[str, Any] | None = None) -> int:
        return int(self.collection.count_documents(dict(where or {})))

    def max(self, field: str, where: dict[str, Any] | None = None) -> Any:
        row = self.collection.find_one(
            {**dict(where or {}), field: {"$exists": True}},
            {"_id": 0, field: 1},
            sort=[(field, DESCENDING)],
        )
        if not row:
            return None
        return row.get(field)


class WikiMongoRepo:
    def __init__(self, db: Database | None = None):
        self.db = db if db is not None else get_db()
        self.wikis = RecordStore(self.db[WIKIS_COL], "Wiki", versioned=True)
        self.pages = RecordStore(self.db[WIKI_PAGES_COL], "WikiPage", versioned=True)
        self.texts = RecordStore(self.db[WIKI_TEXTS_COL], "Text")

    def next_id(self) -> str:
        return next_id_str(WIKI_ID_SEQUENCE)

    def pages_of_wiki(self, wiki_id: str) -> list[dict[str, Any]]:
        return self.pages.find_all({"wiki_id": str(wiki_id or "").strip()})

    def sibling_pages(self, wiki_id: str, parent_id: str) -> list[dict[str, Any]]:
        return self.pages.find_all(
            {"wiki_id": str(wiki_id or "").strip(), "parent_id": str(parent_id or "")},
            sort=[("display_order", ASCENDING), ("id", ASCENDING)],
        )

    def set_display_order(self, page_id: str, display_order: int) -> None:
        self.pages.collection.update_one(
            {"id": str(page_id or "").strip()},
            {"$set": {"display_order": int(display_order)}},
        )

    def create_text(self, ref_id: str, value: str, text_id: str | None = None) -> dict[str, Any]:
        return self.texts.create(
            {
                "id": text_id or self.next_id(),
                "ref_id": str(ref_id or "").strip(),
                "value": str(value or ""),
            }
        )
