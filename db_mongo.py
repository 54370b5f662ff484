from functools import lru_cache
from urllib.parse import urlparse
from typing import Dict, Tuple
from pymongo import MongoClient, ReturnDocument
from pymongo.database import Database
from settings import settings

# token -> (username, role)
SESSIONS: Dict[str, Tuple[str, str]] = {}

def is_mock_uri(uri: str | None) -> bool:
    return str(uri or "").startswith("mongomock://")

@lru_cache
def get_client() -> MongoClient:
    uri = settings.mongodb_uri
    if not uri or "xxxx.mongodb.net" in uri or "example.com" in uri:
        raise RuntimeError("MONGODB_URI is missing or still a placeholder.")
    if is_mock_uri(uri):
        import mongomock
        return mongomock.MongoClient()
    return MongoClient(uri)

def _db_name_from_uri_fallback() -> str:
    if settings.db_name:
        return settings.db_name
    u = urlparse(settings.mongodb_uri or "")
    return (u.path or "").lstrip("/") or "wiki"

def get_db() -> Database:
    return get_client()[_db_name_from_uri_fallback()]

def get_col(name: str):
    return get_db()[name]

def ensure_indexes() -> None:
    db = get_db()
    db.users.create_index("username", unique=True)

def next_id_str(sequence_name: str, padding: int = 12) -> str:
    doc = get_col("counters").find_one_and_update(
        {"_id": sequence_name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return str(doc["seq"]).zfill(padding)
