from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from server.src.modules.wiki_config import WIKI_ROLES, get_wiki_settings
from server.src.modules.wiki_errors import InvalidParameter


APP_TO_WIKI_ROLE = {"user": "viewer", "moderator": "editor", "admin": "admin"}
ROOT_PARENT_ID = ""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_utc(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value or "")


def normalize_name(value: Any, field: str = "name") -> str:
    raw = re.sub(r"\s+", " ", str(value or "")).strip()
    if not raw:
        raise InvalidParameter(field, f"{field} is required")
    return raw[:200]


def normalize_text(value: Any, limit: int = 1000) -> str:
    return str(value or "").strip()[:limit]


def normalize_tag(value: Any) -> str:
    """Comma separated tag list, trimmed and de-duplicated case-insensitively."""
    if value is None:
        return ""
    parts = [re.sub(r"\s+", " ", part).strip() for part in str(value).split(",")]
    seen: set[str] = set()
    tags: list[str] = []
    for part in parts:
        key = part.lower()
        if not part or key in seen:
            continue
        seen.add(key)
        tags.append(part[:64])
    return ",".join(tags[:40])


def normalize_parent_id(value: Any) -> str:
    return str(value or "").strip()


def sanitize_content(value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidParameter("content", "content must be a string")
    if len(value.encode("utf-8")) > get_wiki_settings().max_content_bytes:
        raise InvalidParameter("content", "content is too large")
    return value


def normalize_wiki_role(value: Any) -> str:
    role = str(value or "").strip().lower()
    return role if role in WIKI_ROLES else "viewer"


def resolve_wiki_role(app_role: str, user_doc: dict[str, Any] | None = None) -> str:
    mapped = APP_TO_WIKI_ROLE.get(str(app_role or "").strip().lower(), "viewer")
    if isinstance(user_doc, dict):
        override = str(user_doc.get("wiki_role") or "").strip().lower()
        if override in WIKI_ROLES:
            return override
    return mapped


def can_edit_wiki(role: str) -> bool:
    return normalize_wiki_role(role) in get_wiki_settings().edit_roles


def page_url(page: dict[str, Any]) -> str:
    wiki_id = str(page.get("wiki_id") or "").strip()
    page_id = str(page.get("id") or "").strip()
    return "/wiki/" + (wiki_id + "/" if wiki_id else "") + page_id
