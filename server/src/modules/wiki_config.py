import os
from dataclasses import dataclass
from functools import lru_cache


WIKI_ROLES = ("viewer", "editor", "admin")


def _truthy(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    raw = str(value).strip().lower()
    return raw in {"1", "true", "yes", "on"}


def _csv_roles(raw: str | None, fallback: tuple[str, ...]) -> tuple[str, ...]:
    if raw is None:
        return fallback
    parsed = tuple(
        role
        for role in [str(part).strip().lower() for part in str(raw).split(",")]
        if role
    )
    if not parsed:
        return fallback
    return parsed


@dataclass(frozen=True)
class WikiSettings:
    enabled: bool
    require_auth: bool
    strict_tree: bool
    index_enabled: bool
    max_content_bytes: int
    edit_roles: tuple[str, ...]


@lru_cache
def get_wiki_settings() -> WikiSettings:
    max_content_bytes_raw = str(os.getenv("WIKI_MAX_CONTENT_BYTES") or "200000").strip()
    try:
        max_content_bytes = max(1000, int(max_content_bytes_raw))
    except ValueError:
        max_content_bytes = 200000
    return WikiSettings(
        enabled=_truthy(os.getenv("WIKI_ENABLED"), default=True),
        require_auth=_truthy(os.getenv("WIKI_REQUIRE_AUTH"), default=True),
        strict_tree=_truthy(os.getenv("WIKI_STRICT_TREE"), default=False),
        index_enabled=_truthy(os.getenv("WIKI_INDEX_ENABLED"), default=True),
        max_content_bytes=max_content_bytes,
        edit_roles=_csv_roles(os.getenv("WIKI_EDIT_ROLES"), ("editor", "admin")),
    )


@dataclass(frozen=True)
class WikiEnvValidation:
    errors: tuple[str, ...]
    warnings: tuple[str, ...]


def validate_wiki_environment() -> WikiEnvValidation:
    cfg = get_wiki_settings()
    if not cfg.enabled:
        return WikiEnvValidation(errors=(), warnings=("WIKI_ENABLED is false; wiki routes answer 503.",))
    errors: list[str] = []
    warnings: list[str] = []
    for role in cfg.edit_roles:
        if role not in WIKI_ROLES:
            errors.append(f"Unsupported wiki role in WIKI_EDIT_ROLES: {role}")
    if not os.getenv("MONGODB_URI"):
        warnings.append("MONGODB_URI is not set via environment. Application may rely on .env fallback.")
    if not cfg.require_auth:
        warnings.append("WIKI_REQUIRE_AUTH is false; anonymous callers get viewer access.")
    if not cfg.index_enabled:
        warnings.append("WIKI_INDEX_ENABLED is false; page changes are not mirrored to the search index.")
    return WikiEnvValidation(errors=tuple(errors), warnings=tuple(warnings))
