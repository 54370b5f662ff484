from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from server.src.modules.wiki_auth import require_wiki_editor, require_wiki_viewer
from server.src.modules.wiki_config import get_wiki_settings
from server.src.modules.wiki_repo import WikiMongoRepo
from server.src.modules.wiki_search import MongoSearchSink
from server.src.modules.wiki_service import WikiService
from server.src.modules.wiki_tasks import SearchIndexer, get_search_sink


router = APIRouter(
    prefix="/api/wikis",
    tags=["wiki"],
)


@lru_cache
def get_wiki_service() -> WikiService:
    return WikiService(WikiMongoRepo(), indexer=SearchIndexer(enabled=get_wiki_settings().index_enabled))


class WikiCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=1000)
    content: str
    tag: str = ""
    cover_id: str = ""


class WikiUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    tag: str | None = None
    content: str | None = None
    cover_id: str | None = None
    version: int | None = None


class WikiPageCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    content: str
    parent_id: str = ""


class WikiPageUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    content: str | None = None
    version: int | None = None


class WikiPageMove(BaseModel):
    parent_id: str = ""
    index: int
    version: int | None = None


class DeletedOut(BaseModel):
    id: str


class NavigationMenuOut(BaseModel):
    name: str
    url: str


@router.get("")
def list_wikis(
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_viewer),
) -> dict[str, Any]:
    return {"wikis": service.get_wikis()}


@router.get("/navigation", response_model=list[NavigationMenuOut])
def navigation_menus(
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_viewer),
):
    return service.get_navigation_menus()


@router.get("/search")
def search_wikis(
    q: str = Query(..., min_length=1),
    limit: int = Query(default=20, ge=1, le=100),
    sink: MongoSearchSink = Depends(get_search_sink),
    _auth: dict = Depends(require_wiki_viewer),
) -> list[dict[str, Any]]:
    return sink.search(q, limit=limit)


@router.post("")
def create_wiki(
    payload: WikiCreate,
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_editor),
) -> dict[str, Any]:
    return service.create_wiki(
        name=payload.name,
        description=payload.description,
        content=payload.content,
        tag=payload.tag,
        cover_id=payload.cover_id,
    )


# wiki page routes come before "/{wiki_id}" routes so "wikipages" is never read as a wiki id


@router.get("/wikipages/{page_id}")
def get_wiki_page(
    page_id: str,
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_viewer),
) -> dict[str, Any]:
    return service.get_wiki_page(page_id, include_content=True)


@router.post("/wikipages/{page_id}")
def update_wiki_page(
    page_id: str,
    payload: WikiPageUpdate,
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_editor),
) -> dict[str, Any]:
    return service.update_wiki_page(
        page_id,
        name=payload.name,
        content=payload.content,
        version=payload.version,
    )


@router.post("/wikipages/{page_id}/move")
def move_wiki_page(
    page_id: str,
    payload: WikiPageMove,
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_editor),
) -> dict[str, Any]:
    return service.move_wiki_page(page_id, payload.parent_id, payload.index, version=payload.version)


@router.post("/wikipages/{page_id}/delete", response_model=DeletedOut)
def delete_wiki_page(
    page_id: str,
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_editor),
):
    return service.delete_wiki_page(page_id)


@router.get("/{wiki_id}")
def get_wiki(
    wiki_id: str,
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_viewer),
) -> dict[str, Any]:
    return service.get_wiki(wiki_id, include_content=True)


@router.post("/{wiki_id}")
def update_wiki(
    wiki_id: str,
    payload: WikiUpdate,
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_editor),
) -> dict[str, Any]:
    return service.update_wiki(
        wiki_id,
        name=payload.name,
        description=payload.description,
        tag=payload.tag,
        content=payload.content,
        cover_id=payload.cover_id,
        version=payload.version,
    )


@router.post("/{wiki_id}/delete", response_model=DeletedOut)
def delete_wiki(
    wiki_id: str,
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_editor),
):
    return service.delete_wiki(wiki_id)


@router.get("/{wiki_id}/wikipages")
def get_wiki_tree(
    wiki_id: str,
    flatten: bool = Query(default=False),
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_viewer),
) -> dict[str, Any]:
    return service.get_wiki_tree(wiki_id, flatten_tree=flatten)


@router.post("/{wiki_id}/wikipages")
def create_wiki_page(
    wiki_id: str,
    payload: WikiPageCreate,
    service: WikiService = Depends(get_wiki_service),
    _auth: dict = Depends(require_wiki_editor),
) -> dict[str, Any]:
    return service.create_wiki_page(
        wiki_id,
        name=payload.name,
        content=payload.content,
        parent_id=payload.parent_id,
    )
