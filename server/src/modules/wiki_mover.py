from __future__ import annotations

import logging
from typing import Any

from server.src.modules.wiki_errors import Conflict, DataIntegrityError, InvalidParameter, NotFound
from server.src.modules.wiki_helpers import ROOT_PARENT_ID, normalize_parent_id
from server.src.modules.wiki_repo import WikiMongoRepo
from server.src.modules.wiki_tree import sibling_sort_key

logger = logging.getLogger(__name__)


def _check_not_descendant(moving: dict[str, Any], parent: dict[str, Any], by_id: dict[str, dict[str, Any]]) -> None:
    moving_id = moving["id"]
    seen: set[str] = set()
    node: dict[str, Any] | None = parent
    while node is not None:
        node_id = str(node.get("id") or "")
        if node_id == moving_id:
            raise Conflict("WikiPage", "Will cause recursive.")
        if node_id in seen:
            raise DataIntegrityError("Wiki page parent chain contains a cycle.", page_ids=sorted(seen))
        seen.add(node_id)
        parent_id = str(node.get("parent_id") or ROOT_PARENT_ID)
        if parent_id == ROOT_PARENT_ID:
            return
        node = by_id.get(parent_id)


def _renumber(repo: WikiMongoRepo, ordered: list[dict[str, Any]], skip_id: str = "") -> None:
    for position, page in enumerate(ordered):
        if page["id"] == skip_id:
            continue
        repo.set_display_order(page["id"], position)


def move_page(
    repo: WikiMongoRepo,
    page_id: str,
    new_parent_id: str,
    new_index: int,
    version: int | None = None,
) -> dict[str, Any]:
    """Move a page under ``new_parent_id`` at position ``new_index``.

    Both the destination and, on a reparent, the source sibling group are
    renumbered 0..n-1. The moving page itself is written first with a
    version check, so a stale version fails before siblings change.
    """
    moving = repo.pages.find(page_id)
    if not moving:
        raise NotFound("WikiPage")
    parent_id = normalize_parent_id(new_parent_id)
    try:
        index = int(new_index)
    except (TypeError, ValueError):
        raise InvalidParameter("index")

    if moving.get("parent_id", ROOT_PARENT_ID) == parent_id and int(moving.get("display_order", -1)) == index:
        logger.info("wiki page %s already at parent=%r index=%s, nothing to update", moving["id"], parent_id, index)
        return moving

    wiki_id = moving["wiki_id"]
    parent: dict[str, Any] = {}
    if parent_id:
        parent = repo.pages.find(parent_id)
        if not parent:
            raise NotFound("WikiPage")
        if parent.get("wiki_id") != wiki_id:
            raise InvalidParameter("parent_id")

    by_id = {page["id"]: page for page in repo.pages_of_wiki(wiki_id)}
    if parent:
        _check_not_descendant(moving, parent, by_id)

    siblings = sorted(
        (page for page in by_id.values() if page.get("parent_id", ROOT_PARENT_ID) == parent_id and page["id"] != moving["id"]),
        key=sibling_sort_key,
    )
    if index < 0 or index > len(siblings):
        raise InvalidParameter("index")

    source_parent_id = moving.get("parent_id", ROOT_PARENT_ID)
    updated = repo.pages.update(
        moving["id"],
        {"parent_id": parent_id, "display_order": index},
        version=version if version is not None else moving.get("version"),
    )
    if not updated:
        raise NotFound("WikiPage")

    siblings.insert(index, moving)
    _renumber(repo, siblings, skip_id=moving["id"])
    if source_parent_id != parent_id:
        remaining = sorted(
            (page for page in by_id.values() if page.get("parent_id", ROOT_PARENT_ID) == source_parent_id and page["id"] != moving["id"]),
            key=sibling_sort_key,
        )
        _renumber(repo, remaining)
    logger.info(
        "moved wiki page %s from parent=%r to parent=%r index=%s",
        moving["id"],
        source_parent_id,
        parent_id,
        index,
    )
    return updated
