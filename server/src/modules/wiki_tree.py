from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable, Iterator

from server.src.modules.wiki_errors import DataIntegrityError
from server.src.modules.wiki_helpers import ROOT_PARENT_ID


def sibling_sort_key(page: dict[str, Any]) -> tuple[int, str]:
    """Total order inside a sibling group: display_order, then id."""
    return int(page.get("display_order") or 0), str(page.get("id") or "")


def _children_index(pages: Iterable[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    index: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for page in pages:
        index[str(page.get("parent_id") or ROOT_PARENT_ID)].append(page)
    for children in index.values():
        children.sort(key=sibling_sort_key)
    return index


def _attach(index: dict[str, list[dict[str, Any]]], parent_id: str, placed: set[str]) -> list[dict[str, Any]]:
    nodes: list[dict[str, Any]] = []
    for page in index.get(parent_id, []):
        page_id = str(page.get("id") or "")
        if page_id in placed:
            continue
        placed.add(page_id)
        node = dict(page)
        node["children"] = _attach(index, page_id, placed)
        nodes.append(node)
    return nodes


def unreachable_pages(pages: Iterable[dict[str, Any]]) -> list[str]:
    """Ids of pages that no parent chain connects to the root.

    These are pages with a dangling ``parent_id`` or pages caught in a
    parent cycle.
    """
    rows = list(pages)
    placed: set[str] = set()
    _attach(_children_index(rows), ROOT_PARENT_ID, placed)
    return sorted(str(row.get("id") or "") for row in rows if str(row.get("id") or "") not in placed)


def build_tree(pages: Iterable[dict[str, Any]], strict: bool = False) -> list[dict[str, Any]]:
    """Arrange a flat list of one wiki's pages into an ordered forest.

    Returns the top-level nodes. Every node is a shallow copy of its page
    record with a ``children`` list sorted by ``(display_order, id)``; the
    input records are left untouched. Pages that cannot be reached from the
    root are left out, or raise ``DataIntegrityError`` when ``strict`` is set.
    """
    rows = list(pages)
    placed: set[str] = set()
    tree = _attach(_children_index(rows), ROOT_PARENT_ID, placed)
    if strict and len(placed) < len(rows):
        missing = sorted(str(row.get("id") or "") for row in rows if str(row.get("id") or "") not in placed)
        raise DataIntegrityError("Wiki pages are not reachable from the root.", page_ids=missing)
    return tree


def flatten(tree: Iterable[dict[str, Any]], depth: int = 0) -> Iterator[tuple[dict[str, Any], int]]:
    for node in tree:
        yield node, depth
        yield from flatten(node.get("children") or [], depth + 1)
