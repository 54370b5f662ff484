from __future__ import annotations

import logging
from typing import Any

from server.src.modules.wiki_config import get_wiki_settings
from server.src.modules.wiki_errors import Conflict, InvalidParameter, NotFound
from server.src.modules.wiki_helpers import (
    ROOT_PARENT_ID,
    normalize_name,
    normalize_parent_id,
    normalize_tag,
    normalize_text,
    sanitize_content,
)
from server.src.modules.wiki_mover import move_page
from server.src.modules.wiki_repo import RecordStore, WikiMongoRepo
from server.src.modules.wiki_tasks import SearchIndexer
from server.src.modules.wiki_tree import build_tree, flatten, sibling_sort_key, unreachable_pages

logger = logging.getLogger(__name__)


class WikiService:
    """Wiki and wiki page operations behind the HTTP layer.

    Callers are expected to have checked permissions already. Every record
    returned by a mutation carries its current ``content``.
    """

    def __init__(self, repo: WikiMongoRepo, indexer: SearchIndexer | None = None, strict_tree: bool | None = None):
        self.repo = repo
        self.indexer = indexer
        self.strict_tree = get_wiki_settings().strict_tree if strict_tree is None else strict_tree

    # reads

    def _load_content(self, record: dict[str, Any]) -> dict[str, Any]:
        text = self.repo.texts.find(record.get("content_id", ""))
        if not text:
            raise NotFound("Text")
        record["content"] = text.get("value", "")
        return record

    def get_wikis(self) -> list[dict[str, Any]]:
        wikis = self.repo.wikis.find_all()
        return sorted(wikis, key=lambda wiki: (str(wiki.get("name") or "").casefold(), wiki["id"]))

    def get_wiki(self, wiki_id: str, include_content: bool = False) -> dict[str, Any]:
        wiki = self.repo.wikis.find(wiki_id)
        if not wiki:
            raise NotFound("Wiki")
        if include_content:
            self._load_content(wiki)
        return wiki

    def get_wiki_page(self, page_id: str, include_content: bool = False) -> dict[str, Any]:
        page = self.repo.pages.find(page_id)
        if not page:
            raise NotFound("WikiPage")
        if include_content:
            self._load_content(page)
        return page

    def get_wiki_pages(self, wiki_id: str, as_mapping: bool = False) -> list[dict[str, Any]] | dict[str, dict[str, Any]]:
        pages = self.repo.pages_of_wiki(wiki_id)
        if as_mapping:
            return {page["id"]: page for page in pages}
        tree = build_tree(pages, strict=self.strict_tree)
        missing = unreachable_pages(pages)
        if missing:
            logger.warning("wiki %s has %d unreachable pages: %s", wiki_id, len(missing), ", ".join(missing))
        return tree

    def get_wiki_tree(self, wiki_id: str, flatten_tree: bool = False) -> dict[str, Any]:
        wiki = self.get_wiki(wiki_id)
        children = self.get_wiki_pages(wiki_id)
        if flatten_tree:
            rows = []
            for node, depth in flatten(children):
                row = {key: value for key, value in node.items() if key != "children"}
                row["depth"] = depth
                rows.append(row)
            wiki["children"] = rows
        else:
            wiki["children"] = children
        return wiki

    def get_navigation_menus(self) -> list[dict[str, str]]:
        return [{"name": wiki.get("name", ""), "url": "/wiki/" + wiki["id"]} for wiki in self.get_wikis()]

    def _write_versioned(
        self,
        store: RecordStore,
        entity: str,
        record: dict[str, Any],
        props: dict[str, Any],
        new_content: str | None,
        version: int | None,
    ) -> dict[str, Any]:
        """Write ``props`` guarded by the caller's version, else the version just read.

        A new content Text is only kept when the write lands.
        """
        expected = version if version is not None else record.get("version")
        text = None
        if new_content is not None:
            text = self.repo.create_text(record["id"], new_content)
            props = {**props, "content_id": text["id"]}
        try:
            updated = store.update(record["id"], props, version=expected)
        except Conflict:
            if text:
                self.repo.texts.destroy(text["id"])
            raise
        if not updated:
            if text:
                self.repo.texts.destroy(text["id"])
            raise NotFound(entity)
        return updated

    # wikis

    def create_wiki(
        self,
        *,
        name: str,
        description: str,
        content: str,
        tag: str = "",
        cover_id: str = "",
    ) -> dict[str, Any]:
        clean_name = normalize_name(name)
        clean_content = sanitize_content(content)
        wiki_id = self.repo.next_id()
        text = self.repo.create_text(wiki_id, clean_content)
        wiki = self.repo.wikis.create(
            {
                "id": wiki_id,
                "content_id": text["id"],
                "cover_id": normalize_text(cover_id, 100),
                "name": clean_name,
                "description": normalize_text(description),
                "tag": normalize_tag(tag),
            }
        )
        wiki["content"] = clean_content
        self._index(wiki)
        return wiki

    def update_wiki(
        self,
        wiki_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        tag: str | None = None,
        content: str | None = None,
        cover_id: str | None = None,
        version: int | None = None,
    ) -> dict[str, Any]:
        wiki = self.get_wiki(wiki_id)
        props: dict[str, Any] = {}
        if name:
            props["name"] = normalize_name(name)
        if description:
            props["description"] = normalize_text(description)
        if tag:
            props["tag"] = normalize_tag(tag)
        if cover_id:
            props["cover_id"] = normalize_text(cover_id, 100)
        new_content = sanitize_content(content) if content else None
        if props or new_content is not None:
            wiki = self._write_versioned(self.repo.wikis, "Wiki", wiki, props, new_content, version)
        if new_content is not None:
            wiki["content"] = new_content
        else:
            self._load_content(wiki)
        self._index(wiki)
        return wiki

    def delete_wiki(self, wiki_id: str) -> dict[str, str]:
        wiki = self.get_wiki(wiki_id)
        num = self.repo.pages.count({"wiki_id": wiki["id"]})
        if num > 0:
            raise Conflict("Wiki", "Wiki is not empty.")
        self.repo.wikis.destroy(wiki["id"])
        self.repo.texts.destroy_all({"ref_id": wiki["id"]})
        logger.info("deleted wiki %s", wiki["id"])
        self._unindex(wiki["id"])
        return {"id": wiki["id"]}

    # wiki pages

    def create_wiki_page(
        self,
        wiki_id: str,
        *,
        name: str,
        content: str,
        parent_id: str = ROOT_PARENT_ID,
    ) -> dict[str, Any]:
        wiki = self.get_wiki(wiki_id)
        clean_parent = normalize_parent_id(parent_id)
        if clean_parent:
            parent = self.get_wiki_page(clean_parent)
            if parent.get("wiki_id") != wiki["id"]:
                raise InvalidParameter("parent_id")
        clean_name = normalize_name(name)
        clean_content = sanitize_content(content)

        num = self.repo.pages.max("display_order", {"wiki_id": wiki["id"], "parent_id": clean_parent})
        page_id = self.repo.next_id()
        text = self.repo.create_text(page_id, clean_content)
        page = self.repo.pages.create(
            {
                "id": page_id,
                "wiki_id": wiki["id"],
                "content_id": text["id"],
                "parent_id": clean_parent,
                "name": clean_name,
                "display_order": 0 if num is None else int(num) + 1,
            }
        )
        page["content"] = clean_content
        self._index(page)
        return page

    def update_wiki_page(
        self,
        page_id: str,
        *,
        name: str | None = None,
        content: str | None = None,
        version: int | None = None,
    ) -> dict[str, Any]:
        page = self.get_wiki_page(page_id)
        props: dict[str, Any] = {}
        if name:
            props["name"] = normalize_name(name)
        new_content = sanitize_content(content) if content else None
        if props or new_content is not None:
            page = self._write_versioned(self.repo.pages, "WikiPage", page, props, new_content, version)
        if new_content is not None:
            page["content"] = new_content
        else:
            self._load_content(page)
        self._index(page)
        return page

    def move_wiki_page(self, page_id: str, parent_id: str, index: int, version: int | None = None) -> dict[str, Any]:
        before = self.get_wiki_page(page_id)
        page = move_page(self.repo, page_id, parent_id, index, version=version)
        self._load_content(page)
        if page.get("version") != before.get("version"):
            self._index(page)
        return page

    def delete_wiki_page(self, page_id: str) -> dict[str, str]:
        page = self.get_wiki_page(page_id)
        num = self.repo.pages.count({"parent_id": page["id"]})
        if num > 0:
            raise Conflict("WikiPage", "Cannot delete a non-empty wiki pages.")
        self.repo.pages.destroy(page["id"])
        self.repo.texts.destroy_all({"ref_id": page["id"]})
        siblings = sorted(
            self.repo.sibling_pages(page["wiki_id"], page.get("parent_id", ROOT_PARENT_ID)),
            key=sibling_sort_key,
        )
        for position, sibling in enumerate(siblings):
            if int(sibling.get("display_order", -1)) != position:
                self.repo.set_display_order(sibling["id"], position)
        logger.info("deleted wiki page %s", page["id"])
        self._unindex(page["id"])
        return {"id": page["id"]}

    def repair_display_order(self, wiki_id: str, dry_run: bool = False) -> dict[str, list[str]]:
        """Renumber every sibling group of a wiki to 0..n-1.

        Heals groups left with gaps or duplicates by an interrupted move.
        Unreachable pages are reported, never touched.
        """
        wiki = self.get_wiki(wiki_id)
        pages = self.repo.pages_of_wiki(wiki["id"])
        groups: dict[str, list[dict[str, Any]]] = {}
        for page in pages:
            groups.setdefault(page.get("parent_id", ROOT_PARENT_ID), []).append(page)
        renumbered: list[str] = []
        for siblings in groups.values():
            for position, page in enumerate(sorted(siblings, key=sibling_sort_key)):
                if int(page.get("display_order", -1)) == position:
                    continue
                renumbered.append(page["id"])
                if not dry_run:
                    self.repo.set_display_order(page["id"], position)
        missing = unreachable_pages(pages)
        if renumbered or missing:
            logger.info(
                "wiki %s order repair: %d renumbered, %d unreachable%s",
                wiki["id"],
                len(renumbered),
                len(missing),
                " (dry run)" if dry_run else "",
            )
        return {"renumbered": renumbered, "unreachable": missing}

    # search index

    def _index(self, record: dict[str, Any]) -> None:
        if self.indexer is not None:
            self.indexer.index(record)

    def _unindex(self, record_id: str) -> None:
        if self.indexer is not None:
            self.indexer.unindex(record_id)
