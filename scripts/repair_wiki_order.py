#!/usr/bin/env python
from __future__ import annotations

import argparse
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from server.src.modules.wiki_repo import WikiMongoRepo, ensure_wiki_collections_and_indexes
from server.src.modules.wiki_service import WikiService


def repair(wiki_ids: list[str], dry_run: bool = False) -> int:
    ensure_wiki_collections_and_indexes()
    service = WikiService(WikiMongoRepo())
    targets = wiki_ids or [wiki["id"] for wiki in service.get_wikis()]
    total = 0
    for wiki_id in targets:
        report = service.repair_display_order(wiki_id, dry_run=dry_run)
        total += len(report["renumbered"])
        print(
            f"wiki {wiki_id}: {len(report['renumbered'])} pages renumbered, "
            f"{len(report['unreachable'])} unreachable"
        )
        for page_id in report["unreachable"]:
            print(f"  unreachable page {page_id}")
    if dry_run:
        print("Dry-run mode, no write performed.")
    return total


def main() -> None:
    parser = argparse.ArgumentParser(description="Renumber wiki page sibling groups to 0..n-1.")
    parser.add_argument("wiki_ids", nargs="*", help="Wiki ids to repair (default: all wikis)")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    repair(args.wiki_ids, dry_run=args.dry_run)


if __name__ == "__main__":
    main()
