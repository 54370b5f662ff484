"""
Celery app and tasks that mirror wiki records into the search index.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from celery import Celery

from db_mongo import get_col
from server.src.modules.wiki_search import WIKI_SEARCH_COL, MongoSearchSink, search_document
from settings import settings

logger = logging.getLogger(__name__)

celery_app = Celery(
    "wiki-app",
    broker=settings.celery_broker_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    task_always_eager=settings.celery_task_always_eager,
    worker_prefetch_multiplier=1,
)


@lru_cache
def get_search_sink() -> MongoSearchSink:
    return MongoSearchSink(get_col(WIKI_SEARCH_COL))


@celery_app.task(name="wiki.index_document")
def index_wiki_document(document: dict[str, Any]) -> None:
    try:
        get_search_sink().index(document)
    except Exception:
        logger.exception("search index index failed for %s", document.get("id"))


@celery_app.task(name="wiki.unindex_document")
def unindex_wiki_document(doc_id: str) -> None:
    try:
        get_search_sink().unindex(doc_id)
    except Exception:
        logger.exception("search index unindex failed for %s", doc_id)


class SearchIndexer:
    """Publishes index/unindex tasks; a broker outage never fails the caller."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def index(self, record: dict[str, Any]) -> None:
        if not self.enabled:
            return
        document = search_document(record)
        try:
            index_wiki_document.delay(document)
        except Exception:
            logger.exception("could not queue search index for %s", document["id"])

    def unindex(self, record_id: str) -> None:
        if not self.enabled:
            return
        doc_id = str(record_id or "")
        try:
            unindex_wiki_document.delay(doc_id)
        except Exception:
            logger.exception("could not queue search unindex for %s", doc_id)
