"""
Queue Store - ordered, at-least-once work list in PostgreSQL.

Items are keyed by their external id (the dedup key) and drained oldest
first. Items are never updated: they are inserted by ingestion and deleted
by the queue worker.
"""

import logging
from typing import Iterable, List, Set

from psycopg2.extras import Json, execute_values

from ..models import (
    AuthorInfo,
    QueueItem,
    media_payload_from_dict,
    media_payload_to_dict,
)
from .db import DatabaseClient

logger = logging.getLogger(__name__)


class QueueStore:
    """queue_items table access"""

    def __init__(self, db: DatabaseClient):
        self.db = db

    def insert_many(self, items: List[QueueItem]) -> int:
        """
        Insert items in one statement, skipping ids that already exist.

        A duplicate id never aborts the rest of the batch.

        Returns:
            Number of rows actually inserted
        """
        if not items:
            return 0

        rows = [
            (
                item.id,
                item.text,
                item.title,
                item.url,
                Json(media_payload_to_dict(item.media)),
                Json(item.author.to_dict()) if item.author else None,
                item.requested_type,
                item.source_label,
                item.source_kind,
            )
            for item in items
        ]
        sql = """
            INSERT INTO queue_items (
                id, text, title, url, media, author,
                requested_type, source_label, source_kind
            ) VALUES %s
            ON CONFLICT (id) DO NOTHING
            RETURNING id
        """
        with self.db.get_cursor() as cursor:
            inserted = execute_values(cursor, sql, rows, fetch=True)
        return len(inserted)

    def find_existing_ids(self, ids: Iterable[str]) -> Set[str]:
        ids = [i for i in set(ids) if i]
        if not ids:
            return set()
        with self.db.get_cursor() as cursor:
            cursor.execute("SELECT DISTINCT id FROM queue_items WHERE id = ANY(%s)", (ids,))
            return {row['id'] for row in cursor.fetchall()}

    def find_existing_urls(self, urls: Iterable[str]) -> Set[str]:
        urls = [u for u in set(urls) if u]
        if not urls:
            return set()
        with self.db.get_cursor() as cursor:
            cursor.execute("SELECT DISTINCT url FROM queue_items WHERE url = ANY(%s)", (urls,))
            return {row['url'] for row in cursor.fetchall()}

    def pending_titles(self) -> List[str]:
        """Headline of every queued item (title, else first line of text)."""
        sql = """
            SELECT COALESCE(NULLIF(title, ''), split_part(btrim(text), E'\\n', 1)) AS headline
            FROM queue_items
        """
        with self.db.get_cursor() as cursor:
            cursor.execute(sql)
            return [row['headline'] for row in cursor.fetchall() if row['headline']]

    def oldest(self, limit: int) -> List[QueueItem]:
        """Up to `limit` items ordered by enqueue time, oldest first."""
        sql = """
            SELECT id, text, title, url, media, author,
                   requested_type, source_label, source_kind, enqueued_at
            FROM queue_items
            ORDER BY enqueued_at ASC, seq ASC
            LIMIT %s
        """
        with self.db.get_cursor() as cursor:
            cursor.execute(sql, (limit,))
            return [self._row_to_item(row) for row in cursor.fetchall()]

    def delete(self, item_id: str) -> None:
        with self.db.get_cursor() as cursor:
            cursor.execute("DELETE FROM queue_items WHERE id = %s", (item_id,))

    def count(self) -> int:
        with self.db.get_cursor() as cursor:
            cursor.execute("SELECT COUNT(*) AS n FROM queue_items")
            return int(cursor.fetchone()['n'])

    @staticmethod
    def _row_to_item(row) -> QueueItem:
        return QueueItem(
            id=row['id'],
            text=row['text'] or '',
            title=row['title'],
            url=row['url'],
            media=media_payload_from_dict(row['media']),
            author=AuthorInfo.from_dict(row['author']),
            requested_type=row['requested_type'],
            source_label=row['source_label'],
            source_kind=row['source_kind'],
            enqueued_at=row['enqueued_at'],
        )
