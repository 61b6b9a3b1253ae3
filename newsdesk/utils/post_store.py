"""
Post Store - published posts in PostgreSQL.

external_source_id and canonical_url are unique-sparse: they are the anchors
ingestion checks before enqueueing anything. post_id is a random number and
relies on its unique constraint to surface collisions.
"""

import logging
import random
from typing import Iterable, List, Set

import psycopg2.errors
from psycopg2.extras import Json

from ..errors import DuplicatePostError, PostIdCollisionError
from ..models import Post
from .db import DatabaseClient

logger = logging.getLogger(__name__)

POST_ID_MIN = 100000000
POST_ID_MAX = 999999999


def generate_post_id() -> int:
    """Random 9-digit post id; uniqueness is enforced by the store."""
    return random.randint(POST_ID_MIN, POST_ID_MAX)


class PostStore:
    """posts table access"""

    def __init__(self, db: DatabaseClient):
        self.db = db

    def find_existing_source_ids(self, ids: Iterable[str]) -> Set[str]:
        ids = [i for i in set(ids) if i]
        if not ids:
            return set()
        sql = "SELECT DISTINCT external_source_id FROM posts WHERE external_source_id = ANY(%s)"
        with self.db.get_cursor() as cursor:
            cursor.execute(sql, (ids,))
            return {row['external_source_id'] for row in cursor.fetchall()}

    def find_existing_urls(self, urls: Iterable[str]) -> Set[str]:
        urls = [u for u in set(urls) if u]
        if not urls:
            return set()
        sql = "SELECT DISTINCT canonical_url FROM posts WHERE canonical_url = ANY(%s)"
        with self.db.get_cursor() as cursor:
            cursor.execute(sql, (urls,))
            return {row['canonical_url'] for row in cursor.fetchall()}

    def recent_titles(self, hours: int) -> List[str]:
        """Source headlines (or titles) of posts published in the last `hours`."""
        sql = """
            SELECT COALESCE(NULLIF(source_title, ''), title) AS headline
            FROM posts
            WHERE published_at >= now() - make_interval(hours => %s)
        """
        with self.db.get_cursor() as cursor:
            cursor.execute(sql, (int(hours),))
            return [row['headline'] for row in cursor.fetchall() if row['headline']]

    def insert(self, post: Post) -> None:
        """
        Insert a post.

        Raises:
            PostIdCollisionError: post_id already taken
            DuplicatePostError: external_source_id or canonical_url already taken
        """
        sql = """
            INSERT INTO posts (
                post_id, title, summary, body, slug, external_source_id,
                canonical_url, primary_image_url, video_url, media, tag_ids,
                categories, type, published_at, source_name, source,
                source_type, source_title, lang, is_published
            ) VALUES (
                %s, %s, %s, %s, %s, %s,
                %s, %s, %s, %s, %s,
                %s, %s, COALESCE(%s, now()), %s, %s,
                %s, %s, %s, %s
            )
        """
        params = (
            post.post_id, post.title, post.summary, post.body, post.slug,
            post.external_source_id, post.canonical_url or None,
            post.primary_image_url, post.video_url,
            Json([m.to_dict() for m in post.media]), list(post.tag_ids),
            list(post.categories), post.type, post.published_at,
            post.source_name, post.source, post.source_type,
            post.source_title, post.lang, post.is_published,
        )
        try:
            with self.db.get_cursor() as cursor:
                cursor.execute(sql, params)
        except psycopg2.errors.UniqueViolation as e:
            constraint = getattr(e.diag, 'constraint_name', None) or ''
            if constraint == 'posts_post_id_key':
                raise PostIdCollisionError(str(post.post_id)) from e
            raise DuplicatePostError(constraint or 'unique') from e
