"""
Tag Registry

Maps free-text tag names to stable tag ids. The slug is the identity: two
names that normalize to the same slug share one tag.
"""

import logging
import re
from typing import Iterable, List, Optional

from ..errors import StoreUnavailableError
from .db import DatabaseClient

logger = logging.getLogger(__name__)

_ASCII_LOWER = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")


def slugify(name: str) -> str:
    """
    Deterministic slug: ASCII lower-case, whitespace runs become hyphens,
    anything outside [a-z0-9_-] is dropped.

        slugify("Telugu News!") == slugify("telugu   news") == "telugu-news"
    """
    if not name:
        return ""
    slug = name.strip().translate(_ASCII_LOWER)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9_-]+", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


class TagStore:
    """tags table access"""

    def __init__(self, db: DatabaseClient):
        self.db = db

    def find_by_slug(self, slug: str) -> Optional[int]:
        with self.db.get_cursor() as cursor:
            cursor.execute("SELECT id FROM tags WHERE slug = %s", (slug,))
            row = cursor.fetchone()
            return int(row['id']) if row else None

    def create(self, name: str, slug: str) -> int:
        """Insert a tag; if another writer created the slug first, return theirs."""
        with self.db.get_cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO tags (name, slug) VALUES (%s, %s)
                ON CONFLICT (slug) DO NOTHING
                RETURNING id
                """,
                (name, slug),
            )
            row = cursor.fetchone()
            if row:
                return int(row['id'])
            cursor.execute("SELECT id FROM tags WHERE slug = %s", (slug,))
            return int(cursor.fetchone()['id'])


class TagRegistry:
    """Get-or-create for tag names returned by the generative call"""

    def __init__(self, store: TagStore):
        self.store = store

    def get_or_create(self, names: Optional[Iterable[str]]) -> List[int]:
        """
        Resolve tag names to ids, preserving input order.

        Names with an empty slug, repeats, and names whose lookup/creation
        fails are skipped; the rest are still returned.
        """
        if not names:
            return []

        tag_ids: List[int] = []
        seen_slugs = set()
        for name in names:
            if not isinstance(name, str):
                continue
            slug = slugify(name)
            if not slug or slug in seen_slugs:
                continue
            seen_slugs.add(slug)

            try:
                tag_id = self.store.find_by_slug(slug)
                if tag_id is None:
                    tag_id = self.store.create(name.strip(), slug)
            except StoreUnavailableError:
                raise
            except Exception as e:
                logger.error(f"[Tags] Tag error for '{name}': {e}")
                continue

            if tag_id not in tag_ids:
                tag_ids.append(tag_id)

        return tag_ids
