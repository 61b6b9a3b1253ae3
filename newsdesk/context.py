"""
Store handles for one job run.

Each job entry point opens its own DatabaseClient and hands the stores to
the components that need them.
"""

from dataclasses import dataclass

from .utils.db import DatabaseClient
from .utils.post_store import PostStore
from .utils.queue_store import QueueStore
from .utils.tags import TagRegistry, TagStore


@dataclass
class Stores:
    db: DatabaseClient
    queue: QueueStore
    posts: PostStore
    tags: TagRegistry


def open_stores(database_url: str = None) -> Stores:
    db = DatabaseClient(database_url)
    return Stores(
        db=db,
        queue=QueueStore(db),
        posts=PostStore(db),
        tags=TagRegistry(TagStore(db)),
    )
