"""Newsdesk Worker Utilities"""

from .db import DatabaseClient
from .gemini import GeminiClient
from .images import ImageClient
from .post_store import PostStore
from .queue_store import QueueStore
from .scraper import PageScraper
from .tags import TagRegistry, TagStore
from .twitter import TwitterClient

__all__ = [
    'DatabaseClient',
    'GeminiClient',
    'ImageClient',
    'PageScraper',
    'PostStore',
    'QueueStore',
    'TagRegistry',
    'TagStore',
    'TwitterClient',
]
