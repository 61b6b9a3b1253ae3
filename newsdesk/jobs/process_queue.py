"""
Queue Worker: queued item -> published Post

Runs every minute. Each tick drains up to QUEUE_BATCH_SIZE items oldest
first, strictly one at a time through a PacingGate, so there is never more
than one generative call in flight and calls are at least
INTER_ITEM_DELAY_SECONDS apart.

Per item:
  1. Label     - author label, else source label, else GENERIC_SOURCE_NAME
  2. Context   - scraped article text for feed items (optional)
  3. Generate  - Gemini rewrite; a GenerationError drops the item
  4. Derive    - media, post type, tag ids
  5. Publish   - insert the Post, then delete the queue item

An item is removed from the queue only when it is published, dropped after a
failed generation, or found to be published already. Any other error leaves
it queued for the next tick. A database that cannot be reached aborts the
tick.
"""

import logging
import traceback
from dataclasses import dataclass, asdict, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from ..config.settings import (
    GENERIC_SOURCE_NAME,
    INTER_ITEM_DELAY_SECONDS,
    QUEUE_BATCH_SIZE,
    REHOST_IMAGES,
)
from ..context import Stores, open_stores
from ..errors import DuplicatePostError, GenerationError, PostIdCollisionError, StoreUnavailableError
from ..models import SOURCE_MANUAL, SOURCE_SOCIAL, SOURCE_SYNDICATION, Post, QueueItem
from ..utils.authors import resolve_author_label
from ..utils.execution_logger import ExecutionLogger
from ..utils.gemini import GeminiClient, GeneratedArticle
from ..utils.images import ImageClient
from ..utils.media import ResolvedMedia, resolve_media
from ..utils.pacing import PacingGate
from ..utils.post_store import PostStore, generate_post_id
from ..utils.post_type import resolve_post_type
from ..utils.queue_store import QueueStore
from ..utils.scraper import PageScraper
from ..utils.tags import TagRegistry

logger = logging.getLogger(__name__)

MAX_POST_ID_ATTEMPTS = 3

# (source, source_type) stored on the Post for each queue item kind
SOURCE_FIELDS = {
    SOURCE_SOCIAL: ("Twitter", "twitter"),
    SOURCE_SYNDICATION: ("RSS", "rss"),
    SOURCE_MANUAL: ("Manual", "manual"),
}

PUBLISHED = "published"
DROPPED = "dropped"
DUPLICATE = "duplicate"


@dataclass
class BatchResult:
    published: int = 0
    dropped: int = 0
    duplicates: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        """Items removed from the queue this tick."""
        return self.published + self.dropped + self.duplicates


class QueueProcessor:

    def __init__(
        self,
        queue_store: QueueStore,
        post_store: PostStore,
        tag_registry: TagRegistry,
        writer: GeminiClient,
        scraper: Optional[PageScraper] = None,
        image_client: Optional[ImageClient] = None,
        gate: Optional[PacingGate] = None,
        rehost_images: bool = REHOST_IMAGES,
        post_id_factory: Callable[[], int] = generate_post_id
    ):
        self.queue_store = queue_store
        self.post_store = post_store
        self.tag_registry = tag_registry
        self.writer = writer
        self.scraper = scraper
        self.image_client = image_client
        self.gate = gate or PacingGate(INTER_ITEM_DELAY_SECONDS)
        self.rehost_images = rehost_images
        self.post_id_factory = post_id_factory

    def process_batch(self, max_items: int = QUEUE_BATCH_SIZE) -> BatchResult:
        """
        Process up to `max_items` queued items, oldest first.

        Raises:
            StoreUnavailableError: the database is unreachable
        """
        result = BatchResult()
        items = self.queue_store.oldest(max_items)
        if not items:
            logger.info("[Queue] Queue empty")
            return result

        logger.info(f"[Queue] Processing {len(items)} items")

        for item in items:
            with self.gate:
                try:
                    outcome = self.process_item(item)
                except StoreUnavailableError:
                    raise
                except Exception as e:
                    result.failed += 1
                    logger.error(f"[Queue] Item {item.id} failed, left in queue: {e}")
                    continue

            if outcome == PUBLISHED:
                result.published += 1
            elif outcome == DROPPED:
                result.dropped += 1
            else:
                result.duplicates += 1

        return result

    def resolve_label(self, item: QueueItem) -> str:
        # Only social post URLs carry the author handle
        handle_url = item.url if item.source_kind == SOURCE_SOCIAL else None
        return resolve_author_label(item.author, handle_url) or item.source_label or GENERIC_SOURCE_NAME

    def fetch_context(self, item: QueueItem) -> Optional[str]:
        if self.scraper is None or item.source_kind != SOURCE_SYNDICATION or not item.url:
            return None
        return self.scraper.fetch_text(item.url)

    def process_item(self, item: QueueItem) -> str:
        label = self.resolve_label(item)
        context = self.fetch_context(item)

        try:
            article = self.writer.write_article(item.text, author_label=label, context=context)
        except GenerationError as e:
            # No retry budget: a failed rewrite removes the item for good
            logger.warning(f"[Queue] Generation failed for {item.id}, dropping: {e}")
            self.queue_store.delete(item.id)
            return DROPPED

        resolved = resolve_media(item.media)
        if self.rehost_images and self.image_client is not None:
            resolved = self.rehost(item, resolved)

        post = self.build_post(item, article, resolved, label)

        try:
            self.insert_post(post)
        except DuplicatePostError as e:
            logger.info(f"[Queue] Item {item.id} already published ({e.constraint}), removing")
            self.queue_store.delete(item.id)
            return DUPLICATE

        self.queue_store.delete(item.id)
        logger.info(f"[Queue] Published {post.post_id} from {item.id}: {post.title[:40]}")
        return PUBLISHED

    def build_post(self, item: QueueItem, article: GeneratedArticle, resolved: ResolvedMedia, label: str) -> Post:
        source, source_type = SOURCE_FIELDS.get(item.source_kind, SOURCE_FIELDS[SOURCE_MANUAL])
        return Post(
            post_id=0,
            title=article.title,
            summary=article.summary,
            body=article.content,
            slug=article.slug,
            external_source_id=item.id,
            source_name=label,
            canonical_url=item.url or None,
            primary_image_url=resolved.primary_image_url,
            video_url=resolved.video_url,
            media=list(resolved.media),
            tag_ids=self.tag_registry.get_or_create(article.tags),
            categories=[article.category] if article.category else ["General"],
            type=resolve_post_type(item.requested_type, resolved.has_video),
            published_at=datetime.now(timezone.utc),
            source=source,
            source_type=source_type,
            source_title=item.headline or None,
        )

    def insert_post(self, post: Post) -> None:
        """Insert with a fresh random post_id, redrawing on collision."""
        for attempt in range(MAX_POST_ID_ATTEMPTS):
            post.post_id = self.post_id_factory()
            try:
                self.post_store.insert(post)
                return
            except PostIdCollisionError:
                logger.warning(f"[Queue] post_id {post.post_id} taken (attempt {attempt + 1}/{MAX_POST_ID_ATTEMPTS})")
        raise PostIdCollisionError(f"No free post_id after {MAX_POST_ID_ATTEMPTS} attempts")

    def rehost(self, item: QueueItem, resolved: ResolvedMedia) -> ResolvedMedia:
        """Copy images to our asset store; any failure keeps the upstream URL."""
        hosted = {}
        media = []
        for index, media_item in enumerate(resolved.media):
            if media_item.kind == "image" and media_item.url not in hosted:
                hosted[media_item.url] = (
                    self.image_client.rehost(media_item.url, f"posts/{item.id}-{index}") or media_item.url
                )
            media.append(replace(media_item, url=hosted.get(media_item.url, media_item.url)))

        primary = resolved.primary_image_url
        if primary and primary not in hosted:
            hosted[primary] = self.image_client.rehost(primary, f"posts/{item.id}-primary") or primary

        return ResolvedMedia(
            primary_image_url=hosted.get(primary, primary),
            video_url=resolved.video_url,
            media=media,
        )


def build_processor(stores: Stores) -> QueueProcessor:
    return QueueProcessor(
        queue_store=stores.queue,
        post_store=stores.posts,
        tag_registry=stores.tags,
        writer=GeminiClient(),
        scraper=PageScraper(),
        image_client=ImageClient() if REHOST_IMAGES else None,
    )


def process_queue(max_items: int = QUEUE_BATCH_SIZE, stores: Stores = None,
                  processor: QueueProcessor = None) -> Dict[str, Any]:
    """
    Scheduled queue tick.

    Returns:
        Results dict with counts and timing

    Raises:
        StoreUnavailableError: the database is unreachable; RQ records the
            job as failed and the next tick tries again
    """
    started_at = datetime.now(timezone.utc)
    results: Dict[str, Any] = {"started_at": started_at.isoformat(), "max_items": max_items, "errors": []}

    stores = stores or open_stores()
    processor = processor or build_processor(stores)
    run_log = ExecutionLogger(stores.db, job_type="process_queue")

    try:
        batch = processor.process_batch(max_items)
    except StoreUnavailableError as e:
        run_log.error(f"[Queue] Store unavailable, aborting tick: {e}")
        run_log.complete("error", error_message=str(e), error_stack=traceback.format_exc())
        raise

    results.update(asdict(batch))
    results["processed"] = batch.processed
    if batch.failed:
        results["errors"].append(f"{batch.failed} items failed and remain queued")

    for key, value in asdict(batch).items():
        run_log.set_summary(key, value)
    run_log.info(
        f"[Queue] Tick complete: {batch.published} published, {batch.dropped} dropped, "
        f"{batch.duplicates} duplicates, {batch.failed} failed"
    )
    run_log.complete("success")

    results["completed_at"] = datetime.now(timezone.utc).isoformat()
    return results
