"""
Ingestion: candidates -> dedup -> queue

IngestionCoordinator takes the candidates one source produced, drops the
ones already published or already queued, and inserts the rest into the
queue in a single batch. It is shared by the feed job below and the social
jobs in ingest_social.py.

ingest_feeds() is the scheduled RSS job: all feeds are fetched in parallel,
a failing feed is recorded in the results and the others still ingest.
"""

import asyncio
import logging
import traceback
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from ..config.rss_feeds import get_feeds
from ..config.settings import FEED_MAX_AGE_HOURS, FUZZY_TITLE_THRESHOLD, RECENT_POSTS_WINDOW_HOURS
from ..context import Stores, open_stores
from ..models import DEFAULT_POST_TYPE, SOURCE_MANUAL, Candidate, ManualMedia, QueueItem
from ..utils.dedup import DedupSnapshot, is_duplicate
from ..utils.execution_logger import ExecutionLogger
from ..utils.post_store import PostStore
from ..utils.queue_store import QueueStore
from ..utils.rss import fetch_all_feeds

logger = logging.getLogger(__name__)

MANUAL_SOURCE_NAME = "Newsdesk"


@dataclass
class IngestResult:
    enqueued: int = 0
    skipped_duplicate: int = 0
    skipped_conflict: int = 0
    skipped_invalid: int = 0


class IngestionCoordinator:
    """Dedup and enqueue one source's candidates."""

    def __init__(
        self,
        queue_store: QueueStore,
        post_store: PostStore,
        recent_hours: int = RECENT_POSTS_WINDOW_HOURS,
        threshold: float = FUZZY_TITLE_THRESHOLD
    ):
        self.queue_store = queue_store
        self.post_store = post_store
        self.recent_hours = recent_hours
        self.threshold = threshold

    def build_snapshot(self, candidates: List[Candidate]) -> DedupSnapshot:
        """Batch lookups against posts and the queue, once per call."""
        ids = [c.external_id for c in candidates]
        urls = [c.source_url for c in candidates if c.source_url]

        known_ids = self.post_store.find_existing_source_ids(ids) | self.queue_store.find_existing_ids(ids)
        known_urls = set()
        if urls:
            known_urls = self.post_store.find_existing_urls(urls) | self.queue_store.find_existing_urls(urls)

        recent_titles = []
        if any(not c.stable_id for c in candidates):
            recent_titles = self.post_store.recent_titles(self.recent_hours) + self.queue_store.pending_titles()

        return DedupSnapshot(known_ids=known_ids, known_urls=known_urls, recent_titles=recent_titles)

    def ingest(self, candidates: Iterable[Candidate]) -> IngestResult:
        result = IngestResult()

        valid = []
        for candidate in candidates:
            if not candidate.external_id or not (candidate.raw_text or candidate.title):
                result.skipped_invalid += 1
                continue
            valid.append(candidate)

        if not valid:
            return result

        snapshot = self.build_snapshot(valid)

        items = []
        for candidate in valid:
            if is_duplicate(candidate, snapshot, self.threshold):
                result.skipped_duplicate += 1
                continue
            # Later candidates in this batch must see this one
            snapshot.remember(candidate)
            items.append(QueueItem.from_candidate(candidate))

        if items:
            inserted = self.queue_store.insert_many(items)
            result.enqueued = inserted
            result.skipped_conflict = len(items) - inserted
            if result.skipped_conflict:
                logger.info(f"[Ingest] {result.skipped_conflict} items already queued by a concurrent run")

        return result


def ingest_feeds(debug: bool = False, stores: Stores = None) -> Dict[str, Any]:
    """
    Scheduled RSS ingestion job.

    Args:
        debug: If True, only fetch from DEBUG_FEEDS
        stores: Injected store handles (tests); opened from DATABASE_URL otherwise

    Returns:
        Results dict with counts and timing
    """
    started_at = datetime.now(timezone.utc)
    results = {
        "started_at": started_at.isoformat(),
        "feeds_count": 0,
        "feeds_failed": 0,
        "articles_found": 0,
        "articles_skipped_old": 0,
        "errors": [],
    }
    results.update(asdict(IngestResult()))

    stores = stores or open_stores()
    run_log = ExecutionLogger(stores.db, job_type="ingest_feeds")

    try:
        feeds = get_feeds(debug=debug)
        results["feeds_count"] = len(feeds)
        run_log.info(f"[Ingest] Using {len(feeds)} feeds (debug={debug})")

        fetched = asyncio.run(fetch_all_feeds(feeds, FEED_MAX_AGE_HOURS))

        candidates: List[Candidate] = []
        for feed, outcome in zip(feeds, fetched):
            if isinstance(outcome, Exception):
                results["feeds_failed"] += 1
                error_msg = f"Feed {feed['name']} failed: {outcome}"
                run_log.warn(f"[Ingest] {error_msg}")
                results["errors"].append(error_msg)
                continue
            candidates.extend(outcome.candidates)
            results["articles_skipped_old"] += outcome.skipped_old
            results["skipped_invalid"] += outcome.skipped_invalid

        results["articles_found"] = len(candidates)

        coordinator = IngestionCoordinator(stores.queue, stores.posts)
        outcome = coordinator.ingest(candidates)
        for key, value in asdict(outcome).items():
            results[key] += value

        run_log.info(
            f"[Ingest] Feeds complete: {results['enqueued']} enqueued, "
            f"{results['skipped_duplicate']} duplicates, {results['feeds_failed']} failed feeds"
        )
        run_log.set_summary("enqueued", results["enqueued"])
        run_log.set_summary("skipped_duplicate", results["skipped_duplicate"])
        run_log.set_summary("feeds_failed", results["feeds_failed"])
        run_log.complete("success")

    except Exception as e:
        error_msg = f"Feed ingestion failed: {e}"
        run_log.error(f"[Ingest] {error_msg}")
        results["errors"].append(error_msg)
        run_log.complete("error", error_message=str(e), error_stack=traceback.format_exc())

    results["completed_at"] = datetime.now(timezone.utc).isoformat()
    results["processed"] = results["enqueued"]
    return results


def ingest_manual_item(
    text: str,
    image_url: str = None,
    title: str = None,
    post_type: str = DEFAULT_POST_TYPE,
    stores: Stores = None
) -> Dict[str, Any]:
    """Queue an editor-written item; its image is usually an /api/upload URL."""
    stores = stores or open_stores()
    candidate = Candidate(
        external_id=f"manual_{uuid.uuid4().hex}",
        raw_text=text or "",
        source_name=MANUAL_SOURCE_NAME,
        source_kind=SOURCE_MANUAL,
        title=title or None,
        media=ManualMedia(image_url=image_url or None),
        requested_type=post_type or DEFAULT_POST_TYPE,
    )
    outcome = IngestionCoordinator(stores.queue, stores.posts).ingest([candidate])
    logger.info(f"[Ingest] Manual item {candidate.external_id}: enqueued={outcome.enqueued}")

    results = asdict(outcome)
    results["id"] = candidate.external_id if outcome.enqueued else None
    results["queued_count"] = outcome.enqueued
    return results
