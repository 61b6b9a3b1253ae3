"""
Social post ingestion jobs

- ingest_user_tweets: latest posts of one timeline (scheduled per watched user)
- ingest_tweets_by_ids: specific posts chosen by an editor

Both run through the same IngestionCoordinator as the feeds. Upstream
failures are reported in the results dict with "upstream_error" set so the
HTTP trigger can answer 502 instead of 500.
"""

import logging
import traceback
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from ..context import Stores, open_stores
from ..errors import UpstreamFetchError
from ..models import DEFAULT_POST_TYPE, Candidate
from ..utils.execution_logger import ExecutionLogger
from ..utils.twitter import TwitterClient
from .ingest import IngestionCoordinator, IngestResult

logger = logging.getLogger(__name__)


def _run_social_ingest(
    job_type: str,
    label: str,
    fetch: Callable[[], List[Candidate]],
    stores: Stores
) -> Dict[str, Any]:
    started_at = datetime.now(timezone.utc)
    results = {
        "started_at": started_at.isoformat(),
        "source": label,
        "fetched": 0,
        "upstream_error": False,
        "errors": [],
    }
    results.update(asdict(IngestResult()))

    run_log = ExecutionLogger(stores.db, job_type=job_type)

    try:
        candidates = fetch()
        results["fetched"] = len(candidates)

        outcome = IngestionCoordinator(stores.queue, stores.posts).ingest(candidates)
        results.update(asdict(outcome))

        run_log.info(
            f"[Ingest] {label}: {outcome.enqueued} of {len(candidates)} enqueued, "
            f"{outcome.skipped_duplicate} duplicates"
        )
        run_log.set_summary("fetched", len(candidates))
        run_log.set_summary("enqueued", outcome.enqueued)
        run_log.complete("success")

    except UpstreamFetchError as e:
        results["upstream_error"] = True
        results["errors"].append(str(e))
        run_log.warn(f"[Ingest] {label}: upstream fetch failed: {e}")
        run_log.complete("error", error_message=str(e))

    except Exception as e:
        error_msg = f"{label} ingestion failed: {e}"
        results["errors"].append(error_msg)
        run_log.error(f"[Ingest] {error_msg}")
        run_log.complete("error", error_message=str(e), error_stack=traceback.format_exc())

    results["completed_at"] = datetime.now(timezone.utc).isoformat()
    results["processed"] = results["enqueued"]
    results["queued_count"] = results["enqueued"]
    return results


def ingest_user_tweets(
    user_name: str,
    limit: int = None,
    post_type: str = DEFAULT_POST_TYPE,
    stores: Stores = None,
    client: TwitterClient = None
) -> Dict[str, Any]:
    """Queue new posts from @user_name's timeline."""
    user_name = (user_name or "").lstrip("@")
    stores = stores or open_stores()
    client = client or TwitterClient()
    return _run_social_ingest(
        "ingest_user_tweets",
        f"@{user_name}",
        lambda: client.fetch_user_last_tweets(user_name, limit=limit, post_type=post_type),
        stores,
    )


def ingest_tweets_by_ids(
    tweet_ids: List[str],
    post_type: str = DEFAULT_POST_TYPE,
    stores: Stores = None,
    client: TwitterClient = None
) -> Dict[str, Any]:
    """Queue specific posts by id."""
    if isinstance(tweet_ids, str):
        tweet_ids = tweet_ids.split(",")
    ids = [str(i).strip() for i in tweet_ids if str(i).strip()]
    stores = stores or open_stores()
    client = client or TwitterClient()
    return _run_social_ingest(
        "ingest_tweets_by_ids",
        f"{len(ids)} tweet ids",
        lambda: client.fetch_tweets_by_ids(ids, post_type=post_type),
        stores,
    )
