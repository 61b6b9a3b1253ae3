"""
RSS feed adapter

Fetches every configured feed in parallel (aiohttp + feedparser) and turns
recent entries into Candidates. Each feed is its own source: a feed that
fails comes back as an UpstreamFetchError in its slot and the rest are
unaffected.

Feed entries have no stable upstream id, so the queue key is a surrogate
hash of the link (see entry_id.py) and the fuzzy title check applies.
"""

import asyncio
import calendar
import html
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Union

import aiohttp
import feedparser
from feedparser.datetimes import _parse_date as feedparser_parse_date

from ..config.settings import FEED_MAX_AGE_HOURS, HTTP_TIMEOUT_SECONDS
from ..errors import UpstreamFetchError
from ..models import DEFAULT_POST_TYPE, SOURCE_SYNDICATION, Candidate, SyndicationMedia
from .entry_id import generate_entry_id

logger = logging.getLogger(__name__)

USER_AGENT = "Newsdesk-Bot/1.0"

TAG_PATTERN = re.compile(r"<[^>]+>")


@dataclass
class FeedFetch:
    """Candidates from one feed plus the entries it filtered out."""
    feed_name: str
    candidates: List[Candidate] = field(default_factory=list)
    skipped_old: int = 0
    skipped_invalid: int = 0


def parse_rss_date(date_str: str) -> Optional[datetime]:
    """
    Parse an RSS date string into a timezone-aware datetime.

    Handles RFC 2822 (standard RSS), ISO 8601, and whatever else
    feedparser's own date parser accepts.
    """
    if not date_str:
        return None

    try:
        dt = parsedate_to_datetime(date_str)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except (TypeError, ValueError):
        pass

    if 'T' in date_str:
        iso = date_str[:-1] + '+00:00' if date_str.endswith('Z') else date_str
        try:
            dt = datetime.fromisoformat(iso)
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt
        except ValueError:
            pass

    parsed = feedparser_parse_date(date_str)
    if parsed:
        return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)

    return None


def is_within_last_hours(date_str: str, hours: int = FEED_MAX_AGE_HOURS, now: datetime = None) -> bool:
    """True if the date is within the window; unparseable dates are kept."""
    parsed_date = parse_rss_date(date_str)
    if not parsed_date:
        return True

    now = now or datetime.now(timezone.utc)
    return parsed_date >= now - timedelta(hours=hours)


def strip_html(text: Optional[str]) -> str:
    """Plain text from an HTML summary."""
    if not text:
        return ""
    text = html.unescape(TAG_PATTERN.sub(" ", text))
    return " ".join(text.split())


def _entry_html(entry: Dict[str, Any]) -> Optional[str]:
    content = entry.get("content") or []
    if content and content[0].get("value"):
        return content[0]["value"]
    return entry.get("summary")


def _entry_enclosures(entry: Dict[str, Any]) -> List[Dict[str, Any]]:
    """media:content items first, then <enclosure> links."""
    enclosures = []
    for media in entry.get("media_content") or []:
        enclosures.append({
            "url": media.get("url"),
            "type": media.get("type"),
            "medium": media.get("medium"),
            "width": media.get("width"),
            "height": media.get("height"),
        })
    for enc in entry.get("enclosures") or []:
        enclosures.append({
            "url": enc.get("href") or enc.get("url"),
            "type": enc.get("type"),
        })
    return [e for e in enclosures if e.get("url")]


def entry_to_candidate(entry: Dict[str, Any], feed: Dict[str, str]) -> Optional[Candidate]:
    """Normalize one feedparser entry. None when it has neither link nor title."""
    title = (entry.get("title") or "").strip()
    link = (entry.get("link") or "").strip()

    entry_id = generate_entry_id(link, title)
    if not entry_id:
        return None

    rendered = _entry_html(entry)
    summary = strip_html(entry.get("summary") or rendered)
    raw_text = f"{title}\n\n{summary}".strip() if summary and summary != title else title

    thumbnails = entry.get("media_thumbnail") or []
    thumbnail_url = thumbnails[0].get("url") if thumbnails else None

    return Candidate(
        external_id=entry_id,
        raw_text=raw_text,
        source_name=feed.get("source_id") or feed["name"],
        source_kind=SOURCE_SYNDICATION,
        stable_id=False,
        title=title or None,
        source_url=link or None,
        media=SyndicationMedia(
            enclosures=_entry_enclosures(entry),
            thumbnail_url=thumbnail_url,
            html=rendered,
        ),
        requested_type=feed.get("post_type") or DEFAULT_POST_TYPE,
    )


def parse_feed(content: str, feed: Dict[str, str], max_age_hours: int = FEED_MAX_AGE_HOURS) -> FeedFetch:
    """Candidates from a feed document, skipping old and unusable entries."""
    parsed = feedparser.parse(content)
    result = FeedFetch(feed_name=feed["name"])

    for entry in parsed.entries:
        pub_date = entry.get("published") or entry.get("updated") or ""
        if pub_date and not is_within_last_hours(pub_date, max_age_hours):
            result.skipped_old += 1
            continue

        candidate = entry_to_candidate(entry, feed)
        if candidate is None:
            result.skipped_invalid += 1
            continue
        result.candidates.append(candidate)

    return result


async def fetch_feed(
    session: aiohttp.ClientSession,
    feed: Dict[str, str],
    max_age_hours: int = FEED_MAX_AGE_HOURS
) -> FeedFetch:
    """
    Fetch and parse a single RSS feed.

    Raises:
        UpstreamFetchError: timeout, transport error or non-200 status
    """
    try:
        async with session.get(
            feed["url"],
            timeout=aiohttp.ClientTimeout(total=HTTP_TIMEOUT_SECONDS),
            headers={"User-Agent": USER_AGENT}
        ) as response:
            if response.status != 200:
                raise UpstreamFetchError(feed["name"], f"HTTP {response.status}")
            content = await response.text()
    except asyncio.TimeoutError as e:
        raise UpstreamFetchError(feed["name"], "timeout") from e
    except aiohttp.ClientError as e:
        raise UpstreamFetchError(feed["name"], str(e)) from e

    result = parse_feed(content, feed, max_age_hours)
    logger.info(f"[RSS] Fetched {len(result.candidates)} entries from {feed['name']}")
    return result


async def fetch_all_feeds(
    feeds: List[Dict[str, str]],
    max_age_hours: int = FEED_MAX_AGE_HOURS
) -> List[Union[FeedFetch, Exception]]:
    """
    Fetch all RSS feeds in parallel.

    Returns one entry per feed, in input order: a FeedFetch, or the exception
    that feed raised.
    """
    logger.info(f"[RSS] Fetching {len(feeds)} RSS feeds in parallel...")

    async with aiohttp.ClientSession() as session:
        tasks = [fetch_feed(session, feed, max_age_hours) for feed in feeds]
        return await asyncio.gather(*tasks, return_exceptions=True)
