"""
twitterapi.io client

Two fetches feed the queue:
- the latest posts of one user timeline
- specific posts by id (editor supplied)

Both normalize each post into a Candidate. Any transport or HTTP failure is
raised as UpstreamFetchError so the calling job can isolate it per source.
"""

import os
import logging
from typing import Any, Dict, List, Optional

import requests

from ..config.settings import HTTP_TIMEOUT_SECONDS
from ..errors import UpstreamFetchError
from ..models import DEFAULT_POST_TYPE, SOURCE_SOCIAL, AuthorInfo, Candidate, SocialMedia
from .authors import PLACEHOLDER_HANDLE, PLACEHOLDER_NAME, handle_from_url

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.twitterapi.io/twitter"
SOURCE_NAME = "Twitter"


def _media_entities(tweet: Dict[str, Any]) -> List[Dict[str, Any]]:
    """extendedEntities.media when present, otherwise the flat media list."""
    extended = (tweet.get("extendedEntities") or {}).get("media")
    if extended:
        return list(extended)
    media = tweet.get("media")
    return list(media) if isinstance(media, list) else []


def _author_from_tweet(tweet: Dict[str, Any]) -> Optional[AuthorInfo]:
    """Read either the legacy `user` object or twitterapi.io's `author` object."""
    user = tweet.get("user")
    if user:
        return AuthorInfo(
            display_name=user.get("name"),
            handle=user.get("screen_name"),
            profile_image_url=user.get("profile_image_url_https"),
        )
    author = tweet.get("author")
    if author:
        return AuthorInfo(
            display_name=author.get("name"),
            handle=author.get("userName"),
            profile_image_url=author.get("profilePicture"),
        )
    return None


def tweet_to_candidate(
    tweet: Dict[str, Any],
    post_type: str = DEFAULT_POST_TYPE,
    fallback_author: Optional[AuthorInfo] = None
) -> Optional[Candidate]:
    """
    Normalize one API tweet. Returns None for tweets without an id.

    A tweet with no handle gets the one in its URL, or the Unknown /
    Twitter User placeholders when the URL has none either.
    """
    tweet_id = tweet.get("id") or tweet.get("id_str")
    if not tweet_id:
        return None

    url = tweet.get("url") or tweet.get("twitterUrl")
    author = _author_from_tweet(tweet) or fallback_author

    if not author or not author.handle:
        handle = handle_from_url(url)
        profile = author.profile_image_url if author else None
        if handle:
            author = AuthorInfo(display_name=handle, handle=handle, profile_image_url=profile)
        else:
            author = AuthorInfo(display_name=PLACEHOLDER_NAME, handle=PLACEHOLDER_HANDLE, profile_image_url=profile)

    return Candidate(
        external_id=str(tweet_id),
        raw_text=tweet.get("text") or "",
        source_name=SOURCE_NAME,
        source_kind=SOURCE_SOCIAL,
        stable_id=True,
        source_url=url,
        media=SocialMedia(entities=_media_entities(tweet)),
        author=author,
        requested_type=post_type or DEFAULT_POST_TYPE,
    )


class TwitterClient:
    """twitterapi.io wrapper for newsdesk workers"""

    def __init__(self, api_key: str = None, session: requests.Session = None):
        self.api_key = api_key or os.environ.get('TWITTER_API_KEY')
        if not self.api_key:
            raise ValueError("TWITTER_API_KEY environment variable is required")
        self.session = session or requests.Session()

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{API_BASE_URL}/{path}"
        try:
            response = self.session.get(
                url,
                params=params,
                headers={"X-API-Key": self.api_key},
                timeout=HTTP_TIMEOUT_SECONDS
            )
        except requests.RequestException as e:
            raise UpstreamFetchError(SOURCE_NAME, f"{path} request failed: {e}") from e

        if response.status_code != 200:
            raise UpstreamFetchError(SOURCE_NAME, f"{path} HTTP {response.status_code}: {response.text[:200]}")

        try:
            return response.json() or {}
        except ValueError as e:
            raise UpstreamFetchError(SOURCE_NAME, f"{path} returned invalid JSON") from e

    def fetch_user_last_tweets(
        self,
        user_name: str,
        limit: Optional[int] = None,
        post_type: str = DEFAULT_POST_TYPE
    ) -> List[Candidate]:
        """
        Latest posts from one user timeline.

        Args:
            user_name: Handle without the @
            limit: Keep only the first `limit` posts when positive
            post_type: Requested post type for every candidate
        """
        data = self._get("user/last_tweets", {"userName": user_name})
        tweets = data.get("tweets")
        if tweets is None:
            tweets = (data.get("data") or {}).get("tweets") or []

        if limit is not None and limit > 0:
            tweets = tweets[:limit]

        # Timeline posts belong to the requested user when the API omits the author
        fallback = AuthorInfo(display_name=user_name, handle=user_name)
        candidates = [tweet_to_candidate(t, post_type, fallback_author=fallback) for t in tweets]
        candidates = [c for c in candidates if c is not None]
        logger.info(f"[Twitter] Fetched {len(candidates)} tweets for @{user_name}")
        return candidates

    def fetch_tweets_by_ids(self, tweet_ids: List[str], post_type: str = DEFAULT_POST_TYPE) -> List[Candidate]:
        """Specific posts by id."""
        ids = [str(i).strip() for i in tweet_ids if str(i).strip()]
        if not ids:
            return []

        data = self._get("tweets", {"tweet_ids": ",".join(ids)})
        tweets = data.get("tweets") or []
        candidates = [tweet_to_candidate(t, post_type) for t in tweets]
        candidates = [c for c in candidates if c is not None]
        logger.info(f"[Twitter] Fetched {len(candidates)} of {len(ids)} requested tweets")
        return candidates
