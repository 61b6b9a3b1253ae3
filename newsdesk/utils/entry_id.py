"""
Surrogate ids for feed entries

Feed entries carry no stable upstream id, so the queue key is derived from
the entry link: "rss_" + base36 DJB2 hash of the canonical link, or of the
title when the entry has no link. The id becomes the post's
external_source_id, so canonicalization must never merge two distinct
articles: only the scheme and host are case-folded, the path and query keep
their case.
"""

import string
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

ENTRY_ID_PREFIX = "rss_"

BASE36_DIGITS = string.digits + string.ascii_lowercase

# Query parameters added by share buttons and newsletters
TRACKING_PARAMS = frozenset({
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
    "fbclid", "gclid", "ref", "source",
})


def djb2(text: str) -> int:
    """32-bit DJB2 hash of `text`."""
    value = 5381
    for char in text:
        value = (value * 33 + ord(char)) & 0xFFFFFFFF
    return value


def to_base36(number: int) -> str:
    digits = []
    while True:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_DIGITS[remainder])
        if not number:
            return "".join(reversed(digits))


def canonical_link(url: Optional[str]) -> Optional[str]:
    """
    Link form used for hashing: lower-case scheme and host, tracking
    parameters and fragment removed, no trailing slash on the path.
    """
    url = (url or "").strip()
    if not url:
        return None

    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True)
             if key.lower() not in TRACKING_PARAMS]
    return urlunsplit((
        parts.scheme.lower(),
        parts.netloc.lower(),
        parts.path.rstrip("/"),
        urlencode(query),
        "",
    ))


def generate_entry_id(url: Optional[str] = None, title: Optional[str] = None) -> Optional[str]:
    """Queue id for a feed entry, or None when it has neither link nor title."""
    basis = canonical_link(url) or (title or "").strip()
    if not basis:
        return None
    return f"{ENTRY_ID_PREFIX}{to_base36(djb2(basis))}"
