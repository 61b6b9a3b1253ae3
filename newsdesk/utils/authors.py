"""
Author labeling for social posts.

Upstream payloads fill the author object inconsistently, so the handle falls
back to the one in the post URL (twitter.com/<handle>/status/...).
"""

from typing import Optional
from urllib.parse import urlparse

from ..models import AuthorInfo

SOCIAL_HOSTS = {"twitter.com", "x.com"}

# Values the social API (or our own ingestion) uses when the author is unknown
PLACEHOLDER_HANDLE = "Unknown"
PLACEHOLDER_NAME = "Twitter User"
PLACEHOLDERS = {PLACEHOLDER_HANDLE, PLACEHOLDER_NAME}

# Path segments after the host that are not user handles
RESERVED_PATHS = {"i", "intent", "home", "search", "hashtag", "share", "explore"}


def handle_from_url(url: Optional[str]) -> Optional[str]:
    """Extract the user handle from a twitter.com / x.com URL."""
    if not url:
        return None
    parsed = urlparse(url.strip())
    host = (parsed.hostname or "").lower()
    for prefix in ("www.", "mobile."):
        if host.startswith(prefix):
            host = host[len(prefix):]
    if host not in SOCIAL_HOSTS:
        return None
    segments = [s for s in parsed.path.split("/") if s]
    if not segments:
        return None
    handle = segments[0].lstrip("@")
    if not handle or handle.lower() in RESERVED_PATHS:
        return None
    return handle


def _usable(value: Optional[str]) -> bool:
    return bool(value) and value not in PLACEHOLDERS


def resolve_author_label(author: Optional[AuthorInfo], source_url: Optional[str]) -> Optional[str]:
    """
    Build "Display Name (@handle)" for the generative prompt and sourceName.

    Returns None when no usable handle can be found; the caller then falls
    back to the item's source label.
    """
    handle = author.handle if author else None
    display_name = author.display_name if author else None

    if not _usable(handle):
        extracted = handle_from_url(source_url)
        if not extracted:
            return None
        handle = extracted
        if not _usable(display_name):
            display_name = extracted

    if not _usable(display_name):
        display_name = handle

    return f"{display_name} (@{handle})"
