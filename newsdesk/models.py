"""
Shared record types for the newsdesk pipeline.

Candidate  - produced by a source adapter, never persisted directly
QueueItem  - a deduplicated unit of pending work (queue_items table)
Post       - the published article (posts table)

Media payloads are a tagged union keyed by "kind" so the queue can store
them as JSON and Media Resolution can dispatch on the variant.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

DEFAULT_POST_TYPE = "normal_post"

SOURCE_SOCIAL = "social"
SOURCE_SYNDICATION = "syndication"
SOURCE_MANUAL = "manual"


# =========================================================================
# MEDIA PAYLOADS
# =========================================================================

@dataclass(frozen=True)
class SocialMedia:
    """Attachment entities from the social API (extendedEntities.media or media)."""
    entities: List[Dict[str, Any]] = field(default_factory=list)

    kind = "social"


@dataclass(frozen=True)
class SyndicationMedia:
    """Enclosures, thumbnail and rendered HTML from an RSS entry."""
    enclosures: List[Dict[str, Any]] = field(default_factory=list)
    thumbnail_url: Optional[str] = None
    html: Optional[str] = None

    kind = "syndication"


@dataclass(frozen=True)
class ManualMedia:
    """A single image URL supplied by an editor."""
    image_url: Optional[str] = None

    kind = "manual"


MediaPayload = Union[SocialMedia, SyndicationMedia, ManualMedia]


def media_payload_to_dict(payload: Optional[MediaPayload]) -> Dict[str, Any]:
    """Serialize a media payload for JSON storage."""
    if isinstance(payload, SocialMedia):
        return {"kind": SocialMedia.kind, "entities": list(payload.entities)}
    if isinstance(payload, SyndicationMedia):
        return {
            "kind": SyndicationMedia.kind,
            "enclosures": list(payload.enclosures),
            "thumbnail_url": payload.thumbnail_url,
            "html": payload.html,
        }
    if isinstance(payload, ManualMedia):
        return {"kind": ManualMedia.kind, "image_url": payload.image_url}
    return {"kind": SocialMedia.kind, "entities": []}


def media_payload_from_dict(data: Optional[Dict[str, Any]]) -> MediaPayload:
    """Rebuild a media payload from its stored JSON form."""
    data = data or {}
    kind = data.get("kind")
    if kind == SyndicationMedia.kind:
        return SyndicationMedia(
            enclosures=list(data.get("enclosures") or []),
            thumbnail_url=data.get("thumbnail_url"),
            html=data.get("html"),
        )
    if kind == ManualMedia.kind:
        return ManualMedia(image_url=data.get("image_url"))
    return SocialMedia(entities=list(data.get("entities") or []))


# =========================================================================
# PIPELINE RECORDS
# =========================================================================

@dataclass(frozen=True)
class AuthorInfo:
    display_name: Optional[str] = None
    handle: Optional[str] = None
    profile_image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.display_name,
            "screen_name": self.handle,
            "profile_image_url_https": self.profile_image_url,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["AuthorInfo"]:
        if not data:
            return None
        return cls(
            display_name=data.get("name"),
            handle=data.get("screen_name"),
            profile_image_url=data.get("profile_image_url_https"),
        )


@dataclass(frozen=True)
class Candidate:
    """Normalized item discovered by a source adapter."""

    external_id: str
    raw_text: str
    source_name: str
    source_kind: str = SOURCE_SOCIAL
    stable_id: bool = True
    title: Optional[str] = None
    source_url: Optional[str] = None
    media: MediaPayload = field(default_factory=SocialMedia)
    author: Optional[AuthorInfo] = None
    requested_type: str = DEFAULT_POST_TYPE

    @property
    def headline(self) -> str:
        """Title if present, otherwise the first non-empty line of text."""
        return self.title or first_line(self.raw_text)


@dataclass
class QueueItem:
    id: str
    text: str
    url: Optional[str] = None
    title: Optional[str] = None
    media: MediaPayload = field(default_factory=SocialMedia)
    author: Optional[AuthorInfo] = None
    requested_type: str = DEFAULT_POST_TYPE
    source_label: Optional[str] = None
    source_kind: str = SOURCE_SOCIAL
    enqueued_at: Optional[datetime] = None

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "QueueItem":
        return cls(
            id=candidate.external_id,
            text=candidate.raw_text,
            url=candidate.source_url or None,
            title=candidate.title,
            media=candidate.media,
            author=candidate.author,
            requested_type=candidate.requested_type or DEFAULT_POST_TYPE,
            source_label=candidate.source_name,
            source_kind=candidate.source_kind,
        )

    @property
    def headline(self) -> str:
        return self.title or first_line(self.text)


@dataclass(frozen=True)
class MediaItem:
    kind: str
    url: str
    width: int = 0
    height: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"mediaType": self.kind, "url": self.url, "width": self.width, "height": self.height}


@dataclass
class Post:
    post_id: int
    title: str
    summary: Optional[str]
    body: Optional[str]
    external_source_id: str
    source_name: str
    slug: Optional[str] = None
    canonical_url: Optional[str] = None
    primary_image_url: Optional[str] = None
    video_url: Optional[str] = None
    media: List[MediaItem] = field(default_factory=list)
    tag_ids: List[int] = field(default_factory=list)
    categories: List[str] = field(default_factory=lambda: ["General"])
    type: str = DEFAULT_POST_TYPE
    published_at: Optional[datetime] = None
    source: str = "Manual"
    source_type: str = "manual"
    source_title: Optional[str] = None
    lang: str = "te"
    is_published: bool = True


def first_line(text: Optional[str]) -> str:
    """First non-empty line of a text block, stripped."""
    for line in (text or "").splitlines():
        if line.strip():
            return line.strip()
    return ""
