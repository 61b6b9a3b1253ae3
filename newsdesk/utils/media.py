"""
Media Resolution

Maps the source-shaped media payload of a queue item to the post's
primary image, video URL and ordered media list. Pure functions only; an
item with no usable media resolves to nulls and an empty list.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..models import ManualMedia, MediaItem, MediaPayload, SocialMedia, SyndicationMedia

IMG_SRC_PATTERN = re.compile(r"""<img\b[^>]*?\bsrc\s*=\s*["']([^"']+)["']""", re.IGNORECASE)

MP4_CONTENT_TYPE = "video/mp4"


@dataclass
class ResolvedMedia:
    primary_image_url: Optional[str] = None
    video_url: Optional[str] = None
    media: List[MediaItem] = field(default_factory=list)

    @property
    def has_video(self) -> bool:
        return bool(self.video_url)


def resolve_media(payload: Optional[MediaPayload]) -> ResolvedMedia:
    """Dispatch on the payload variant."""
    if isinstance(payload, SocialMedia):
        return _resolve_social(payload)
    if isinstance(payload, SyndicationMedia):
        return _resolve_syndication(payload)
    if isinstance(payload, ManualMedia):
        return _resolve_manual(payload)
    return ResolvedMedia()


# =========================================================================
# SOCIAL API ATTACHMENTS
# =========================================================================

def _to_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _photo_dimensions(entity: Dict[str, Any]) -> tuple:
    """original_info first, then sizes.large, else 0/0."""
    original = entity.get("original_info") or {}
    large = (entity.get("sizes") or {}).get("large") or {}
    width = _to_int(original.get("width")) or _to_int(large.get("w"))
    height = _to_int(original.get("height")) or _to_int(large.get("h"))
    return width, height


def select_best_mp4(variants: List[Dict[str, Any]]) -> Optional[str]:
    """
    Highest-bitrate mp4 variant URL.

    Variants in other formats are ignored even if their bitrate is higher;
    equal bitrates keep their original order.
    """
    mp4s = [v for v in variants or [] if v.get("content_type") == MP4_CONTENT_TYPE and v.get("url")]
    if not mp4s:
        return None
    best = sorted(mp4s, key=lambda v: _to_int(v.get("bitrate")), reverse=True)[0]
    return best["url"]


def _resolve_social(payload: SocialMedia) -> ResolvedMedia:
    resolved = ResolvedMedia()
    entities = [e for e in payload.entities if isinstance(e, dict)]

    for entity in entities:
        if entity.get("type") != "photo":
            continue
        url = entity.get("media_url_https") or entity.get("url")
        if not url:
            continue
        width, height = _photo_dimensions(entity)
        resolved.media.append(MediaItem(kind="image", url=url, width=width, height=height))
        if resolved.primary_image_url is None:
            resolved.primary_image_url = url

    # Only the first attachment is inspected for video
    if entities and entities[0].get("type") == "video":
        variants = (entities[0].get("video_info") or {}).get("variants") or []
        resolved.video_url = select_best_mp4(variants)

    return resolved


# =========================================================================
# RSS ENCLOSURES
# =========================================================================

def _is_image_enclosure(enclosure: Dict[str, Any]) -> bool:
    mime = (enclosure.get("type") or "").lower()
    return mime.startswith("image/") or enclosure.get("medium") == "image"


def first_inline_image(html: Optional[str]) -> Optional[str]:
    """src of the first <img> tag in rendered HTML."""
    if not html:
        return None
    match = IMG_SRC_PATTERN.search(html)
    return match.group(1) if match else None


def _resolve_syndication(payload: SyndicationMedia) -> ResolvedMedia:
    resolved = ResolvedMedia()
    enclosures = [e for e in payload.enclosures if isinstance(e, dict)]

    for enclosure in enclosures:
        url = enclosure.get("url") or enclosure.get("href")
        if not url:
            continue
        if _is_image_enclosure(enclosure):
            resolved.media.append(MediaItem(
                kind="image",
                url=url,
                width=_to_int(enclosure.get("width")),
                height=_to_int(enclosure.get("height")),
            ))
        elif resolved.video_url is None and (enclosure.get("type") or "").lower() == MP4_CONTENT_TYPE:
            resolved.video_url = url

    if resolved.media:
        resolved.primary_image_url = resolved.media[0].url
        return resolved

    fallback = payload.thumbnail_url or first_inline_image(payload.html)
    if fallback:
        resolved.primary_image_url = fallback
        resolved.media.append(MediaItem(kind="image", url=fallback))
    return resolved


# =========================================================================
# MANUAL
# =========================================================================

def _resolve_manual(payload: ManualMedia) -> ResolvedMedia:
    if not payload.image_url:
        return ResolvedMedia()
    return ResolvedMedia(
        primary_image_url=payload.image_url,
        media=[MediaItem(kind="image", url=payload.image_url)],
    )
