"""
Post Type Resolution

Video presence can promote the default type to "normal_video" but never
downgrades an explicit editorial type. Without a video every post is a
"normal_post", whatever was requested.
"""

from ..models import DEFAULT_POST_TYPE

VIDEO_POST_TYPE = "normal_video"


def resolve_post_type(requested_type: str, has_video: bool) -> str:
    if not has_video:
        return DEFAULT_POST_TYPE
    if not requested_type or requested_type == DEFAULT_POST_TYPE:
        return VIDEO_POST_TYPE
    return requested_type
