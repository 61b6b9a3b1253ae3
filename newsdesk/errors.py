"""
Exception types shared by the newsdesk workers.

Duplicate rejection and missing media are normal outcomes and have no
exception type here.
"""


class UpstreamFetchError(Exception):
    """A source adapter (social API, RSS feed) failed to return candidates."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class GenerationError(Exception):
    """The generative call failed or returned content we cannot use."""


class AssetUploadError(Exception):
    """The asset store could not process or store an image."""


class StoreUnavailableError(Exception):
    """The database could not be reached after all retries."""


class DuplicatePostError(Exception):
    """A post with the same external source id or canonical URL already exists."""

    def __init__(self, constraint: str):
        super().__init__(f"Post already exists ({constraint})")
        self.constraint = constraint


class PostIdCollisionError(Exception):
    """The randomly drawn post_id is already taken."""
