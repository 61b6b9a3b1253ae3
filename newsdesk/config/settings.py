"""
Pipeline settings

Every value can be overridden through the environment (.env is loaded by the
worker and trigger entry points).
"""

import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> list:
    raw = os.environ.get(name, "")
    return [part.strip() for part in raw.split(",") if part.strip()]


# Queue worker
QUEUE_BATCH_SIZE = int(os.environ.get("QUEUE_BATCH_SIZE", "3"))
INTER_ITEM_DELAY_SECONDS = float(os.environ.get("INTER_ITEM_DELAY_SECONDS", "6"))
REHOST_IMAGES = _env_bool("REHOST_IMAGES", False)

# Deduplication
RECENT_POSTS_WINDOW_HOURS = int(os.environ.get("RECENT_POSTS_WINDOW_HOURS", "48"))
FUZZY_TITLE_THRESHOLD = float(os.environ.get("FUZZY_TITLE_THRESHOLD", "0.6"))

# Ingestion
FEED_MAX_AGE_HOURS = int(os.environ.get("FEED_MAX_AGE_HOURS", "24"))
TWITTER_WATCH_USERS = _env_list("TWITTER_WATCH_USERS")

# External calls
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
GENERATION_TIMEOUT_SECONDS = float(os.environ.get("GENERATION_TIMEOUT_SECONDS", "60"))
SCRAPE_TIMEOUT_SECONDS = float(os.environ.get("SCRAPE_TIMEOUT_SECONDS", "10"))
HTTP_TIMEOUT_SECONDS = 30

# Fallback source label when neither an author nor a source label is known
GENERIC_SOURCE_NAME = "Social Media User"
