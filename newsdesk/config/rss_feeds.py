"""
RSS Feed Configuration for Ingestion

All feeds are fetched in parallel during ingestion; each feed is ingested
independently so one broken feed never blocks the others.

post_type is the requested post type for items from that feed.
"""

RSS_FEEDS = [
    # Telugu general news
    {"name": "NTV Telugu", "url": "https://ntvtelugu.com/feed", "source_id": "NTV Telugu", "post_type": "normal_post"},
    {"name": "TV9 Telugu", "url": "https://tv9telugu.com/feed", "source_id": "TV9 Telugu", "post_type": "normal_post"},
    {"name": "Oneindia Telugu", "url": "https://telugu.oneindia.com/rss/feeds/telugu-news-fb.xml", "source_id": "Oneindia Telugu", "post_type": "normal_post"},
    {"name": "Samayam Telugu", "url": "https://telugu.samayam.com/rssfeedsdefault.cms", "source_id": "Samayam Telugu", "post_type": "normal_post"},

    # National / breaking
    {"name": "The Hindu Andhra Pradesh", "url": "https://www.thehindu.com/news/national/andhra-pradesh/feeder/default.rss", "source_id": "The Hindu", "post_type": "breaking_news"},
    {"name": "The Hindu Telangana", "url": "https://www.thehindu.com/news/national/telangana/feeder/default.rss", "source_id": "The Hindu", "post_type": "breaking_news"},

    # Entertainment
    {"name": "123Telugu", "url": "https://www.123telugu.com/feed", "source_id": "123Telugu", "post_type": "entertainment"},
]

# For debugging - can limit to specific feeds
DEBUG_FEEDS = [
    {"name": "NTV Telugu", "url": "https://ntvtelugu.com/feed", "source_id": "NTV Telugu", "post_type": "normal_post"},
]


def get_feeds(debug: bool = False):
    """Get the appropriate feed list based on debug mode."""
    return DEBUG_FEEDS if debug else RSS_FEEDS
