"""Newsdesk Background Jobs

ingest_feeds          - Fetch RSS feeds and queue new entries
ingest_user_tweets    - Queue new posts from one social timeline
ingest_tweets_by_ids  - Queue specific social posts by id
process_queue         - Turn the oldest queued items into published posts

Note: trigger.py and worker.py import the job modules directly.
"""
