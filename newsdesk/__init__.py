"""Newsdesk Workers

Ingests social posts and RSS items, deduplicates them, queues the survivors
and turns queued items into published Telugu news posts via Gemini.
"""

__version__ = "1.0.0"
