"""
Postgres schema for the newsdesk workers.

Schema creation is idempotent (CREATE ... IF NOT EXISTS) and runs when the
worker starts. Unique constraints are named explicitly so the stores can tell
which one a UniqueViolation came from.
"""

import logging

from .db import DatabaseClient

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    # Pending work, drained oldest first
    """
    CREATE TABLE IF NOT EXISTS queue_items (
      id TEXT PRIMARY KEY,
      seq BIGSERIAL,
      text TEXT,
      title TEXT,
      url TEXT,
      media JSONB NOT NULL DEFAULT '{}'::jsonb,
      author JSONB,
      requested_type TEXT NOT NULL DEFAULT 'normal_post',
      source_label TEXT,
      source_kind TEXT NOT NULL DEFAULT 'social',
      enqueued_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_queue_items_enqueued ON queue_items (enqueued_at, seq);",
    "CREATE INDEX IF NOT EXISTS idx_queue_items_url ON queue_items (url) WHERE url IS NOT NULL;",
    # Tag registry (slug is the identity, not the display name)
    """
    CREATE TABLE IF NOT EXISTS tags (
      id BIGSERIAL PRIMARY KEY,
      name TEXT NOT NULL,
      slug TEXT NOT NULL,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      CONSTRAINT tags_slug_key UNIQUE (slug)
    );
    """,
    # Published posts
    """
    CREATE TABLE IF NOT EXISTS posts (
      id BIGSERIAL PRIMARY KEY,
      post_id BIGINT NOT NULL,
      title TEXT NOT NULL,
      summary TEXT,
      body TEXT,
      slug TEXT,
      external_source_id TEXT,
      canonical_url TEXT,
      primary_image_url TEXT,
      video_url TEXT,
      media JSONB NOT NULL DEFAULT '[]'::jsonb,
      tag_ids BIGINT[] NOT NULL DEFAULT '{}',
      categories TEXT[] NOT NULL DEFAULT '{General}',
      type TEXT NOT NULL DEFAULT 'normal_post',
      published_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      source_name TEXT,
      source TEXT NOT NULL DEFAULT 'Manual',
      source_type TEXT NOT NULL DEFAULT 'manual',
      source_title TEXT,
      lang TEXT NOT NULL DEFAULT 'te',
      is_published BOOLEAN NOT NULL DEFAULT TRUE,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      CONSTRAINT posts_post_id_key UNIQUE (post_id),
      CONSTRAINT posts_external_source_id_key UNIQUE (external_source_id),
      CONSTRAINT posts_canonical_url_key UNIQUE (canonical_url)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_posts_published_at ON posts (published_at DESC);",
    # Job run history for the dashboard
    """
    CREATE TABLE IF NOT EXISTS execution_logs (
      id BIGSERIAL PRIMARY KEY,
      job_type TEXT NOT NULL,
      run_id TEXT NOT NULL,
      started_at TIMESTAMPTZ NOT NULL,
      completed_at TIMESTAMPTZ,
      duration_ms INTEGER,
      status TEXT NOT NULL DEFAULT 'running',
      summary JSONB NOT NULL DEFAULT '{}'::jsonb,
      log_entries JSONB NOT NULL DEFAULT '[]'::jsonb,
      error_message TEXT,
      error_stack TEXT,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_execution_logs_job ON execution_logs (job_type, created_at DESC);",
]


def ensure_schema(db: DatabaseClient) -> None:
    """Create tables and indexes if they do not exist."""
    with db.get_cursor() as cursor:
        for statement in SCHEMA_STATEMENTS:
            cursor.execute(statement)
    logger.info(f"[Schema] Ensured {len(SCHEMA_STATEMENTS)} schema statements")
