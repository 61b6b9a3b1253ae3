"""
Newsdesk - Redis Queue Worker
Main entry point for background job processing

Usage:
    # Run worker only
    python -m newsdesk.worker

    # Run scheduler (for cron jobs, separate process)
    python -m newsdesk.worker --with-scheduler

Schedule (UTC):
    process_queue        - every minute
    ingest_feeds         - every 15 minutes
    ingest_user_tweets   - every 30 minutes per TWITTER_WATCH_USERS entry
"""

import os
import sys
import logging
from datetime import datetime, timezone

from dotenv import load_dotenv
from redis import Redis
from rq import Worker, Queue
from rq_scheduler import Scheduler

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Redis connection
REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379')

# One queue tick handles QUEUE_BATCH_SIZE items plus pacing; it must end
# well before the next minute's tick would pile up behind it
PROCESS_QUEUE_TIMEOUT = '10m'
INGEST_TIMEOUT = '15m'


def get_redis_connection():
    """Get Redis connection from URL"""
    return Redis.from_url(REDIS_URL)


def setup_scheduled_jobs(scheduler: Scheduler, watch_users=None):
    """
    Configure all scheduled jobs for the newsdesk pipeline.

    Returns:
        Number of cron entries registered
    """
    from .config.settings import TWITTER_WATCH_USERS
    from .jobs.ingest import ingest_feeds
    from .jobs.ingest_social import ingest_user_tweets
    from .jobs.process_queue import process_queue

    watch_users = TWITTER_WATCH_USERS if watch_users is None else watch_users

    # Clear existing scheduled jobs
    for job in scheduler.get_jobs():
        scheduler.cancel(job)

    logger.info("[Scheduler] Setting up scheduled jobs...")

    scheduler.cron(
        '* * * * *',
        func=process_queue,
        queue_name='high',
        id='process_queue',
        timeout=PROCESS_QUEUE_TIMEOUT,
        description='Drain the next batch of queued items into posts'
    )
    logger.info("[Scheduler] process_queue scheduled: every minute")

    scheduler.cron(
        '*/15 * * * *',
        func=ingest_feeds,
        queue_name='default',
        id='ingest_feeds',
        timeout=INGEST_TIMEOUT,
        description='Fetch RSS feeds and queue new entries'
    )
    logger.info("[Scheduler] ingest_feeds scheduled: every 15 minutes")

    registered = 2
    for index, user_name in enumerate(watch_users):
        # Spread timelines across the half hour to stay under API rate limits
        minute = (index * 3) % 30
        scheduler.cron(
            f'{minute},{minute + 30} * * * *',
            func=ingest_user_tweets,
            kwargs={'user_name': user_name},
            queue_name='low',
            id=f'ingest_user_tweets_{user_name.lower()}',
            timeout=INGEST_TIMEOUT,
            description=f'Queue new posts from @{user_name}'
        )
        logger.info(f"[Scheduler] ingest_user_tweets scheduled for @{user_name}: minutes {minute},{minute + 30}")
        registered += 1

    logger.info("[Scheduler] All jobs scheduled successfully")
    return registered


def run_scheduler():
    """Run the RQ scheduler for cron jobs"""
    conn = get_redis_connection()
    scheduler = Scheduler(connection=conn)

    setup_scheduled_jobs(scheduler)

    logger.info(f"[Scheduler] Starting scheduler at {datetime.now(timezone.utc).isoformat()}")
    scheduler.run()


def warmup_database():
    """
    Warm up the database and create missing tables.
    Render free tier PostgreSQL can be cold - this ensures it's ready before jobs run.
    """
    try:
        from .utils.db import DatabaseClient
        from .utils.schema import ensure_schema

        db = DatabaseClient()
        db.ping()
        ensure_schema(db)
        logger.info("[Worker] Database warm-up successful")
        return True
    except Exception as e:
        logger.warning(f"[Worker] Database warm-up failed (will retry on first job): {e}")
        return False


def run_worker():
    """Run the RQ worker"""
    conn = get_redis_connection()

    # Define queues to listen to (in priority order)
    queues = [
        Queue('high', connection=conn, default_timeout=1800),
        Queue('default', connection=conn, default_timeout=1800),
        Queue('low', connection=conn, default_timeout=1800),
    ]

    logger.info(f"[Worker] Starting worker at {datetime.now(timezone.utc).isoformat()}")
    logger.info("[Worker] Listening on queues: high, default, low")

    warmup_database()

    worker = Worker(queues, connection=conn)
    worker.work()


def main(argv=None):
    argv = sys.argv if argv is None else argv
    if '--with-scheduler' in argv or '--scheduler' in argv:
        # Run scheduler only (separate process)
        run_scheduler()
    else:
        run_worker()


if __name__ == '__main__':
    main()
