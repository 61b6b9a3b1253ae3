"""
Newsdesk - HTTP Trigger Service
Flask app for triggering RQ jobs and running editor-initiated ingests

Endpoints:
    GET  /health                      - Health check
    POST /jobs/<step_name>            - Enqueue a pipeline job
    GET  /jobs/<job_id>               - Get job status
    GET  /runs/<job_type>             - Recent execution logs for a job type
    GET  /api/fetch-user-last-tweets  - Queue new posts from one timeline
    GET  /api/fetch-tweets-by-ids     - Queue specific posts by id
    POST /api/manual-items            - Queue an editor-written item
    POST /api/upload                  - Upload an image, returns its URL

Environment:
    REDIS_URL: Redis connection string
    TRIGGER_SECRET: Shared secret for authentication (optional)
"""

import os
import re
import logging
from datetime import datetime, timezone

from dotenv import load_dotenv
from flask import Flask, request, jsonify
from redis import Redis
from rq import Queue
from rq.exceptions import NoSuchJobError
from rq.job import Job

from .context import open_stores
from .errors import AssetUploadError
from .jobs.ingest import ingest_feeds, ingest_manual_item
from .jobs.ingest_social import ingest_tweets_by_ids, ingest_user_tweets
from .jobs.process_queue import process_queue
from .models import DEFAULT_POST_TYPE
from .utils.execution_logger import get_recent_logs
from .utils.images import ImageClient

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Redis connection
REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379')
TRIGGER_SECRET = os.environ.get('TRIGGER_SECRET', '')

# Job name -> (function, queue name); matches worker.py priorities
JOB_FUNCTIONS = {
    'ingest_feeds': (ingest_feeds, 'default'),
    'ingest_user_tweets': (ingest_user_tweets, 'low'),
    'ingest_tweets_by_ids': (ingest_tweets_by_ids, 'default'),
    'process_queue': (process_queue, 'high'),
}

UPLOAD_NAME_PATTERN = re.compile(r'[^a-zA-Z0-9_-]+')


def get_redis_connection():
    """Get Redis connection from URL"""
    return Redis.from_url(REDIS_URL)


def verify_auth():
    """Verify request authentication if TRIGGER_SECRET is set"""
    if not TRIGGER_SECRET:
        return True

    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        token = auth_header[7:]
        return token == TRIGGER_SECRET
    return False


def unauthorized():
    return jsonify({'success': False, 'error': 'Unauthorized'}), 401


def _positive_int(value):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _ingest_response(results):
    """Map a social ingest results dict to an HTTP response."""
    if results.get('upstream_error'):
        return jsonify({'success': False, 'error': results['errors'][0]}), 502
    if results.get('errors'):
        return jsonify({'success': False, 'error': results['errors'][0]}), 500
    return jsonify({
        'success': True,
        'queued_count': results['enqueued'],
        'fetched': results['fetched'],
        'skipped_duplicate': results['skipped_duplicate'],
        'skipped_conflict': results['skipped_conflict'],
    })


@app.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    try:
        conn = get_redis_connection()
        conn.ping()
        redis_status = 'connected'
    except Exception as e:
        redis_status = f'error: {str(e)}'

    return jsonify({
        'status': 'ok',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'redis': redis_status,
        'available_jobs': list(JOB_FUNCTIONS.keys())
    })


@app.route('/jobs/<step_name>', methods=['POST'])
def trigger_job(step_name: str):
    """
    Enqueue a pipeline job.

    Request Body (optional): keyword arguments for the job, e.g.
        ingest_feeds:          {"debug": true}
        ingest_user_tweets:    {"user_name": "ysjagan", "limit": 5}
        ingest_tweets_by_ids:  {"tweet_ids": ["1", "2"], "post_type": "breaking_news"}
        process_queue:         {"max_items": 3}

    Returns:
        {"success": true, "job_id": "abc123", "step": "...", "queue": "...", "enqueued_at": "..."}
    """
    if not verify_auth():
        return unauthorized()

    if step_name not in JOB_FUNCTIONS:
        return jsonify({
            'success': False,
            'error': f'Invalid step: {step_name}',
            'valid_steps': list(JOB_FUNCTIONS.keys())
        }), 400

    job_func, queue_name = JOB_FUNCTIONS[step_name]
    params = request.get_json(silent=True) or {}

    try:
        queue = Queue(queue_name, connection=get_redis_connection())
        job = queue.enqueue(job_func, job_timeout='30m', kwargs=params)

        logger.info(f"Triggered job {step_name} with ID {job.id}")

        return jsonify({
            'success': True,
            'job_id': job.id,
            'step': step_name,
            'queue': queue_name,
            'enqueued_at': datetime.now(timezone.utc).isoformat()
        })

    except Exception as e:
        logger.error(f"Failed to enqueue job {step_name}: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@app.route('/jobs/<job_id>', methods=['GET'])
def get_job_status(job_id: str):
    """Status of a job by ID (queued, started, finished, failed)."""
    try:
        job = Job.fetch(job_id, connection=get_redis_connection())
    except NoSuchJobError as e:
        return jsonify({
            'job_id': job_id,
            'status': 'not_found',
            'error': str(e)
        }), 404

    response = {
        'job_id': job_id,
        'status': job.get_status(),
        'created_at': job.created_at.isoformat() if job.created_at else None,
        'started_at': job.started_at.isoformat() if job.started_at else None,
        'ended_at': job.ended_at.isoformat() if job.ended_at else None,
    }

    if job.is_finished:
        response['result'] = job.result
    elif job.is_failed:
        response['error'] = str(job.exc_info) if job.exc_info else 'Unknown error'

    return jsonify(response)


@app.route('/runs/<job_type>', methods=['GET'])
def list_runs(job_type: str):
    """Most recent execution_logs rows for a job type."""
    if not verify_auth():
        return unauthorized()

    limit = _positive_int(request.args.get('limit')) or 10
    try:
        stores = open_stores()
        runs = get_recent_logs(stores.db, job_type=job_type, limit=min(limit, 100))
    except Exception as e:
        logger.error(f"Failed to read execution logs for {job_type}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

    return jsonify({'success': True, 'job_type': job_type, 'runs': runs})


@app.route('/api/fetch-user-last-tweets', methods=['GET'])
def fetch_user_last_tweets():
    """Synchronously queue new posts from ?userName=...&limit=...&type=..."""
    if not verify_auth():
        return unauthorized()

    user_name = (request.args.get('userName') or '').strip()
    if not user_name:
        return jsonify({'success': False, 'error': 'userName is required'}), 400

    try:
        results = ingest_user_tweets(
            user_name,
            limit=_positive_int(request.args.get('limit')),
            post_type=request.args.get('type') or DEFAULT_POST_TYPE,
            stores=open_stores(),
        )
    except ValueError as e:
        logger.error(f"Timeline ingest not configured: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
    return _ingest_response(results)


@app.route('/api/fetch-tweets-by-ids', methods=['GET'])
def fetch_tweets_by_ids():
    """Synchronously queue ?tweet_ids=1,2,3&type=..."""
    if not verify_auth():
        return unauthorized()

    raw_ids = request.args.get('tweet_ids') or ''
    tweet_ids = [i.strip() for i in raw_ids.split(',') if i.strip()]
    if not tweet_ids:
        return jsonify({'success': False, 'error': 'tweet_ids required (comma separated)'}), 400

    try:
        results = ingest_tweets_by_ids(
            tweet_ids,
            post_type=request.args.get('type') or DEFAULT_POST_TYPE,
            stores=open_stores(),
        )
    except ValueError as e:
        logger.error(f"Tweet ingest not configured: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
    return _ingest_response(results)


@app.route('/api/manual-items', methods=['POST'])
def create_manual_item():
    """
    Queue an editor-written item.

    Request Body:
        {"text": "...", "title": "...", "image_url": "...", "type": "normal_post"}
    """
    if not verify_auth():
        return unauthorized()

    body = request.get_json(silent=True) or {}
    text = (body.get('text') or '').strip()
    if not text:
        return jsonify({'success': False, 'error': 'text is required'}), 400

    try:
        results = ingest_manual_item(
            text,
            image_url=body.get('image_url'),
            title=body.get('title'),
            post_type=body.get('type') or DEFAULT_POST_TYPE,
            stores=open_stores(),
        )
    except Exception as e:
        logger.error(f"Failed to queue manual item: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

    return jsonify({'success': True, 'id': results['id'], 'queued_count': results['queued_count']})


@app.route('/api/upload', methods=['POST'])
def upload_image():
    """Multipart upload (field "file"); returns {"url": ...}."""
    if not verify_auth():
        return unauthorized()

    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return jsonify({'success': False, 'error': 'No file uploaded'}), 400

    stem = UPLOAD_NAME_PATTERN.sub('-', os.path.splitext(upload.filename)[0]).strip('-') or 'image'

    try:
        url = ImageClient().upload(upload.read(), f"uploads/{stem}")
    except AssetUploadError as e:
        logger.error(f"Image upload failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 502

    return jsonify({'success': True, 'url': url})


if __name__ == '__main__':
    port = int(os.environ.get('TRIGGER_PORT', 5001))
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'

    logger.info(f"Starting HTTP Trigger Service on port {port}")
    app.run(host='0.0.0.0', port=port, debug=debug)
