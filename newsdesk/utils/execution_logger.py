"""
Execution Logger for Newsdesk Workers

Records one row per job run in the execution_logs table:
- Summary metrics (enqueued, published, dropped, ...)
- Detailed log entries (timestamp, level, message)
- Status tracking (running, success, error)

Usage:
    run_log = ExecutionLogger(db, job_type='process_queue')
    run_log.info("Starting queue batch")
    run_log.set_summary('published', 2)
    run_log.complete('success')

Persistence is best effort: a failed write to execution_logs is logged and
never fails the job itself.
"""

import json
import uuid
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from .db import DatabaseClient

# Standard Python logger for stdout (Render captures this)
py_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionLogger:
    """
    Execution logger that writes to both stdout and the execution_logs table.

    The full entry list is persisted when complete() is called.
    """

    def __init__(self, db: Optional[DatabaseClient], job_type: str):
        self.db = db
        self.run_id = str(uuid.uuid4())
        self.job_type = job_type
        self.entries: List[Dict[str, Any]] = []
        self.summary: Dict[str, Any] = {}
        self.started_at = _utcnow()
        self._db_record_id: Optional[str] = None

        self._create_initial_record()

    def _create_initial_record(self):
        if self.db is None:
            return
        sql = """
            INSERT INTO execution_logs (
                job_type, run_id, started_at, status, summary, log_entries
            ) VALUES (%s, %s, %s, 'running', %s, %s)
            RETURNING id
        """
        try:
            with self.db.get_cursor() as cursor:
                cursor.execute(sql, (
                    self.job_type,
                    self.run_id,
                    self.started_at,
                    json.dumps({}),
                    json.dumps([])
                ))
                row = cursor.fetchone()
                if row:
                    self._db_record_id = str(row['id'])
        except Exception as e:
            py_logger.error(f"Failed to create execution log record: {e}")

    def log(self, level: str, message: str, metadata: Optional[Dict] = None):
        entry = {
            'timestamp': _utcnow().isoformat(),
            'level': level,
            'message': message
        }
        if metadata:
            entry['metadata'] = metadata
        self.entries.append(entry)

        log_msg = f"[{self.job_type}] {message}"
        if metadata:
            log_msg += f" {json.dumps(metadata, default=str)}"

        if level == 'error':
            py_logger.error(log_msg)
        elif level == 'warn':
            py_logger.warning(log_msg)
        else:
            py_logger.info(log_msg)

    def info(self, message: str, metadata: Optional[Dict] = None):
        self.log('info', message, metadata)

    def warn(self, message: str, metadata: Optional[Dict] = None):
        self.log('warn', message, metadata)

    def error(self, message: str, metadata: Optional[Dict] = None):
        self.log('error', message, metadata)

    def set_summary(self, key: str, value: Any):
        self.summary[key] = value

    def complete(self, status: str = 'success', error_message: Optional[str] = None,
                 error_stack: Optional[str] = None):
        """
        Mark the run as complete and persist it.

        Args:
            status: 'success' or 'error'
            error_message: Error message if status is 'error'
            error_stack: Stack trace if available
        """
        completed_at = _utcnow()
        duration_ms = int((completed_at - self.started_at).total_seconds() * 1000)
        py_logger.info(f"[{self.job_type}] Run complete: status={status}, duration={duration_ms}ms")

        if not self._db_record_id:
            return

        sql = """
            UPDATE execution_logs SET
                completed_at = %s,
                duration_ms = %s,
                status = %s,
                summary = %s,
                log_entries = %s,
                error_message = %s,
                error_stack = %s
            WHERE id = %s
        """
        try:
            with self.db.get_cursor() as cursor:
                cursor.execute(sql, (
                    completed_at,
                    duration_ms,
                    status,
                    json.dumps(self.summary, default=str),
                    json.dumps(self.entries, default=str),
                    error_message,
                    error_stack,
                    self._db_record_id
                ))
        except Exception as e:
            py_logger.error(f"Failed to update execution log: {e}")


def get_recent_logs(db: DatabaseClient, job_type: Optional[str] = None,
                    limit: int = 10) -> List[Dict[str, Any]]:
    """Most recent runs, newest first, optionally for one job type."""
    conditions = []
    params: List[Any] = []

    if job_type:
        conditions.append("job_type = %s")
        params.append(job_type)

    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    params.append(limit)

    sql = f"""
        SELECT id, job_type, run_id, started_at, completed_at, duration_ms,
               status, summary, log_entries, error_message
        FROM execution_logs
        {where_clause}
        ORDER BY started_at DESC
        LIMIT %s
    """

    with db.get_cursor() as cursor:
        cursor.execute(sql, tuple(params))
        return [dict(row) for row in cursor.fetchall()]
