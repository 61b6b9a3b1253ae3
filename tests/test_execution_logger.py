import json
import unittest

from newsdesk.utils.execution_logger import ExecutionLogger, get_recent_logs
from tests.fakes import cursor_db


class TestExecutionLogger(unittest.TestCase):
    def test_without_database(self):
        run_log = ExecutionLogger(None, job_type="process_queue")
        run_log.info("Starting")
        run_log.warn("Slow feed")
        run_log.set_summary("published", 2)
        run_log.complete("success")

        self.assertEqual([e["level"] for e in run_log.entries], ["info", "warn"])
        self.assertEqual(run_log.summary, {"published": 2})

    def test_run_row_is_created_then_completed(self):
        db, cursor = cursor_db()
        cursor.fetchone.return_value = {"id": 11}

        run_log = ExecutionLogger(db, job_type="ingest_feeds")
        run_log.error("Feed NTV failed")
        run_log.set_summary("enqueued", 4)
        run_log.complete("error", error_message="NTV timeout")

        sql, params = cursor.execute.call_args[0]
        self.assertIn("UPDATE execution_logs", sql)
        self.assertEqual(params[2], "error")
        self.assertEqual(json.loads(params[3]), {"enqueued": 4})
        self.assertEqual(json.loads(params[4])[0]["message"], "Feed NTV failed")
        self.assertEqual(params[5], "NTV timeout")
        self.assertEqual(params[7], "11")

    def test_logging_write_failure_does_not_raise(self):
        db, cursor = cursor_db()
        cursor.execute.side_effect = RuntimeError("relation does not exist")

        run_log = ExecutionLogger(db, job_type="process_queue")
        run_log.complete("success")

        self.assertIsNone(run_log._db_record_id)


class TestRecentLogs(unittest.TestCase):
    def test_filters_by_job_type(self):
        db, cursor = cursor_db()
        cursor.fetchall.return_value = [{"job_type": "process_queue", "status": "success"}]

        runs = get_recent_logs(db, job_type="process_queue", limit=5)

        self.assertEqual(runs, [{"job_type": "process_queue", "status": "success"}])
        sql, params = cursor.execute.call_args[0]
        self.assertIn("WHERE job_type = %s", sql)
        self.assertEqual(params, ("process_queue", 5))


if __name__ == "__main__":
    unittest.main()
