import io
import unittest
from unittest import mock

from rq.exceptions import NoSuchJobError

from newsdesk import trigger
from newsdesk.errors import AssetUploadError

AUTH = {"Authorization": "Bearer s3cret"}


def social_results(**overrides):
    results = {
        "source": "Twitter", "fetched": 3, "upstream_error": False, "errors": [],
        "enqueued": 2, "skipped_duplicate": 1, "skipped_conflict": 0, "skipped_invalid": 0,
    }
    results.update(overrides)
    return results


class TriggerTestCase(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch.object(trigger, "TRIGGER_SECRET", "s3cret")
        patcher.start()
        self.addCleanup(patcher.stop)
        stores_patcher = mock.patch.object(trigger, "open_stores")
        self.open_stores = stores_patcher.start()
        self.addCleanup(stores_patcher.stop)
        self.client = trigger.app.test_client()


class TestJobs(TriggerTestCase):
    @mock.patch.object(trigger, "get_redis_connection")
    def test_health_needs_no_auth(self, get_redis_connection):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["redis"], "connected")
        self.assertIn("process_queue", response.get_json()["available_jobs"])

    def test_rejects_missing_token(self):
        self.assertEqual(self.client.post("/jobs/process_queue").status_code, 401)
        self.assertEqual(
            self.client.post("/jobs/process_queue", headers={"Authorization": "Bearer nope"}).status_code,
            401,
        )

    def test_unknown_step(self):
        response = self.client.post("/jobs/send_newsletter", headers=AUTH)
        self.assertEqual(response.status_code, 400)
        self.assertIn("ingest_feeds", response.get_json()["valid_steps"])

    @mock.patch.object(trigger, "get_redis_connection")
    @mock.patch.object(trigger, "Queue")
    def test_enqueue_on_matching_queue(self, queue_cls, get_redis_connection):
        queue_cls.return_value.enqueue.return_value = mock.Mock(id="job-1")

        response = self.client.post("/jobs/process_queue", json={"max_items": 2}, headers=AUTH)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["job_id"], "job-1")
        self.assertEqual(queue_cls.call_args[0][0], "high")
        _, kwargs = queue_cls.return_value.enqueue.call_args
        self.assertEqual(kwargs["kwargs"], {"max_items": 2})

    @mock.patch.object(trigger, "get_redis_connection")
    @mock.patch.object(trigger.Job, "fetch")
    def test_unknown_job_id(self, fetch, get_redis_connection):
        fetch.side_effect = NoSuchJobError("missing")
        response = self.client.get("/jobs/abc")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["status"], "not_found")

    @mock.patch.object(trigger, "get_recent_logs")
    def test_runs_limit_is_capped(self, get_recent_logs):
        get_recent_logs.return_value = [{"job_type": "process_queue", "status": "success"}]

        response = self.client.get("/runs/process_queue?limit=500", headers=AUTH)

        self.assertEqual(response.status_code, 200)
        _, kwargs = get_recent_logs.call_args
        self.assertEqual(kwargs["limit"], 100)


class TestSocialEndpoints(TriggerTestCase):
    def test_user_name_required(self):
        self.assertEqual(self.client.get("/api/fetch-user-last-tweets", headers=AUTH).status_code, 400)

    @mock.patch.object(trigger, "ingest_user_tweets")
    def test_user_timeline(self, ingest_user_tweets):
        ingest_user_tweets.return_value = social_results()

        response = self.client.get("/api/fetch-user-last-tweets?userName=ncbn&limit=5&type=breaking_news", headers=AUTH)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["queued_count"], 2)
        args, kwargs = ingest_user_tweets.call_args
        self.assertEqual(args, ("ncbn",))
        self.assertEqual(kwargs["limit"], 5)
        self.assertEqual(kwargs["post_type"], "breaking_news")

    @mock.patch.object(trigger, "ingest_user_tweets")
    def test_upstream_failure_is_502(self, ingest_user_tweets):
        ingest_user_tweets.return_value = social_results(upstream_error=True, errors=["Twitter: HTTP 429"], enqueued=0)
        response = self.client.get("/api/fetch-user-last-tweets?userName=ncbn", headers=AUTH)
        self.assertEqual(response.status_code, 502)

    @mock.patch.object(trigger, "ingest_tweets_by_ids")
    def test_tweets_by_ids(self, ingest_tweets_by_ids):
        ingest_tweets_by_ids.return_value = social_results()

        response = self.client.get("/api/fetch-tweets-by-ids?tweet_ids=1,%202,,", headers=AUTH)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(ingest_tweets_by_ids.call_args[0][0], ["1", "2"])

    def test_tweet_ids_required(self):
        self.assertEqual(self.client.get("/api/fetch-tweets-by-ids?tweet_ids=,", headers=AUTH).status_code, 400)


class TestEditorEndpoints(TriggerTestCase):
    def test_manual_item_needs_text(self):
        self.assertEqual(self.client.post("/api/manual-items", json={"text": "  "}, headers=AUTH).status_code, 400)

    @mock.patch.object(trigger, "ingest_manual_item")
    def test_manual_item(self, ingest_manual_item):
        ingest_manual_item.return_value = {"id": "manual_abc", "queued_count": 1}

        response = self.client.post(
            "/api/manual-items",
            json={"text": "Cabinet meets today", "image_url": "https://p.example/c.jpg"},
            headers=AUTH,
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["id"], "manual_abc")
        _, kwargs = ingest_manual_item.call_args
        self.assertEqual(kwargs["image_url"], "https://p.example/c.jpg")
        self.assertEqual(kwargs["post_type"], "normal_post")

    def test_upload_needs_file(self):
        self.assertEqual(self.client.post("/api/upload", data={}, headers=AUTH).status_code, 400)

    @mock.patch.object(trigger, "ImageClient")
    def test_upload(self, image_client):
        image_client.return_value.upload.return_value = "https://res.cloudinary.com/demo/uploads/cm-photo.webp"

        response = self.client.post(
            "/api/upload",
            data={"file": (io.BytesIO(b"bytes"), "CM photo.png")},
            content_type="multipart/form-data",
            headers=AUTH,
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["url"], "https://res.cloudinary.com/demo/uploads/cm-photo.webp")
        image_client.return_value.upload.assert_called_once_with(b"bytes", "uploads/CM-photo")

    @mock.patch.object(trigger, "ImageClient")
    def test_upload_failure_is_502(self, image_client):
        image_client.return_value.upload.side_effect = AssetUploadError("CLOUDINARY_URL is not configured")
        response = self.client.post(
            "/api/upload",
            data={"file": (io.BytesIO(b"bytes"), "a.png")},
            content_type="multipart/form-data",
            headers=AUTH,
        )
        self.assertEqual(response.status_code, 502)


if __name__ == "__main__":
    unittest.main()
