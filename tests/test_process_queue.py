import unittest
from datetime import timedelta
from unittest import mock

from newsdesk.errors import GenerationError, PostIdCollisionError, StoreUnavailableError
from newsdesk.jobs.process_queue import QueueProcessor, process_queue
from newsdesk.models import (
    SOURCE_SYNDICATION,
    AuthorInfo,
    QueueItem,
    SocialMedia,
    SyndicationMedia,
)
from newsdesk.utils.pacing import PacingGate
from tests.fakes import BASE_TIME, FakeClock, FakeScraper, FakeWriter, article, make_stores


def queued(item_id, minutes, **kwargs):
    kwargs.setdefault("text", f"text of {item_id}")
    return QueueItem(id=item_id, enqueued_at=BASE_TIME + timedelta(minutes=minutes), **kwargs)


class QueueProcessorTestCase(unittest.TestCase):
    def setUp(self):
        self.stores = make_stores()
        self.clock = FakeClock()
        self.gate = PacingGate(6, clock=self.clock, sleep=self.clock.sleep)
        self.ids = iter(range(100000001, 100000100))

    def processor(self, writer, **kwargs):
        kwargs.setdefault("gate", self.gate)
        kwargs.setdefault("post_id_factory", lambda: next(self.ids))
        return QueueProcessor(
            queue_store=self.stores.queue,
            post_store=self.stores.posts,
            tag_registry=self.stores.tags,
            writer=writer,
            **kwargs
        )


class TestProcessBatch(QueueProcessorTestCase):
    def test_success_publishes_post_and_empties_queue(self):
        self.stores.queue.insert_many([queued("T1", 0, text="...")])
        writer = FakeWriter(article(title="X", summary="Y", content="Z", tags=["a", "b"]))

        result = self.processor(writer).process_batch(3)

        self.assertEqual(result.published, 1)
        self.assertEqual(result.processed, 1)
        post = self.stores.posts.by_source_id("T1")
        self.assertIsNotNone(post)
        self.assertEqual((post.title, post.summary, post.body), ("X", "Y", "Z"))
        self.assertEqual(len(post.tag_ids), 2)
        self.assertEqual(post.categories, ["General"])
        self.assertEqual(post.type, "normal_post")
        self.assertEqual(self.stores.queue.count(), 0)

    def test_fifo_respects_max_items(self):
        self.stores.queue.insert_many([queued("t3", 3), queued("t1", 1), queued("t2", 2)])
        writer = FakeWriter()

        result = self.processor(writer).process_batch(2)

        self.assertEqual(result.published, 2)
        self.assertEqual([c["text"] for c in writer.calls], ["text of t1", "text of t2"])
        self.assertEqual(self.stores.queue.ids, ["t3"])

    def test_generation_failure_drops_item(self):
        self.stores.queue.insert_many([queued("T1", 0), queued("T2", 1)])
        writer = FakeWriter(GenerationError("not JSON"), article())

        result = self.processor(writer).process_batch(3)

        self.assertEqual(result.dropped, 1)
        self.assertEqual(result.published, 1)
        self.assertIsNone(self.stores.posts.by_source_id("T1"))
        self.assertIsNotNone(self.stores.posts.by_source_id("T2"))
        self.assertEqual(self.stores.queue.count(), 0)

    def test_error_after_generation_leaves_item_queued(self):
        self.stores.queue.insert_many([queued("T1", 0), queued("T2", 1)])
        self.stores.posts.insert_errors.append(RuntimeError("disk full"))

        result = self.processor(FakeWriter()).process_batch(3)

        self.assertEqual(result.failed, 1)
        self.assertEqual(result.published, 1)
        self.assertEqual(self.stores.queue.ids, ["T1"])

    def test_store_unavailable_aborts_tick(self):
        self.stores.queue.insert_many([queued("T1", 0), queued("T2", 1)])
        self.stores.posts.insert_errors.append(StoreUnavailableError("connection refused"))
        writer = FakeWriter()

        with self.assertRaises(StoreUnavailableError):
            self.processor(writer).process_batch(3)
        self.assertEqual(len(writer.calls), 1)
        self.assertEqual(self.stores.queue.count(), 2)

    def test_already_published_item_is_removed(self):
        self.stores.queue.insert_many([queued("T1", 0)])
        self.processor(FakeWriter()).process_batch(1)
        self.stores.queue.insert_many([queued("T1", 5)])

        result = self.processor(FakeWriter()).process_batch(1)

        self.assertEqual(result.duplicates, 1)
        self.assertEqual(len(self.stores.posts.posts), 1)
        self.assertEqual(self.stores.queue.count(), 0)

    def test_post_id_collision_retries_with_new_id(self):
        self.stores.queue.insert_many([queued("T1", 0)])
        self.stores.posts.insert_errors.extend([PostIdCollisionError("1"), PostIdCollisionError("2")])

        result = self.processor(FakeWriter()).process_batch(1)

        self.assertEqual(result.published, 1)
        self.assertEqual(self.stores.posts.posts[0].post_id, 100000003)

    def test_post_id_collisions_exhausted(self):
        self.stores.queue.insert_many([queued("T1", 0)])
        self.stores.posts.insert_errors.extend([PostIdCollisionError(str(i)) for i in range(3)])

        result = self.processor(FakeWriter()).process_batch(1)

        self.assertEqual(result.failed, 1)
        self.assertEqual(self.stores.queue.ids, ["T1"])

    def test_pacing_between_items_only(self):
        self.stores.queue.insert_many([queued("T1", 0), queued("T2", 1), queued("T3", 2)])

        self.processor(FakeWriter()).process_batch(3)

        self.assertEqual(self.clock.sleeps, [6, 6])

    def test_empty_queue(self):
        writer = FakeWriter()
        result = self.processor(writer).process_batch(3)
        self.assertEqual(result.processed, 0)
        self.assertEqual(writer.calls, [])


class TestItemDerivation(QueueProcessorTestCase):
    def test_video_promotes_type_and_author_label(self):
        media = SocialMedia(entities=[{
            "type": "video",
            "video_info": {"variants": [
                {"content_type": "video/mp4", "bitrate": 832000, "url": "https://video.example/832.mp4"},
            ]},
        }])
        self.stores.queue.insert_many([queued(
            "T1", 0,
            media=media,
            author=AuthorInfo(display_name="Twitter User", handle="Unknown"),
            url="https://x.com/ncbn/status/1",
            source_label="Twitter",
            source_kind="social",
        )])
        writer = FakeWriter(article(category="Politics"))

        self.processor(writer).process_batch(1)

        post = self.stores.posts.by_source_id("T1")
        self.assertEqual(writer.calls[0]["author_label"], "ncbn (@ncbn)")
        self.assertEqual(post.source_name, "ncbn (@ncbn)")
        self.assertEqual(post.type, "normal_video")
        self.assertEqual(post.video_url, "https://video.example/832.mp4")
        self.assertEqual(post.categories, ["Politics"])
        self.assertEqual((post.source, post.source_type), ("Twitter", "twitter"))
        self.assertEqual(post.canonical_url, "https://x.com/ncbn/status/1")

    def test_generic_label_when_nothing_known(self):
        self.stores.queue.insert_many([queued("T1", 0)])
        writer = FakeWriter()

        self.processor(writer).process_batch(1)

        self.assertEqual(writer.calls[0]["author_label"], "Social Media User")

    def test_feed_item_gets_scraped_context(self):
        self.stores.queue.insert_many([queued(
            "rss_1", 0,
            title="Metro phase two approved",
            url="https://news.example/metro",
            media=SyndicationMedia(thumbnail_url="https://news.example/metro.jpg"),
            source_label="NTV Telugu",
            source_kind=SOURCE_SYNDICATION,
        )])
        writer = FakeWriter()
        scraper = FakeScraper("Long article body")

        self.processor(writer, scraper=scraper).process_batch(1)

        post = self.stores.posts.by_source_id("rss_1")
        self.assertEqual(scraper.urls, ["https://news.example/metro"])
        self.assertEqual(writer.calls[0]["context"], "Long article body")
        self.assertEqual(writer.calls[0]["author_label"], "NTV Telugu")
        self.assertEqual(post.primary_image_url, "https://news.example/metro.jpg")
        self.assertEqual(post.source_title, "Metro phase two approved")
        self.assertEqual((post.source, post.source_type), ("RSS", "rss"))

    def test_feed_url_on_x_dot_com_lookalike_keeps_feed_label(self):
        self.stores.queue.insert_many([queued(
            "rss_2", 0,
            title="National story",
            url="https://www.newsx.com/national/story",
            media=SyndicationMedia(),
            source_label="NewsX",
            source_kind=SOURCE_SYNDICATION,
        )])
        writer = FakeWriter()

        self.processor(writer).process_batch(1)

        self.assertEqual(writer.calls[0]["author_label"], "NewsX")
        self.assertEqual(self.stores.posts.by_source_id("rss_2").source_name, "NewsX")

    def test_social_items_are_not_scraped(self):
        self.stores.queue.insert_many([queued("T1", 0, url="https://x.com/a/status/1")])
        scraper = FakeScraper()

        self.processor(FakeWriter(), scraper=scraper).process_batch(1)

        self.assertEqual(scraper.urls, [])

    def test_rehost_replaces_image_urls(self):
        media = SocialMedia(entities=[{"type": "photo", "media_url_https": "https://pbs.example/a.jpg"}])
        self.stores.queue.insert_many([queued("T1", 0, media=media)])
        images = mock.Mock()
        images.rehost.return_value = "https://res.cloudinary.example/a.webp"

        self.processor(FakeWriter(), image_client=images, rehost_images=True).process_batch(1)

        post = self.stores.posts.by_source_id("T1")
        self.assertEqual(post.primary_image_url, "https://res.cloudinary.example/a.webp")
        self.assertEqual(post.media[0].url, "https://res.cloudinary.example/a.webp")
        images.rehost.assert_called_once_with("https://pbs.example/a.jpg", "posts/T1-0")

    def test_rehost_failure_keeps_upstream_url(self):
        media = SocialMedia(entities=[{"type": "photo", "media_url_https": "https://pbs.example/a.jpg"}])
        self.stores.queue.insert_many([queued("T1", 0, media=media)])
        images = mock.Mock()
        images.rehost.return_value = None

        self.processor(FakeWriter(), image_client=images, rehost_images=True).process_batch(1)

        self.assertEqual(self.stores.posts.by_source_id("T1").primary_image_url, "https://pbs.example/a.jpg")


class TestProcessQueueJob(unittest.TestCase):
    def test_results_dict(self):
        stores = make_stores()
        stores.queue.insert_many([queued("T1", 0), queued("T2", 1)])
        processor = QueueProcessor(
            stores.queue, stores.posts, stores.tags,
            writer=FakeWriter(GenerationError("timeout"), article()),
            gate=PacingGate(0),
        )

        results = process_queue(max_items=3, stores=stores, processor=processor)

        self.assertEqual(results["published"], 1)
        self.assertEqual(results["dropped"], 1)
        self.assertEqual(results["processed"], 2)
        self.assertEqual(results["errors"], [])

    def test_store_unavailable_propagates(self):
        stores = make_stores()
        stores.queue.oldest = mock.Mock(side_effect=StoreUnavailableError("down"))
        processor = QueueProcessor(stores.queue, stores.posts, stores.tags, writer=FakeWriter())

        with self.assertRaises(StoreUnavailableError):
            process_queue(stores=stores, processor=processor)


if __name__ == "__main__":
    unittest.main()
