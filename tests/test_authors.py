import unittest

from newsdesk.models import AuthorInfo
from newsdesk.utils.authors import handle_from_url, resolve_author_label


class TestHandleFromUrl(unittest.TestCase):
    def test_twitter_and_x_hosts(self):
        self.assertEqual(handle_from_url("https://twitter.com/ncbn/status/123"), "ncbn")
        self.assertEqual(handle_from_url("https://x.com/ysjagan/status/456?s=20"), "ysjagan")

    def test_reserved_paths_and_other_hosts(self):
        self.assertIsNone(handle_from_url("https://x.com/i/web/status/123"))
        self.assertIsNone(handle_from_url("https://example.com/ncbn/status/1"))
        self.assertIsNone(handle_from_url(None))

    def test_hosts_ending_in_x_dot_com_are_not_social(self):
        self.assertIsNone(handle_from_url("https://www.vox.com/politics/12345/story"))
        self.assertIsNone(handle_from_url("https://www.newsx.com/national/story"))
        self.assertIsNone(handle_from_url("https://www.netflix.com/title/1"))
        self.assertIsNone(handle_from_url("https://nottwitter.com/ncbn/status/1"))

    def test_www_and_mobile_subdomains(self):
        self.assertEqual(handle_from_url("https://mobile.twitter.com/ncbn/status/1"), "ncbn")
        self.assertEqual(handle_from_url("https://www.x.com/JaiTDP"), "JaiTDP")


class TestResolveAuthorLabel(unittest.TestCase):
    def test_explicit_author(self):
        author = AuthorInfo(display_name="N Chandrababu Naidu", handle="ncbn")
        self.assertEqual(resolve_author_label(author, None), "N Chandrababu Naidu (@ncbn)")

    def test_placeholder_handle_falls_back_to_url(self):
        author = AuthorInfo(display_name="Twitter User", handle="Unknown")
        label = resolve_author_label(author, "https://x.com/JaiTDP/status/9")
        self.assertEqual(label, "JaiTDP (@JaiTDP)")

    def test_real_name_kept_when_handle_from_url(self):
        author = AuthorInfo(display_name="Telugu Desam Party", handle=None)
        label = resolve_author_label(author, "https://twitter.com/JaiTDP/status/9")
        self.assertEqual(label, "Telugu Desam Party (@JaiTDP)")

    def test_missing_name_uses_handle(self):
        self.assertEqual(resolve_author_label(AuthorInfo(handle="ncbn"), None), "ncbn (@ncbn)")

    def test_no_handle_anywhere(self):
        self.assertIsNone(resolve_author_label(None, None))
        self.assertIsNone(resolve_author_label(AuthorInfo(handle="Unknown"), "https://news.example/a"))


if __name__ == "__main__":
    unittest.main()
