import unittest

from ytscraper.utils.youtube import extract_video_id, is_video_url, watch_url


class TestExtractVideoId(unittest.TestCase):

    def test_watch_url(self):
        self.assertEqual(extract_video_id("https://www.youtube.com/watch?v=abc123"), "abc123")

    def test_watch_url_with_extra_params(self):
        url = "https://youtube.com/watch?feature=share&v=dQw4w9WgXcQ&t=42"
        self.assertEqual(extract_video_id(url), "dQw4w9WgXcQ")

    def test_short_url(self):
        self.assertEqual(extract_video_id("https://youtu.be/dQw4w9WgXcQ?si=xyz"), "dQw4w9WgXcQ")

    def test_shorts_and_embed(self):
        self.assertEqual(extract_video_id("https://www.youtube.com/shorts/AbC_-12"), "AbC_-12")
        self.assertEqual(extract_video_id("https://www.youtube.com/embed/dQw4w9WgXcQ"), "dQw4w9WgXcQ")

    def test_mobile_host(self):
        self.assertEqual(extract_video_id("http://m.youtube.com/watch?v=abc"), "abc")

    def test_rejects_other_hosts(self):
        self.assertIsNone(extract_video_id("https://vimeo.com/12345"))
        self.assertIsNone(extract_video_id("https://notyoutube.com/watch?v=abc"))

    def test_rejects_non_http_schemes(self):
        self.assertIsNone(extract_video_id("ftp://www.youtube.com/watch?v=abc"))
        self.assertIsNone(extract_video_id("www.youtube.com/watch?v=abc"))

    def test_rejects_missing_id(self):
        self.assertIsNone(extract_video_id("https://www.youtube.com/watch"))
        self.assertIsNone(extract_video_id("https://www.youtube.com/channel/UC123"))
        self.assertIsNone(extract_video_id("https://youtu.be/"))

    def test_rejects_garbage(self):
        self.assertIsNone(extract_video_id(""))
        self.assertIsNone(extract_video_id("not a url"))
        self.assertIsNone(extract_video_id("https://www.youtube.com/watch?v=<script>"))
        self.assertFalse(is_video_url(None))

    def test_watch_url_round_trip(self):
        self.assertTrue(is_video_url(watch_url("abc123")))


if __name__ == "__main__":
    unittest.main()
