import unittest

from techpulse.ingestion.url_utils import canonical_variants, canonicalize_url


class TestUrlCanonicalization(unittest.TestCase):
    def test_canonicalize_strips_tracking_params(self):
        raw = "https://Example.com/path/to/article?utm_source=x&utm_medium=y&id=123&ref=hn#section"
        canon = canonicalize_url(raw)
        self.assertEqual(canon, "https://example.com/path/to/article?id=123")

    def test_canonicalize_keeps_query_order(self):
        self.assertEqual(canonicalize_url("https://example.com/a?b=2&a=1"), "https://example.com/a?b=2&a=1")

    def test_unparseable_input_is_trimmed(self):
        self.assertEqual(canonicalize_url("  not a url  "), "not a url")

    def test_equivalent_urls_share_a_canonical_form(self):
        a = "https://example.com/a?utm_source=x&id=1"
        b = "https://example.com/a?id=1&utm_medium=y"
        self.assertEqual(canonicalize_url(a), canonicalize_url(b))

    def test_variants_cover_slash_forms(self):
        raw = "https://example.com/post/?utm_source=x&source=rss"
        self.assertEqual(
            canonical_variants(raw),
            [raw, "https://example.com/post/", "https://example.com/post"],
        )


if __name__ == "__main__":
    unittest.main()
