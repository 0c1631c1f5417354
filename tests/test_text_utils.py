import unittest
from datetime import datetime, timezone
import time

from techpulse.ingestion.dates import infer_explicit_date, parse_feed_datetime
from techpulse.ingestion.text_utils import (
    estimate_reading_time,
    make_slug,
    normalize_topic_tag,
    plain_text,
    preview,
    summarize,
    unique_strings,
)


class TestTextUtils(unittest.TestCase):
    def test_plain_text_strips_markup(self):
        self.assertEqual(plain_text("<p>Hello&nbsp;<b>world</b></p>"), "Hello world")

    def test_slug_folds_accents(self):
        self.assertEqual(make_slug("Café Déjà Vu!"), "cafe-deja-vu")
        self.assertEqual(make_slug("!!!"), "article")

    def test_reading_time(self):
        self.assertEqual(estimate_reading_time(" ".join(["w"] * 340), words_per_minute=170), 2)
        self.assertEqual(estimate_reading_time("a few words", min_minutes=2), 2)
        self.assertEqual(estimate_reading_time(""), 1)

    def test_summary_and_preview_lengths(self):
        text = " ".join(f"w{i}" for i in range(500))
        self.assertEqual(len(summarize(text).split()), 260)
        self.assertEqual(len(preview(text).split()), 110)

    def test_topic_tags(self):
        self.assertEqual(normalize_topic_tag("Distributed-Systems"), "distributed systems")
        self.assertEqual(normalize_topic_tag("machine_learning"), "machine learning")
        self.assertEqual(unique_strings(["a", " a ", "", "b"]), ["a", "b"])


class TestDates(unittest.TestCase):
    def test_infer_explicit_date(self):
        self.assertEqual(
            infer_explicit_date("Posted on March 5th, 2024 by the team"),
            datetime(2024, 3, 5, 12, tzinfo=timezone.utc),
        )

    def test_infer_skips_invalid_dates(self):
        self.assertEqual(
            infer_explicit_date("Feb 30, 2024 then Jan 2, 2023"),
            datetime(2023, 1, 2, 12, tzinfo=timezone.utc),
        )
        self.assertIsNone(infer_explicit_date("Founded June 1, 1850"))
        self.assertIsNone(infer_explicit_date(""))

    def test_parse_feed_datetime(self):
        self.assertEqual(
            parse_feed_datetime("Tue, 10 Jun 2025 09:30:00 GMT"),
            datetime(2025, 6, 10, 9, 30, tzinfo=timezone.utc),
        )
        self.assertEqual(parse_feed_datetime(time.gmtime(0)), datetime(1970, 1, 1, tzinfo=timezone.utc))
        self.assertIsNone(parse_feed_datetime("not a date"))
        self.assertIsNone(parse_feed_datetime(None))


if __name__ == "__main__":
    unittest.main()
