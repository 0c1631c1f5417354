import threading
import time
import unittest
from unittest import mock
from datetime import datetime, timedelta, timezone

from techpulse.config import Settings
from techpulse.ingestion.article_types import CategorySlug, FeedItem, Source
from techpulse.ingestion.ingestors import FeedIngestor, FeedParseError
from techpulse.services.ingestion import IngestionOrchestrator, ingest_all_sources, is_allowed_aggregator_article
from techpulse.storage.repository import InMemoryArticleRepository, NewArticle


PUBLISHED = datetime(2025, 1, 10, 8, tzinfo=timezone.utc)
SOURCE = Source(
    id="example",
    name="Example",
    url="https://blog.example.com/",
    rss_url="https://blog.example.com/rss",
    category_slug=CategorySlug.ARCHITECTURE,
)
MEDIUM = Source(
    id="medium-engineering",
    name="Medium: Engineering",
    url="https://medium.com/tag/engineering",
    rss_url="https://medium.com/feed/tag/engineering",
    category_slug=CategorySlug.MEDIUM,
)


def item(n, title=None, body="How we moved our queue to a partitioned log.", **kwargs):
    return FeedItem(
        title=title or f"Engineering post {n}",
        url=f"https://blog.example.com/posts/{n}?utm_source=rss",
        published_at=PUBLISHED,
        raw_text=body,
        **kwargs,
    )


def feed_of(items):
    return FeedIngestor(feed_parser=lambda url: list(items), fallback_scraper=lambda url: [])


def no_fulltext(url):
    return None


class TestSingleSource(unittest.TestCase):
    def setUp(self):
        self.repo = InMemoryArticleRepository([SOURCE])

    def orchestrator(self, fetcher, **settings):
        return IngestionOrchestrator(
            self.repo, settings=Settings(**settings), fetcher=fetcher, extractor=no_fulltext
        )

    def test_existing_article_is_skipped(self):
        self.repo.create_article(
            NewArticle(
                title="Engineering post 1",
                slug="engineering-post-1",
                url="https://blog.example.com/posts/1",
                published_at=PUBLISHED,
                reading_time=3,
                source_id=SOURCE.id,
            )
        )
        result = self.orchestrator(feed_of([item(1), item(2), item(3)])).ingest_single_source(SOURCE)
        self.assertEqual(result.fetched_count, 3)
        self.assertEqual(result.created_count, 2)
        self.assertEqual(result.skipped_count, 1)
        self.assertEqual(result.errors, [])
        self.assertEqual(self.repo.count_articles(), 3)

    def test_fallback_items_are_ingested_with_warning(self):
        def broken(url):
            raise FeedParseError("malformed feed")

        fetcher = FeedIngestor(feed_parser=broken, fallback_scraper=lambda url: [item(i) for i in range(5)])
        result = self.orchestrator(fetcher).ingest_single_source(SOURCE)
        self.assertEqual(result.created_count, 5)
        self.assertEqual(result.errors, ["RSS parsing failed: malformed feed"])

    def test_unexpected_parser_error_uses_fallback(self):
        def broken(url):
            raise AttributeError("'NoneType' object has no attribute 'entries'")

        fetcher = FeedIngestor(feed_parser=broken, fallback_scraper=lambda url: [item(i) for i in range(5)])
        result = self.orchestrator(fetcher).ingest_single_source(SOURCE)
        self.assertEqual(result.created_count, 5)
        self.assertEqual(len(result.errors), 1)
        self.assertTrue(result.errors[0].startswith("RSS parsing failed: "))

    @mock.patch("techpulse.extraction.fulltext.extract_main_text", side_effect=RuntimeError("parser blew up"))
    @mock.patch("techpulse.extraction.fulltext.requests.get")
    def test_fulltext_parser_error_keeps_article(self, get, _extract):
        resp = mock.Mock(status_code=200, encoding="utf-8")
        resp.iter_content.return_value = [b"<html><body><article>page</article></body></html>"]
        get.return_value = resp
        orch = IngestionOrchestrator(
            self.repo, settings=Settings(), fetcher=feed_of([item(1, title="A thin post title", body="tiny")])
        )
        result = orch.ingest_single_source(SOURCE)
        self.assertEqual(result.created_count, 1)
        self.assertEqual(result.errors, [])
        stored = self.repo.find_article_by_url("https://blog.example.com/posts/1")
        self.assertEqual(stored.summary, "tiny")
        get.assert_called_once()

    def test_failed_source_reports_both_errors(self):
        def broken(url):
            raise RuntimeError("boom")

        result = self.orchestrator(FeedIngestor(feed_parser=broken, fallback_scraper=broken)).ingest_single_source(SOURCE)
        self.assertEqual(result.fetched_count, 0)
        self.assertEqual(result.created_count, 0)
        self.assertEqual(len(result.errors), 2)

    def test_duplicate_titles_get_suffixed_slugs(self):
        items = [item(1, title="Same Title"), item(2, title="Same Title"), item(3, title="Same Title")]
        self.orchestrator(feed_of(items)).ingest_single_source(SOURCE)
        slugs = sorted(a.slug for a in self.repo.list_articles())
        self.assertEqual(slugs, ["same-title", "same-title-2", "same-title-3"])

    def test_reingest_creates_nothing(self):
        orch = self.orchestrator(feed_of([item(i) for i in range(4)]))
        first = orch.ingest_single_source(SOURCE)
        second = orch.ingest_single_source(SOURCE)
        self.assertEqual(first.created_count, 4)
        self.assertEqual(second.created_count, 0)
        self.assertEqual(second.skipped_count, 4)
        self.assertEqual(self.repo.count_articles(), 4)

    def test_canonical_duplicates_within_feed_collapse(self):
        dup = FeedItem(title="Engineering post 1", url="https://blog.example.com/posts/1#comments", published_at=PUBLISHED)
        result = self.orchestrator(feed_of([item(1), dup])).ingest_single_source(SOURCE)
        self.assertEqual(result.fetched_count, 1)
        self.assertEqual(result.created_count, 1)
        self.assertIsNotNone(self.repo.find_article_by_url("https://blog.example.com/posts/1"))

    def test_new_items_capped_per_source(self):
        result = self.orchestrator(feed_of([item(i) for i in range(15)])).ingest_single_source(SOURCE)
        self.assertEqual(result.created_count, 12)
        self.assertEqual(result.skipped_count, 3)

    def test_reading_time_backfill_for_existing(self):
        self.repo.create_article(
            NewArticle(
                title="Engineering post 1",
                slug="engineering-post-1",
                url="https://blog.example.com/posts/1",
                published_at=PUBLISHED,
                reading_time=1,
            )
        )
        long_body = " ".join(["word"] * 400)
        self.orchestrator(feed_of([item(1, body=long_body)])).ingest_single_source(SOURCE)
        self.assertEqual(self.repo.find_article_by_url("https://blog.example.com/posts/1").reading_time, 3)

    def test_thin_items_use_fulltext(self):
        fulltext = " ".join(["replication"] * 300)
        orch = IngestionOrchestrator(
            self.repo, settings=Settings(), fetcher=feed_of([item(1, body="tiny")]), extractor=lambda url: fulltext
        )
        orch.ingest_single_source(SOURCE)
        stored = self.repo.find_article_by_url("https://blog.example.com/posts/1")
        self.assertEqual(len(stored.summary.split()), 260)
        self.assertEqual(stored.reading_time, 2)

    def test_tags_and_category(self):
        tagged = item(1, title="Root cause analysis of the March outage", tags=("Incident-Response", "SRE"))
        result = self.orchestrator(feed_of([tagged])).ingest_single_source(SOURCE)
        stored = self.repo.find_article_by_url("https://blog.example.com/posts/1")
        self.assertEqual(stored.category_slug, CategorySlug.OUTAGES)
        self.assertEqual(stored.tags, ("incident response", "sre"))
        self.assertEqual(result.category_assignment_counts, {CategorySlug.OUTAGES: 1})


class TestAggregatorScreening(unittest.TestCase):
    def test_only_allowed_topics_pass(self):
        repo = InMemoryArticleRepository([MEDIUM])
        items = [
            item(1, title="A tour of distributed systems consensus"),
            item(2, title="My favourite sourdough recipe", body="Flour, water and patience."),
        ]
        orch = IngestionOrchestrator(repo, settings=Settings(), fetcher=feed_of(items), extractor=no_fulltext)
        result = orch.ingest_single_source(MEDIUM)
        self.assertEqual(result.created_count, 1)
        self.assertEqual(result.skipped_count, 1)
        self.assertEqual(repo.list_articles()[0].category_slug, CategorySlug.MEDIUM)

    def test_topic_tags_match(self):
        self.assertTrue(is_allowed_aggregator_article("Untitled", "", ["System-Design"], ("system design",)))
        self.assertFalse(is_allowed_aggregator_article("Untitled", "", ["cooking"], ("system design",)))


class TestDateRepair(unittest.TestCase):
    def test_repairs_dates_stamped_at_ingestion(self):
        now = datetime(2025, 6, 1, 12, tzinfo=timezone.utc)
        repo = InMemoryArticleRepository([SOURCE], clock=lambda: now)
        stamped = repo.create_article(
            NewArticle(
                title="Release notes",
                slug="release-notes",
                url="https://blog.example.com/release-notes",
                published_at=now,
                reading_time=2,
                summary="Published on January 15, 2024 by the platform team.",
            )
        )
        dated = repo.create_article(
            NewArticle(
                title="Older notes",
                slug="older-notes",
                url="https://blog.example.com/older-notes",
                published_at=now - timedelta(days=30),
                reading_time=2,
                summary="Published on January 15, 2024.",
            )
        )
        orch = IngestionOrchestrator(repo, settings=Settings(), fetcher=feed_of([]), extractor=no_fulltext)
        self.assertEqual(orch.repair_published_dates(), 1)
        self.assertEqual(
            repo.find_article_by_slug(stamped.slug).published_at, datetime(2024, 1, 15, 12, tzinfo=timezone.utc)
        )
        self.assertEqual(repo.find_article_by_slug(dated.slug).published_at, now - timedelta(days=30))

    def test_skips_inferred_dates_within_two_days(self):
        now = datetime(2025, 6, 1, 12, tzinfo=timezone.utc)
        repo = InMemoryArticleRepository([SOURCE], clock=lambda: now)
        close = repo.create_article(
            NewArticle(
                title="Weekly notes",
                slug="weekly-notes",
                url="https://blog.example.com/weekly-notes",
                published_at=now,
                reading_time=2,
                summary="Published on May 31, 2025 by the platform team.",
            )
        )
        orch = IngestionOrchestrator(repo, settings=Settings(), fetcher=feed_of([]), extractor=no_fulltext)
        self.assertEqual(orch.repair_published_dates(), 0)
        self.assertEqual(repo.find_article_by_slug(close.slug).published_at, now)


class TestIngestAllSources(unittest.TestCase):
    def test_aggregates_across_sources(self):
        other = Source(id="other", name="Other", url="https://other.example.com/", rss_url="https://other.example.com/rss")
        repo = InMemoryArticleRepository([SOURCE, other])

        def parser(url):
            if url == SOURCE.rss_url:
                return [item(1), item(2)]
            return [FeedItem(title="Other post", url="https://other.example.com/p", published_at=PUBLISHED)]

        fetcher = FeedIngestor(feed_parser=parser, fallback_scraper=lambda url: [])
        result = ingest_all_sources(repo, settings=Settings(), fetcher=fetcher, extractor=no_fulltext)
        self.assertEqual(result.source_count, 2)
        self.assertEqual(result.fetched_count, 3)
        self.assertEqual(result.created_count, 3)
        self.assertEqual(result.errors_by_source(), {})
        self.assertEqual([r.source_name for r in result.results], ["Example", "Other"])
        self.assertEqual(sum(result.category_assignment_counts.values()), 3)
        self.assertEqual(result.to_dict()["createdCount"], 3)

    def test_slow_source_times_out(self):
        slow = Source(id="slow", name="Slow", url="https://slow.example.com/", rss_url="https://slow.example.com/rss")
        repo = InMemoryArticleRepository([SOURCE, slow])

        def parser(url):
            if url == slow.rss_url:
                time.sleep(1.0)
            return [item(1)] if url == SOURCE.rss_url else []

        fetcher = FeedIngestor(feed_parser=parser, fallback_scraper=lambda url: [])
        started = time.monotonic()
        result = ingest_all_sources(
            repo, settings=Settings(ingest_source_timeout=0.2), fetcher=fetcher, extractor=no_fulltext
        )
        self.assertLess(time.monotonic() - started, 1.0)
        by_name = {r.source_name: r for r in result.results}
        self.assertEqual(by_name["Slow"].errors, ["Source ingestion timed out after 0.2s"])
        self.assertEqual(by_name["Example"].created_count, 1)

    def test_hung_sources_do_not_starve_later_sources(self):
        hung = [
            Source(id=f"hung-{i}", name=f"Hung {i}", url=f"https://hung{i}.example.com/", rss_url=f"https://hung{i}.example.com/rss")
            for i in range(9)
        ]
        # sources are listed by name, so the instant one runs after every hung one
        fast = Source(id="zeta", name="Zeta", url="https://zeta.example.com/", rss_url="https://zeta.example.com/rss")
        repo = InMemoryArticleRepository(hung + [fast])

        def parser(url):
            if url == fast.rss_url:
                return [item(1)]
            time.sleep(1.5)
            return []

        fetcher = FeedIngestor(feed_parser=parser, fallback_scraper=lambda url: [])
        result = ingest_all_sources(
            repo,
            settings=Settings(ingest_concurrency=4, ingest_source_timeout=0.3),
            fetcher=fetcher,
            extractor=no_fulltext,
        )
        by_name = {r.source_name: r for r in result.results}
        self.assertEqual([r.source_name for r in result.results][-1], "Zeta")
        self.assertEqual(by_name["Zeta"].errors, [])
        self.assertEqual(by_name["Zeta"].created_count, 1)
        for source in hung:
            self.assertEqual(by_name[source.name].errors, ["Source ingestion timed out after 0.3s"])

    def test_in_flight_sources_bounded_by_concurrency(self):
        sources = [
            Source(id=f"s{i}", name=f"S{i}", url=f"https://s{i}.example.com/", rss_url=f"https://s{i}.example.com/rss")
            for i in range(10)
        ]
        repo = InMemoryArticleRepository(sources)
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def parser(url):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.05)
            with lock:
                state["active"] -= 1
            return []

        fetcher = FeedIngestor(feed_parser=parser, fallback_scraper=lambda url: [])
        result = ingest_all_sources(
            repo, settings=Settings(ingest_concurrency=3), fetcher=fetcher, extractor=no_fulltext
        )
        self.assertEqual(result.source_count, 10)
        self.assertEqual(len(result.results), 10)
        self.assertLessEqual(state["peak"], 3)
        self.assertGreaterEqual(state["peak"], 1)

    def test_listing_failure_propagates(self):
        class Broken(InMemoryArticleRepository):
            def list_sources(self):
                raise RuntimeError("database unavailable")

        with self.assertRaises(RuntimeError):
            ingest_all_sources(Broken(), settings=Settings(), fetcher=feed_of([]), extractor=no_fulltext)


if __name__ == "__main__":
    unittest.main()
