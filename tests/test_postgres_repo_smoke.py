import os
import unittest
import uuid
from datetime import datetime, timezone

import psycopg

from techpulse.errors import DuplicateArticleError
from techpulse.ingestion.article_types import CategorySlug, Source
from techpulse.storage.postgres_repo import PostgresArticleRepository
from techpulse.storage.postgres_schema import ensure_postgres_schema
from techpulse.storage.repository import NewArticle


PG_DSN = os.environ.get("PG_DSN", "dbname=techpulse user=techpulse password=techpulse host=localhost port=5432")


def _postgres_available() -> bool:
    try:
        with psycopg.connect(PG_DSN, connect_timeout=2):
            return True
    except psycopg.Error:
        return False


@unittest.skipUnless(_postgres_available(), "Postgres not reachable at PG_DSN")
class TestPostgresRepoSmoke(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        ensure_postgres_schema(PG_DSN)
        cls.repo = PostgresArticleRepository(PG_DSN)
        cls.source = Source(
            id="smoke-test",
            name="Smoke Test",
            url="https://smoke.example.com/",
            rss_url="https://smoke.example.com/rss",
            category_slug=CategorySlug.ARCHITECTURE,
        )
        cls.repo.upsert_source(cls.source)

    def test_create_find_update(self):
        token = uuid.uuid4().hex[:10]
        created = self.repo.create_article(
            NewArticle(
                title=f"Smoke {token}",
                slug=f"smoke-{token}",
                url=f"https://smoke.example.com/{token}",
                published_at=datetime.now(timezone.utc),
                reading_time=4,
                source_id=self.source.id,
                category_slug=CategorySlug.ARCHITECTURE,
            ),
            ["Distributed-Systems"],
        )
        self.assertEqual(created.source_name, "Smoke Test")
        self.assertEqual(created.tags, ("distributed systems",))

        self.repo.update_article(created.id, popularity_score_v2=42.5)
        self.assertEqual(self.repo.find_article_by_url(created.url).popularity_score_v2, 42.5)

        with self.assertRaises(DuplicateArticleError):
            self.repo.create_article(
                NewArticle(
                    title="dup",
                    slug=f"smoke-{token}-dup",
                    url=created.url,
                    published_at=datetime.now(timezone.utc),
                    reading_time=1,
                )
            )


if __name__ == "__main__":
    unittest.main()
