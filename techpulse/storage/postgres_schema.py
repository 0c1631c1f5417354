"""Postgres schema management for TechPulse.

Schema creation is idempotent (CREATE IF NOT EXISTS) so every worker can call
ensure_postgres_schema on startup.
"""

from __future__ import annotations

import psycopg

from techpulse.ingestion.article_types import CATEGORY_DEFINITIONS


SCHEMA_STATEMENTS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS categories (
      slug TEXT PRIMARY KEY,
      name TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS sources (
      id TEXT PRIMARY KEY,
      name TEXT UNIQUE NOT NULL,
      url TEXT NOT NULL,
      rss_url TEXT NOT NULL,
      category_slug TEXT NOT NULL REFERENCES categories(slug),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS articles (
      id BIGSERIAL PRIMARY KEY,
      title TEXT NOT NULL,
      slug TEXT NOT NULL UNIQUE,
      url TEXT NOT NULL UNIQUE,
      author TEXT,
      summary TEXT NOT NULL DEFAULT '',
      content_preview TEXT NOT NULL DEFAULT '',
      reading_time INTEGER NOT NULL DEFAULT 1,
      published_at TIMESTAMPTZ NOT NULL,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      source_id TEXT REFERENCES sources(id),
      category_slug TEXT REFERENCES categories(slug),
      external_popularity_score REAL NOT NULL DEFAULT 0,
      external_popularity_prev_score REAL NOT NULL DEFAULT 0,
      viral_velocity_score REAL NOT NULL DEFAULT 0,
      hot_topic_score REAL NOT NULL DEFAULT 0,
      breakthrough_score REAL NOT NULL DEFAULT 0,
      popularity_score_v2 REAL NOT NULL DEFAULT 0,
      popularity_confidence REAL NOT NULL DEFAULT 0,
      popularity_last_checked_at TIMESTAMPTZ,
      popularity_computed_at TIMESTAMPTZ
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_articles_published_at ON articles (published_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_articles_created_at ON articles (created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_articles_popularity_v2 ON articles (popularity_score_v2 DESC);",
    """
    CREATE TABLE IF NOT EXISTS tags (
      id BIGSERIAL PRIMARY KEY,
      name TEXT NOT NULL,
      slug TEXT NOT NULL UNIQUE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS article_tags (
      article_id BIGINT NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
      tag_id BIGINT NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
      PRIMARY KEY (article_id, tag_id)
    );
    """,
]


def ensure_postgres_schema(pg_dsn: str) -> None:
    with psycopg.connect(pg_dsn, autocommit=True) as conn:
        with conn.cursor() as cur:
            for stmt in SCHEMA_STATEMENTS:
                cur.execute(stmt)
            for slug, name in CATEGORY_DEFINITIONS.items():
                cur.execute(
                    """
                    INSERT INTO categories (slug, name) VALUES (%s, %s)
                    ON CONFLICT (slug) DO UPDATE SET name = EXCLUDED.name
                    """,
                    (slug, name),
                )
