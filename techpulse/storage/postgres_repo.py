"""Postgres implementation of ArticleRepository.

This is intentionally lightweight (psycopg + SQL) to keep control and transparency.
One connection per operation, so instances are safe to share across threads.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import psycopg
from psycopg import sql

from techpulse.errors import DuplicateArticleError
from techpulse.ingestion.article_types import Article, Category, Source
from techpulse.storage.repository import NewArticle, check_update_fields, normalize_tag_names


ARTICLE_COLUMNS = [
    "id",
    "title",
    "slug",
    "url",
    "author",
    "summary",
    "content_preview",
    "reading_time",
    "published_at",
    "created_at",
    "source_id",
    "category_slug",
    "external_popularity_score",
    "external_popularity_prev_score",
    "viral_velocity_score",
    "hot_topic_score",
    "breakthrough_score",
    "popularity_score_v2",
    "popularity_confidence",
    "popularity_last_checked_at",
    "popularity_computed_at",
]

SORTABLE_COLUMNS = {"published_at", "created_at", "popularity_score_v2", "id"}

_ARTICLE_SELECT = sql.SQL(
    """
    SELECT {cols}, s.name AS source_name,
           COALESCE(
             (SELECT array_agg(t.name ORDER BY t.name)
              FROM article_tags at JOIN tags t ON t.id = at.tag_id
              WHERE at.article_id = a.id),
             ARRAY[]::text[]
           ) AS tag_names
    FROM articles a
    LEFT JOIN sources s ON s.id = a.source_id
    """
).format(cols=sql.SQL(", ").join(sql.SQL("a.") + sql.Identifier(c) for c in ARTICLE_COLUMNS))


def _row_to_article(row: Sequence[Any]) -> Article:
    data: Dict[str, Any] = dict(zip(ARTICLE_COLUMNS, row))
    source_name, tag_names = row[len(ARTICLE_COLUMNS)], row[len(ARTICLE_COLUMNS) + 1]
    data["id"] = str(data["id"])
    data["author"] = data["author"] or None
    return Article(source_name=source_name, tags=tuple(tag_names or ()), **data)


class PostgresArticleRepository:
    def __init__(self, pg_dsn: str):
        self.pg_dsn = pg_dsn

    def _connect(self, **kwargs):
        return psycopg.connect(self.pg_dsn, **kwargs)

    def list_sources(self) -> List[Source]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT s.id, s.name, s.url, s.rss_url, s.category_slug
                    FROM sources s
                    JOIN categories c ON c.slug = s.category_slug
                    ORDER BY c.name ASC, s.name ASC
                    """
                )
                rows = cur.fetchall()
        return [Source(id=r[0], name=r[1], url=r[2], rss_url=r[3], category_slug=r[4]) for r in rows]

    def upsert_source(self, source: Source) -> None:
        with self._connect(autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO sources (id, name, url, rss_url, category_slug)
                    VALUES (%s, %s, %s, %s, %s)
                    ON CONFLICT (name) DO UPDATE SET
                      url = EXCLUDED.url,
                      rss_url = EXCLUDED.rss_url,
                      category_slug = EXCLUDED.category_slug,
                      updated_at = now()
                    """,
                    (source.id, source.name, source.url, source.rss_url, source.category_slug),
                )

    def list_categories(self) -> List[Category]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT slug, name FROM categories ORDER BY name ASC")
                return [Category(slug=r[0], name=r[1]) for r in cur.fetchall()]

    def _find_one(self, column: str, value: Any) -> Optional[Article]:
        query = _ARTICLE_SELECT + sql.SQL(" WHERE a.{} = %s").format(sql.Identifier(column))
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(query, (value,))
                row = cur.fetchone()
        return _row_to_article(row) if row else None

    def find_article_by_url(self, url: str) -> Optional[Article]:
        return self._find_one("url", url)

    def find_article_by_slug(self, slug: str) -> Optional[Article]:
        return self._find_one("slug", slug)

    def create_article(self, article: NewArticle, tags: Sequence[str] = ()) -> Article:
        """Insert the article and its tag bindings in one transaction."""
        pairs = normalize_tag_names(tags)
        try:
            with self._connect() as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.execute(
                            """
                            INSERT INTO articles (
                              title, slug, url, author, summary, content_preview,
                              reading_time, published_at, source_id, category_slug
                            )
                            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                            RETURNING id
                            """,
                            (
                                article.title,
                                article.slug,
                                article.url,
                                article.author,
                                article.summary,
                                article.content_preview,
                                max(1, int(article.reading_time)),
                                article.published_at,
                                article.source_id,
                                article.category_slug,
                            ),
                        )
                        article_id = cur.fetchone()[0]
                        for name, slug in pairs:
                            cur.execute(
                                """
                                INSERT INTO tags (name, slug) VALUES (%s, %s)
                                ON CONFLICT (slug) DO UPDATE SET name = EXCLUDED.name
                                RETURNING id
                                """,
                                (name, slug),
                            )
                            tag_id = cur.fetchone()[0]
                            cur.execute(
                                """
                                INSERT INTO article_tags (article_id, tag_id) VALUES (%s, %s)
                                ON CONFLICT DO NOTHING
                                """,
                                (article_id, tag_id),
                            )
        except psycopg.errors.UniqueViolation as e:
            constraint = getattr(e.diag, "constraint_name", "") or ""
            field = "slug" if "slug" in constraint else "url"
            raise DuplicateArticleError(field, article.slug if field == "slug" else article.url) from e
        created = self._find_one("id", article_id)
        if created is None:
            raise RuntimeError(f"article {article_id} vanished after insert")
        return created

    def update_article(self, article_id: str, **fields) -> None:
        check_update_fields(fields)
        if not fields:
            return
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(k)) for k in fields
        )
        query = sql.SQL("UPDATE articles SET {} WHERE id = %s").format(assignments)
        with self._connect(autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(query, [*fields.values(), int(article_id)])

    def list_articles(
        self,
        *,
        published_since: Optional[datetime] = None,
        order_by: str = "published_at",
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Article]:
        if order_by not in SORTABLE_COLUMNS:
            raise ValueError(f"cannot sort by {order_by}")
        parts = [_ARTICLE_SELECT]
        params: List[Any] = []
        if published_since is not None:
            parts.append(sql.SQL(" WHERE a.published_at >= %s"))
            params.append(published_since)
        parts.append(
            sql.SQL(" ORDER BY a.{} {}").format(
                sql.Identifier(order_by), sql.SQL("DESC" if descending else "ASC")
            )
        )
        if limit is not None:
            parts.append(sql.SQL(" LIMIT %s"))
            params.append(max(0, int(limit)))
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql.Composed(parts), params)
                rows = cur.fetchall()
        return [_row_to_article(r) for r in rows]

    def count_articles(self) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM articles")
                return int(cur.fetchone()[0] or 0)
