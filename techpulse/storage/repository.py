"""Article repository interface plus an in-memory implementation.

Ingestion and scoring only talk to storage through ArticleRepository. The
Postgres implementation lives in postgres_repo.py. The in-memory store backs
tests and local dry runs.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from techpulse.errors import DuplicateArticleError
from techpulse.ingestion.article_types import CATEGORY_DEFINITIONS, Article, Category, Source
from techpulse.ingestion.dates import ensure_utc
from techpulse.ingestion.text_utils import make_slug, normalize_topic_tag


CONTENT_UPDATE_FIELDS = frozenset({"reading_time", "published_at", "category_slug"})
POPULARITY_UPDATE_FIELDS = frozenset(
    {
        "external_popularity_score",
        "external_popularity_prev_score",
        "viral_velocity_score",
        "hot_topic_score",
        "breakthrough_score",
        "popularity_score_v2",
        "popularity_confidence",
        "popularity_last_checked_at",
        "popularity_computed_at",
    }
)
UPDATABLE_FIELDS = CONTENT_UPDATE_FIELDS | POPULARITY_UPDATE_FIELDS


@dataclass(frozen=True)
class NewArticle:
    title: str
    slug: str
    url: str
    published_at: datetime
    reading_time: int
    summary: str = ""
    content_preview: str = ""
    author: Optional[str] = None
    source_id: Optional[str] = None
    source_name: Optional[str] = None
    category_slug: Optional[str] = None


def normalize_tag_names(tags: Iterable[str]) -> List[Tuple[str, str]]:
    """(name, slug) pairs for binding, deduplicated by slug."""
    out: List[Tuple[str, str]] = []
    seen = set()
    for t in tags:
        name = normalize_topic_tag(t)
        if not name:
            continue
        slug = make_slug(name)
        if slug in seen:
            continue
        seen.add(slug)
        out.append((name, slug))
    return out


def check_update_fields(fields: Dict[str, object]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"fields not updatable: {sorted(unknown)}")


class ArticleRepository(Protocol):
    def list_sources(self) -> List[Source]: ...

    def upsert_source(self, source: Source) -> None: ...

    def list_categories(self) -> List[Category]: ...

    def find_article_by_url(self, url: str) -> Optional[Article]: ...

    def find_article_by_slug(self, slug: str) -> Optional[Article]: ...

    def create_article(self, article: NewArticle, tags: Sequence[str] = ()) -> Article: ...

    def update_article(self, article_id: str, **fields) -> None: ...

    def list_articles(
        self,
        *,
        published_since: Optional[datetime] = None,
        order_by: str = "published_at",
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Article]: ...

    def count_articles(self) -> int: ...


class InMemoryArticleRepository:
    """Thread-safe dict-backed store with the same uniqueness rules as the SQL schema."""

    def __init__(self, sources: Iterable[Source] = (), *, clock=None):
        self._lock = threading.RLock()
        self._sources: Dict[str, Source] = {s.id: s for s in sources}
        self._articles: Dict[str, Article] = {}
        self._by_url: Dict[str, str] = {}
        self._by_slug: Dict[str, str] = {}
        self._tags: Dict[str, str] = {}
        self._ids = itertools.count(1)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def list_sources(self) -> List[Source]:
        with self._lock:
            return sorted(self._sources.values(), key=lambda s: (s.category_slug, s.name))

    def upsert_source(self, source: Source) -> None:
        with self._lock:
            self._sources[source.id] = source

    def list_categories(self) -> List[Category]:
        return [Category(slug=slug, name=name) for slug, name in sorted(CATEGORY_DEFINITIONS.items(), key=lambda kv: kv[1])]

    def list_tags(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._tags)

    def find_article_by_url(self, url: str) -> Optional[Article]:
        with self._lock:
            aid = self._by_url.get(url)
            return replace(self._articles[aid]) if aid else None

    def find_article_by_slug(self, slug: str) -> Optional[Article]:
        with self._lock:
            aid = self._by_slug.get(slug)
            return replace(self._articles[aid]) if aid else None

    def create_article(self, article: NewArticle, tags: Sequence[str] = ()) -> Article:
        pairs = normalize_tag_names(tags)
        with self._lock:
            if article.url in self._by_url:
                raise DuplicateArticleError("url", article.url)
            if article.slug in self._by_slug:
                raise DuplicateArticleError("slug", article.slug)
            aid = str(next(self._ids))
            stored = Article(
                id=aid,
                title=article.title,
                slug=article.slug,
                url=article.url,
                author=article.author,
                published_at=ensure_utc(article.published_at),
                created_at=ensure_utc(self._clock()),
                reading_time=max(1, int(article.reading_time)),
                summary=article.summary,
                content_preview=article.content_preview,
                source_id=article.source_id,
                source_name=article.source_name,
                category_slug=article.category_slug,
                tags=tuple(name for name, _ in pairs),
            )
            for name, slug in pairs:
                self._tags[slug] = name
            self._articles[aid] = stored
            self._by_url[article.url] = aid
            self._by_slug[article.slug] = aid
            return replace(stored)

    def update_article(self, article_id: str, **fields) -> None:
        check_update_fields(fields)
        with self._lock:
            current = self._articles.get(article_id)
            if current is None:
                raise KeyError(article_id)
            self._articles[article_id] = replace(current, **fields)

    def list_articles(
        self,
        *,
        published_since: Optional[datetime] = None,
        order_by: str = "published_at",
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Article]:
        with self._lock:
            rows = [replace(a) for a in self._articles.values()]
        if published_since is not None:
            since = ensure_utc(published_since)
            rows = [a for a in rows if a.published_at >= since]
        rows.sort(key=lambda a: getattr(a, order_by), reverse=descending)
        if limit is not None:
            rows = rows[: max(0, limit)]
        return rows

    def count_articles(self) -> int:
        with self._lock:
            return len(self._articles)
