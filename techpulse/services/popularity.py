"""External popularity refresh and offline v2 backfill.

Only popularity columns are written here, so a refresh can overlap an
ingestion run safely.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence

from techpulse.analytics.trends import (
    compute_hot_topic_score,
    extract_trending_keywords,
    fetch_trending_text_corpus,
)
from techpulse.config import Settings
from techpulse.ingestion.article_types import Article
from techpulse.ingestion.dates import ensure_utc
from techpulse.scoring.article_scoring import (
    PopularityInput,
    PopularityScore,
    clamp,
    compute_breakthrough_score,
    compute_popularity_v2,
    text_blob,
)
from techpulse.signals.external import SignalResult, get_external_signal_score
from techpulse.storage.repository import ArticleRepository


logger = logging.getLogger(__name__)

MAX_VIRAL_VELOCITY = 260
DEFAULT_REFRESH_SLEEP = 0.12


@dataclass
class RefreshResult:
    checked_count: int = 0
    updated_count: int = 0
    errors: List[str] = field(default_factory=list)
    trending_keywords: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "checkedCount": self.checked_count,
            "updatedCount": self.updated_count,
            "errors": list(self.errors),
            "trendingKeywords": list(self.trending_keywords),
        }


@dataclass
class BackfillResult:
    checked_count: int = 0
    updated_count: int = 0


def hours_since(then: Optional[datetime], now: datetime) -> float:
    """Hours since the last check (24h when never checked), floored at 1."""
    if then is None:
        return 24.0
    return max(1.0, (now - ensure_utc(then)).total_seconds() / 3600.0)


def next_viral_velocity(previous_velocity: float, delta: float, window_hours: float) -> int:
    per_hour = delta / window_hours
    return int(clamp(round(previous_velocity * 0.55 + delta * 0.9 + per_hour * 28), 0, MAX_VIRAL_VELOCITY))


def article_text(article: Article) -> str:
    return text_blob(article.title, article.summary, article.content_preview, *article.tags)


def popularity_input(article: Article, **overrides) -> PopularityInput:
    values = dict(
        published_at=article.published_at,
        external_popularity_score=article.external_popularity_score,
        external_popularity_prev_score=article.external_popularity_prev_score,
        viral_velocity_score=article.viral_velocity_score,
        hot_topic_score=article.hot_topic_score,
        breakthrough_score=article.breakthrough_score,
        popularity_last_checked_at=article.popularity_last_checked_at,
        source_name=article.source_name,
        reading_time=article.reading_time,
        title=article.title,
        summary=article.summary,
        content_preview=article.content_preview,
        tags=tuple(article.tags),
    )
    values.update(overrides)
    return PopularityInput(**values)


def _score(settings: Settings, data: PopularityInput, now: datetime) -> PopularityScore:
    return compute_popularity_v2(
        data,
        now,
        half_life_hours=settings.popularity_half_life_hours,
        low_signal_patterns=settings.low_signal_patterns,
    )


def refresh_external_popularity_signals(
    repository: ArticleRepository,
    *,
    days_back: int = 35,
    limit: int = 260,
    settings: Optional[Settings] = None,
    signal_fetcher: Optional[Callable[[str], SignalResult]] = None,
    corpus_fetcher: Callable[[], Sequence[str]] = fetch_trending_text_corpus,
    sleep_seconds: float = DEFAULT_REFRESH_SLEEP,
    clock: Optional[Callable[[], datetime]] = None,
) -> RefreshResult:
    settings = settings or Settings()
    clock = clock or (lambda: datetime.now(timezone.utc))
    if signal_fetcher is None:
        def signal_fetcher(url: str) -> SignalResult:
            return get_external_signal_score(
                url, x_bearer_token=settings.x_bearer_token, github_token=settings.github_token
            )

    trending = extract_trending_keywords(corpus_fetcher())
    since = clock() - timedelta(days=days_back)
    articles = repository.list_articles(published_since=since, order_by="published_at", descending=True, limit=limit)

    result = RefreshResult(checked_count=len(articles), trending_keywords=trending[:20])
    for article in articles:
        try:
            now = clock()
            signal = signal_fetcher(article.url)
            previous = float(article.external_popularity_score or 0.0)
            delta = signal.total_score - previous
            velocity = next_viral_velocity(
                float(article.viral_velocity_score or 0.0), delta, hours_since(article.popularity_last_checked_at, now)
            )
            text = article_text(article)
            hot_topic = compute_hot_topic_score(text, trending)
            breakthrough = compute_breakthrough_score(text)

            updates: Dict[str, object] = dict(
                external_popularity_prev_score=previous,
                external_popularity_score=float(signal.total_score),
                viral_velocity_score=float(velocity),
                hot_topic_score=hot_topic,
                breakthrough_score=breakthrough,
                popularity_last_checked_at=now,
            )
            if settings.popularity_v2_enabled:
                v2 = _score(
                    settings,
                    popularity_input(
                        article,
                        external_popularity_score=float(signal.total_score),
                        external_popularity_prev_score=previous,
                        viral_velocity_score=float(velocity),
                        hot_topic_score=hot_topic,
                        breakthrough_score=breakthrough,
                    ),
                    now,
                )
                updates.update(
                    popularity_score_v2=v2.score,
                    popularity_confidence=v2.confidence,
                    popularity_computed_at=now,
                )
            repository.update_article(article.id, **updates)
            result.updated_count += 1
            if sleep_seconds > 0:
                time.sleep(sleep_seconds)
        except Exception as e:
            logger.warning("signal refresh failed for %s: %s", article.url, e)
            result.errors.append(f"Failed signal refresh for {article.url}: {e}")

    logger.info(
        "popularity refresh complete: checked=%d updated=%d errors=%d topics=%s",
        result.checked_count,
        result.updated_count,
        len(result.errors),
        ", ".join(result.trending_keywords[:5]),
    )
    return result


def backfill_popularity_v2(
    repository: ArticleRepository,
    *,
    days_back: int = 365,
    limit: int = 5000,
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> BackfillResult:
    """Recompute v2 from stored signals; no network calls."""
    settings = settings or Settings()
    clock = clock or (lambda: datetime.now(timezone.utc))
    since = clock() - timedelta(days=days_back)
    articles = repository.list_articles(published_since=since, order_by="published_at", descending=True, limit=limit)
    result = BackfillResult(checked_count=len(articles))
    for article in articles:
        now = clock()
        v2 = _score(settings, popularity_input(article), now)
        repository.update_article(
            article.id,
            popularity_score_v2=v2.score,
            popularity_confidence=v2.confidence,
            popularity_computed_at=now,
        )
        result.updated_count += 1
    return result
