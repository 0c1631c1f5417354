"""Reader-facing relevance and ranking over stored articles.

These complement popularity v2: a legacy popularity score, a relevance score
for engineers building their skills, learning-track labels, and the sort used
when listing articles. Everything here is a pure function of an Article and
`now`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from techpulse.config import DEFAULT_LOW_SIGNAL_PATTERNS
from techpulse.ingestion.article_types import Article
from techpulse.ingestion.dates import ensure_utc
from techpulse.ingestion.text_utils import count_words, estimate_reading_time
from techpulse.scoring.article_scoring import (
    compute_breakthrough_score,
    content_looks_low_signal,
    safe_round,
    text_blob,
)
from techpulse.scoring.keyword_rules import EDITORIAL_HOT_TOPIC_RULES, LEARNING_TRACK_RULES, score_rules
from techpulse.sources import source_weight


SORT_LATEST = "latest"
SORT_OLDEST = "oldest"
SORT_POPULAR = "popular"
SORT_DIRECTIONS = (SORT_LATEST, SORT_OLDEST, SORT_POPULAR)

IMPORTANCE_MUST_READ = "must-read"
IMPORTANCE_RECOMMENDED = "recommended"
IMPORTANCE_OPTIONAL = "optional"

UNKNOWN_AGE_DAYS = 365
READING_WPM = 170
IDEAL_READING_MINUTES = 10
RELEVANCE_LOW_SIGNAL_PENALTY = 70.0
OVERLONG_MINUTES = 30
OVERLONG_PENALTY = 9.0
RELEVANCE_WEIGHT = 0.62
POPULARITY_WEIGHT = 0.38


@dataclass(frozen=True)
class LearningTracks:
    tracks: Tuple[str, ...]
    keyword_boost: float


def _finite(value: Optional[float], fallback: float = 0.0) -> float:
    if value is None:
        return fallback
    value = float(value)
    return value if math.isfinite(value) else fallback


def article_content(article: Article) -> str:
    return text_blob(article.title, article.summary, article.content_preview, *article.tags)


def age_in_days(article: Article, now: datetime) -> int:
    if article.published_at is None:
        return UNKNOWN_AGE_DAYS
    delta = ensure_utc(now) - ensure_utc(article.published_at)
    return max(0, math.floor(delta.total_seconds() / 86400))


def compute_learning_tracks(article: Article) -> LearningTracks:
    hit = score_rules(article_content(article), LEARNING_TRACK_RULES)
    return LearningTracks(tracks=hit.labels, keyword_boost=hit.score)


def is_low_signal_article(article: Article, *, patterns: Sequence[str] = DEFAULT_LOW_SIGNAL_PATTERNS) -> bool:
    return content_looks_low_signal(
        article.title, article.summary, article.content_preview, article.tags, patterns=patterns
    )


def effective_reading_time(article: Article) -> int:
    """Stored reading time, raised to what the stored text alone would need."""
    content = article_content(article)
    estimated = estimate_reading_time(
        content, words_per_minute=READING_WPM, min_minutes=2 if count_words(content) >= 30 else 1
    )
    return max(int(_finite(article.reading_time, 1)), estimated)


def readability_score(reading_time: float) -> float:
    return max(6.0, 18.0 - abs(reading_time - IDEAL_READING_MINUTES) * 1.15)


def resolved_breakthrough_score(article: Article) -> float:
    return max(_finite(article.breakthrough_score), compute_breakthrough_score(article_content(article)))


def resolved_hot_topic_score(article: Article) -> float:
    computed = score_rules(article_content(article), EDITORIAL_HOT_TOPIC_RULES).score
    return max(_finite(article.hot_topic_score), computed)


def composite_popular_signal(article: Article) -> float:
    external = min(_finite(article.external_popularity_score), 1100.0) / 12.5
    viral = min(_finite(article.viral_velocity_score), 260.0) / 3.8
    return external + viral + resolved_hot_topic_score(article) * 0.58


def compute_popularity_score(article: Article, now: Optional[datetime] = None) -> float:
    now = now or datetime.now(timezone.utc)
    days = age_in_days(article, now)
    if days <= 2:
        fresh_boost = 18.0
    elif days <= 7:
        fresh_boost = 12.0
    elif days <= 21:
        fresh_boost = 6.0
    else:
        fresh_boost = 0.0
    recency = max(0, 160 - days) / 160 * 34
    depth = min(effective_reading_time(article), 20) * 0.9
    return safe_round(
        recency
        + fresh_boost
        + source_weight(article.source_name)
        + depth
        + resolved_breakthrough_score(article) * 0.36
        + composite_popular_signal(article)
    )


def compute_relevance_score(
    article: Article,
    now: Optional[datetime] = None,
    *,
    low_signal_patterns: Sequence[str] = DEFAULT_LOW_SIGNAL_PATTERNS,
) -> float:
    """How useful the article is to an engineer building skills.

    Rewards recent posts from trusted sources of a comfortable length that hit
    the learning tracks. Low-signal pages sink; very long reads take a small hit.
    """
    now = now or datetime.now(timezone.utc)
    days = age_in_days(article, now)
    reading_time = effective_reading_time(article)

    score = (
        max(0, 200 - days) / 200 * 36
        + source_weight(article.source_name)
        + readability_score(reading_time)
        + min(len(article.tags), 8) * 1.7
        + compute_learning_tracks(article).keyword_boost
        + min(_finite(article.external_popularity_score), 900.0) / 22
        + min(_finite(article.viral_velocity_score), 260.0) / 15
        + resolved_hot_topic_score(article) * 0.35
        + resolved_breakthrough_score(article) * 0.48
    )
    if is_low_signal_article(article, patterns=low_signal_patterns):
        score -= RELEVANCE_LOW_SIGNAL_PENALTY
    if reading_time > OVERLONG_MINUTES:
        score -= OVERLONG_PENALTY
    return safe_round(score)


def importance_level(score: float) -> str:
    if score >= 100:
        return IMPORTANCE_MUST_READ
    if score >= 74:
        return IMPORTANCE_RECOMMENDED
    return IMPORTANCE_OPTIONAL


def _published_ts(article: Article) -> float:
    return ensure_utc(article.published_at).timestamp()


def sort_articles(
    articles: Iterable[Article],
    sort: str = SORT_POPULAR,
    *,
    now: Optional[datetime] = None,
    use_popularity_v2: bool = True,
    low_signal_patterns: Sequence[str] = DEFAULT_LOW_SIGNAL_PATTERNS,
) -> List[Article]:
    """Drop low-signal articles and order the rest for listing.

    "popular" ranks by stored popularity v2 when enabled, otherwise by a blend
    of relevance and legacy popularity with viral velocity breaking ties.
    Newest first breaks any remaining tie.
    """
    if sort not in SORT_DIRECTIONS:
        raise ValueError(f"unknown sort: {sort!r}")
    kept = [a for a in articles if not is_low_signal_article(a, patterns=low_signal_patterns)]

    if sort == SORT_LATEST:
        return sorted(kept, key=_published_ts, reverse=True)
    if sort == SORT_OLDEST:
        return sorted(kept, key=_published_ts)
    if use_popularity_v2:
        return sorted(kept, key=lambda a: (_finite(a.popularity_score_v2), _published_ts(a)), reverse=True)

    now = now or datetime.now(timezone.utc)

    def composite(a: Article) -> Tuple[float, float, float]:
        blended = (
            compute_relevance_score(a, now, low_signal_patterns=low_signal_patterns) * RELEVANCE_WEIGHT
            + compute_popularity_score(a, now) * POPULARITY_WEIGHT
        )
        return blended, _finite(a.viral_velocity_score), _published_ts(a)

    return sorted(kept, key=composite, reverse=True)
