"""Article popularity scoring (v2).

Deterministic scoring for:
- recency decay and momentum of external signals
- content quality priors (source trust, depth, breakthrough/hot-topic keywords)
- engagement from external platforms
- a confidence value used to shrink sparse-signal articles toward a neutral prior

compute_popularity_v2 is a pure function of its inputs and `now`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from techpulse.config import DEFAULT_LOW_SIGNAL_PATTERNS
from techpulse.ingestion.dates import ensure_utc
from techpulse.scoring.keyword_rules import (
    ANNOUNCEMENT_BONUS,
    ANNOUNCEMENT_KEYWORDS,
    BREAKTHROUGH_RULES,
    TECHNICAL_SUBJECT_KEYWORDS,
    contains_any,
    score_rules,
)
from techpulse.sources import MAX_SOURCE_WEIGHT, source_weight


DEFAULT_HALF_LIFE_HOURS = 168.0
POPULARITY_PRIOR = 50.0

MAX_EXTERNAL_SCORE = 1100.0
MAX_VIRAL_VELOCITY = 260.0
MAX_BREAKTHROUGH_SCORE = 150.0
MAX_HOT_TOPIC_SCORE = 160.0
MOMENTUM_SCALE = 120.0
MAX_DEPTH_MINUTES = 20.0
LOW_SIGNAL_PENALTY = 22.0
MIN_TITLE_CHARS = 12


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def safe_round(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return round(value, 2)


def sigmoid(value: float) -> float:
    # math.exp overflows past ~709
    if value < -700:
        return 0.0
    return 1.0 / (1.0 + math.exp(-value))


def text_blob(*parts: Optional[str]) -> str:
    return " ".join(p.strip() for p in parts if p and p.strip()).lower()


# -----------------------------
# Keyword-driven signals
# -----------------------------
def compute_breakthrough_score(content: str) -> float:
    if not content:
        return 0.0
    score = score_rules(content, BREAKTHROUGH_RULES).score
    if contains_any(content, ANNOUNCEMENT_KEYWORDS) and contains_any(content, TECHNICAL_SUBJECT_KEYWORDS):
        score += ANNOUNCEMENT_BONUS
    return clamp(score, 0.0, MAX_BREAKTHROUGH_SCORE)


def content_looks_low_signal(
    title: Optional[str],
    summary: Optional[str] = None,
    content_preview: Optional[str] = None,
    tags: Sequence[str] = (),
    *,
    patterns: Sequence[str] = DEFAULT_LOW_SIGNAL_PATTERNS,
) -> bool:
    merged = text_blob(title, summary, content_preview, *tags)
    if not merged:
        return True
    if len((title or "").strip()) < MIN_TITLE_CHARS:
        return True
    return any(p in merged for p in patterns)


# -----------------------------
# Popularity v2
# -----------------------------
@dataclass(frozen=True)
class PopularityInput:
    published_at: datetime
    external_popularity_score: float = 0.0
    external_popularity_prev_score: float = 0.0
    viral_velocity_score: float = 0.0
    hot_topic_score: float = 0.0
    breakthrough_score: float = 0.0
    popularity_last_checked_at: Optional[datetime] = None
    source_name: Optional[str] = None
    reading_time: Optional[int] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    content_preview: Optional[str] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PopularityScore:
    score: float
    confidence: float
    trend: float = 0.0
    quality: float = 0.0
    engagement: float = 0.0


def compute_popularity_v2(
    data: PopularityInput,
    now: Optional[datetime] = None,
    *,
    half_life_hours: float = DEFAULT_HALF_LIFE_HOURS,
    low_signal_patterns: Sequence[str] = DEFAULT_LOW_SIGNAL_PATTERNS,
) -> PopularityScore:
    now = ensure_utc(now or datetime.now(timezone.utc))
    half_life = half_life_hours if math.isfinite(half_life_hours) and half_life_hours > 0 else DEFAULT_HALF_LIFE_HOURS

    ext = float(data.external_popularity_score or 0.0)
    prev = float(data.external_popularity_prev_score or 0.0)
    viral = float(data.viral_velocity_score or 0.0)
    hot = float(data.hot_topic_score or 0.0)
    breakthrough = float(data.breakthrough_score or 0.0)

    age_hours = max(0.0, (now - ensure_utc(data.published_at)).total_seconds() / 3600.0)
    decay = math.exp(-age_hours / half_life)

    momentum_norm = sigmoid((ext - prev) / MOMENTUM_SCALE)
    viral_norm = clamp(viral / MAX_VIRAL_VELOCITY, 0.0, 1.0)
    trend = clamp((viral_norm * 0.40 + momentum_norm * 0.35 + decay * 0.25) * 100.0, 0.0, 100.0)

    source_norm = clamp(source_weight(data.source_name) / MAX_SOURCE_WEIGHT, 0.0, 1.0)
    depth_norm = clamp((data.reading_time or 0) / MAX_DEPTH_MINUTES, 0.0, 1.0)
    breakthrough_norm = clamp(breakthrough / MAX_BREAKTHROUGH_SCORE, 0.0, 1.0)
    hot_norm = clamp(hot / MAX_HOT_TOPIC_SCORE, 0.0, 1.0)
    penalty = (
        LOW_SIGNAL_PENALTY
        if content_looks_low_signal(
            data.title, data.summary, data.content_preview, data.tags, patterns=low_signal_patterns
        )
        else 0.0
    )
    quality = clamp(
        (source_norm * 0.35 + depth_norm * 0.20 + breakthrough_norm * 0.25 + hot_norm * 0.20) * 100.0 - penalty,
        0.0,
        100.0,
    )

    # log compression keeps a single viral spike from dominating
    external_norm = clamp(math.log1p(max(0.0, ext)) / math.log1p(MAX_EXTERNAL_SCORE), 0.0, 1.0)
    viral_engagement_norm = clamp(math.log1p(max(0.0, viral)) / math.log1p(MAX_VIRAL_VELOCITY), 0.0, 1.0)
    engagement = clamp((external_norm * 0.70 + viral_engagement_norm * 0.30) * 100.0, 0.0, 100.0)

    evidence = [ext > 0, viral > 0, hot > 0, breakthrough > 0]
    coverage = sum(1 for e in evidence if e) / len(evidence)
    freshness = clamp(1.0 - age_hours / (half_life * 6.0), 0.25, 1.0)
    recency_bonus = 0.08 if age_hours <= 48 else 0.0
    confidence = clamp(0.25 + coverage * 0.55 + freshness * 0.20 + recency_bonus, 0.0, 1.0)

    base = trend * 0.45 + quality * 0.35 + engagement * 0.20
    score = clamp(base * confidence + POPULARITY_PRIOR * (1.0 - confidence), 0.0, 100.0)

    return PopularityScore(
        score=safe_round(score),
        confidence=safe_round(confidence),
        trend=safe_round(trend),
        quality=safe_round(quality),
        engagement=safe_round(engagement),
    )
