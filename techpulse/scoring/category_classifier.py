"""Rule-based category assignment.

Pure and deterministic (no I/O) so backfills can re-run it over stored
articles offline.
"""

from __future__ import annotations

from typing import Iterable, Optional

from techpulse.ingestion.article_types import CategorySlug, Source
from techpulse.ingestion.text_utils import plain_text
from techpulse.scoring.keyword_rules import (
    ARCHITECTURE_KEYWORDS,
    OUTAGE_NOISE_KEYWORDS,
    STRONG_AI_KEYWORDS,
    STRONG_OUTAGE_KEYWORDS,
    SUPPORTING_AI_KEYWORDS,
    SUPPORTING_OUTAGE_KEYWORDS,
    contains_any,
    count_matches,
)
from techpulse.sources import AI_SOURCE_NAMES, ARCHITECTURE_SOURCE_NAMES, is_aggregator_source


def classification_text(
    title: str,
    summary: Optional[str] = None,
    content_preview: Optional[str] = None,
    tags: Iterable[str] = (),
) -> str:
    return plain_text(" ".join([title or "", summary or "", content_preview or "", *tags])).lower()


def is_outage_related(content: str) -> bool:
    if contains_any(content, OUTAGE_NOISE_KEYWORDS, word_boundary=True):
        return False
    if contains_any(content, STRONG_OUTAGE_KEYWORDS, word_boundary=True):
        return True
    return count_matches(content, SUPPORTING_OUTAGE_KEYWORDS, word_boundary=True) >= 2


def resolve_category(
    source: Source,
    title: str,
    summary: Optional[str] = None,
    content_preview: Optional[str] = None,
    tags: Iterable[str] = (),
) -> str:
    if is_aggregator_source(source):
        return CategorySlug.MEDIUM

    content = classification_text(title, summary, content_preview, tags)

    if is_outage_related(content):
        return CategorySlug.OUTAGES

    arch_score = count_matches(content, ARCHITECTURE_KEYWORDS, word_boundary=True)
    ai_strong = count_matches(content, STRONG_AI_KEYWORDS, word_boundary=True)
    ai_score = ai_strong * 2 + count_matches(content, SUPPORTING_AI_KEYWORDS, word_boundary=True)

    if arch_score >= 2 and arch_score >= ai_score:
        return CategorySlug.ARCHITECTURE
    if ai_strong >= 1 or ai_score >= 3:
        return CategorySlug.AI_AGENTS
    if arch_score >= 1:
        return CategorySlug.ARCHITECTURE

    if source.name in AI_SOURCE_NAMES:
        return CategorySlug.AI_AGENTS
    if source.name in ARCHITECTURE_SOURCE_NAMES:
        return CategorySlug.ARCHITECTURE
    return CategorySlug.ARCHITECTURE
