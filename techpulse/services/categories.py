"""Re-run category classification over stored articles."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from techpulse.ingestion.article_types import Source
from techpulse.scoring.category_classifier import resolve_category
from techpulse.storage.repository import ArticleRepository


logger = logging.getLogger(__name__)


@dataclass
class CategoryBackfillResult:
    checked_count: int = 0
    updated_count: int = 0
    category_assignment_counts: Dict[str, int] = field(default_factory=dict)


def backfill_article_categories(repository: ArticleRepository) -> CategoryBackfillResult:
    sources: Dict[Optional[str], Source] = {s.id: s for s in repository.list_sources()}
    result = CategoryBackfillResult()
    for article in repository.list_articles(order_by="created_at", descending=False):
        result.checked_count += 1
        source = sources.get(article.source_id) or Source(
            id=article.source_id or "", name=article.source_name or "", url="", rss_url=""
        )
        slug = resolve_category(source, article.title, article.summary, article.content_preview, article.tags)
        result.category_assignment_counts[slug] = result.category_assignment_counts.get(slug, 0) + 1
        if article.category_slug != slug:
            repository.update_article(article.id, category_slug=slug)
            result.updated_count += 1
    logger.info(
        "category backfill: checked=%d updated=%d counts=%s",
        result.checked_count,
        result.updated_count,
        result.category_assignment_counts,
    )
    return result
