"""Shared ingestion data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


class CategorySlug:
    ARCHITECTURE = "big-tech-architecture"
    AI_AGENTS = "ml-ai-agents"
    OUTAGES = "big-tech-outages"
    MEDIUM = "popular-medium-engineering"


CATEGORY_DEFINITIONS: Dict[str, str] = {
    CategorySlug.AI_AGENTS: "ML, AI & Agents",
    CategorySlug.ARCHITECTURE: "Big Tech Architecture",
    CategorySlug.OUTAGES: "Big Tech Outages",
    CategorySlug.MEDIUM: "Popular Medium Engineering",
}


@dataclass(frozen=True)
class Category:
    slug: str
    name: str


@dataclass(frozen=True)
class Source:
    id: str
    name: str
    url: str
    rss_url: str
    category_slug: str = CategorySlug.ARCHITECTURE


@dataclass
class Article:
    """Stored article. Only popularity fields, reading_time and published_at change after creation."""

    id: str
    title: str
    slug: str
    url: str
    published_at: datetime
    created_at: datetime
    reading_time: int = 1
    summary: str = ""
    content_preview: str = ""
    author: Optional[str] = None
    source_id: Optional[str] = None
    source_name: Optional[str] = None
    category_slug: Optional[str] = None
    tags: Tuple[str, ...] = ()
    external_popularity_score: float = 0.0
    external_popularity_prev_score: float = 0.0
    viral_velocity_score: float = 0.0
    hot_topic_score: float = 0.0
    breakthrough_score: float = 0.0
    popularity_score_v2: float = 0.0
    popularity_confidence: float = 0.0
    popularity_last_checked_at: Optional[datetime] = None
    popularity_computed_at: Optional[datetime] = None


@dataclass(frozen=True)
class FeedItem:
    """Raw item produced by the feed parser or the listing-page fallback."""

    title: str
    url: str
    published_at: datetime
    raw_text: str = ""
    author: Optional[str] = None
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class IngestionArticleInput:
    """Normalized candidate article, ready for dedup and persistence."""

    title: str
    url: str
    published_at: datetime
    summary: str
    content_preview: str
    reading_time: int
    author: Optional[str] = None
    tags: Tuple[str, ...] = ()


FETCH_OK = "ok"
FETCH_DEGRADED = "degraded"
FETCH_FAILED = "failed"


@dataclass(frozen=True)
class FetchOutcome:
    """Feed fetch result: ok (feed parsed), degraded (fallback data plus warnings) or failed."""

    status: str
    items: Tuple[FeedItem, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        return self.status == FETCH_FAILED


@dataclass
class SourceIngestionResult:
    source_id: str
    source_name: str
    fetched_count: int = 0
    created_count: int = 0
    skipped_count: int = 0
    errors: List[str] = field(default_factory=list)
    category_assignment_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceId": self.source_id,
            "sourceName": self.source_name,
            "fetchedCount": self.fetched_count,
            "createdCount": self.created_count,
            "skippedCount": self.skipped_count,
            "errors": list(self.errors),
            "categoryAssignmentCounts": dict(self.category_assignment_counts),
        }


@dataclass
class IngestAllResult:
    started_at: datetime
    finished_at: datetime
    source_count: int
    fetched_count: int
    created_count: int
    skipped_count: int
    repaired_date_count: int = 0
    category_assignment_counts: Dict[str, int] = field(default_factory=dict)
    results: List[SourceIngestionResult] = field(default_factory=list)

    def errors_by_source(self) -> Dict[str, List[str]]:
        return {r.source_name: list(r.errors) for r in self.results if r.errors}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
            "sourceCount": self.source_count,
            "fetchedCount": self.fetched_count,
            "createdCount": self.created_count,
            "skippedCount": self.skipped_count,
            "repairedDateCount": self.repaired_date_count,
            "categoryAssignmentCounts": dict(self.category_assignment_counts),
            "errors": self.errors_by_source(),
            "results": [r.to_dict() for r in self.results],
        }
