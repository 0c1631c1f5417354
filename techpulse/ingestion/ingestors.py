"""Feed ingestion for engineering/AI blog sources.

Each source is fetched as RSS/Atom first. When the feed itself cannot be
downloaded or parsed, the source's listing page is scraped instead. Results
are normalized into FeedItem records for the orchestrator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence

import feedparser

from techpulse.errors import FetchFailure
from techpulse.extraction.listing import scrape_feed_fallback
from techpulse.http import http_get
from techpulse.ingestion.article_types import (
    FETCH_DEGRADED,
    FETCH_FAILED,
    FETCH_OK,
    FeedItem,
    FetchOutcome,
    Source,
)
from techpulse.ingestion.dates import infer_explicit_date, parse_feed_datetime
from techpulse.ingestion.text_utils import count_words, plain_text


logger = logging.getLogger(__name__)

FEED_TIMEOUT = 20


class FeedParseError(Exception):
    pass


def pick_richest_text(parts: Sequence[Optional[str]]) -> str:
    """Candidate with the most words after stripping HTML; ties keep the earlier one."""
    best = ""
    best_words = -1
    for part in parts:
        cleaned = plain_text(part) if part else ""
        if not cleaned:
            continue
        n = count_words(cleaned)
        if n > best_words:
            best, best_words = cleaned, n
    return best


def _entry_get(entry: Any, key: str) -> Any:
    if hasattr(entry, "get"):
        return entry.get(key)
    return getattr(entry, key, None)


def _entry_text_candidates(entry: Any) -> List[Optional[str]]:
    candidates: List[Optional[str]] = []
    # feedparser maps content:encoded into `content`
    for block in _entry_get(entry, "content") or []:
        value = block.get("value") if hasattr(block, "get") else None
        if value:
            candidates.append(value)
    candidates.append(_entry_get(entry, "summary"))
    candidates.append(_entry_get(entry, "title"))
    return candidates


def _entry_tags(entry: Any) -> List[str]:
    out: List[str] = []
    for t in _entry_get(entry, "tags") or []:
        term = t.get("term") if hasattr(t, "get") else None
        if term and str(term).strip():
            out.append(str(term).strip())
    return out


def _entry_published(entry: Any) -> Optional[datetime]:
    for key in ("published", "updated", "created"):
        parsed = parse_feed_datetime(_entry_get(entry, key))
        if parsed:
            return parsed
    for key in ("published_parsed", "updated_parsed"):
        parsed = parse_feed_datetime(_entry_get(entry, key))
        if parsed:
            return parsed
    return None


def normalize_entry(entry: Any, *, now: Optional[datetime] = None) -> Optional[FeedItem]:
    title = str(_entry_get(entry, "title") or "").strip()
    link = str(_entry_get(entry, "link") or "").strip()
    if not title or not link:
        return None
    raw_text = pick_richest_text(_entry_text_candidates(entry))
    published = _entry_published(entry)
    if published is None:
        published = infer_explicit_date(f"{title} {raw_text}") or now or datetime.now(timezone.utc)
    author = str(_entry_get(entry, "author") or "").strip() or None
    return FeedItem(
        title=title,
        url=link,
        published_at=published,
        raw_text=raw_text,
        author=author,
        tags=tuple(_entry_tags(entry)),
    )


def parse_feed_document(document: bytes | str, *, now: Optional[datetime] = None) -> List[FeedItem]:
    parsed = feedparser.parse(document)
    entries = parsed.entries or []
    if parsed.bozo and not entries:
        raise FeedParseError(f"malformed feed: {parsed.get('bozo_exception')}")
    if not entries and not parsed.get("feed"):
        raise FeedParseError("document is not an RSS/Atom feed")
    out: List[FeedItem] = []
    for entry in entries:
        item = normalize_entry(entry, now=now)
        if item is not None:
            out.append(item)
    return out


def parse_feed(rss_url: str, *, timeout: float = FEED_TIMEOUT) -> List[FeedItem]:
    resp = http_get(rss_url, timeout=timeout)
    if resp.status_code < 200 or resp.status_code >= 300:
        raise FeedParseError(f"HTTP {resp.status_code} for {rss_url}")
    return parse_feed_document(resp.content)


def _describe(e: BaseException) -> str:
    return str(e) or e.__class__.__name__


@dataclass
class FeedIngestor:
    """Fetches one source: feed first, listing-page scrape only if the feed path raises."""

    feed_parser: Callable[[str], List[FeedItem]] = field(default=parse_feed)
    fallback_scraper: Callable[[str], List[FeedItem]] = field(default=scrape_feed_fallback)

    def fetch_outcome(self, source: Source) -> FetchOutcome:
        try:
            items = self.feed_parser(source.rss_url)
            return FetchOutcome(status=FETCH_OK, items=tuple(items))
        except Exception as e:
            feed_error = f"RSS parsing failed: {_describe(e)}"
            logger.warning("[%s] %s", source.name, feed_error)

        try:
            fallback = self.fallback_scraper(source.url)
        except Exception as e:
            fallback_error = f"Fallback parsing failed: {_describe(e)}"
            logger.warning("[%s] %s", source.name, fallback_error)
            return FetchOutcome(status=FETCH_FAILED, warnings=(feed_error, fallback_error))
        return FetchOutcome(status=FETCH_DEGRADED, items=tuple(fallback), warnings=(feed_error,))

    def fetch(self, source: Source) -> List[FeedItem]:
        outcome = self.fetch_outcome(source)
        if outcome.failed:
            raise FetchFailure(f"no items for {source.name}", outcome.warnings)
        return list(outcome.items)


def fetch_source_items(source: Source) -> List[FeedItem]:
    return FeedIngestor().fetch(source)


def fetch_source_outcome(source: Source) -> FetchOutcome:
    return FeedIngestor().fetch_outcome(source)
