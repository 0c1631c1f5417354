"""Listing-page scrape used when a source's feed cannot be parsed."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from techpulse.http import http_get
from techpulse.ingestion.article_types import FeedItem


SCRAPE_TIMEOUT = 12
MAX_FALLBACK_ITEMS = 30
LINK_SELECTORS = "article a[href], main a[href], a[href*='/blog']"


def _absolute(base_url: str, href: str) -> Optional[str]:
    try:
        joined = urljoin(base_url, href)
    except ValueError:
        return None
    if urlparse(joined).scheme not in ("http", "https"):
        return None
    return joined


def parse_listing_links(html: str, base_url: str, *, now: Optional[datetime] = None) -> List[FeedItem]:
    soup = BeautifulSoup(html or "", "html.parser")
    stamp = now or datetime.now(timezone.utc)
    seen = set()
    out: List[FeedItem] = []
    for node in soup.select(LINK_SELECTORS):
        href = (node.get("href") or "").strip()
        title = " ".join(node.get_text(" ").split())
        if not href or not title:
            continue
        url = _absolute(base_url, href)
        if not url or url in seen:
            continue
        seen.add(url)
        out.append(FeedItem(title=title, url=url, published_at=stamp, raw_text=title))
    return out[:MAX_FALLBACK_ITEMS]


def scrape_feed_fallback(source_url: str, *, timeout: float = SCRAPE_TIMEOUT) -> List[FeedItem]:
    """Scrape anchors from a source's listing page. Raises on transport or HTTP errors."""
    resp = http_get(source_url, timeout=timeout)
    if resp.status_code < 200 or resp.status_code >= 300:
        raise RuntimeError(f"Fallback scraping failed for {source_url}: {resp.status_code}")
    return parse_listing_links(resp.text, source_url)
