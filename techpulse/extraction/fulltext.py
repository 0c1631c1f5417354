"""Fulltext fetch + extraction for low-content feed items.

Policy:
- Only used to enrich items whose feed body is thin.
- Never raises; failures come back as a status on FulltextResult.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import ipaddress
import re
from urllib.parse import urlparse

import requests
import trafilatura
from bs4 import BeautifulSoup

from techpulse.http import USER_AGENT


EXTRACT_TIMEOUT = 12
MIN_RESULT_WORDS = 20

_STRIP_TAGS = ["script", "style", "noscript", "svg", "nav", "footer", "header", "form", "aside"]
_BODY_SELECTORS = (
    "article, main article, main, [role='main'], .post-content, .entry-content, "
    ".article-content, .prose, .content"
)
_PARAGRAPH_SELECTORS = "article p, main p, p"


@dataclass(frozen=True)
class FulltextResult:
    text: Optional[str]
    status: str
    error: Optional[str] = None


_PRIVATE_NETS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def _is_private_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return any(ip in net for net in _PRIVATE_NETS)


def validate_fetch_url(url: str) -> Optional[str]:
    """Return error string if URL should not be fetched (SSRF/abuse protections)."""
    try:
        p = urlparse(url)
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    host = (p.hostname or "").strip().lower()
    if not p.netloc or not host:
        return "missing_host"
    if host in ("localhost", "localhost.localdomain"):
        return "blocked_host"
    if _is_private_ip(host):
        return "blocked_private_ip"
    return None


def _ws(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _words(text: str) -> int:
    return len((text or "").split())


def extract_main_text(html: str) -> Optional[str]:
    """Pick the most word-dense structural block, then paragraphs, then meta description."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_STRIP_TAGS):
        tag.decompose()

    best = ""
    for node in soup.select(_BODY_SELECTORS):
        text = _ws(node.get_text(" "))
        if _words(text) > _words(best):
            best = text

    if _words(best) < 120:
        paragraphs: List[str] = []
        for node in soup.select(_PARAGRAPH_SELECTORS):
            line = _ws(node.get_text(" "))
            if len(line) >= 40:
                paragraphs.append(line)
        merged = _ws(" ".join(paragraphs[:120]))
        if _words(merged) > _words(best):
            best = merged

    if _words(best) < 80:
        meta = soup.select_one("meta[name='description']") or soup.select_one("meta[property='og:description']")
        description = _ws(meta.get("content", "")) if meta else ""
        if _words(description) > _words(best):
            best = description

    if _words(best) < 120:
        extracted = _ws(trafilatura.extract(html, include_comments=False, include_tables=False) or "")
        if _words(extracted) > _words(best):
            best = extracted

    return best if _words(best) >= MIN_RESULT_WORDS else None


def fetch_and_extract(url: str, *, timeout: float = EXTRACT_TIMEOUT, max_bytes: int = 2_000_000) -> FulltextResult:
    if not url:
        return FulltextResult(text=None, status="error", error="empty_url")
    err = validate_fetch_url(url)
    if err:
        return FulltextResult(text=None, status="blocked", error=err)
    try:
        resp = requests.get(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=(5, timeout),
            allow_redirects=True,
            stream=True,
        )
        if resp.status_code >= 400:
            return FulltextResult(text=None, status=f"http_{resp.status_code}", error=f"http_{resp.status_code}")
        # Size guardrail: read up to max_bytes
        content = b""
        for chunk in resp.iter_content(chunk_size=64 * 1024):
            if not chunk:
                continue
            content += chunk
            if len(content) > max_bytes:
                return FulltextResult(text=None, status="too_large", error="too_large")
        html = content.decode(resp.encoding or "utf-8", errors="replace")
        if not html.strip():
            return FulltextResult(text=None, status="empty", error="empty_html")
        text = extract_main_text(html)
        if not text:
            return FulltextResult(text=None, status="no_extract", error="no_extract")
        return FulltextResult(text=text, status="ok")
    except Exception as e:
        return FulltextResult(text=None, status="error", error=str(e))


def extract_article_text(url: str) -> Optional[str]:
    return fetch_and_extract(url).text
