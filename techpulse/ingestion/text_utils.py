"""Text helpers used when normalizing feed items."""

from __future__ import annotations

import html
import math
import re
import unicodedata
from typing import Iterable, List


_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

SUMMARY_WORDS = 260
PREVIEW_WORDS = 110


def plain_text(value: str | None) -> str:
    if not value:
        return ""
    text = _TAG_RE.sub(" ", value)
    text = html.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def make_slug(value: str) -> str:
    folded = unicodedata.normalize("NFKD", value or "").encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", folded.lower()).strip("-")
    return slug or "article"


def count_words(text: str) -> int:
    return len((text or "").split())


def estimate_reading_time(text: str, *, words_per_minute: int = 170, min_minutes: int = 1) -> int:
    wpm = max(80, words_per_minute)
    floor = max(1, min_minutes)
    return max(floor, math.ceil(count_words(text) / wpm))


def summarize(text: str) -> str:
    return " ".join((text or "").split()[:SUMMARY_WORDS]).strip()


def preview(text: str) -> str:
    return " ".join(plain_text(text).split()[:PREVIEW_WORDS]).strip()


def unique_strings(values: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for v in values:
        s = (v or "").strip()
        if not s or s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


def normalize_tag(value: str) -> str:
    return (value or "").lower().strip()


def normalize_topic_tag(tag: str) -> str:
    """`Distributed-Systems` and `distributed_systems` both become `distributed systems`."""
    return normalize_tag(_WS_RE.sub(" ", re.sub(r"[-_]+", " ", tag or "")))
