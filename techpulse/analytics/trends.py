"""Trending keyword extraction for hot-topic scoring.

We build a small, explainable vocabulary of what is hot right now:
- count unigrams and bigrams over front-page titles/bodies
- keep terms seen at least twice
- restrict to technical vocabulary
- merge behind a fixed seed list
Earlier-ranked keywords are worth more when matched against an article.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import List, Optional, Sequence

from techpulse.http import get_json
from techpulse.scoring.keyword_rules import (
    SEED_TRENDING_KEYWORDS,
    TECH_CONTEXT_TOKENS,
    rules_from_ranked_keywords,
    score_rules,
)


logger = logging.getLogger(__name__)

HN_FRONT_PAGE_URL = "https://hn.algolia.com/api/v1/search"
TRENDING_SUBREDDITS = ("programming", "MachineLearning", "artificial", "devops", "systemdesign")

MIN_TERM_COUNT = 2
TOP_UNIGRAMS = 45
TOP_BIGRAMS = 25
MAX_HOT_TOPIC_SCORE = 160.0

STOPWORDS = {
    "the","and","for","with","that","this","from","your","have","will","about","into","their","there",
    "what","when","where","which","while","than","been","being","also","more","most","some","many","much",
    "just","using","used","over","under","after","before","between","through","new","post","blog","article",
    "thread","today","week","month","year","read","news","update","updates","engineering","software","you",
    "yourself","ours","ourselves","they","them","theirs","can","could","would","should","rel","nofollow","href",
}

_URL_FRAGMENTS = ("http", "www", "x2f")
_URL_SUFFIXES = (".com", ".org", ".ai")


def _keep(token: str) -> bool:
    if len(token) < 3 or len(token) > 32:
        return False
    if token in STOPWORDS or token.isdigit():
        return False
    if any(f in token for f in _URL_FRAGMENTS):
        return False
    return not token.endswith(_URL_SUFFIXES)


def tokenize(text: str) -> List[str]:
    if not text:
        return []
    cleaned = re.sub(r"[^a-z0-9+#.\-\s]", " ", text.lower())
    return [t for t in cleaned.split() if _keep(t)]


def _ranked(counts: Counter, top: int) -> List[str]:
    # Counter.most_common is stable for ties (first-seen order)
    return [term for term, n in counts.most_common() if n >= MIN_TERM_COUNT][:top]


def extract_trending_keywords(texts: Sequence[str]) -> List[str]:
    unigrams: Counter = Counter()
    bigrams: Counter = Counter()
    for text in texts:
        tokens = tokenize(text)
        unigrams.update(tokens)
        bigrams.update(f"{a} {b}" for a, b in zip(tokens, tokens[1:]))

    top_tokens = [t for t in _ranked(unigrams, TOP_UNIGRAMS) if t in TECH_CONTEXT_TOKENS]
    top_bigrams = [
        p for p in _ranked(bigrams, TOP_BIGRAMS) if any(t in TECH_CONTEXT_TOKENS for t in p.split(" "))
    ]

    out: List[str] = []
    for kw in (*SEED_TRENDING_KEYWORDS, *top_bigrams, *top_tokens):
        if kw not in out:
            out.append(kw)
    return out


def compute_hot_topic_score(content: str, trending_keywords: Sequence[str]) -> float:
    if not content or not trending_keywords:
        return 0.0
    rules = rules_from_ranked_keywords(trending_keywords)
    return score_rules(content, rules, max_score=MAX_HOT_TOPIC_SCORE).score


def _combine(*parts: Optional[str]) -> str:
    return " ".join(p.strip() for p in parts if isinstance(p, str) and p.strip()).lower()


def fetch_trending_text_corpus(*, timeout: float = 15) -> List[str]:
    """Titles and bodies from the HN front page and a few subreddits. Never raises."""
    texts: List[str] = []
    try:
        data = get_json(HN_FRONT_PAGE_URL, params={"tags": "front_page"}, timeout=timeout)
        hits = data.get("hits") if isinstance(data, dict) else None
        for hit in hits if isinstance(hits, list) else []:
            if not isinstance(hit, dict):
                continue
            combined = _combine(hit.get("title"), hit.get("story_text"))
            if combined:
                texts.append(combined)
    except Exception as e:
        logger.warning("HN front page fetch failed: %s", e)

    for sub in TRENDING_SUBREDDITS:
        try:
            data = get_json(f"https://www.reddit.com/r/{sub}/hot.json", params={"limit": 30}, timeout=timeout)
            listing = data.get("data") if isinstance(data, dict) else None
            children = listing.get("children") if isinstance(listing, dict) else None
            for child in children if isinstance(children, list) else []:
                post = child.get("data") if isinstance(child, dict) else None
                if not isinstance(post, dict):
                    continue
                combined = _combine(post.get("title"), post.get("selftext"))
                if combined:
                    texts.append(combined)
        except Exception as e:
            logger.warning("r/%s hot fetch failed: %s", sub, e)
    return texts
