"""External engagement signals for an article URL.

Each platform fetcher returns a bounded score and never raises: transport,
HTTP and decoding failures all map to 0 for that platform only. Responses are
parsed field-by-field into small dataclasses so a missing or mistyped field
never takes the refresh job down.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from techpulse.http import get_json
from techpulse.ingestion.url_utils import canonical_variants


logger = logging.getLogger(__name__)

SIGNAL_TIMEOUT = 15

HN_SEARCH_URL = "https://hn.algolia.com/api/v1/search"
REDDIT_SEARCH_URL = "https://www.reddit.com/search.json"
X_RECENT_SEARCH_URL = "https://api.x.com/2/tweets/search/recent"
GITHUB_ISSUES_SEARCH_URL = "https://api.github.com/search/issues"

MAX_HN_SCORE = 420
MAX_REDDIT_SCORE = 420
MAX_X_SCORE = 500
MAX_GITHUB_SCORE = 220
MAX_TOTAL_SCORE = 1100

PLATFORM_WEIGHTS = {"hn": 1.0, "reddit": 1.0, "x": 1.15, "github": 0.9}


def _num(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _bounded(total: float, hi: int) -> int:
    return max(0, min(hi, int(round(total))))


@dataclass(frozen=True)
class HNHit:
    url: Optional[str]
    points: float
    num_comments: float

    @classmethod
    def parse(cls, raw: Any) -> "HNHit":
        d = _dict(raw)
        url = d.get("url") if isinstance(d.get("url"), str) else None
        return cls(url=url, points=_num(d.get("points")), num_comments=_num(d.get("num_comments")))


@dataclass(frozen=True)
class RedditPost:
    score: float
    num_comments: float

    @classmethod
    def parse(cls, raw: Any) -> "RedditPost":
        d = _dict(_dict(raw).get("data"))
        return cls(score=_num(d.get("score")), num_comments=_num(d.get("num_comments")))


@dataclass(frozen=True)
class TweetMetrics:
    like_count: float
    retweet_count: float
    reply_count: float
    quote_count: float

    @classmethod
    def parse(cls, raw: Any) -> Optional["TweetMetrics"]:
        m = _dict(raw).get("public_metrics")
        if not isinstance(m, dict):
            return None
        return cls(
            like_count=_num(m.get("like_count")),
            retweet_count=_num(m.get("retweet_count")),
            reply_count=_num(m.get("reply_count")),
            quote_count=_num(m.get("quote_count")),
        )


@dataclass(frozen=True)
class GithubIssue:
    comments: float
    reactions: float

    @classmethod
    def parse(cls, raw: Any) -> "GithubIssue":
        d = _dict(raw)
        return cls(comments=_num(d.get("comments")), reactions=_num(_dict(d.get("reactions")).get("total_count")))


@dataclass(frozen=True)
class SignalResult:
    hn_score: int
    reddit_score: int
    x_score: int
    github_score: int
    total_score: int


def _isolated(platform: str, fn: Callable[[], int]) -> int:
    try:
        return fn()
    except Exception as e:
        logger.warning("%s signal lookup failed: %s", platform, e)
        return 0


def fetch_hacker_news_score(url: str, *, timeout: float = SIGNAL_TIMEOUT) -> int:
    def run() -> int:
        total = 0.0
        for variant in canonical_variants(url):
            data = get_json(HN_SEARCH_URL, params={"tags": "story", "query": variant}, timeout=timeout)
            for raw in _list(_dict(data).get("hits")):
                hit = HNHit.parse(raw)
                if not hit.url:
                    continue
                total += hit.points + hit.num_comments * 1.6
        return _bounded(total, MAX_HN_SCORE)

    return _isolated("hn", run)


def fetch_reddit_score(url: str, *, timeout: float = SIGNAL_TIMEOUT) -> int:
    def run() -> int:
        total = 0.0
        for variant in canonical_variants(url):
            data = get_json(
                REDDIT_SEARCH_URL,
                params={"q": f"url:{variant}", "sort": "top", "t": "month", "limit": 20},
                timeout=timeout,
            )
            for raw in _list(_dict(_dict(data).get("data")).get("children")):
                post = RedditPost.parse(raw)
                total += post.score + post.num_comments * 1.2
        return _bounded(total, MAX_REDDIT_SCORE)

    return _isolated("reddit", run)


def fetch_x_score(url: str, *, bearer_token: Optional[str] = None, timeout: float = SIGNAL_TIMEOUT) -> int:
    if not bearer_token:
        return 0

    def run() -> int:
        query = " OR ".join(f'"{v}"' for v in canonical_variants(url)[:2])
        data = get_json(
            X_RECENT_SEARCH_URL,
            params={
                "query": f"{query} -is:retweet lang:en",
                "tweet.fields": "public_metrics",
                "max_results": 25,
            },
            headers={"Authorization": f"Bearer {bearer_token}"},
            timeout=timeout,
        )
        total = 0.0
        for raw in _list(_dict(data).get("data")):
            m = TweetMetrics.parse(raw)
            if m is None:
                continue
            total += m.like_count + m.retweet_count * 2 + m.reply_count * 1.5 + m.quote_count * 1.8
        return _bounded(total, MAX_X_SCORE)

    return _isolated("x", run)


def fetch_github_score(url: str, *, token: Optional[str] = None, timeout: float = SIGNAL_TIMEOUT) -> int:
    def run() -> int:
        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        data = get_json(
            GITHUB_ISSUES_SEARCH_URL,
            params={"q": f'"{url}"', "per_page": 20},
            headers=headers,
            timeout=timeout,
        )
        total = 0.0
        for raw in _list(_dict(data).get("items")):
            issue = GithubIssue.parse(raw)
            total += issue.comments * 1.8 + issue.reactions * 2.2
        return _bounded(total, MAX_GITHUB_SCORE)

    return _isolated("github", run)


def combine_signal_scores(hn: int, reddit: int, x: int, github: int) -> SignalResult:
    weighted = (
        hn * PLATFORM_WEIGHTS["hn"]
        + reddit * PLATFORM_WEIGHTS["reddit"]
        + x * PLATFORM_WEIGHTS["x"]
        + github * PLATFORM_WEIGHTS["github"]
    )
    return SignalResult(
        hn_score=hn,
        reddit_score=reddit,
        x_score=x,
        github_score=github,
        total_score=_bounded(weighted, MAX_TOTAL_SCORE),
    )


def get_external_signal_score(
    url: str,
    *,
    x_bearer_token: Optional[str] = None,
    github_token: Optional[str] = None,
) -> SignalResult:
    with ThreadPoolExecutor(max_workers=4) as pool:
        hn = pool.submit(fetch_hacker_news_score, url)
        reddit = pool.submit(fetch_reddit_score, url)
        x = pool.submit(fetch_x_score, url, bearer_token=x_bearer_token)
        gh = pool.submit(fetch_github_score, url, token=github_token)
        return combine_signal_scores(hn.result(), reddit.result(), x.result(), gh.result())
