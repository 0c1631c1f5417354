"""Curated source list and per-source priors (can be extended via the repository later)."""

from __future__ import annotations

from typing import Dict, FrozenSet, List

from techpulse.ingestion.article_types import CategorySlug, Source


SOURCE_QUALITY_WEIGHTS: Dict[str, float] = {
    "OpenAI": 22,
    "Anthropic": 21,
    "Cognition": 19,
    "HuggingFace": 18,
    "Google DeepMind Blog": 19,
    "Cloudflare": 17,
    "LangChain": 16,
    "Vercel AI": 16,
    "Netflix Tech Blog": 16,
    "Uber Engineering": 15,
    "Meta Engineering": 15,
    "AWS Architecture": 15,
    "Google Cloud Blog": 15,
    "Stripe Engineering": 15,
    "Dropbox Tech": 14,
}
DEFAULT_SOURCE_WEIGHT = 10.0
MAX_SOURCE_WEIGHT = 22.0

AI_SOURCE_NAMES: FrozenSet[str] = frozenset(
    {"OpenAI", "Anthropic", "Cognition", "HuggingFace", "Google DeepMind Blog", "LangChain", "Vercel AI"}
)

ARCHITECTURE_SOURCE_NAMES: FrozenSet[str] = frozenset(
    {
        "Cloudflare",
        "Netflix Tech Blog",
        "Uber Engineering",
        "Stripe Engineering",
        "Dropbox Tech",
        "Meta Engineering",
        "Google Cloud Blog",
        "AWS Architecture",
    }
)

AGGREGATOR_NAME_PREFIX = "medium:"
AGGREGATOR_DOMAIN = "medium.com"


def is_aggregator_source(source: Source) -> bool:
    """Tag-based digest feeds (Medium) need topic screening before ingest."""
    return (
        (source.name or "").lower().startswith(AGGREGATOR_NAME_PREFIX)
        or AGGREGATOR_DOMAIN in (source.url or "")
        or AGGREGATOR_DOMAIN in (source.rss_url or "")
    )


def source_weight(source_name: str | None) -> float:
    return float(SOURCE_QUALITY_WEIGHTS.get(source_name or "", DEFAULT_SOURCE_WEIGHT))


def _src(name: str, url: str, rss_url: str, category: str) -> Source:
    return Source(id=name.lower().replace(":", "").replace(" ", "-"), name=name, url=url, rss_url=rss_url, category_slug=category)


def default_sources() -> List[Source]:
    ai = CategorySlug.AI_AGENTS
    arch = CategorySlug.ARCHITECTURE
    medium = CategorySlug.MEDIUM
    return [
        _src("OpenAI", "https://openai.com/blog", "https://openai.com/blog/rss.xml", ai),
        _src("Anthropic", "https://www.anthropic.com/research", "https://www.anthropic.com/research/rss.xml", ai),
        _src("Cognition", "https://cognition.ai/blog", "https://cognition.ai/blog/rss.xml", ai),
        _src("HuggingFace", "https://huggingface.co/blog", "https://huggingface.co/blog/feed.xml", ai),
        _src("Google DeepMind Blog", "https://deepmind.google/discover/blog", "https://deepmind.google/discover/blog/rss.xml", ai),
        _src("Cloudflare", "https://blog.cloudflare.com/", "https://blog.cloudflare.com/rss/", arch),
        _src("LangChain", "https://blog.langchain.dev/", "https://blog.langchain.dev/rss/", ai),
        _src("Vercel AI", "https://vercel.com/blog/tag/ai", "https://vercel.com/atom.xml?path=/blog/tag/ai", ai),
        _src("Netflix Tech Blog", "https://netflixtechblog.com/", "https://netflixtechblog.com/feed", arch),
        _src("Uber Engineering", "https://www.uber.com/blog/engineering/", "https://www.uber.com/blog/engineering/rss/", arch),
        _src("Stripe Engineering", "https://stripe.com/blog/engineering", "https://stripe.com/blog/engineering/feed", arch),
        _src("Dropbox Tech", "https://dropbox.tech/", "https://dropbox.tech/feed", arch),
        _src("Meta Engineering", "https://engineering.fb.com/", "https://engineering.fb.com/feed/", arch),
        _src("Google Cloud Blog", "https://cloud.google.com/blog", "https://cloud.google.com/blog/rss/", arch),
        _src("AWS Architecture", "https://aws.amazon.com/blogs/architecture/", "https://aws.amazon.com/blogs/architecture/feed/", arch),
        _src("Medium: System Design", "https://medium.com/tag/system-design", "https://medium.com/feed/tag/system-design", medium),
        _src("Medium: Distributed Systems", "https://medium.com/tag/distributed-systems", "https://medium.com/feed/tag/distributed-systems", medium),
        _src("Medium: LLM", "https://medium.com/tag/llm", "https://medium.com/feed/tag/llm", medium),
        _src("Medium: Transformers", "https://medium.com/tag/transformers", "https://medium.com/feed/tag/transformers", medium),
        _src("Medium: RAG", "https://medium.com/tag/rag", "https://medium.com/feed/tag/rag", medium),
        _src("Medium: Scaling", "https://medium.com/tag/scaling", "https://medium.com/feed/tag/scaling", medium),
    ]
