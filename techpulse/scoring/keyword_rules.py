"""Keyword rule tables shared by the classifier, the scorers and hot-topic scoring.

A rule is a weight plus a keyword set. Each site decides how to match
(substring vs. word boundary) and how to combine hits. A labelled rule also
names the learning track its keywords mark.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class KeywordRule:
    weight: float
    keywords: Tuple[str, ...]
    label: Optional[str] = None


@lru_cache(maxsize=4096)
def _boundary_pattern(keyword: str) -> "re.Pattern[str]":
    return re.compile(r"(?<![a-z0-9])" + re.escape(keyword) + r"(?![a-z0-9])")


def contains_keyword(content: str, keyword: str, *, word_boundary: bool = False) -> bool:
    if not word_boundary:
        return keyword in content
    return _boundary_pattern(keyword).search(content) is not None


def contains_any(content: str, keywords: Iterable[str], *, word_boundary: bool = False) -> bool:
    return any(contains_keyword(content, k, word_boundary=word_boundary) for k in keywords)


def count_matches(content: str, keywords: Iterable[str], *, word_boundary: bool = False) -> int:
    return sum(1 for k in keywords if contains_keyword(content, k, word_boundary=word_boundary))


@dataclass(frozen=True)
class RuleScore:
    score: float
    labels: Tuple[str, ...]


def score_rules(
    content: str,
    rules: Sequence[KeywordRule],
    *,
    word_boundary: bool = False,
    max_score: Optional[float] = None,
) -> RuleScore:
    """Sum the weight of every rule with at least one matching keyword."""
    total = 0.0
    labels: List[str] = []
    for rule in rules:
        if not contains_any(content, rule.keywords, word_boundary=word_boundary):
            continue
        total += rule.weight
        if rule.label:
            labels.append(rule.label)
    if max_score is not None:
        total = min(total, max_score)
    return RuleScore(score=total, labels=tuple(labels))


def rules_from_ranked_keywords(keywords: Sequence[str], *, top: float = 14, floor: float = 3, bucket: int = 4) -> List[KeywordRule]:
    """One rule per keyword; earlier-ranked keywords weigh more, decaying one point per bucket."""
    return [
        KeywordRule(weight=max(floor, top - (i // bucket)), keywords=(kw,))
        for i, kw in enumerate(keywords)
        if kw
    ]


# -----------------------------
# Topic vocabularies
# -----------------------------
STRONG_OUTAGE_KEYWORDS: Tuple[str, ...] = (
    "outage",
    "incident report",
    "root cause",
    "security advisory",
    "credential leak",
    "misconfiguration",
    "service disruption",
    "data breach",
    "breach",
    "security incident",
    "postmortem",
    "post-mortem",
    "incident response",
    "exposed",
)

SUPPORTING_OUTAGE_KEYWORDS: Tuple[str, ...] = (
    "incident",
    "downtime",
    "vulnerability",
    "cve",
    "ddos",
    "leak",
    "exploit",
)

OUTAGE_NOISE_KEYWORDS: Tuple[str, ...] = (
    "prompt injection attack",
    "adversarial attack",
    "model attack",
    "attack benchmark",
    "red team",
    "safety eval",
)

STRONG_AI_KEYWORDS: Tuple[str, ...] = (
    "llm",
    "llms",
    "machine learning",
    "large language model",
    "rag",
    "transformer",
    "transformers",
    "fine-tuning",
    "finetuning",
    "embedding",
    "embeddings",
    "agentic",
    "ai agent",
    "ai agents",
)

SUPPORTING_AI_KEYWORDS: Tuple[str, ...] = (
    "ai",
    "ml",
    "agent",
    "agents",
    "model",
    "models",
    "inference",
    "prompt",
    "reasoning",
)

ARCHITECTURE_KEYWORDS: Tuple[str, ...] = (
    "architecture",
    "distributed",
    "database",
    "replication",
    "migration",
    "scalability",
    "scaling",
    "throughput",
    "latency",
    "consensus",
    "event driven",
    "event-driven",
    "queue",
    "partition",
    "fault tolerance",
)


# -----------------------------
# Popularity rule tables
# -----------------------------
BREAKTHROUGH_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(18, ("breakthrough", "state-of-the-art", "state of the art", "sota", "world model", "frontier model")),
    KeywordRule(16, ("reasoning model", "reasoning", "agentic", "self-improving", "test-time compute")),
    KeywordRule(14, ("new model", "model release", "announcing", "introducing", "launch", "rollout", "ga release")),
    KeywordRule(12, ("benchmark", "eval", "evaluation", "open-source release", "paper", "research preview")),
    KeywordRule(10, ("mcp", "model context protocol", "multimodal", "tool use", "memory", "long context")),
)

ANNOUNCEMENT_KEYWORDS: Tuple[str, ...] = ("announcing", "introducing", "launch", "released", "rollout")
TECHNICAL_SUBJECT_KEYWORDS: Tuple[str, ...] = ("model", "inference", "agent", "architecture", "database", "platform")
ANNOUNCEMENT_BONUS = 14.0

SEED_TRENDING_KEYWORDS: Tuple[str, ...] = (
    "reasoning model",
    "agentic",
    "mcp",
    "model context protocol",
    "rag",
    "distributed systems",
    "observability",
    "incident response",
    "platform engineering",
    "ai coding",
)

TECH_CONTEXT_TOKENS = frozenset(
    {
        "ai", "llm", "model", "models", "agent", "agents", "rag", "transformer", "inference",
        "reasoning", "mcp", "system", "systems", "design", "distributed", "architecture",
        "kubernetes", "cloud", "database", "latency", "scaling", "throughput", "reliability",
        "observability", "incident", "platform", "sre", "gpu", "security", "runtime", "compiler",
        "api", "apis", "microservice", "microservices", "benchmark", "evaluation", "eval", "vector",
    }
)


# -----------------------------
# Reader relevance tables
# -----------------------------
LEARNING_TRACK_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(
        20,
        (
            "system design", "architecture", "distributed", "scaling", "latency", "throughput",
            "fault tolerance", "database", "queue", "event driven", "consensus", "replication",
        ),
        label="System Design",
    ),
    KeywordRule(
        20,
        (
            "llm", "transformer", "rag", "agent", "inference", "prompt", "model", "eval",
            "fine-tuning", "embedding", "reasoning", "context window",
        ),
        label="AI & LLM",
    ),
    KeywordRule(
        16,
        (
            "kubernetes", "cloud", "platform", "deployment", "observability", "incident",
            "sre", "devops", "multi-tenant", "availability",
        ),
        label="Infra & Platforms",
    ),
    KeywordRule(
        16,
        (
            "introducing", "launch", "announcing", "released", "rollout", "new feature",
            "new model", "research preview", "general availability",
        ),
        label="New Tech Rollout",
    ),
)

EDITORIAL_HOT_TOPIC_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(16, ("reasoning model", "agentic", "mcp", "model context protocol", "ai coding", "copilot")),
    KeywordRule(14, ("rag", "vector database", "inference", "gpu", "latency", "benchmark", "cost optimization")),
    KeywordRule(12, ("distributed systems", "observability", "incident response", "platform engineering", "serverless")),
)
