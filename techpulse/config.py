"""Environment-driven settings.

Values come from the process environment (optionally populated from a `.env`
file via python-dotenv), mirroring how the workers read `PG_DSN` and friends.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from techpulse.errors import ConfigurationError


DEFAULT_PG_DSN = "dbname=techpulse user=techpulse password=techpulse host=localhost port=5432"

DEFAULT_AGGREGATOR_ALLOWED_TOPICS: Tuple[str, ...] = (
    "system design",
    "distributed systems",
    "llm",
    "transformers",
    "rag",
    "scaling",
)

DEFAULT_LOW_SIGNAL_PATTERNS: Tuple[str, ...] = (
    "support@",
    "press@",
    "download press kit",
    "copyright",
    "all rights reserved",
)


def _bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    return str(raw).strip().lower() == "true"


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}")


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        return float(str(raw).strip())
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}")


def _csv(env: Mapping[str, str], key: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    return tuple(p.strip().lower() for p in str(raw).split(",") if p.strip())


def _optional(env: Mapping[str, str], key: str) -> Optional[str]:
    raw = (env.get(key) or "").strip()
    return raw or None


@dataclass(frozen=True)
class Settings:
    pg_dsn: str = DEFAULT_PG_DSN
    ingestion_auto_enabled: bool = True
    ingestion_daily_cron: str = "0 6 * * *"
    popularity_refresh_enabled: bool = True
    popularity_refresh_interval_hours: int = 6
    popularity_v2_enabled: bool = True
    popularity_half_life_hours: float = 168.0
    x_bearer_token: Optional[str] = None
    github_token: Optional[str] = None
    ingest_concurrency: int = 4
    ingest_source_timeout: float = 20.0
    ingest_max_items_per_source: int = 12
    aggregator_allowed_topics: Tuple[str, ...] = field(default=DEFAULT_AGGREGATOR_ALLOWED_TOPICS)
    low_signal_patterns: Tuple[str, ...] = field(default=DEFAULT_LOW_SIGNAL_PATTERNS)
    scheduler_state_file: str = os.path.join(".scheduler", "last-ingestion-success.json")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        if env is None:
            load_dotenv()
            env = os.environ
        concurrency = _int(env, "INGEST_CONCURRENCY", 4)
        if concurrency < 1:
            raise ConfigurationError("INGEST_CONCURRENCY must be >= 1")
        half_life = _float(env, "POPULARITY_HALF_LIFE_HOURS", 168.0)
        return cls(
            pg_dsn=(env.get("PG_DSN") or DEFAULT_PG_DSN),
            ingestion_auto_enabled=_bool(env, "INGESTION_AUTO_ENABLED", True),
            ingestion_daily_cron=(env.get("INGESTION_DAILY_CRON") or "0 6 * * *").strip(),
            popularity_refresh_enabled=_bool(env, "POPULARITY_REFRESH_ENABLED", True),
            popularity_refresh_interval_hours=max(1, _int(env, "POPULARITY_REFRESH_INTERVAL_HOURS", 6)),
            popularity_v2_enabled=_bool(env, "POPULARITY_V2_ENABLED", True),
            popularity_half_life_hours=half_life if half_life > 0 else 168.0,
            x_bearer_token=_optional(env, "X_BEARER_TOKEN"),
            github_token=_optional(env, "GITHUB_TOKEN"),
            ingest_concurrency=concurrency,
            ingest_source_timeout=_float(env, "INGEST_SOURCE_TIMEOUT", 20.0),
            ingest_max_items_per_source=max(1, _int(env, "INGEST_MAX_ITEMS_PER_SOURCE", 12)),
            aggregator_allowed_topics=_csv(env, "AGGREGATOR_ALLOWED_TOPICS", DEFAULT_AGGREGATOR_ALLOWED_TOPICS),
            low_signal_patterns=_csv(env, "LOW_SIGNAL_PATTERNS", DEFAULT_LOW_SIGNAL_PATTERNS),
            scheduler_state_file=(
                env.get("SCHEDULER_STATE_FILE") or os.path.join(".scheduler", "last-ingestion-success.json")
            ),
        )
