#!/usr/bin/env python3
"""Refresh external popularity signals (HN, Reddit, X, GitHub) for recent articles."""

from __future__ import annotations

import argparse
import logging

from techpulse.config import Settings
from techpulse.services.popularity import refresh_external_popularity_signals
from techpulse.storage.postgres_repo import PostgresArticleRepository
from techpulse.storage.postgres_schema import ensure_postgres_schema


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    ap = argparse.ArgumentParser()
    ap.add_argument("--days-back", type=int, default=35)
    ap.add_argument("--limit", type=int, default=260)
    args = ap.parse_args()

    settings = Settings.from_env()
    ensure_postgres_schema(settings.pg_dsn)
    repo = PostgresArticleRepository(settings.pg_dsn)
    result = refresh_external_popularity_signals(
        repo, days_back=args.days_back, limit=args.limit, settings=settings
    )
    print(
        f"[popularity] checked={result.checked_count} updated={result.updated_count} "
        f"errors={len(result.errors)} topics={', '.join(result.trending_keywords[:5])}"
    )
    return 0 if not result.errors or result.updated_count else 1


if __name__ == "__main__":
    raise SystemExit(main())
