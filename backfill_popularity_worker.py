#!/usr/bin/env python3
"""Recompute popularity v2 from stored signals. No network calls."""

from __future__ import annotations

import argparse
import logging

from techpulse.config import Settings
from techpulse.services.popularity import backfill_popularity_v2
from techpulse.storage.postgres_repo import PostgresArticleRepository
from techpulse.storage.postgres_schema import ensure_postgres_schema


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    ap = argparse.ArgumentParser()
    ap.add_argument("--days-back", type=int, default=365)
    ap.add_argument("--limit", type=int, default=5000)
    args = ap.parse_args()

    settings = Settings.from_env()
    ensure_postgres_schema(settings.pg_dsn)
    result = backfill_popularity_v2(
        PostgresArticleRepository(settings.pg_dsn), days_back=args.days_back, limit=args.limit, settings=settings
    )
    print(f"[popularity-v2] checked={result.checked_count} updated={result.updated_count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
