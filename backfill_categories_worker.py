#!/usr/bin/env python3
"""Re-classify every stored article with the current category rules."""

from __future__ import annotations

import logging

from techpulse.config import Settings
from techpulse.services.categories import backfill_article_categories
from techpulse.storage.postgres_repo import PostgresArticleRepository
from techpulse.storage.postgres_schema import ensure_postgres_schema


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    settings = Settings.from_env()
    ensure_postgres_schema(settings.pg_dsn)
    result = backfill_article_categories(PostgresArticleRepository(settings.pg_dsn))
    counts = ", ".join(f"{k}={v}" for k, v in sorted(result.category_assignment_counts.items()))
    print(f"[categories] checked={result.checked_count} updated={result.updated_count} {counts}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
