#!/usr/bin/env python3
"""Blog/RSS ingestion worker.

Runs one ingestion cycle over every configured source, or stays up and runs
the daily schedule (with startup catch-up and periodic popularity refresh):

    INGEST_MODE=once       one cycle then exit (default)
    INGEST_MODE=scheduled  daily cron from INGESTION_DAILY_CRON
"""

from __future__ import annotations

import logging
import os

from techpulse.config import Settings
from techpulse.services.ingestion_job import STATUS_SUCCESS, IngestionJobRunner
from techpulse.services.scheduler import IngestionScheduler, write_last_success
from techpulse.sources import default_sources
from techpulse.storage.postgres_repo import PostgresArticleRepository
from techpulse.storage.postgres_schema import ensure_postgres_schema


def _repository(settings: Settings) -> PostgresArticleRepository:
    ensure_postgres_schema(settings.pg_dsn)
    repo = PostgresArticleRepository(settings.pg_dsn)
    for source in default_sources():
        repo.upsert_source(source)
    return repo


def run_once(settings: Settings) -> int:
    runner = IngestionJobRunner(_repository(settings), settings=settings, refresh_after_ingest=False)
    outcome = runner.run_now()
    if outcome.status != STATUS_SUCCESS or outcome.result is None:
        print(f"[ingest] failed: {outcome.message}")
        return 1
    write_last_success(settings.scheduler_state_file, outcome.result.finished_at)
    r = outcome.result
    print(
        f"[ingest] sources={r.source_count} fetched={r.fetched_count} created={r.created_count} "
        f"skipped={r.skipped_count} repaired_dates={r.repaired_date_count}"
    )
    for name, errors in r.errors_by_source().items():
        print(f"[ingest] {name}: {'; '.join(errors)}")
    return 0


def run_scheduled(settings: Settings) -> int:
    runner = IngestionJobRunner(_repository(settings), settings=settings)
    IngestionScheduler(runner, settings=settings).run_forever()
    return 0


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    settings = Settings.from_env()
    mode = (os.environ.get("INGEST_MODE") or "once").lower().strip()
    if mode in ("scheduled", "daemon"):
        return run_scheduled(settings)
    return run_once(settings)


if __name__ == "__main__":
    raise SystemExit(main())
