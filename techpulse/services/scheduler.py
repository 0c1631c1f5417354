"""Daily ingestion + periodic popularity refresh on the `schedule` library."""

from __future__ import annotations

import json
import logging
import os
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

import schedule

from techpulse.config import Settings
from techpulse.services.ingestion_job import STATUS_SUCCESS, IngestionJobRunner


logger = logging.getLogger(__name__)

CATCHUP_WINDOW = timedelta(hours=24)


def parse_daily_cron(expr: str) -> Optional[Tuple[int, int]]:
    """(hour, minute) for a daily "M H * * *" expression, else None."""
    parts = (expr or "").split()
    if len(parts) != 5:
        return None
    minute_part, hour_part, day, month, weekday = parts
    if (day, month, weekday) != ("*", "*", "*"):
        return None
    try:
        hour, minute = int(hour_part), int(minute_part)
    except ValueError:
        return None
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour, minute


def read_last_success(path: str) -> Optional[datetime]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        return datetime.fromisoformat(raw["lastSuccessAt"])
    except (OSError, ValueError, KeyError, TypeError):
        return None


def write_last_success(path: str, when: datetime) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"lastSuccessAt": when.isoformat()}, f, indent=2)


def needs_catchup(last_success: Optional[datetime], now: datetime) -> bool:
    if last_success is None:
        return True
    if last_success.tzinfo is None:
        last_success = last_success.replace(tzinfo=timezone.utc)
    return now - last_success > CATCHUP_WINDOW


class IngestionScheduler:
    def __init__(
        self,
        runner: IngestionJobRunner,
        *,
        settings: Optional[Settings] = None,
        scheduler: Optional[schedule.Scheduler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.runner = runner
        self.settings = settings or runner.settings
        self.scheduler = scheduler or schedule.Scheduler()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def run_ingestion(self) -> None:
        outcome = self.runner.run_now()
        if not outcome.accepted:
            logger.info("[scheduler] ingestion skipped: already running")
            return
        if outcome.status != STATUS_SUCCESS or outcome.result is None:
            logger.error("[scheduler] ingestion failed: %s", outcome.message)
            return
        write_last_success(self.settings.scheduler_state_file, self.clock())
        r = outcome.result
        logger.info(
            "[scheduler] ingestion complete: created=%d, fetched=%d, skipped=%d",
            r.created_count,
            r.fetched_count,
            r.skipped_count,
        )

    def run_popularity_refresh(self) -> None:
        if not self.settings.popularity_refresh_enabled:
            return
        if not self.runner.trigger_refresh():
            logger.info("[scheduler] popularity refresh skipped: already running")

    def run_startup_catchup(self) -> bool:
        last = read_last_success(self.settings.scheduler_state_file)
        if not needs_catchup(last, self.clock()):
            return False
        if last is None:
            logger.info("[scheduler] startup catch-up: no previous successful run found, running ingestion now")
        else:
            logger.info("[scheduler] startup catch-up: last run older than 24h, running ingestion now")
        self.run_ingestion()
        return True

    def install(self) -> bool:
        """Register jobs. False when auto ingestion is off or the cron is invalid."""
        if not self.settings.ingestion_auto_enabled:
            return False
        parsed = parse_daily_cron(self.settings.ingestion_daily_cron)
        if parsed is None:
            logger.error(
                '[scheduler] invalid daily cron: %s. Expected format like "0 6 * * *".',
                self.settings.ingestion_daily_cron,
            )
            return False
        hour, minute = parsed
        self.scheduler.every().day.at(f"{hour:02d}:{minute:02d}").do(self.run_ingestion)
        if self.settings.popularity_refresh_enabled:
            hours = max(1, self.settings.popularity_refresh_interval_hours)
            self.scheduler.every(hours).hours.do(self.run_popularity_refresh)
        logger.info("[scheduler] daily ingestion scheduled: %s", self.settings.ingestion_daily_cron)
        return True

    def run_forever(self, poll_seconds: float = 5) -> None:
        if not self.install():
            return
        self.run_startup_catchup()
        self.run_popularity_refresh()
        while True:
            self.scheduler.run_pending()
            time.sleep(poll_seconds)
