"""Run-state control for ingestion.

One IngestionJobState per process. Manual triggers and the scheduler share it,
so at most one ingestion runs at a time. This only covers a single process;
several instances against one database would need a lease row.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from techpulse.config import Settings
from techpulse.ingestion.article_types import IngestAllResult
from techpulse.services.ingestion import ingest_all_sources
from techpulse.services.popularity import refresh_external_popularity_signals
from techpulse.storage.repository import ArticleRepository


logger = logging.getLogger(__name__)

STATUS_IDLE = "idle"
STATUS_RUNNING = "running"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

POST_INGEST_REFRESH_DAYS_BACK = 45
POST_INGEST_REFRESH_LIMIT = 320


@dataclass(frozen=True)
class JobSnapshot:
    status: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    message: str = ""
    result: Optional[IngestAllResult] = None


@dataclass(frozen=True)
class StartResult:
    accepted: bool
    status: str
    message: str
    result: Optional[IngestAllResult] = None


class IngestionJobState:
    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._snapshot = JobSnapshot(status=STATUS_IDLE)

    def try_begin(self, message: str = "Ingestion started") -> bool:
        """Move to running unless a run is already in progress."""
        with self._lock:
            if self._snapshot.status == STATUS_RUNNING:
                return False
            self._snapshot = JobSnapshot(
                status=STATUS_RUNNING,
                started_at=self._clock(),
                message=message,
                result=self._snapshot.result,
            )
            return True

    def finish(self, result: IngestAllResult) -> None:
        with self._lock:
            self._snapshot = JobSnapshot(
                status=STATUS_SUCCESS,
                started_at=self._snapshot.started_at,
                finished_at=self._clock(),
                message=(
                    f"Ingested {result.created_count} new articles from {result.source_count} sources"
                ),
                result=result,
            )

    def fail(self, message: str) -> None:
        with self._lock:
            self._snapshot = JobSnapshot(
                status=STATUS_ERROR,
                started_at=self._snapshot.started_at,
                finished_at=self._clock(),
                message=message,
                result=self._snapshot.result,
            )

    def snapshot(self) -> JobSnapshot:
        with self._lock:
            return self._snapshot


class IngestionJobRunner:
    def __init__(
        self,
        repository: ArticleRepository,
        *,
        settings: Optional[Settings] = None,
        state: Optional[IngestionJobState] = None,
        ingest: Optional[Callable[[], IngestAllResult]] = None,
        refresh: Optional[Callable[[], object]] = None,
        refresh_after_ingest: bool = True,
    ):
        self.repository = repository
        self.settings = settings or Settings()
        self.state = state or IngestionJobState()
        self._ingest = ingest or (lambda: ingest_all_sources(self.repository, settings=self.settings))
        self._refresh = refresh or (
            lambda: refresh_external_popularity_signals(
                self.repository,
                days_back=POST_INGEST_REFRESH_DAYS_BACK,
                limit=POST_INGEST_REFRESH_LIMIT,
                settings=self.settings,
            )
        )
        self.refresh_after_ingest = refresh_after_ingest
        self._refresh_lock = threading.Lock()
        self._refresh_running = False
        self._thread: Optional[threading.Thread] = None

    def _execute(self) -> Optional[IngestAllResult]:
        try:
            result = self._ingest()
        except Exception as e:
            logger.exception("ingestion run failed")
            self.state.fail(str(e) or e.__class__.__name__)
            return None
        self.state.finish(result)
        if self.refresh_after_ingest and self.settings.popularity_refresh_enabled:
            self.trigger_refresh()
        return result

    def run_now(self) -> StartResult:
        """Blocking run used by the scheduler and CLI workers."""
        if not self.state.try_begin("Scheduled ingestion started"):
            snap = self.state.snapshot()
            return StartResult(accepted=False, status=snap.status, message="Ingestion already running")
        self._execute()
        snap = self.state.snapshot()
        return StartResult(accepted=True, status=snap.status, message=snap.message, result=snap.result)

    def start_manual(self) -> StartResult:
        if not self.state.try_begin("Manual ingestion started"):
            snap = self.state.snapshot()
            return StartResult(accepted=False, status=snap.status, message="Ingestion already running")
        self._thread = threading.Thread(target=self._execute, name="manual-ingest", daemon=True)
        self._thread.start()
        return StartResult(accepted=True, status=STATUS_RUNNING, message="Manual ingestion started")

    def wait(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def trigger_refresh(self) -> bool:
        """Refresh popularity on a background thread; False if one is in flight."""
        with self._refresh_lock:
            if self._refresh_running:
                return False
            self._refresh_running = True

        def run() -> None:
            try:
                self._refresh()
            except Exception:
                logger.exception("post-ingestion popularity refresh failed")
            finally:
                with self._refresh_lock:
                    self._refresh_running = False

        threading.Thread(target=run, name="popularity-refresh", daemon=True).start()
        return True
