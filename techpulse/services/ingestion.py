"""Source ingestion orchestrator.

Per source: fetch -> normalize -> dedupe -> screen -> create-or-skip -> tag.
Sources run on a small asyncio worker pool. Each pipeline runs on its own
thread (requests/psycopg are blocking) and races a per-source timeout that
starts with the pipeline. After all sources finish, a repair pass fixes
published dates that were guessed from the ingestion time.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from techpulse.config import Settings
from techpulse.errors import DuplicateArticleError
from techpulse.extraction.fulltext import extract_article_text
from techpulse.ingestion.article_types import (
    FeedItem,
    IngestAllResult,
    IngestionArticleInput,
    Source,
    SourceIngestionResult,
)
from techpulse.ingestion.dates import ensure_utc, hours_between, infer_explicit_date
from techpulse.ingestion.ingestors import FeedIngestor
from techpulse.ingestion.text_utils import (
    count_words,
    estimate_reading_time,
    make_slug,
    normalize_topic_tag,
    plain_text,
    preview,
    summarize,
    unique_strings,
)
from techpulse.ingestion.url_utils import canonicalize_url
from techpulse.scoring.category_classifier import resolve_category
from techpulse.sources import is_aggregator_source
from techpulse.storage.repository import ArticleRepository, NewArticle


logger = logging.getLogger(__name__)

LOW_CONTENT_WORDS = 220
READING_WPM = 170
DATE_REPAIR_WINDOW = timedelta(minutes=90)
DATE_REPAIR_MIN_SHIFT = timedelta(days=2)


def is_allowed_aggregator_article(
    title: str, text: str, tags: Sequence[str], allowed_topics: Sequence[str]
) -> bool:
    allowed = {normalize_topic_tag(t) for t in allowed_topics}
    if any(normalize_topic_tag(t) in allowed for t in tags):
        return True
    haystack = f"{title} {text}".lower()
    return any(topic in haystack for topic in allowed)


def run_in_daemon_thread(fn: Callable[..., Any], *args: Any, name: Optional[str] = None) -> "asyncio.Future[Any]":
    """Start fn(*args) on a fresh daemon thread and return a future for its result.

    The thread starts right away, so a timeout awaited on the future measures
    only this call. A thread that outlives its awaiter is left to finish; its
    result is dropped.
    """
    loop = asyncio.get_running_loop()
    fut: "asyncio.Future[Any]" = loop.create_future()

    def settle(value: Any, error: Optional[BaseException]) -> None:
        if fut.done():
            return
        if error is not None:
            fut.set_exception(error)
        else:
            fut.set_result(value)

    def run() -> None:
        value: Any = None
        error: Optional[BaseException] = None
        try:
            value = fn(*args)
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(settle, value, error)
        except RuntimeError:
            # loop already closed
            logger.debug("dropping late result from %s", threading.current_thread().name)

    threading.Thread(target=run, name=name, daemon=True).start()
    return fut


class IngestionOrchestrator:
    def __init__(
        self,
        repository: ArticleRepository,
        *,
        settings: Optional[Settings] = None,
        fetcher: Optional[FeedIngestor] = None,
        extractor: Callable[[str], Optional[str]] = extract_article_text,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.settings = settings or Settings()
        self.fetcher = fetcher or FeedIngestor()
        self.extractor = extractor
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # -----------------------------
    # Normalization
    # -----------------------------
    def normalize_item(self, item: FeedItem) -> IngestionArticleInput:
        text = plain_text(item.raw_text or item.title)
        title = plain_text(item.title)
        base_words = count_words(text)

        body = text
        if base_words < LOW_CONTENT_WORDS:
            extracted = self.extractor(item.url)
            if extracted and count_words(extracted) > base_words:
                body = plain_text(extracted)

        corpus = plain_text(f"{title} {body}")
        min_minutes = 2 if count_words(corpus) >= 30 else 1
        return IngestionArticleInput(
            title=title,
            url=canonicalize_url(item.url),
            author=item.author,
            published_at=ensure_utc(item.published_at),
            summary=summarize(body),
            content_preview=preview(body),
            reading_time=estimate_reading_time(corpus, words_per_minute=READING_WPM, min_minutes=min_minutes),
            tags=tuple(unique_strings(normalize_topic_tag(t) for t in item.tags)),
        )

    def ensure_unique_slug(self, title: str) -> str:
        base = make_slug(title)
        candidate = base
        suffix = 1
        while self.repository.find_article_by_slug(candidate) is not None:
            suffix += 1
            candidate = f"{base}-{suffix}"
        return candidate

    # -----------------------------
    # Per-source pipeline
    # -----------------------------
    def ingest_single_source(self, source: Source) -> SourceIngestionResult:
        result = SourceIngestionResult(source_id=source.id, source_name=source.name)
        outcome = self.fetcher.fetch_outcome(source)
        result.errors.extend(outcome.warnings)

        # last-seen wins, first-seen position kept
        deduped: Dict[str, FeedItem] = {}
        for item in outcome.items:
            if not item.title.strip() or not item.url.strip():
                continue
            deduped[canonicalize_url(item.url)] = item
        result.fetched_count = len(deduped)

        aggregator = is_aggregator_source(source)
        new_budget = self.settings.ingest_max_items_per_source
        for url, item in deduped.items():
            try:
                existing = self.repository.find_article_by_url(url)
                if existing is not None:
                    if existing.reading_time <= 1:
                        candidate = self.normalize_item(item)
                        if candidate.reading_time > existing.reading_time:
                            self.repository.update_article(existing.id, reading_time=candidate.reading_time)
                    result.skipped_count += 1
                    continue

                if new_budget <= 0:
                    result.skipped_count += 1
                    continue
                new_budget -= 1

                data = self.normalize_item(item)
                if aggregator and not is_allowed_aggregator_article(
                    data.title, data.summary, data.tags, self.settings.aggregator_allowed_topics
                ):
                    result.skipped_count += 1
                    continue

                if self._create(source, data, result):
                    result.created_count += 1
                else:
                    result.skipped_count += 1
            except Exception as e:
                logger.warning("[%s] failed to ingest %s: %s", source.name, item.url, e)
                result.errors.append(f'Failed to persist article "{item.title}": {e}')

        logger.info(
            "[%s] fetched=%d created=%d skipped=%d errors=%d",
            source.name,
            result.fetched_count,
            result.created_count,
            result.skipped_count,
            len(result.errors),
        )
        return result

    def _create(self, source: Source, data: IngestionArticleInput, result: SourceIngestionResult) -> bool:
        """Create the article; False when a concurrent ingest already landed the same url/slug."""
        category = resolve_category(source, data.title, data.summary, data.content_preview, data.tags)
        try:
            self.repository.create_article(
                NewArticle(
                    title=data.title,
                    slug=self.ensure_unique_slug(data.title),
                    url=data.url,
                    author=data.author,
                    summary=data.summary,
                    content_preview=data.content_preview,
                    published_at=data.published_at,
                    reading_time=data.reading_time,
                    source_id=source.id,
                    source_name=source.name,
                    category_slug=category,
                ),
                data.tags,
            )
        except DuplicateArticleError:
            return False
        result.category_assignment_counts[category] = result.category_assignment_counts.get(category, 0) + 1
        return True

    # -----------------------------
    # Date repair post-pass
    # -----------------------------
    def repair_published_dates(self) -> int:
        """Replace publish dates stamped at ingestion time with dates found in the text.

        Scans every stored article.
        """
        repaired = 0
        for article in self.repository.list_articles(order_by="created_at"):
            if abs(ensure_utc(article.published_at) - ensure_utc(article.created_at)) > DATE_REPAIR_WINDOW:
                continue
            inferred = infer_explicit_date(f"{article.title} {article.summary} {article.content_preview}")
            if inferred is None:
                continue
            if hours_between(inferred, article.published_at) < DATE_REPAIR_MIN_SHIFT.total_seconds() / 3600.0:
                continue
            try:
                self.repository.update_article(article.id, published_at=inferred)
            except Exception as e:
                logger.warning("date repair failed for article %s: %s", article.id, e)
                continue
            repaired += 1
        return repaired

    # -----------------------------
    # Run
    # -----------------------------
    async def _run_source(self, source: Source) -> SourceIngestionResult:
        timeout = self.settings.ingest_source_timeout
        pending = run_in_daemon_thread(self.ingest_single_source, source, name=f"ingest-{source.id}")
        try:
            return await asyncio.wait_for(pending, timeout=timeout)
        except asyncio.TimeoutError:
            # The worker thread keeps going; whatever it already stored stays stored.
            logger.warning("[%s] timed out after %.0fs", source.name, timeout)
            return SourceIngestionResult(
                source_id=source.id,
                source_name=source.name,
                errors=[f"Source ingestion timed out after {timeout:g}s"],
            )
        except Exception as e:
            logger.warning("[%s] ingestion failed: %s", source.name, e)
            return SourceIngestionResult(source_id=source.id, source_name=source.name, errors=[str(e)])

    async def ingest_all_sources(self) -> IngestAllResult:
        started_at = self.clock()
        loop = asyncio.get_running_loop()
        concurrency = max(1, self.settings.ingest_concurrency)
        sources = await loop.run_in_executor(None, self.repository.list_sources)

        queue: asyncio.Queue = asyncio.Queue()
        for idx, source in enumerate(sources):
            queue.put_nowait((idx, source))
        results: Dict[int, SourceIngestionResult] = {}

        async def worker() -> None:
            while True:
                try:
                    idx, source = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                results[idx] = await self._run_source(source)

        await asyncio.gather(*(worker() for _ in range(min(concurrency, len(sources)))))
        repaired = await loop.run_in_executor(None, self.repair_published_dates)

        ordered: List[SourceIngestionResult] = [results[i] for i in sorted(results)]
        counts: Dict[str, int] = {}
        for r in ordered:
            for slug, n in r.category_assignment_counts.items():
                counts[slug] = counts.get(slug, 0) + n
        summary = IngestAllResult(
            started_at=started_at,
            finished_at=self.clock(),
            source_count=len(sources),
            fetched_count=sum(r.fetched_count for r in ordered),
            created_count=sum(r.created_count for r in ordered),
            skipped_count=sum(r.skipped_count for r in ordered),
            repaired_date_count=repaired,
            category_assignment_counts=counts,
            results=ordered,
        )
        logger.info(
            "ingestion complete: sources=%d fetched=%d created=%d skipped=%d repaired=%d",
            summary.source_count,
            summary.fetched_count,
            summary.created_count,
            summary.skipped_count,
            summary.repaired_date_count,
        )
        return summary


def ingest_all_sources(repository: ArticleRepository, *, settings: Optional[Settings] = None, **kwargs) -> IngestAllResult:
    """Blocking entry point shared by the scheduler and manual triggers."""
    orchestrator = IngestionOrchestrator(repository, settings=settings, **kwargs)
    return asyncio.run(orchestrator.ingest_all_sources())
