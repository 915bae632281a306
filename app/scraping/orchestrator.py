"""
Concurrent multi-source fetch with failure isolation.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Protocol

from app.domain.events import RawEvent
from app.domain.ingestion import IngestionError, OrchestratorResult, ProcessEventsResult, SourceResult
from app.scraping.logging_utils import log_event
from app.scraping.types import DataSource, FetchOptions

logger = logging.getLogger(__name__)


class EventPipeline(Protocol):
    def process_events(self, raw_events: Sequence[RawEvent]) -> ProcessEventsResult:
        ...


class SourceOrchestrator:
    """
    Runs every registered source concurrently and hands all fetched events to the pipeline.

    `fetch_all()` never raises: source failures, timeouts and pipeline errors
    are reported in the returned OrchestratorResult.
    """

    def __init__(
        self,
        *,
        pipeline: EventPipeline | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._timeout_seconds = timeout_seconds
        self._sources: dict[str, DataSource] = {}

    def register_source(self, source: DataSource) -> bool:
        """
        Register a source; a name already registered is left untouched.
        """

        if source.name in self._sources:
            log_event(logger, logging.WARNING, "source_already_registered", source=source.name)
            return False
        self._sources[source.name] = source
        return True

    def get_sources(self) -> list[DataSource]:
        return list(self._sources.values())

    def clear_sources(self) -> None:
        self._sources.clear()

    def fetch_all(self, options: FetchOptions | None = None) -> OrchestratorResult:
        started = time.monotonic()
        timestamp = datetime.now(timezone.utc)
        sources = self.get_sources()
        log_event(logger, logging.INFO, "fetch_all_started", sources=[source.name for source in sources])

        outcomes = self._fetch_concurrently(sources, options)

        source_results: list[SourceResult] = []
        all_events: list[RawEvent] = []
        for source in sources:
            result, events = outcomes[source.name]
            source_results.append(result)
            all_events.extend(events)

        processed = self._process(all_events)
        result = OrchestratorResult(
            sources=source_results,
            total_events=len(all_events),
            total_processed=processed.accepted + processed.updated,
            total_duplicates=processed.duplicates,
            total_updated=processed.updated,
            total_rejected=processed.rejected,
            total_errors=len(processed.errors),
            errors=list(processed.errors),
            duration_seconds=round(time.monotonic() - started, 3),
            timestamp=timestamp,
        )
        log_event(
            logger,
            logging.INFO,
            "fetch_all_completed",
            sources=len(source_results),
            failed_sources=[source.name for source in result.failed_sources],
            total_events=result.total_events,
            total_processed=result.total_processed,
            total_duplicates=result.total_duplicates,
            total_errors=result.total_errors,
            duration_seconds=result.duration_seconds,
        )
        return result

    def _fetch_concurrently(
        self,
        sources: list[DataSource],
        options: FetchOptions | None,
    ) -> dict[str, tuple[SourceResult, list[RawEvent]]]:
        if not sources:
            return {}

        executor = ThreadPoolExecutor(max_workers=len(sources), thread_name_prefix="source")
        futures: dict[Future[tuple[SourceResult, list[RawEvent]]], DataSource] = {
            executor.submit(self._run_source, source, options): source for source in sources
        }
        done, not_done = wait(futures, timeout=self._timeout_seconds)
        # Late sources keep running on their own threads; their results are discarded.
        executor.shutdown(wait=not not_done, cancel_futures=True)

        outcomes: dict[str, tuple[SourceResult, list[RawEvent]]] = {}
        for future in done:
            source = futures[future]
            try:
                outcomes[source.name] = future.result()
            except Exception as exc:
                outcomes[source.name] = (self._failure(source.name, 0.0, str(exc)), [])
        for future in not_done:
            source = futures[future]
            message = f"Timed out after {self._timeout_seconds}s"
            log_event(logger, logging.ERROR, "source_timed_out", source=source.name, error=message)
            outcomes[source.name] = (
                self._failure(source.name, float(self._timeout_seconds or 0.0), message),
                [],
            )
        return outcomes

    def _run_source(
        self,
        source: DataSource,
        options: FetchOptions | None,
    ) -> tuple[SourceResult, list[RawEvent]]:
        started = time.monotonic()
        try:
            events = list(source.fetch(options))
        except Exception as exc:
            duration = round(time.monotonic() - started, 3)
            log_event(
                logger,
                logging.ERROR,
                "source_fetch_failed",
                source=source.name,
                error=str(exc),
                duration_seconds=duration,
            )
            return self._failure(source.name, duration, str(exc)), []

        duration = round(time.monotonic() - started, 3)
        log_event(
            logger,
            logging.INFO,
            "source_fetch_completed",
            source=source.name,
            events=len(events),
            duration_seconds=duration,
        )
        return (
            SourceResult(
                name=source.name,
                success=True,
                events_count=len(events),
                duration_seconds=duration,
            ),
            events,
        )

    def _process(self, events: list[RawEvent]) -> ProcessEventsResult:
        if self._pipeline is None or not events:
            return ProcessEventsResult()
        try:
            return self._pipeline.process_events(events)
        except Exception as exc:
            log_event(logger, logging.ERROR, "pipeline_failed", events=len(events), error=str(exc))
            return ProcessEventsResult(errors=[IngestionError(event=None, reason=f"Pipeline failed: {exc}")])

    @staticmethod
    def _failure(name: str, duration: float, error: str) -> SourceResult:
        return SourceResult(
            name=name,
            success=False,
            events_count=0,
            duration_seconds=duration,
            error=error,
        )
