"""
tests/test_orchestrator.py

Pytest unit tests for SourceOrchestrator.

Coverage
--------
- Registration: duplicate names rejected, clear_sources
- fetch_all(): concurrent fetch, one failing source isolated, result ordering
- Options forwarded to each source
- Pipeline counters mapped onto the aggregate result
- Pipeline exceptions captured as a single error
- Overall timeout reports late sources as failed
- Empty registry
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from datetime import datetime

import pytest

from app.domain.events import RawEvent
from app.domain.ingestion import IngestionError, ProcessEventsResult
from app.scraping.orchestrator import SourceOrchestrator
from app.scraping.types import FetchOptions


def raw(title: str, source: str) -> RawEvent:
    return RawEvent(title=title, date=datetime(2030, 3, 15, 21, 0), source_name=source, venue="Niceto Club")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeSource:
    def __init__(self, name: str, events: list[RawEvent] | None = None, error: Exception | None = None) -> None:
        self.name = name
        self.events = events or []
        self.error = error
        self.options: list[FetchOptions | None] = []

    def fetch(self, options: FetchOptions | None = None) -> list[RawEvent]:
        self.options.append(options)
        if self.error is not None:
            raise self.error
        return list(self.events)


class BlockingSource:
    def __init__(self, name: str) -> None:
        self.name = name
        self.release = threading.Event()

    def fetch(self, options: FetchOptions | None = None) -> list[RawEvent]:
        self.release.wait(timeout=5)
        return [raw("Tarde", self.name)]


class RecordingPipeline:
    def __init__(self, result: ProcessEventsResult | None = None, error: Exception | None = None) -> None:
        self.result = result or ProcessEventsResult()
        self.error = error
        self.batches: list[list[RawEvent]] = []

    def process_events(self, raw_events: Sequence[RawEvent]) -> ProcessEventsResult:
        self.batches.append(list(raw_events))
        if self.error is not None:
            raise self.error
        return self.result


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegistration:
    def test_duplicate_name_rejected(self) -> None:
        orchestrator = SourceOrchestrator()
        first = FakeSource("livepass")

        assert orchestrator.register_source(first) is True
        assert orchestrator.register_source(FakeSource("livepass")) is False
        assert orchestrator.get_sources() == [first]

    def test_clear_sources(self) -> None:
        orchestrator = SourceOrchestrator()
        orchestrator.register_source(FakeSource("livepass"))

        orchestrator.clear_sources()

        assert orchestrator.get_sources() == []


# ---------------------------------------------------------------------------
# fetch_all
# ---------------------------------------------------------------------------


class TestFetchAll:
    def test_failing_source_is_isolated(self) -> None:
        pipeline = RecordingPipeline(ProcessEventsResult(accepted=2, duplicates=1, updated=1, rejected=1))
        orchestrator = SourceOrchestrator(pipeline=pipeline)
        orchestrator.register_source(FakeSource("livepass", [raw("Uno", "livepass"), raw("Dos", "livepass")]))
        orchestrator.register_source(FakeSource("roto", error=RuntimeError("HTTP 500")))
        orchestrator.register_source(FakeSource("vorterix", [raw("Tres", "vorterix")]))

        result = orchestrator.fetch_all()

        assert [source.name for source in result.sources] == ["livepass", "roto", "vorterix"]
        assert [source.success for source in result.sources] == [True, False, True]
        assert result.sources[0].events_count == 2
        assert result.sources[1].error == "HTTP 500"
        assert [source.name for source in result.failed_sources] == ["roto"]
        assert result.total_events == 3
        assert sorted(event.title for event in pipeline.batches[0]) == ["Dos", "Tres", "Uno"]
        assert result.total_processed == 3
        assert result.total_duplicates == 1
        assert result.total_updated == 1
        assert result.total_rejected == 1
        assert result.total_errors == 0

    def test_options_forwarded(self) -> None:
        source = FakeSource("livepass")
        orchestrator = SourceOrchestrator()
        orchestrator.register_source(source)
        options = FetchOptions(max_pages=2)

        orchestrator.fetch_all(options)

        assert source.options == [options]

    def test_pipeline_errors_counted(self) -> None:
        errors = [IngestionError(event=raw("Viejo", "livepass"), reason="Event date is in the past")]
        pipeline = RecordingPipeline(ProcessEventsResult(rejected=1, errors=errors))
        orchestrator = SourceOrchestrator(pipeline=pipeline)
        orchestrator.register_source(FakeSource("livepass", [raw("Viejo", "livepass")]))

        result = orchestrator.fetch_all()

        assert result.total_errors == 1
        assert result.errors[0].title == "Viejo"

    def test_pipeline_exception_is_captured(self) -> None:
        pipeline = RecordingPipeline(error=RuntimeError("database is down"))
        orchestrator = SourceOrchestrator(pipeline=pipeline)
        orchestrator.register_source(FakeSource("livepass", [raw("Uno", "livepass")]))

        result = orchestrator.fetch_all()

        assert result.sources[0].success is True
        assert result.total_processed == 0
        assert result.total_errors == 1
        assert result.errors[0].event is None
        assert result.errors[0].reason == "Pipeline failed: database is down"

    def test_no_pipeline_still_reports_sources(self) -> None:
        orchestrator = SourceOrchestrator()
        orchestrator.register_source(FakeSource("livepass", [raw("Uno", "livepass")]))

        result = orchestrator.fetch_all()

        assert result.total_events == 1
        assert result.total_processed == 0

    def test_empty_registry(self) -> None:
        result = SourceOrchestrator(pipeline=RecordingPipeline()).fetch_all()

        assert result.sources == []
        assert result.total_events == 0
        assert result.errors == []

    def test_timeout_marks_late_sources_failed(self) -> None:
        slow = BlockingSource("lento")
        orchestrator = SourceOrchestrator(timeout_seconds=0.2)
        orchestrator.register_source(FakeSource("livepass", [raw("Uno", "livepass")]))
        orchestrator.register_source(slow)

        try:
            result = orchestrator.fetch_all()
        finally:
            slow.release.set()

        by_name = {source.name: source for source in result.sources}
        assert by_name["livepass"].success is True
        assert by_name["lento"].success is False
        assert by_name["lento"].error == "Timed out after 0.2s"
        assert result.total_events == 1

    @pytest.mark.parametrize("timeout", [None, 5.0])
    def test_fast_sources_unaffected_by_timeout(self, timeout: float | None) -> None:
        orchestrator = SourceOrchestrator(timeout_seconds=timeout)
        orchestrator.register_source(FakeSource("livepass", [raw("Uno", "livepass")]))

        result = orchestrator.fetch_all()

        assert result.failed_sources == []
