"""
app/schemas/ingestion.py

Request and response schemas for scrape runs.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.domain.ingestion import OrchestratorResult


class ScrapeRequest(BaseModel):
    """
    Body of an admin scrape trigger. Omitted `sources` means every available source.
    """

    sources: list[str] | None = Field(default=None, description="Source names to run")
    max_pages: int | None = Field(default=None, ge=1, description="Listing page cap per source")


class SourceResultResponse(BaseModel):
    name: str
    success: bool
    events_count: int = Field(..., ge=0)
    duration_seconds: float = Field(..., ge=0)
    error: str | None = None


class IngestionErrorResponse(BaseModel):
    title: str | None = None
    reason: str


class OrchestratorResultResponse(BaseModel):
    """
    API response model for one scrape run.
    """

    sources: list[SourceResultResponse]
    total_events: int = Field(..., ge=0)
    total_processed: int = Field(..., ge=0)
    total_duplicates: int = Field(..., ge=0)
    total_updated: int = Field(..., ge=0)
    total_rejected: int = Field(..., ge=0)
    total_errors: int = Field(..., ge=0)
    errors: list[IngestionErrorResponse] = Field(default_factory=list)
    duration_seconds: float = Field(..., ge=0)
    timestamp: datetime

    @classmethod
    def from_result(cls, result: OrchestratorResult) -> "OrchestratorResultResponse":
        return cls(
            sources=[
                SourceResultResponse(
                    name=source.name,
                    success=source.success,
                    events_count=source.events_count,
                    duration_seconds=source.duration_seconds,
                    error=source.error,
                )
                for source in result.sources
            ],
            total_events=result.total_events,
            total_processed=result.total_processed,
            total_duplicates=result.total_duplicates,
            total_updated=result.total_updated,
            total_rejected=result.total_rejected,
            total_errors=result.total_errors,
            errors=[IngestionErrorResponse(title=error.title, reason=error.reason) for error in result.errors],
            duration_seconds=result.duration_seconds,
            timestamp=result.timestamp,
        )
