"""
app/schemas package marker.
"""

from app.schemas.ingestion import (
    IngestionErrorResponse,
    OrchestratorResultResponse,
    ScrapeRequest,
    SourceResultResponse,
)

__all__ = [
    "IngestionErrorResponse",
    "OrchestratorResultResponse",
    "ScrapeRequest",
    "SourceResultResponse",
]
