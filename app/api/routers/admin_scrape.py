"""
app/api/routers/admin_scrape.py

Admin endpoint that triggers a scrape run.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.schemas.ingestion import OrchestratorResultResponse, ScrapeRequest
from app.services.scrape_service import ScrapeService, get_scrape_service
from db.session import get_db

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/scrape", response_model=OrchestratorResultResponse)
def trigger_scrape(
    request: ScrapeRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    scrape_service: ScrapeService = Depends(get_scrape_service),
) -> OrchestratorResultResponse:
    """
    Run the requested sources (or all of them) and return the run summary.
    """

    payload = request or ScrapeRequest()
    try:
        result = scrape_service.run(db=db, source_names=payload.sources, max_pages=payload.max_pages)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return OrchestratorResultResponse.from_result(result)


@router.get("/sources", response_model=list[str])
def list_sources(
    scrape_service: ScrapeService = Depends(get_scrape_service),
) -> list[str]:
    return scrape_service.available_sources()
