"""
Run a scrape from the CLI and print the run summary as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import os

from app.schemas.ingestion import OrchestratorResultResponse
from app.services.scrape_service import ScrapeService
from db.session import SessionLocal


def main() -> int:
    parser = argparse.ArgumentParser(description="Scrape event sources into the catalog.")
    parser.add_argument(
        "--source",
        dest="sources",
        action="append",
        default=None,
        help="Source name to run; repeat for several. Defaults to every available source.",
    )
    parser.add_argument(
        "--max-pages",
        dest="max_pages",
        type=int,
        default=None,
        help="Optional listing page cap per source.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    service = ScrapeService()
    try:
        with SessionLocal() as db:
            result = service.run(db=db, source_names=args.sources, max_pages=args.max_pages)
    except ValueError as exc:
        parser.error(str(exc))

    print(json.dumps(OrchestratorResultResponse.from_result(result).model_dump(mode="json"), indent=2))
    return 0 if not result.failed_sources else 1


if __name__ == "__main__":
    raise SystemExit(main())
