"""
app/api/routers package marker.
"""

from app.api.routers.admin_scrape import router as admin_scrape_router

__all__ = ["admin_scrape_router"]
