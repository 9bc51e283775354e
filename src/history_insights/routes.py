"""
HTTP routes for history sync and analysis.

Authentication is handled upstream; routes trust the user id in the path.
"""

import logging
import math

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from .core.analyzer import HistoryAnalyzer
from .core.models import AnalysisResult, SyncItem, SyncResult, VisitEvent
from .core.store import HistoryStore
from .errors import NoDataError, StoreError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500


class SyncRequest(BaseModel):
    """History batch posted by the browser extension."""
    items: list[SyncItem] = Field(default_factory=list)


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class HistoryPage(BaseModel):
    items: list[VisitEvent]
    pagination: Pagination


def create_history_router(analyzer: HistoryAnalyzer, store: HistoryStore) -> APIRouter:
    """Create the history API router.

    Args:
        analyzer: Orchestrator serving analysis reports
        store: Store used for sync, listing and clearing history
    """
    router = APIRouter(tags=["history"])

    @router.get("/health")
    async def health():
        """Health check for the browser extension."""
        return {"status": "ok"}

    @router.post("/users/{user_id}/history", response_model=SyncResult)
    async def sync_history(user_id: str, request: SyncRequest):
        """Merge a batch of browsing history from a client."""
        if not request.items:
            raise HTTPException(status_code=400, detail="No history items provided")

        try:
            return await store.sync_history(user_id, request.items)
        except StoreError as e:
            logger.error(f"History sync failed for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to save browsing history") from None

    @router.get("/users/{user_id}/history", response_model=HistoryPage)
    async def list_history(
        user_id: str,
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    ):
        """Browsing history, most recent first."""
        try:
            events, total = await store.list_events(user_id, page=page, limit=limit)
        except StoreError as e:
            logger.error(f"History listing failed for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch browsing history") from None

        return HistoryPage(
            items=events,
            pagination=Pagination(
                total=total,
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit),
            ),
        )

    @router.get("/users/{user_id}/analysis", response_model=AnalysisResult)
    async def get_analysis(user_id: str, force_refresh: bool = False):
        """Analysis report, served from cache while it is fresh."""
        try:
            return await analyzer.get_analysis(user_id, force_refresh=force_refresh)
        except NoDataError as e:
            raise HTTPException(status_code=404, detail=str(e)) from None
        except StoreError as e:
            logger.error(f"Analysis failed for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to analyze browsing history") from None

    @router.delete("/users/{user_id}/history")
    async def clear_history(user_id: str):
        """Delete all history and the cached analysis for a user."""
        try:
            await store.delete_all_history(user_id)
        except StoreError as e:
            logger.error(f"History clear failed for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to clear browsing history") from None

        return {"message": "Browsing history cleared successfully"}

    return router
