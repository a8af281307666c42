"""Browsing history endpoints for the StoreRec API.

Record product views and searches for a session, read the journal back,
and clear it. Writes answer 202 whether or not the store accepted them.
Every endpoint here needs an ``X-Session-ID`` header and answers 400
without one.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from storerec.api.dependencies import Engine, get_engine, require_session_id
from storerec.config import DEFAULT_TOP_CATEGORIES
from storerec.models import Product

# Configure module logger
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(
    prefix="/history",
    tags=["history"],
)

ACCEPTED = {"status": "accepted"}


class ViewIn(BaseModel):
    id: str = Field(..., min_length=1, description="Viewed product ID")
    title: str = ""
    category_id: Optional[str] = None


class SearchIn(BaseModel):
    query: str = Field(..., description="Search text; blank queries are ignored")


class ViewedOut(BaseModel):
    id: str
    title: str
    category_id: Optional[str] = None
    viewed_at: int


class SearchOut(BaseModel):
    query: str
    searched_at: int


class HistoryResponse(BaseModel):
    """Response model for the session's browsing history."""

    recently_viewed: List[ViewedOut]
    search_history: List[SearchOut]
    last_search: Optional[str] = None
    top_categories: List[str]


@router.post("/views", status_code=status.HTTP_202_ACCEPTED)
def record_view(
    view: ViewIn,
    engine: Engine = Depends(get_engine),
    session_id: str = Depends(require_session_id),
) -> Dict[str, str]:
    """Record that the session viewed a product."""
    engine.tracker(session_id).track_product_view(
        Product(id=view.id, title=view.title, category_id=view.category_id or None)
    )
    return ACCEPTED


@router.post("/searches", status_code=status.HTTP_202_ACCEPTED)
def record_search(
    search: SearchIn,
    engine: Engine = Depends(get_engine),
    session_id: str = Depends(require_session_id),
) -> Dict[str, str]:
    """Record a search query for the session."""
    engine.tracker(session_id).track_search(search.query)
    return ACCEPTED


@router.get("", response_model=HistoryResponse)
def get_history(
    limit: int = Query(default=DEFAULT_TOP_CATEGORIES, ge=0, le=50),
    engine: Engine = Depends(get_engine),
    session_id: str = Depends(require_session_id),
) -> HistoryResponse:
    """Get the session's recent views, searches and top categories.

    Args:
        limit: How many top categories to return.
    """
    tracker = engine.tracker(session_id)
    return HistoryResponse(
        recently_viewed=[ViewedOut(**vars(r)) for r in tracker.get_recently_viewed()],
        search_history=[SearchOut(**vars(s)) for s in tracker.get_search_history()],
        last_search=tracker.get_last_search(),
        top_categories=tracker.get_top_categories(limit),
    )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_history(
    engine: Engine = Depends(get_engine),
    session_id: str = Depends(require_session_id),
) -> None:
    """Clear every journal of the session."""
    logger.info("Clearing browsing history", extra={"session_id": session_id})
    engine.tracker(session_id).clear_all()


@router.delete("/views", status_code=status.HTTP_204_NO_CONTENT)
def clear_views(
    engine: Engine = Depends(get_engine),
    session_id: str = Depends(require_session_id),
) -> None:
    """Clear the session's recently viewed products."""
    engine.tracker(session_id).clear_recently_viewed()


@router.delete("/searches", status_code=status.HTTP_204_NO_CONTENT)
def clear_searches(
    engine: Engine = Depends(get_engine),
    session_id: str = Depends(require_session_id),
) -> None:
    """Clear the session's search history."""
    engine.tracker(session_id).clear_search_history()
