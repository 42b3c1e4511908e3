from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth.dependencies import require_admin_or_editor
from ..database import SessionDep
from . import service
from .schemas import ArticleAnalyticsReport, DashboardReport

router = APIRouter(
    prefix="/api/analytics",
    tags=["analytics"],
    dependencies=[Depends(require_admin_or_editor)],
)

@router.get("/dashboard", response_model=DashboardReport)
async def get_dashboard(db: SessionDep):
    return await service.dashboard(db)

@router.get("/articles", response_model=ArticleAnalyticsReport)
async def get_article_analytics(
    db: SessionDep,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
):
    """Status, month, top-N and per-author breakdowns, optionally limited to a creation-date window."""
    window = service.DateWindow.parse(start_date, end_date)
    return await service.article_analytics(db, window)
