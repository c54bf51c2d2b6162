"""
Router for dashboard statistics and reports.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_user
from ..models import DashboardStats, ReportsData
from ..models_db import User
from ..services.reports_service import get_dashboard_stats, get_reports_data

router = APIRouter(prefix="/api", tags=["dashboard"])


@router.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> DashboardStats:
    """Document counts by state and the most recent uploads."""
    return get_dashboard_stats(db, user.id)


@router.get("/reports", response_model=ReportsData)
async def reports(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ReportsData:
    """Aggregated pages, words, entities, keywords and statuses."""
    return get_reports_data(db, user.id)
