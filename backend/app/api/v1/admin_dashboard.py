"""Admin dashboard endpoint: status cards, 30-day charts, month metrics.

Thin router: reads and reduction live in dashboard_metrics.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import sessionmaker

from app.core.auth import CurrentUser, require_permission
from app.core.config import get_settings
from app.core.dependencies import get_session_factory
from app.schemas.dashboard import DashboardMetrics
from app.services.dashboard_metrics import load_dashboard_metrics

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/admin/dashboard", response_model=DashboardMetrics, response_model_by_alias=True)
async def get_dashboard(
    current_user: CurrentUser = Depends(require_permission("reports:read")),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Snapshot for the office home page. Any failed read fails the request."""
    settings = get_settings()
    try:
        return await load_dashboard_metrics(
            session_factory,
            current_user.org_id,
            window_days=settings.dashboard_window_days,
            referral_limit=settings.referral_sources_limit,
        )
    except Exception:
        logger.exception("Dashboard aggregation failed for org %s", current_user.org_id)
        raise HTTPException(500, "Failed to fetch dashboard data")
