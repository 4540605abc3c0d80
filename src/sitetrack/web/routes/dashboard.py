"""Dashboard statistics endpoint for SiteTrack."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from sitetrack.auth import ActorContext
from sitetrack.logging import get_logger
from sitetrack.web.deps import get_aggregator, get_current_actor, get_session_factory
from sitetrack.workflow.progress import ProgressAggregator

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class DashboardStatsResponse(BaseModel):
    """Headline counts over the caller's visible projects."""

    total_projects: int
    active_projects: int
    completed_projects: int
    pending_submissions: int
    completion_rate: int
    active_consultants: int

    model_config = {"from_attributes": True}


def create_dashboard_router() -> APIRouter:
    """Create the dashboard router.

    Routes:
        GET /dashboard/stats - Headline project and submission counts
    """
    router = APIRouter(prefix="/dashboard", tags=["dashboard"])

    @router.get("/stats", response_model=DashboardStatsResponse)
    async def stats(
        actor: ActorContext = Depends(get_current_actor),  # noqa: B008
        aggregator: ProgressAggregator = Depends(get_aggregator),  # noqa: B008
        session_factory: async_sessionmaker[AsyncSession] = Depends(  # noqa: B008
            get_session_factory
        ),
    ) -> DashboardStatsResponse:
        """Return dashboard counts for the caller."""
        async with session_factory() as session:
            result = await aggregator.dashboard_stats(session, actor)
        logger.debug("dashboard_stats_computed", total_projects=result.total_projects)
        return DashboardStatsResponse.model_validate(result)

    return router
