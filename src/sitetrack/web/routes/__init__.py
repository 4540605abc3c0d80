"""FastAPI route definitions for the SiteTrack API.

Each module exposes a ``create_*_router`` factory; the application factory
includes them all.
"""

from __future__ import annotations

from sitetrack.web.routes.actors import create_actors_router
from sitetrack.web.routes.comments import create_comments_router
from sitetrack.web.routes.dashboard import create_dashboard_router
from sitetrack.web.routes.evidence import create_evidence_router
from sitetrack.web.routes.health import (
    HealthResponse,
    ReadinessResponse,
    create_health_router,
)
from sitetrack.web.routes.projects import (
    ProjectCreate,
    ProjectResponse,
    create_projects_router,
)
from sitetrack.web.routes.sections import create_sections_router
from sitetrack.web.routes.submissions import (
    SubmissionCreate,
    SubmissionResponse,
    create_submissions_router,
)

__all__ = [
    "HealthResponse",
    "ProjectCreate",
    "ProjectResponse",
    "ReadinessResponse",
    "SubmissionCreate",
    "SubmissionResponse",
    "create_actors_router",
    "create_comments_router",
    "create_dashboard_router",
    "create_evidence_router",
    "create_health_router",
    "create_projects_router",
    "create_sections_router",
    "create_submissions_router",
]
