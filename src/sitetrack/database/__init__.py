"""Database layer for SiteTrack.

This module handles database connections, session management, and provides
the SQLAlchemy async engine configuration.

Public API:
    get_engine: Create an AsyncEngine from DatabaseConfig.
    get_session_factory: Create an async_sessionmaker from an engine.
    unit_of_work: Commit-or-rollback transaction scope.
    Base: SQLAlchemy declarative base for all models.
"""

from sitetrack.database.connection import get_engine, get_session_factory, unit_of_work
from sitetrack.database.models import (
    Actor,
    ActorRole,
    Base,
    Comment,
    Evidence,
    MaterialUsage,
    Milestone,
    MilestoneStatus,
    NotificationEvent,
    Project,
    ProjectStatus,
    Section,
    Submission,
    SubmissionStatus,
    TimestampMixin,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "unit_of_work",
    "Base",
    "TimestampMixin",
    "Actor",
    "ActorRole",
    "Project",
    "ProjectStatus",
    "Section",
    "Milestone",
    "MilestoneStatus",
    "Submission",
    "SubmissionStatus",
    "Evidence",
    "MaterialUsage",
    "Comment",
    "NotificationEvent",
]
