"""SQLAlchemy ORM models for SiteTrack.

This module defines the database schema: actors, projects and their
contractor pools, sections and their assignments, milestones, submissions
with evidence and material usage, project comments, and the notification
outbox.

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from sitetrack.database.models.actor import Actor, ActorRole
from sitetrack.database.models.base import Base, TimestampMixin
from sitetrack.database.models.comment import Comment
from sitetrack.database.models.milestone import Milestone, MilestoneStatus
from sitetrack.database.models.notification import (
    DeliveryStatus,
    EventType,
    NotificationEvent,
)
from sitetrack.database.models.project import Project, ProjectContractor, ProjectStatus
from sitetrack.database.models.section import (
    Section,
    SectionAssignment,
    SectionMilestone,
)
from sitetrack.database.models.submission import (
    Evidence,
    MaterialUsage,
    Submission,
    SubmissionStatus,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "Actor",
    "ActorRole",
    "Project",
    "ProjectContractor",
    "ProjectStatus",
    "Section",
    "SectionAssignment",
    "SectionMilestone",
    "Milestone",
    "MilestoneStatus",
    "Submission",
    "SubmissionStatus",
    "Evidence",
    "MaterialUsage",
    "Comment",
    "NotificationEvent",
    "EventType",
    "DeliveryStatus",
]
