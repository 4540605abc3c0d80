"""Database query functions for SiteTrack.

Each module groups the queries for one entity. Query functions flush but
never commit; workflow operations wrap them in unit_of_work.
"""

from sitetrack.database.queries import (
    actor,
    comment,
    milestone,
    notification,
    project,
    section,
    submission,
)

__all__ = [
    "actor",
    "comment",
    "milestone",
    "notification",
    "project",
    "section",
    "submission",
]
