"""Workflow layer for SiteTrack.

Public API:
    registry: Projects, sections, milestones and assignment edges.
    SubmissionStateMachine: Submission creation and review.
    ProgressAggregator: Derived milestone, section and project progress.
    comments: Project collaboration log.
    notices: Section notices to contractors.
"""

from sitetrack.workflow import comments, notices, registry
from sitetrack.workflow.progress import ProgressAggregator
from sitetrack.workflow.state_machine import (
    VALID_TRANSITIONS,
    InvalidTransitionError,
    SubmissionStateMachine,
    validate_transition,
)

__all__ = [
    "VALID_TRANSITIONS",
    "InvalidTransitionError",
    "ProgressAggregator",
    "SubmissionStateMachine",
    "comments",
    "notices",
    "registry",
    "validate_transition",
]
