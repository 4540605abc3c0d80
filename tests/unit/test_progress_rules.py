"""Unit tests for the progress derivation rules.

These exercise the pure functions behind ProgressAggregator: milestone
status derivation, the weight staircase, group precedence and rounding.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from sitetrack.config import ProgressWeights
from sitetrack.database.models.milestone import MilestoneStatus
from sitetrack.database.models.submission import SubmissionStatus
from sitetrack.workflow.progress import (
    completion_percentage,
    derive_group_status,
    derive_milestone_status,
    milestone_weight,
    progress_percentage,
    round_percentage,
)

COMPLETED = MilestoneStatus.COMPLETED
PENDING = MilestoneStatus.PENDING_APPROVAL
QUERIED = MilestoneStatus.QUERIED
IN_PROGRESS = MilestoneStatus.IN_PROGRESS


class TestDeriveMilestoneStatus:
    """Test milestone status derivation."""

    @pytest.mark.parametrize(
        "raw,latest,expected",
        [
            (None, None, IN_PROGRESS),
            (IN_PROGRESS, None, IN_PROGRESS),
            (None, SubmissionStatus.PENDING_APPROVAL, PENDING),
            (None, SubmissionStatus.QUERIED, QUERIED),
            (None, SubmissionStatus.APPROVED, COMPLETED),
            (None, SubmissionStatus.REJECTED, IN_PROGRESS),
            (PENDING, SubmissionStatus.REJECTED, IN_PROGRESS),
            (QUERIED, SubmissionStatus.PENDING_APPROVAL, PENDING),
        ],
    )
    def test_follows_latest_submission(self, raw, latest, expected):
        assert derive_milestone_status(raw, latest) == expected

    @pytest.mark.parametrize("latest", [None, *SubmissionStatus])
    def test_completed_raw_status_wins(self, latest):
        assert derive_milestone_status(COMPLETED, latest) == COMPLETED


class TestMilestoneWeight:
    """Test the progress staircase."""

    @pytest.mark.parametrize(
        "status,raw,expected",
        [
            (COMPLETED, COMPLETED, 100),
            (COMPLETED, None, 100),
            (PENDING, PENDING, 75),
            (QUERIED, QUERIED, 50),
            (IN_PROGRESS, IN_PROGRESS, 50),
            (IN_PROGRESS, None, 0),
            (IN_PROGRESS, PENDING, 0),
        ],
    )
    def test_default_weights(self, status, raw, expected):
        assert milestone_weight(status, raw, ProgressWeights()) == expected

    def test_custom_weights(self):
        weights = ProgressWeights(pending_approval=80, in_progress_not_started=10)
        assert milestone_weight(PENDING, None, weights) == 80
        assert milestone_weight(IN_PROGRESS, None, weights) == 10


class TestDeriveGroupStatus:
    """Test section and project precedence."""

    @pytest.mark.parametrize(
        "statuses,expected",
        [
            ([], IN_PROGRESS),
            ([COMPLETED], COMPLETED),
            ([COMPLETED, COMPLETED], COMPLETED),
            ([COMPLETED, IN_PROGRESS], IN_PROGRESS),
            ([COMPLETED, PENDING], PENDING),
            ([PENDING, QUERIED, COMPLETED], QUERIED),
            ([IN_PROGRESS, QUERIED], QUERIED),
        ],
    )
    def test_precedence(self, statuses, expected):
        assert derive_group_status(statuses) == expected


class TestPercentages:
    """Test rounding and empty-group handling."""

    @pytest.mark.parametrize(
        "value,expected",
        [(Decimal("37.5"), 38), (Decimal("62.5"), 63), (Decimal("33.333"), 33), (0.5, 1)],
    )
    def test_round_half_up(self, value, expected):
        assert round_percentage(value) == expected

    def test_empty_groups_are_zero(self):
        assert completion_percentage([]) == 0
        assert progress_percentage([]) == 0

    def test_completion_percentage(self):
        assert completion_percentage([COMPLETED, IN_PROGRESS, IN_PROGRESS]) == 33
        assert completion_percentage([COMPLETED, COMPLETED, PENDING]) == 67

    def test_progress_percentage(self):
        assert progress_percentage([75, 0]) == 38
        assert progress_percentage([100, 75, 50]) == 75
