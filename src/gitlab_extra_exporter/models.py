"""Domain models for GitLab merge request metrics.

These dataclasses intentionally model only the subset of API payload fields
that are exported as metrics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

OPENED = "opened"
MERGED = "merged"
CLOSED = "closed"

# GitLab reports very large diffs with this literal instead of a number.
CHANGES_COUNT_OVERFLOW = "1000+"
CHANGES_COUNT_CEILING = 1000.0


def changed_files(changes_count: Optional[str]) -> float:
    """Convert GitLab's ``changes_count`` string into a metric value.

    ``"1000+"`` maps to ``1000.0``, numeric strings map to their value and
    anything else maps to ``0.0``.
    """
    if changes_count == CHANGES_COUNT_OVERFLOW:
        return CHANGES_COUNT_CEILING
    try:
        return float(changes_count or "")
    except ValueError:
        return 0.0


@dataclass(slots=True, frozen=True)
class Project:
    """Represents a GitLab project."""

    id: str
    path_with_namespace: str


@dataclass(slots=True, frozen=True)
class MergeRequest:
    """Represents the merge request fields exported as metrics."""

    id: str
    iid: int
    project_id: str
    state: str
    target_branch: str = ""
    source_branch: str = ""
    title: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    changes_count: str = ""
    assignees: int = 0


@dataclass(slots=True, frozen=True)
class MergeRequestDetail:
    """Represents a single merge request fetch including its outcome fields."""

    merge_request: MergeRequest
    merged_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    merge_error: Optional[str] = None


@dataclass(slots=True, frozen=True)
class MergeOutcome:
    """Represents a merged or closed merge request and when that happened."""

    merge_request: MergeRequest
    outcome_at: Optional[datetime]

    @property
    def duration_seconds(self) -> float:
        """Seconds between creation and outcome; ``0.0`` if either is unknown."""
        created_at = self.merge_request.created_at
        if self.outcome_at is None or created_at is None:
            return 0.0
        return (self.outcome_at - created_at).total_seconds()


@dataclass(slots=True, frozen=True)
class Approval:
    """Represents the approvals still required before a merge request can merge."""

    merge_request_id: str
    project_id: str
    approvals_left: int


@dataclass(slots=True, frozen=True)
class ChangeSize:
    """Represents added and deleted line counts of a merge request's source branch."""

    merge_request_id: str
    project_id: str
    additions: int
    deletions: int


@dataclass(frozen=True)
class Snapshot:
    """Everything fetched during one successful refresh cycle."""

    projects: Tuple[Project, ...] = ()
    merge_requests: Tuple[MergeRequest, ...] = ()
    opened: Tuple[MergeRequest, ...] = ()
    merged: Tuple[MergeOutcome, ...] = ()
    closed: Tuple[MergeOutcome, ...] = ()
    approvals: Tuple[Approval, ...] = ()
    changes: Tuple[ChangeSize, ...] = ()
    fetched_at: Optional[datetime] = field(default=None)

    @classmethod
    def empty(cls) -> "Snapshot":
        """Return the snapshot served before the first successful cycle."""
        return cls()
