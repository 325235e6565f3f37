"""Issue tracker adapters."""

from issuesync.adapters.base import IssueTrackerAdapter, TrackerError

__all__ = ["IssueTrackerAdapter", "TrackerError"]
