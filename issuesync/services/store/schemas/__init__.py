"""Schemas for store side files (caches, pending comments)."""

from issuesync.services.store.schemas.cache_file import (
    IssueTypeCache,
    LabelCache,
    MilestoneCache,
    ProjectCache,
)
from issuesync.services.store.schemas.pending_comment import PendingComment

__all__ = ["IssueTypeCache", "LabelCache", "MilestoneCache", "PendingComment", "ProjectCache"]
