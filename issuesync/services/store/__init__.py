"""Local storage: issue files, original snapshots, pending comments and caches."""

from issuesync.services.store.caches import load_cache, save_cache
from issuesync.services.store.comments import (
    delete_pending_comment,
    find_pending_comment,
    find_pending_comment_for_issue,
    load_all_pending_comments,
    rekey_pending_comment,
    write_pending_comment,
)
from issuesync.services.store.issue_file import parse_file, path_for, render_issue, write_file
from issuesync.services.store.issue_store import IssueFile, IssueStore, LoadResult
from issuesync.services.store.schemas import (
    IssueTypeCache,
    LabelCache,
    MilestoneCache,
    PendingComment,
    ProjectCache,
)

__all__ = [
    "IssueFile",
    "IssueStore",
    "IssueTypeCache",
    "LabelCache",
    "LoadResult",
    "MilestoneCache",
    "PendingComment",
    "ProjectCache",
    "delete_pending_comment",
    "find_pending_comment",
    "find_pending_comment_for_issue",
    "load_all_pending_comments",
    "load_cache",
    "parse_file",
    "path_for",
    "rekey_pending_comment",
    "render_issue",
    "save_cache",
    "write_file",
    "write_pending_comment",
]
