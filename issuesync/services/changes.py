"""Change-sets (local vs original snapshot) and human-readable field summaries."""

from typing import Dict, List

from issuesync.models import Issue, IssueChange, IssueState
from issuesync.services.diff import diff_stats, diff_string_set, diff_text


def diff_issue(original: Issue, local: Issue) -> IssueChange:
    """Change-set turning original into local.

    Sets become add/remove lists. A state change becomes a close/reopen
    transition. ``blocks`` edits are listed separately, they belong to the
    blocked_by of the target issues.
    """
    change = IssueChange()
    if original.title != local.title:
        change.title = local.title
    if original.body != local.body:
        change.body = local.body
    change.add_labels, change.remove_labels = diff_string_set(original.labels, local.labels)
    change.add_assignees, change.remove_assignees = diff_string_set(original.assignees, local.assignees)
    change.add_projects, change.remove_projects = diff_string_set(original.projects, local.projects)
    if original.milestone != local.milestone:
        change.milestone = local.milestone
    if original.issue_type != local.issue_type:
        change.issue_type = local.issue_type
    if original.state != local.state:
        change.state_transition = "close" if local.state is IssueState.CLOSED else "reopen"
    if local.state is IssueState.CLOSED and (original.state_reason or "") != (local.state_reason or ""):
        change.state_reason = local.state_reason or ""
    if original.parent != local.parent:
        change.parent = local.parent or ""
    change.add_blocked_by, change.remove_blocked_by = diff_string_set(original.blocked_by, local.blocked_by)
    change.add_blocks, change.remove_blocks = diff_string_set(original.blocks, local.blocks)
    return change


def _quote(value: str | None) -> str:
    return f'"{value or ""}"'


def _ref(value: str | None) -> str:
    return f"#{value}" if value else "(none)"


def _refs(values: List[str]) -> str:
    return ", ".join(f"#{v}" for v in values) or "(none)"


def _set_line(name: str, old: List[str], new: List[str], colors: Dict[str, str] | None = None) -> str | None:
    added, removed = diff_string_set(old, new)
    if not added and not removed:
        return None
    parts = []
    for item in added:
        color = (colors or {}).get(item.lower())
        parts.append(f"+{item} (#{color})" if color else f"+{item}")
    parts.extend(f"-{item}" for item in removed)
    return f"{name}: {' '.join(parts)}"


def _state_text(issue: Issue) -> str:
    if issue.state is IssueState.CLOSED and issue.state_reason:
        return f"closed ({issue.state_reason})"
    return issue.state.value


def change_lines(old: Issue, new: Issue, label_colors: Dict[str, str] | None = None) -> List[str]:
    """One line per changed field, old -> new. Label additions carry their color."""
    lines: List[str] = []
    if old.title != new.title:
        lines.append(f"title: {_quote(old.title)} -> {_quote(new.title)}")
    if old.state != new.state or old.state_reason != new.state_reason:
        lines.append(f"state: {_state_text(old)} -> {_state_text(new)}")
    for line in (
        _set_line("labels", old.labels, new.labels, label_colors),
        _set_line("assignees", old.assignees, new.assignees),
        _set_line("projects", old.projects, new.projects),
    ):
        if line:
            lines.append(line)
    if old.milestone != new.milestone:
        lines.append(f"milestone: {_quote(old.milestone)} -> {_quote(new.milestone)}")
    if old.issue_type != new.issue_type:
        lines.append(f"type: {_quote(old.issue_type)} -> {_quote(new.issue_type)}")
    if old.parent != new.parent:
        lines.append(f"parent: {_ref(old.parent)} -> {_ref(new.parent)}")
    if old.blocked_by != new.blocked_by:
        lines.append(f"blocked_by: {_refs(old.blocked_by)} -> {_refs(new.blocked_by)}")
    if old.blocks != new.blocks:
        lines.append(f"blocks: {_refs(old.blocks)} -> {_refs(new.blocks)}")
    if old.body != new.body:
        added, removed = diff_stats(diff_text(old.body, new.body))
        lines.append(f"body: +{added} -{removed} lines")
    return lines
