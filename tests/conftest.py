"""Shared fixtures: a store root under tmp_path and an in-memory tracker."""

from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, List

import pytest

from issuesync.adapters.base import IssueTrackerAdapter, TrackerError
from issuesync.config import AppConfig, RepositoryConfig, save_config
from issuesync.models import Issue, IssueChange, IssueType, Label, ListIssuesResult, Milestone, Project
from issuesync.paths import Paths
from issuesync.services.store import IssueStore

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _sort_key(number: str) -> tuple[int, str]:
    return (len(number), number)


class FakeTracker(IssueTrackerAdapter):
    """In-memory tracker. Every call is recorded in ``calls``.

    ``fail`` maps a method name to the exception it raises; ``fail_numbers``
    makes update_issue / create_comment fail for specific issue numbers.
    """

    def __init__(self, next_number: int = 100) -> None:
        self.issues: Dict[str, Issue] = {}
        self.label_colors: Dict[str, str] = {}
        self.labels: List[Label] = []
        self.milestones: List[Milestone] = []
        self.issue_types: List[IssueType] = []
        self.projects: List[Project] = []
        self.comments: List[tuple[str, str]] = []
        self.calls: List[tuple] = []
        self.fail: Dict[str, Exception] = {}
        self.fail_numbers: set[str] = set()
        self.next_number = next_number
        self.supports_batch_update = False

    def add(self, issue: Issue) -> Issue:
        self.issues[issue.number] = issue.model_copy(deep=True)
        for name in issue.labels:
            self.label_colors.setdefault(name.lower(), "ededed")
        return issue

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def _call(self, name: str, *args: object) -> None:
        self.calls.append((name, *args))
        if name in self.fail:
            raise self.fail[name]

    def get_issue(self, number: str) -> Issue:
        self._call("get_issue", number)
        if number not in self.issues:
            raise TrackerError(f"Not found: issue #{number}")
        return self.issues[number].model_copy(deep=True)

    def list_issues(self, state: str = "open", label: str | None = None) -> ListIssuesResult:
        self._call("list_issues", state, label)
        result = ListIssuesResult(label_colors=dict(self.label_colors))
        for number in sorted(self.issues, key=_sort_key):
            issue = self.issues[number]
            if state != "all" and issue.state.value != state:
                continue
            if label and label not in issue.labels:
                continue
            result.issues.append(issue.model_copy(deep=True))
        return result

    def get_issues_batch(self, numbers: List[str]) -> Dict[str, Issue]:
        self._call("get_issues_batch", list(numbers))
        return {n: self.issues[n].model_copy(deep=True) for n in numbers if n in self.issues}

    def create_issue(self, issue: Issue) -> Issue:
        self._call("create_issue", issue.number)
        number = str(self.next_number)
        self.next_number += 1
        created = Issue(
            number=number,
            title=issue.title,
            body=issue.body,
            labels=issue.labels,
            assignees=issue.assignees,
            milestone=issue.milestone,
            issue_type=issue.issue_type,
        )
        self.issues[number] = created
        return created.model_copy(deep=True)

    def _apply(self, number: str, change: IssueChange) -> None:
        if number not in self.issues:
            raise TrackerError(f"Not found: issue #{number}")
        data = self.issues[number].model_dump()
        for name in ("title", "body", "milestone", "issue_type", "state_reason"):
            value = getattr(change, name)
            if value is not None:
                data[name] = value
        if change.state_transition == "close":
            data["state"] = "closed"
        elif change.state_transition == "reopen":
            data["state"] = "open"
        if change.parent is not None:
            data["parent"] = change.parent or None
        for name in ("labels", "assignees", "projects"):
            current = set(data[name]) | set(getattr(change, f"add_{name}"))
            data[name] = sorted(current - set(getattr(change, f"remove_{name}")))
        blocked_by = [b for b in data["blocked_by"] if b not in change.remove_blocked_by]
        blocked_by += [b for b in change.add_blocked_by if b not in blocked_by]
        data["blocked_by"] = blocked_by
        self.issues[number] = Issue.model_validate(data)
        for blocker in change.add_blocked_by:
            other = self.issues.get(blocker)
            if other is not None and number not in other.blocks:
                other.blocks = other.blocks + [number]
        for blocker in change.remove_blocked_by:
            other = self.issues.get(blocker)
            if other is not None and number in other.blocks:
                other.blocks = [b for b in other.blocks if b != number]

    def update_issue(self, number: str, change: IssueChange) -> None:
        self._call("update_issue", number, change)
        if number in self.fail_numbers:
            raise TrackerError(f"422: cannot update #{number}")
        self._apply(number, change)

    def update_issues_batch(self, changes: Dict[str, IssueChange]) -> None:
        self._call("update_issues_batch", sorted(changes))
        for number, change in changes.items():
            self._apply(number, change)

    def create_comment(self, number: str, body: str) -> None:
        self._call("create_comment", number, body)
        if number in self.fail_numbers:
            raise TrackerError(f"403: cannot comment on #{number}")
        self.comments.append((number, body))

    def list_labels(self) -> List[Label]:
        self._call("list_labels")
        return list(self.labels)

    def create_label(self, name: str, color: str) -> None:
        self._call("create_label", name, color)
        self.labels.append(Label(name=name, color=color))
        self.label_colors[name.lower()] = color

    def list_milestones(self) -> List[Milestone]:
        self._call("list_milestones")
        return list(self.milestones)

    def list_issue_types(self) -> List[IssueType]:
        self._call("list_issue_types")
        return list(self.issue_types)

    def list_projects(self) -> List[Project]:
        self._call("list_projects")
        return list(self.projects)


@pytest.fixture
def paths(tmp_path: Path) -> Paths:
    p = Paths.for_root(tmp_path / ".issues")
    p.ensure()
    return p


@pytest.fixture
def config(paths: Paths) -> AppConfig:
    cfg = AppConfig(repository=RepositoryConfig(owner="acme", repo="widgets"))
    cfg.sync.lock_timeout = 0.3
    save_config(paths.config_path, cfg)
    return cfg


@pytest.fixture
def store(paths: Paths) -> IssueStore:
    return IssueStore(paths)


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()


def synced(store: IssueStore, issue: Issue) -> Issue:
    """Write issue both locally and as its original snapshot (a clean sync)."""
    issue = issue.model_copy(update={"synced_at": NOW})
    store.write(issue)
    store.write_original(issue)
    return issue
