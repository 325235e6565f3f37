"""Abstract base for issue tracker adapters (the remote side of a sync)."""

from abc import ABC, abstractmethod
from typing import Dict, List

from issuesync.models import Issue, IssueChange, IssueType, Label, ListIssuesResult, Milestone, Project


class TrackerError(Exception):
    """Raised when an issue tracker API call fails."""

    pass


class IssueTrackerAdapter(ABC):
    """Remote issue tracker scoped to one repository.

    Issues returned by any read include their relationships (parent,
    blocked_by, blocks). States are lowercase.
    """

    @abstractmethod
    def get_issue(self, number: str) -> Issue:
        """Fetch one issue by number."""
        ...

    @abstractmethod
    def list_issues(self, state: str = "open", label: str | None = None) -> ListIssuesResult:
        """List issues by state ("open" or "all"), optionally filtered by label."""
        ...

    @abstractmethod
    def get_issues_batch(self, numbers: List[str]) -> Dict[str, Issue]:
        """Fetch many issues in one logical call. Missing numbers are absent from the result."""
        ...

    @abstractmethod
    def create_issue(self, issue: Issue) -> Issue:
        """Create an issue from title, body, labels, assignees, milestone and type.

        Returns the issue as the tracker now has it, with its real number.
        """
        ...

    @abstractmethod
    def update_issue(self, number: str, change: IssueChange) -> None:
        """Apply a partial update."""
        ...

    @abstractmethod
    def create_comment(self, number: str, body: str) -> None:
        """Post a comment on an issue."""
        ...

    supports_batch_update: bool = False

    def update_issues_batch(self, changes: Dict[str, IssueChange]) -> None:
        """Apply several partial updates in one call. Override with supports_batch_update."""
        raise NotImplementedError("update_issues_batch")

    def list_labels(self) -> List[Label]:
        """Repository labels. Override if needed."""
        return []

    def create_label(self, name: str, color: str) -> None:
        """Create a repository label. Override if needed."""
        raise NotImplementedError("create_label")

    def list_milestones(self) -> List[Milestone]:
        """Repository milestones. Override if needed."""
        return []

    def list_issue_types(self) -> List[IssueType]:
        """Issue types available to the repository. Override if needed."""
        return []

    def list_projects(self) -> List[Project]:
        """Projects linked to the repository. Override if needed."""
        return []
