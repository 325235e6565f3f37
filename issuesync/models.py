"""Data models for issues, change-sets and remote vocabulary."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class IssueState(str, Enum):
    """Lifecycle state; also selects the open/ or closed/ directory."""

    OPEN = "open"
    CLOSED = "closed"

    @classmethod
    def parse(cls, value: "str | IssueState | None") -> "IssueState":
        if isinstance(value, IssueState):
            return value
        if value and str(value).strip().lower() == "closed":
            return cls.CLOSED
        return cls.OPEN


def _ref(value: object) -> str:
    """Normalize an issue reference: 42, "42", "#42" -> "42"."""
    return str(value).strip().lstrip("#")


class Issue(BaseModel):
    """One issue as mirrored on disk and as returned by the tracker.

    Labels, assignees and projects are sets: they are stored sorted and
    deduplicated so comparisons and serialization are order-insensitive.
    blocked_by and blocks keep their order.
    """

    number: str = Field(..., description="Canonical number or temporary local id (T...)")
    title: str = ""
    body: str = ""
    labels: List[str] = Field(default_factory=list)
    assignees: List[str] = Field(default_factory=list)
    projects: List[str] = Field(default_factory=list)
    milestone: str = ""
    issue_type: str = ""
    state: IssueState = IssueState.OPEN
    state_reason: str | None = None
    parent: str | None = None
    blocked_by: List[str] = Field(default_factory=list)
    blocks: List[str] = Field(default_factory=list)
    synced_at: datetime | None = None

    model_config = {"extra": "ignore", "validate_assignment": False}

    @field_validator("number", mode="before")
    @classmethod
    def _number_to_str(cls, value: object) -> str:
        return _ref(value)

    @field_validator("title", "milestone", "issue_type", mode="before")
    @classmethod
    def _strip_text(cls, value: object) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("body", mode="before")
    @classmethod
    def _normalize_body(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).replace("\r\n", "\n").rstrip()

    @field_validator("labels", "assignees", "projects", mode="before")
    @classmethod
    def _sorted_set(cls, value: object) -> List[str]:
        if not value:
            return []
        items = value if isinstance(value, (list, tuple, set)) else [value]
        return sorted({str(v).strip() for v in items if str(v).strip()})

    @field_validator("state", mode="before")
    @classmethod
    def _parse_state(cls, value: object) -> IssueState:
        return IssueState.parse(value)  # type: ignore[arg-type]

    @field_validator("state_reason", "parent", mode="before")
    @classmethod
    def _optional_ref(cls, value: object) -> str | None:
        if value is None:
            return None
        return _ref(value) or None

    @field_validator("blocked_by", "blocks", mode="before")
    @classmethod
    def _ref_list(cls, value: object) -> List[str]:
        if not value:
            return []
        items = value if isinstance(value, (list, tuple)) else [value]
        return [_ref(v) for v in items if _ref(v)]

    @model_validator(mode="after")
    def _reason_only_when_closed(self) -> "Issue":
        if self.state is not IssueState.CLOSED:
            self.state_reason = None
        elif self.state_reason:
            self.state_reason = self.state_reason.lower()
        return self

    def content(self) -> Dict[str, object]:
        """Every field except synced_at, which each sync rewrites."""
        return self.model_dump(exclude={"synced_at"})


def equal_ignoring_synced_at(a: Issue, b: Issue) -> bool:
    """Content equality; synced_at never participates."""
    return a.content() == b.content()


class IssueChange(BaseModel):
    """Partial update to apply to a remote issue.

    For scalar fields None means "leave unchanged" and "" means "clear".
    add_blocks and remove_blocks are edges stored on other issues: update_issue
    ignores them, push sends each one as blocked_by on the target.
    """

    title: str | None = None
    body: str | None = None
    milestone: str | None = None
    issue_type: str | None = None
    state_transition: Literal["close", "reopen"] | None = None
    state_reason: str | None = None
    parent: str | None = None
    add_labels: List[str] = Field(default_factory=list)
    remove_labels: List[str] = Field(default_factory=list)
    add_assignees: List[str] = Field(default_factory=list)
    remove_assignees: List[str] = Field(default_factory=list)
    add_projects: List[str] = Field(default_factory=list)
    remove_projects: List[str] = Field(default_factory=list)
    add_blocked_by: List[str] = Field(default_factory=list)
    remove_blocked_by: List[str] = Field(default_factory=list)
    add_blocks: List[str] = Field(default_factory=list)
    remove_blocks: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        for name, value in self:
            if isinstance(value, list):
                if value:
                    return False
            elif value is not None:
                return False
        return True

    def without_blocks(self) -> "IssueChange":
        """The part of the change that applies to this issue itself."""
        return self.model_copy(update={"add_blocks": [], "remove_blocks": []})


class Label(BaseModel):
    name: str
    color: str = ""


class Milestone(BaseModel):
    title: str
    description: str = ""
    due_on: str | None = None
    state: str = "open"


class IssueType(BaseModel):
    id: str
    name: str
    description: str = ""


class Project(BaseModel):
    id: str
    title: str


class ListIssuesResult(BaseModel):
    """Issues from a list query plus colors of every label seen (lowercase name -> hex)."""

    issues: List[Issue] = Field(default_factory=list)
    label_colors: Dict[str, str] = Field(default_factory=dict)
