"""Pull and push reports.

Every partial failure (conflict, warning, per-issue push failure, parse
error) is its own line so callers and scripts can pick them out.
"""

from dataclasses import dataclass, field
from typing import List

from issuesync.services.conflict import ConflictKind

_CONFLICT_HINTS = {
    ConflictKind.DIVERGED: "local and remote both changed since last sync",
    ConflictKind.UNBASELINED: "local file exists but was never synced",
}


@dataclass
class IssueEntry:
    """One issue touched by a sync, with per-field change lines."""

    number: str
    title: str
    lines: List[str] = field(default_factory=list)


@dataclass
class ConflictEntry:
    number: str
    kind: ConflictKind


@dataclass
class PushFailure:
    number: str
    error: str


def _header(code: str, number: str, title: str) -> str:
    return f"{code} #{number} {title}".rstrip()


def _entry_lines(code: str, entries: List[IssueEntry]) -> List[str]:
    out = []
    for entry in entries:
        out.append(_header(code, entry.number, entry.title))
        out.extend(f"    {line}" for line in entry.lines)
    return out


@dataclass
class PullReport:
    added: List[IssueEntry] = field(default_factory=list)
    updated: List[IssueEntry] = field(default_factory=list)
    restored: List[IssueEntry] = field(default_factory=list)
    unchanged: int = 0
    local_only: List[str] = field(default_factory=list)
    conflicts: List[ConflictEntry] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    parse_errors: List[str] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def lines(self) -> List[str]:
        out = _entry_lines("A", self.added) + _entry_lines("U", self.updated) + _entry_lines("R", self.restored)
        for number in self.local_only:
            out.append(f"L #{number} local changes not pushed yet")
        for conflict in sorted(self.conflicts, key=lambda c: c.number):
            out.append(f"C #{conflict.number} conflict ({conflict.kind.value}): {_CONFLICT_HINTS[conflict.kind]}")
        if self.conflicts:
            out.append("Conflicting issues were skipped; resolve them or pull again with --force to discard local edits")
        out.extend(f"Parse error: {e}" for e in self.parse_errors)
        out.extend(f"Warning: {w}" for w in self.warnings)
        if self.unchanged:
            noun = "issue" if self.unchanged == 1 else "issues"
            out.append(f"Nothing to pull: {self.unchanged} {noun} up to date")
        return out


@dataclass
class PushReport:
    created: List[IssueEntry] = field(default_factory=list)
    updated: List[IssueEntry] = field(default_factory=list)
    commented: List[str] = field(default_factory=list)
    failures: List[PushFailure] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    parse_errors: List[str] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def nothing_pushed(self) -> bool:
        return not (self.created or self.updated or self.commented or self.failures)

    def lines(self) -> List[str]:
        out = _entry_lines("A", self.created) + _entry_lines("U", self.updated)
        out.extend(f"C #{number} comment posted" for number in self.commented)
        out.extend(f"F #{f.number} push failed: {f.error}" for f in self.failures)
        out.extend(f"Parse error: {e}" for e in self.parse_errors)
        out.extend(f"Warning: {w}" for w in self.warnings)
        if self.nothing_pushed:
            out.append("Nothing to push")
        return out
