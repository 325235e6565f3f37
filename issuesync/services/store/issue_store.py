"""Issue storage under <root>/open and <root>/closed, plus original snapshots.

One markdown file per issue, named <number>[-<slug>].md. The directory is
the lifecycle state. Writing an issue always re-derives its location from
(state, number, title) and renames the file first when that changes.

Originals live in <root>/.sync/originals/<number>.md: the issue exactly as
last seen on the remote, used as merge base.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from issuesync.errors import IssueParseError, NotFoundError
from issuesync.models import Issue, IssueState
from issuesync.paths import Paths
from issuesync.services.store.issue_file import parse_file, path_for, write_file

LOG = logging.getLogger("issuesync.services.store.issue_store")

_NUMBER_PREFIX_RE = re.compile(r"^(\d+|T[a-zA-Z0-9]+)(?:[-.]|$)")


@dataclass
class IssueFile:
    """A local issue together with its file and lifecycle directory."""

    issue: Issue
    path: Path
    state: IssueState


@dataclass
class LoadResult:
    """Loaded issues and per-file parse errors (loading never stops at one)."""

    issues: List[IssueFile] = field(default_factory=list)
    errors: List[IssueParseError] = field(default_factory=list)

    def by_number(self) -> dict[str, IssueFile]:
        return {item.issue.number: item for item in self.issues}

    def unreadable_numbers(self) -> set[str]:
        """Numbers guessed from the names of files that failed to parse."""
        return {e.number for e in self.errors if e.number}


def _is_issue_file(path: Path) -> bool:
    return path.is_file() and path.suffix == ".md" and not path.name.endswith(".comment.md")


def number_from_filename(name: str) -> str | None:
    m = _NUMBER_PREFIX_RE.match(name)
    return m.group(1) if m else None


class IssueStore:
    """Record store for one store root."""

    def __init__(self, paths: Paths) -> None:
        self.paths = paths

    def list(self) -> LoadResult:
        """Load every issue from open/ and closed/, collecting parse errors."""
        result = LoadResult()
        for state, directory in self.paths.state_dirs():
            if not directory.is_dir():
                continue
            for path in sorted(directory.iterdir()):
                if not _is_issue_file(path):
                    continue
                try:
                    parsed = parse_file(path)
                except IssueParseError as e:
                    rel = self.relative(path)
                    LOG.warning("Failed to parse %s: %s", rel, e.cause)
                    result.errors.append(IssueParseError(rel, e.cause, number_from_filename(path.name)))
                    continue
                issue = Issue.model_validate({**parsed.model_dump(), "state": state})
                result.issues.append(IssueFile(issue=issue, path=path, state=state))
        return result

    def find(self, ref: str) -> IssueFile:
        """Resolve an issue by number / temporary id, then by file path.

        Paths may be absolute or relative to the store root.
        """
        ref = ref.strip()
        loaded = self.list()
        number = ref.lstrip("#")
        for item in loaded.issues:
            if item.issue.number == number:
                return item
        candidates = [Path(ref)] if Path(ref).is_absolute() else [self.paths.root / ref, Path(ref)]
        for candidate in candidates:
            try:
                resolved = candidate.resolve()
            except OSError:
                continue
            for item in loaded.issues:
                if item.path.resolve() == resolved:
                    return item
        raise NotFoundError(f"issue {ref} not found")

    def relative(self, path: Path) -> str:
        try:
            return Path(path).relative_to(self.paths.root).as_posix()
        except ValueError:
            return Path(path).as_posix()

    def location_for(self, issue: Issue) -> Path:
        return path_for(self.paths.dir_for_state(issue.state), issue.number, issue.title)

    def write(self, issue: Issue, current_path: Path | None = None) -> IssueFile:
        """Write an issue, renaming its file first if its location changed."""
        new_path = self.location_for(issue)
        if current_path is not None and Path(current_path) != new_path and Path(current_path).exists():
            new_path.parent.mkdir(parents=True, exist_ok=True)
            Path(current_path).rename(new_path)
            LOG.debug("Renamed %s -> %s", self.relative(current_path), self.relative(new_path))
        write_file(new_path, issue)
        LOG.debug("Wrote %s", self.relative(new_path))
        return IssueFile(issue=issue, path=new_path, state=issue.state)

    def _original_path(self, number: str) -> Path:
        return self.paths.originals_dir / f"{number}.md"

    def read_original(self, number: str) -> Issue | None:
        """Original snapshot for number, None if never synced or unreadable."""
        path = self._original_path(number)
        if not path.is_file():
            return None
        try:
            return parse_file(path)
        except IssueParseError as e:
            LOG.warning("Ignoring unreadable original %s: %s", path.name, e.cause)
            return None

    def write_original(self, issue: Issue) -> None:
        write_file(self._original_path(issue.number), issue)

    def delete_original(self, number: str) -> None:
        self._original_path(number).unlink(missing_ok=True)

    def original_numbers(self) -> List[str]:
        directory = self.paths.originals_dir
        if not directory.is_dir():
            return []
        return sorted(p.stem for p in directory.iterdir() if p.is_file() and p.suffix == ".md")
