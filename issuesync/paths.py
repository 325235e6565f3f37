"""Locations under the store root.

The lifecycle directory is a function of IssueState only.
"""

from dataclasses import dataclass
from pathlib import Path

from issuesync.models import IssueState

DEFAULT_ROOT = ".issues"
SYNC_DIR = ".sync"


@dataclass(frozen=True)
class Paths:
    """All files and directories of one store root."""

    root: Path

    @classmethod
    def for_root(cls, root: Path | str) -> "Paths":
        return cls(Path(root))

    @property
    def open_dir(self) -> Path:
        return self.root / "open"

    @property
    def closed_dir(self) -> Path:
        return self.root / "closed"

    @property
    def sync_dir(self) -> Path:
        return self.root / SYNC_DIR

    @property
    def originals_dir(self) -> Path:
        return self.sync_dir / "originals"

    @property
    def config_path(self) -> Path:
        return self.sync_dir / "config.yaml"

    @property
    def lock_path(self) -> Path:
        return self.sync_dir / "lock"

    @property
    def labels_path(self) -> Path:
        return self.sync_dir / "labels.json"

    @property
    def milestones_path(self) -> Path:
        return self.sync_dir / "milestones.json"

    @property
    def issue_types_path(self) -> Path:
        return self.sync_dir / "issuetypes.json"

    @property
    def projects_path(self) -> Path:
        return self.sync_dir / "projects.json"

    def dir_for_state(self, state: IssueState) -> Path:
        if state is IssueState.CLOSED:
            return self.closed_dir
        return self.open_dir

    def state_dirs(self) -> list[tuple[IssueState, Path]]:
        return [(IssueState.OPEN, self.open_dir), (IssueState.CLOSED, self.closed_dir)]

    def ensure(self) -> None:
        """Create the directory skeleton."""
        for d in (self.open_dir, self.closed_dir, self.originals_dir):
            d.mkdir(parents=True, exist_ok=True)
