"""Three-way classification of an issue: original snapshot vs local vs remote.

Rules, first match wins:

1. no local, no original         -> ADDED (new remote issue)
   no local, original present    -> RESTORED (local file was deleted)
2. local, no original            -> CONFLICT / unbaselined
3. local == original == remote   -> UNCHANGED
4. local == original != remote   -> REMOTE_UPDATE (overwrite local)
5. local != original == remote   -> LOCAL_UPDATE (leave local, push will send it)
6. local != original != remote   -> CONFLICT / diverged

``synced_at`` never takes part in any comparison. With force, conflicts are
resolved as remote updates: local edits are discarded.
"""

from dataclasses import dataclass
from enum import Enum

from issuesync.models import Issue, equal_ignoring_synced_at


class Verdict(str, Enum):
    ADDED = "added"
    RESTORED = "restored"
    UNCHANGED = "unchanged"
    REMOTE_UPDATE = "remote_update"
    LOCAL_UPDATE = "local_update"
    CONFLICT = "conflict"


class ConflictKind(str, Enum):
    DIVERGED = "diverged"
    UNBASELINED = "unbaselined"


@dataclass(frozen=True)
class Classification:
    verdict: Verdict
    conflict: ConflictKind | None = None
    forced: bool = False

    @property
    def overwrites_local(self) -> bool:
        """True when the remote version must be written locally."""
        return self.verdict in (Verdict.ADDED, Verdict.RESTORED, Verdict.REMOTE_UPDATE)


def classify(
    original: Issue | None,
    local: Issue | None,
    remote: Issue,
    force: bool = False,
) -> Classification:
    """Classify one issue. force turns conflicts into remote updates (destructive)."""
    if local is None:
        if original is None:
            return Classification(Verdict.ADDED)
        return Classification(Verdict.RESTORED)

    if original is None:
        if force:
            return Classification(Verdict.REMOTE_UPDATE, ConflictKind.UNBASELINED, forced=True)
        return Classification(Verdict.CONFLICT, ConflictKind.UNBASELINED)

    local_is_original = equal_ignoring_synced_at(local, original)
    if local_is_original:
        if equal_ignoring_synced_at(local, remote):
            return Classification(Verdict.UNCHANGED)
        return Classification(Verdict.REMOTE_UPDATE)

    if equal_ignoring_synced_at(remote, original):
        return Classification(Verdict.LOCAL_UPDATE)

    if force:
        return Classification(Verdict.REMOTE_UPDATE, ConflictKind.DIVERGED, forced=True)
    return Classification(Verdict.CONFLICT, ConflictKind.DIVERGED)
