"""Push: send local edits, new issues and pending comments to the tracker.

Order of work:

1. Issues with a temporary id are created, ascending by file path. After
   each creation the temporary id is retired: the new number is applied to
   every local issue (title, body, parent, blocked_by, blocks) and the
   rewritten files are saved before anything else is sent.
2. Issues with a real number and a non-empty change-set (local vs original
   snapshot) are updated, batched when the adapter supports it, one by one
   otherwise or when the batch fails.
3. ``blocks`` edits are sent as blocked_by edits on each target issue;
   an edge the tracker did not accept stays out of the snapshot.
4. Pending comments are posted once their issue exists remotely with
   current content, and deleted only after a confirmed post.

A successful create/update rewrites the original snapshot to the local
state. A failure on one issue is reported and the rest still go out.
"""

import logging
import random
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Callable, Dict, Iterable, List, Tuple

from issuesync.adapters.base import IssueTrackerAdapter, TrackerError
from issuesync.config import AppConfig
from issuesync.errors import SyncCancelled
from issuesync.models import Issue, IssueChange, Label
from issuesync.services.changes import change_lines, diff_issue
from issuesync.services.lock import SyncLock
from issuesync.services.remap import apply_mapping, find_dangling_refs
from issuesync.services.report import IssueEntry, PushFailure, PushReport
from issuesync.services.store import (
    IssueFile,
    IssueStore,
    LabelCache,
    PendingComment,
    delete_pending_comment,
    find_pending_comment_for_issue,
    load_all_pending_comments,
    load_cache,
    rekey_pending_comment,
    save_cache,
)
from issuesync.utils import is_local_id, random_label_color

LOG = logging.getLogger("issuesync.services.push")


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class PushOptions:
    refs: List[str] = field(default_factory=list)


@dataclass
class PushCandidate:
    """A local issue with something to send."""

    item: IssueFile
    change: IssueChange
    comment: PendingComment | None = None
    has_original: bool = True

    @property
    def needs_create(self) -> bool:
        return is_local_id(self.item.issue.number)


def _pending_comments(store: IssueStore, items: Iterable[IssueFile]) -> Dict[str, PendingComment]:
    """Pending comments by number; an issue's own state directory is checked first."""
    comments = load_all_pending_comments(store.paths)
    for item in items:
        number = item.issue.number
        if number in comments:
            comments[number] = find_pending_comment_for_issue(store.paths, number, item.state) or comments[number]
    return comments


def plan_push(store: IssueStore, items: Iterable[IssueFile] | None = None) -> List[PushCandidate]:
    """Issues that a push would create, update or comment on, ascending by path."""
    items = store.list().issues if items is None else list(items)
    comments = _pending_comments(store, items)
    candidates = []
    for item in sorted(items, key=lambda i: str(i.path)):
        number = item.issue.number
        comment = comments.get(number)
        if is_local_id(number):
            candidates.append(PushCandidate(item=item, change=IssueChange(), comment=comment))
            continue
        original = store.read_original(number)
        change = diff_issue(original, item.issue) if original is not None else IssueChange()
        if original is None or not change.is_empty() or comment is not None:
            candidates.append(PushCandidate(item=item, change=change, comment=comment, has_original=original is not None))
    return candidates


class PushReconciler:
    """Pushes local state to the tracker under the sync lock."""

    def __init__(
        self,
        store: IssueStore,
        adapter: IssueTrackerAdapter,
        config: AppConfig,
        now: Callable[[], datetime] = _utcnow,
        cancel: threading.Event | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.adapter = adapter
        self.config = config
        self.now = now
        self.cancel = cancel or threading.Event()
        self.rng = rng or random.Random()
        self._items: Dict[str, IssueFile] = {}

    def _check_cancel(self) -> None:
        if self.cancel.is_set():
            raise SyncCancelled("push cancelled")

    def run(self, options: PushOptions | None = None) -> PushReport:
        options = options or PushOptions()
        with SyncLock(self.store.paths.lock_path, timeout=self.config.sync.lock_timeout):
            return self._push(options)

    def _push(self, options: PushOptions) -> PushReport:
        report = PushReport()
        loaded = self.store.list()
        report.parse_errors.extend(str(e) for e in loaded.errors)
        self._items = {item.issue.number: item for item in loaded.issues}

        wanted: set[str] | None = None
        if options.refs:
            wanted = {self.store.find(ref).issue.number for ref in options.refs}

        comments = _pending_comments(self.store, loaded.issues)
        now = self.now()

        mapping = self._create_new(wanted, comments, now, report)
        if mapping and loaded.errors:
            for error in loaded.errors:
                report.warnings.append(f"{error.path}: unreadable, references to new issues not rewritten")
        for number, ref in find_dangling_refs([item.issue for item in self._items.values()]):
            LOG.warning("#%s references %s, which does not exist locally", number, ref)
            report.warnings.append(f"#{number} references #{ref}, which was never pushed and no longer exists locally")

        if wanted is not None:
            wanted = {mapping.get(n, n) for n in wanted}
        self._update_existing(wanted, comments, now, report)
        self._post_remaining_comments(wanted, comments, report)

        LOG.info(
            "Push done: %d created, %d updated, %d comments, %d failures",
            len(report.created),
            len(report.updated),
            len(report.commented),
            len(report.failures),
        )
        return report

    def _create_new(
        self,
        wanted: set[str] | None,
        comments: Dict[str, PendingComment],
        now: datetime,
        report: PushReport,
    ) -> Dict[str, str]:
        """Create every temporary-id issue; returns temporary id -> number."""
        mapping: Dict[str, str] = {}
        pending = [
            item for number, item in self._items.items()
            if is_local_id(number) and (wanted is None or number in wanted)
        ]
        for item in sorted(pending, key=lambda i: str(i.path)):
            # earlier creations may have rewritten this issue
            item = self._items[item.issue.number]
            temp_id = item.issue.number
            self._check_cancel()
            try:
                self._ensure_labels(item.issue.labels, report)
                created = self.adapter.create_issue(item.issue)
            except TrackerError as e:
                LOG.warning("Creating %s failed: %s", temp_id, e)
                report.failures.append(PushFailure(temp_id, str(e)))
                continue

            number = created.number
            mapping[temp_id] = number
            LOG.info("Created #%s from %s", number, temp_id)

            self.store.write_original(created.model_copy(update={"synced_at": now}))
            local = item.issue.model_copy(update={"number": number, "synced_at": now}, deep=True)
            del self._items[temp_id]
            self._items[number] = self.store.write(local, current_path=item.path)
            self._remap_all({temp_id: number})
            report.created.append(IssueEntry(number, local.title, [f"created from {temp_id}"]))

            comment = comments.pop(temp_id, None)
            if comment is not None:
                self._post_comment(number, comment, report)
        return mapping

    def _remap_all(self, mapping: Dict[str, str]) -> None:
        """Apply mapping to every local issue and save the ones that changed."""
        for number in list(self._items):
            item = self._items[number]
            issue = item.issue.model_copy(deep=True)
            if apply_mapping(issue, mapping):
                self._items[number] = self.store.write(issue, current_path=item.path)
                LOG.debug("Rewrote references in #%s", number)

    def _update_existing(
        self,
        wanted: set[str] | None,
        comments: Dict[str, PendingComment],
        now: datetime,
        report: PushReport,
    ) -> None:
        changes: Dict[str, IssueChange] = {}
        originals: Dict[str, Issue] = {}
        for number in sorted(self._items, key=lambda n: str(self._items[n].path)):
            if is_local_id(number) or (wanted is not None and number not in wanted):
                continue
            original = self.store.read_original(number)
            if original is None:
                report.warnings.append(f"#{number} has no original snapshot; pull it before pushing edits")
                continue
            change = diff_issue(original, self._items[number].issue)
            if change.is_empty():
                continue
            changes[number] = change
            originals[number] = original
        if not changes:
            return

        # blocks-only edits have nothing to send for the issue itself
        to_send = {n: c.without_blocks() for n, c in changes.items() if not c.without_blocks().is_empty()}
        for change in to_send.values():
            self._ensure_labels(change.add_labels, report)

        succeeded = set(changes) - set(to_send)
        batched = False
        if self.adapter.supports_batch_update and len(to_send) > 1:
            self._check_cancel()
            try:
                self.adapter.update_issues_batch(to_send)
                succeeded.update(to_send)
                batched = True
            except (TrackerError, NotImplementedError) as e:
                LOG.warning("Batch update failed, retrying one by one: %s", e)
                report.warnings.append(f"batch update failed, retried one by one: {e}")
        if not batched:
            for number, change in to_send.items():
                self._check_cancel()
                try:
                    self.adapter.update_issue(number, change)
                except TrackerError as e:
                    LOG.warning("Updating #%s failed: %s", number, e)
                    report.failures.append(PushFailure(number, str(e)))
                    continue
                succeeded.add(number)

        for number, change in changes.items():
            if number not in succeeded:
                continue
            unsent_add, unsent_remove = self._send_blocks(number, change, changes, succeeded, report)
            item = self._items[number]
            local = item.issue.model_copy(update={"synced_at": now})
            self._items[number] = self.store.write(local, current_path=item.path)
            # the snapshot only records edges the tracker accepted
            snapshot = local
            if unsent_add or unsent_remove:
                blocks = [b for b in local.blocks if b not in unsent_add]
                blocks += [b for b in originals[number].blocks if b in unsent_remove]
                snapshot = local.model_copy(update={"blocks": blocks})
            self.store.write_original(snapshot)
            lines = change_lines(originals[number], snapshot)
            if lines:
                report.updated.append(IssueEntry(number, local.title, lines))
            comment = comments.pop(number, None)
            if comment is not None:
                self._post_comment(number, comment, report)

    def _send_blocks(
        self,
        number: str,
        change: IssueChange,
        changes: Dict[str, IssueChange],
        succeeded: set[str],
        report: PushReport,
    ) -> Tuple[List[str], List[str]]:
        """Send blocks edits as blocked_by edits on each target.

        Returns the targets whose add or remove did not reach the tracker.
        """
        unsent_add: List[str] = []
        unsent_remove: List[str] = []
        edges = [(t, True) for t in change.add_blocks] + [(t, False) for t in change.remove_blocks]
        for target, adding in edges:
            unsent = unsent_add if adding else unsent_remove
            own = changes.get(target)
            if own is not None and number in (own.add_blocked_by if adding else own.remove_blocked_by):
                # the target's own update carries this edge
                if target not in succeeded:
                    unsent.append(target)
                continue
            if is_local_id(target):
                report.warnings.append(f"#{number} blocks #{target}, which has no number yet; not sent")
                unsent.append(target)
                continue
            edge = IssueChange(add_blocked_by=[number]) if adding else IssueChange(remove_blocked_by=[number])
            self._check_cancel()
            try:
                self.adapter.update_issue(target, edge)
            except TrackerError as e:
                LOG.warning("Updating blocked_by of #%s for #%s failed: %s", target, number, e)
                action = "adding" if adding else "removing"
                report.failures.append(PushFailure(number, f"{action} blocks #{target}: {e}"))
                unsent.append(target)
                continue
            self._record_blocked_by(target, number, adding)
        return unsent_add, unsent_remove

    def _record_blocked_by(self, target: str, blocker: str, adding: bool) -> None:
        """Mirror an edge sent on target's behalf into its local file and snapshot."""

        def edited(issue: Issue) -> Issue | None:
            refs = list(issue.blocked_by)
            if adding and blocker not in refs:
                refs.append(blocker)
            elif not adding and blocker in refs:
                refs.remove(blocker)
            else:
                return None
            return issue.model_copy(update={"blocked_by": refs})

        original = self.store.read_original(target)
        if original is None:
            return
        updated = edited(original)
        if updated is not None:
            self.store.write_original(updated)
        item = self._items.get(target)
        if item is not None:
            updated = edited(item.issue)
            if updated is not None:
                self._items[target] = self.store.write(updated, current_path=item.path)

    def _post_remaining_comments(
        self,
        wanted: set[str] | None,
        comments: Dict[str, PendingComment],
        report: PushReport,
    ) -> None:
        for number in sorted(comments):
            if wanted is not None and number not in wanted:
                continue
            if is_local_id(number):
                continue
            if number not in self._items:
                report.warnings.append(f"comment {comments[number].path.name} has no matching issue, not posted")
                continue
            if any(f.number == number for f in report.failures):
                continue
            self._post_comment(number, comments[number], report)

    def _post_comment(self, number: str, comment: PendingComment, report: PushReport) -> None:
        """Post, then delete the side-file. On failure keep it under the real number."""
        self._check_cancel()
        try:
            self.adapter.create_comment(number, comment.body)
        except TrackerError as e:
            LOG.warning("Posting comment on #%s failed: %s", number, e)
            report.failures.append(PushFailure(number, f"comment not posted: {e}"))
            if comment.number != number:
                rekey_pending_comment(comment, number)
            return
        delete_pending_comment(comment)
        report.commented.append(number)

    def _ensure_labels(self, labels: List[str], report: PushReport) -> None:
        """Create labels missing from the (populated) label cache."""
        if not labels:
            return
        path = self.store.paths.labels_path
        cache = load_cache(path, LabelCache)
        if cache.synced_at is None:
            return
        known = cache.color_map()
        created = False
        for name in labels:
            if name.lower() in known:
                continue
            color = random_label_color(self.rng)
            self._check_cancel()
            try:
                self.adapter.create_label(name, color)
            except NotImplementedError:
                return
            except TrackerError as e:
                report.warnings.append(f"creating label {name!r}: {e}")
                continue
            LOG.info("Created label %r (#%s)", name, color)
            cache.entries.append(Label(name=name, color=color))
            known[name.lower()] = color
            created = True
        if created:
            cache.entries.sort(key=lambda lb: lb.name.lower())
            save_cache(path, cache)
