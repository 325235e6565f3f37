"""Pull: bring remote changes into the local store.

Per invocation: load local -> fetch remote -> reconcile each issue ->
refresh caches and last_full_pull (full pull only) -> restore issues whose
local file was deleted (full pull only).

On a full incremental pull two fetches run concurrently: the list query for
open issues and a batch fetch of every synced local issue, so remote
closures are seen without listing closed issues. Both are joined before
any issue is reconciled. Conflicts never stop the pull; they are reported
after every other issue has been processed.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List

from pydantic import BaseModel

from issuesync.adapters.base import IssueTrackerAdapter, TrackerError
from issuesync.config import AppConfig, save_config
from issuesync.errors import SyncCancelled
from issuesync.models import Issue
from issuesync.services.changes import change_lines
from issuesync.services.conflict import Verdict, classify
from issuesync.services.lock import SyncLock
from issuesync.services.report import ConflictEntry, IssueEntry, PullReport
from issuesync.services.store import IssueStore, LabelCache, load_cache, save_cache
from issuesync.services.store.caches import (
    issue_type_cache,
    label_cache_from_colors,
    milestone_cache,
    project_cache,
)
from issuesync.utils import is_local_id

LOG = logging.getLogger("issuesync.services.pull")


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class PullOptions:
    refs: List[str] = field(default_factory=list)
    all: bool = False
    label: str | None = None
    force: bool = False

    @property
    def full(self) -> bool:
        """Unfiltered pull: caches, last_full_pull and orphan restoration apply."""
        return not self.refs and not self.label


@dataclass
class _Fetched:
    issues: List[Issue]
    label_colors: Dict[str, str]


class PullReconciler:
    """Reconciles remote issues into the local store under the sync lock."""

    def __init__(
        self,
        store: IssueStore,
        adapter: IssueTrackerAdapter,
        config: AppConfig,
        now: Callable[[], datetime] = _utcnow,
        cancel: threading.Event | None = None,
    ) -> None:
        self.store = store
        self.adapter = adapter
        self.config = config
        self.now = now
        self.cancel = cancel or threading.Event()

    def _check_cancel(self) -> None:
        if self.cancel.is_set():
            raise SyncCancelled("pull cancelled")

    def run(self, options: PullOptions | None = None) -> PullReport:
        options = options or PullOptions()
        with SyncLock(self.store.paths.lock_path, timeout=self.config.sync.lock_timeout):
            return self._pull(options)

    def _pull(self, options: PullOptions) -> PullReport:
        report = PullReport()
        loaded = self.store.list()
        report.parse_errors.extend(str(e) for e in loaded.errors)

        if options.refs:
            fetched = self._fetch_refs(options.refs, report)
        else:
            fetched = self._fetch_all(options, loaded.by_number().keys(), report)

        now = self.now()
        self._reconcile(fetched, options.force, now, report)

        if options.full:
            self._refresh_side_effects(fetched.label_colors, now, report)
            self._restore_orphans(now, report)

        LOG.info(
            "Pull done: %d added, %d updated, %d restored, %d unchanged, %d conflicts",
            len(report.added),
            len(report.updated),
            len(report.restored),
            report.unchanged,
            len(report.conflicts),
        )
        return report

    def _cached_label_colors(self) -> Dict[str, str]:
        return load_cache(self.store.paths.labels_path, LabelCache).color_map()

    def _fetch_refs(self, refs: List[str], report: PullReport) -> _Fetched:
        """Fetch exactly the referenced issues (with their relationships)."""
        colors = self._cached_label_colors()
        try:
            self._check_cancel()
            colors.update({lb.name.lower(): lb.color for lb in self.adapter.list_labels()})
        except TrackerError as e:
            LOG.warning("Fetching labels failed: %s", e)
            report.warnings.append(f"fetching labels: {e}")

        issues: List[Issue] = []
        for ref in refs:
            number = ref.strip().lstrip("#")
            if not number:
                continue
            if not number.isdigit():
                number = self.store.find(ref).issue.number
            if is_local_id(number):
                report.warnings.append(f"#{number} was never pushed; nothing to pull")
                continue
            self._check_cancel()
            issues.append(self.adapter.get_issue(number))
        return _Fetched(issues=issues, label_colors=colors)

    def _fetch_all(self, options: PullOptions, local_numbers: Iterable[str], report: PullReport) -> _Fetched:
        """List query and batch fetch, run concurrently and joined before returning."""
        state = "all" if options.all else "open"
        to_fetch: List[str] = []
        if not options.all:
            to_fetch = sorted(n for n in local_numbers if not is_local_id(n))

        self._check_cancel()
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="issuesync-fetch") as executor:
            list_future = executor.submit(self.adapter.list_issues, state, options.label)
            batch_future = executor.submit(self.adapter.get_issues_batch, to_fetch) if to_fetch else None
            wait([f for f in (list_future, batch_future) if f is not None])

        # A failed list query is fatal; nothing has been written yet.
        listed = list_future.result()
        self._check_cancel()

        issues = list(listed.issues)
        if batch_future is not None:
            try:
                batch = batch_future.result()
            except TrackerError as e:
                LOG.warning("Batch fetch of local issues failed: %s", e)
                report.warnings.append(f"fetching local issues by number: {e}")
                batch = {}
            seen = {issue.number for issue in issues}
            for number in sorted(batch, key=lambda n: (len(n), n)):
                if number not in seen:
                    issues.append(batch[number])

        colors = self._cached_label_colors()
        colors.update(listed.label_colors)
        return _Fetched(issues=issues, label_colors=colors)

    def _reconcile(self, fetched: _Fetched, force: bool, now: datetime, report: PullReport) -> None:
        loaded = self.store.list()
        by_number = loaded.by_number()
        unreadable = loaded.unreadable_numbers()

        for remote in fetched.issues:
            remote = remote.model_copy(update={"synced_at": now})
            number = remote.number
            if number in unreadable:
                report.warnings.append(f"#{number} skipped: local file cannot be parsed")
                continue

            local = by_number.get(number)
            original = self.store.read_original(number)
            result = classify(original, local.issue if local else None, remote, force=force)

            if result.verdict is Verdict.CONFLICT:
                LOG.warning("Conflict on #%s (%s), skipped", number, result.conflict.value)
                report.conflicts.append(ConflictEntry(number=number, kind=result.conflict))
                continue
            if result.verdict is Verdict.LOCAL_UPDATE:
                report.local_only.append(number)
                continue

            new_path = self.store.location_for(remote)
            path_changed = local is not None and local.path != new_path
            if result.verdict is Verdict.UNCHANGED and not path_changed:
                report.unchanged += 1
                continue

            self._check_cancel()
            self.store.write(remote, current_path=local.path if local else None)
            self.store.write_original(remote)

            if result.verdict is Verdict.ADDED:
                report.added.append(IssueEntry(number, remote.title))
                continue
            if result.verdict is Verdict.RESTORED:
                report.restored.append(IssueEntry(number, remote.title))
                continue
            lines = change_lines(local.issue, remote, fetched.label_colors)
            if not lines and path_changed:
                lines.append(f'file: "{self.store.relative(local.path)}" -> "{self.store.relative(new_path)}"')
            if result.forced:
                lines.append(f"local changes discarded ({result.conflict.value} conflict, forced)")
            report.updated.append(IssueEntry(number, remote.title, lines))

    def _refresh_side_effects(self, label_colors: Dict[str, str], now: datetime, report: PullReport) -> None:
        """Advance last_full_pull and refresh caches; cache failures are warnings."""
        paths = self.store.paths
        self.config.sync.last_full_pull = now
        save_config(paths.config_path, self.config)

        if label_colors:
            self._save_cache("labels", paths.labels_path, label_cache_from_colors(label_colors, now), report)

        try:
            self._check_cancel()
            milestones = self.adapter.list_milestones()
        except TrackerError as e:
            LOG.warning("Fetching milestones failed: %s", e)
            report.warnings.append(f"fetching milestones: {e}")
        else:
            self._save_cache("milestones", paths.milestones_path, milestone_cache(milestones, now), report)

        try:
            self._check_cancel()
            issue_types = self.adapter.list_issue_types()
        except TrackerError as e:
            LOG.warning("Fetching issue types failed: %s", e)
            report.warnings.append(f"fetching issue types: {e}")
        else:
            if issue_types:
                self._save_cache("issue types", paths.issue_types_path, issue_type_cache(issue_types, now), report)

        try:
            self._check_cancel()
            projects = self.adapter.list_projects()
        except TrackerError as e:
            # project scope is optional on most tokens
            LOG.debug("Fetching projects failed: %s", e)
        else:
            if projects:
                self._save_cache("projects", paths.projects_path, project_cache(projects, now), report)

    def _save_cache(self, name: str, path: Path, cache: BaseModel, report: PullReport) -> None:
        try:
            save_cache(path, cache)
        except OSError as e:
            LOG.warning("Saving %s cache failed: %s", name, e)
            report.warnings.append(f"saving {name} cache: {e}")

    def _restore_orphans(self, now: datetime, report: PullReport) -> None:
        """Re-fetch issues that have an original but no local file."""
        loaded = self.store.list()
        present = set(loaded.by_number()) | loaded.unreadable_numbers()
        orphaned = [n for n in self.store.original_numbers() if not is_local_id(n) and n not in present]
        for number in orphaned:
            self._check_cancel()
            try:
                remote = self.adapter.get_issue(number)
            except TrackerError as e:
                LOG.warning("Restoring #%s failed: %s", number, e)
                report.warnings.append(f"restoring #{number}: {e}")
                continue
            remote = remote.model_copy(update={"synced_at": now})
            self.store.write(remote)
            self.store.write_original(remote)
            LOG.info("Restored #%s", number)
            report.restored.append(IssueEntry(number, remote.title))
