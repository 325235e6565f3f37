"""issuesync entry point.

Commands: init | new | pull | push | status | diff. Usage:
issuesync [--root DIR] <command> [args].

Exit status: 0 on success, 1 on errors (not initialized, lock timeout,
fetch failure, cancellation), 2 when a pull left conflicts or a push had
per-issue failures.
"""

import argparse
import logging
import random
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, List, TypeVar

from issuesync.adapters.base import IssueTrackerAdapter, TrackerError
from issuesync.adapters.github import GitHubAdapter
from issuesync.config import AppConfig, LoggingConfig, load_config, save_config
from issuesync.errors import SyncError
from issuesync.logging import IssueSyncLogging
from issuesync.models import Issue
from issuesync.paths import DEFAULT_ROOT, Paths
from issuesync.services.changes import change_lines
from issuesync.services.diff import unified_lines
from issuesync.services.pull import PullOptions, PullReconciler
from issuesync.services.push import PushOptions, PushReconciler, plan_push
from issuesync.services.store import IssueStore
from issuesync.utils import generate_local_id

LOG = logging.getLogger("issuesync.main")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INCOMPLETE = 2

T = TypeVar("T")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    argv = argv if argv is not None else sys.argv[1:]
    parser = argparse.ArgumentParser(
        prog="issuesync",
        description="Mirror repository issues as Markdown files and sync them both ways",
    )
    parser.add_argument(
        "--root",
        "-r",
        type=Path,
        default=Path(DEFAULT_ROOT),
        help="Store root directory",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at DEBUG level")
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init", help="Create the store and remember the repository")
    p_init.add_argument("repository", help="owner/repo")

    p_new = sub.add_parser("new", help="Create a local issue with a temporary id")
    p_new.add_argument("--title", "-t", required=True)
    p_new.add_argument("--body", "-b", default="")
    p_new.add_argument("--label", "-l", action="append", default=[], dest="labels")
    p_new.add_argument("--assignee", "-a", action="append", default=[], dest="assignees")

    p_pull = sub.add_parser("pull", help="Fetch remote changes into the store")
    p_pull.add_argument("refs", nargs="*", help="Issue numbers or file paths")
    p_pull.add_argument("--all", action="store_true", help="Also list closed issues")
    p_pull.add_argument("--label", help="Only issues with this label")
    p_pull.add_argument("--force", "-f", action="store_true", help="Discard conflicting local edits")

    p_push = sub.add_parser("push", help="Send local edits, new issues and comments")
    p_push.add_argument("refs", nargs="*", help="Issue numbers or file paths")

    sub.add_parser("status", help="Show what a push would send")

    p_diff = sub.add_parser("diff", help="Show local edits against the last synced state")
    p_diff.add_argument("refs", nargs="*", help="Issue numbers or file paths")

    return parser.parse_args(argv)


def build_adapter(config: AppConfig) -> IssueTrackerAdapter:
    """GitHub adapter for the configured repository."""
    repo = config.require_repository()
    token = config.github_token_resolved()
    if not token:
        raise SyncError("GitHub token not set: export GITHUB_TOKEN or GITHUB_TOKEN_FILE")
    return GitHubAdapter(token=token, repo=repo, api_url=config.github.api_url, timeout=config.github.timeout)


def _run_cancellable(fn: Callable[[], T], cancel: threading.Event) -> T:
    """Run fn in a worker thread; Ctrl-C sets cancel and waits for fn to stop."""
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="issuesync-sync") as executor:
        future = executor.submit(fn)
        try:
            wait([future])
        except KeyboardInterrupt:
            LOG.warning("Interrupted, stopping after the current step")
            cancel.set()
        return future.result()


def _print(lines: List[str]) -> None:
    for line in lines:
        print(line)


def cmd_init(args: argparse.Namespace, paths: Paths) -> int:
    owner, _, repo = args.repository.partition("/")
    if not owner or not repo or "/" in repo:
        raise SyncError(f"invalid repository {args.repository!r}: expected owner/repo")
    config = load_config(paths.config_path) if paths.config_path.is_file() else AppConfig()
    config.repository.owner = owner
    config.repository.repo = repo
    paths.ensure()
    save_config(paths.config_path, config)
    print(f"Initialized {paths.root} for {owner}/{repo}")
    return EXIT_OK


def cmd_new(args: argparse.Namespace, paths: Paths, rng: random.Random | None = None) -> int:
    load_config(paths.config_path)
    store = IssueStore(paths)
    existing = [item.issue.number for item in store.list().issues] + store.original_numbers()
    number = generate_local_id(rng or random.Random(), existing)
    issue = Issue(
        number=number,
        title=args.title,
        body=args.body,
        labels=args.labels,
        assignees=args.assignees,
    )
    item = store.write(issue)
    print(f"Created {store.relative(item.path)}")
    return EXIT_OK


def cmd_pull(args: argparse.Namespace, paths: Paths, config: AppConfig) -> int:
    cancel = threading.Event()
    reconciler = PullReconciler(IssueStore(paths), build_adapter(config), config, cancel=cancel)
    options = PullOptions(refs=args.refs, all=args.all, label=args.label, force=args.force)
    report = _run_cancellable(lambda: reconciler.run(options), cancel)
    _print(report.lines())
    return EXIT_INCOMPLETE if report.has_conflicts else EXIT_OK


def cmd_push(args: argparse.Namespace, paths: Paths, config: AppConfig) -> int:
    cancel = threading.Event()
    reconciler = PushReconciler(IssueStore(paths), build_adapter(config), config, cancel=cancel)
    report = _run_cancellable(lambda: reconciler.run(PushOptions(refs=args.refs)), cancel)
    _print(report.lines())
    return EXIT_INCOMPLETE if report.has_failures else EXIT_OK


def cmd_status(args: argparse.Namespace, paths: Paths) -> int:
    load_config(paths.config_path)
    store = IssueStore(paths)
    loaded = store.list()
    lines = []
    for candidate in plan_push(store, loaded.issues):
        item = candidate.item
        rel = store.relative(item.path)
        if candidate.needs_create:
            lines.append(f"A {rel} (new)")
        elif not candidate.has_original:
            lines.append(f"? {rel} (never synced)")
        elif not candidate.change.is_empty():
            lines.append(f"M {rel}")
        if candidate.comment is not None:
            lines.append(f"C {store.relative(candidate.comment.path)} (pending comment)")
    lines.extend(f"Parse error: {e}" for e in loaded.errors)
    if not lines:
        lines.append("Nothing to push")
    _print(lines)
    return EXIT_OK


def cmd_diff(args: argparse.Namespace, paths: Paths) -> int:
    load_config(paths.config_path)
    store = IssueStore(paths)
    items = [store.find(ref) for ref in args.refs] if args.refs else store.list().issues
    lines: List[str] = []
    for item in sorted(items, key=lambda i: str(i.path)):
        original = store.read_original(item.issue.number)
        if original is None:
            continue
        fields = [line for line in change_lines(original, item.issue) if not line.startswith("body:")]
        body_changed = original.body != item.issue.body
        if not fields and not body_changed:
            continue
        rel = store.relative(item.path)
        lines.append(f"#{item.issue.number} {rel}")
        lines.extend(f"    {line}" for line in fields)
        if body_changed:
            lines.extend(unified_lines(original.body, item.issue.body, f"a/{rel}", f"b/{rel}"))
    _print(lines)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Entry point: dispatch to a command."""
    args = parse_args(argv)
    paths = Paths.for_root(args.root)

    IssueSyncLogging(LoggingConfig(), verbose=args.verbose).setup()

    try:
        config = load_config(paths.config_path) if paths.config_path.is_file() else None
        if config is not None:
            IssueSyncLogging(config.logging, verbose=args.verbose).setup()
        if args.command == "init":
            return cmd_init(args, paths)
        if args.command == "new":
            return cmd_new(args, paths)
        if args.command == "status":
            return cmd_status(args, paths)
        if args.command == "diff":
            return cmd_diff(args, paths)
        if config is None:
            config = load_config(paths.config_path)
        if args.command == "pull":
            return cmd_pull(args, paths, config)
        return cmd_push(args, paths, config)
    except (SyncError, TrackerError) as e:
        LOG.error("%s", e)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
