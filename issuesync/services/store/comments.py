"""Pending comment side-files: <number>.comment.md or <number>-<slug>.comment.md.

The exact <number>.comment.md name is preferred; otherwise the first
<number>-*.comment.md in lexicographic order. Empty bodies mean no comment.
"""

import logging
import re
from pathlib import Path
from typing import Dict

from issuesync.models import IssueState
from issuesync.paths import Paths
from issuesync.services.store.schemas import PendingComment

LOG = logging.getLogger("issuesync.services.store.comments")

COMMENT_SUFFIX = ".comment.md"

_COMMENT_FILE_RE = re.compile(r"^(\d+|T[a-zA-Z0-9]+)(?:-[^.]+)?\.comment\.md$")


def _read_comment(path: Path, number: str) -> PendingComment | None:
    try:
        body = path.read_text(encoding="utf-8").strip()
    except OSError as e:
        LOG.warning("Cannot read comment file %s: %s", path, e)
        return None
    if not body:
        return None
    return PendingComment(number=number, body=body, path=path)


def find_pending_comment(directory: Path, number: str) -> PendingComment | None:
    """Pending comment for number in one directory, or None."""
    preferred = directory / f"{number}{COMMENT_SUFFIX}"
    if preferred.is_file():
        return _read_comment(preferred, number)
    matches = sorted(directory.glob(f"{number}-*{COMMENT_SUFFIX}"))
    if not matches:
        return None
    return _read_comment(matches[0], number)


def find_pending_comment_for_issue(paths: Paths, number: str, state: IssueState) -> PendingComment | None:
    """Look in the directory of the issue's state first, then the other one."""
    first = paths.dir_for_state(state)
    other = paths.closed_dir if first == paths.open_dir else paths.open_dir
    for directory in (first, other):
        if not directory.is_dir():
            continue
        comment = find_pending_comment(directory, number)
        if comment is not None:
            return comment
    return None


def load_all_pending_comments(paths: Paths) -> Dict[str, PendingComment]:
    """Every non-empty pending comment in open/ and closed/, keyed by number."""
    numbers: set[str] = set()
    for _, directory in paths.state_dirs():
        if not directory.is_dir():
            continue
        for path in directory.iterdir():
            m = _COMMENT_FILE_RE.match(path.name)
            if m and path.is_file():
                numbers.add(m.group(1))
    comments: Dict[str, PendingComment] = {}
    for number in sorted(numbers):
        for _, directory in paths.state_dirs():
            if not directory.is_dir():
                continue
            comment = find_pending_comment(directory, number)
            if comment is not None:
                comments[number] = comment
                break
    return comments


def delete_pending_comment(comment: PendingComment) -> None:
    comment.path.unlink(missing_ok=True)
    LOG.debug("Deleted pending comment %s", comment.path.name)


def rekey_pending_comment(comment: PendingComment, number: str) -> PendingComment:
    """Move a comment file to <number>.comment.md (after a temporary id is retired)."""
    target = comment.path.with_name(f"{number}{COMMENT_SUFFIX}")
    comment.path.rename(target)
    return PendingComment(number=number, body=comment.body, path=target)


def write_pending_comment(directory: Path, number: str, body: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{number}{COMMENT_SUFFIX}"
    path.write_text(body.strip() + "\n", encoding="utf-8")
    return path
