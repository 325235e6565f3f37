"""Tests for pending comment side-files."""

from issuesync.models import IssueState
from issuesync.paths import Paths
from issuesync.services.store import (
    delete_pending_comment,
    find_pending_comment,
    find_pending_comment_for_issue,
    load_all_pending_comments,
    rekey_pending_comment,
    write_pending_comment,
)


def test_exact_name_preferred(paths: Paths) -> None:
    (paths.open_dir / "5-zzz.comment.md").write_text("slug", encoding="utf-8")
    write_pending_comment(paths.open_dir, "5", "exact")
    comment = find_pending_comment(paths.open_dir, "5")
    assert comment is not None
    assert comment.body == "exact"
    assert comment.path.name == "5.comment.md"


def test_first_slugged_match_in_lexicographic_order(paths: Paths) -> None:
    (paths.open_dir / "5-b.comment.md").write_text("second", encoding="utf-8")
    (paths.open_dir / "5-a.comment.md").write_text("first", encoding="utf-8")
    comment = find_pending_comment(paths.open_dir, "5")
    assert comment is not None
    assert comment.body == "first"


def test_prefix_does_not_match_other_numbers(paths: Paths) -> None:
    write_pending_comment(paths.open_dir, "50", "other issue")
    assert find_pending_comment(paths.open_dir, "5") is None


def test_empty_comment_ignored(paths: Paths) -> None:
    (paths.open_dir / "5.comment.md").write_text("  \n\n", encoding="utf-8")
    assert find_pending_comment(paths.open_dir, "5") is None
    assert load_all_pending_comments(paths) == {}


def test_lookup_checks_state_directory_first(paths: Paths) -> None:
    write_pending_comment(paths.closed_dir, "8", "closed side")
    write_pending_comment(paths.open_dir, "8", "open side")
    assert find_pending_comment_for_issue(paths, "8", IssueState.CLOSED).body == "closed side"
    assert find_pending_comment_for_issue(paths, "8", IssueState.OPEN).body == "open side"
    (paths.open_dir / "8.comment.md").unlink()
    assert find_pending_comment_for_issue(paths, "8", IssueState.OPEN).body == "closed side"


def test_load_all_and_delete(paths: Paths) -> None:
    write_pending_comment(paths.open_dir, "3", "hello")
    write_pending_comment(paths.closed_dir, "Tab12", "for a new issue")
    comments = load_all_pending_comments(paths)
    assert sorted(comments) == ["3", "Tab12"]
    delete_pending_comment(comments["3"])
    assert sorted(load_all_pending_comments(paths)) == ["Tab12"]


def test_rekey_moves_to_real_number(paths: Paths) -> None:
    write_pending_comment(paths.open_dir, "Tab12", "queued")
    comment = load_all_pending_comments(paths)["Tab12"]
    moved = rekey_pending_comment(comment, "201")
    assert moved.number == "201"
    assert moved.path == paths.open_dir / "201.comment.md"
    assert not comment.path.exists()
    assert load_all_pending_comments(paths)["201"].body == "queued"
