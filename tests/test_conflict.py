"""Tests for three-way classification."""

from datetime import UTC, datetime

import pytest

from issuesync.models import Issue
from issuesync.services.conflict import ConflictKind, Verdict, classify

A = Issue(number="1", title="Bug", body="A")
LOCAL_EDIT = Issue(number="1", title="Bug", body="A-edited")
REMOTE_EDIT = Issue(number="1", title="Bug", body="A-remote")


@pytest.mark.parametrize(
    "original, local, remote, verdict",
    [
        (None, None, A, Verdict.ADDED),
        (A, None, A, Verdict.RESTORED),
        (A, A, A, Verdict.UNCHANGED),
        (A, A, REMOTE_EDIT, Verdict.REMOTE_UPDATE),
        (A, LOCAL_EDIT, A, Verdict.LOCAL_UPDATE),
        (A, LOCAL_EDIT, REMOTE_EDIT, Verdict.CONFLICT),
    ],
)
def test_rules(original, local, remote, verdict) -> None:
    assert classify(original, local, remote).verdict is verdict


def test_diverged_conflict_kind() -> None:
    result = classify(A, LOCAL_EDIT, REMOTE_EDIT)
    assert result.conflict is ConflictKind.DIVERGED
    assert not result.overwrites_local


def test_same_edit_on_both_sides_is_still_a_conflict() -> None:
    assert classify(A, LOCAL_EDIT, LOCAL_EDIT).verdict is Verdict.CONFLICT


def test_local_without_original_is_unbaselined() -> None:
    result = classify(None, A, REMOTE_EDIT)
    assert result.verdict is Verdict.CONFLICT
    assert result.conflict is ConflictKind.UNBASELINED


def test_force_turns_conflicts_into_remote_updates() -> None:
    for result, kind in (
        (classify(A, LOCAL_EDIT, REMOTE_EDIT, force=True), ConflictKind.DIVERGED),
        (classify(None, A, REMOTE_EDIT, force=True), ConflictKind.UNBASELINED),
    ):
        assert result.verdict is Verdict.REMOTE_UPDATE
        assert result.forced
        assert result.conflict is kind
        assert result.overwrites_local


def test_synced_at_never_matters() -> None:
    stamped = A.model_copy(update={"synced_at": datetime(2024, 1, 1, tzinfo=UTC)})
    assert classify(A, stamped, A.model_copy(update={"synced_at": datetime(2025, 1, 1, tzinfo=UTC)})).verdict is Verdict.UNCHANGED
