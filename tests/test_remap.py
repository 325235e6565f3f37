"""Tests for rewriting temporary id references."""

from issuesync.models import Issue
from issuesync.services.remap import apply_mapping, find_dangling_refs, find_local_refs


def test_apply_mapping_rewrites_text_and_edges() -> None:
    issue = Issue(
        number="5",
        title="Follow-up to #Tab1",
        body="Blocks #Tab1 and #Tcd2.\nSee also #Tzz9 and #12.",
        parent="Tab1",
        blocked_by=["Tcd2", "12"],
        blocks=["Tab1"],
    )
    changed = apply_mapping(issue, {"Tab1": "201", "Tcd2": "202"})
    assert changed is True
    assert issue.title == "Follow-up to #201"
    assert issue.body == "Blocks #201 and #202.\nSee also #Tzz9 and #12."
    assert issue.parent == "201"
    assert issue.blocked_by == ["202", "12"]
    assert issue.blocks == ["201"]


def test_apply_mapping_is_idempotent() -> None:
    issue = Issue(number="5", body="see #Tab1", parent="Tab1")
    mapping = {"Tab1": "201"}
    assert apply_mapping(issue, mapping) is True
    snapshot = issue.model_copy(deep=True)
    assert apply_mapping(issue, mapping) is False
    assert issue == snapshot


def test_apply_mapping_no_match() -> None:
    issue = Issue(number="5", body="nothing to do #3", blocked_by=["3"])
    assert apply_mapping(issue, {"Tab1": "201"}) is False
    assert apply_mapping(issue, {}) is False


def test_find_local_refs_order_and_dedup() -> None:
    issue = Issue(number="5", title="#Tb2", body="#Ta1 #Tb2", parent="Tc3", blocked_by=["Ta1", "7"])
    assert find_local_refs(issue) == ["Tb2", "Ta1", "Tc3"]


def test_find_dangling_refs() -> None:
    issues = [
        Issue(number="Ta1", body="needs #Tb2"),
        Issue(number="10", body="see #Ta1 and #Tgone", blocked_by=["Tlost"]),
    ]
    assert find_dangling_refs(issues) == [("Ta1", "Tb2"), ("10", "Tgone"), ("10", "Tlost")]
