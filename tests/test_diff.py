"""Tests for the LCS line diff and string set difference."""

from issuesync.services.diff import (
    DiffOp,
    DiffOpType,
    compute_diff,
    diff_stats,
    diff_string_set,
    diff_text,
    split_lines,
    unified_lines,
)

EQ, DEL, INS = DiffOpType.EQUAL, DiffOpType.DELETE, DiffOpType.INSERT


def _replay(ops, keep):
    return [op.text for op in ops if op.type in (EQ, keep)]


def test_split_lines() -> None:
    assert split_lines("") == []
    assert split_lines("a\nb\n") == ["a", "b"]
    assert split_lines("a\n\nb") == ["a", "", "b"]


def test_identical_text_is_all_equal() -> None:
    ops = diff_text("a\nb", "a\nb")
    assert [op.type for op in ops] == [EQ, EQ]


def test_replaced_line_deletes_before_inserting() -> None:
    assert diff_text("a\nb\nc", "a\nx\nc") == [
        DiffOp(EQ, "a"),
        DiffOp(DEL, "b"),
        DiffOp(INS, "x"),
        DiffOp(EQ, "c"),
    ]


def test_replay_reconstructs_both_sides() -> None:
    old = ["the", "quick", "brown", "fox", "jumps"]
    new = ["a", "quick", "fox", "jumps", "high", "the"]
    ops = compute_diff(old, new)
    assert _replay(ops, DEL) == old
    assert _replay(ops, INS) == new
    # lcs is quick, fox, jumps
    assert sum(op.type is EQ for op in ops) == 3


def test_empty_sides() -> None:
    assert [op.type for op in diff_text("", "a\nb")] == [INS, INS]
    assert [op.type for op in diff_text("a", "")] == [DEL]
    assert diff_text("", "") == []


def test_diff_stats() -> None:
    assert diff_stats(diff_text("a\nb\nc", "a\nx\ny\nc")) == (2, 1)


def test_unified_lines() -> None:
    assert unified_lines("a\nb", "a\nc", "a/x.md", "b/x.md") == [
        "--- a/x.md",
        "+++ b/x.md",
        " a",
        "-b",
        "+c",
    ]


def test_diff_string_set() -> None:
    assert diff_string_set(["bug", "ui"], ["ui", "docs", "api", "docs"]) == (["api", "docs"], ["bug"])
    assert diff_string_set([], []) == ([], [])
