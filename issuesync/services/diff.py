"""Line diff (LCS) for display and set difference for labels, assignees, projects.

compute_diff returns an optimal edit script: replaying EQUAL+DELETE ops
gives the old lines, EQUAL+INSERT ops gives the new lines. On ties the
backtrack prefers the insertion, so deletions come before insertions in
the forward script.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Sequence, Tuple


class DiffOpType(str, Enum):
    EQUAL = "equal"
    DELETE = "delete"
    INSERT = "insert"


@dataclass(frozen=True)
class DiffOp:
    type: DiffOpType
    text: str


def split_lines(text: str) -> List[str]:
    """Split into lines; a trailing newline is insignificant."""
    if not text:
        return []
    if text.endswith("\n"):
        text = text[:-1]
    return text.split("\n")


def compute_diff(old_lines: Sequence[str], new_lines: Sequence[str]) -> List[DiffOp]:
    """Line diff via dynamic-programming LCS, O(m*n) time and space."""
    m, n = len(old_lines), len(new_lines)
    lcs = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        for j in range(1, n + 1):
            if old_lines[i - 1] == new_lines[j - 1]:
                lcs[i][j] = lcs[i - 1][j - 1] + 1
            elif lcs[i - 1][j] >= lcs[i][j - 1]:
                lcs[i][j] = lcs[i - 1][j]
            else:
                lcs[i][j] = lcs[i][j - 1]

    ops: List[DiffOp] = []
    i, j = m, n
    while i > 0 or j > 0:
        if i > 0 and j > 0 and old_lines[i - 1] == new_lines[j - 1]:
            ops.append(DiffOp(DiffOpType.EQUAL, old_lines[i - 1]))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or lcs[i][j - 1] >= lcs[i - 1][j]):
            ops.append(DiffOp(DiffOpType.INSERT, new_lines[j - 1]))
            j -= 1
        else:
            ops.append(DiffOp(DiffOpType.DELETE, old_lines[i - 1]))
            i -= 1
    ops.reverse()
    return ops


def diff_text(old_text: str, new_text: str) -> List[DiffOp]:
    return compute_diff(split_lines(old_text), split_lines(new_text))


def diff_stats(ops: Iterable[DiffOp]) -> Tuple[int, int]:
    """(inserted, deleted) line counts."""
    added = removed = 0
    for op in ops:
        if op.type is DiffOpType.INSERT:
            added += 1
        elif op.type is DiffOpType.DELETE:
            removed += 1
    return added, removed


def unified_lines(old_text: str, new_text: str, old_label: str, new_label: str) -> List[str]:
    """Full-context unified rendering: ' ' equal, '-' deleted, '+' inserted."""
    lines = [f"--- {old_label}", f"+++ {new_label}"]
    prefix = {DiffOpType.EQUAL: " ", DiffOpType.DELETE: "-", DiffOpType.INSERT: "+"}
    for op in diff_text(old_text, new_text):
        lines.append(f"{prefix[op.type]}{op.text}")
    return lines


def diff_string_set(old: Iterable[str], new: Iterable[str]) -> Tuple[List[str], List[str]]:
    """(added, removed): new - old and old - new, each sorted, no duplicates."""
    old_set, new_set = set(old), set(new)
    return sorted(new_set - old_set), sorted(old_set - new_set)
