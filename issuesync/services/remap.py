"""Rewrite references to retired temporary ids across the local issue graph.

A temporary id (T followed by alphanumerics) is replaced by the canonical
number the tracker assigned once the issue is created remotely. Inline
``#T...`` tokens in title and body are rewritten, as are parent,
blocked_by and blocks. Remapping is idempotent.
"""

import re
from typing import Dict, List, Mapping, Tuple

from issuesync.models import Issue
from issuesync.utils import is_local_id

LOCAL_REF_RE = re.compile(r"#(T[a-zA-Z0-9]+)")


def _remap_text(text: str, mapping: Mapping[str, str]) -> str:
    def repl(match: re.Match) -> str:
        real = mapping.get(match.group(1))
        return f"#{real}" if real is not None else match.group(0)

    return LOCAL_REF_RE.sub(repl, text)


def _remap_refs(refs: List[str], mapping: Mapping[str, str]) -> List[str]:
    return [mapping.get(ref, ref) for ref in refs]


def apply_mapping(issue: Issue, mapping: Mapping[str, str]) -> bool:
    """Apply mapping (temporary id -> number) to issue in place.

    Returns True when anything changed. Unmapped references are left as-is.
    """
    if not mapping:
        return False
    changed = False

    body = _remap_text(issue.body, mapping)
    if body != issue.body:
        issue.body = body
        changed = True

    title = _remap_text(issue.title, mapping)
    if title != issue.title:
        issue.title = title
        changed = True

    if issue.parent is not None and issue.parent in mapping:
        issue.parent = mapping[issue.parent]
        changed = True

    for name in ("blocked_by", "blocks"):
        refs = getattr(issue, name)
        updated = _remap_refs(refs, mapping)
        if updated != refs:
            setattr(issue, name, updated)
            changed = True

    return changed


def find_local_refs(issue: Issue) -> List[str]:
    """Temporary ids referenced by issue (inline or structured), in first-seen order."""
    found: Dict[str, None] = {}
    for text in (issue.title, issue.body):
        for match in LOCAL_REF_RE.finditer(text):
            found.setdefault(match.group(1), None)
    refs = ([issue.parent] if issue.parent else []) + issue.blocked_by + issue.blocks
    for ref in refs:
        if is_local_id(ref):
            found.setdefault(ref, None)
    return list(found)


def find_dangling_refs(issues: List[Issue]) -> List[Tuple[str, str]]:
    """(issue number, temporary id) for references to temporary ids no local issue has."""
    known = {issue.number for issue in issues}
    dangling = []
    for issue in issues:
        for ref in find_local_refs(issue):
            if ref not in known:
                dangling.append((issue.number, ref))
    return dangling
