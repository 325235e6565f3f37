"""Issue file format: a YAML header block followed by the free-text body.

    ---
    number: 42
    title: Fix the thing
    labels: [bug]
    state: open
    ---

    Body text, may reference #17 or #Tab12cd.

Empty fields are omitted from the header. The lifecycle directory of a
local file overrides its ``state`` header; originals rely on the header.
"""

from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import ValidationError

from issuesync.errors import IssueParseError
from issuesync.models import Issue
from issuesync.utils import is_local_id, slugify

DELIMITER = "---"

# header key -> Issue field
_FIELDS = [
    ("number", "number"),
    ("title", "title"),
    ("labels", "labels"),
    ("assignees", "assignees"),
    ("milestone", "milestone"),
    ("type", "issue_type"),
    ("projects", "projects"),
    ("state", "state"),
    ("state_reason", "state_reason"),
    ("parent", "parent"),
    ("blocked_by", "blocked_by"),
    ("blocks", "blocks"),
    ("synced_at", "synced_at"),
]


def _yaml_ref(value: str) -> int | str:
    return int(value) if value.isdigit() else value


def path_for(directory: Path, number: str, title: str) -> Path:
    """File location for an issue: <dir>/<number>[-<slug>].md."""
    slug = slugify(title)
    name = f"{number}-{slug}.md" if slug else f"{number}.md"
    return Path(directory) / name


def split_document(text: str) -> tuple[Dict[str, Any], str]:
    """Split raw file text into (header mapping, body)."""
    text = text.replace("\r\n", "\n")
    if not text.startswith(DELIMITER + "\n"):
        raise ValueError("missing header block (file must start with '---')")
    rest = text[len(DELIMITER) + 1:]
    if rest.startswith(DELIMITER + "\n") or rest == DELIMITER:
        header_text, body = "", rest[len(DELIMITER):]
    else:
        end = rest.find("\n" + DELIMITER + "\n")
        if end == -1:
            if rest.endswith("\n" + DELIMITER):
                end = len(rest) - len(DELIMITER) - 1
            else:
                raise ValueError("unterminated header block")
        header_text, body = rest[:end], rest[end + len(DELIMITER) + 1:]
    header = yaml.safe_load(header_text) if header_text.strip() else {}
    if not isinstance(header, dict):
        raise ValueError("header block must be a mapping")
    if body.startswith("\n"):
        body = body[1:]
    if body.startswith("\n"):
        body = body[1:]
    return header, body


def parse_issue(text: str) -> Issue:
    """Parse file text into an Issue. Raises ValueError or ValidationError."""
    header, body = split_document(text)
    data: Dict[str, Any] = {}
    for key, field in _FIELDS:
        if key in header and header[key] is not None:
            data[field] = header[key]
    if "number" not in data:
        raise ValueError("header has no 'number'")
    data["body"] = body
    issue = Issue.model_validate(data)
    if not issue.number.isdigit() and not is_local_id(issue.number):
        raise ValueError(f"invalid number {issue.number!r}: expected digits or a temporary id")
    return issue


def parse_file(path: Path) -> Issue:
    """Read and parse one issue file; any failure becomes IssueParseError."""
    try:
        text = Path(path).read_text(encoding="utf-8")
        return parse_issue(text)
    except (OSError, ValueError, yaml.YAMLError, ValidationError) as e:
        raise IssueParseError(path, e) from e


def render_issue(issue: Issue) -> str:
    """Serialize an Issue to file text. Deterministic for equal issues."""
    values = issue.model_dump(mode="json")
    header: Dict[str, Any] = {}
    for key, field in _FIELDS:
        value = values.get(field)
        if value is None or value == "" or value == []:
            continue
        if field in ("number", "parent"):
            value = _yaml_ref(value)
        elif field in ("blocked_by", "blocks"):
            value = [_yaml_ref(v) for v in value]
        header[key] = value
    raw = yaml.dump(header, default_flow_style=None, allow_unicode=True, sort_keys=False, width=1000)
    text = f"{DELIMITER}\n{raw}{DELIMITER}\n"
    if issue.body:
        text += f"\n{issue.body}\n"
    return text


def write_file(path: Path, issue: Issue) -> Path:
    """Write an issue atomically (temp sibling then replace)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(render_issue(issue), encoding="utf-8")
    tmp.replace(path)
    return path
