"""Shared utilities: filename slugs and local (temporary) issue identifiers."""

import random
import re
import string
from typing import Iterable

LOCAL_ID_PREFIX = "T"
LOCAL_ID_LENGTH = 6

_LOCAL_ID_RE = re.compile(r"^T[a-zA-Z0-9]+$")
_INVALID_SLUG_CHARS_RE = re.compile(r"[^a-z0-9\-]")
_DOUBLE_DASH_RE = re.compile(r"-+")
_ALPHABET = string.ascii_lowercase + string.digits


def slugify(text: str, max_length: int = 50) -> str:
    """Turn an issue title into a filename-safe slug.

    Lowercases, maps spaces, dots and underscores to dashes, drops
    everything outside ``a-z0-9-``, collapses dashes and truncates to
    max_length without leaving a trailing dash. May return an empty string.
    """
    if not text or not text.strip():
        return ""
    s = text.lower().strip()
    for char in " ._/":
        s = s.replace(char, "-")
    s = _INVALID_SLUG_CHARS_RE.sub("", s)
    s = _DOUBLE_DASH_RE.sub("-", s).strip("-")
    if len(s) > max_length:
        s = s[:max_length].rstrip("-")
    return s


def is_local_id(number: str | None) -> bool:
    """True for temporary identifiers assigned to issues created offline."""
    if not number:
        return False
    return bool(_LOCAL_ID_RE.match(number))


def generate_local_id(rng: random.Random, existing: Iterable[str] = ()) -> str:
    """Return a new temporary identifier not present in existing."""
    taken = set(existing)
    while True:
        suffix = "".join(rng.choice(_ALPHABET) for _ in range(LOCAL_ID_LENGTH))
        candidate = f"{LOCAL_ID_PREFIX}{suffix}"
        if candidate not in taken:
            return candidate


LABEL_COLORS = [
    "0052CC", "00875A", "5243AA", "FF5630", "FFAB00",
    "36B37E", "00B8D9", "6554C0", "FF8B00", "57D9A3",
    "1D7AFC", "E774BB", "8777D9", "2684FF", "FF991F",
]


def random_label_color(rng: random.Random) -> str:
    """Pick a label color from a fixed palette."""
    return rng.choice(LABEL_COLORS)
