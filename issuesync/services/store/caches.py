"""Load and save the label, milestone, issue type and project caches.

Caches are read-mostly copies of remote vocabulary. They are refreshed
during a full pull and never take part in conflict detection.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Type, TypeVar

from pydantic import BaseModel, ValidationError

from issuesync.models import IssueType, Label, Milestone, Project
from issuesync.services.store.schemas import IssueTypeCache, LabelCache, MilestoneCache, ProjectCache

LOG = logging.getLogger("issuesync.services.store.caches")

C = TypeVar("C", bound=BaseModel)


def load_cache(path: Path, model: Type[C]) -> C:
    """Load a cache file; missing or unreadable files yield an empty cache."""
    if not path.is_file():
        return model()
    try:
        return model.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, ValidationError) as e:
        LOG.warning("Ignoring unreadable cache %s: %s", path, e)
        return model()


def save_cache(path: Path, cache: BaseModel) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = cache.model_dump(mode="json", by_alias=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)
    LOG.debug("Saved cache %s (%d entries)", path.name, len(payload.get("entries") or []))


def label_cache_from_colors(colors: Dict[str, str], synced_at: datetime) -> LabelCache:
    entries = [Label(name=name, color=color) for name, color in colors.items()]
    entries.sort(key=lambda lb: lb.name.lower())
    return LabelCache(entries=entries, synced_at=synced_at)


def milestone_cache(milestones: Iterable[Milestone], synced_at: datetime) -> MilestoneCache:
    entries = sorted(milestones, key=lambda m: m.title.lower())
    return MilestoneCache(entries=entries, synced_at=synced_at)


def issue_type_cache(issue_types: Iterable[IssueType], synced_at: datetime) -> IssueTypeCache:
    entries = sorted(issue_types, key=lambda t: t.name.lower())
    return IssueTypeCache(entries=entries, synced_at=synced_at)


def project_cache(projects: Iterable[Project], synced_at: datetime) -> ProjectCache:
    entries = sorted(projects, key=lambda p: p.title.lower())
    return ProjectCache(entries=entries, synced_at=synced_at)
