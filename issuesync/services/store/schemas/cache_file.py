"""Auxiliary cache files stored as <sync-dir>/<name>.json: {"entries": [...], "syncedAt": ...}."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from issuesync.models import IssueType, Label, Milestone, Project


class _CacheFile(BaseModel):
    synced_at: datetime | None = Field(default=None, alias="syncedAt", description="When the cache was refreshed")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class LabelCache(_CacheFile):
    entries: List[Label] = Field(default_factory=list)

    def color_map(self) -> dict[str, str]:
        """Lowercase label name -> hex color."""
        return {label.name.lower(): label.color for label in self.entries}


class MilestoneCache(_CacheFile):
    entries: List[Milestone] = Field(default_factory=list)


class IssueTypeCache(_CacheFile):
    entries: List[IssueType] = Field(default_factory=list)


class ProjectCache(_CacheFile):
    entries: List[Project] = Field(default_factory=list)
