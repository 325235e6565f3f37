"""A comment queued locally, posted on the next push."""

from pathlib import Path

from pydantic import BaseModel, Field


class PendingComment(BaseModel):
    """Contents of <dir>/<number>.comment.md (or <number>-<slug>.comment.md)."""

    number: str = Field(..., description="Issue number or temporary id the comment belongs to")
    body: str = Field(..., description="Comment text, stripped")
    path: Path = Field(..., description="Side-file holding the comment")
