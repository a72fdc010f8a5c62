"""Content domain models: pure Pydantic v2 data types.

A ContentRecord is one indexed markdown file. Records are frozen: a
change on disk produces a brand new record that replaces the old one
under the same slug, so readers never see a half-updated entry.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ContentKind(StrEnum):
    """Which listing a record belongs to."""

    BLOG = "blog"
    PAGE = "page"


class ParsedDocument(BaseModel):
    """Front matter and body of one markdown document."""

    metadata: dict[str, Any] = Field(default_factory=dict)
    body: str = ""


class ContentRecord(BaseModel):
    """One indexed markdown file.

    ``raw_metadata`` keeps the complete front matter in file order so an
    admin rewrite can round-trip fields the index does not know about.
    """

    model_config = ConfigDict(frozen=True)

    slug: str
    kind: ContentKind
    title: str
    published_date: datetime
    sort_order: int = 0
    is_published: bool = True
    source_path: Path
    raw_metadata: dict[str, Any] = Field(default_factory=dict)


class RenderedContent(BaseModel):
    """A record together with its body rendered to HTML."""

    record: ContentRecord
    html: str


class ValidationResult(BaseModel):
    """Outcome of validating a full document."""

    valid: bool
    errors: list[str] = Field(default_factory=list)


class ReorderItem(BaseModel):
    """A requested ``order`` value for one slug."""

    slug: str
    order: int


class ReorderOutcome(BaseModel):
    """Per-item result of a batch admin update."""

    slug: str
    success: bool
    error: str = ""


class ReorderResult(BaseModel):
    """Result of a batch admin update; items succeed or fail independently."""

    outcomes: list[ReorderOutcome] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(o.success for o in self.outcomes)

    @property
    def updated(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failures(self) -> list[ReorderOutcome]:
        return [o for o in self.outcomes if not o.success]
