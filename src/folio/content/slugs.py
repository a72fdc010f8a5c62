"""Filename to slug mapping shared by the scanner, watcher, and admin path."""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path

from folio.content.errors import ValidationError
from folio.content.models import ContentKind

_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}-")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Return the URL slug for a filename stem or title.

    Strips a leading ``YYYY-MM-DD-`` prefix, lowercases, collapses runs of
    characters outside ``[a-z0-9]`` into one hyphen, and trims hyphens.
    Idempotent: ``slugify(slugify(x)) == slugify(x)``.
    """
    slug = _normalize(name)
    # Normalizing can expose another date prefix ("2025-01-01--2024-01-01-x").
    while True:
        again = _normalize(slug)
        if again == slug:
            return slug
        slug = again


def _normalize(name: str) -> str:
    slug = _DATE_PREFIX.sub("", name, count=1)
    slug = _NON_ALNUM.sub("-", slug.lower())
    return slug.strip("-")


def slug_for_path(path: Path | str) -> str:
    """Return the index key for a markdown file path."""
    name = Path(path).name
    if name.endswith(".md"):
        name = name[: -len(".md")]
    return slugify(name)


def filename_for(title: str, kind: ContentKind, on: date | None = None) -> str:
    """Build the filename for a newly created document.

    Blog posts get a ``YYYY-MM-DD-`` prefix so they sort by creation day
    on disk; pages are just ``<slug>.md``.
    """
    slug = slugify(title)
    if not slug:
        raise ValidationError(["Title must contain at least one alphanumeric character"])
    if kind == ContentKind.BLOG:
        day = on or date.today()
        return f"{day.isoformat()}-{slug}.md"
    return f"{slug}.md"
