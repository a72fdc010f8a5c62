"""Admin write path: create, edit, delete, reorder, publish.

Every operation writes the file and then updates the index directly,
so the next read sees the change without waiting for the watcher. The
watcher stays the catch-all for edits made outside this module.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from datetime import date
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from folio.content.errors import (
    ContentExistsError,
    ForbiddenPathError,
    ParseError,
    ValidationError,
)
from folio.content.index import ContentIndex
from folio.content.models import (
    ContentKind,
    ContentRecord,
    ReorderItem,
    ReorderOutcome,
    ReorderResult,
)
from folio.content.parser import MarkdownParser, compose_document
from folio.content.slugs import filename_for
from folio.security import is_path_within, sanitize_filename

logger = logging.getLogger(__name__)

PathGuard = Callable[[Path, Path], bool]


def _require_fields(title: str, body: str, kind: ContentKind | str) -> ContentKind:
    if not title or not title.strip() or not body or not body.strip():
        raise ValidationError(["All fields are required"])
    try:
        return ContentKind(kind)
    except ValueError:
        raise ValidationError(["Invalid content type"]) from None


def _body_text(body: str) -> str:
    """One blank line after the front matter, one trailing newline."""
    text = body.strip("\n").rstrip()
    return f"\n{text}\n"


class ContentAdmin:
    """Validated writes against the content root, mirrored into the index."""

    def __init__(
        self,
        index: ContentIndex,
        parser: MarkdownParser | None = None,
        path_guard: PathGuard = is_path_within,
    ) -> None:
        self.index = index
        self.parser = parser or index.parser
        self._path_guard = path_guard

    # ── Private helpers ──────────────────────────────────────────

    def _check_path(self, path: Path) -> None:
        if not self._path_guard(path, self.index.content_root):
            logger.warning("Attempted write outside content directory: %s", path)
            raise ForbiddenPathError(path)

    def _write(self, path: Path, text: str) -> None:
        result = self.parser.validate(text)
        if not result.valid:
            raise ValidationError(result.errors)
        path.write_text(text, encoding="utf-8")

    def _rewrite_metadata(self, record: ContentRecord, updates: dict[str, Any]) -> ContentRecord:
        """Re-read the record's file, merge ``updates`` into its front matter, write, upsert.

        Files that predate validation (no ``type``, say) are rewritten as-is.
        """
        self._check_path(record.source_path)
        doc = self.parser.parse(record.source_path)
        metadata = {**doc.metadata, **updates}
        record.source_path.write_text(compose_document(metadata, doc.body), encoding="utf-8")
        updated = self.index.upsert(record.source_path)
        if updated is None:
            raise ParseError(record.source_path, "file could not be re-indexed after write")
        return updated

    # ── Operations ───────────────────────────────────────────────

    def create(
        self, title: str, body: str, kind: ContentKind, on: date | None = None
    ) -> ContentRecord:
        """Write a new document and index it.

        Raises ValidationError, ForbiddenPathError or ContentExistsError;
        on any of them nothing is written.
        """
        kind = _require_fields(title, body, kind)
        day = on or date.today()
        filename = sanitize_filename(filename_for(title, kind, day))
        directory = self.index.blog_path if kind == ContentKind.BLOG else self.index.pages_path
        path = directory / filename

        self._check_path(path)
        if path.exists():
            raise ContentExistsError(path)

        metadata: dict[str, Any] = {"title": title, "date": day, "type": kind.value}
        if kind == ContentKind.BLOG:
            metadata["order"] = int(time.time() * 1000)
        metadata["published"] = True
        text = compose_document(metadata, _body_text(body))

        directory.mkdir(parents=True, exist_ok=True)
        self._write(path, text)
        logger.info("Created %s", path)

        record = self.index.upsert(path, kind)
        if record is None:
            raise ParseError(path, "file could not be indexed after write")
        return record

    def edit(self, slug: str, title: str, body: str, kind: ContentKind) -> ContentRecord | None:
        """Replace title, type and body of ``slug``, keeping other front matter.

        Returns None if the slug is not indexed.
        """
        record = self.index.get_by_slug(slug)
        if record is None:
            return None
        kind = _require_fields(title, body, kind)

        self._check_path(record.source_path)
        doc = self.parser.parse(record.source_path)
        metadata = {**doc.metadata, "title": title, "type": kind.value}
        self._write(record.source_path, compose_document(metadata, _body_text(body)))
        logger.info("Updated %s", record.source_path)

        updated = self.index.upsert(record.source_path, kind)
        if updated is None:
            raise ParseError(record.source_path, "file could not be re-indexed after write")
        return updated

    def delete(self, slug: str) -> bool:
        """Delete the file behind ``slug`` and drop it from the index.

        Returns False if the slug is not indexed.
        """
        record = self.index.get_by_slug(slug)
        if record is None:
            logger.info("Delete requested for non-existent content: %s", slug)
            return False
        self._check_path(record.source_path)
        try:
            record.source_path.unlink()
        except FileNotFoundError:
            logger.info("File already gone: %s", record.source_path)
        logger.info("Deleted %s", record.source_path)
        self.index.remove(record.source_path)
        return True

    def reorder(self, items: Iterable[ReorderItem | dict[str, Any]]) -> ReorderResult:
        """Set ``order`` on each slug; items succeed or fail independently."""
        result = ReorderResult()
        for raw in items:
            if isinstance(raw, ReorderItem):
                item = raw
            else:
                try:
                    item = ReorderItem.model_validate(raw)
                except PydanticValidationError:
                    slug = str(raw.get("slug", "")) if isinstance(raw, dict) else ""
                    result.outcomes.append(
                        ReorderOutcome(slug=slug, success=False, error="Invalid item")
                    )
                    continue
            outcome = self._apply(item.slug, {"order": item.order})
            if outcome.success:
                logger.info("Updated %s to order %d", item.slug, item.order)
            result.outcomes.append(outcome)
        return result

    def set_published(self, slug: str, published: bool) -> ReorderOutcome:
        """Flip the ``published`` flag on one record."""
        return self._apply(slug, {"published": published})

    def _apply(self, slug: str, updates: dict[str, Any]) -> ReorderOutcome:
        record = self.index.get_by_slug(slug)
        if record is None:
            logger.warning("Content not found: %s", slug)
            return ReorderOutcome(slug=slug, success=False, error="Content not found")
        try:
            self._rewrite_metadata(record, updates)
        except ForbiddenPathError:
            return ReorderOutcome(slug=slug, success=False, error="Forbidden")
        except (ParseError, ValidationError, OSError) as exc:
            logger.error("Failed to update %s: %s", slug, exc)
            return ReorderOutcome(slug=slug, success=False, error=str(exc))
        return ReorderOutcome(slug=slug, success=True)
