"""In-memory index of the markdown files under the content root.

The index maps slug -> ContentRecord and converges to what is on disk
from three directions: the startup scan, admin writes, and the watcher.
Mutations build a new mapping and swap it in, so a reader holding the
previous snapshot keeps a consistent view and never waits on a writer.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from folio.content.errors import ParseError
from folio.content.models import ContentKind, ContentRecord, RenderedContent
from folio.content.parser import MarkdownParser
from folio.content.slugs import slug_for_path
from folio.content.watcher import ContentWatcher

logger = logging.getLogger(__name__)


def _coerce_datetime(value: Any) -> datetime | None:
    """Turn a front matter ``date`` into a naive datetime, if possible."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def _coerce_order(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


class ContentIndex:
    """Slug-keyed index over the blog and pages directories.

    One instance is owned by the application and handed to every
    consumer. Lifecycle: ``initialize()`` once, ``start_watching()``,
    then ``stop_watching()`` on shutdown.
    """

    def __init__(
        self,
        content_root: Path | str,
        blog_dir: str = "blog",
        pages_dir: str = "pages",
        parser: MarkdownParser | None = None,
        quiet_period: float = 0.5,
        poll_interval: float = 0.1,
    ) -> None:
        self.content_root = Path(content_root).resolve()
        self.blog_path = self.content_root / blog_dir
        self.pages_path = self.content_root / pages_dir
        self.parser = parser or MarkdownParser()
        self.quiet_period = quiet_period
        self.poll_interval = poll_interval
        self._records: dict[str, ContentRecord] = {}
        self._write_lock = threading.Lock()
        self._watcher: ContentWatcher | None = None

    # ── Lifecycle ────────────────────────────────────────────────

    def initialize(self) -> None:
        """Rebuild the index from a full scan of both directories."""
        logger.info("Initializing content index from %s", self.content_root)
        records: dict[str, ContentRecord] = {}
        self._scan_directory(self.blog_path, ContentKind.BLOG, records)
        self._scan_directory(self.pages_path, ContentKind.PAGE, records)
        with self._write_lock:
            self._records = records
        logger.info("Content index initialized with %d items", len(records))

    def start_watching(self) -> None:
        """Start the filesystem watcher; a second call is ignored."""
        if self._watcher is not None and self._watcher.is_running:
            logger.warning("File watcher already running")
            return
        self._watcher = ContentWatcher(
            self,
            [self.blog_path, self.pages_path],
            quiet_period=self.quiet_period,
            poll_interval=self.poll_interval,
        )
        self._watcher.start()

    def stop_watching(self) -> None:
        """Stop the watcher and apply any changes still settling."""
        if self._watcher is None:
            return
        self._watcher.stop()
        if not self._watcher.is_running:
            self._watcher = None

    # ── Private helpers ──────────────────────────────────────────

    def _scan_directory(
        self, directory: Path, kind: ContentKind, into: dict[str, ContentRecord]
    ) -> None:
        if not directory.is_dir():
            logger.warning("Directory not found %s", directory)
            return
        for path in sorted(directory.glob("*.md")):
            if not path.is_file():
                continue
            record = self._load(path.resolve(), kind)
            if record is None:
                continue
            self._warn_on_collision(into.get(record.slug), record)
            into[record.slug] = record
            logger.info("Indexed %s (%s)", record.slug, record.kind)

    def _load(self, path: Path, kind_hint: ContentKind) -> ContentRecord | None:
        try:
            return self._build_record(path, kind_hint)
        except (ParseError, ValueError, TypeError, ArithmeticError) as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return None

    def _build_record(self, path: Path, kind_hint: ContentKind) -> ContentRecord:
        doc = self.parser.parse(path)
        meta = doc.metadata

        try:
            kind = ContentKind(meta.get("type"))
        except (TypeError, ValueError):
            kind = kind_hint

        title = meta.get("title")
        if title is None or title == "":
            title = path.name.removesuffix(".md")

        return ContentRecord(
            slug=slug_for_path(path),
            kind=kind,
            title=str(title),
            published_date=_coerce_datetime(meta.get("date")) or datetime.now(),
            sort_order=_coerce_order(meta.get("order")),
            is_published=meta.get("published") is not False,
            source_path=path,
            raw_metadata=dict(meta),
        )

    def _warn_on_collision(self, existing: ContentRecord | None, record: ContentRecord) -> None:
        if existing is not None and existing.source_path != record.source_path:
            logger.warning(
                "Slug collision on %r: %s replaces %s",
                record.slug,
                record.source_path,
                existing.source_path,
            )

    # ── Write operations ─────────────────────────────────────────

    def kind_for_path(self, path: Path | str) -> ContentKind:
        """Infer the directory hint for ``path``: blog dir or page."""
        if self.blog_path in Path(path).resolve().parents:
            return ContentKind.BLOG
        return ContentKind.PAGE

    def upsert(self, path: Path | str, kind: ContentKind | None = None) -> ContentRecord | None:
        """Re-parse ``path`` and replace the record under its slug.

        Returns the new record, or None if the file could not be parsed
        (the failure is logged and the index is left unchanged).
        """
        path = Path(path).resolve()
        record = self._load(path, kind or self.kind_for_path(path))
        if record is None:
            return None

        with self._write_lock:
            existing = self._records.get(record.slug)
            self._warn_on_collision(existing, record)
            records = dict(self._records)
            records[record.slug] = record
            self._records = records

        if existing is None:
            logger.info("Added %s (%s)", record.slug, record.kind)
        else:
            logger.info("Reindexed %s (%s)", record.slug, record.kind)
        return record

    def remove(self, path: Path | str) -> bool:
        """Drop the record that ``path`` was indexed under.

        Returns False when there is nothing to remove, which is expected
        when an admin delete and a watcher unlink race for the same file.
        """
        path = Path(path).resolve()
        slug = slug_for_path(path)
        with self._write_lock:
            existing = self._records.get(slug)
            if existing is None:
                return False
            if existing.source_path != path:
                logger.info(
                    "Not removing %r: it is now owned by %s", slug, existing.source_path
                )
                return False
            records = dict(self._records)
            del records[slug]
            self._records = records
        logger.info("Removed from index %s", slug)
        return True

    # ── Read operations ──────────────────────────────────────────

    def get_entries(self, kind: ContentKind) -> list[ContentRecord]:
        """Published records of ``kind``: order ascending, then newest first."""
        entries = [
            r for r in self._records.values() if r.kind == kind and r.is_published
        ]
        entries.sort(key=lambda r: r.published_date, reverse=True)
        entries.sort(key=lambda r: r.sort_order)
        return entries

    def get_blog_entries(self) -> list[ContentRecord]:
        return self.get_entries(ContentKind.BLOG)

    def get_pages(self) -> list[ContentRecord]:
        return self.get_entries(ContentKind.PAGE)

    def get_by_slug(self, slug: str) -> ContentRecord | None:
        """Return the record for ``slug`` (published or not), or None."""
        return self._records.get(slug)

    def records(self) -> list[ContentRecord]:
        """Every indexed record, including unpublished ones."""
        return list(self._records.values())

    def render(self, slug: str) -> RenderedContent | None:
        """Re-read a record's file and render its body to HTML."""
        record = self.get_by_slug(slug)
        if record is None:
            return None
        try:
            doc = self.parser.parse(record.source_path)
        except ParseError as exc:
            logger.warning("Cannot render %s: %s", slug, exc)
            return None
        return RenderedContent(record=record, html=self.parser.render_to_html(doc.body))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, slug: object) -> bool:
        return slug in self._records
