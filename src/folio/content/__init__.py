"""Content domain: markdown records, the slug index, and its writers.

The ContentIndex mirrors the blog and pages directories in memory; the
ContentWatcher and ContentAdmin are the two producers that keep it in
step with disk.
"""

from folio.content.admin import ContentAdmin
from folio.content.errors import (
    ContentExistsError,
    FolioError,
    ForbiddenPathError,
    ParseError,
    ValidationError,
    WatcherError,
)
from folio.content.index import ContentIndex
from folio.content.models import (
    ContentKind,
    ContentRecord,
    ParsedDocument,
    RenderedContent,
    ReorderItem,
    ReorderOutcome,
    ReorderResult,
    ValidationResult,
)
from folio.content.parser import MarkdownParser
from folio.content.slugs import slug_for_path, slugify
from folio.content.watcher import ChangeDebouncer, ContentWatcher

__all__ = [
    "ChangeDebouncer",
    "ContentAdmin",
    "ContentExistsError",
    "ContentIndex",
    "ContentKind",
    "ContentRecord",
    "ContentWatcher",
    "FolioError",
    "ForbiddenPathError",
    "MarkdownParser",
    "ParseError",
    "ParsedDocument",
    "RenderedContent",
    "ReorderItem",
    "ReorderOutcome",
    "ReorderResult",
    "ValidationError",
    "ValidationResult",
    "WatcherError",
    "slug_for_path",
    "slugify",
]
