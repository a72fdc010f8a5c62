"""Error taxonomy for the content subsystem.

Not-found is not an error here: lookups return ``None`` and removals
return ``False``.
"""

from __future__ import annotations

from pathlib import Path


class FolioError(Exception):
    """Base class for content subsystem errors."""


class ParseError(FolioError):
    """A file could not be read or its front matter is not a YAML mapping."""

    def __init__(self, path: Path | str | None, reason: str) -> None:
        self.path = Path(path) if path is not None else None
        self.reason = reason
        where = f" {self.path}" if self.path is not None else ""
        super().__init__(f"Failed to parse markdown{where}: {reason}")


class ValidationError(FolioError):
    """A proposed document failed validation; carries every message."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Validation failed: {', '.join(self.errors)}")


class WatcherError(FolioError):
    """The filesystem notification backend failed."""


class ForbiddenPathError(FolioError):
    """A write target resolved outside the content root."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Path outside content directory: {path}")


class ContentExistsError(FolioError):
    """A create would overwrite an existing file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Content already exists: {path}")
