"""Path helpers the admin write path delegates to."""

from __future__ import annotations

import re
from pathlib import Path


def is_path_within(path: Path | str, root: Path | str) -> bool:
    """Return True if ``path`` resolves to a location inside ``root``."""
    resolved = Path(path).resolve()
    base = Path(root).resolve()
    return resolved == base or base in resolved.parents


def sanitize_filename(filename: str) -> str:
    """Reduce ``filename`` to a safe single path component.

    Drops separators and ``..``, maps anything outside ``[A-Za-z0-9._-]``
    to a hyphen, and never returns a hidden or empty name.
    """
    if not filename:
        return "untitled"
    name = re.sub(r"[/\\]", "", filename)
    name = name.replace("..", "")
    name = re.sub(r"[^a-zA-Z0-9._-]", "-", name)
    name = re.sub(r"-+", "-", name).strip("-")[:255]
    name = name.lstrip(".")
    return name or "untitled"
