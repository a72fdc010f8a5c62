"""Markdown document parsing, rendering, validation, and rewriting.

A document is a ``---`` delimited YAML front matter block followed by a
markdown body. Rendering is the security boundary between admin-edited
content and anonymous visitors, so raw HTML is never passed through.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml
from markdown_it import MarkdownIt

from folio.content.errors import ParseError
from folio.content.models import ContentKind, ParsedDocument, ValidationResult

DELIMITER = "---"


def _build_renderer() -> MarkdownIt:
    return MarkdownIt(
        "default",
        {
            "html": False,  # angle brackets render as text
            "xhtmlOut": True,
            "breaks": True,
            "linkify": True,
            "typographer": True,
        },
    ).enable("linkify")


def split_front_matter(text: str) -> tuple[str | None, str]:
    """Split ``text`` into (front matter block, body).

    Returns ``(None, text)`` when the text does not open with a delimiter
    line. Raises ParseError when the opening delimiter is never closed.
    """
    text = text.removeprefix("\ufeff")
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != DELIMITER:
        return None, text

    for i in range(1, len(lines)):
        if lines[i].rstrip() == DELIMITER:
            return "".join(lines[1:i]), "".join(lines[i + 1 :])

    raise ParseError(None, "front matter is not closed with '---'")


def _load_metadata(block: str | None) -> dict[str, Any]:
    if block is None:
        return {}
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise ParseError(None, f"invalid front matter YAML: {exc}") from exc
    except (ValueError, TypeError) as exc:
        # YAML timestamps such as 2025-13-45 fail in the datetime constructor
        raise ParseError(None, f"invalid front matter value: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(None, f"front matter must be a mapping, got {type(data).__name__}")
    return {str(k): v for k, v in data.items()}


class MarkdownParser:
    """Parses, renders, and validates markdown documents."""

    def __init__(self) -> None:
        self._md = _build_renderer()

    def parse_text(self, text: str) -> ParsedDocument:
        """Parse an in-memory document. Raises ParseError."""
        block, body = split_front_matter(text)
        return ParsedDocument(metadata=_load_metadata(block), body=body)

    def parse(self, path: Path | str) -> ParsedDocument:
        """Read and parse the file at ``path``.

        Raises ParseError if the file cannot be read or its front matter
        is not valid YAML.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ParseError(path, str(exc)) from exc
        try:
            return self.parse_text(text)
        except ParseError as exc:
            raise ParseError(path, exc.reason) from exc

    def render_to_html(self, body: str) -> str:
        """Render a markdown body to HTML with raw HTML disabled."""
        return self._md.render(body)

    def validate(self, text: str) -> ValidationResult:
        """Validate a full document and collect every error found."""
        errors: list[str] = []

        if not text or not text.strip():
            return ValidationResult(valid=False, errors=["Content is empty"])

        try:
            doc = self.parse_text(text)
        except ParseError as exc:
            return ValidationResult(
                valid=False, errors=[f"Invalid front matter: {exc.reason}"]
            )

        metadata = doc.metadata
        if not metadata:
            errors.append("Front matter is missing or empty")

        title = metadata.get("title")
        if not isinstance(title, str) or not title.strip():
            errors.append('Front matter must include a "title" field')

        if metadata.get("type") not in [k.value for k in ContentKind]:
            errors.append('Front matter must include a "type" field with value "blog" or "page"')

        if not doc.body.strip():
            errors.append("Markdown content is empty")

        try:
            self.render_to_html(doc.body)
        except Exception as exc:
            errors.append(f"Markdown syntax error: {exc}")

        return ValidationResult(valid=not errors, errors=errors)


# ---------------------------------------------------------------------------
# Rewriting
# ---------------------------------------------------------------------------


def _quote(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def format_value(value: Any) -> str:
    """Format one front matter value as a YAML scalar or flow collection."""
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, dict)):
        return yaml.safe_dump(
            value, default_flow_style=True, allow_unicode=True, width=2**31 - 1
        ).strip()
    return str(value)


def serialize_front_matter(metadata: dict[str, Any]) -> str:
    """Render metadata as a delimited front matter block, keys in order."""
    lines = [DELIMITER]
    for key, value in metadata.items():
        lines.append(f"{key}: {format_value(value)}")
    lines.append(DELIMITER)
    lines.append("")
    return "\n".join(lines)


def compose_document(metadata: dict[str, Any], body: str) -> str:
    """Join front matter and body into full document text."""
    return serialize_front_matter(metadata) + body
