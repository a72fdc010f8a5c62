"""Shared fixtures: a throwaway content root with blog/ and pages/."""

from collections.abc import Callable
from pathlib import Path

import pytest

WriteDoc = Callable[..., Path]


def _write_doc(directory: Path, name: str, front_matter: str, body: str = "Body text.\n") -> Path:
    """Write ``---\\n<front_matter>---\\n\\n<body>`` to ``directory/name``."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(f"---\n{front_matter}---\n\n{body}", encoding="utf-8")
    return path


@pytest.fixture
def write_doc() -> WriteDoc:
    return _write_doc


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    root = tmp_path / "content"
    (root / "blog").mkdir(parents=True)
    (root / "pages").mkdir(parents=True)
    return root
