"""Configuration loaded from .folio.toml and environment variables.

Loading order: defaults → TOML file → env vars.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from folio.content.index import ContentIndex

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".folio.toml"
GLOBAL_CONFIG = Path.home() / ".config" / "folio" / "config.toml"


class ContentConfig(BaseModel):
    """[content] section."""

    root: str = "./content"
    blog_dir: str = "blog"
    pages_dir: str = "pages"


class WatcherConfig(BaseModel):
    """[watcher] section."""

    enabled: bool = True
    debounce_ms: int = 500
    poll_interval_ms: int = 100


class LoggingConfig(BaseModel):
    """[logging] section."""

    level: str = "INFO"


class FolioConfig(BaseModel):
    """Top-level configuration."""

    content: ContentConfig = Field(default_factory=ContentConfig)
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def build_index(self) -> ContentIndex:
        """Construct the single ContentIndex this configuration describes."""
        from folio.content.index import ContentIndex

        return ContentIndex(
            self.content.root,
            blog_dir=self.content.blog_dir,
            pages_dir=self.content.pages_dir,
            quiet_period=self.watcher.debounce_ms / 1000,
            poll_interval=self.watcher.poll_interval_ms / 1000,
        )


def load_config(path: str | Path | None = None) -> FolioConfig:
    """Load configuration from a TOML file, then overlay env vars.

    Search order when ``path`` is not given:
    1. .folio.toml in CWD
    2. ~/.config/folio/config.toml
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for candidate in (Path(".") / CONFIG_FILENAME, GLOBAL_CONFIG):
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break

    config = FolioConfig.model_validate(data) if data else FolioConfig()
    return _apply_env_vars(config)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: FolioConfig) -> FolioConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "FOLIO_CONTENT_ROOT": ("content", "root"),
        "FOLIO_BLOG_DIR": ("content", "blog_dir"),
        "FOLIO_PAGES_DIR": ("content", "pages_dir"),
        "FOLIO_LOG_LEVEL": ("logging", "level"),
    }
    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    watch_raw = os.environ.get("FOLIO_WATCH")
    if watch_raw is not None:
        data["watcher"]["enabled"] = watch_raw.lower() in ("true", "1", "yes")

    debounce_raw = os.environ.get("FOLIO_DEBOUNCE_MS")
    if debounce_raw is not None:
        try:
            data["watcher"]["debounce_ms"] = int(debounce_raw)
        except ValueError:
            logger.warning("Ignoring non-integer FOLIO_DEBOUNCE_MS=%r", debounce_raw)

    return FolioConfig.model_validate(data)
