"""folio: markdown files on disk, indexed in memory."""

__version__ = "0.1.0"
