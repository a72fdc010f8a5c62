"""Filesystem watcher that keeps the content index in step with disk.

Raw notifications from ``watchfiles`` pass through a per-path debouncer:
a path settles once it has been quiet for ``quiet_period`` seconds, so
an editor that writes in chunks or writes-then-renames yields one index
update per logical edit. Only changes after start are reported; the
initial scan already covers files that exist at startup.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple

from watchfiles import Change, DefaultFilter, watch

from folio.content.errors import WatcherError

if TYPE_CHECKING:
    from folio.content.index import ContentIndex

logger = logging.getLogger(__name__)

RawBatch = set[tuple[Change, str]]
ChangeSource = Callable[[threading.Event], Iterable[RawBatch]]

RESTART_DELAY = 1.0


class SettledChange(NamedTuple):
    change: Change
    path: Path


class MarkdownFilter(DefaultFilter):
    """DefaultFilter restricted to ``.md`` files."""

    def __call__(self, change: Change, path: str) -> bool:
        return path.endswith(".md") and super().__call__(change, path)


class ChangeDebouncer:
    """Tracks the latest raw change per path until it has been quiet.

    Each new event for a path restarts that path's timer and replaces the
    pending change, so add-then-modify settles as one modify and
    delete-then-add (atomic rename) settles as an add.
    """

    def __init__(self, quiet_period: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.quiet_period = quiet_period
        self._clock = clock
        self._pending: dict[Path, tuple[Change, float]] = {}

    def push(self, change: Change, path: Path | str) -> None:
        self._pending[Path(path)] = (change, self._clock())

    def pop_settled(self) -> list[SettledChange]:
        """Remove and return changes that have been quiet long enough."""
        now = self._clock()
        settled = [
            (seen, SettledChange(change, path))
            for path, (change, seen) in self._pending.items()
            if now - seen >= self.quiet_period
        ]
        settled.sort(key=lambda item: item[0])
        for _, item in settled:
            del self._pending[item.path]
        return [item for _, item in settled]

    def drain(self) -> list[SettledChange]:
        """Remove and return every pending change, settled or not."""
        pending = sorted(self._pending.items(), key=lambda kv: kv[1][1])
        self._pending.clear()
        return [SettledChange(change, path) for path, (change, _) in pending]

    @property
    def pending(self) -> int:
        return len(self._pending)


class ContentWatcher:
    """Runs the notification loop on a background thread.

    ``changes`` replaces the native ``watchfiles`` source; it receives the
    stop event and yields batches of ``(Change, path)`` pairs.
    """

    def __init__(
        self,
        index: ContentIndex,
        directories: Iterable[Path],
        quiet_period: float = 0.5,
        poll_interval: float = 0.1,
        changes: ChangeSource | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.index = index
        self.directories = [Path(d).resolve() for d in directories]
        self.poll_interval = poll_interval
        self.debouncer = ChangeDebouncer(quiet_period, clock=clock)
        self._changes = changes or self._native_changes
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        watched = self._existing_directories()
        if not watched:
            logger.warning("No content directories to watch under %s", self.index.content_root)
            return
        logger.info("Starting file watcher on %s", ", ".join(str(d) for d in watched))
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name="folio-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Close the watcher, then apply whatever was still settling.

        If the loop thread outlives ``timeout`` the pending changes stay
        queued; call ``stop()`` again once it has exited.
        """
        if self._thread is not None:
            logger.info("Stopping file watcher")
            self._stop_event.set()
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("File watcher did not stop within %.1fs", timeout)
                return
            self._thread = None
        for item in self.debouncer.drain():
            self._dispatch(item)

    def __enter__(self) -> ContentWatcher:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    # ── Event handling ───────────────────────────────────────────

    def feed(self, batch: Iterable[tuple[Change, str]]) -> list[SettledChange]:
        """Queue one batch of raw changes and apply the ones that settled."""
        for change, raw_path in batch:
            path = Path(raw_path)
            if not self._accepts(path):
                continue
            logger.debug("Raw %s %s", change.name, path)
            self.debouncer.push(change, path)
        settled = self.debouncer.pop_settled()
        for item in settled:
            self._dispatch(item)
        return settled

    def _accepts(self, path: Path) -> bool:
        return path.suffix == ".md" and path.parent.resolve() in self.directories

    def _dispatch(self, item: SettledChange) -> None:
        path = item.path
        try:
            if item.change == Change.deleted or not path.exists():
                logger.info("File deleted %s", path)
                self.index.remove(path)
            else:
                logger.info("File %s %s", "added" if item.change == Change.added else "changed", path)
                self.index.upsert(path)
        except Exception:
            logger.exception("Failed to apply %s for %s", item.change.name, path)

    # ── Loop ─────────────────────────────────────────────────────

    def _existing_directories(self) -> list[Path]:
        existing = []
        for directory in self.directories:
            if directory.is_dir():
                existing.append(directory)
            else:
                logger.warning("Not watching missing directory %s", directory)
        return existing

    def _native_changes(self, stop_event: threading.Event) -> Iterator[RawBatch]:
        watched = self._existing_directories()
        if not watched:
            raise WatcherError("no content directories left to watch")
        timeout_ms = max(1, int(self.poll_interval * 1000))
        try:
            yield from watch(
                *watched,
                watch_filter=MarkdownFilter(),
                debounce=timeout_ms,
                stop_event=stop_event,
                rust_timeout=timeout_ms,
                yield_on_timeout=True,
                raise_interrupt=False,
                force_polling=False,
                recursive=False,
            )
        except Exception as exc:
            raise WatcherError(f"file watcher failed: {exc}") from exc

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                for batch in self._changes(self._stop_event):
                    self.feed(batch)
                    if self._stop_event.is_set():
                        break
                return
            except WatcherError:
                logger.error("Watcher error, restarting in %.1fs", RESTART_DELAY, exc_info=True)
                self._stop_event.wait(RESTART_DELAY)
