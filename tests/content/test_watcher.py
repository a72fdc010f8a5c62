"""Tests for the change debouncer and the content watcher."""

import logging
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from folio.content import watcher as watcher_module
from folio.content.errors import WatcherError
from folio.content.index import ContentIndex
from folio.content.watcher import ChangeDebouncer, ContentWatcher
from watchfiles import Change

FRONT = 'title: "Hello"\ntype: blog\norder: 1\npublished: true\n'


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def index(content_root: Path) -> ContentIndex:
    idx = ContentIndex(content_root)
    idx.initialize()
    return idx


def _watcher(index, clock, **kwargs) -> ContentWatcher:
    return ContentWatcher(
        index,
        [index.blog_path, index.pages_path],
        quiet_period=0.5,
        clock=clock,
        **kwargs,
    )


class TestChangeDebouncer:
    def test_waits_for_quiet_period(self, clock):
        debouncer = ChangeDebouncer(0.5, clock=clock)
        debouncer.push(Change.modified, "/c/blog/a.md")

        clock.advance(0.3)
        assert debouncer.pop_settled() == []

        clock.advance(0.2)
        settled = debouncer.pop_settled()
        assert [(s.change, s.path) for s in settled] == [(Change.modified, Path("/c/blog/a.md"))]
        assert debouncer.pending == 0

    def test_new_event_restarts_timer(self, clock):
        debouncer = ChangeDebouncer(0.5, clock=clock)
        debouncer.push(Change.added, "/c/blog/a.md")
        clock.advance(0.4)
        debouncer.push(Change.modified, "/c/blog/a.md")

        clock.advance(0.2)
        assert debouncer.pop_settled() == []

        clock.advance(0.3)
        settled = debouncer.pop_settled()
        assert len(settled) == 1
        assert settled[0].change == Change.modified

    def test_paths_settle_independently(self, clock):
        debouncer = ChangeDebouncer(0.5, clock=clock)
        debouncer.push(Change.added, "/c/blog/a.md")
        clock.advance(0.3)
        debouncer.push(Change.added, "/c/blog/b.md")
        clock.advance(0.2)

        assert [s.path.name for s in debouncer.pop_settled()] == ["a.md"]
        assert debouncer.pending == 1

    def test_delete_then_add_settles_as_add(self, clock):
        debouncer = ChangeDebouncer(0.5, clock=clock)
        debouncer.push(Change.deleted, "/c/blog/a.md")
        debouncer.push(Change.added, "/c/blog/a.md")
        clock.advance(1)
        assert debouncer.pop_settled()[0].change == Change.added

    def test_drain_returns_unsettled(self, clock):
        debouncer = ChangeDebouncer(0.5, clock=clock)
        debouncer.push(Change.added, "/c/blog/a.md")
        debouncer.push(Change.deleted, "/c/pages/b.md")

        drained = debouncer.drain()
        assert [s.path.name for s in drained] == ["a.md", "b.md"]
        assert debouncer.pending == 0


class TestFeed:
    def test_add_is_indexed_after_settle(self, index, clock, content_root, write_doc):
        watcher = _watcher(index, clock)
        path = write_doc(content_root / "blog", "2025-01-01-hello.md", FRONT)

        watcher.feed({(Change.added, str(path))})
        assert index.get_by_slug("hello") is None

        clock.advance(0.6)
        watcher.feed(set())
        record = index.get_by_slug("hello")
        assert record is not None
        assert record.title == "Hello"

    def test_delete_removes_record(self, index, clock, content_root, write_doc):
        path = write_doc(content_root / "blog", "2025-01-01-hello.md", FRONT)
        index.upsert(path)
        watcher = _watcher(index, clock)

        path.unlink()
        watcher.feed({(Change.deleted, str(path))})
        clock.advance(0.6)
        watcher.feed(set())
        assert index.get_by_slug("hello") is None

    def test_modify_of_vanished_file_removes(self, index, clock, content_root, write_doc):
        path = write_doc(content_root / "pages", "about.md", 'title: "About"\n')
        index.upsert(path)
        watcher = _watcher(index, clock)

        watcher.feed({(Change.modified, str(path))})
        path.unlink()
        clock.advance(0.6)
        watcher.feed(set())
        assert index.get_by_slug("about") is None

    def test_burst_of_writes_is_one_upsert(self, clock, content_root, write_doc):
        index = MagicMock(spec=ContentIndex)
        watcher = ContentWatcher(index, [content_root / "blog"], quiet_period=0.5, clock=clock)
        path = write_doc(content_root / "blog", "post.md", FRONT)

        for _ in range(5):
            watcher.feed({(Change.modified, str(path))})
            clock.advance(0.1)
        clock.advance(0.5)
        watcher.feed(set())

        index.upsert.assert_called_once_with(path)
        index.remove.assert_not_called()

    def test_ignores_other_files(self, index, clock, content_root, tmp_path):
        watcher = _watcher(index, clock)
        (content_root / "blog" / "nested").mkdir()
        watcher.feed(
            {
                (Change.added, str(content_root / "blog" / "notes.txt")),
                (Change.added, str(content_root / "blog" / "nested" / "deep.md")),
                (Change.added, str(tmp_path / "elsewhere.md")),
            }
        )
        assert watcher.debouncer.pending == 0

    def test_dispatch_failure_is_logged(self, clock, content_root, write_doc, caplog):
        index = MagicMock(spec=ContentIndex)
        index.upsert.side_effect = RuntimeError("boom")
        watcher = ContentWatcher(index, [content_root / "blog"], quiet_period=0.5, clock=clock)
        path = write_doc(content_root / "blog", "post.md", FRONT)

        with caplog.at_level(logging.ERROR, logger="folio.content.watcher"):
            watcher.feed({(Change.added, str(path))})
            clock.advance(1)
            watcher.feed(set())

        assert any("Failed to apply" in r.message for r in caplog.records)


class TestLifecycle:
    def test_stop_flushes_pending_changes(self, index, content_root, write_doc):
        path = write_doc(content_root / "blog", "2025-01-01-hello.md", FRONT)
        consumed = threading.Event()

        def source(stop_event):
            yield {(Change.added, str(path))}
            consumed.set()

        watcher = ContentWatcher(index, [index.blog_path], quiet_period=60, changes=source)
        watcher.start()
        assert consumed.wait(5)
        assert index.get_by_slug("hello") is None

        watcher.stop()
        assert index.get_by_slug("hello") is not None
        assert watcher.is_running is False

    def test_restarts_after_watcher_error(self, index, content_root, write_doc, monkeypatch, caplog):
        monkeypatch.setattr(watcher_module, "RESTART_DELAY", 0.01)
        path = write_doc(content_root / "blog", "2025-01-01-hello.md", FRONT)
        calls = []
        consumed = threading.Event()

        def source(stop_event):
            calls.append(1)
            if len(calls) == 1:
                raise WatcherError("backend went away")
            yield {(Change.added, str(path))}
            consumed.set()

        watcher = ContentWatcher(index, [index.blog_path], quiet_period=60, changes=source)
        with caplog.at_level(logging.ERROR, logger="folio.content.watcher"):
            watcher.start()
            assert consumed.wait(5)
            watcher.stop()

        assert len(calls) == 2
        assert any("Watcher error" in r.message for r in caplog.records)
        assert index.get_by_slug("hello") is not None

    def test_stop_timeout_keeps_pending_changes(self, index, content_root, write_doc):
        path = write_doc(content_root / "blog", "2025-01-01-hello.md", FRONT)
        consumed = threading.Event()
        release = threading.Event()

        def source(stop_event):
            yield {(Change.added, str(path))}
            consumed.set()
            release.wait(5)

        watcher = ContentWatcher(index, [index.blog_path], quiet_period=60, changes=source)
        watcher.start()
        assert consumed.wait(5)

        watcher.stop(timeout=0.05)
        assert watcher.is_running is True
        assert watcher.debouncer.pending == 1
        assert index.get_by_slug("hello") is None

        release.set()
        watcher.stop()
        assert watcher.is_running is False
        assert index.get_by_slug("hello") is not None

    def test_start_without_directories_does_nothing(self, tmp_path, caplog):
        index = ContentIndex(tmp_path / "missing")
        watcher = ContentWatcher(index, [index.blog_path, index.pages_path])
        with caplog.at_level(logging.WARNING, logger="folio.content.watcher"):
            watcher.start()
        assert watcher.is_running is False
        assert any("No content directories" in r.message for r in caplog.records)

    def test_context_manager(self, index):
        with ContentWatcher(index, [index.blog_path], changes=lambda stop: iter(())) as watcher:
            assert isinstance(watcher, ContentWatcher)
        assert watcher.is_running is False


def _wait_for(predicate, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


class TestNativeWatcher:
    def test_external_edit_round_trip(self, content_root: Path):
        index = ContentIndex(content_root, quiet_period=0.2, poll_interval=0.05)
        index.initialize()
        index.start_watching()
        try:
            time.sleep(0.3)
            path = content_root / "blog" / "2025-01-01-hello.md"
            path.write_text(f"---\n{FRONT}---\n\nHi there.\n", encoding="utf-8")

            assert _wait_for(lambda: index.get_by_slug("hello") is not None)
            assert index.get_by_slug("hello").title == "Hello"

            path.unlink()
            assert _wait_for(lambda: index.get_by_slug("hello") is None)
        finally:
            index.stop_watching()
