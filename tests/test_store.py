"""Tests for the Library Store: background refresh, snapshot swap and failure handling."""

import asyncio
from pathlib import Path

import pytest

from mcp_crate.config import EngineConfig
from mcp_crate.models import Track
from mcp_crate.store import LibraryStore


def make_track(name, artist=None):
    path = f"/lib/{name}.mp3"
    return Track(id=path, file_path=path, filename=f"{name}.mp3", title=name, artist=artist)


class FakeScanner:
    """Returns canned results; optionally waits on an event or raises."""

    def __init__(self, results=(), error=None, gate=None):
        self.root = Path("/lib")
        self.results = list(results)
        self.error = error
        self.gate = gate
        self.calls = 0

    async def scan(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.results)


class TestInitialState:
    def test_empty_and_queryable(self):
        store = LibraryStore(FakeScanner())
        assert store.snapshot.tracks == ()
        assert store.snapshot.index.search("anything") == []
        assert store.status().state == "idle"
        assert store.status().track_count == 0

    def test_from_config(self, tmp_path):
        store = LibraryStore.from_config(EngineConfig(music_dir=tmp_path, fuzzy_threshold=0.1))
        assert store.scanner.root == tmp_path
        assert store.snapshot.index.fuzzy_threshold == 0.1

    def test_cancel_without_scan(self):
        assert LibraryStore(FakeScanner()).cancel() is False


class TestRefresh:
    def test_scan_installs_snapshot(self):
        tracks = [make_track("one", "Kavinsky"), make_track("two")]
        store = LibraryStore(FakeScanner(tracks))

        async def run():
            await store.refresh()

        asyncio.run(run())
        assert list(store.snapshot.tracks) == tracks
        assert store.snapshot.index.get_all_tracks() == tracks
        status = store.status()
        assert status.state == "ready"
        assert status.track_count == 2
        assert status.scanned_at is not None

    def test_queries_served_during_scan(self):
        old = [make_track("old")]
        new = [make_track("new"), make_track("newer")]
        scanner = FakeScanner(new)
        store = LibraryStore(scanner)
        store.install(old)

        async def run():
            scanner.gate = asyncio.Event()
            task = store.refresh()
            await asyncio.sleep(0)
            assert store.status().state == "scanning"
            # Still answering from the previous snapshot
            assert [t.title for t in store.snapshot.index.search("old")] == ["old"]
            scanner.gate.set()
            await task

        asyncio.run(run())
        assert [t.title for t in store.snapshot.tracks] == ["new", "newer"]

    def test_refresh_while_scanning_reuses_task(self):
        scanner = FakeScanner([make_track("a")])
        store = LibraryStore(scanner)

        async def run():
            scanner.gate = asyncio.Event()
            first = store.refresh()
            second = store.refresh()
            assert first is second
            scanner.gate.set()
            await first

        asyncio.run(run())
        assert scanner.calls == 1

    def test_snapshot_pairs_tracks_with_their_index(self):
        store = LibraryStore(FakeScanner([make_track("x"), make_track("y")]))
        before = store.install([make_track("a")])

        async def run():
            await store.refresh()

        asyncio.run(run())
        after = store.snapshot
        assert before is not after
        # A reader holding the old snapshot keeps a consistent view
        assert before.index.get_all_tracks() == list(before.tracks)
        assert after.index.get_all_tracks() == list(after.tracks)
        assert {t.id for t in after.tracks} == {"/lib/x.mp3", "/lib/y.mp3"}

    def test_wait_until_ready(self):
        store = LibraryStore(FakeScanner([make_track("a")]))

        async def run():
            store.refresh()
            return await store.wait_until_ready()

        snapshot = asyncio.run(run())
        assert len(snapshot.tracks) == 1

    def test_wait_until_ready_without_scan(self):
        store = LibraryStore(FakeScanner())
        assert asyncio.run(store.wait_until_ready()) is store.snapshot


class TestFailures:
    def test_failed_scan_keeps_previous_snapshot(self):
        store = LibraryStore(FakeScanner(error=RuntimeError("disk vanished")))
        previous = store.install([make_track("kept")])

        async def run():
            await store.refresh()

        asyncio.run(run())
        assert store.snapshot is previous
        status = store.status()
        assert status.state == "failed"
        assert "disk vanished" in status.last_error
        assert status.track_count == 1

    def test_success_clears_error(self):
        scanner = FakeScanner([make_track("a")], error=RuntimeError("boom"))
        store = LibraryStore(scanner)

        async def run():
            await store.refresh()
            scanner.error = None
            await store.refresh()

        asyncio.run(run())
        assert store.status().state == "ready"
        assert store.status().last_error is None

    def test_cancel_keeps_previous_snapshot(self):
        scanner = FakeScanner([make_track("never")])
        store = LibraryStore(scanner)
        previous = store.install([make_track("kept")])

        async def run():
            scanner.gate = asyncio.Event()
            store.refresh()
            await asyncio.sleep(0)
            assert store.cancel() is True
            return await store.wait_until_ready()

        snapshot = asyncio.run(run())
        assert snapshot is previous
        assert not store.is_scanning
        assert [t.title for t in store.snapshot.tracks] == ["kept"]


class TestInstall:
    def test_install_is_synchronous(self):
        store = LibraryStore(FakeScanner())
        snapshot = store.install([make_track("a"), make_track("b")])
        assert store.snapshot is snapshot
        assert store.status().state == "ready"
        assert store.snapshot.index.get_track("/lib/a.mp3").title == "a"

    def test_uses_store_threshold(self):
        store = LibraryStore(FakeScanner(), fuzzy_threshold=0.0)
        store.install([make_track("strobe")])
        assert store.snapshot.index.search("strobx") == []
        assert len(store.snapshot.index.search("strobe")) == 1
