"""Tests for the Library Scanner: traversal, folder attribution and failure isolation."""

import asyncio
import wave
from pathlib import Path

import pytest

from mcp_crate import scanner as scanner_module
from mcp_crate.metadata import MetadataError
from mcp_crate.models import Track
from mcp_crate.scanner import LibraryScanner


def write_wav(path, seconds=0.1, rate=8000):
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(rate)
        w.writeframes(b"\x00\x00" * int(rate * seconds))
    return path


def touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


def fake_extract(path, folder=None, folder_path=None):
    path = Path(path)
    if path.stem.startswith("bad"):
        raise MetadataError(path, "corrupt")
    return Track(
        id=str(path), file_path=str(path), filename=path.name, title=path.stem,
        folder=folder, folder_path=folder_path,
    )


@pytest.fixture
def fake_extractor(monkeypatch):
    monkeypatch.setattr(scanner_module, "extract_track", fake_extract)


def scan(root, **kwargs):
    return asyncio.run(LibraryScanner(root, **kwargs).scan())


class TestRealFiles:
    def test_wav_files_and_folder_attribution(self, tmp_path):
        write_wav(tmp_path / "Genres" / "@Eurodance Brazil" / "tone.wav")
        write_wav(tmp_path / "intro.wav")
        (tmp_path / "notes.txt").write_text("not music")
        (tmp_path / "broken.mp3").write_bytes(b"not really audio " * 32)

        tracks = {t.filename: t for t in scan(tmp_path)}

        assert set(tracks) == {"tone.wav", "intro.wav"}
        tone = tracks["tone.wav"]
        assert tone.folder == "@Eurodance Brazil"
        assert tone.folder_path == "Genres/@Eurodance Brazil"
        assert tone.id == str((tmp_path / "Genres" / "@Eurodance Brazil" / "tone.wav").absolute())
        assert tone.duration == pytest.approx(0.1, abs=0.01)

        intro = tracks["intro.wav"]
        assert intro.folder == tmp_path.name
        assert intro.folder_path == ""


class TestTraversal:
    def test_missing_root_is_empty(self, tmp_path):
        assert scan(tmp_path / "does-not-exist") == []

    def test_root_that_is_a_file_is_empty(self, tmp_path):
        assert scan(touch(tmp_path / "file.mp3")) == []

    def test_empty_root(self, tmp_path):
        assert scan(tmp_path) == []

    def test_deep_nesting(self, tmp_path, fake_extractor):
        touch(tmp_path / "a" / "b" / "c" / "d" / "deep.mp3")
        [track] = scan(tmp_path)
        assert track.folder == "d"
        assert track.folder_path == "a/b/c/d"

    def test_non_audio_ignored(self, tmp_path, fake_extractor):
        touch(tmp_path / "cover.jpg")
        touch(tmp_path / "._song.mp3")
        touch(tmp_path / "song.mp3")
        assert [t.filename for t in scan(tmp_path)] == ["song.mp3"]

    def test_deterministic_order(self, tmp_path, fake_extractor):
        for name in ["b.mp3", "a.mp3", "Zed/c.mp3", "Alpha/d.mp3"]:
            touch(tmp_path / name)
        first = [t.id for t in scan(tmp_path)]
        assert first == [t.id for t in scan(tmp_path)]
        # files of a directory come before its subdirectories
        assert [Path(i).name for i in first] == ["a.mp3", "b.mp3", "d.mp3", "c.mp3"]

    def test_ids_unique(self, tmp_path, fake_extractor):
        for i in range(20):
            touch(tmp_path / f"dir{i % 4}" / f"song{i}.mp3")
        ids = [t.id for t in scan(tmp_path)]
        assert len(ids) == len(set(ids)) == 20

    def test_bounded_workers(self, tmp_path, fake_extractor):
        for i in range(12):
            touch(tmp_path / f"song{i:02d}.mp3")
        assert len(scan(tmp_path, max_workers=2)) == 12

    def test_custom_extensions(self, tmp_path, fake_extractor):
        touch(tmp_path / "a.mp3")
        touch(tmp_path / "b.flac")
        assert [t.filename for t in scan(tmp_path, extensions={".FLAC"})] == ["b.flac"]


class TestFailureIsolation:
    def test_bad_file_skipped(self, tmp_path, fake_extractor):
        touch(tmp_path / "Set" / "bad_one.mp3")
        touch(tmp_path / "Set" / "good.mp3")
        touch(tmp_path / "other.mp3")
        assert sorted(t.filename for t in scan(tmp_path)) == ["good.mp3", "other.mp3"]

    def test_unexpected_error_skipped(self, tmp_path, monkeypatch):
        def explode(path, folder=None, folder_path=None):
            if Path(path).name == "boom.mp3":
                raise RuntimeError("decoder crashed")
            return fake_extract(path, folder, folder_path)

        monkeypatch.setattr(scanner_module, "extract_track", explode)
        touch(tmp_path / "boom.mp3")
        touch(tmp_path / "fine.mp3")
        assert [t.filename for t in scan(tmp_path)] == ["fine.mp3"]

    def test_unreadable_directory_skipped(self, tmp_path, monkeypatch, fake_extractor):
        touch(tmp_path / "Locked" / "hidden.mp3")
        touch(tmp_path / "Open" / "visible.mp3")
        original = LibraryScanner._list_dir

        def list_dir(self, directory):
            if directory.name == "Locked":
                raise PermissionError(13, "Permission denied", str(directory))
            return original(self, directory)

        monkeypatch.setattr(LibraryScanner, "_list_dir", list_dir)
        assert [t.filename for t in scan(tmp_path)] == ["visible.mp3"]
