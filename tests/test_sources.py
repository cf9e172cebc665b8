from __future__ import annotations

import io
from pathlib import Path

import pytest

from bounded_decode.errors import SourceUnreadable
from bounded_decode.sources import ByteStream, EmbeddedResource, FilePath, open_source


class _NoSeek(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False


def _make_package(root: Path, name: str, files: dict[str, bytes]) -> None:
    pkg = root / name
    pkg.mkdir()
    (pkg / "__init__.py").write_text("", encoding="utf-8")
    for rel, data in files.items():
        (pkg / rel).write_bytes(data)


def test_file_path_key_is_absolute(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    assert FilePath("a.png").key == f"file:{(tmp_path / 'a.png').resolve().as_posix()}"


def test_file_path_opens_fresh_reader_each_pass(tmp_path: Path) -> None:
    path = tmp_path / "data.bin"
    path.write_bytes(b"abcdef")
    source = FilePath(path)

    for _ in range(2):
        with open_source(source) as fh:
            assert fh.read() == b"abcdef"
        assert fh.closed


def test_missing_file_raises_source_unreadable(tmp_path: Path) -> None:
    with pytest.raises(SourceUnreadable), open_source(FilePath(tmp_path / "missing.png")):
        pass


def test_directory_is_not_openable(tmp_path: Path) -> None:
    with pytest.raises(SourceUnreadable), open_source(FilePath(tmp_path)):
        pass


def test_embedded_resource_reads_package_data(tmp_path: Path, monkeypatch) -> None:
    _make_package(tmp_path, "bd_assets_read", {"logo.bin": b"\x89PNG..."})
    monkeypatch.syspath_prepend(str(tmp_path))
    source = EmbeddedResource("bd_assets_read", "logo.bin")

    assert source.key == "resource:bd_assets_read/logo.bin"
    with open_source(source) as fh:
        assert fh.read() == b"\x89PNG..."


def test_embedded_resource_missing_name(tmp_path: Path, monkeypatch) -> None:
    _make_package(tmp_path, "bd_assets_missing", {})
    monkeypatch.syspath_prepend(str(tmp_path))

    with pytest.raises(SourceUnreadable), open_source(EmbeddedResource("bd_assets_missing", "nope.png")):
        pass


def test_embedded_resource_missing_package() -> None:
    with pytest.raises(SourceUnreadable), open_source(EmbeddedResource("bd_no_such_package_xyz", "a.png")):
        pass


def test_byte_stream_bytes_are_reopenable() -> None:
    source = ByteStream(b"payload")
    for _ in range(2):
        with open_source(source) as fh:
            assert fh.read() == b"payload"


def test_byte_stream_file_object_is_rewound_and_left_open() -> None:
    stream = io.BytesIO(b"payload")
    stream.seek(4)
    source = ByteStream(stream, name="upload")

    with open_source(source) as fh:
        assert fh.read() == b"payload"
    assert not stream.closed
    assert source.key == "stream:upload"


def test_closed_byte_stream_is_source_unreadable() -> None:
    stream = io.BytesIO(b"payload")
    stream.close()

    with pytest.raises(SourceUnreadable), open_source(ByteStream(stream)):
        pass


def test_unseekable_byte_stream_is_source_unreadable() -> None:
    with pytest.raises(SourceUnreadable), open_source(ByteStream(_NoSeek())):
        pass


def test_unnamed_streams_get_distinct_keys() -> None:
    first, second = ByteStream(b"a"), ByteStream(b"a")
    assert first.key != second.key


def test_unknown_source_type_is_rejected() -> None:
    with pytest.raises(TypeError), open_source("photo.jpg"):  # type: ignore[arg-type]
        pass


def test_unnamed_stream_keys_are_not_reused_after_collection() -> None:
    keys = set()
    for _ in range(50):
        keys.add(ByteStream(b"a").key)  # each instance is dropped right away
    assert len(keys) == 50
