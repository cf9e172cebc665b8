"""Image source variants.

An ``ImageSource`` only knows how to hand out a fresh binary reader on demand.
The decoder opens it once for the header probe and once more for the pixel
decode, so every variant must be re-openable.
"""

from __future__ import annotations

import io
import itertools
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import BinaryIO

from .errors import SourceUnreadable


def _abs_path(path: str | Path) -> Path:
    """Return an absolute path without requiring that it exists."""
    p = Path(path).expanduser()
    try:
        # strict=False avoids exceptions for non-existent paths.
        return p.resolve(strict=False)
    except OSError:
        return p.absolute()


@dataclass(frozen=True)
class EmbeddedResource:
    """A resource shipped inside an importable package (``package``/``name``)."""

    package: str
    name: str

    @property
    def key(self) -> str:
        return f"resource:{self.package}/{self.name}"


@dataclass(frozen=True)
class FilePath:
    path: str | Path

    @property
    def key(self) -> str:
        return f"file:{_abs_path(self.path).as_posix()}"


_stream_ids = itertools.count(1)


@dataclass(frozen=True, eq=False)
class ByteStream:
    """Caller-owned encoded bytes.

    ``data`` is either ``bytes`` or a seekable binary file object. File objects
    are rewound before each pass and are never closed by the decoder; closing
    one from another thread aborts an in-flight decode.
    """

    data: bytes | bytearray | memoryview | BinaryIO
    name: str | None = field(default=None)
    serial: int = field(default_factory=lambda: next(_stream_ids), init=False, repr=False)

    @property
    def key(self) -> str:
        return f"stream:{self.name}" if self.name else f"stream:#{self.serial}"


ImageSource = EmbeddedResource | FilePath | ByteStream


@contextmanager
def open_source(source: ImageSource) -> Iterator[BinaryIO]:
    """Open ``source`` for one read pass, raising ``SourceUnreadable`` on failure."""
    if isinstance(source, FilePath):
        try:
            fh = open(_abs_path(source.path), "rb")  # noqa: SIM115
        except OSError as e:
            raise SourceUnreadable(f"cannot open file: {e.strerror or e}", source.key) from e
        with fh:
            yield fh
    elif isinstance(source, EmbeddedResource):
        try:
            fh = resources.files(source.package).joinpath(source.name).open("rb")
        except (ImportError, TypeError, OSError) as e:
            raise SourceUnreadable(f"cannot open resource: {e}", source.key) from e
        with fh:
            yield fh
    elif isinstance(source, ByteStream):
        if isinstance(source.data, (bytes, bytearray, memoryview)):
            with io.BytesIO(source.data) as fh:
                yield fh
            return
        stream = source.data
        if getattr(stream, "closed", False):
            raise SourceUnreadable("stream is closed", source.key)
        try:
            if not stream.seekable():
                raise SourceUnreadable("stream is not seekable", source.key)
            stream.seek(0)
        except (OSError, ValueError) as e:
            raise SourceUnreadable(f"cannot rewind stream: {e}", source.key) from e
        yield stream
    else:
        raise TypeError(f"unsupported image source: {type(source).__name__}")


def is_closed(fh: BinaryIO) -> bool:
    return bool(getattr(fh, "closed", False))
