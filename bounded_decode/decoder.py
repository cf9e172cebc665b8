"""Bounded image decoder using pyvips.

Decoding is split into two passes over the source: a header-only probe that
learns the intrinsic size, and a pixel decode that applies the sample factor
inside the libvips pipeline (JPEG shrink-on-load, then a streaming block
shrink) so no full-resolution buffer is ever materialized.
"""

from __future__ import annotations

import contextlib
import enum
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, BinaryIO, NoReturn

import numpy as np

from .config import DEFAULT_OPTIONS, DecodeOptions
from .errors import DecodeError, DecodeFailed, SourceUnreadable, UnrecognizedFormat
from .logger import get_logger
from .metrics import metrics
from .sampling import Bounds, Dimensions, compute_sample_factor, is_sample_factor
from .sources import ImageSource, is_closed, open_source

_logger = get_logger("decoder")

# libjpeg can only scale by these factors while decoding DCT blocks
_JPEG_MAX_SHRINK = 8
_GREY_INTERPRETATIONS = ("b-w", "grey16")


class PixelFormat(str, enum.Enum):
    GRAY8 = "gray8"
    RGB888 = "rgb888"
    RGBA8888 = "rgba8888"

    @property
    def channels(self) -> int:
        return _CHANNELS[self]

    @classmethod
    def from_channels(cls, channels: int) -> PixelFormat:
        for fmt, n in _CHANNELS.items():
            if n == channels:
                return fmt
        raise ValueError(f"no pixel format with {channels} channels")


_CHANNELS = {PixelFormat.GRAY8: 1, PixelFormat.RGB888: 3, PixelFormat.RGBA8888: 4}


@dataclass(frozen=True, eq=False)
class DecodedImage:
    """Decoded raster owned by the caller.

    ``pixels`` is a (height, width, channels) uint8 array viewing the single
    buffer produced by the decode. It is read-only; call ``pixels.copy()``
    before mutating.
    """

    pixels: np.ndarray
    width: int
    height: int
    pixel_format: PixelFormat
    sample_factor: int = 1
    source_size: Dimensions | None = None

    @property
    def size(self) -> Dimensions:
        return Dimensions(self.width, self.height)


_pyvips: Any | None = None


def _get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        # Every call opens its own source; the operation cache would only pin them.
        with contextlib.suppress(Exception):
            pyvips.cache_set_max(0)
            pyvips.cache_set_max_mem(0)
            pyvips.cache_set_max_files(0)
        _pyvips = pyvips
    return _pyvips


class _VipsReader:
    """Feed a Python binary reader to libvips, remembering I/O failures.

    Exceptions cannot cross the libvips callback boundary, so a failed read is
    reported to libvips as EOF and kept here for the caller to re-raise.
    """

    def __init__(self, fh: BinaryIO) -> None:
        self.fh = fh
        self.error: Exception | None = None

    def read(self, size: int) -> bytes:
        try:
            return self.fh.read(size) or b""
        except (OSError, ValueError) as e:
            self.error = e
            return b""

    def seek(self, offset: int, whence: int) -> int:
        try:
            return self.fh.seek(offset, whence)
        except (OSError, ValueError) as e:
            self.error = e
            return -1

    def vips_source(self, pyvips: Any) -> Any:
        source = pyvips.SourceCustom()
        source.on_read(self.read)
        source.on_seek(self.seek)
        return source

    @property
    def broken(self) -> bool:
        return self.error is not None or is_closed(self.fh)


def _find_loader(pyvips: Any, vsource: Any) -> str | None:
    """Name of the libvips loader that recognizes the source header, or None."""
    name = pyvips.vips_lib.vips_foreign_find_load_source(vsource.pointer)
    if name == pyvips.ffi.NULL:
        return None
    return pyvips.ffi.string(name).decode("utf-8")


def _vips_message(exc: BaseException) -> str:
    detail = (getattr(exc, "detail", None) or str(exc)).strip()
    return detail.splitlines()[0] if detail else type(exc).__name__


def _raise_for(
    reader: _VipsReader, source: ImageSource, exc: BaseException | None, cls: type[DecodeError], what: str
) -> NoReturn:
    if reader.broken:
        cause = reader.error or exc
        reason = reader.error or "stream closed"
        raise SourceUnreadable(f"source became unreadable: {reason}", source.key) from cause
    if exc is None:
        raise cls(what, source.key)
    raise cls(f"{what}: {_vips_message(exc)}", source.key) from exc


@contextlib.contextmanager
def _recording(op: str) -> Iterator[None]:
    metrics.inc(f"decoder.{op}")
    with metrics.timed(f"decoder.{op}_duration"):
        try:
            yield
        except DecodeError as e:
            metrics.inc(f"decoder.errors.{e.code}")
            _logger.debug("%s failed: %s", op, e)
            raise


def probe(source: ImageSource) -> Dimensions:
    """Read only the header of ``source`` and return its intrinsic size."""
    pyvips = _get_pyvips_module()
    with _recording("probe"), open_source(source) as fh:
        reader = _VipsReader(fh)
        vsource = reader.vips_source(pyvips)
        loader = _find_loader(pyvips, vsource)
        if loader is None:
            _raise_for(reader, source, None, UnrecognizedFormat, "no loader recognizes the header")
        try:
            header = pyvips.Image.new_from_source(vsource, "", access="sequential")
            size = Dimensions(header.width, header.height)
        except (pyvips.Error, ValueError) as e:
            _raise_for(reader, source, e, UnrecognizedFormat, "cannot parse header")
    _logger.debug("probe: %s loader=%s size=%dx%d", source.key, loader, size.width, size.height)
    return size


def _to_pixel_format(image: Any, options: DecodeOptions) -> Any:
    grey = image.interpretation in _GREY_INTERPRETATIONS
    if options.pixel_format == "native" and grey and not image.hasalpha():
        image = image.colourspace("b-w")
    else:
        image = image.colourspace("srgb")

    if options.pixel_format == "rgb":
        if image.hasalpha():
            image = image.flatten(background=list(options.flatten_background))
        if image.bands > 3:
            image = image.extract_band(0, n=3)
    elif options.pixel_format == "rgba":
        if image.bands > 4:
            image = image.extract_band(0, n=4)
        elif image.bands == 3:
            image = image.bandjoin(255)
    elif image.bands not in (1, 3, 4):
        raise ValueError(f"unsupported band count: {image.bands}")

    if image.format != "uchar":
        image = image.cast("uchar")
    return image


def decode(
    source: ImageSource, factor: int, options: DecodeOptions | None = None, intrinsic: Dimensions | None = None
) -> DecodedImage:
    """Decode ``source`` taking one pixel per ``factor`` x ``factor`` block.

    The source is opened again (independently of ``probe``). ``intrinsic`` is
    the probed size when the caller already has it; otherwise it is read from
    the header, which for JPEG shrink-on-load costs one extra header pass. Raises
    ``SourceUnreadable`` or ``DecodeFailed``; never returns a partial image.
    """
    if not is_sample_factor(factor):
        raise ValueError(f"sample factor must be a power of two >= 1, got {factor!r}")
    options = options or DEFAULT_OPTIONS
    pyvips = _get_pyvips_module()

    with _recording("decode"), open_source(source) as fh:
        reader = _VipsReader(fh)
        vsource = reader.vips_source(pyvips)
        loader = _find_loader(pyvips, vsource)
        if loader is None:
            _raise_for(reader, source, None, DecodeFailed, "source no longer matches a known format")

        load_kwargs: dict[str, Any] = {"access": "sequential", "fail_on": "truncated"}
        remaining = factor
        if factor > 1 and options.shrink_on_load and loader.startswith("jpegload"):
            load_kwargs["shrink"] = min(factor, _JPEG_MAX_SHRINK)
            remaining = factor // load_kwargs["shrink"]

        try:
            image = pyvips.Image.new_from_source(vsource, "", **load_kwargs)
            if "shrink" not in load_kwargs and intrinsic is None:
                intrinsic = Dimensions(image.width, image.height)
            if remaining > 1:
                # Clamp per axis so a tiny axis never shrinks to nothing.
                image = image.shrink(min(remaining, image.width), min(remaining, image.height))
            image = _to_pixel_format(image, options)
            mem = image.write_to_memory()
        except (pyvips.Error, ValueError) as e:
            _raise_for(reader, source, e, DecodeFailed, "decode failed")

        width, height, bands = image.width, image.height, image.bands
        pixels = np.frombuffer(mem, dtype=np.uint8).reshape(height, width, bands)

    if intrinsic is None:
        intrinsic = probe(source)

    _logger.debug(
        "decode: %s loader=%s factor=%d shrink_on_load=%s out=%dx%dx%d",
        source.key,
        loader,
        factor,
        load_kwargs.get("shrink", 1),
        width,
        height,
        bands,
    )
    return DecodedImage(
        pixels=pixels,
        width=width,
        height=height,
        pixel_format=PixelFormat.from_channels(bands),
        sample_factor=factor,
        source_size=intrinsic,
    )


def decode_bounded_to(source: ImageSource, bounds: Bounds, options: DecodeOptions | None = None) -> DecodedImage:
    intrinsic = probe(source)
    factor = compute_sample_factor(intrinsic, bounds)
    _logger.debug(
        "bounded decode: %s intrinsic=%dx%d bounds=%dx%d factor=%d",
        source.key,
        intrinsic.width,
        intrinsic.height,
        bounds.max_width,
        bounds.max_height,
        factor,
    )
    return decode(source, factor, options, intrinsic)


def decode_bounded(
    source: ImageSource, max_width: int, max_height: int, options: DecodeOptions | None = None
) -> DecodedImage:
    """Probe, pick the sample factor for the bounds, then decode.

    Raises ``SourceUnreadable``, ``UnrecognizedFormat`` or ``DecodeFailed``.
    """
    return decode_bounded_to(source, Bounds(max_width, max_height), options)


def try_decode_bounded(
    source: ImageSource, max_width: int, max_height: int, options: DecodeOptions | None = None
) -> tuple[DecodedImage | None, DecodeError | None]:
    """Like ``decode_bounded`` but returns (image|None, error|None) instead of raising."""
    try:
        return decode_bounded(source, max_width, max_height, options), None
    except DecodeError as e:
        return None, e
