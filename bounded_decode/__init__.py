"""Bounded image decoding.

Decode an image no larger than a caller-supplied bound, paying only for the
downsampled pixels:

Usage:
    from bounded_decode import FilePath, decode_bounded

    image = decode_bounded(FilePath("photo.jpg"), 2000, 2000)
    image.pixels  # (height, width, channels) uint8

The Qt wrapper lives in ``bounded_decode.loader`` and needs PySide6.
"""

from .config import DecodeOptions
from .decoder import (
    DecodedImage,
    PixelFormat,
    decode,
    decode_bounded,
    decode_bounded_to,
    probe,
    try_decode_bounded,
)
from .errors import DecodeError, DecodeFailed, SourceUnreadable, UnrecognizedFormat
from .sampling import Bounds, Dimensions, compute_sample_factor
from .sources import ByteStream, EmbeddedResource, FilePath, ImageSource

__all__ = [
    "Bounds",
    "ByteStream",
    "DecodeError",
    "DecodeFailed",
    "DecodeOptions",
    "DecodedImage",
    "Dimensions",
    "EmbeddedResource",
    "FilePath",
    "ImageSource",
    "PixelFormat",
    "SourceUnreadable",
    "UnrecognizedFormat",
    "compute_sample_factor",
    "decode",
    "decode_bounded",
    "decode_bounded_to",
    "probe",
    "try_decode_bounded",
]
