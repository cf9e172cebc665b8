"""Decode error taxonomy.

Callers tell "could not read the source" apart from "read it, but the content
is unusable" by catching (or receiving) one of the three subclasses.
"""

from __future__ import annotations


class DecodeError(Exception):
    code = "decode_error"

    def __init__(self, message: str, source_key: str | None = None) -> None:
        super().__init__(message)
        self.source_key = source_key

    def __str__(self) -> str:
        msg = super().__str__()
        return f"{msg} ({self.source_key})" if self.source_key else msg


class SourceUnreadable(DecodeError):
    """Source could not be opened, or became unreadable mid-read."""

    code = "source_unreadable"


class UnrecognizedFormat(DecodeError):
    """Header bytes do not match any encoding the decode primitive supports."""

    code = "unrecognized_format"


class DecodeFailed(DecodeError):
    """Format recognized, but pixel data is truncated, corrupt or unsupported."""

    code = "decode_failed"
