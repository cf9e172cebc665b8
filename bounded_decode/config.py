from __future__ import annotations

from dataclasses import dataclass

PIXEL_FORMATS = ("rgb", "rgba", "native")


@dataclass(frozen=True)
class DecodeOptions:
    """Per-call decode settings.

    pixel_format:
        "rgb" flattens alpha onto ``flatten_background`` and always yields 3 bands,
        "rgba" always yields 4 bands (opaque images get a solid alpha band),
        "native" keeps grey as 1 band and only widens grey+alpha to RGBA.
    shrink_on_load:
        Let the JPEG loader do DCT-domain downscaling before the generic shrink.
    """

    pixel_format: str = "rgb"
    shrink_on_load: bool = True
    flatten_background: tuple[int, int, int] = (0, 0, 0)

    def __post_init__(self) -> None:
        if self.pixel_format not in PIXEL_FORMATS:
            raise ValueError(f"unknown pixel_format {self.pixel_format!r}, expected one of {PIXEL_FORMATS}")
        if len(self.flatten_background) != 3 or any(not 0 <= c <= 255 for c in self.flatten_background):
            raise ValueError(f"flatten_background must be an RGB triple, got {self.flatten_background!r}")


DEFAULT_OPTIONS = DecodeOptions()
