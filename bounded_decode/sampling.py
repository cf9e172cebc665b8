"""Sample-factor policy for bounded decoding.

Pure functions only: no I/O and no decode primitive imports, so this module
is usable (and testable) without libvips installed.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"dimensions must be positive, got {self.width}x{self.height}")


@dataclass(frozen=True)
class Bounds:
    max_width: int
    max_height: int

    def __post_init__(self) -> None:
        if self.max_width <= 0 or self.max_height <= 0:
            raise ValueError(f"bounds must be positive, got {self.max_width}x{self.max_height}")

    def contains(self, size: Dimensions) -> bool:
        return size.width <= self.max_width and size.height <= self.max_height


def compute_sample_factor(intrinsic: Dimensions, bounds: Bounds) -> int:
    """Return the power-of-two sample factor for decoding ``intrinsic`` into ``bounds``.

    Images already inside the bounds are never downsampled. Otherwise the
    factor doubles while both axes, divided by the factor, stay above half of
    their bound. The half-bound threshold is kept as-is; it may stop one step
    later than a full-bound comparison would.
    """
    if bounds.contains(intrinsic):
        return 1

    half_width = bounds.max_width // 2
    half_height = bounds.max_height // 2
    factor = 1
    while intrinsic.height // factor > half_height and intrinsic.width // factor > half_width:
        factor *= 2
    return factor


def is_sample_factor(value: int) -> bool:
    return isinstance(value, int) and value >= 1 and value & (value - 1) == 0
