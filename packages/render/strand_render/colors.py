"""Color clamping, strand test patterns, and frame diff helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from strand_device.models import DirtySpan


PATTERNS = ("black", "white", "red", "green", "blue", "strands", "gradient", "checker")

_STRAND_COLORS = (
    (255, 0, 0),
    (0, 255, 0),
    (0, 0, 255),
    (255, 255, 0),
    (0, 255, 255),
    (255, 0, 255),
    (255, 255, 255),
    (255, 128, 0),
)


def clamp_channel(value: float) -> int:
    if isinstance(value, float) and math.isnan(value):
        return 0
    if value <= 0:
        return 0
    if value >= 255:
        return 255
    return int(value)


@dataclass(frozen=True)
class Color:
    r: int = 0
    g: int = 0
    b: int = 0

    def __post_init__(self) -> None:
        for name in ("r", "g", "b"):
            value = getattr(self, name)
            if not 0 <= value <= 255:
                raise ValueError(f"channel {name}={value} outside 0..255")

    @classmethod
    def clamped(cls, r: float, g: float, b: float) -> "Color":
        return cls(clamp_channel(r), clamp_channel(g), clamp_channel(b))

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


BLACK = Color(0, 0, 0)


def build_test_pattern(name: str, strand_count: int, pixels_per_strand: int) -> np.ndarray:
    total = strand_count * pixels_per_strand
    out = np.zeros((total, 3), dtype=np.uint8)

    if name == "black":
        pass
    elif name == "white":
        out[:] = (255, 255, 255)
    elif name == "red":
        out[:] = (255, 0, 0)
    elif name == "green":
        out[:] = (0, 255, 0)
    elif name == "blue":
        out[:] = (0, 0, 255)
    elif name == "strands":
        for strand in range(strand_count):
            start = strand * pixels_per_strand
            out[start : start + pixels_per_strand] = _STRAND_COLORS[strand % len(_STRAND_COLORS)]
    elif name == "gradient":
        ramp = (np.arange(pixels_per_strand) * 255 // max(pixels_per_strand - 1, 1)).astype(np.uint8)
        out[:] = np.repeat(np.tile(ramp, strand_count)[:, None], 3, axis=1)
    elif name == "checker":
        out[(np.arange(total) // 4) % 2 == 0] = (255, 255, 255)
    else:
        raise ValueError(f"Unknown pattern: {name}")
    return out


def compute_dirty_spans(
    previous: np.ndarray,
    current: np.ndarray,
    tile: int = 16,
    max_ratio: float = 0.35,
) -> list[DirtySpan]:
    if previous.shape != current.shape:
        raise ValueError("Frame sizes must match")

    total = current.shape[0]
    changed = np.any(previous != current, axis=1)
    if not changed.any():
        return []

    changed_tiles = [start for start in range(0, total, tile) if changed[start : start + tile].any()]
    changed_pixels = len(changed_tiles) * tile
    if changed_pixels / total > max_ratio:
        return [DirtySpan(start=0, length=total)]

    first = changed_tiles[0]
    last = changed_tiles[-1]
    return [DirtySpan(start=first, length=min(total - first, (last - first) + tile))]
