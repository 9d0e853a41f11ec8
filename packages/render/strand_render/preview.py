"""PNG previews of pixel frames, one row of cells per strand."""

from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw


class FramePreview:
    """Draws each pixel as a square cell so frames can be inspected or diffed."""

    def __init__(self, strand_count: int, pixels_per_strand: int, scale: int = 8, gap: int = 1) -> None:
        self.strand_count = strand_count
        self.pixels_per_strand = pixels_per_strand
        self.scale = max(1, scale)
        self.gap = max(0, gap)

    @property
    def size(self) -> tuple[int, int]:
        pitch = self.scale + self.gap
        return (self.pixels_per_strand * pitch + self.gap, self.strand_count * pitch + self.gap)

    def render_image(self, pixels: np.ndarray) -> Image.Image:
        expected = self.strand_count * self.pixels_per_strand
        if pixels.shape != (expected, 3):
            raise ValueError(f"Frame must hold {expected} pixels")

        image = Image.new("RGB", self.size, (16, 16, 16))
        draw = ImageDraw.Draw(image)
        pitch = self.scale + self.gap
        grid = pixels.reshape((self.strand_count, self.pixels_per_strand, 3))
        for strand in range(self.strand_count):
            y0 = self.gap + strand * pitch
            for idx in range(self.pixels_per_strand):
                x0 = self.gap + idx * pitch
                r, g, b = (int(v) for v in grid[strand, idx])
                draw.rectangle((x0, y0, x0 + self.scale - 1, y0 + self.scale - 1), fill=(r, g, b))
        return image

    def save_png(self, pixels: np.ndarray, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        self.render_image(pixels).save(path, format="PNG")
        return path

