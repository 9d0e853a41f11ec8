"""Frame generators: procedural sine animation and raw client color input."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

import numpy as np

from .buffer import PixelBuffer


GENERATOR_MODES = ("procedural", "external")

# Per-pixel increments for the three channel accumulators.
PIXEL_STEP = (0.273, -0.231, 0.428)
PACING_DIVISOR = 20000.0


class FrameGenerator(ABC):
    name = "base"

    @abstractmethod
    def generate(self, buffer: PixelBuffer, payload: bytes | None = None) -> None:
        """Write the next frame into ``buffer``. Must not keep a reference to it."""


class ProceduralGenerator(FrameGenerator):
    """Swirling colors from three sine accumulators.

    Output depends only on the phase and the pixel count, so two generators
    started at the same phase produce identical frames.
    """

    name = "procedural"

    def __init__(self, pixels_per_strand: int, phase: float = 0.0) -> None:
        self.phase = float(phase)
        self.step = pixels_per_strand / PACING_DIVISOR

    @staticmethod
    def base_accumulators(x: float) -> tuple[float, float, float]:
        return (
            math.sin(x) * 11.0,
            math.sin(x * 0.857 - 0.214) * -13.0,
            math.sin(x * -0.923 + 1.428) * 17.0,
        )

    def render(self, total_pixels: int, x: float) -> np.ndarray:
        acc = np.empty((total_pixels, 3), dtype=np.float64)
        acc[0] = self.base_accumulators(x)
        acc[1:] = PIXEL_STEP
        # Sequential accumulation, matching repeated += per pixel.
        acc = np.cumsum(acc, axis=0)
        values = (np.sin(acc) + 1.0) * 127.5
        return np.clip(values, 0.0, 255.0).astype(np.uint8)

    def generate(self, buffer: PixelBuffer, payload: bytes | None = None) -> None:
        buffer.pixels[:] = self.render(len(buffer), self.phase)
        self.phase += self.step


class ExternalInputGenerator(FrameGenerator):
    """Writes client bytes as RGB triplets starting at pixel 0.

    A trailing partial triplet and bytes past the end of the buffer are
    dropped; pixels the message does not reach keep their previous color.
    """

    name = "external"

    def __init__(self) -> None:
        self.last_written = 0

    def generate(self, buffer: PixelBuffer, payload: bytes | None = None) -> None:
        if not payload:
            self.last_written = 0
            return
        self.last_written = buffer.write_rgb(bytes(payload))


def make_generator(mode: str, pixels_per_strand: int, phase: float = 0.0) -> FrameGenerator:
    if mode == "procedural":
        return ProceduralGenerator(pixels_per_strand, phase=phase)
    if mode == "external":
        return ExternalInputGenerator()
    raise ValueError(f"Unknown generator mode: {mode}")
