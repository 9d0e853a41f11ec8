"""Pixel buffer, frame generators, and frame helpers for LED strands."""

from .buffer import AllocationError, PixelBuffer
from .colors import BLACK, PATTERNS, Color, build_test_pattern, clamp_channel, compute_dirty_spans
from .generator import (
    GENERATOR_MODES,
    ExternalInputGenerator,
    FrameGenerator,
    ProceduralGenerator,
    make_generator,
)
from .preview import FramePreview

__all__ = [
    "AllocationError",
    "BLACK",
    "Color",
    "ExternalInputGenerator",
    "FrameGenerator",
    "FramePreview",
    "GENERATOR_MODES",
    "PATTERNS",
    "PixelBuffer",
    "ProceduralGenerator",
    "build_test_pattern",
    "clamp_channel",
    "compute_dirty_spans",
    "make_generator",
]
