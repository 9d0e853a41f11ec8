"""Fixed-length pixel storage covering every physical pixel on every strand."""

from __future__ import annotations

import numpy as np

from .colors import Color


class AllocationError(ValueError):
    pass


class PixelBuffer:
    """Ordered RGB pixels, strand 0 first.

    The length is fixed at allocation. Channel values live in a ``uint8``
    array so they cannot leave 0..255.
    """

    def __init__(self, strand_count: int, pixels_per_strand: int, data: np.ndarray) -> None:
        self.strand_count = strand_count
        self.pixels_per_strand = pixels_per_strand
        self._data = data

    @classmethod
    def allocate(cls, strand_count: int, pixels_per_strand: int) -> "PixelBuffer":
        if strand_count < 1 or pixels_per_strand < 1:
            raise AllocationError(
                f"Invalid pixel configuration: {strand_count} strands x {pixels_per_strand} pixels"
            )
        total = strand_count * pixels_per_strand
        try:
            data = np.zeros((total, 3), dtype=np.uint8)
        except MemoryError as exc:
            raise AllocationError(f"Could not allocate space for {total} pixels ({total * 3} bytes)") from exc
        return cls(strand_count, pixels_per_strand, data)

    def __len__(self) -> int:
        return self._data.shape[0]

    @property
    def pixels(self) -> np.ndarray:
        """Mutable backing array, for generators during their step only."""
        return self._data

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= len(self):
            raise IndexError(f"pixel index {index} out of range 0..{len(self) - 1}")

    def set(self, index: int, color: Color | tuple[float, float, float]) -> None:
        self._check_index(index)
        if not isinstance(color, Color):
            color = Color.clamped(*color)
        self._data[index] = color.as_tuple()

    def get(self, index: int) -> Color:
        self._check_index(index)
        r, g, b = (int(v) for v in self._data[index])
        return Color(r, g, b)

    def fill(self, color: Color) -> None:
        self._data[:] = color.as_tuple()

    def write_rgb(self, data: bytes, start: int = 0) -> int:
        """Copy RGB triplets from ``start``; returns the number of pixels written."""
        if start < 0 or start >= len(self):
            return 0
        count = min(len(data) // 3, len(self) - start)
        if count <= 0:
            return 0
        triplets = np.frombuffer(data, dtype=np.uint8, count=count * 3).reshape((count, 3))
        self._data[start : start + count] = triplets
        return count

    def as_slice(self) -> np.ndarray:
        view = self._data.view()
        view.flags.writeable = False
        return view

    def strand(self, index: int) -> np.ndarray:
        if index < 0 or index >= self.strand_count:
            raise IndexError(f"strand index {index} out of range 0..{self.strand_count - 1}")
        start = index * self.pixels_per_strand
        return self.as_slice()[start : start + self.pixels_per_strand]

    def snapshot(self) -> np.ndarray:
        return self._data.copy()

    def tobytes(self) -> bytes:
        return self._data.tobytes()
