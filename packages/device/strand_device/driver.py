"""Device driver capability shared by every physical or simulated backend."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Protocol, Sequence

import numpy as np

from .models import (
    DeviceError,
    DeviceErrorCode,
    DeviceOpenResult,
    DirtySpan,
    DriverState,
    RefreshStats,
    describe_error,
)


class StatsSink(Protocol):
    def record_device_bytes(self, count: int) -> None: ...


class DeviceDriver(ABC):
    """Opens an output channel and pushes pixel arrays to it.

    ``refresh`` receives a read-only ``(n, 3)`` uint8 array. ``dirty=None``
    asks for a full refresh, an empty sequence means nothing changed, and a
    list of spans allows the backend to limit what it sends.
    """

    name = "base"

    def __init__(self) -> None:
        self.state = DriverState.CLOSED
        self.strand_count = 0
        self.pixels_per_strand = 0
        self.refresh_count = 0

    @property
    def is_open(self) -> bool:
        return self.state in (DriverState.OPEN, DriverState.DEGRADED)

    @property
    def total_pixels(self) -> int:
        return self.strand_count * self.pixels_per_strand

    @staticmethod
    def describe_error(code: int) -> str:
        return describe_error(code)

    def open(self, strand_count: int, pixels_per_strand: int) -> DeviceOpenResult:
        if strand_count < 1 or pixels_per_strand < 1:
            raise DeviceError(DeviceErrorCode.VALUE, f"{strand_count} strands x {pixels_per_strand} pixels")
        if self.is_open:
            self.close()

        self.strand_count = strand_count
        self.pixels_per_strand = pixels_per_strand
        try:
            warning = self._open_device(strand_count, pixels_per_strand)
        except DeviceError:
            self.state = DriverState.FAILED
            raise

        self.state = DriverState.DEGRADED if warning is not None else DriverState.OPEN
        return DeviceOpenResult(
            ready=True,
            strand_count=strand_count,
            pixels_per_strand=pixels_per_strand,
            warning=warning,
        )

    def refresh(
        self,
        pixels: np.ndarray,
        stats: StatsSink,
        dirty: Sequence[DirtySpan] | None = None,
    ) -> RefreshStats:
        self.refresh_count += 1
        if not self.is_open:
            raise DeviceError(DeviceErrorCode.WRITE, "device is not open")
        if pixels.shape != (self.total_pixels, 3):
            raise DeviceError(DeviceErrorCode.VALUE, f"expected {self.total_pixels} pixels, got {pixels.shape[0]}")

        if dirty is not None and not dirty:
            return RefreshStats(mode="noop")

        start = time.perf_counter()
        result = self._write_frame(pixels, None if dirty is None else list(dirty))
        result.mode = "full" if dirty is None else "dirty"
        result.duration_s = time.perf_counter() - start
        stats.record_device_bytes(result.bytes_sent)
        return result

    def close(self) -> None:
        if self.state is DriverState.CLOSED:
            return
        try:
            self._close_device()
        finally:
            self.state = DriverState.CLOSED

    def strand_limits(self, dirty: Sequence[DirtySpan]) -> list[int]:
        """Per-strand count of leading pixels that must be resent."""
        limits = [0] * self.strand_count
        per = self.pixels_per_strand
        for span in dirty:
            if span.length <= 0:
                continue
            first = max(span.start, 0) // per
            last = min(span.end - 1, self.total_pixels - 1) // per
            for strand in range(first, last + 1):
                limits[strand] = max(limits[strand], min(span.end - strand * per, per))
        return limits

    @abstractmethod
    def _open_device(self, strand_count: int, pixels_per_strand: int) -> DeviceError | None:
        """Open the backend; return a non-fatal warning or raise a fatal DeviceError."""

    @abstractmethod
    def _write_frame(self, pixels: np.ndarray, dirty: list[DirtySpan] | None) -> RefreshStats:
        ...

    @abstractmethod
    def _close_device(self) -> None:
        ...
