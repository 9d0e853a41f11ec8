"""Simulated backend that records dispatched frames instead of emitting signals."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable

import numpy as np

from .driver import DeviceDriver
from .models import DeviceError, DeviceErrorCode, DirtySpan, RefreshStats


@dataclass(frozen=True)
class RecordedFrame:
    index: int
    mode: str
    pixels: np.ndarray
    dirty: tuple[DirtySpan, ...] | None


class RecordingDriver(DeviceDriver):
    """Keeps a copy of every frame; optionally writes frames to a JSONL capture."""

    name = "sim"

    def __init__(
        self,
        fail_frames: Iterable[int] = (),
        open_error: int | None = None,
        capture_path: Path | None = None,
    ) -> None:
        super().__init__()
        self.fail_frames = set(fail_frames)
        self.open_error = open_error
        self.capture_path = capture_path
        self.frames: list[RecordedFrame] = []
        self._capture: IO[str] | None = None

    @property
    def last_frame(self) -> RecordedFrame | None:
        return self.frames[-1] if self.frames else None

    def _open_device(self, strand_count: int, pixels_per_strand: int) -> DeviceError | None:
        warning = None
        if self.open_error is not None:
            err = DeviceError(self.open_error, "simulated")
            if err.fatal:
                raise err
            warning = err

        if self.capture_path is not None:
            self.capture_path.parent.mkdir(parents=True, exist_ok=True)
            self._capture = self.capture_path.open("w", encoding="utf-8")
        return warning

    def _write_frame(self, pixels: np.ndarray, dirty: list[DirtySpan] | None) -> RefreshStats:
        if self.refresh_count in self.fail_frames:
            raise DeviceError(DeviceErrorCode.WRITE, f"simulated failure on refresh {self.refresh_count}")

        frame = RecordedFrame(
            index=len(self.frames),
            mode="full" if dirty is None else "dirty",
            pixels=np.array(pixels, dtype=np.uint8, copy=True),
            dirty=None if dirty is None else tuple(dirty),
        )
        self.frames.append(frame)

        if self._capture is not None:
            row = {
                "frame": frame.index,
                "mode": frame.mode,
                "pixels": int(frame.pixels.shape[0]),
                "dirty": None if frame.dirty is None else [[s.start, s.length] for s in frame.dirty],
                "rgb_hex": frame.pixels.tobytes().hex(),
            }
            self._capture.write(json.dumps(row) + "\n")
            self._capture.flush()

        if dirty is None:
            sent = frame.pixels.size
        else:
            sent = sum(max(span.length, 0) for span in dirty) * 3
        return RefreshStats(bytes_sent=int(sent), packets_sent=1, strands_sent=self.strand_count)

    def _close_device(self) -> None:
        if self._capture is not None:
            self._capture.close()
            self._capture = None
