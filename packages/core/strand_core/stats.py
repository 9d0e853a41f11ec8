"""Pipeline counters and frame timing."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Stats:
    """Counters owned by the render thread; never reset while running."""

    frames: int = 0
    refresh_errors: int = 0
    bytes_received: int = 0
    bytes_sent: int = 0
    device_bytes: int = 0
    last_error_code: int = 0
    started_at: float = field(default_factory=time.time)
    last_frame_s: float = 0.0
    min_frame_s: float = 0.0
    max_frame_s: float = 0.0
    total_frame_s: float = 0.0

    @classmethod
    def init(cls) -> "Stats":
        return cls()

    def record_frame(self, duration_hint: float = 0.0) -> None:
        duration = max(float(duration_hint), 0.0)
        self.frames += 1
        self.last_frame_s = duration
        self.total_frame_s += duration
        if self.frames == 1 or duration < self.min_frame_s:
            self.min_frame_s = duration
        if duration > self.max_frame_s:
            self.max_frame_s = duration

    def record_error(self, code: int) -> None:
        self.refresh_errors += 1
        self.last_error_code = int(code)

    def record_received(self, count: int) -> None:
        self.bytes_received += max(int(count), 0)

    def record_sent(self, count: int) -> None:
        self.bytes_sent += max(int(count), 0)

    def record_device_bytes(self, count: int) -> None:
        self.device_bytes += max(int(count), 0)

    def uptime_s(self, now: float | None = None) -> float:
        return max((now if now is not None else time.time()) - self.started_at, 0.0)

    def average_fps(self, now: float | None = None) -> float:
        uptime = self.uptime_s(now)
        if uptime <= 0:
            return 0.0
        return self.frames / uptime

    def average_frame_s(self) -> float:
        if self.frames == 0:
            return 0.0
        return self.total_frame_s / self.frames

    def snapshot(self, now: float | None = None) -> dict[str, Any]:
        return {
            "frames": self.frames,
            "refresh_errors": self.refresh_errors,
            "bytes_received": self.bytes_received,
            "bytes_sent": self.bytes_sent,
            "device_bytes": self.device_bytes,
            "last_error_code": self.last_error_code,
            "uptime_s": round(self.uptime_s(now), 3),
            "average_fps": round(self.average_fps(now), 2),
            "frame_ms": {
                "last": round(self.last_frame_s * 1000, 3),
                "min": round(self.min_frame_s * 1000, 3),
                "max": round(self.max_frame_s * 1000, 3),
                "avg": round(self.average_frame_s() * 1000, 3),
            },
        }
