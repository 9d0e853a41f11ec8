"""Replay/analysis utilities for recorded frame captures."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class CaptureEvent:
    line: int
    frame: int
    mode: str
    pixel_count: int
    payload: bytes


@dataclass
class CaptureReport:
    total_frames: int = 0
    full_frames: int = 0
    dirty_frames: int = 0
    pixel_bytes_total: int = 0
    pixel_counts: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class CaptureReplay:
    @staticmethod
    def _decode_hex(value: str) -> bytes:
        cleaned = value.strip()
        if len(cleaned) % 2 == 1:
            cleaned = cleaned[:-1]
        if not cleaned:
            return b""
        return bytes.fromhex(cleaned)

    def _parse_line(self, line_no: int, line: str) -> CaptureEvent | None:
        stripped = line.strip()
        if not stripped:
            return None
        obj = json.loads(stripped)
        return CaptureEvent(
            line=line_no,
            frame=int(obj.get("frame", -1)),
            mode=str(obj.get("mode") or "unknown"),
            pixel_count=int(obj.get("pixels", 0)),
            payload=self._decode_hex(str(obj.get("rgb_hex") or "")),
        )

    def parse(self, capture_path: Path) -> list[CaptureEvent]:
        events: list[CaptureEvent] = []
        for idx, line in enumerate(capture_path.read_text(encoding="utf-8").splitlines(), start=1):
            event = self._parse_line(idx, line)
            if event is not None:
                events.append(event)
        return events

    def run(self, capture_path: Path) -> CaptureReport:
        events = self.parse(capture_path)
        report = CaptureReport(total_frames=len(events))

        previous = -1
        for event in events:
            if event.mode == "full":
                report.full_frames += 1
            elif event.mode == "dirty":
                report.dirty_frames += 1

            report.pixel_bytes_total += len(event.payload)
            if event.pixel_count not in report.pixel_counts:
                report.pixel_counts.append(event.pixel_count)
            if len(event.payload) != event.pixel_count * 3 and "length_mismatch" not in report.errors:
                report.errors.append("length_mismatch")
            if event.frame <= previous and "non_sequential" not in report.errors:
                report.errors.append("non_sequential")
            previous = event.frame

        if report.total_frames < 1:
            report.errors.append("missing_frames")
        if len(report.pixel_counts) > 1:
            report.errors.append("pixel_count_changed")
        return report
