"""P9813 (Total Control Lighting) strand driver over a USB serial adapter."""

from __future__ import annotations

import numpy as np
import serial

from .driver import DeviceDriver
from .models import DeviceError, DeviceErrorCode, DirtySpan, RefreshStats, SerialDevice
from .transport import DEFAULT_BAUD, SerialTransport


FTDI_VID = 0x0403
FT232R_PID = 0x6001

START_FRAME = bytes(4)
END_FRAME = bytes(4)


def auto_select_device(devices: list[SerialDevice]) -> SerialDevice | None:
    """Pick the first FTDI FT232R adapter, then any FTDI part."""
    for d in devices:
        if d.vid == FTDI_VID and d.pid == FT232R_PID:
            return d
    for d in devices:
        if d.vid == FTDI_VID or "FTDI" in (d.description or "").upper():
            return d
    return None


def p9813_flag(r: int, g: int, b: int) -> int:
    return 0xC0 | ((~b >> 6) & 0x03) << 4 | ((~g >> 6) & 0x03) << 2 | ((~r >> 6) & 0x03)


def pack_p9813(r: int, g: int, b: int) -> bytes:
    return bytes([p9813_flag(r, g, b), b & 0xFF, g & 0xFF, r & 0xFF])


def pixels_to_p9813(pixels: np.ndarray) -> bytes:
    arr = np.asarray(pixels, dtype=np.uint8).reshape((-1, 3))
    r = arr[:, 0]
    g = arr[:, 1]
    b = arr[:, 2]
    flag = 0xC0 | (((~b) >> 6) & 0x03) << 4 | (((~g) >> 6) & 0x03) << 2 | (((~r) >> 6) & 0x03)
    return np.stack([flag.astype(np.uint8), b, g, r], axis=1).tobytes()


class P9813Driver(DeviceDriver):
    """Streams each strand as start frame, packed pixels, end frame.

    P9813 chains latch as data shifts through, so a partial refresh only
    needs the prefix of a strand up to its furthest changed pixel.
    """

    name = "p9813"

    def __init__(
        self,
        transport: SerialTransport | None = None,
        port: str | None = None,
        baud: int = DEFAULT_BAUD,
    ) -> None:
        super().__init__()
        self.transport = transport or SerialTransport()
        self.port = port
        self.baud = baud

    def _resolve_port(self) -> str:
        if self.port:
            return self.port
        selected = auto_select_device(SerialTransport.discover())
        if selected is None:
            raise DeviceError(DeviceErrorCode.OPEN, "no compatible serial adapter found")
        return selected.device

    def _open_device(self, strand_count: int, pixels_per_strand: int) -> DeviceError | None:
        port = self._resolve_port()
        try:
            self.transport.open(port=port, baud=DEFAULT_BAUD)
        except (serial.SerialException, OSError) as exc:
            raise DeviceError(DeviceErrorCode.OPEN, str(exc)) from exc
        self.port = port

        if self.baud == DEFAULT_BAUD:
            return None
        try:
            self.transport.set_baud(self.baud)
        except (ValueError, serial.SerialException) as exc:
            return DeviceError(DeviceErrorCode.BAUDRATE, f"{self.baud} rejected, using {DEFAULT_BAUD}: {exc}")
        return None

    def _write_frame(self, pixels: np.ndarray, dirty: list[DirtySpan] | None) -> RefreshStats:
        per = self.pixels_per_strand
        limits = [per] * self.strand_count if dirty is None else self.strand_limits(dirty)
        stats = RefreshStats()

        try:
            for strand, limit in enumerate(limits):
                if limit == 0:
                    continue
                base = strand * per
                payload = START_FRAME + pixels_to_p9813(pixels[base : base + limit]) + END_FRAME
                stats.bytes_sent += self.transport.write(payload)
                stats.packets_sent += 1
                stats.strands_sent += 1
            self.transport.flush_output()
        except (serial.SerialException, OSError, RuntimeError) as exc:
            raise DeviceError(DeviceErrorCode.WRITE, str(exc)) from exc
        return stats

    def _close_device(self) -> None:
        self.transport.close()
