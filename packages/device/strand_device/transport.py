"""Serial transport abstraction for USB pixel adapters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import serial
from serial.tools import list_ports

from .models import SerialDevice


DEFAULT_BAUD = 115200


@dataclass
class SerialConfig:
    port: str
    baud: int = DEFAULT_BAUD
    timeout_ms: int = 500


class SerialTransport:
    """Thin wrapper over pyserial with fixed 8N1 framing."""

    def __init__(self) -> None:
        self._serial: Any | None = None
        self.config: SerialConfig | None = None

    @property
    def is_open(self) -> bool:
        return bool(self._serial and self._serial.is_open)

    def open(self, port: str, baud: int = DEFAULT_BAUD, timeout_ms: int = 500) -> None:
        if self.is_open:
            return
        self.config = SerialConfig(port=port, baud=baud, timeout_ms=timeout_ms)
        self._serial = serial.Serial(
            port=port,
            baudrate=baud,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=max(timeout_ms, 1) / 1000,
            write_timeout=max(timeout_ms, 1) / 1000,
        )

    def set_baud(self, baud: int) -> None:
        if not self.is_open:
            raise RuntimeError("Serial port is not open")
        previous = self._serial.baudrate
        try:
            self._serial.baudrate = baud
        except (ValueError, serial.SerialException):
            # pyserial keeps the rejected value unless reset.
            self._serial.baudrate = previous
            raise
        if self.config is not None:
            self.config.baud = baud

    def close(self) -> None:
        if self._serial is not None:
            self._serial.close()
            self._serial = None

    def write(self, payload: bytes) -> int:
        if not self.is_open:
            raise RuntimeError("Serial port is not open")
        return int(self._serial.write(payload))

    def flush_output(self) -> None:
        if self.is_open:
            self._serial.flush()

    @staticmethod
    def discover() -> list[SerialDevice]:
        devices: list[SerialDevice] = []
        for item in list_ports.comports():
            devices.append(
                SerialDevice(
                    device=item.device,
                    description=item.description,
                    hwid=item.hwid,
                    vid=item.vid,
                    pid=item.pid,
                )
            )
        return devices
