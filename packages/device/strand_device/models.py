"""Typed models for device drivers, error codes, and refresh results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class DeviceErrorCode(IntEnum):
    OK = 0
    VALUE = 1
    MALLOC = 2
    OPEN = 3
    WRITE = 4
    MODE = 5
    DIVISOR = 6
    BAUDRATE = 7


class DeviceErrorKind(str, Enum):
    FATAL = "Fatal"
    NON_FATAL = "NonFatal"


class DriverState(str, Enum):
    CLOSED = "Closed"
    OPEN = "Open"
    DEGRADED = "Degraded"
    FAILED = "Failed"


_DESCRIPTIONS: dict[int, str] = {
    DeviceErrorCode.OK: "No error",
    DeviceErrorCode.VALUE: "Parameter out of range",
    DeviceErrorCode.MALLOC: "Could not allocate driver buffers",
    DeviceErrorCode.OPEN: "Could not open output device",
    DeviceErrorCode.WRITE: "Error writing to output device",
    DeviceErrorCode.MODE: "Could not configure output mode",
    DeviceErrorCode.DIVISOR: "Could not set clock divisor",
    DeviceErrorCode.BAUDRATE: "Could not set requested baud rate",
}


def describe_error(code: int) -> str:
    return _DESCRIPTIONS.get(int(code), f"Unknown device error {int(code)}")


def error_kind(code: int) -> DeviceErrorKind:
    # Timing errors degrade output precision but leave the device usable.
    if int(code) >= DeviceErrorCode.DIVISOR:
        return DeviceErrorKind.NON_FATAL
    return DeviceErrorKind.FATAL


class DeviceError(RuntimeError):
    def __init__(self, code: int, detail: str | None = None) -> None:
        self.code = DeviceErrorCode(int(code))
        self.kind = error_kind(self.code)
        self.detail = detail
        message = describe_error(self.code)
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @property
    def fatal(self) -> bool:
        return self.kind is DeviceErrorKind.FATAL


@dataclass(frozen=True)
class SerialDevice:
    device: str
    description: str
    hwid: str
    vid: int | None
    pid: int | None


@dataclass(frozen=True)
class DeviceOpenResult:
    ready: bool
    strand_count: int
    pixels_per_strand: int
    warning: DeviceError | None = None


@dataclass(frozen=True)
class DirtySpan:
    start: int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length


@dataclass
class RefreshStats:
    bytes_sent: int = 0
    packets_sent: int = 0
    strands_sent: int = 0
    duration_s: float = 0.0
    mode: str = "full"
