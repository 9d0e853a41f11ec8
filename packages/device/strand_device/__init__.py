"""Device drivers for addressable RGB pixel strands."""

from .driver import DeviceDriver
from .models import (
    DeviceError,
    DeviceErrorCode,
    DeviceErrorKind,
    DeviceOpenResult,
    DirtySpan,
    DriverState,
    RefreshStats,
    SerialDevice,
    describe_error,
)
from .p9813 import P9813Driver, auto_select_device, pack_p9813, pixels_to_p9813
from .recording import RecordedFrame, RecordingDriver
from .replay import CaptureEvent, CaptureReplay, CaptureReport
from .transport import SerialTransport

__all__ = [
    "CaptureEvent",
    "CaptureReplay",
    "CaptureReport",
    "DeviceDriver",
    "DeviceError",
    "DeviceErrorCode",
    "DeviceErrorKind",
    "DeviceOpenResult",
    "DirtySpan",
    "DriverState",
    "P9813Driver",
    "RecordedFrame",
    "RecordingDriver",
    "RefreshStats",
    "SerialDevice",
    "SerialTransport",
    "auto_select_device",
    "describe_error",
    "pack_p9813",
    "pixels_to_p9813",
]
