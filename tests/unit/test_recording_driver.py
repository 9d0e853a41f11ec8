import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "device"))

from strand_device.models import DeviceError, DeviceErrorCode, DirtySpan, DriverState
from strand_device.recording import RecordingDriver
from strand_device.replay import CaptureReplay


class _Stats:
    device_bytes = 0

    def record_device_bytes(self, count):
        self.device_bytes += count


class RecordingDriverTests(unittest.TestCase):
    def test_records_copies(self):
        driver = RecordingDriver()
        driver.open(1, 4)
        pixels = np.zeros((4, 3), dtype=np.uint8)
        driver.refresh(pixels, _Stats())
        pixels[0] = (1, 2, 3)
        self.assertEqual(len(driver.frames), 1)
        self.assertFalse(driver.frames[0].pixels.any())

    def test_scripted_failure(self):
        driver = RecordingDriver(fail_frames={2})
        driver.open(1, 2)
        pixels = np.zeros((2, 3), dtype=np.uint8)
        driver.refresh(pixels, _Stats())
        with self.assertRaises(DeviceError):
            driver.refresh(pixels, _Stats())
        driver.refresh(pixels, _Stats(), [DirtySpan(0, 1)])
        self.assertEqual(driver.refresh_count, 3)
        self.assertEqual([f.mode for f in driver.frames], ["full", "dirty"])

    def test_open_errors(self):
        with self.assertRaises(DeviceError) as ctx:
            RecordingDriver(open_error=DeviceErrorCode.OPEN).open(1, 1)
        self.assertTrue(ctx.exception.fatal)

        driver = RecordingDriver(open_error=DeviceErrorCode.DIVISOR)
        result = driver.open(1, 1)
        self.assertFalse(result.warning.fatal)
        self.assertEqual(driver.state, DriverState.DEGRADED)

    def test_invalid_layout(self):
        with self.assertRaises(DeviceError) as ctx:
            RecordingDriver().open(0, 10)
        self.assertEqual(ctx.exception.code, DeviceErrorCode.VALUE)


class CaptureReplayTests(unittest.TestCase):
    def test_capture_round_trip_report(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "capture.jsonl"
            driver = RecordingDriver(capture_path=path)
            driver.open(2, 3)
            pixels = np.zeros((6, 3), dtype=np.uint8)
            driver.refresh(pixels, _Stats())
            driver.refresh(pixels, _Stats(), [DirtySpan(0, 2)])
            driver.close()

            report = CaptureReplay().run(path)
            self.assertEqual(report.total_frames, 2)
            self.assertEqual(report.full_frames, 1)
            self.assertEqual(report.dirty_frames, 1)
            self.assertEqual(report.pixel_bytes_total, 36)
            self.assertEqual(report.errors, [])

    def test_empty_capture(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "empty.jsonl"
            path.write_text("\n", encoding="utf-8")
            report = CaptureReplay().run(path)
            self.assertIn("missing_frames", report.errors)

    def test_length_mismatch(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "bad.jsonl"
            path.write_text('{"frame": 0, "mode": "full", "pixels": 2, "rgb_hex": "010203"}\n', encoding="utf-8")
            report = CaptureReplay().run(path)
            self.assertIn("length_mismatch", report.errors)


if __name__ == "__main__":
    unittest.main()
