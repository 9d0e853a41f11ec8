import sys
import unittest
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "device"))

from strand_device.models import DeviceError, DeviceErrorCode, DirtySpan, DriverState, SerialDevice
from strand_device.p9813 import P9813Driver, auto_select_device, pack_p9813, pixels_to_p9813


class FakeTransport:
    def __init__(self, reject_baud=False, fail_writes=False):
        self.reject_baud = reject_baud
        self.fail_writes = fail_writes
        self.writes = []
        self.is_open = False
        self.baud = None

    def open(self, port, baud=115200, timeout_ms=500):
        self.is_open = True
        self.baud = baud

    def set_baud(self, baud):
        if self.reject_baud:
            raise ValueError(f"unsupported baud {baud}")
        self.baud = baud

    def write(self, payload):
        if self.fail_writes:
            raise OSError("device unplugged")
        self.writes.append(payload)
        return len(payload)

    def flush_output(self):
        pass

    def close(self):
        self.is_open = False


class FakeStats:
    def __init__(self):
        self.device_bytes = 0

    def record_device_bytes(self, count):
        self.device_bytes += count


class P9813PackingTests(unittest.TestCase):
    def test_pack_vectors(self):
        self.assertEqual(pack_p9813(0, 0, 0), bytes.fromhex("FF000000"))
        self.assertEqual(pack_p9813(255, 255, 255), bytes.fromhex("C0FFFFFF"))
        self.assertEqual(pack_p9813(255, 0, 0), bytes.fromhex("FC0000FF"))

    def test_vectorized_matches_scalar(self):
        pixels = np.array([[255, 0, 0], [12, 200, 77], [0, 0, 0]], dtype=np.uint8)
        expected = b"".join(pack_p9813(*(int(v) for v in row)) for row in pixels)
        self.assertEqual(pixels_to_p9813(pixels), expected)


class P9813DriverTests(unittest.TestCase):
    def _open(self, transport, strands=2, per=3, baud=115200):
        driver = P9813Driver(transport=transport, port="/dev/ttyUSB0", baud=baud)
        result = driver.open(strands, per)
        return driver, result

    def test_full_refresh_writes_every_strand(self):
        transport = FakeTransport()
        driver, result = self._open(transport)
        self.assertTrue(result.ready)
        self.assertIsNone(result.warning)

        stats = FakeStats()
        out = driver.refresh(np.zeros((6, 3), dtype=np.uint8), stats)
        self.assertEqual(out.mode, "full")
        self.assertEqual(out.packets_sent, 2)
        self.assertEqual(out.bytes_sent, 40)
        self.assertEqual(stats.device_bytes, 40)
        self.assertEqual(transport.writes[0][:4], bytes(4))
        self.assertEqual(transport.writes[0][-4:], bytes(4))

    def test_dirty_refresh_sends_strand_prefix(self):
        transport = FakeTransport()
        driver, _ = self._open(transport)
        out = driver.refresh(np.zeros((6, 3), dtype=np.uint8), FakeStats(), [DirtySpan(start=4, length=1)])
        self.assertEqual(out.mode, "dirty")
        self.assertEqual(out.strands_sent, 1)
        self.assertEqual(len(transport.writes), 1)
        self.assertEqual(len(transport.writes[0]), 4 + 2 * 4 + 4)

    def test_empty_dirty_is_noop(self):
        transport = FakeTransport()
        driver, _ = self._open(transport)
        out = driver.refresh(np.zeros((6, 3), dtype=np.uint8), FakeStats(), [])
        self.assertEqual(out.mode, "noop")
        self.assertEqual(transport.writes, [])
        self.assertEqual(driver.refresh_count, 1)

    def test_write_failure_is_device_error(self):
        transport = FakeTransport(fail_writes=True)
        driver, _ = self._open(transport)
        with self.assertRaises(DeviceError) as ctx:
            driver.refresh(np.zeros((6, 3), dtype=np.uint8), FakeStats())
        self.assertEqual(ctx.exception.code, DeviceErrorCode.WRITE)
        self.assertTrue(driver.is_open)

    def test_size_mismatch(self):
        driver, _ = self._open(FakeTransport())
        with self.assertRaises(DeviceError) as ctx:
            driver.refresh(np.zeros((5, 3), dtype=np.uint8), FakeStats())
        self.assertEqual(ctx.exception.code, DeviceErrorCode.VALUE)

    def test_rejected_baud_is_non_fatal(self):
        transport = FakeTransport(reject_baud=True)
        driver, result = self._open(transport, baud=2000000)
        self.assertTrue(result.ready)
        self.assertIsNotNone(result.warning)
        self.assertEqual(result.warning.code, DeviceErrorCode.BAUDRATE)
        self.assertFalse(result.warning.fatal)
        self.assertEqual(driver.state, DriverState.DEGRADED)
        self.assertEqual(transport.baud, 115200)

    def test_close(self):
        transport = FakeTransport()
        driver, _ = self._open(transport)
        driver.close()
        self.assertFalse(transport.is_open)
        self.assertEqual(driver.state, DriverState.CLOSED)
        with self.assertRaises(DeviceError):
            driver.refresh(np.zeros((6, 3), dtype=np.uint8), FakeStats())

    def test_describe_error(self):
        self.assertIn("baud", P9813Driver.describe_error(DeviceErrorCode.BAUDRATE))
        self.assertIn("Unknown", P9813Driver.describe_error(42))


class AutoSelectTests(unittest.TestCase):
    def test_prefers_ft232r(self):
        devices = [
            SerialDevice(device="/dev/ttyACM0", description="Arduino", hwid="", vid=0x2341, pid=0x0043),
            SerialDevice(device="/dev/ttyUSB1", description="FT232R USB UART", hwid="", vid=0x0403, pid=0x6001),
        ]
        self.assertEqual(auto_select_device(devices).device, "/dev/ttyUSB1")

    def test_none_when_missing(self):
        devices = [SerialDevice(device="/dev/ttyACM0", description="Arduino", hwid="", vid=0x2341, pid=0x0043)]
        self.assertIsNone(auto_select_device(devices))


if __name__ == "__main__":
    unittest.main()
