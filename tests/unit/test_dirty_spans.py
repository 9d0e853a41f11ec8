import sys
import unittest
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "render"))
sys.path.insert(0, str(ROOT / "packages" / "device"))

from strand_device.models import DirtySpan
from strand_render.colors import compute_dirty_spans


class DirtySpanTests(unittest.TestCase):
    def test_no_change(self):
        frame = np.ones((64, 3), dtype=np.uint8)
        self.assertEqual(compute_dirty_spans(frame, frame.copy()), [])

    def test_detect_small_change(self):
        prev = np.zeros((64, 3), dtype=np.uint8)
        curr = prev.copy()
        curr[20] = (1, 0, 0)
        spans = compute_dirty_spans(prev, curr, tile=8)
        self.assertEqual(spans, [DirtySpan(start=16, length=8)])

    def test_large_change_becomes_full(self):
        prev = np.zeros((64, 3), dtype=np.uint8)
        curr = np.full((64, 3), 9, dtype=np.uint8)
        self.assertEqual(compute_dirty_spans(prev, curr, tile=8), [DirtySpan(start=0, length=64)])

    def test_span_clipped_to_frame(self):
        prev = np.zeros((100, 3), dtype=np.uint8)
        curr = prev.copy()
        curr[99] = (0, 0, 1)
        spans = compute_dirty_spans(prev, curr, tile=16)
        self.assertEqual(spans, [DirtySpan(start=96, length=4)])

    def test_size_mismatch(self):
        with self.assertRaises(ValueError):
            compute_dirty_spans(np.zeros((4, 3), dtype=np.uint8), np.zeros((5, 3), dtype=np.uint8))


if __name__ == "__main__":
    unittest.main()
