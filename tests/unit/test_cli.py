import json
import sys
import tempfile
import unittest
from contextlib import redirect_stdout
from io import StringIO
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "apps" / "server"))
sys.path.insert(0, str(ROOT / "packages" / "core"))
sys.path.insert(0, str(ROOT / "packages" / "device"))
sys.path.insert(0, str(ROOT / "packages" / "render"))

from strand_app.cli import _load, build_driver, build_parser, cmd_replay, cmd_send_test_pattern, cmd_snapshot
from strand_device import P9813Driver, RecordingDriver


class CliParserTests(unittest.TestCase):
    def test_serve_flags(self):
        parser = build_parser()
        args = parser.parse_args(["serve", "-s", "2", "-c", "50", "-p", "9000"])
        self.assertEqual(args.command, "serve")
        self.assertEqual(args.strands, 2)
        self.assertEqual(args.count, 50)
        self.assertEqual(args.port, 9000)
        self.assertFalse(args.idle_render)

    def test_flags_override_config(self):
        parser = build_parser()
        with tempfile.TemporaryDirectory() as tmp:
            missing = str(Path(tmp) / "none.json")
            args = parser.parse_args(["serve", "--config", missing, "-s", "3", "-c", "7", "-p", "7000", "--device", "sim"])
            cfg = _load(args)
        self.assertEqual(cfg.layout.strands, 3)
        self.assertEqual(cfg.layout.pixels_per_strand, 7)
        self.assertEqual(cfg.network.port, 7000)
        self.assertIsInstance(build_driver(cfg), RecordingDriver)

    def test_default_backend_is_p9813(self):
        parser = build_parser()
        with tempfile.TemporaryDirectory() as tmp:
            args = parser.parse_args(["serve", "--config", str(Path(tmp) / "none.json")])
            self.assertIsInstance(build_driver(_load(args)), P9813Driver)

    def test_pattern_command(self):
        parser = build_parser()
        args = parser.parse_args(["send-test-pattern", "--pattern", "gradient", "--device", "sim"])
        self.assertEqual(args.pattern, "gradient")

    def test_replay_command(self):
        parser = build_parser()
        args = parser.parse_args(["replay", "--capture", "frames.jsonl"])
        self.assertEqual(args.capture, "frames.jsonl")


class CliCommandTests(unittest.TestCase):
    def test_snapshot_writes_png(self):
        parser = build_parser()
        with tempfile.TemporaryDirectory() as tmp:
            out = Path(tmp) / "frame.png"
            args = parser.parse_args(
                ["snapshot", "--config", str(Path(tmp) / "none.json"), "-s", "2", "-c", "5", "--out", str(out)]
            )
            buf = StringIO()
            with redirect_stdout(buf):
                rc = cmd_snapshot(args)
            self.assertEqual(rc, 0)
            self.assertTrue(out.exists())
            self.assertEqual(json.loads(buf.getvalue())["frames"], 1)

    def test_send_pattern_to_sim_then_replay(self):
        parser = build_parser()
        with tempfile.TemporaryDirectory() as tmp:
            capture = Path(tmp) / "capture.jsonl"
            cfg_path = Path(tmp) / "config.json"
            cfg_path.write_text(json.dumps({"device": {"capture_path": str(capture)}}), encoding="utf-8")
            args = parser.parse_args(
                ["send-test-pattern", "--config", str(cfg_path), "--device", "sim", "-c", "4", "--pattern", "red"]
            )
            with redirect_stdout(StringIO()):
                self.assertEqual(cmd_send_test_pattern(args), 0)

            replay_args = parser.parse_args(["replay", "--capture", str(capture)])
            buf = StringIO()
            with redirect_stdout(buf):
                self.assertEqual(cmd_replay(replay_args), 0)
            self.assertEqual(json.loads(buf.getvalue())["total_frames"], 1)

    def test_snapshot_rejects_zero_pixels(self):
        parser = build_parser()
        with tempfile.TemporaryDirectory() as tmp:
            args = parser.parse_args(["snapshot", "--config", str(Path(tmp) / "none.json"), "-c", "0"])
            with redirect_stdout(StringIO()):
                self.assertEqual(cmd_snapshot(args), 1)


if __name__ == "__main__":
    unittest.main()
