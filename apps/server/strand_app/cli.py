"""CLI entrypoints for the strand render server, previews, and capture replay."""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from dataclasses import asdict
from pathlib import Path

from strand_core import ServerConfig, ServerLoop, StartupError, Stats, load_config, validate_layout
from strand_core.logging_setup import configure_logging, get_logger, install_crash_hooks
from strand_device import CaptureReplay, DeviceDriver, DeviceError, P9813Driver, RecordingDriver, SerialTransport
from strand_device.p9813 import FTDI_VID
from strand_render import PATTERNS, FramePreview, PixelBuffer, ProceduralGenerator, build_test_pattern


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def _load(args: argparse.Namespace) -> ServerConfig:
    cfg = load_config(Path(args.config).expanduser() if args.config else None)
    if args.strands is not None:
        cfg.layout.strands = args.strands
    if args.count is not None:
        cfg.layout.pixels_per_strand = args.count
    if getattr(args, "port", None) is not None:
        cfg.network.port = args.port
    if args.device:
        cfg.device.backend = args.device
    if args.serial_port:
        cfg.device.port_override = args.serial_port
    if getattr(args, "capture", None):
        cfg.device.capture_path = args.capture
    return cfg


def build_driver(cfg: ServerConfig) -> DeviceDriver:
    if cfg.device.backend == "sim":
        capture = Path(cfg.device.capture_path).expanduser() if cfg.device.capture_path else None
        return RecordingDriver(capture_path=capture)
    return P9813Driver(port=cfg.device.port_override, baud=cfg.device.baud)


def _install_signal_handlers(server: ServerLoop) -> None:
    if threading.current_thread() is not threading.main_thread():
        return

    def _handle(signum, _frame) -> None:
        get_logger().info(f"signal {signum} received, stopping", extra={"event": "signal"})
        server.stop()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def cmd_serve(args: argparse.Namespace) -> int:
    cfg = _load(args)
    if args.mode:
        cfg.stream.generator = args.mode
    if args.stream:
        cfg.stream.mode = args.stream
    if args.idle_render:
        cfg.stream.idle_render = True

    logger = configure_logging(keep_files=cfg.logging.keep_log_files, console=cfg.logging.console, level=cfg.logging.level)
    install_crash_hooks()

    try:
        validate_layout(cfg)
    except ValueError as exc:
        logger.error(str(exc), extra={"event": "invalid_layout"})
        print(f"error: {exc}", file=sys.stderr)
        return 1

    server = ServerLoop(cfg, build_driver(cfg))
    try:
        server.start()
    except StartupError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    _install_signal_handlers(server)
    server.run_forever()
    return 0


def cmd_list_devices(_args: argparse.Namespace) -> int:
    devices = SerialTransport.discover()
    _print_json(
        [
            {
                "device": d.device,
                "description": d.description,
                "hwid": d.hwid,
                "vid": d.vid,
                "pid": d.pid,
                "compatible": d.vid == FTDI_VID,
            }
            for d in devices
        ]
    )
    return 0


def cmd_snapshot(args: argparse.Namespace) -> int:
    cfg = _load(args)
    try:
        validate_layout(cfg)
        buffer = PixelBuffer.allocate(cfg.layout.strands, cfg.layout.pixels_per_strand)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    generator = ProceduralGenerator(cfg.layout.pixels_per_strand, phase=args.phase)
    for _ in range(max(1, args.frames)):
        phase = generator.phase
        generator.generate(buffer)

    preview = FramePreview(cfg.layout.strands, cfg.layout.pixels_per_strand, scale=args.scale)
    out = preview.save_png(buffer.as_slice(), Path(args.out).expanduser())
    _print_json({"out": str(out), "frames": max(1, args.frames), "phase": phase, "size": list(preview.size)})
    return 0


def cmd_send_test_pattern(args: argparse.Namespace) -> int:
    cfg = _load(args)
    try:
        validate_layout(cfg)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    driver = build_driver(cfg)
    stats = Stats.init()
    pixels = build_test_pattern(args.pattern, cfg.layout.strands, cfg.layout.pixels_per_strand)
    try:
        opened = driver.open(cfg.layout.strands, cfg.layout.pixels_per_strand)
        result = driver.refresh(pixels, stats)
    except DeviceError as exc:
        _print_json({"success": False, "code": int(exc.code), "error": str(exc)})
        return 1
    finally:
        driver.close()

    _print_json(
        {
            "success": True,
            "pattern": args.pattern,
            "warning": str(opened.warning) if opened.warning else None,
            "stats": asdict(result),
        }
    )
    return 0


def cmd_replay(args: argparse.Namespace) -> int:
    report = CaptureReplay().run(Path(args.capture))
    payload = asdict(report)
    payload["success"] = len(report.errors) == 0
    _print_json(payload)
    return 0 if not report.errors else 2


def _add_layout_args(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("-s", "--strands", type=int, default=None, help="Number of strands")
    cmd.add_argument("-c", "--count", type=int, default=None, help="Pixels per strand")
    cmd.add_argument("--config", default=None, help="Path to JSON settings file")
    cmd.add_argument("--device", choices=["p9813", "sim"], default=None, help="Output backend")
    cmd.add_argument("--serial-port", default=None, help="Optional explicit serial port override")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="strandserver", description="Network render server for RGB pixel strands")
    sub = parser.add_subparsers(dest="command", required=True)

    serve_cmd = sub.add_parser("serve", help="Accept a client and render frames to the strands")
    _add_layout_args(serve_cmd)
    serve_cmd.add_argument("-p", "--port", type=int, default=None, help="TCP port to listen on")
    serve_cmd.add_argument("--mode", choices=["procedural", "external"], default=None, help="Frame generator")
    serve_cmd.add_argument("--stream", choices=["adaptive", "full"], default=None, help="Refresh strategy")
    serve_cmd.add_argument("--idle-render", action="store_true", help="Keep rendering while no message arrives")
    serve_cmd.add_argument("--capture", default=None, help="JSONL capture file for the sim backend")
    serve_cmd.set_defaults(func=cmd_serve)

    list_cmd = sub.add_parser("list-devices", help="List serial devices")
    list_cmd.set_defaults(func=cmd_list_devices)

    snap_cmd = sub.add_parser("snapshot", help="Render procedural frames to a PNG preview")
    _add_layout_args(snap_cmd)
    snap_cmd.add_argument("--frames", type=int, default=1)
    snap_cmd.add_argument("--phase", type=float, default=0.0)
    snap_cmd.add_argument("--scale", type=int, default=8)
    snap_cmd.add_argument("--out", default="frame.png")
    snap_cmd.set_defaults(func=cmd_snapshot)

    pat_cmd = sub.add_parser("send-test-pattern", help="Send one fixed pattern to the strands")
    _add_layout_args(pat_cmd)
    pat_cmd.add_argument("--pattern", default="strands", choices=list(PATTERNS))
    pat_cmd.set_defaults(func=cmd_send_test_pattern)

    replay_cmd = sub.add_parser("replay", help="Analyze a recorded frame capture")
    replay_cmd.add_argument("--capture", required=True, help="Path to JSONL capture")
    replay_cmd.set_defaults(func=cmd_replay)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command != "serve":
        configure_logging(console=False)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
