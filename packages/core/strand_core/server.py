"""Render server: accepts a client, turns each message into a frame, and dispatches it."""

from __future__ import annotations

import socket
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import numpy as np

from strand_device import DeviceDriver, DeviceError, DirtySpan, DriverState, RefreshStats
from strand_render import FrameGenerator, PixelBuffer, compute_dirty_spans, make_generator

from .config import ServerConfig, validate_layout
from .connection import ConnectionHandler, ConnectionState
from .logging_setup import get_logger
from .performance import PerformanceController
from .stats import Stats


log = get_logger("server")


class StartupError(RuntimeError):
    pass


@dataclass
class ServerStatus:
    running: bool = False
    address: tuple[str, int] | None = None
    client: str | None = None
    connection: ConnectionState = ConnectionState.LISTENING
    driver_state: DriverState = DriverState.CLOSED
    connections: int = 0
    last_error: str | None = None


class ServerLoop:
    """Single render thread owning the buffer, the driver, and the stats.

    Network reads are bounded by ``network.read_timeout_ms`` so a silent
    client never holds up shutdown or idle rendering.
    """

    def __init__(
        self,
        config: ServerConfig,
        driver: DeviceDriver,
        generator: FrameGenerator | None = None,
        performance: PerformanceController | None = None,
    ) -> None:
        self.config = config
        self.driver = driver
        self.generator = generator or make_generator(config.stream.generator, config.layout.pixels_per_strand)
        self.performance = performance if performance is not None else PerformanceController()
        self.buffer: PixelBuffer | None = None
        self.stats = Stats.init()

        self._listener: socket.socket | None = None
        self._handler: ConnectionHandler | None = None
        self._stop = threading.Event()
        self._lock = threading.RLock()
        self._status = ServerStatus()
        self._previous_frame: np.ndarray | None = None
        self._force_full_frames_remaining = 0
        self._events: list[dict[str, Any]] = []
        self._last_report = time.monotonic()

    @property
    def status(self) -> ServerStatus:
        self._status.driver_state = self.driver.state
        return self._status

    @property
    def address(self) -> tuple[str, int] | None:
        return self._status.address

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def recent_events(self, limit: int = 200) -> list[dict[str, Any]]:
        return self._events[-limit:]

    def _log_event(self, event: str, **fields: Any) -> None:
        row = {
            "ts_utc": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "connection": self._status.connection.value,
        }
        row.update(fields)
        self._events.append(row)
        if len(self._events) > 1000:
            self._events = self._events[-1000:]

    def start(self) -> tuple[str, int]:
        layout = self.config.layout
        with self._lock:
            try:
                validate_layout(self.config)
                self.buffer = PixelBuffer.allocate(layout.strands, layout.pixels_per_strand)
            except ValueError as exc:
                log.error(str(exc), extra={"event": "allocation_failed"})
                raise StartupError(str(exc)) from exc

            try:
                opened = self.driver.open(layout.strands, layout.pixels_per_strand)
            except DeviceError as exc:
                log.error(f"device open failed: {exc}", extra={"event": "device_open_failed", "code": int(exc.code)})
                self.shutdown()
                raise StartupError(f"device open failed: {exc}") from exc

            if opened.warning is not None:
                log.warning(
                    f"device opened with warning: {opened.warning}",
                    extra={"event": "device_warning", "code": int(opened.warning.code)},
                )
                self._log_event("device_warning", code=int(opened.warning.code), error=str(opened.warning))

            self.stats = Stats.init()
            self._listener = self._bind()
            host, port = self._listener.getsockname()[:2]
            self._status.address = (host, port)
            self._status.running = True
            self._last_report = time.monotonic()
            log.info(
                f"listening on {host}:{port} with {layout.strands}x{layout.pixels_per_strand} pixels",
                extra={"event": "listening"},
            )
            self._log_event("listening", host=host, port=port)
            return (host, port)

    def _bind(self) -> socket.socket:
        net = self.config.network
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((net.host, net.port))
            listener.listen(net.backlog)
        except (OSError, OverflowError) as exc:
            # OverflowError: port outside 0-65535.
            listener.close()
            log.error(f"bind failed on {net.host}:{net.port}: {exc}", extra={"event": "bind_failed"})
            self.shutdown()
            raise StartupError(f"bind failed on {net.host}:{net.port}: {exc}") from exc
        listener.settimeout(net.read_timeout_ms / 1000)
        return listener

    def stop(self) -> None:
        self._stop.set()

    def run_forever(self) -> None:
        if self._listener is None:
            self.start()
        try:
            while not self._stop.is_set():
                handler = self.accept()
                if handler is None:
                    self._idle()
                    continue
                self.serve(handler)
        finally:
            self.shutdown()

    def accept(self) -> ConnectionHandler | None:
        if self._listener is None:
            raise RuntimeError("server is not started")
        self._status.connection = ConnectionState.LISTENING
        try:
            sock, address = self._listener.accept()
        except socket.timeout:
            return None
        except OSError as exc:
            self._status.last_error = str(exc)
            log.warning(f"accept failed: {exc}", extra={"event": "accept_failed"})
            return None

        net = self.config.network
        handler = ConnectionHandler(sock, address, read_timeout_s=net.read_timeout_ms / 1000, recv_size=net.recv_size)
        self._status.connection = ConnectionState.ACCEPTED
        self._status.client = handler.peer
        self._status.connections += 1
        log.info(f"client connected from {handler.peer}", extra={"event": "client_connected", "peer": handler.peer})
        self._log_event("connect", peer=handler.peer)
        return handler

    def serve(self, handler: ConnectionHandler) -> None:
        self._handler = handler
        try:
            while not self._stop.is_set():
                self._status.connection = ConnectionState.READING
                payload = handler.read_message()
                if payload is None:
                    if handler.closed:
                        break
                    self._idle()
                    continue
                self.handle_message(handler, payload)
                self._maybe_report()
        finally:
            handler.close()
            self._handler = None
            self._status.connection = ConnectionState.CLOSED
            self._status.client = None
            self._log_event("disconnect", peer=handler.peer, messages=handler.messages)

    def handle_message(self, handler: ConnectionHandler, payload: bytes) -> RefreshStats | None:
        self.stats.record_received(len(payload))
        log.debug(f"message from {handler.peer}: {len(payload)} bytes", extra={"event": "message"})
        self._status.connection = ConnectionState.RESPONDING
        self.stats.record_sent(handler.acknowledge())
        return self.step(payload)

    def _idle(self) -> None:
        if self.config.stream.idle_render and self.buffer is not None:
            self.step(None)
        self._maybe_report()

    def _dirty_spans(self, frame: np.ndarray) -> list[DirtySpan] | None:
        if self._force_full_frames_remaining > 0:
            self._force_full_frames_remaining -= 1
            return None
        if self.config.stream.mode == "adaptive" and self._previous_frame is not None:
            spans = compute_dirty_spans(self._previous_frame, frame)
            if len(spans) == 1 and spans[0].start == 0 and spans[0].length == frame.shape[0]:
                return None
            return spans
        return None

    def step(self, payload: bytes | None = None) -> RefreshStats | None:
        """Generate one frame and dispatch it; returns None when the refresh failed."""
        with self._lock:
            if self.buffer is None:
                raise RuntimeError("server is not started")

            start = time.perf_counter()
            self.generator.generate(self.buffer, payload)
            frame = self.buffer.as_slice()
            dirty = self._dirty_spans(frame)

            try:
                result = self.driver.refresh(frame, self.stats, dirty)
            except DeviceError as exc:
                self.stats.record_error(exc.code)
                self._status.last_error = str(exc)
                # Device contents are unknown after a failed write.
                self._previous_frame = None
                self._force_full_frames_remaining = max(self._force_full_frames_remaining, 1)
                log.warning(
                    f"refresh failed on frame {self.stats.frames + 1}: {exc}",
                    extra={"event": "refresh_failed", "code": int(exc.code), "frame": self.stats.frames + 1},
                )
                self._log_event("frame_error", code=int(exc.code), error=str(exc))
                return None

            self._previous_frame = self.buffer.snapshot()
            self.stats.record_frame(time.perf_counter() - start)
            return result

    def _maybe_report(self, force: bool = False) -> dict[str, Any] | None:
        now = time.monotonic()
        if not force and now - self._last_report < self.config.stats.report_interval_s:
            return None
        self._last_report = now

        report = self.stats.snapshot()
        budget = self.performance.sample(report["average_fps"])
        report["cpu_percent"] = round(budget.cpu_percent, 1)
        report["rss_mb"] = round(budget.rss_mb, 1)
        if budget.warning:
            report["warning"] = budget.warning
        log.info(
            f"frames={report['frames']} fps={report['average_fps']} errors={report['refresh_errors']}",
            extra={"event": "stats_report", "stats": report},
        )
        return report

    def shutdown(self) -> None:
        with self._lock:
            try:
                self.driver.close()
            except (OSError, DeviceError) as exc:
                log.warning(f"device close failed: {exc}", extra={"event": "device_close_failed"})
            was_running = self._status.running
            self.buffer = None
            self._previous_frame = None
            if self._handler is not None:
                self._handler.close()
                self._handler = None
            if self._listener is not None:
                self._listener.close()
                self._listener = None
            self._status.running = False
            self._status.connection = ConnectionState.CLOSED
            if was_running:
                log.info("server stopped", extra={"event": "server_stopped", "stats": self.stats.snapshot()})
                self._log_event("stopped", frames=self.stats.frames)
