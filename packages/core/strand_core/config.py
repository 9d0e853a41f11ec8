"""Server settings schema and load/save helpers."""

from __future__ import annotations

import json
import os
import platform
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


CONFIG_VERSION = 1

DEVICE_BACKENDS = ("p9813", "sim")
STREAM_MODES = ("adaptive", "full")


@dataclass
class LayoutConfig:
    strands: int = 1
    pixels_per_strand: int = 25


@dataclass
class NetworkConfig:
    host: str = "0.0.0.0"
    port: int = 9000
    read_timeout_ms: int = 100
    recv_size: int = 600 * 3 + 10
    backlog: int = 5


@dataclass
class DeviceConfig:
    backend: str = "p9813"
    port_override: str | None = None
    baud: int = 115200
    capture_path: str | None = None


@dataclass
class StreamConfig:
    mode: str = "adaptive"
    generator: str = "procedural"
    idle_render: bool = False


@dataclass
class StatsConfig:
    report_interval_s: float = 1.0


@dataclass
class LoggingConfig:
    keep_log_files: int = 7
    console: bool = True
    level: str = "INFO"


@dataclass
class ServerConfig:
    config_version: int = CONFIG_VERSION
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    stats: StatsConfig = field(default_factory=StatsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def total_pixels(self) -> int:
        return self.layout.strands * self.layout.pixels_per_strand


def config_path() -> Path:
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "StrandServer" / "config.json"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "StrandServer" / "config.json"
    return Path.home() / ".config" / "strandserver" / "config.json"


def _merge(dataclass_type, raw: dict[str, Any]):
    defaults = dataclass_type()  # type: ignore[misc]
    for k, v in (raw or {}).items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _normalize_network(cfg: ServerConfig) -> None:
    cfg.network.port = max(0, min(65535, int(cfg.network.port)))
    cfg.network.read_timeout_ms = max(1, min(5000, int(cfg.network.read_timeout_ms)))
    cfg.network.recv_size = max(64, int(cfg.network.recv_size))
    cfg.network.backlog = max(1, int(cfg.network.backlog))


def _normalize_device(cfg: ServerConfig) -> None:
    if cfg.device.backend not in DEVICE_BACKENDS:
        cfg.device.backend = "p9813"
    cfg.device.baud = int(cfg.device.baud)


def _normalize_stream(cfg: ServerConfig) -> None:
    if cfg.stream.mode not in STREAM_MODES:
        cfg.stream.mode = "adaptive"
    if cfg.stream.generator not in ("procedural", "external"):
        cfg.stream.generator = "procedural"
    cfg.stream.idle_render = bool(cfg.stream.idle_render)


def _normalize_stats(cfg: ServerConfig) -> None:
    cfg.stats.report_interval_s = float(max(0.1, cfg.stats.report_interval_s))


def validate_layout(cfg: ServerConfig) -> None:
    strands = int(cfg.layout.strands)
    per = int(cfg.layout.pixels_per_strand)
    if strands < 1 or per < 1:
        raise ValueError(f"Invalid pixel configuration: {strands} strands x {per} pixels")


def load_config(path: Path | None = None) -> ServerConfig:
    path = path or config_path()
    if not path.exists():
        return ServerConfig()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return ServerConfig()
    if not isinstance(data, dict):
        return ServerConfig()

    cfg = ServerConfig(
        config_version=int(data.get("config_version", CONFIG_VERSION)),
        layout=_merge(LayoutConfig, data.get("layout", {})),
        network=_merge(NetworkConfig, data.get("network", {})),
        device=_merge(DeviceConfig, data.get("device", {})),
        stream=_merge(StreamConfig, data.get("stream", {})),
        stats=_merge(StatsConfig, data.get("stats", {})),
        logging=_merge(LoggingConfig, data.get("logging", {})),
    )

    _normalize_network(cfg)
    _normalize_device(cfg)
    _normalize_stream(cfg)
    _normalize_stats(cfg)
    return cfg


def save_config(cfg: ServerConfig, path: Path | None = None) -> Path:
    cfg.config_version = CONFIG_VERSION
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True), encoding="utf-8")
    return path
