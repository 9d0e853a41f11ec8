"""Core services: settings, logging, stats, client connections, and the render server."""

from .config import ServerConfig, load_config, save_config, validate_layout
from .connection import ACK_REPLY, ConnectionHandler, ConnectionState
from .performance import BudgetStatus, PerformanceController, PerformanceTargets
from .server import ServerLoop, ServerStatus, StartupError
from .stats import Stats

__all__ = [
    "ACK_REPLY",
    "BudgetStatus",
    "ConnectionHandler",
    "ConnectionState",
    "PerformanceController",
    "PerformanceTargets",
    "ServerConfig",
    "ServerLoop",
    "ServerStatus",
    "StartupError",
    "Stats",
    "load_config",
    "save_config",
    "validate_layout",
]
