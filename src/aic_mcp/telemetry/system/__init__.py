"""System operational logging.

Provides the system logger for operational events (authentication attempts,
cache decisions, OAuth endpoint failures, startup events).
"""

from aic_mcp.telemetry.system.system_logger import (
    ConsoleFormatter,
    configure_system_logger_file,
    get_system_logger,
)

__all__ = [
    "ConsoleFormatter",
    "configure_system_logger_file",
    "get_system_logger",
]
