"""
Logging channel definitions and configuration for Ticker Desk.
Provides multi-channel logging with dedicated files for different components.
"""

from enum import Enum
from typing import Dict, Any, Optional
from pathlib import Path
from dataclasses import dataclass


class LogChannel(str, Enum):
    """Logging channels for different components."""

    APPLICATION = "application"  # General application logs
    TRADING = "trading"          # Order submission and order log
    MARKET_DATA = "market_data"  # Stream connection and quotes
    API = "api"                  # REST requests/responses and auth
    AUDIT = "audit"              # Login, logout, placed orders
    ERROR = "error"              # Error logs


@dataclass
class ChannelConfig:
    """Configuration for a logging channel."""

    name: str
    filename: str
    level: str = "INFO"
    max_bytes: str = "10MB"
    backup_count: int = 5

    def get_file_path(self, logs_dir: str) -> Path:
        """Get the full file path for this channel."""
        return Path(logs_dir) / self.filename


CHANNEL_CONFIGS: Dict[LogChannel, ChannelConfig] = {
    LogChannel.APPLICATION: ChannelConfig(name="application", filename="application.log"),
    LogChannel.TRADING: ChannelConfig(name="trading", filename="trading.log", backup_count=20),
    LogChannel.MARKET_DATA: ChannelConfig(
        name="market_data",
        filename="market_data.log",
        max_bytes="50MB",  # Large due to frame volume
        backup_count=3,
    ),
    LogChannel.API: ChannelConfig(name="api", filename="api.log"),
    LogChannel.AUDIT: ChannelConfig(name="audit", filename="audit.log", backup_count=50),
    LogChannel.ERROR: ChannelConfig(name="error", filename="error.log", level="ERROR", backup_count=20),
}


def get_channel_for_component(component: Optional[str]) -> LogChannel:
    """Get the appropriate logging channel for a component."""
    component_mapping = {
        "orders": LogChannel.TRADING,
        "stream": LogChannel.MARKET_DATA,
        "prices": LogChannel.MARKET_DATA,
        "api": LogChannel.API,
        "auth": LogChannel.API,
        "audit": LogChannel.AUDIT,
    }

    return component_mapping.get(component or "", LogChannel.APPLICATION)


def get_channel_config(channel: LogChannel) -> ChannelConfig:
    """Get configuration for a specific channel."""
    return CHANNEL_CONFIGS[channel]


def create_log_directory_structure(logs_dir: str) -> None:
    """Create the logs directory structure."""
    Path(logs_dir).mkdir(parents=True, exist_ok=True)


def get_channel_statistics() -> Dict[str, Any]:
    """Get statistics about all logging channels."""
    stats = {
        "total_channels": len(LogChannel),
        "channels": {}
    }

    for channel in LogChannel:
        config = get_channel_config(channel)
        stats["channels"][channel.value] = {
            "filename": config.filename,
            "level": config.level,
            "max_bytes": config.max_bytes,
            "backup_count": config.backup_count,
        }

    return stats
