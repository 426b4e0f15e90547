# Complete settings for the Ticker Desk client
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from enum import Enum
from typing import List, Union
from pathlib import Path


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class ApiSettings(BaseModel):
    """REST boundary of the trading backend"""
    base_url: str = "http://localhost:8080"
    prefix: str = "/api"
    timeout_seconds: float = 10.0


DEFAULT_SYMBOLS = ["AAPL", "TSLA", "AMZN", "INFY", "TCS"]


class StreamSettings(BaseModel):
    """Price streaming endpoint and quote highlighting"""
    url: str = "ws://localhost:8080/api/ws"
    open_timeout_seconds: float = 10.0
    # Single shared decay window for the "just changed" flags
    decay_ms: int = Field(default=1000, gt=0)
    # Fixed instrument universe; never discovered from the stream
    symbols: Union[str, List[str]] = Field(default_factory=lambda: list(DEFAULT_SYMBOLS))

    @field_validator("symbols", mode="before")
    @classmethod
    def parse_symbols(cls, v):
        """Parse comma-separated string or return list as-is"""
        if isinstance(v, str):
            return [symbol.strip().upper() for symbol in v.split(",") if symbol.strip()]
        return v

    @field_validator("symbols")
    @classmethod
    def validate_symbols(cls, v):
        if not v:
            raise ValueError("At least one instrument symbol is required")
        return v


class NotificationSettings(BaseModel):
    ttl_ms: int = Field(default=3000, gt=0)


class CredentialSettings(BaseModel):
    path: str = "~/.ticker_desk/credentials.json"

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()


class ReconnectionSettings(BaseModel):
    """Stream reconnection configuration (disabled unless opted in)"""
    enabled: bool = False
    max_attempts: int = 5
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0
    backoff_multiplier: float = 2.0


class LoggingSettings(BaseModel):
    # Core logging settings
    level: str = "INFO"
    json_format: bool = True

    # Console logging
    console_enabled: bool = True
    console_json_format: bool = False  # Plain text for console by default

    # File logging
    file_enabled: bool = False
    logs_dir: str = "logs"
    file_max_size: str = "20MB"
    file_backup_count: int = 5

    # Multi-channel logging (file-backed, one file per channel)
    multi_channel_enabled: bool = True

    # Redaction
    redact_keys: list[str] = [
        "authorization", "token", "credential", "access_token", "password", "secret", "set-cookie"
    ]


class Settings(BaseSettings):
    """Main application settings, loaded from environment variables"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    app_name: str = "Ticker Desk"
    version: str = "1.0.0"
    environment: Environment = Environment.DEVELOPMENT

    api: ApiSettings = ApiSettings()
    stream: StreamSettings = StreamSettings()
    notifications: NotificationSettings = NotificationSettings()
    credentials: CredentialSettings = CredentialSettings()
    reconnection: ReconnectionSettings = ReconnectionSettings()
    logging: LoggingSettings = LoggingSettings()

    @property
    def logs_dir(self) -> str:
        return self.logging.logs_dir

    @property
    def symbols(self) -> List[str]:
        return list(self.stream.symbols)


# No global settings instance - use dependency injection instead
