# Market Feed Models
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Direction(str, Enum):
    """Transient "just changed" highlight of a quote"""
    NONE = "none"
    UP = "up"
    DOWN = "down"

    @classmethod
    def from_change(cls, change: Optional[Decimal]) -> "Direction":
        # Zero or absent change reads as down, matching the backend's `change > 0` convention
        if change is not None and change > 0:
            return cls.UP
        return cls.DOWN


@dataclass(frozen=True)
class Quote:
    """Latest known price and transient change direction for one instrument"""
    symbol: str
    price: Decimal
    direction: Direction = Direction.NONE
    change_expires_at: Optional[datetime] = None

    @property
    def is_highlighted(self) -> bool:
        return self.direction != Direction.NONE


class StreamState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class FrameType(str, Enum):
    INITIAL = "initial"
    UPDATE = "update"


class PriceEntry(BaseModel):
    """One instrument inside a price frame"""
    model_config = ConfigDict(extra="ignore")

    price: Decimal = Field(ge=0)
    change: Optional[Decimal] = None


class PriceFrame(BaseModel):
    """Full price snapshot: {type, prices: {SYMBOL: {price, change}}}"""
    model_config = ConfigDict(extra="ignore")

    type: FrameType
    prices: Dict[str, PriceEntry]


class ConnectionStats(BaseModel):
    """WebSocket connection statistics"""
    connection_attempts: int = 0
    successful_connections: int = 0
    disconnections: int = 0
    reconnection_attempts: int = 0
    last_connection_time: Optional[datetime] = None
    last_disconnection_time: Optional[datetime] = None
    current_status: StreamState = StreamState.IDLE

    frames_received: int = 0
    frames_applied: int = 0
    frames_dropped: int = 0
    last_frame_time: Optional[datetime] = None


class StockPrice(BaseModel):
    """One row of the REST price snapshot (GET /prices)"""
    model_config = ConfigDict(extra="ignore")

    symbol: str
    price: Decimal = Field(ge=0)
    change: Optional[Decimal] = None
