"""Streaming price ingestion: frame decoding, quote state and connection lifecycle."""

from .formatter import FrameDecoder
from .models import ConnectionStats, Direction, PriceEntry, PriceFrame, Quote, StockPrice, StreamState
from .price_store import PriceStore
from .stream_client import StreamClient

__all__ = [
    "FrameDecoder",
    "ConnectionStats",
    "Direction",
    "PriceEntry",
    "PriceFrame",
    "Quote",
    "StockPrice",
    "StreamState",
    "PriceStore",
    "StreamClient",
]
