"""REST boundary of the trading backend."""

from .client import TradingApiClient
from .models import ApiResponse

__all__ = ["TradingApiClient", "ApiResponse"]
