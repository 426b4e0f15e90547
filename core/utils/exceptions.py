# Structured exception hierarchy for the Ticker Desk client

from typing import Dict, Any, Optional
from datetime import datetime, timezone


class TickerDeskError(Exception):
    """Base exception for all Ticker Desk specific errors"""

    default_message = "Unexpected error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    @property
    def category(self) -> str:
        """Taxonomy name carried onto notifications and log events"""
        return type(self).__name__


class AuthError(TickerDeskError):
    """Server rejected the credentials or the signup (e.g. email already registered)"""
    default_message = "Authentication failed"


class CredentialRejectedError(AuthError):
    """An authenticated request was answered with 401 - the stored credential is no longer valid"""
    default_message = "Session expired. Please log in again."


class NetworkError(TickerDeskError):
    """Request could not be completed (transport failure, timeout, unreadable body)"""
    default_message = "Connection error. Please try again."

    def __init__(self, message: Optional[str] = None, endpoint: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.endpoint = endpoint


class ValidationError(TickerDeskError):
    """Local input rejected before any network call"""
    default_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class StreamError(TickerDeskError):
    """Streaming connection failed or dropped"""
    default_message = "Price stream disconnected"


class DecodeError(TickerDeskError):
    """Malformed stream frame"""
    default_message = "Malformed stream frame"

    def __init__(self, message: Optional[str] = None, raw: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw = raw
