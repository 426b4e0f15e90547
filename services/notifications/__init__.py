"""Transient user notifications."""

from .bus import NotificationBus
from .models import Notification, NotificationKind

__all__ = [
    "NotificationBus",
    "Notification",
    "NotificationKind",
]
