"""Notification models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class NotificationKind(str, Enum):
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    """A transient user-facing message. At most one is live at a time."""
    message: str
    kind: NotificationKind
    expires_at: datetime
    # Error taxonomy name (e.g. "ValidationError") when produced by a failure
    category: Optional[str] = None
    sequence: int = 0

    @property
    def is_error(self) -> bool:
        return self.kind == NotificationKind.ERROR
