"""Single-slot notification bus with timed auto-clear."""

from typing import Callable, List, Optional, Union

from core.config.settings import Settings
from core.logging import get_logger
from core.utils.exceptions import TickerDeskError
from core.utils.scheduler import Scheduler, TimerHandle
from .models import Notification, NotificationKind

NotificationListener = Callable[[Optional[Notification]], None]


class NotificationBus:
    """
    Holds the one live notification.

    A publish always replaces whatever is showing and restarts the expiry
    window; there is no queue, so a message overwritten quickly is never
    shown for its full duration.
    """

    def __init__(self, settings: Settings, scheduler: Scheduler):
        self.scheduler = scheduler
        self.ttl_seconds = settings.notifications.ttl_ms / 1000.0
        self.logger = get_logger("notification_bus", component="notifications")

        self._current: Optional[Notification] = None
        self._timer: Optional[TimerHandle] = None
        self._sequence = 0
        self._listeners: List[NotificationListener] = []

    @property
    def current(self) -> Optional[Notification]:
        return self._current

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(
        self,
        message: str,
        kind: Union[NotificationKind, str] = NotificationKind.INFO,
        category: Optional[str] = None,
    ) -> Notification:
        """Replace the current notification and schedule its auto-clear."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        self._sequence += 1
        notification = Notification(
            message=message,
            kind=NotificationKind(kind),
            expires_at=self.scheduler.deadline(self.ttl_seconds),
            category=category,
            sequence=self._sequence,
        )
        self._current = notification

        sequence = self._sequence
        self._timer = self.scheduler.call_later(self.ttl_seconds, lambda: self._expire(sequence))

        self.logger.debug("Notification published", kind=notification.kind.value, category=category)
        self._emit(notification)
        return notification

    def info(self, message: str) -> Notification:
        return self.publish(message, NotificationKind.INFO)

    def error(self, message: str, category: Optional[str] = None) -> Notification:
        return self.publish(message, NotificationKind.ERROR, category=category)

    def publish_error(self, error: TickerDeskError) -> Notification:
        """Surface a taxonomy error as an error notification."""
        return self.error(error.message, category=error.category)

    def clear(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._current is not None:
            self._current = None
            self._emit(None)

    def _expire(self, sequence: int) -> None:
        # A superseded timer must not clear a newer notification
        if self._current is None or self._current.sequence != sequence:
            return
        self._timer = None
        self._current = None
        self._emit(None)

    def _emit(self, notification: Optional[Notification]) -> None:
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception as e:
                self.logger.error(f"Notification listener failed: {e}", exc_info=True)
