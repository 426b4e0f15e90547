"""Price stream connection lifecycle and frame ingestion."""

import asyncio
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Dict, List, Optional, Union

import websockets
from websockets.exceptions import WebSocketException

from core.config.settings import Settings
from core.logging import get_error_logger_safe, get_market_data_logger_safe
from core.utils.exceptions import DecodeError, StreamError
from core.utils.scheduler import Scheduler, TimerHandle
from services.auth.models import Session, SessionEndReason
from .formatter import FrameDecoder
from .models import ConnectionStats, Direction, PriceFrame, StreamState
from .price_store import PriceStore

Message = Union[str, bytes]
Connector = Callable[[str], AsyncContextManager[AsyncIterator[Message]]]
StateListener = Callable[[StreamState], None]


class StreamClient:
    """
    Keeps one inbound price stream open per authenticated session.

    ``IDLE -> CONNECTING -> OPEN -> CLOSED``. The client is armed by the
    session starting and disarmed by it ending; a dropped connection stays
    CLOSED unless reconnection is enabled in settings or ``reconnect()`` is
    called. Every connection run carries a generation number and frames
    from a superseded generation are discarded, so nothing received after
    teardown reaches the price store.

    Each applied frame re-arms one shared decay timer; when it fires all
    direction flags clear together, whichever symbols changed.
    """

    def __init__(
        self,
        settings: Settings,
        price_store: PriceStore,
        scheduler: Scheduler,
        connector: Optional[Connector] = None,
    ):
        self.settings = settings
        self.url = settings.stream.url
        self.decay_seconds = settings.stream.decay_ms / 1000.0
        self.reconnection = settings.reconnection
        self.price_store = price_store
        self.scheduler = scheduler
        self.decoder = FrameDecoder()
        self._connector = connector or self._default_connector

        self.logger = get_market_data_logger_safe("stream_client")
        self.error_logger = get_error_logger_safe("stream_client_errors")

        self.stats = ConnectionStats()
        self._state = StreamState.IDLE
        self._connected = False
        self._armed = False
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._decay_timer: Optional[TimerHandle] = None
        self._state_listeners: List[StateListener] = []

    def _default_connector(self, url: str) -> AsyncContextManager[AsyncIterator[Message]]:
        return websockets.connect(url, open_timeout=self.settings.stream.open_timeout_seconds)

    # --- Read access ---

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_armed(self) -> bool:
        return self._armed

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    # --- Session listener ---

    async def on_session_started(self, session: Session) -> None:
        self.arm()

    def on_session_ended(self, reason: SessionEndReason) -> None:
        self.disarm()
        self.price_store.clear()

    # --- Lifecycle ---

    def arm(self) -> None:
        """Start streaming unless a connection run is already live."""
        if self._armed and self._task is not None and not self._task.done():
            return
        self._armed = True
        self._start()

    def reconnect(self) -> bool:
        """Explicitly re-open the stream for the current session."""
        if not self._armed:
            self.logger.warning("Reconnect requested without an authenticated session")
            return False
        self.logger.info("🔄 Reconnecting price stream on request")
        self._stop_task()
        self._start()
        return True

    def disarm(self) -> None:
        """Close the stream and drop any pending connection attempt, synchronously."""
        self._armed = False
        self._stop_task()
        self._cancel_decay(clear_directions=False)
        self._set_connected(False)
        self._set_state(StreamState.IDLE)

    async def stop(self) -> None:
        """Disarm and wait for the connection task to unwind."""
        task = self._task
        self.disarm()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _start(self) -> None:
        self._generation += 1
        generation = self._generation
        self._task = asyncio.get_running_loop().create_task(
            self._run(generation), name=f"price-stream-{generation}"
        )

    def _stop_task(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _is_current(self, generation: int) -> bool:
        return self._armed and generation == self._generation

    async def _run(self, generation: int) -> None:
        failures = 0
        while self._is_current(generation):
            self._set_state(StreamState.CONNECTING)
            self.stats.connection_attempts += 1
            self.logger.info(f"Connecting to price stream {self.url}")
            try:
                async with self._connector(self.url) as connection:
                    if not self._is_current(generation):
                        return
                    self._on_open()
                    failures = 0
                    async for message in connection:
                        self._on_message(generation, message)
                if self._is_current(generation):
                    self._on_closed(StreamError("Price stream closed by server"))
            except asyncio.CancelledError:
                raise
            except (WebSocketException, OSError, asyncio.TimeoutError) as e:
                if self._is_current(generation):
                    self._on_closed(StreamError(f"{type(e).__name__}: {e}"))

            if not self._is_current(generation) or not self._should_retry(failures):
                return

            failures += 1
            delay = self._backoff_delay(failures)
            self.stats.reconnection_attempts += 1
            self.logger.info(
                f"🔄 Reconnection attempt {failures}/{self.reconnection.max_attempts} in {delay:.1f} seconds"
            )
            await asyncio.sleep(delay)

    def _should_retry(self, failures: int) -> bool:
        if not self.reconnection.enabled:
            return False
        if failures >= self.reconnection.max_attempts:
            self.logger.error(
                f"❌ Maximum reconnection attempts ({self.reconnection.max_attempts}) reached; stream stays closed"
            )
            return False
        return True

    def _backoff_delay(self, attempt: int) -> float:
        return min(
            self.reconnection.base_delay_seconds * (self.reconnection.backoff_multiplier ** (attempt - 1)),
            self.reconnection.max_delay_seconds,
        )

    # --- Event channel ---

    def _on_open(self) -> None:
        self.stats.successful_connections += 1
        self.stats.last_connection_time = datetime.now(timezone.utc)
        self._set_connected(True)
        self._set_state(StreamState.OPEN)
        self.logger.info("✅ Price stream connected")

    def _on_message(self, generation: int, message: Message) -> None:
        if not self._is_current(generation):
            self.logger.debug("Dropping frame from a torn-down connection")
            return

        self.stats.frames_received += 1
        self.stats.last_frame_time = datetime.now(timezone.utc)
        try:
            frame = self.decoder.decode(message)
        except DecodeError as e:
            self.stats.frames_dropped += 1
            self.error_logger.error(f"Dropping malformed frame: {e.message}", category=e.category)
            return

        if frame is None:
            return
        self.apply_frame(frame)

    def _on_closed(self, error: StreamError) -> None:
        self.stats.disconnections += 1
        self.stats.last_disconnection_time = datetime.now(timezone.utc)
        self._cancel_decay(clear_directions=True)
        self._set_connected(False)
        self._set_state(StreamState.CLOSED)
        self.logger.warning(f"Price stream closed: {error.message}", category=error.category)

    def apply_frame(self, frame: PriceFrame) -> int:
        """Apply a decoded snapshot to the price store and re-arm the shared decay timer."""
        expires_at = self.scheduler.deadline(self.decay_seconds)
        applied = 0
        for symbol, entry in frame.prices.items():
            if self.price_store.set_quote(
                symbol,
                entry.price,
                Direction.from_change(entry.change),
                change_expires_at=expires_at,
                notify=False,
            ):
                applied += 1

        self._arm_decay()
        self.stats.frames_applied += 1
        self.price_store.notify()
        return applied

    # --- Decay timer ---

    def _arm_decay(self) -> None:
        if self._decay_timer is not None:
            self._decay_timer.cancel()
        self._decay_timer = self.scheduler.call_later(self.decay_seconds, self._on_decay)

    def _on_decay(self) -> None:
        self._decay_timer = None
        self.price_store.clear_all_directions()

    def _cancel_decay(self, clear_directions: bool) -> None:
        if self._decay_timer is not None:
            self._decay_timer.cancel()
            self._decay_timer = None
            if clear_directions:
                self.price_store.clear_all_directions()

    # --- State ---

    def _set_connected(self, connected: bool) -> None:
        self._connected = connected

    def _set_state(self, state: StreamState) -> None:
        if state == self._state:
            return
        self._state = state
        self.stats.current_status = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                self.logger.error(f"Stream state listener failed: {e}", exc_info=True)

    def get_metrics(self) -> Dict[str, Any]:
        return {
            **self.stats.model_dump(mode="json"),
            "is_armed": self._armed,
            "is_connected": self._connected,
        }
