"""Order submission and reconciliation against the server order log."""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError as SchemaValidationError

from core.logging import get_audit_logger_safe, get_trading_logger_safe
from core.utils.exceptions import AuthError, NetworkError, ValidationError
from core.utils.scheduler import Scheduler
from services.auth import Session, SessionEndReason, SessionManager
from services.broker_api import TradingApiClient
from services.market_feed import PriceStore
from services.notifications import NotificationBus
from .models import Order, OrderIntent


class OrderCoordinator:
    """
    Validates and submits orders, and mirrors the server order log.

    The local log is a read-through cache: it is only ever replaced
    wholesale by a fetched list, never appended to optimistically. A
    response that lands after its session ended is discarded.
    """

    def __init__(
        self,
        api_client: TradingApiClient,
        session_manager: SessionManager,
        notifications: NotificationBus,
        price_store: PriceStore,
        scheduler: Scheduler,
    ):
        self.api_client = api_client
        self.session_manager = session_manager
        self.notifications = notifications
        self.price_store = price_store
        self.scheduler = scheduler
        self.logger = get_trading_logger_safe("order_coordinator")
        self.audit_logger = get_audit_logger_safe("order_audit")

        self._orders: List[Order] = []
        # Bumped on every clear(); in-flight responses from an older epoch are dropped
        self._epoch = 0
        self.last_refreshed_at: Optional[datetime] = None

    @property
    def orders(self) -> List[Order]:
        return list(self._orders)

    # --- Session listener ---

    async def on_session_started(self, session: Session) -> None:
        await self.refresh()

    def on_session_ended(self, reason: SessionEndReason) -> None:
        self.clear()

    # --- Operations ---

    async def submit(self, intent: Union[OrderIntent, Mapping[str, Any]]) -> Optional[Order]:
        """Submit one order; all outcomes are reported through notifications."""
        try:
            intent = self._validate(intent)
        except ValidationError as e:
            self.logger.info(f"Order rejected locally: {e.message}")
            self.notifications.publish_error(e)
            return None

        token = self.session_manager.credential
        if token is None:
            self.notifications.publish_error(AuthError("Please log in to place orders"))
            return None

        price = intent.price
        if price is None:
            # Snapshot of the displayed price; the server decides the fill
            price = self.price_store.price_of(intent.symbol) or Decimal("0")

        epoch = self._epoch
        try:
            response = await self.api_client.create_order(
                token, intent.symbol, intent.side.value, intent.quantity, price
            )
        except NetworkError as e:
            self.logger.warning(f"Order submission failed: {e.message}")
            self.notifications.error("Failed to place order", category=e.category)
            return None

        if epoch != self._epoch:
            self.logger.info("Discarding order response from an ended session")
            return None

        if response.unauthorized:
            self.session_manager.invalidate()
            return None

        if not response.success:
            error = response.error_message("Failed to place order")
            self.logger.warning(f"Order rejected by server: {error}", symbol=intent.symbol, side=intent.side.value)
            self.notifications.error(error)
            return None

        order = None
        try:
            order = Order.model_validate(response.data)
        except SchemaValidationError:
            self.logger.warning("Order accepted but the echoed order is malformed")

        self.audit_logger.info(
            "Order placed",
            order_id=order.id if order else None,
            symbol=intent.symbol,
            side=intent.side.value,
            quantity=intent.quantity,
        )
        self.notifications.info(f"{intent.side.value} order placed successfully!")
        await self.refresh()
        return order

    async def refresh(self) -> bool:
        """Replace the local log with the server's. Last response to arrive wins."""
        token = self.session_manager.credential
        if token is None:
            return False

        epoch = self._epoch
        try:
            response = await self.api_client.list_orders(token)
        except NetworkError as e:
            self.logger.warning(f"Failed to fetch orders: {e.message}")
            return False

        if epoch != self._epoch:
            self.logger.info("Discarding order log from an ended session")
            return False

        if response.unauthorized:
            self.session_manager.invalidate()
            return False

        if not response.success:
            self.logger.warning(f"Order log fetch rejected: {response.error_message('unknown error')}")
            return False

        if not isinstance(response.data or [], list):
            self.logger.error("Order log response is not a list")
            return False

        try:
            orders = [Order.model_validate(item) for item in response.data or []]
        except SchemaValidationError as e:
            self.logger.error(f"Order log response is malformed: {e.error_count()} errors")
            return False

        self._orders = orders
        self.last_refreshed_at = self.scheduler.now()
        self.logger.debug(f"Order log refreshed ({len(orders)} orders)")
        return True

    def clear(self) -> None:
        self._epoch += 1
        self._orders = []
        self.last_refreshed_at = None

    def estimate_total(self, symbol: str, quantity: int) -> Optional[Decimal]:
        """Displayed price x quantity, or None while the price is unknown."""
        price = self.price_store.price_of(symbol.upper())
        if price is None:
            return None
        return (price * quantity).quantize(Decimal("0.01"))

    def _validate(self, intent: Union[OrderIntent, Mapping[str, Any]]) -> OrderIntent:
        if not isinstance(intent, OrderIntent):
            try:
                intent = OrderIntent.model_validate(intent)
            except SchemaValidationError as e:
                first = e.errors()[0]
                field = ".".join(str(p) for p in first["loc"]) or None
                if field == "quantity":
                    raise ValidationError("Please enter a valid quantity", field="quantity") from e
                raise ValidationError(f"Invalid order {field}: {first['msg']}", field=field) from e

        if intent.quantity is None or intent.quantity <= 0:
            raise ValidationError("Please enter a valid quantity", field="quantity")

        if not self.price_store.is_known(intent.symbol):
            raise ValidationError(f"Unknown symbol: {intent.symbol}", field="symbol")

        return intent
