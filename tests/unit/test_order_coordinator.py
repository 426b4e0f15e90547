import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from services.auth import AuthStatus
from services.market_feed import Direction
from services.orders import Order, OrderIntent, OrderSide
from tests.mocks.fake_stream import settle


@pytest.fixture
def logged_in(session_manager, order_coordinator):
    """Authenticated session with only the order log attached."""
    session_manager.add_listener(order_coordinator)

    async def _login():
        result = await session_manager.login("ana@example.com", "secret1")
        assert result.success
        return session_manager

    return _login


def _posted_orders(backend):
    return [json.loads(r.content) for r in backend.requests if r.method == "POST" and r.url.path == "/api/orders"]


class TestLocalValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -3, None, "abc"])
    async def test_invalid_quantity_makes_no_network_call(self, logged_in, order_coordinator, backend, notifications, quantity):
        await logged_in()

        result = await order_coordinator.submit({"symbol": "AAPL", "side": "BUY", "quantity": quantity})

        assert result is None
        assert notifications.current.message == "Please enter a valid quantity"
        assert notifications.current.category == "ValidationError"
        assert _posted_orders(backend) == []

    @pytest.mark.asyncio
    async def test_unknown_symbol_rejected_locally(self, logged_in, order_coordinator, backend, notifications):
        await logged_in()
        result = await order_coordinator.submit(OrderIntent(symbol="msft", side="buy", quantity=1))
        assert result is None
        assert notifications.current.message == "Unknown symbol: MSFT"
        assert _posted_orders(backend) == []

    @pytest.mark.asyncio
    async def test_requires_session(self, order_coordinator, backend, notifications):
        result = await order_coordinator.submit({"symbol": "AAPL", "side": "BUY", "quantity": 1})
        assert result is None
        assert notifications.current.message == "Please log in to place orders"
        assert notifications.current.category == "AuthError"
        assert backend.requests == []


class TestSubmission:

    @pytest.mark.asyncio
    async def test_successful_order_refreshes_log(self, logged_in, order_coordinator, backend, notifications):
        await logged_in()
        assert backend.count("GET", "/orders") == 1

        order = await order_coordinator.submit({"symbol": "AAPL", "side": "BUY", "quantity": 10, "price": "178.50"})

        assert isinstance(order, Order)
        assert order.id.startswith("ORD-")
        assert order.status == "completed"
        assert order.side == OrderSide.BUY
        assert order.price == Decimal("178.5")
        assert notifications.current.message == "BUY order placed successfully!"
        assert not notifications.current.is_error
        assert backend.count("GET", "/orders") == 2
        assert [o.id for o in order_coordinator.orders] == [order.id]

    @pytest.mark.asyncio
    async def test_server_rejection_shown_verbatim_log_untouched(
        self, logged_in, order_coordinator, backend, notifications
    ):
        backend.add_order("u-ana", "TSLA", "BUY", 5, 240.0)
        await logged_in()
        before = order_coordinator.orders
        backend.order_rejection = (400, "insufficient holdings")
        seen = []
        notifications.subscribe(seen.append)

        result = await order_coordinator.submit({"symbol": "TSLA", "side": "SELL", "quantity": 3, "price": 250})

        assert result is None
        assert len(seen) == 1
        assert seen[0].is_error
        assert seen[0].message == "insufficient holdings"
        assert order_coordinator.orders == before
        assert backend.count("GET", "/orders") == 1

    @pytest.mark.asyncio
    async def test_missing_price_uses_displayed_price(self, logged_in, order_coordinator, backend, price_store):
        await logged_in()
        price_store.set_quote("AAPL", Decimal("180.25"), Direction.UP)

        await order_coordinator.submit({"symbol": "AAPL", "side": "BUY", "quantity": 2})

        assert _posted_orders(backend)[-1] == {"symbol": "AAPL", "side": "BUY", "quantity": 2, "price": 180.25}

    @pytest.mark.asyncio
    async def test_missing_price_without_quote_sends_zero(self, logged_in, order_coordinator, backend):
        await logged_in()
        await order_coordinator.submit({"symbol": "INFY", "side": "SELL", "quantity": 1})
        assert _posted_orders(backend)[-1]["price"] == 0

    @pytest.mark.asyncio
    async def test_network_failure(self, logged_in, order_coordinator, backend, notifications):
        await logged_in()
        backend.network_error = httpx.ReadTimeout("timed out")

        assert await order_coordinator.submit({"symbol": "AAPL", "side": "BUY", "quantity": 1}) is None
        assert notifications.current.message == "Failed to place order"
        assert notifications.current.category == "NetworkError"

    @pytest.mark.asyncio
    async def test_unauthorized_submit_invalidates_session(
        self, logged_in, session_manager, order_coordinator, backend, notifications
    ):
        await logged_in()
        backend.revoke(session_manager.credential)

        assert await order_coordinator.submit({"symbol": "AAPL", "side": "BUY", "quantity": 1}) is None
        assert session_manager.status == AuthStatus.ANONYMOUS
        assert order_coordinator.orders == []
        assert notifications.current.message == "Session expired. Please log in again."


class TestOrderLog:

    @pytest.mark.asyncio
    async def test_refresh_replaces_wholesale_and_is_idempotent(self, logged_in, order_coordinator, backend):
        await logged_in()
        assert order_coordinator.orders == []

        backend.add_order("u-ana", "AAPL", "BUY", 1, 178.5)
        backend.add_order("u-ana", "TCS", "SELL", 2, 3520.4)
        backend.add_order("someone-else", "AAPL", "BUY", 9, 178.5)

        assert await order_coordinator.refresh()
        first = order_coordinator.orders
        assert await order_coordinator.refresh()

        assert order_coordinator.orders == first
        # Newest first, as served
        assert [o.symbol for o in first] == ["TCS", "AAPL"]

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_log_without_notification(
        self, logged_in, order_coordinator, backend, notifications
    ):
        backend.add_order("u-ana", "AAPL", "BUY", 1, 178.5)
        await logged_in()
        notifications.clear()
        backend.network_error = httpx.ConnectError("down")

        assert not await order_coordinator.refresh()
        assert len(order_coordinator.orders) == 1
        assert notifications.current is None

    @pytest.mark.asyncio
    async def test_response_from_ended_session_is_discarded(
        self, logged_in, session_manager, order_coordinator, backend
    ):
        await logged_in()
        backend.add_order("u-ana", "AAPL", "BUY", 1, 178.5)
        backend.gate = asyncio.Event()

        pending = asyncio.create_task(order_coordinator.refresh())
        await settle()
        session_manager.logout()
        backend.gate.set()

        assert not await pending
        assert order_coordinator.orders == []
    @pytest.mark.asyncio
    async def test_concurrent_refreshes_keep_last_response_to_arrive(self, logged_in, order_coordinator, backend):
        await logged_in()

        first_gate = asyncio.Event()
        backend.gate = first_gate
        first = asyncio.create_task(order_coordinator.refresh())
        await settle()

        second_gate = asyncio.Event()
        backend.gate = second_gate
        second = asyncio.create_task(order_coordinator.refresh())
        await settle()

        # The later request is answered first, against an empty server log
        second_gate.set()
        assert await second
        assert order_coordinator.orders == []

        backend.add_order("u-ana", "AAPL", "BUY", 1, 178.5)
        first_gate.set()
        assert await first

        assert [o.symbol for o in order_coordinator.orders] == ["AAPL"]

    @pytest.mark.asyncio
    async def test_refresh_without_session_is_noop(self, order_coordinator, backend):
        assert not await order_coordinator.refresh()
        assert backend.requests == []


@pytest.mark.asyncio
async def test_estimate_total(order_coordinator, price_store):
    assert order_coordinator.estimate_total("AAPL", 3) is None
    price_store.set_quote("AAPL", Decimal("178.5"), Direction.NONE)
    assert order_coordinator.estimate_total("aapl", 3) == Decimal("535.50")


def test_order_parses_backend_json():
    order = Order.model_validate({
        "id": "ORD-1700000000000000000",
        "userId": "u-ana",
        "symbol": "AAPL",
        "side": "BUY",
        "quantity": 10,
        "price": 178.5,
        "timestamp": "2024-03-01T10:15:30.123456789+05:30",
        "status": "completed",
    })
    assert order.user_id == "u-ana"
    assert order.submitted_at.microsecond == 123456
    assert order.notional == Decimal("1785.0")
