"""
Stream client lifecycle: connection states, frame ingestion, shared decay
timer, teardown on session end, and opt-in reconnection.
"""

import asyncio
from decimal import Decimal

import pytest
from websockets.exceptions import ConnectionClosedError

from core.config.settings import ReconnectionSettings
from services.auth import SessionEndReason
from services.market_feed import Direction, PriceStore, StreamClient, StreamState
from tests.mocks.fake_stream import FakeStreamServer, settle

INITIAL = {
    "type": "initial",
    "prices": {
        "AAPL": {"price": 178.5, "change": 0},
        "TSLA": {"price": 242.8, "change": 0},
    },
}


async def _open(stream_client, stream_server):
    stream_client.arm()
    await settle()
    assert stream_client.state == StreamState.OPEN
    return stream_server.latest


@pytest.mark.asyncio
async def test_arm_connects_to_configured_url(stream_client, stream_server, test_settings):
    states = []
    stream_client.add_state_listener(states.append)

    conn = await _open(stream_client, stream_server)

    assert conn.url == test_settings.stream.url
    assert states == [StreamState.CONNECTING, StreamState.OPEN]
    assert stream_client.is_connected
    assert stream_client.get_metrics()["successful_connections"] == 1


@pytest.mark.asyncio
async def test_arm_twice_keeps_one_connection(stream_client, stream_server):
    await _open(stream_client, stream_server)
    stream_client.arm()
    await settle()
    assert stream_server.attempts == 1


@pytest.mark.asyncio
async def test_initial_frame_populates_store(stream_client, stream_server, price_store):
    conn = await _open(stream_client, stream_server)

    conn.send_frame(INITIAL)
    await settle()

    assert price_store.price_of("AAPL") == Decimal("178.5")
    assert price_store.price_of("TSLA") == Decimal("242.8")
    # Zero change reads as down
    assert price_store.get("AAPL").direction == Direction.DOWN
    assert price_store.get("AMZN") is None


@pytest.mark.asyncio
async def test_update_highlight_decays_after_one_second(stream_client, stream_server, price_store, scheduler):
    conn = await _open(stream_client, stream_server)

    conn.send_frame({"type": "update", "prices": {"AAPL": {"price": 101.5, "change": 1.2}}})
    await settle()
    assert price_store.get("AAPL").direction == Direction.UP

    scheduler.advance(0.999)
    assert price_store.get("AAPL").direction == Direction.UP

    scheduler.advance(0.001)
    quote = price_store.get("AAPL")
    assert quote.direction == Direction.NONE
    assert quote.price == Decimal("101.5")


@pytest.mark.asyncio
async def test_decay_timer_is_shared_and_rearmed(stream_client, stream_server, price_store, scheduler):
    conn = await _open(stream_client, stream_server)

    conn.send_frame({"type": "update", "prices": {"AAPL": {"price": 10, "change": 1}}})
    await settle()
    scheduler.advance(0.6)
    conn.send_frame({"type": "update", "prices": {"TSLA": {"price": 20, "change": -1}}})
    await settle()

    # AAPL's own window has passed but the later frame re-armed the shared timer
    scheduler.advance(0.6)
    assert price_store.get("AAPL").direction == Direction.UP
    assert price_store.get("TSLA").direction == Direction.DOWN

    scheduler.advance(0.4)
    assert price_store.get("AAPL").direction == Direction.NONE
    assert price_store.get("TSLA").direction == Direction.NONE


@pytest.mark.asyncio
async def test_frame_only_touches_symbols_present(stream_client, stream_server, price_store):
    conn = await _open(stream_client, stream_server)
    conn.send_frame(INITIAL)
    conn.send_frame({"type": "update", "prices": {"AAPL": {"price": 180, "change": 1.5}}})
    await settle()

    assert price_store.price_of("AAPL") == Decimal("180")
    assert price_store.price_of("TSLA") == Decimal("242.8")


@pytest.mark.asyncio
async def test_unknown_symbol_in_frame_ignored(stream_client, stream_server, price_store):
    conn = await _open(stream_client, stream_server)
    conn.send_frame({"type": "update", "prices": {"MSFT": {"price": 1, "change": 1}}})
    await settle()
    assert "MSFT" not in price_store.snapshot()


@pytest.mark.asyncio
async def test_malformed_frame_dropped_connection_stays_open(stream_client, stream_server, price_store):
    conn = await _open(stream_client, stream_server)
    conn.send_frame(INITIAL)
    await settle()

    conn.send_raw("{broken")
    conn.send_frame({"type": "update", "prices": {"AAPL": {"price": 5}, "TSLA": {"price": "x"}}})
    await settle()

    assert stream_client.state == StreamState.OPEN
    assert price_store.price_of("AAPL") == Decimal("178.5")
    assert stream_client.stats.frames_dropped == 2

    conn.send_frame({"type": "update", "prices": {"AAPL": {"price": 179, "change": 0.5}}})
    await settle()
    assert price_store.price_of("AAPL") == Decimal("179")


@pytest.mark.asyncio
async def test_non_price_message_ignored(stream_client, stream_server):
    conn = await _open(stream_client, stream_server)
    conn.send_frame({"type": "ping"})
    await settle()
    assert stream_client.state == StreamState.OPEN
    assert stream_client.stats.frames_applied == 0
    assert stream_client.stats.frames_dropped == 0


@pytest.mark.asyncio
async def test_server_close_goes_closed_without_reconnect(stream_client, stream_server, price_store):
    conn = await _open(stream_client, stream_server)
    conn.send_frame({"type": "update", "prices": {"AAPL": {"price": 10, "change": 1}}})
    await settle()

    conn.close()
    await settle()

    assert stream_client.state == StreamState.CLOSED
    assert not stream_client.is_connected
    assert stream_server.attempts == 1
    # Prices remain, highlight is dropped with the connection
    assert price_store.price_of("AAPL") == Decimal("10")
    assert price_store.get("AAPL").direction == Direction.NONE


@pytest.mark.asyncio
async def test_abrupt_drop_goes_closed(stream_client, stream_server):
    conn = await _open(stream_client, stream_server)
    conn.fail(ConnectionClosedError(None, None))
    await settle()
    assert stream_client.state == StreamState.CLOSED
    assert stream_client.stats.disconnections == 1


@pytest.mark.asyncio
async def test_refused_connection_goes_closed(stream_client, stream_server):
    stream_server.refuse_with = ConnectionRefusedError("refused")
    stream_client.arm()
    await settle()
    assert stream_client.state == StreamState.CLOSED
    assert stream_server.attempts == 1


@pytest.mark.asyncio
async def test_session_end_tears_down_and_clears(stream_client, stream_server, price_store):
    conn = await _open(stream_client, stream_server)
    conn.send_frame(INITIAL)
    await settle()

    stream_client.on_session_ended(SessionEndReason.LOGOUT)

    # Teardown is synchronous
    assert stream_client.state == StreamState.IDLE
    assert not stream_client.is_armed
    assert price_store.is_empty()

    # A frame the server sent just before the close never lands
    conn.send_frame({"type": "update", "prices": {"AAPL": {"price": 1, "change": 1}}})
    await settle()
    assert price_store.is_empty()
    assert conn.exited


@pytest.mark.asyncio
async def test_frame_from_superseded_connection_is_dropped(stream_client, stream_server, price_store):
    await _open(stream_client, stream_server)
    stale_generation = stream_client._generation

    assert stream_client.reconnect()
    await settle()

    stream_client._on_message(stale_generation, '{"type": "update", "prices": {"AAPL": {"price": 1}}}')
    assert price_store.get("AAPL") is None
    assert stream_server.attempts == 2


@pytest.mark.asyncio
async def test_explicit_reconnect_after_close(stream_client, stream_server):
    conn = await _open(stream_client, stream_server)
    conn.close()
    await settle()
    assert stream_client.state == StreamState.CLOSED

    assert stream_client.reconnect()
    await settle()
    assert stream_client.state == StreamState.OPEN
    assert stream_server.attempts == 2


@pytest.mark.asyncio
async def test_reconnect_requires_armed_client(stream_client, stream_server):
    assert not stream_client.reconnect()
    await settle()
    assert stream_server.attempts == 0


@pytest.mark.asyncio
async def test_reconnection_backoff_is_bounded(settings_factory, scheduler):
    settings = settings_factory(
        reconnection=ReconnectionSettings(
            enabled=True, max_attempts=3, base_delay_seconds=0.01, max_delay_seconds=0.02
        )
    )
    server = FakeStreamServer()
    server.refuse_with = ConnectionRefusedError("refused")
    client = StreamClient(settings, PriceStore(settings.symbols), scheduler, connector=server)

    client.arm()
    await asyncio.sleep(0.2)

    assert server.attempts == 4
    assert client.stats.reconnection_attempts == 3
    assert client.state == StreamState.CLOSED
    await client.stop()


@pytest.mark.asyncio
async def test_reconnection_resumes_stream(settings_factory, scheduler):
    settings = settings_factory(reconnection=ReconnectionSettings(enabled=True, base_delay_seconds=0.01))
    server = FakeStreamServer()
    store = PriceStore(settings.symbols)
    client = StreamClient(settings, store, scheduler, connector=server)

    client.arm()
    await settle()
    server.latest.close()
    await asyncio.sleep(0.05)

    assert server.attempts == 2
    assert client.state == StreamState.OPEN
    server.latest.send_frame(INITIAL)
    await settle()
    assert store.price_of("AAPL") == Decimal("178.5")
    await client.stop()


def test_backoff_delay_grows_and_caps(settings_factory, scheduler):
    settings = settings_factory(
        reconnection=ReconnectionSettings(enabled=True, base_delay_seconds=1, backoff_multiplier=2, max_delay_seconds=5)
    )
    client = StreamClient(settings, PriceStore(settings.symbols), scheduler, connector=FakeStreamServer())
    assert [client._backoff_delay(n) for n in range(1, 5)] == [1, 2, 4, 5]
