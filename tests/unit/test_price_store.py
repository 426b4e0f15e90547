from decimal import Decimal

import pytest

from services.market_feed import Direction, PriceStore, StockPrice


@pytest.fixture
def store():
    return PriceStore(["AAPL", "TSLA"])


def test_never_received_symbol_is_unknown(store):
    assert store.get("AAPL") is None
    assert store.price_of("AAPL") is None
    assert store.snapshot() == {"AAPL": None, "TSLA": None}
    assert store.is_empty()


def test_set_quote_updates_price_and_direction(store):
    assert store.set_quote("AAPL", Decimal("101.5"), Direction.UP)
    quote = store.get("AAPL")
    assert quote.price == Decimal("101.5")
    assert quote.direction == Direction.UP
    assert quote.is_highlighted


def test_unknown_symbol_ignored(store):
    assert not store.set_quote("MSFT", Decimal("1"), Direction.UP)
    assert "MSFT" not in store.snapshot()


def test_negative_price_rejected(store):
    with pytest.raises(ValueError):
        store.set_quote("AAPL", Decimal("-1"), Direction.DOWN)


def test_clear_all_directions_keeps_prices(store):
    store.set_quote("AAPL", Decimal("10"), Direction.UP)
    store.set_quote("TSLA", Decimal("20"), Direction.DOWN)

    store.clear_all_directions()

    assert store.get("AAPL").direction == Direction.NONE
    assert store.get("TSLA").direction == Direction.NONE
    assert store.price_of("AAPL") == Decimal("10")
    assert store.price_of("TSLA") == Decimal("20")


def test_clear_resets_everything(store):
    store.set_quote("AAPL", Decimal("10"), Direction.UP)
    store.clear()
    assert store.is_empty()
    assert store.get("AAPL") is None


def test_subscribers_receive_snapshots(store):
    seen = []
    store.subscribe(seen.append)
    store.set_quote("AAPL", Decimal("10"), Direction.UP)
    store.set_quote("TSLA", Decimal("20"), Direction.UP, notify=False)
    assert len(seen) == 1
    store.notify()
    assert seen[-1]["TSLA"].price == Decimal("20")


def test_seed_loads_without_highlight(store):
    applied = store.seed([
        StockPrice(symbol="AAPL", price=Decimal("178.50"), change=Decimal("1")),
        StockPrice(symbol="NOPE", price=Decimal("1")),
    ])
    assert applied == 1
    assert store.get("AAPL").direction == Direction.NONE


def test_direction_from_change():
    assert Direction.from_change(Decimal("1.2")) == Direction.UP
    assert Direction.from_change(Decimal("-0.3")) == Direction.DOWN
    assert Direction.from_change(Decimal("0")) == Direction.DOWN
    assert Direction.from_change(None) == Direction.DOWN
