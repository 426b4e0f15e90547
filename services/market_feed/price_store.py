"""Latest quote per instrument."""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

from core.logging import get_market_data_logger_safe
from services.auth.models import Session, SessionEndReason
from .models import Direction, Quote, StockPrice

QuoteListener = Callable[[Dict[str, Optional[Quote]]], None]


class PriceStore:
    """
    Pure state container for the fixed instrument universe.

    Symbols never received read as unknown (None). The store owns no
    timers; the stream client drives both updates and direction decay.
    """

    def __init__(self, symbols: Iterable[str]):
        self.symbols: List[str] = list(dict.fromkeys(symbols))
        self._quotes: Dict[str, Quote] = {}
        self._listeners: List[QuoteListener] = []
        self.logger = get_market_data_logger_safe("price_store")

    def is_known(self, symbol: str) -> bool:
        return symbol in self.symbols

    def get(self, symbol: str) -> Optional[Quote]:
        return self._quotes.get(symbol)

    def price_of(self, symbol: str) -> Optional[Decimal]:
        quote = self._quotes.get(symbol)
        return quote.price if quote else None

    def snapshot(self) -> Dict[str, Optional[Quote]]:
        return {symbol: self._quotes.get(symbol) for symbol in self.symbols}

    def is_empty(self) -> bool:
        return not self._quotes

    def subscribe(self, listener: QuoteListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set_quote(
        self,
        symbol: str,
        price: Decimal,
        direction: Direction,
        change_expires_at: Optional[datetime] = None,
        notify: bool = True,
    ) -> bool:
        """Store the latest price for a known symbol. Returns False if ignored."""
        if not self.is_known(symbol):
            self.logger.debug(f"Ignoring quote for unknown symbol {symbol}")
            return False
        if price < 0:
            raise ValueError(f"Negative price for {symbol}: {price}")

        self._quotes[symbol] = Quote(
            symbol=symbol,
            price=price,
            direction=direction,
            change_expires_at=change_expires_at if direction != Direction.NONE else None,
        )
        if notify:
            self._emit()
        return True

    def seed(self, prices: Iterable[StockPrice]) -> int:
        """Load a REST snapshot without highlighting anything."""
        applied = 0
        for row in prices:
            if self.set_quote(row.symbol, row.price, Direction.NONE, notify=False):
                applied += 1
        self._emit()
        return applied

    def clear_all_directions(self) -> None:
        """Drop every highlight at once; prices are untouched."""
        changed = False
        for symbol, quote in self._quotes.items():
            if quote.direction != Direction.NONE:
                self._quotes[symbol] = Quote(symbol=symbol, price=quote.price)
                changed = True
        if changed:
            self._emit()

    def clear(self) -> None:
        """Full reset (logout)."""
        if self._quotes:
            self._quotes = {}
            self._emit()

    # --- Session listener ---

    async def on_session_started(self, session: Session) -> None:
        pass

    def on_session_ended(self, reason: SessionEndReason) -> None:
        self.clear()

    def notify(self) -> None:
        """Publish the current snapshot after a batch of silent updates."""
        self._emit()

    def _emit(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                self.logger.error(f"Quote listener failed: {e}", exc_info=True)
