"""Latest market state per symbol, safe to share between threads."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class MarketSnapshot:
    """A consistent copy of one symbol's market state."""

    best_bid: float = 0.0
    best_ask: float = 0.0
    bid_quantity: int = 0
    ask_quantity: int = 0
    last_traded_price: float = 0.0
    last_traded_quantity: int = 0
    last_update_time: int = 0
    update_count: int = 0


@dataclass
class _MarketState:
    best_bid: float = 0.0
    best_ask: float = 0.0
    bid_quantity: int = 0
    ask_quantity: int = 0
    last_traded_price: float = 0.0
    last_traded_quantity: int = 0
    last_update_time: int = 0
    update_count: int = 0

    def touch(self) -> None:
        self.last_update_time = time.monotonic_ns()
        self.update_count += 1

    def freeze(self) -> MarketSnapshot:
        return MarketSnapshot(
            best_bid=self.best_bid,
            best_ask=self.best_ask,
            bid_quantity=self.bid_quantity,
            ask_quantity=self.ask_quantity,
            last_traded_price=self.last_traded_price,
            last_traded_quantity=self.last_traded_quantity,
            last_update_time=self.last_update_time,
            update_count=self.update_count,
        )


class SymbolCache:
    """Best bid/ask and last trade for symbols ``0 .. num_symbols - 1``.

    Updates to unknown symbols are ignored; reads of unknown symbols return
    zeroed values.
    """

    def __init__(self, num_symbols: int) -> None:
        if num_symbols < 0:
            raise ValueError("number of symbols must not be negative")
        self._num_symbols = num_symbols
        self._states = [_MarketState() for _ in range(num_symbols)]
        self._lock = threading.Lock()

    def _state(self, symbol_id: int) -> _MarketState | None:
        if 0 <= symbol_id < self._num_symbols:
            return self._states[symbol_id]
        return None

    def update_bid(self, symbol_id: int, price: float, quantity: int) -> None:
        state = self._state(symbol_id)
        if state is None:
            return
        with self._lock:
            state.best_bid = price
            state.bid_quantity = quantity
            state.touch()

    def update_ask(self, symbol_id: int, price: float, quantity: int) -> None:
        state = self._state(symbol_id)
        if state is None:
            return
        with self._lock:
            state.best_ask = price
            state.ask_quantity = quantity
            state.touch()

    def update_trade(self, symbol_id: int, price: float, quantity: int) -> None:
        state = self._state(symbol_id)
        if state is None:
            return
        with self._lock:
            state.last_traded_price = price
            state.last_traded_quantity = quantity
            state.touch()

    def update_quote(
        self, symbol_id: int, bid_price: float, bid_qty: int, ask_price: float, ask_qty: int
    ) -> None:
        """Set both sides of the book in one update."""
        state = self._state(symbol_id)
        if state is None:
            return
        with self._lock:
            state.best_bid = bid_price
            state.bid_quantity = bid_qty
            state.best_ask = ask_price
            state.ask_quantity = ask_qty
            state.touch()

    def snapshot(self, symbol_id: int) -> MarketSnapshot:
        state = self._state(symbol_id)
        if state is None:
            return MarketSnapshot()
        with self._lock:
            return state.freeze()

    def bid(self, symbol_id: int) -> float:
        state = self._state(symbol_id)
        if state is None:
            return 0.0
        with self._lock:
            return state.best_bid

    def ask(self, symbol_id: int) -> float:
        state = self._state(symbol_id)
        if state is None:
            return 0.0
        with self._lock:
            return state.best_ask

    def ltp(self, symbol_id: int) -> float:
        """Last traded price."""
        state = self._state(symbol_id)
        if state is None:
            return 0.0
        with self._lock:
            return state.last_traded_price

    @property
    def num_symbols(self) -> int:
        return self._num_symbols

    def total_updates(self) -> int:
        """Sum of update counts across all symbols."""
        with self._lock:
            return sum(state.update_count for state in self._states)