import threading

import pytest

from mdfeed.cache import MarketSnapshot, SymbolCache


def test_new_cache_is_zeroed():
    cache = SymbolCache(4)
    assert cache.num_symbols == 4
    assert cache.snapshot(0) == MarketSnapshot()
    assert cache.total_updates() == 0


def test_update_quote_sets_both_sides():
    cache = SymbolCache(10)
    cache.update_quote(3, 100.0, 1000, 100.5, 2000)
    snap = cache.snapshot(3)
    assert snap.best_bid == 100.0
    assert snap.bid_quantity == 1000
    assert snap.best_ask == 100.5
    assert snap.ask_quantity == 2000
    assert snap.update_count == 1
    assert cache.bid(3) == 100.0
    assert cache.ask(3) == 100.5


def test_update_trade_sets_last_traded():
    cache = SymbolCache(10)
    cache.update_trade(2, 100.25, 500)
    snap = cache.snapshot(2)
    assert snap.last_traded_price == 100.25
    assert snap.last_traded_quantity == 500
    assert cache.ltp(2) == 100.25
    assert snap.best_bid == 0.0


def test_update_bid_and_ask_separately():
    cache = SymbolCache(5)
    cache.update_bid(1, 99.5, 10)
    cache.update_ask(1, 101.5, 20)
    snap = cache.snapshot(1)
    assert (snap.best_bid, snap.bid_quantity) == (99.5, 10)
    assert (snap.best_ask, snap.ask_quantity) == (101.5, 20)
    assert snap.update_count == 2


@pytest.mark.parametrize("symbol_id", [5, 100, 0xFFFF, -1])
def test_invalid_symbol_is_ignored(symbol_id):
    cache = SymbolCache(5)
    cache.update_quote(symbol_id, 1.0, 1, 2.0, 2)
    cache.update_trade(symbol_id, 1.5, 3)
    assert cache.snapshot(symbol_id) == MarketSnapshot()
    assert cache.bid(symbol_id) == 0.0
    assert cache.ask(symbol_id) == 0.0
    assert cache.ltp(symbol_id) == 0.0
    assert cache.total_updates() == 0


def test_total_updates_sums_all_symbols():
    cache = SymbolCache(3)
    cache.update_quote(0, 1.0, 1, 2.0, 1)
    cache.update_trade(0, 1.5, 1)
    cache.update_bid(2, 1.0, 1)
    assert cache.total_updates() == 3
    assert cache.snapshot(0).update_count == 2
    assert cache.snapshot(1).update_count == 0


def test_update_time_does_not_go_backwards():
    cache = SymbolCache(1)
    cache.update_bid(0, 1.0, 1)
    first = cache.snapshot(0).last_update_time
    cache.update_ask(0, 2.0, 1)
    second = cache.snapshot(0).last_update_time
    assert first > 0
    assert second >= first


def test_snapshot_is_immutable_copy():
    cache = SymbolCache(1)
    cache.update_bid(0, 1.0, 1)
    snap = cache.snapshot(0)
    cache.update_bid(0, 2.0, 2)
    assert snap.best_bid == 1.0
    with pytest.raises(AttributeError):
        snap.best_bid = 5.0  # type: ignore[misc]


def test_negative_size_rejected():
    with pytest.raises(ValueError):
        SymbolCache(-1)


def test_concurrent_reads_see_consistent_quotes():
    cache = SymbolCache(1)
    stop = threading.Event()
    bad = []

    def writer():
        i = 0
        while not stop.is_set():
            cache.update_quote(0, float(i), i, float(i + 1), i)
            i += 1

    thread = threading.Thread(target=writer)
    thread.start()
    try:
        for _ in range(2000):
            snap = cache.snapshot(0)
            if snap.update_count and snap.best_ask - snap.best_bid != 1.0:
                bad.append(snap)
            if snap.bid_quantity != snap.ask_quantity:
                bad.append(snap)
    finally:
        stop.set()
        thread.join()
    assert bad == []
    assert cache.total_updates() > 0