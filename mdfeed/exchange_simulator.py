"""Simulated exchange that streams market data ticks to TCP subscribers."""

from __future__ import annotations

import logging
import math
import os
import random
import selectors
import socket
import threading
import time
from contextlib import suppress
from dataclasses import dataclass, replace

from .client_manager import ClientManager
from .config_parser import ConfigParser
from .protocol import (
    SUBSCRIBE_COMMAND,
    MessageHeader,
    MessageType,
    QuoteMessage,
    TradeMessage,
    parse_subscription,
)
from .tick_generator import TickGenerator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config/server.conf"
DEFAULT_SYMBOLS_FILE = "config/symbols.csv"
DEFAULT_PORT = 9876
DEFAULT_NUM_SYMBOLS = 100
DEFAULT_TICK_RATE = 100_000
PRICE_UPDATE_INTERVAL = 100
BROADCAST_ALL = 0xFFFF
MAX_CLIENTS = 1000

_MAX_SYMBOL_ID = 0xFFFF
_UINT32_MASK = 0xFFFFFFFF
_SELECT_TIMEOUT = 0.1
_RECV_SIZE = 1024
_GAP_PERCENT = 1
_FRAGMENT_PERCENT = 5
_FRAGMENT_PAUSE = 100e-6
_MIN_SUBSCRIPTION_LENGTH = 3


@dataclass
class SymbolState:
    """Simulated state of one instrument."""

    symbol_id: int = 0
    symbol_name: str = ""
    current_price: float = 0.0
    volatility: float = 0.0
    drift: float = 0.0
    seq_num: int = 0
    ticks_since_price_update: int = 0


def _parse_symbol_row(line: str) -> SymbolState | None:
    fields = line.rstrip("\r\n").split(",")
    if len(fields) < 5:
        return None
    id_text = fields[0].strip()
    if not (id_text.isascii() and id_text.isdigit()):
        return None
    symbol_id = int(id_text)
    if symbol_id > _MAX_SYMBOL_ID:
        return None
    try:
        price, volatility, drift = (float(field) for field in fields[2:5])
    except ValueError:
        return None
    if not all(math.isfinite(value) for value in (price, volatility, drift)):
        return None
    return SymbolState(symbol_id, fields[1], price, volatility, drift)


def load_symbols(path: str | os.PathLike[str], num_symbols: int) -> list[SymbolState]:
    """Read ``symbol_id,symbol,price,volatility,drift`` rows after a header line.

    Malformed rows and rows whose id is not below ``num_symbols`` are skipped.
    Raises ``FileNotFoundError`` if the file is missing and ``ValueError`` if
    no row could be loaded.
    """
    with open(path, encoding="utf-8", errors="replace") as handle:
        lines = handle.read().split("\n")[1:]
    loaded: list[SymbolState] = []
    for line in lines:
        state = _parse_symbol_row(line)
        if state is None:
            continue
        if state.symbol_id >= num_symbols:
            logger.warning(
                "symbol id %d exceeds max symbols %d, skipping", state.symbol_id, num_symbols
            )
            continue
        loaded.append(state)
    if not loaded:
        raise ValueError(f"no symbols loaded from file: {os.fspath(path)}")
    logger.info("loaded %d symbols from %s", len(loaded), os.fspath(path))
    return loaded


class ExchangeSimulator:
    """TCP server that generates GBM price ticks and sends them to subscribers.

    Constructor arguments take precedence over the configuration file: the
    port only comes from the file when ``port`` is 0, and the symbol count only
    when ``num_symbols`` is left at 100. The underlying price moves every
    ``price_update_interval`` ticks of a symbol.
    """

    def __init__(
        self,
        port: int,
        num_symbols: int = DEFAULT_NUM_SYMBOLS,
        config_file: str | os.PathLike[str] = DEFAULT_CONFIG_FILE,
        *,
        price_update_interval: int = PRICE_UPDATE_INTERVAL,
    ) -> None:
        if price_update_interval < 1:
            raise ValueError("price update interval must be at least 1")
        self._port = port
        self._num_symbols = num_symbols
        self._tick_rate = DEFAULT_TICK_RATE
        self._fault_injection = False
        self._symbols_file = DEFAULT_SYMBOLS_FILE
        self._price_update_interval = price_update_interval
        self._load_config(config_file)

        self._loaded = load_symbols(self._symbols_file, self._num_symbols)
        self._symbols = [SymbolState() for _ in range(self._num_symbols)]
        for state in self._loaded:
            self._symbols[state.symbol_id] = state

        self._generator = TickGenerator()
        self._fault_rng = random.Random()
        self._state_lock = threading.Lock()
        self._tick_cv = threading.Condition()
        self._io_lock = threading.RLock()
        self._clients = ClientManager()
        self._sockets: dict[int, socket.socket] = {}
        self._server: socket.socket | None = None
        self._selector: selectors.BaseSelector | None = None
        self._tick_thread: threading.Thread | None = None
        self._running = False

    def _load_config(self, config_file: str | os.PathLike[str]) -> None:
        config = ConfigParser()
        try:
            config.load(config_file)
        except OSError:
            logger.warning("config file %s not found, using defaults", os.fspath(config_file))
        else:
            if self._port == 0:
                self._port = config.get_int("server.port", DEFAULT_PORT) & 0xFFFF
            if self._num_symbols == DEFAULT_NUM_SYMBOLS:
                self._num_symbols = config.get_int("market.num_symbols", DEFAULT_NUM_SYMBOLS)
            self._tick_rate = config.get_int("market.tick_rate", DEFAULT_TICK_RATE) & _UINT32_MASK
            self._symbols_file = config.get_string("market.symbols_file", DEFAULT_SYMBOLS_FILE)
            self._fault_injection = config.get_bool("fault_injection.enabled", False)
        if self._num_symbols < 0:
            raise ValueError("number of symbols must not be negative")
        logger.info(
            "exchange simulator configuration: port=%d symbols=%d tick_rate=%d "
            "symbols_file=%s fault_injection=%s",
            self._port,
            self._num_symbols,
            self._tick_rate,
            self._symbols_file,
            "enabled" if self._fault_injection else "disabled",
        )

    def __enter__(self) -> ExchangeSimulator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def port(self) -> int:
        """The listening port; the bound port once started."""
        return self._port

    @property
    def num_symbols(self) -> int:
        return self._num_symbols

    @property
    def tick_rate(self) -> int:
        return self._tick_rate

    @property
    def symbols_file(self) -> str:
        return self._symbols_file

    @property
    def fault_injection_enabled(self) -> bool:
        return self._fault_injection

    @property
    def num_loaded_symbols(self) -> int:
        return len(self._loaded)

    @property
    def connected_clients(self) -> int:
        return len(self._clients)

    def symbol(self, index: int) -> SymbolState:
        """Return a copy of the ``index``-th symbol loaded from the file."""
        if index < 0:
            raise IndexError("symbol index out of range")
        with self._state_lock:
            return replace(self._loaded[index])

    def client_fds(self) -> list[int]:
        return self._clients.all_clients()

    def is_client_subscribed(self, client_fd: int, symbol_id: int) -> bool:
        return self._clients.is_subscribed(client_fd, symbol_id)

    def client_subscription_count(self, client_fd: int) -> int:
        return self._clients.subscription_count(client_fd)

    def start(self) -> None:
        """Bind, listen and start the background tick thread."""
        if self._running:
            raise RuntimeError("simulator is already running")
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.bind(("", self._port))
            server.listen(MAX_CLIENTS)
            server.setblocking(False)
            selector = selectors.DefaultSelector()
            selector.register(server, selectors.EVENT_READ)
        except OSError:
            server.close()
            raise
        self._port = server.getsockname()[1]
        with self._io_lock:
            self._server = server
            self._selector = selector
        self._running = True
        self._tick_thread = threading.Thread(
            target=self._tick_loop, name="tick-generator", daemon=True
        )
        self._tick_thread.start()
        logger.info("exchange simulator started on port %d", self._port)

    def run(self) -> None:
        """Serve connections and subscriptions until ``stop`` is called."""
        while self._running:
            selector = self._selector
            if selector is None:
                break
            try:
                events = selector.select(_SELECT_TIMEOUT)
            except (OSError, ValueError):
                if not self._running:
                    break
                raise
            for key, _mask in events:
                if not self._running:
                    break
                if key.fileobj is self._server:
                    self._accept()
                else:
                    self._handle_client_data(key.fd)

    def stop(self) -> None:
        """Stop ticking, close every client and the listening socket. Idempotent."""
        self._running = False
        with self._tick_cv:
            self._tick_cv.notify_all()
        thread = self._tick_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
            self._tick_thread = None
        with self._io_lock:
            for fd in self._clients.all_clients():
                sock = self._sockets.pop(fd, None)
                if sock is not None:
                    sock.close()
                self._clients.remove_client(fd)
            for sock in self._sockets.values():
                sock.close()
            self._sockets.clear()
            if self._selector is not None:
                self._selector.close()
                self._selector = None
            if self._server is not None:
                self._server.close()
                self._server = None

    def set_tick_rate(self, ticks_per_second: int) -> None:
        """Change the overall tick rate; 0 pauses the tick thread."""
        if not 0 <= ticks_per_second <= _UINT32_MASK:
            raise ValueError("tick rate must fit in 32 unsigned bits")
        with self._tick_cv:
            old_rate = self._tick_rate
            self._tick_rate = ticks_per_second
            if old_rate == 0 and ticks_per_second > 0:
                self._tick_cv.notify_all()

    def enable_fault_injection(self, enable: bool) -> None:
        """Toggle random sequence gaps and fragmented sends."""
        self._fault_injection = bool(enable)

    def generate_tick(self, symbol_id: int) -> None:
        """Produce one quote or trade for ``symbol_id`` and send it to subscribers.

        Unknown symbol ids are ignored.
        """
        if not 0 <= symbol_id < self._num_symbols:
            return
        interval = self._price_update_interval
        with self._state_lock:
            symbol = self._symbols[symbol_id]
            generator = self._generator
            symbol.ticks_since_price_update += 1
            if symbol.ticks_since_price_update >= interval:
                rate = self._tick_rate
                dt = interval * self._num_symbols / rate if rate > 0 else 0.1
                symbol.current_price = generator.generate_next_price(
                    symbol.current_price, symbol.drift, symbol.volatility, dt
                )
                symbol.ticks_since_price_update = 0

            timestamp = time.time_ns()
            if self._fault_injection and self._fault_rng.randint(1, 100) <= _GAP_PERCENT:
                symbol.seq_num += 2
            symbol.seq_num = (symbol.seq_num + 1) & _UINT32_MASK
            price = symbol.current_price

            if generator.should_generate_quote():
                header = MessageHeader(int(MessageType.QUOTE), symbol.seq_num, timestamp, symbol_id)
                spread = generator.generate_spread(price)
                bid_qty = generator.generate_volume()
                ask_qty = generator.generate_volume()
                payload = QuoteMessage(
                    header, price - spread / 2.0, bid_qty, price + spread / 2.0, ask_qty
                ).pack()
            else:
                header = MessageHeader(int(MessageType.TRADE), symbol.seq_num, timestamp, symbol_id)
                payload = TradeMessage(header, price, generator.generate_volume()).pack()
        self._broadcast(payload, symbol_id)

    def _tick_loop(self) -> None:
        while self._running:
            started = time.monotonic()
            rate = self._tick_rate
            if rate == 0:
                with self._tick_cv:
                    self._tick_cv.wait_for(lambda: not self._running or self._tick_rate > 0)
                continue
            ticks_per_symbol = max(1, rate // max(1, self._num_symbols))
            for symbol_id in range(min(self._num_symbols, _MAX_SYMBOL_ID + 1)):
                for _ in range(ticks_per_symbol):
                    if not self._running:
                        return
                    self.generate_tick(symbol_id)
            remaining = 1.0 - (time.monotonic() - started)
            if remaining > 0:
                with self._tick_cv:
                    self._tick_cv.wait_for(lambda: not self._running, timeout=remaining)

    def _broadcast(self, data: bytes, symbol_id: int = BROADCAST_ALL) -> None:
        if symbol_id != BROADCAST_ALL:
            fds = self._clients.subscribed_clients(symbol_id)
        else:
            fds = self._clients.all_clients()
        for fd in fds:
            with self._io_lock:
                sock = self._sockets.get(fd)
            if sock is None:
                continue
            if self._fault_injection and self._fault_rng.randint(1, 100) <= _FRAGMENT_PERCENT:
                self._send_fragmented(sock, data)
                continue
            try:
                sock.send(data)
            except BlockingIOError:
                self._clients.update_stats(fd, len(data), False)
                self._clients.mark_slow_client(fd)
                logger.warning("slow consumer detected on fd %d", fd)
            except (BrokenPipeError, ConnectionResetError):
                self._clients.update_stats(fd, len(data), False)
                self._disconnect(fd)
            except OSError:
                self._clients.update_stats(fd, len(data), False)
            else:
                self._clients.update_stats(fd, len(data), True)

    @staticmethod
    def _send_fragmented(sock: socket.socket, data: bytes) -> None:
        first = len(data) // 2
        try:
            sent = sock.send(data[:first])
        except OSError:
            return
        if sent > 0:
            time.sleep(_FRAGMENT_PAUSE)
            with suppress(OSError):
                sock.send(data[first:])

    def _accept(self) -> None:
        server = self._server
        if server is None:
            return
        try:
            conn, _address = server.accept()
        except OSError:
            return
        conn.setblocking(False)
        conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        fd = conn.fileno()
        with self._io_lock:
            if self._selector is None:
                conn.close()
                return
            self._selector.register(conn, selectors.EVENT_READ)
            self._sockets[fd] = conn
            self._clients.add_client(fd)
        logger.info("new client connected: %d", fd)

    def _handle_client_data(self, fd: int) -> None:
        with self._io_lock:
            sock = self._sockets.get(fd)
        if sock is None:
            return
        try:
            data = sock.recv(_RECV_SIZE)
        except (BlockingIOError, InterruptedError):
            return
        except OSError:
            self._disconnect(fd)
            return
        if not data:
            self._disconnect(fd)
            return
        if len(data) >= _MIN_SUBSCRIPTION_LENGTH and data[0] == SUBSCRIBE_COMMAND:
            self._handle_subscription(fd, data)

    def _handle_subscription(self, fd: int, data: bytes) -> None:
        try:
            requested = parse_subscription(data)
        except ValueError as exc:
            logger.warning("invalid subscription from client %d: %s", fd, exc)
            return
        symbol_ids: set[int] = set()
        for symbol_id in requested:
            if symbol_id < self._num_symbols:
                symbol_ids.add(symbol_id)
            else:
                logger.warning(
                    "invalid symbol id in subscription: %d (max=%d)", symbol_id, self._num_symbols
                )
        logger.info("client %d subscribed to %d symbols", fd, len(symbol_ids))
        self._clients.subscribe(fd, symbol_ids)

    def _disconnect(self, fd: int) -> None:
        with self._io_lock:
            sock = self._sockets.pop(fd, None)
            if sock is None:
                return
            if self._selector is not None:
                with suppress(KeyError, ValueError, OSError):
                    self._selector.unregister(sock)
            sock.close()
            self._clients.remove_client(fd)
            self._clients.clear_subscriptions(fd)
        logger.info("client disconnected: %d", fd)