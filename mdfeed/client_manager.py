"""Thread-safe registry of connected clients and their subscriptions."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Iterable


@dataclass
class ClientInfo:
    """Send statistics for one connected client."""

    fd: int
    messages_sent: int = 0
    bytes_sent: int = 0
    send_errors: int = 0
    is_slow: bool = False


class ClientManager:
    """Tracks clients by file descriptor, with per-client symbol subscriptions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._clients: dict[int, ClientInfo] = {}
        self._subscriptions: dict[int, set[int]] = {}

    def add_client(self, fd: int) -> None:
        """Register ``fd`` with fresh statistics, replacing any earlier entry."""
        with self._lock:
            self._clients[fd] = ClientInfo(fd)

    def remove_client(self, fd: int) -> None:
        """Forget ``fd`` and its subscriptions."""
        with self._lock:
            self._clients.pop(fd, None)
            self._subscriptions.pop(fd, None)

    def all_clients(self) -> list[int]:
        with self._lock:
            return list(self._clients)

    def mark_slow_client(self, fd: int) -> None:
        with self._lock:
            info = self._clients.get(fd)
            if info is not None:
                info.is_slow = True

    def update_stats(self, fd: int, bytes_sent: int, success: bool) -> None:
        """Count a sent message, or a send error when ``success`` is false."""
        with self._lock:
            info = self._clients.get(fd)
            if info is None:
                return
            if success:
                info.messages_sent += 1
                info.bytes_sent += bytes_sent
            else:
                info.send_errors += 1

    def client_info(self, fd: int) -> ClientInfo | None:
        """Return a copy of the client's statistics, or ``None`` if unknown."""
        with self._lock:
            info = self._clients.get(fd)
            return replace(info) if info is not None else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def subscribe(self, fd: int, symbol_ids: Iterable[int]) -> None:
        """Replace the client's subscriptions with ``symbol_ids``."""
        ids = set(symbol_ids)
        with self._lock:
            self._subscriptions[fd] = ids

    def unsubscribe(self, fd: int, symbol_id: int) -> None:
        with self._lock:
            symbols = self._subscriptions.get(fd)
            if symbols is not None:
                symbols.discard(symbol_id)

    def clear_subscriptions(self, fd: int) -> None:
        with self._lock:
            self._subscriptions.pop(fd, None)

    def is_subscribed(self, fd: int, symbol_id: int) -> bool:
        with self._lock:
            return symbol_id in self._subscriptions.get(fd, ())

    def subscription_count(self, fd: int) -> int:
        with self._lock:
            return len(self._subscriptions.get(fd, ()))

    def subscribed_clients(self, symbol_id: int) -> list[int]:
        """Return every client subscribed to ``symbol_id``."""
        with self._lock:
            return [fd for fd, symbols in self._subscriptions.items() if symbol_id in symbols]