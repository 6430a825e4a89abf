"""Simulated exchange market-data feed: wire protocol, price simulator, TCP server and consumer-side tools."""

__version__ = "1.0.0"

__all__ = [
    "cache",
    "client_manager",
    "config_parser",
    "exchange_simulator",
    "latency_tracker",
    "memory_pool",
    "protocol",
    "server",
    "tick_generator",
]