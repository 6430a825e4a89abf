"""Command-line entry point that runs the simulated exchange."""

from __future__ import annotations

import re
import signal
import sys
import threading
from dataclasses import dataclass
from types import FrameType
from typing import Sequence

from .exchange_simulator import DEFAULT_NUM_SYMBOLS, DEFAULT_PORT, ExchangeSimulator

_INT_PREFIX = re.compile(r"[ \t\n\r\f\v]*([+-]?[0-9]+)")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


@dataclass(frozen=True)
class ServerOptions:
    """Settings taken from the command line."""

    port: int = DEFAULT_PORT
    num_symbols: int = DEFAULT_NUM_SYMBOLS
    from_command_line: bool = False


def _leading_int(text: str) -> int:
    match = _INT_PREFIX.match(text)
    if not match:
        raise ValueError(f"invalid integer: {text!r}")
    number = int(match.group(1))
    if not _INT32_MIN <= number <= _INT32_MAX:
        raise ValueError(f"integer out of range: {text!r}")
    return number


def parse_args(argv: Sequence[str] | None = None) -> ServerOptions:
    """Read ``[port [num_symbols]]``; extra arguments are ignored.

    Raises ``ValueError`` when a value is not an integer.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    port = DEFAULT_PORT
    num_symbols = DEFAULT_NUM_SYMBOLS
    if args:
        port = _leading_int(args[0]) & 0xFFFF
    if len(args) >= 2:
        num_symbols = _leading_int(args[1])
        if num_symbols < 0:
            raise ValueError("number of symbols must not be negative")
    return ServerOptions(port, num_symbols, bool(args))


def main(argv: Sequence[str] | None = None) -> int:
    """Start the exchange simulator and serve until SIGINT or SIGTERM."""
    simulator: ExchangeSimulator | None = None

    def _on_signal(signum: int, frame: FrameType | None) -> None:
        print("\nReceived signal, shutting down...", flush=True)
        if simulator is not None:
            simulator.stop()

    previous: dict[int, object] = {}
    if threading.current_thread() is threading.main_thread():
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, _on_signal)

    try:
        options = parse_args(argv)
        print("Starting Exchange Simulator...")
        if options.from_command_line:
            print("Using command line parameters")
        else:
            print(
                "Using default parameters "
                "(will be overridden by config/server.conf if present)"
            )
        print()

        simulator = ExchangeSimulator(options.port, options.num_symbols)
        simulator.start()
        print("\nExchange Simulator running. Press Ctrl+C to stop.", flush=True)
        simulator.run()

        print("\nShutting down...")
        simulator.stop()
        simulator = None
    except Exception as exc:  # noqa: BLE001 - every failure is reported the same way
        print(f"Error: {exc}", file=sys.stderr)
        if simulator is not None:
            simulator.stop()
        return 1
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
    return 0


if __name__ == "__main__":
    sys.exit(main())