# mdfeed

A self-contained market-data feed toolkit. It contains:

- a compact **binary wire protocol** for trades, quotes and heartbeats, with
  an XOR checksum and a subscription request format (`mdfeed.protocol`);
- an **exchange simulator** that evolves prices with Geometric Brownian Motion
  and streams ticks over TCP to subscribed clients, with optional fault
  injection: sequence gaps and fragmented sends (`mdfeed.exchange_simulator`,
  started by the `mdfeed-server` command);
- building blocks for a feed consumer: a per-symbol **market state cache**
  (`mdfeed.cache`), a **latency tracker** with percentile statistics
  (`mdfeed.latency_tracker`) and a fixed-size **memory pool**
  (`mdfeed.memory_pool`);
- a small `key = value` **configuration parser** (`mdfeed.config_parser`).

No third-party dependencies are needed.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Running the exchange simulator

```
mdfeed-server [port] [num_symbols]
```

Both arguments are optional; the defaults are port `9876` and `100` symbols.
Arguments beyond the second are ignored, and a value that is not an integer
ends the command with an error and exit status 1.

The server reads `config/server.conf` from the working directory if present,
then loads symbols from the CSV file it names (`config/symbols.csv` by
default). It serves until it receives SIGINT (Ctrl+C) or SIGTERM.

### Configuration file

```
# config/server.conf
server.port=9876
market.num_symbols=100
market.tick_rate=100000
market.symbols_file=config/symbols.csv
fault_injection.enabled=false
```

Lines starting with `#` and blank lines are ignored, as are lines without
`=`. Whitespace around keys and values is trimmed and the last occurrence of
a key wins.

Values given on the command line take precedence over the file, with two
exceptions: `server.port` is used when the command-line value is `0`, and
`market.num_symbols` is used when the command-line symbol count is `100`.
If the file sets `server.port=0` the operating system picks a free listening
socket number.

`market.tick_rate` is the total number of messages per second across all
symbols; a rate of `0` pauses tick generation. The underlying price of a
symbol moves once every 100 of its ticks.

### Symbols file

```
symbol_id,symbol,price,volatility,drift
0,ALPHA,1000.0,0.02,0.01
1,BETA,1010.0,0.021,0.009
```

The header row is skipped. Rows that do not parse, and rows whose
`symbol_id` is not below the configured symbol count, are ignored. A missing
file, or one with no usable rows, is an error.

## Wire protocol

All integers are little-endian; structures are packed.

| Message   | Layout                                                               | Size |
|-----------|----------------------------------------------------------------------|------|
| Header    | `u16 msg_type, u32 seq_num, u64 timestamp_ns, u16 symbol_id`         | 16   |
| Trade     | header, `f64 price, u32 quantity`, `u32 checksum`                    | 32   |
| Quote     | header, `f64 bid, u32 bid_qty, f64 ask, u32 ask_qty`, `u32 checksum` | 44   |
| Heartbeat | header, `u32 checksum`                                               | 20   |

Message types: trade `0x01`, quote `0x02`, heartbeat `0x03`. The checksum is
the XOR of every preceding byte of the message.

A client subscribes by sending `0xFF`, a `u16` count, and that many `u16`
symbol IDs. A new subscription replaces the previous one; IDs not below the
server's symbol count are dropped. The server only sends ticks for
subscribed symbols.

```python
from mdfeed.protocol import (
    MessageHeader,
    MessageType,
    TradeMessage,
    decode_message,
    encode_subscription,
    get_message_size,
    parse_subscription,
    validate_checksum,
)

request = encode_subscription([0, 1, 5])
assert parse_subscription(request) == [0, 1, 5]

assert get_message_size(MessageType.QUOTE) == 44

header = MessageHeader(MessageType.TRADE, 1, 1_700_000_000_000_000_000, 7)
wire = TradeMessage(header, 101.25, 300).pack()   # checksum filled in
assert validate_checksum(wire)
trade = decode_message(wire)
assert trade.price == 101.25
```

`decode_message` decodes one complete message from the start of a buffer and
raises `ValueError` for an unknown type, a short buffer or a bad checksum.

## Library use

### Configuration

```python
from mdfeed.config_parser import ConfigParser

config = ConfigParser()
config.load("config/server.conf")     # OSError if the file cannot be opened
port = config.get_int("server.port", 9876)
faults = config.get_bool("fault_injection.enabled", False)
if "market.symbols_file" in config:
    path = config.get_string("market.symbols_file", "config/symbols.csv")
```

`get_int` and `get_double` read the leading number of a value and fall back
to the default when there is none. `get_bool` accepts `true`, `1` and `yes`
in any letter case; any other value is false.

### Price generation

```python
from mdfeed.tick_generator import TickGenerator

gen = TickGenerator(seed=42)              # seed is optional
price = gen.generate_next_price(1000.0, 0.0, 0.02, 0.001)
spread = gen.generate_spread(price)       # 0.05% to 0.2% of price
volume = gen.generate_volume()            # log-uniform, 100 to 100,000
is_quote = gen.should_generate_quote()    # about 70% quotes, 30% trades
```

### Market state cache

```python
from mdfeed.cache import SymbolCache

cache = SymbolCache(100)
cache.update_quote(7, 99.5, 200, 100.5, 300)
cache.update_trade(7, 100.0, 50)
snap = cache.snapshot(7)        # MarketSnapshot
best_bid = cache.bid(7)
total = cache.total_updates()   # 2
```

Updates for unknown symbol IDs are ignored and reads return zeros.

### Latency tracking

```python
from mdfeed.latency_tracker import LatencyTracker

tracker = LatencyTracker(1024)
for ns in (1200, 1500, 900):
    tracker.record(ns)
stats = tracker.stats()   # min, max, mean, p50, p95, p99, p999, sample_count
tracker.export_to_csv("latency.csv")   # histogram rows: Bucket,Count
```

The ring holds the most recent samples, its size rounded up to a power of
two. The histogram has 1000 buckets covering 0 to 10 ms.

### Memory pool

```python
from mdfeed.memory_pool import MemoryPool, PoolExhaustedError

pool = MemoryPool(block_size=100, num_blocks=4)   # blocks rounded up to 128 bytes
with pool.block() as buf:
    buf[:5] = b"hello"
```

`allocate` raises `PoolExhaustedError` when every block is in use.

### Embedding the simulator

```python
from mdfeed.exchange_simulator import ExchangeSimulator

with ExchangeSimulator(9876, 10, "config/server.conf") as sim:
    sim.start()
    sim.run()          # blocks until stop() is called from another thread
```

`generate_tick(symbol_id)` produces and sends one tick by hand;
`set_tick_rate` and `enable_fault_injection` change behaviour while running.
The simulator reports through the standard `logging` module under the
`mdfeed.exchange_simulator` logger.

## What is not included

The package has no feed client program: nothing connects to the server,
reassembles a fragmented TCP stream into messages, detects sequence gaps or
displays live prices. `decode_message`, `SymbolCache` and `LatencyTracker`
are the pieces such a client would be built from.