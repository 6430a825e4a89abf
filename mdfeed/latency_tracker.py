"""Ring buffer of latency samples with summary statistics."""

from __future__ import annotations

import os
import threading
from array import array
from dataclasses import dataclass

NUM_BUCKETS = 1000
MAX_LATENCY_NS = 10_000_000


@dataclass(frozen=True)
class LatencyStats:
    """Summary of recorded latencies, in nanoseconds."""

    min: int = 0
    max: int = 0
    mean: int = 0
    p50: int = 0
    p95: int = 0
    p99: int = 0
    p999: int = 0
    sample_count: int = 0


def _next_power_of_two(n: int) -> int:
    return 1 if n <= 1 else 1 << (n - 1).bit_length()


class LatencyTracker:
    """Keeps the most recent samples in a ring sized to a power of two.

    Samples are also counted in a histogram of 1000 buckets covering 0-10 ms;
    latencies of 10 ms or more fall into the last bucket.
    """

    def __init__(self, max_samples: int = 1_000_000) -> None:
        if max_samples < 0:
            raise ValueError("max_samples must not be negative")
        self._capacity = _next_power_of_two(max_samples)
        self._mask = self._capacity - 1
        self._samples = array("Q", [0]) * self._capacity
        self._histogram = [0] * NUM_BUCKETS
        self._write_idx = 0
        self._lock = threading.Lock()

    def record(self, latency_ns: int) -> None:
        """Store one latency sample, overwriting the oldest once the ring is full."""
        if latency_ns < 0:
            raise ValueError("latency must not be negative")
        with self._lock:
            self._samples[self._write_idx & self._mask] = latency_ns
            self._write_idx += 1
            self._histogram[self._bucket(latency_ns)] += 1

    def stats(self) -> LatencyStats:
        with self._lock:
            count = min(self._write_idx, self._capacity)
            samples = sorted(self._samples[:count])
        if not samples:
            return LatencyStats()
        return LatencyStats(
            min=samples[0],
            max=samples[-1],
            mean=sum(samples) // count,
            p50=samples[int(count * 0.50)],
            p95=samples[int(count * 0.95)],
            p99=samples[int(count * 0.99)],
            p999=samples[int(count * 0.999)],
            sample_count=count,
        )

    def reset(self) -> None:
        """Discard all samples and histogram counts."""
        with self._lock:
            self._write_idx = 0
            self._histogram = [0] * NUM_BUCKETS

    def export_to_csv(self, filename: str | os.PathLike[str]) -> None:
        """Write non-empty histogram buckets as ``Bucket,Count`` rows."""
        with self._lock:
            histogram = list(self._histogram)
        with open(filename, "w", encoding="utf-8", newline="") as handle:
            handle.write("Bucket,Count\n")
            for index, count in enumerate(histogram):
                if count:
                    handle.write(f"{index},{count}\n")

    @staticmethod
    def _bucket(latency_ns: int) -> int:
        if latency_ns >= MAX_LATENCY_NS:
            return NUM_BUCKETS - 1
        return latency_ns * NUM_BUCKETS // MAX_LATENCY_NS