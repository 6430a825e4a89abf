"""Fixed-size block pool with a thread-safe free list."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

_ALIGNMENT = 64


class PoolExhaustedError(RuntimeError):
    """Raised when every block of a pool is in use."""


class MemoryPool:
    """A pool of ``num_blocks`` buffers, each rounded up to a multiple of 64 bytes.

    Blocks are handed out last-in, first-out.
    """

    def __init__(self, block_size: int, num_blocks: int) -> None:
        if block_size < 0 or num_blocks < 0:
            raise ValueError("block size and block count must not be negative")
        self._block_size = (block_size + _ALIGNMENT - 1) // _ALIGNMENT * _ALIGNMENT
        self._num_blocks = num_blocks
        self._blocks = [bytearray(self._block_size) for _ in range(num_blocks)]
        self._owned_ids = {id(block) for block in self._blocks}
        self._free = list(self._blocks)
        self._free_ids = set(self._owned_ids)
        self._lock = threading.Lock()

    def allocate(self) -> bytearray:
        """Take a block from the pool; raises ``PoolExhaustedError`` if none is free."""
        with self._lock:
            if not self._free:
                raise PoolExhaustedError(f"all {self._num_blocks} blocks are in use")
            block = self._free.pop()
            self._free_ids.discard(id(block))
            return block

    def deallocate(self, block: bytearray | None) -> None:
        """Return a block to the pool. ``None`` is ignored."""
        if block is None:
            return
        key = id(block)
        with self._lock:
            if key not in self._owned_ids:
                raise ValueError("block does not belong to this pool")
            if key in self._free_ids:
                raise ValueError("block is already free")
            self._free.append(block)
            self._free_ids.add(key)

    @contextmanager
    def block(self) -> Iterator[bytearray]:
        """Lend a block for the duration of a ``with`` statement."""
        buffer = self.allocate()
        try:
            yield buffer
        finally:
            self.deallocate(buffer)

    @property
    def block_size(self) -> int:
        return self._block_size

    @property
    def total_blocks(self) -> int:
        return self._num_blocks

    @property
    def available_blocks(self) -> int:
        with self._lock:
            return len(self._free)