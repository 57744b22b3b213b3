"""Fixed-capacity byte accumulator sitting between a stream and a context."""

from __future__ import annotations

from typing import Optional

from .config import get_settings
from .exceptions import StateError


class ChunkBuffer:
    """
    Collects stream input and releases it in ``unit_size``-aligned runs.

    - ``push`` never releases a partial unit; the remainder waits for more input.
    - The last ``holdback`` bytes are always retained, so a trailing block or
      authentication tag only ever reaches the context through ``flush_final``.
    - ``flush_final`` hands out whatever is left and closes the buffer.
      A closed buffer cannot be reused; build a new one per operation.

    ``capacity`` is the bounded read size the stream driver uses with this
    buffer, rounded up to a whole number of units.
    """

    def __init__(self, unit_size: int = 1, capacity: Optional[int] = None, holdback: int = 0):
        if unit_size < 1:
            raise ValueError("unit_size must be at least 1")
        if holdback < 0:
            raise ValueError("holdback must not be negative")
        if capacity is None:
            capacity = get_settings().buffer_size
        if capacity < 1:
            raise ValueError("capacity must be positive")

        self.unit_size = unit_size
        self.holdback = holdback
        self.capacity = -(-capacity // unit_size) * unit_size
        self._pending = bytearray()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, data: bytes) -> bytes:
        """Absorb ``data`` and return the aligned run now ready (possibly ``b""``)."""
        if self._closed:
            raise StateError("chunk buffer already flushed")
        self._pending += data

        available = len(self._pending) - self.holdback
        if available < self.unit_size:
            return b""
        ready = available - (available % self.unit_size)
        out = bytes(self._pending[:ready])
        del self._pending[:ready]
        return out

    def flush_final(self) -> bytes:
        """Return every pending byte, marking the end of the stream."""
        if self._closed:
            raise StateError("chunk buffer already flushed")
        self._closed = True
        out = bytes(self._pending)
        self._pending.clear()
        return out
