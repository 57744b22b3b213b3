"""Stream driver: pulls a source through a context and pushes output to a sink.

The read -> transform -> write -> finalize loop lives in one generator
(:meth:`StreamDriver._steps`) that yields I/O requests instead of doing I/O.
:meth:`StreamDriver.run` answers those requests with blocking calls and
:meth:`StreamDriver.run_async` answers them with awaits, so both concurrency
models share the same algorithmic path.

Source handles expose ``read(n)`` (or ``recv(n)``); an empty result or
``None`` marks end-of-stream. Sink handles expose ``write(data)`` (or
``sendall``). For ``run_async`` either call may return an awaitable, and a
sink ``drain()`` coroutine is awaited after each write when present, which
covers ``asyncio.StreamReader``/``asyncio.StreamWriter``.

Bytes already written to the sink are never rolled back on failure; callers
needing atomic output should write to a temporary sink and commit it
themselves (see ``streamcrypt.security.symmetric.encrypt_file``).
"""

from __future__ import annotations

import enum
import inspect
import logging
from typing import Any, Generator, Optional, Tuple

from .buffer import ChunkBuffer
from .context import IncrementalContext
from .envelope import Envelope
from .exceptions import StateError, StreamIOError

logger = logging.getLogger(__name__)


class DriverState(enum.Enum):
    IDLE = "idle"
    READING = "reading"
    TRANSFORMING = "transforming"
    WRITING = "writing"
    FINALIZING = "finalizing"
    DONE = "done"
    ERRORED = "errored"


_READ = "read"
_WRITE = "write"


class StreamDriver:
    """Drive one context across one source (and optional sink). Single use."""

    def __init__(self, context: IncrementalContext, *, buffer_size: Optional[int] = None):
        self.context = context
        self.buffer = ChunkBuffer(context.unit_size, capacity=buffer_size, holdback=context.holdback)
        self.state = DriverState.IDLE
        self.bytes_read = 0
        self.bytes_written = 0
        self.reads = 0
        self.error: Optional[BaseException] = None
        self._started = False

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _steps(self) -> Generator[Tuple[str, Any], Any, Envelope]:
        try:
            while True:
                self.state = DriverState.READING
                chunk = yield _READ, self.buffer.capacity
                if not chunk:
                    break
                self.reads += 1
                self.bytes_read += len(chunk)

                self.state = DriverState.TRANSFORMING
                out = self.context.absorb(self.buffer.push(chunk))
                if out:
                    self.state = DriverState.WRITING
                    yield _WRITE, out
                    self.bytes_written += len(out)

            self.state = DriverState.FINALIZING
            trailing, envelope = self.context.finalize(self.buffer.flush_final())
            if trailing:
                self.state = DriverState.WRITING
                yield _WRITE, trailing
                self.bytes_written += len(trailing)
        except BaseException as exc:
            self.state = DriverState.ERRORED
            self.error = exc
            self.context.close()
            logger.debug(
                "%s stream errored after %d bytes read: %r",
                self.context.algorithm.name,
                self.bytes_read,
                exc,
            )
            raise

        self.state = DriverState.DONE
        logger.debug(
            "%s stream done: %d bytes read, %d bytes written",
            self.context.algorithm.name,
            self.bytes_read,
            self.bytes_written,
        )
        return envelope

    def _start(self, source: Any, sink: Any):
        if self._started:
            raise StateError("stream driver can only run once")
        self._started = True
        try:
            if self.context.emits_output and sink is None:
                raise StateError(f"{self.context.algorithm.name} produces output; a sink is required")
            read = _reader(source)
            write = _writer(sink)
        except BaseException as exc:
            self.state = DriverState.ERRORED
            self.error = exc
            self.context.close()
            raise
        logger.debug(
            "%s stream start (read size %d)", self.context.algorithm.name, self.buffer.capacity
        )
        return self._steps(), read, write

    # ------------------------------------------------------------------
    # Blocking runner
    # ------------------------------------------------------------------

    def run(self, source: Any, sink: Any = None) -> Envelope:
        """Process ``source`` to completion with blocking I/O and return the result."""
        steps, read, write = self._start(source, sink)
        reply = None
        try:
            while True:
                try:
                    op, arg = steps.send(reply)
                except StopIteration as stop:
                    return stop.value
                try:
                    if op == _READ:
                        reply = _as_bytes(read(arg))
                    else:
                        write(arg)
                        reply = None
                except Exception as exc:
                    failure = _io_failure(op, exc)
                    steps.throw(failure)
        finally:
            steps.close()

    # ------------------------------------------------------------------
    # Cooperative runner
    # ------------------------------------------------------------------

    async def run_async(self, source: Any, sink: Any = None) -> Envelope:
        """Process ``source`` to completion, suspending at every read and write."""
        steps, read, write = self._start(source, sink)
        drain = getattr(sink, "drain", None)
        reply = None
        try:
            while True:
                try:
                    op, arg = steps.send(reply)
                except StopIteration as stop:
                    return stop.value
                try:
                    if op == _READ:
                        data = read(arg)
                        if inspect.isawaitable(data):
                            data = await data
                        reply = _as_bytes(data)
                    else:
                        result = write(arg)
                        if inspect.isawaitable(result):
                            await result
                        if drain is not None:
                            await drain()
                        reply = None
                except Exception as exc:
                    failure = _io_failure(op, exc)
                    steps.throw(failure)
        finally:
            # cancellation or an abandoned run lands here with the generator
            # suspended; closing it discards the context
            steps.close()


def process_buffer(context: IncrementalContext, data: bytes) -> Tuple[bytes, Envelope]:
    """Run ``context`` over an in-memory buffer; returns ``(output, envelope)``.

    The chunk buffer is filled in one shot and flushed straight away, so
    whole-buffer calls go through the same absorb/finalize path as streams.
    """
    buffer = ChunkBuffer(context.unit_size, capacity=max(len(data), 1), holdback=context.holdback)
    try:
        out = context.absorb(buffer.push(data))
        trailing, envelope = context.finalize(buffer.flush_final())
    except BaseException:
        context.close()
        raise
    return out + trailing, envelope


def _reader(source: Any):
    read = getattr(source, "read", None) or getattr(source, "recv", None)
    if read is None:
        raise TypeError(f"{type(source).__name__} has no read() or recv()")
    return read


def _writer(sink: Any):
    if sink is None:
        return None
    write = getattr(sink, "sendall", None) or getattr(sink, "write", None)
    if write is None:
        raise TypeError(f"{type(sink).__name__} has no write() or sendall()")
    return write


def _as_bytes(data: Any) -> bytes:
    if data is None:
        return b""
    return bytes(data)


def _io_failure(op: str, exc: Exception) -> StreamIOError:
    failure = StreamIOError(f"stream {op} failed: {exc}")
    failure.__cause__ = exc
    return failure
