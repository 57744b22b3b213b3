"""Incremental context base class shared by every algorithm family.

A context owns the running state of exactly one in-flight operation. The
stream driver (or the whole-buffer helper) feeds it aligned units through
``absorb`` and closes it with a single ``finalize`` call. Subclasses supply
``_absorb``/``_finalize``/``_wipe``; the base class enforces ordering, keeps
the byte counter, maps primitive failures to ``ProviderError`` and makes
sure key material is wiped on every exit path.
"""

from __future__ import annotations

from typing import Optional, Tuple

from .envelope import Envelope
from .exceptions import ProviderError, StateError, StreamCryptError
from .registry import AlgorithmInfo


def wipe(buf: Optional[bytearray]) -> None:
    """Overwrite a mutable key buffer with zeros (best-effort)."""
    if buf is None:
        return
    for i in range(len(buf)):
        buf[i] = 0


def _describe(exc: Exception) -> str:
    # some provider exceptions (InvalidTag, InvalidSignature) carry no message
    return str(exc) or type(exc).__name__


class IncrementalContext:
    unit_size: int = 1
    holdback: int = 0
    # True when absorb/finalize produce transformed bytes that need a sink
    emits_output: bool = False

    def __init__(self, algorithm: AlgorithmInfo):
        self.algorithm = algorithm
        self.bytes_consumed = 0
        self.finalized = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def absorb(self, unit: bytes) -> bytes:
        """Feed one aligned run of bytes; returns any transformed output."""
        if self.finalized or self._closed:
            raise StateError(f"{self.algorithm.name}: absorb called after finalize")
        if len(unit) % self.unit_size:
            raise StateError(
                f"{self.algorithm.name}: absorb needs multiples of {self.unit_size} bytes, got {len(unit)}"
            )
        if not unit:
            return b""
        try:
            out = self._absorb(bytes(unit))
        except StreamCryptError:
            self.close()
            raise
        except Exception as exc:
            self.close()
            raise ProviderError(f"{self.algorithm.name}: {_describe(exc)}") from exc
        self.bytes_consumed += len(unit)
        return out

    def finalize(self, tail: bytes = b"") -> Tuple[bytes, Envelope]:
        """Consume ``tail`` (the final, possibly short unit) and produce the result.

        Returns ``(trailing_output, envelope)``. Can only be called once.
        """
        if self.finalized or self._closed:
            raise StateError(f"{self.algorithm.name}: finalize called twice")
        self.finalized = True
        try:
            trailing, envelope = self._finalize(bytes(tail))
        except StreamCryptError:
            raise
        except Exception as exc:
            raise ProviderError(f"{self.algorithm.name}: {_describe(exc)}") from exc
        finally:
            self.close()
        self.bytes_consumed += len(tail)
        return trailing, envelope

    def close(self) -> None:
        """Discard the context and wipe key material. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        self._wipe()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    def _absorb(self, unit: bytes) -> bytes:
        raise NotImplementedError

    def _finalize(self, tail: bytes) -> Tuple[bytes, Envelope]:
        raise NotImplementedError

    def _wipe(self) -> None:
        pass
