""" Hashing: digest contexts and whole-buffer / stream / file helpers. """

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, Optional, Tuple

from streamcrypt.core.config import get_settings
from streamcrypt.core.context import IncrementalContext
from streamcrypt.core.driver import StreamDriver, process_buffer
from streamcrypt.core.envelope import Envelope
from streamcrypt.core.registry import AlgorithmInfo, Family, get_algorithm, register_algorithm


SHA256 = register_algorithm(AlgorithmInfo("sha256", 0x01, Family.HASH, digest_size=32))
SHA512 = register_algorithm(AlgorithmInfo("sha512", 0x02, Family.HASH, digest_size=64))
BLAKE2B = register_algorithm(AlgorithmInfo("blake2b", 0x03, Family.HASH, digest_size=64))
SHA3_256 = register_algorithm(AlgorithmInfo("sha3-256", 0x04, Family.HASH, digest_size=32))

# registry name -> hashlib constructor name
_HASHLIB_NAMES = {
    "sha256": "sha256",
    "sha512": "sha512",
    "blake2b": "blake2b",
    "sha3-256": "sha3_256",
}


class HashContext(IncrementalContext):
    """Running digest; absorb is plain accumulation, finalize returns the digest."""

    def __init__(self, algorithm: Optional[str] = None):
        info = get_algorithm(algorithm or get_settings().hash_algorithm, Family.HASH)
        super().__init__(info)
        self._hasher = hashlib.new(_HASHLIB_NAMES[info.name])

    def _absorb(self, unit: bytes) -> bytes:
        self._hasher.update(unit)
        return b""

    def _digest(self, tail: bytes) -> bytes:
        if tail:
            self._hasher.update(tail)
        return self._hasher.digest()

    def _finalize(self, tail: bytes) -> Tuple[bytes, Envelope]:
        return b"", Envelope(Family.HASH, self.algorithm.name, payload=self._digest(tail))

    def _wipe(self) -> None:
        self._hasher = None


def hash_bytes(data: bytes, algorithm: Optional[str] = None) -> Envelope:
    _, envelope = process_buffer(HashContext(algorithm), data)
    return envelope


def hash_stream(source: Any, algorithm: Optional[str] = None, *, buffer_size: Optional[int] = None) -> Envelope:
    """Hash the rest of ``source`` in bounded reads."""
    return StreamDriver(HashContext(algorithm), buffer_size=buffer_size).run(source)


async def hash_stream_async(
    source: Any, algorithm: Optional[str] = None, *, buffer_size: Optional[int] = None
) -> Envelope:
    return await StreamDriver(HashContext(algorithm), buffer_size=buffer_size).run_async(source)


def hash_file(file_path: Path, algorithm: Optional[str] = None, *, buffer_size: Optional[int] = None) -> Envelope:
    with open(file_path, "rb") as f:
        return hash_stream(f, algorithm, buffer_size=buffer_size)


def calculate_sha256(file_path: Path) -> str:
    # Calculates the SHA-256 hash of a file as hex.
    return hash_file(file_path, "sha256").hexdigest()


def calculate_sha256_bytes(data: bytes) -> str:
    return hash_bytes(data, "sha256").hexdigest()
