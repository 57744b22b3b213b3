"""Non-cryptographic checksums (CRC-32, Adler-32, CRC-64/XZ).

Each is a fold of the form ``fn(data, acc) -> acc``, so feeding any
partition of the input in order gives the same value as one call over the
whole buffer. Results are big-endian envelope payloads of the algorithm's
``digest_size``.
"""

from __future__ import annotations

import zlib
from pathlib import Path
from typing import Any, Optional, Tuple

import crcmod

from streamcrypt.core.config import get_settings
from streamcrypt.core.context import IncrementalContext
from streamcrypt.core.driver import StreamDriver, process_buffer
from streamcrypt.core.envelope import Envelope
from streamcrypt.core.registry import AlgorithmInfo, Family, get_algorithm, register_algorithm


CRC32 = register_algorithm(AlgorithmInfo("crc32", 0x20, Family.CHECKSUM, digest_size=4))
ADLER32 = register_algorithm(AlgorithmInfo("adler32", 0x21, Family.CHECKSUM, digest_size=4))
CRC64 = register_algorithm(AlgorithmInfo("crc64", 0x22, Family.CHECKSUM, digest_size=8))

# ECMA-182 polynomial, reflected, init and xorout all ones (CRC-64/XZ).
# crcmod takes the initial value as the result for empty input.
_crc64_xz = crcmod.mkCrcFun(0x142F0E1EBA9EA3693, initCrc=0, rev=True, xorOut=0xFFFFFFFFFFFFFFFF)

# name -> (fold function, initial accumulator)
_FOLDS = {
    "crc32": (zlib.crc32, 0),
    "adler32": (zlib.adler32, 1),
    "crc64": (_crc64_xz, 0),
}


class ChecksumContext(IncrementalContext):
    def __init__(self, algorithm: Optional[str] = None):
        info = get_algorithm(algorithm or get_settings().checksum_algorithm, Family.CHECKSUM)
        super().__init__(info)
        self._fold, self.value = _FOLDS[info.name]

    def _absorb(self, unit: bytes) -> bytes:
        self.value = self._fold(unit, self.value)
        return b""

    def _finalize(self, tail: bytes) -> Tuple[bytes, Envelope]:
        if tail:
            self.value = self._fold(tail, self.value)
        size = self.algorithm.digest_size
        payload = (self.value & ((1 << (8 * size)) - 1)).to_bytes(size, "big")
        return b"", Envelope(Family.CHECKSUM, self.algorithm.name, payload=payload)


def checksum_bytes(data: bytes, algorithm: Optional[str] = None) -> Envelope:
    _, envelope = process_buffer(ChecksumContext(algorithm), data)
    return envelope


def checksum_stream(source: Any, algorithm: Optional[str] = None, *, buffer_size: Optional[int] = None) -> Envelope:
    return StreamDriver(ChecksumContext(algorithm), buffer_size=buffer_size).run(source)


async def checksum_stream_async(
    source: Any, algorithm: Optional[str] = None, *, buffer_size: Optional[int] = None
) -> Envelope:
    return await StreamDriver(ChecksumContext(algorithm), buffer_size=buffer_size).run_async(source)


def checksum_file(file_path: Path, algorithm: Optional[str] = None, *, buffer_size: Optional[int] = None) -> Envelope:
    with open(file_path, "rb") as f:
        return checksum_stream(f, algorithm, buffer_size=buffer_size)
