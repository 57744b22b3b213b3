"""Result envelope: the typed, serializable output of a finalized operation.

Binary layout (all big-endian):
- 1 byte: family tag (1 = hash, 2 = cipher, 3 = checksum, 4 = signature)
- 1 byte: algorithm id (see :mod:`streamcrypt.core.registry`)
- 2 bytes: metadata length M
- M bytes: metadata (IV / nonce for ciphers, empty otherwise)
- 4 bytes: payload length P
- P bytes: payload (digest | ciphertext + tag | checksum | signature)

For ciphers the serialized form therefore reads IV, then ciphertext, then tag.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, replace
from typing import Any, Dict

from .exceptions import EnvelopeError, UnsupportedAlgorithmError
from .registry import Family, get_algorithm


_HEADER = struct.Struct(">BBH")
_PAYLOAD_LEN = struct.Struct(">I")


@dataclass(frozen=True)
class Envelope:
    family: Family
    algorithm: str
    payload: bytes = b""
    metadata: bytes = b""

    def __post_init__(self) -> None:
        try:
            family = Family(self.family)
        except ValueError:
            raise EnvelopeError(f"unknown envelope tag {self.family!r}") from None
        # normalise bytes-likes so equality and hashing behave
        object.__setattr__(self, "family", family)
        object.__setattr__(self, "payload", bytes(self.payload))
        object.__setattr__(self, "metadata", bytes(self.metadata))
        if len(self.metadata) > 0xFFFF:
            raise EnvelopeError("metadata too large")
        if len(self.payload) > 0xFFFFFFFF:
            raise EnvelopeError("payload too large")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def iv(self) -> bytes:
        return self.metadata

    @property
    def checksum(self) -> int:
        if self.family is not Family.CHECKSUM:
            raise EnvelopeError(f"{self.algorithm} result is not a checksum")
        return int.from_bytes(self.payload, "big")

    def hexdigest(self) -> str:
        return self.payload.hex()

    def attach(self, payload: bytes) -> "Envelope":
        """Return a copy carrying ``payload``, e.g. a streamed ciphertext read back from its sink."""
        return replace(self, payload=payload)

    def __bytes__(self) -> bytes:
        return self.to_bytes()

    def __str__(self) -> str:
        label = self.algorithm.upper()
        if self.metadata:
            return f"{label} (iv: {self.metadata.hex()}, {self.payload.hex()})"
        return f"{label} ({self.payload.hex()})"

    # ------------------------------------------------------------------
    # Binary form
    # ------------------------------------------------------------------

    def to_bytes(self) -> bytes:
        info = get_algorithm(self.algorithm)
        out = bytearray()
        out += _HEADER.pack(int(self.family), info.algorithm_id, len(self.metadata))
        out += self.metadata
        out += _PAYLOAD_LEN.pack(len(self.payload))
        out += self.payload
        return bytes(out)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Envelope":
        data = bytes(data)
        if len(data) < _HEADER.size:
            raise EnvelopeError("truncated envelope header")
        tag, algorithm_id, meta_len = _HEADER.unpack_from(data, 0)
        try:
            family = Family(tag)
        except ValueError:
            raise EnvelopeError(f"unknown envelope tag {tag}")
        try:
            info = get_algorithm(algorithm_id)
        except UnsupportedAlgorithmError as exc:
            raise EnvelopeError(str(exc)) from exc
        if info.family is not family:
            raise EnvelopeError(f"algorithm {info.name} does not belong to family {family.name.lower()}")

        offset = _HEADER.size
        metadata = data[offset:offset + meta_len]
        if len(metadata) != meta_len:
            raise EnvelopeError("truncated envelope metadata")
        offset += meta_len

        if len(data) < offset + _PAYLOAD_LEN.size:
            raise EnvelopeError("truncated envelope payload length")
        (payload_len,) = _PAYLOAD_LEN.unpack_from(data, offset)
        offset += _PAYLOAD_LEN.size
        payload = data[offset:offset + payload_len]
        if len(payload) != payload_len:
            raise EnvelopeError("truncated envelope payload")
        if offset + payload_len != len(data):
            raise EnvelopeError("trailing bytes after envelope")

        return cls(family=family, algorithm=info.name, payload=payload, metadata=metadata)

    # ------------------------------------------------------------------
    # Structured form
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "family": self.family.name.lower(),
            "algorithm": self.algorithm,
            "metadata": self.metadata.hex(),
            "payload": self.payload.hex(),
        }

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "Envelope":
        try:
            family = Family[str(obj["family"]).upper()]
            algorithm = str(obj["algorithm"])
            metadata = bytes.fromhex(obj.get("metadata", ""))
            payload = bytes.fromhex(obj.get("payload", ""))
        except (KeyError, TypeError, ValueError) as exc:
            raise EnvelopeError(f"invalid envelope dict: {exc}") from exc
        try:
            info = get_algorithm(algorithm)
        except UnsupportedAlgorithmError as exc:
            raise EnvelopeError(str(exc)) from exc
        if info.family is not family:
            raise EnvelopeError(f"algorithm {info.name} does not belong to family {family.name.lower()}")
        return cls(family=family, algorithm=info.name, payload=payload, metadata=metadata)
