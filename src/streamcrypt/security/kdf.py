"""Password-based key derivation.

- PBKDF2-HMAC-SHA256 (default): 32-byte salt, 32-byte key, 4096 rounds unless
  configured otherwise. ``Password`` wraps a derived value and validates
  candidates in constant time.
- Argon2id via argon2-cffi for callers that want a memory-hard master key,
  either directly or as ``Password.derive(..., kdf=ARGON2ID)``.
"""

from __future__ import annotations

import hmac
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from streamcrypt.core.config import get_settings
from streamcrypt.core.exceptions import InvalidKeyError, UnsupportedAlgorithmError


SALT_SIZE = 32
KEY_SIZE = 32

PBKDF2 = "pbkdf2-sha256"
ARGON2ID = "argon2id"

# salt used by Salt.embedded(); fixed so derivations are reproducible without storing a salt
STATIC_SALT = bytes.fromhex("d0a2404173bac722b29282652f2c457b573261e3c8701b908bb0bd3ada3d7f2d")


def generate_salt(length: int = SALT_SIZE) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def _password_bytes(password: Union[str, bytes]) -> bytes:
    if isinstance(password, str):
        return password.encode("utf-8")
    if isinstance(password, (bytes, bytearray, memoryview)):
        return bytes(password)
    raise InvalidKeyError(f"password must be str or bytes, got {type(password).__name__}")


@dataclass(frozen=True)
class Salt:
    value: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.value, (bytes, bytearray, memoryview)):
            raise InvalidKeyError(f"salt must be bytes, got {type(self.value).__name__}")
        object.__setattr__(self, "value", bytes(self.value))
        if len(self.value) != SALT_SIZE:
            raise InvalidKeyError(f"bad length: expected {SALT_SIZE}, got {len(self.value)}")

    @classmethod
    def embedded(cls) -> "Salt":
        return cls(STATIC_SALT)

    @classmethod
    def random(cls) -> "Salt":
        return cls(generate_salt())

    @classmethod
    def none(cls) -> "Salt":
        return cls(bytes(SALT_SIZE))

    @classmethod
    def from_bytes(cls, value: bytes) -> "Salt":
        return cls(value)

    def __bytes__(self) -> bytes:
        return self.value


def derive_key(
    password: Union[str, bytes],
    salt: Union[Salt, bytes],
    iterations: Optional[int] = None,
    key_len: int = KEY_SIZE,
) -> bytes:
    """
    Derive a key from a password with PBKDF2-HMAC-SHA256.
    Deterministic for the same password, salt and iteration count.
    """
    secret = _password_bytes(password)
    salt_bytes = salt.value if isinstance(salt, Salt) else salt
    if not isinstance(salt_bytes, (bytes, bytearray, memoryview)) or len(salt_bytes) == 0:
        raise InvalidKeyError("salt must be non-empty bytes")
    if iterations is None:
        iterations = get_settings().pbkdf2_rounds
    if iterations < 1:
        raise InvalidKeyError("iterations must be at least 1")
    if key_len < 1:
        raise InvalidKeyError("key_len must be at least 1")

    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=key_len, salt=bytes(salt_bytes), iterations=iterations)
    return kdf.derive(secret)


@dataclass(frozen=True)
class Password:
    """A derived password hash, PBKDF2 by default or Argon2id on request.

    ``rounds`` is the PBKDF2 iteration count, or the Argon2id time cost.
    """

    derived: bytes = field(repr=False)

    @classmethod
    def derive(
        cls,
        password: Union[str, bytes],
        salt: Optional[Union[Salt, bytes]] = None,
        rounds: Optional[int] = None,
        *,
        kdf: str = PBKDF2,
        memory_cost: int = 65536,
    ) -> "Password":
        if salt is None:
            salt = Salt.embedded()
        if kdf == PBKDF2:
            return cls(derive_key(password, salt, rounds))
        if kdf == ARGON2ID:
            salt_bytes = salt.value if isinstance(salt, Salt) else salt
            return cls(derive_master_key(password, salt_bytes, time_cost=rounds or 3, memory_cost=memory_cost))
        raise UnsupportedAlgorithmError(f"unknown password kdf {kdf!r}")

    def validate(
        self,
        password: Union[str, bytes],
        salt: Optional[Union[Salt, bytes]] = None,
        rounds: Optional[int] = None,
        *,
        kdf: str = PBKDF2,
        memory_cost: int = 65536,
    ) -> bool:
        candidate = Password.derive(password, salt, rounds, kdf=kdf, memory_cost=memory_cost)
        return hmac.compare_digest(candidate.derived, self.derived)

    def __bytes__(self) -> bytes:
        return self.derived

    def __str__(self) -> str:
        return self.derived.hex()


def derive_master_key(
    password: bytes,
    salt: bytes,
    time_cost: int = 3,
    memory_cost: int = 65536,
    parallelism: int = 1,
    key_len: int = 32,
) -> bytes:
    """
    Derive a master key from a password using Argon2id.
    Returns raw derived key bytes.
    """
    password = _password_bytes(password)
    if not salt or len(salt) < 8:
        raise InvalidKeyError("argon2id salt must be at least 8 bytes")

    return hash_secret_raw(
        secret=password,
        salt=bytes(salt),
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=key_len,
        type=Type.ID,
    )


def kdf_params_to_dict(salt: bytes, time_cost: int, memory_cost: int, parallelism: int) -> Dict:
    return {
        "algo": ARGON2ID,
        "salt": salt.hex(),
        "time": time_cost,
        "memory": memory_cost,
        "parallelism": parallelism,
    }


def pbkdf2_params_to_dict(salt: Union[Salt, bytes], iterations: int) -> Dict:
    salt_bytes = salt.value if isinstance(salt, Salt) else salt
    return {
        "algo": PBKDF2,
        "salt": salt_bytes.hex(),
        "iterations": iterations,
    }
