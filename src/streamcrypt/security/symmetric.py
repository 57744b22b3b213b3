"""AES encryption over buffers, streams and files.

Modes:
- aes-128-cbc / aes-256-cbc: PKCS#7 padding, 16-byte IV. Ciphertext length is
  ``(len(plaintext) // 16 + 1) * 16``; an empty plaintext encrypts to one pad block.
- aes-256-gcm: 12-byte nonce, 16-byte tag appended after the ciphertext,
  optional associated data. Ciphertext length is ``len(plaintext) + 16``.
  Every encryption draws a fresh random nonce; the key's own IV is only used
  as the default nonce when decrypting, so pass ``iv=envelope.iv`` (or use
  ``decrypt_envelope``) to decrypt what ``encrypt_*`` produced.

Streamed output is the bare ciphertext (plus tag for GCM). The IV travels in
the returned envelope's metadata, so ``envelope.attach(sink_bytes).to_bytes()``
gives the self-describing ``iv || ciphertext || tag`` form.

GCM decryption streams plaintext out before the tag is checked at the end of
the stream; treat that output as untrusted until the call returns.
"""

from __future__ import annotations

import hmac
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from streamcrypt.core.config import get_settings
from streamcrypt.core.context import IncrementalContext, wipe
from streamcrypt.core.driver import StreamDriver, process_buffer
from streamcrypt.core.envelope import Envelope
from streamcrypt.core.exceptions import EnvelopeError, InvalidKeyError, ProviderError
from streamcrypt.core.registry import AlgorithmInfo, Family, get_algorithm, register_algorithm


BLOCK_SIZE = 16
TAG_SIZE = 16

AES_128_CBC = register_algorithm(
    AlgorithmInfo("aes-128-cbc", 0x10, Family.CIPHER, block_size=16, key_size=16, iv_size=16)
)
AES_256_CBC = register_algorithm(
    AlgorithmInfo("aes-256-cbc", 0x11, Family.CIPHER, block_size=16, key_size=32, iv_size=16)
)
AES_256_GCM = register_algorithm(
    AlgorithmInfo("aes-256-gcm", 0x12, Family.CIPHER, block_size=16, key_size=32, iv_size=12, tag_size=16)
)

_AES_MODES = {
    "aes-128-cbc": "cbc",
    "aes-256-cbc": "cbc",
    "aes-256-gcm": "gcm",
}


def _aes_algorithm(algorithm: Union[str, AlgorithmInfo, None]) -> AlgorithmInfo:
    info = get_algorithm(algorithm or get_settings().cipher_algorithm, Family.CIPHER)
    if info.name not in _AES_MODES:
        raise InvalidKeyError(f"{info.name} is not an AES algorithm")
    return info


def _check_bytes(value: Any, what: str) -> bytes:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise InvalidKeyError(f"{what} must be bytes, got {type(value).__name__}")
    return bytes(value)


class AesKey:
    """A key and IV (or nonce) for one of the AES algorithms."""

    def __init__(self, key: bytes, iv: bytes, algorithm: Optional[str] = None):
        info = _aes_algorithm(algorithm)
        key = _check_bytes(key, "key")
        iv = _check_bytes(iv, "iv")
        if len(key) != info.key_size:
            raise InvalidKeyError(f"bad key length: expected {info.key_size}, got {len(key)}")
        if len(iv) != info.iv_size:
            raise InvalidKeyError(f"bad iv length: expected {info.iv_size}, got {len(iv)}")
        self.algorithm = info
        self._key = bytearray(key)
        self._iv = iv

    @classmethod
    def generate(cls, algorithm: Optional[str] = None) -> "AesKey":
        """Generate a random key and IV for ``algorithm``."""
        info = _aes_algorithm(algorithm)
        return cls(os.urandom(info.key_size), os.urandom(info.iv_size), info.name)

    @classmethod
    def from_slice(cls, key: bytes, iv: bytes, algorithm: Optional[str] = None) -> "AesKey":
        return cls(key, iv, algorithm)

    @property
    def key(self) -> bytes:
        return bytes(self._key)

    @property
    def iv(self) -> bytes:
        return self._iv

    def with_iv(self, iv: bytes) -> "AesKey":
        """Same key, different IV (e.g. a fresh nonce per message)."""
        return AesKey(self.key, iv, self.algorithm.name)

    def wipe(self) -> None:
        wipe(self._key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AesKey):
            return NotImplemented
        return (
            self.algorithm == other.algorithm
            and self._iv == other._iv
            and hmac.compare_digest(bytes(self._key), bytes(other._key))
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"AesKey({self.algorithm.name}, iv={self._iv.hex()})"


class CipherContext(IncrementalContext):
    """Streaming AES transform in one direction.

    CBC works on whole blocks and pads (or unpads) only in ``finalize``. In the
    decrypt direction the last ``holdback`` bytes (the final block for CBC, the
    tag for GCM) are kept back by the chunk buffer until the end of the stream.
    """

    emits_output = True

    def __init__(
        self,
        key: AesKey,
        *,
        decrypt: bool = False,
        associated_data: Optional[bytes] = None,
        iv: Optional[bytes] = None,
    ):
        if not isinstance(key, AesKey):
            raise InvalidKeyError(f"expected an AesKey, got {type(key).__name__}")
        super().__init__(key.algorithm)
        self.decrypt = decrypt
        self._gcm = _AES_MODES[key.algorithm.name] == "gcm"
        self._iv = self._pick_iv(key, iv)
        self._key = bytearray(key.key)

        if self._gcm:
            mode = modes.GCM(self._iv)
            self.unit_size = 1
            self.holdback = TAG_SIZE if decrypt else 0
        else:
            if associated_data:
                raise InvalidKeyError(f"{key.algorithm.name} does not take associated data")
            mode = modes.CBC(self._iv)
            self.unit_size = BLOCK_SIZE
            self.holdback = BLOCK_SIZE if decrypt else 0

        cipher = Cipher(algorithms.AES(bytes(self._key)), mode)
        self._crypter = cipher.decryptor() if decrypt else cipher.encryptor()
        if associated_data:
            self._crypter.authenticate_additional_data(bytes(associated_data))

    def _pick_iv(self, key: AesKey, iv: Optional[bytes]) -> bytes:
        if iv is not None:
            iv = _check_bytes(iv, "iv")
            if len(iv) != key.algorithm.iv_size:
                raise InvalidKeyError(f"bad iv length: expected {key.algorithm.iv_size}, got {len(iv)}")
            return iv
        # a GCM nonce must never repeat under one key
        if self._gcm and not self.decrypt:
            return os.urandom(key.algorithm.iv_size)
        return key.iv

    def _absorb(self, unit: bytes) -> bytes:
        return self._crypter.update(unit)

    def _finalize(self, tail: bytes) -> Tuple[bytes, Envelope]:
        if self._gcm:
            out = self._finalize_gcm(tail)
        else:
            out = self._finalize_cbc(tail)
        return out, Envelope(Family.CIPHER, self.algorithm.name, metadata=self._iv)

    def _finalize_cbc(self, tail: bytes) -> bytes:
        if not self.decrypt:
            padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
            padded = padder.update(tail) + padder.finalize()
            return self._crypter.update(padded) + self._crypter.finalize()

        if not tail or len(tail) % BLOCK_SIZE:
            raise ProviderError(
                f"{self.algorithm.name}: ciphertext length {self.bytes_consumed + len(tail)} "
                f"is not a positive multiple of {BLOCK_SIZE}"
            )
        padded = self._crypter.update(tail) + self._crypter.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
        return unpadder.update(padded) + unpadder.finalize()

    def _finalize_gcm(self, tail: bytes) -> bytes:
        if not self.decrypt:
            out = self._crypter.update(tail) + self._crypter.finalize()
            return out + self._crypter.tag

        if len(tail) < TAG_SIZE:
            raise ProviderError(f"{self.algorithm.name}: ciphertext too short to contain the authentication tag")
        body, tag = tail[:-TAG_SIZE], tail[-TAG_SIZE:]
        return self._crypter.update(body) + self._crypter.finalize_with_tag(tag)

    def _wipe(self) -> None:
        wipe(self._key)
        self._crypter = None


# ------------------------------------------------------------------
# Whole-buffer helpers
# ------------------------------------------------------------------

def encrypt_bytes(data: bytes, key: AesKey, *, associated_data: Optional[bytes] = None) -> Envelope:
    """Encrypt ``data``; the envelope carries the IV and ``ciphertext [+ tag]``."""
    out, envelope = process_buffer(CipherContext(key, associated_data=associated_data), data)
    return envelope.attach(out)


def decrypt_bytes(
    ciphertext: bytes, key: AesKey, *, iv: Optional[bytes] = None, associated_data: Optional[bytes] = None
) -> bytes:
    context = CipherContext(key, decrypt=True, associated_data=associated_data, iv=iv)
    out, _ = process_buffer(context, ciphertext)
    return out


def decrypt_envelope(
    envelope: Envelope, key: Union[AesKey, bytes], *, associated_data: Optional[bytes] = None
) -> bytes:
    """Decrypt a cipher envelope using the IV it carries."""
    if envelope.family is not Family.CIPHER or envelope.algorithm not in _AES_MODES:
        raise EnvelopeError(f"{envelope.algorithm} envelope is not an AES ciphertext")
    raw_key = key.key if isinstance(key, AesKey) else key
    aes_key = AesKey(raw_key, envelope.iv, envelope.algorithm)
    try:
        return decrypt_bytes(envelope.payload, aes_key, associated_data=associated_data)
    finally:
        aes_key.wipe()


# ------------------------------------------------------------------
# Streams
# ------------------------------------------------------------------

def encrypt_stream(
    source: Any,
    sink: Any,
    key: AesKey,
    *,
    associated_data: Optional[bytes] = None,
    buffer_size: Optional[int] = None,
) -> Envelope:
    context = CipherContext(key, associated_data=associated_data)
    return StreamDriver(context, buffer_size=buffer_size).run(source, sink)


def decrypt_stream(
    source: Any,
    sink: Any,
    key: AesKey,
    *,
    iv: Optional[bytes] = None,
    associated_data: Optional[bytes] = None,
    buffer_size: Optional[int] = None,
) -> Envelope:
    context = CipherContext(key, decrypt=True, associated_data=associated_data, iv=iv)
    return StreamDriver(context, buffer_size=buffer_size).run(source, sink)


async def encrypt_stream_async(
    source: Any,
    sink: Any,
    key: AesKey,
    *,
    associated_data: Optional[bytes] = None,
    buffer_size: Optional[int] = None,
) -> Envelope:
    context = CipherContext(key, associated_data=associated_data)
    return await StreamDriver(context, buffer_size=buffer_size).run_async(source, sink)


async def decrypt_stream_async(
    source: Any,
    sink: Any,
    key: AesKey,
    *,
    iv: Optional[bytes] = None,
    associated_data: Optional[bytes] = None,
    buffer_size: Optional[int] = None,
) -> Envelope:
    context = CipherContext(key, decrypt=True, associated_data=associated_data, iv=iv)
    return await StreamDriver(context, buffer_size=buffer_size).run_async(source, sink)


# ------------------------------------------------------------------
# Files
# ------------------------------------------------------------------

def _transform_file(context: CipherContext, in_path, out_path, buffer_size: Optional[int]) -> Envelope:
    """Stream ``in_path`` through ``context`` into ``out_path`` atomically.

    Output goes to a temporary file next to ``out_path`` and is moved into
    place only after finalize succeeds; on failure the temporary file is
    removed and ``out_path`` is left untouched.
    """
    out_path = Path(out_path).expanduser()
    with tempfile.NamedTemporaryFile(
        delete=False, dir=out_path.parent, prefix=f".{out_path.name}.", suffix=".part"
    ) as tmpf:
        tmp_path = Path(tmpf.name)

    try:
        with open(in_path, "rb") as inf, open(tmp_path, "wb") as outf:
            envelope = StreamDriver(context, buffer_size=buffer_size).run(inf, outf)
        os.replace(tmp_path, out_path)
    finally:
        context.close()
        tmp_path.unlink(missing_ok=True)
    return envelope


def encrypt_file(
    in_path, out_path, key: AesKey, *, associated_data: Optional[bytes] = None, buffer_size: Optional[int] = None
) -> Envelope:
    return _transform_file(CipherContext(key, associated_data=associated_data), in_path, out_path, buffer_size)


def decrypt_file(
    in_path,
    out_path,
    key: AesKey,
    *,
    iv: Optional[bytes] = None,
    associated_data: Optional[bytes] = None,
    buffer_size: Optional[int] = None,
) -> Envelope:
    context = CipherContext(key, decrypt=True, associated_data=associated_data, iv=iv)
    return _transform_file(context, in_path, out_path, buffer_size)
