"""RSA signing and encryption over buffers and streams.

Signatures (``rsa-sha256``) are RSA PKCS#1 v1.5 over a SHA-256 digest that is
accumulated incrementally, so signing a stream never holds more than one
read in memory. Verification hashes the same way and checks the digest.

Encryption (``rsa-pkcs1v15``) splits the plaintext into units of
``modulus_bytes - 11`` and encrypts each with PKCS#1 v1.5 padding; every
ciphertext block is exactly ``modulus_bytes`` long. An empty plaintext
produces an empty ciphertext.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from streamcrypt.core.config import get_settings
from streamcrypt.core.context import IncrementalContext
from streamcrypt.core.driver import StreamDriver, process_buffer
from streamcrypt.core.envelope import Envelope
from streamcrypt.core.exceptions import EnvelopeError, InvalidKeyError, ProviderError
from streamcrypt.core.registry import AlgorithmInfo, Family, register_algorithm

from .hashing import HashContext
from .kdf import Password


PUBLIC_EXPONENT = 65537
PKCS1_OVERHEAD = 11

RSA_SHA256 = register_algorithm(AlgorithmInfo("rsa-sha256", 0x30, Family.SIGNATURE, digest_size=32))
RSA_PKCS1V15 = register_algorithm(AlgorithmInfo("rsa-pkcs1v15", 0x31, Family.CIPHER))

PrivateKey = rsa.RSAPrivateKey
PublicKey = rsa.RSAPublicKey


def _private(key: Any) -> rsa.RSAPrivateKey:
    if not isinstance(key, rsa.RSAPrivateKey):
        raise InvalidKeyError(f"expected an RSA private key, got {type(key).__name__}")
    return key


def _public(key: Any) -> rsa.RSAPublicKey:
    # a private key carries its public half
    if isinstance(key, rsa.RSAPrivateKey):
        return key.public_key()
    if not isinstance(key, rsa.RSAPublicKey):
        raise InvalidKeyError(f"expected an RSA public key, got {type(key).__name__}")
    return key


def _modulus_bytes(key: Union[rsa.RSAPrivateKey, rsa.RSAPublicKey]) -> int:
    return (key.key_size + 7) // 8


# ------------------------------------------------------------------
# Keys
# ------------------------------------------------------------------

def generate_private_key(key_size: Optional[int] = None) -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(
        public_exponent=PUBLIC_EXPONENT, key_size=key_size or get_settings().rsa_key_size
    )


def public_parts(key: Any) -> rsa.RSAPublicKey:
    return _public(key)


def _passphrase(password: Union[str, bytes, Password, None]) -> Optional[bytes]:
    if password is None:
        return None
    if isinstance(password, Password):
        return password.derived
    if isinstance(password, str):
        password = password.encode("utf-8")
    if not isinstance(password, (bytes, bytearray)) or not password:
        raise InvalidKeyError("password must be non-empty str, bytes or Password")
    return bytes(password)


def private_key_to_pem(key: Any, password: Union[str, bytes, Password, None] = None) -> str:
    """PKCS#8 PEM, encrypted with the best available scheme when ``password`` is given."""
    passphrase = _passphrase(password)
    encryption = (
        serialization.BestAvailableEncryption(passphrase)
        if passphrase is not None
        else serialization.NoEncryption()
    )
    return _private(key).private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption
    ).decode("ascii")


def load_private_key_pem(pem: Union[str, bytes], password: Union[str, bytes, Password, None] = None) -> rsa.RSAPrivateKey:
    data = pem.encode("ascii") if isinstance(pem, str) else bytes(pem)
    try:
        key = serialization.load_pem_private_key(data, password=_passphrase(password))
    except (ValueError, TypeError) as exc:
        raise InvalidKeyError(f"cannot load private key: {exc}") from exc
    return _private(key)


def public_key_to_pem(key: Any) -> str:
    return _public(key).public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode("ascii")


def load_public_key_pem(pem: Union[str, bytes]) -> rsa.RSAPublicKey:
    data = pem.encode("ascii") if isinstance(pem, str) else bytes(pem)
    try:
        key = serialization.load_pem_public_key(data)
    except (ValueError, TypeError) as exc:
        raise InvalidKeyError(f"cannot load public key: {exc}") from exc
    return _public(key)


def private_key_to_der(key: Any) -> bytes:
    return _private(key).private_bytes(
        serialization.Encoding.DER, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()
    )


def load_private_key_der(data: bytes) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_der_private_key(bytes(data), password=None)
    except (ValueError, TypeError) as exc:
        raise InvalidKeyError(f"cannot load private key: {exc}") from exc
    return _private(key)


def public_key_to_der(key: Any) -> bytes:
    return _public(key).public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )


def load_public_key_der(data: bytes) -> rsa.RSAPublicKey:
    try:
        key = serialization.load_der_public_key(bytes(data))
    except (ValueError, TypeError) as exc:
        raise InvalidKeyError(f"cannot load public key: {exc}") from exc
    return _public(key)


# ------------------------------------------------------------------
# Signing
# ------------------------------------------------------------------

class SignContext(HashContext):
    """SHA-256 accumulation whose finalize signs the completed digest."""

    def __init__(self, private_key: Any):
        key = _private(private_key)
        super().__init__("sha256")
        self.algorithm = RSA_SHA256
        self._private_key = key

    def _finalize(self, tail: bytes) -> Tuple[bytes, Envelope]:
        digest = self._digest(tail)
        signature = self._private_key.sign(digest, padding.PKCS1v15(), Prehashed(hashes.SHA256()))
        return b"", Envelope(Family.SIGNATURE, self.algorithm.name, payload=signature)

    def _wipe(self) -> None:
        super()._wipe()
        self._private_key = None


def sign_bytes(data: bytes, private_key: Any) -> Envelope:
    _, envelope = process_buffer(SignContext(private_key), data)
    return envelope


def sign_stream(source: Any, private_key: Any, *, buffer_size: Optional[int] = None) -> Envelope:
    return StreamDriver(SignContext(private_key), buffer_size=buffer_size).run(source)


async def sign_stream_async(source: Any, private_key: Any, *, buffer_size: Optional[int] = None) -> Envelope:
    return await StreamDriver(SignContext(private_key), buffer_size=buffer_size).run_async(source)


def _signature_bytes(signature: Union[Envelope, bytes]) -> bytes:
    if isinstance(signature, Envelope):
        if signature.algorithm != RSA_SHA256.name:
            raise EnvelopeError(f"{signature.algorithm} envelope is not an RSA signature")
        return signature.payload
    return bytes(signature)


def verify_digest(digest: bytes, signature: Union[Envelope, bytes], public_key: Any) -> bool:
    """Check ``signature`` against an already computed SHA-256 ``digest``."""
    key = _public(public_key)
    try:
        key.verify(_signature_bytes(signature), digest, padding.PKCS1v15(), Prehashed(hashes.SHA256()))
    except InvalidSignature:
        return False
    return True


def verify_bytes(data: bytes, signature: Union[Envelope, bytes], public_key: Any) -> bool:
    _public(public_key)
    _, digest = process_buffer(HashContext("sha256"), data)
    return verify_digest(digest.payload, signature, public_key)


def verify_stream(
    source: Any, signature: Union[Envelope, bytes], public_key: Any, *, buffer_size: Optional[int] = None
) -> bool:
    _public(public_key)
    digest = StreamDriver(HashContext("sha256"), buffer_size=buffer_size).run(source)
    return verify_digest(digest.payload, signature, public_key)


async def verify_stream_async(
    source: Any, signature: Union[Envelope, bytes], public_key: Any, *, buffer_size: Optional[int] = None
) -> bool:
    _public(public_key)
    digest = await StreamDriver(HashContext("sha256"), buffer_size=buffer_size).run_async(source)
    return verify_digest(digest.payload, signature, public_key)


# ------------------------------------------------------------------
# Encryption
# ------------------------------------------------------------------

class RsaEncryptContext(IncrementalContext):
    emits_output = True

    def __init__(self, public_key: Any):
        key = _public(public_key)
        super().__init__(RSA_PKCS1V15)
        self._key = key
        self.unit_size = _modulus_bytes(key) - PKCS1_OVERHEAD

    def _encrypt(self, chunk: bytes) -> bytes:
        return self._key.encrypt(chunk, padding.PKCS1v15())

    def _absorb(self, unit: bytes) -> bytes:
        return b"".join(
            self._encrypt(unit[i:i + self.unit_size]) for i in range(0, len(unit), self.unit_size)
        )

    def _finalize(self, tail: bytes) -> Tuple[bytes, Envelope]:
        out = self._encrypt(tail) if tail else b""
        return out, Envelope(Family.CIPHER, self.algorithm.name)

    def _wipe(self) -> None:
        self._key = None


class RsaDecryptContext(IncrementalContext):
    emits_output = True

    def __init__(self, private_key: Any):
        key = _private(private_key)
        super().__init__(RSA_PKCS1V15)
        self._key = key
        self.unit_size = _modulus_bytes(key)

    def _absorb(self, unit: bytes) -> bytes:
        return b"".join(
            self._key.decrypt(unit[i:i + self.unit_size], padding.PKCS1v15())
            for i in range(0, len(unit), self.unit_size)
        )

    def _finalize(self, tail: bytes) -> Tuple[bytes, Envelope]:
        if tail:
            raise ProviderError(
                f"{self.algorithm.name}: truncated ciphertext, {len(tail)} bytes left over "
                f"(blocks are {self.unit_size} bytes)"
            )
        return b"", Envelope(Family.CIPHER, self.algorithm.name)

    def _wipe(self) -> None:
        self._key = None


def rsa_encrypt_bytes(data: bytes, public_key: Any) -> Envelope:
    out, envelope = process_buffer(RsaEncryptContext(public_key), data)
    return envelope.attach(out)


def rsa_decrypt_bytes(ciphertext: Union[Envelope, bytes], private_key: Any) -> bytes:
    if isinstance(ciphertext, Envelope):
        if ciphertext.algorithm != RSA_PKCS1V15.name:
            raise EnvelopeError(f"{ciphertext.algorithm} envelope is not an RSA ciphertext")
        ciphertext = ciphertext.payload
    out, _ = process_buffer(RsaDecryptContext(private_key), ciphertext)
    return out


def rsa_encrypt_stream(source: Any, sink: Any, public_key: Any, *, buffer_size: Optional[int] = None) -> Envelope:
    return StreamDriver(RsaEncryptContext(public_key), buffer_size=buffer_size).run(source, sink)


def rsa_decrypt_stream(source: Any, sink: Any, private_key: Any, *, buffer_size: Optional[int] = None) -> Envelope:
    return StreamDriver(RsaDecryptContext(private_key), buffer_size=buffer_size).run(source, sink)


async def rsa_encrypt_stream_async(
    source: Any, sink: Any, public_key: Any, *, buffer_size: Optional[int] = None
) -> Envelope:
    return await StreamDriver(RsaEncryptContext(public_key), buffer_size=buffer_size).run_async(source, sink)


async def rsa_decrypt_stream_async(
    source: Any, sink: Any, private_key: Any, *, buffer_size: Optional[int] = None
) -> Envelope:
    return await StreamDriver(RsaDecryptContext(private_key), buffer_size=buffer_size).run_async(source, sink)
