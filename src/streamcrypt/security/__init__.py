"""Algorithm families for streamcrypt: hashing, checksums, AES, RSA and password KDFs.

Every family offers the same shapes of call:
- ``*_bytes`` for in-memory buffers
- ``*_stream`` for blocking file-like objects and sockets
- ``*_stream_async`` for asyncio streams and other awaitable handles

and all of them return an :class:`~streamcrypt.core.envelope.Envelope`.
Importing this package registers every algorithm.
"""

from streamcrypt.core.envelope import Envelope
from streamcrypt.core.exceptions import (
    EnvelopeError,
    InvalidKeyError,
    ProviderError,
    StateError,
    StreamCryptError,
    StreamIOError,
    UnsupportedAlgorithmError,
)

from .hashing import (
    HashContext,
    hash_bytes,
    hash_stream,
    hash_stream_async,
    hash_file,
    calculate_sha256,
    calculate_sha256_bytes,
)
from .checksum import (
    ChecksumContext,
    checksum_bytes,
    checksum_stream,
    checksum_stream_async,
    checksum_file,
)
from .symmetric import (
    AesKey,
    CipherContext,
    encrypt_bytes,
    decrypt_bytes,
    decrypt_envelope,
    encrypt_stream,
    decrypt_stream,
    encrypt_stream_async,
    decrypt_stream_async,
    encrypt_file,
    decrypt_file,
)
from .kdf import (
    ARGON2ID,
    PBKDF2,
    Password,
    Salt,
    generate_salt,
    derive_key,
    derive_master_key,
    kdf_params_to_dict,
    pbkdf2_params_to_dict,
)
from .rsa import (
    SignContext,
    RsaEncryptContext,
    RsaDecryptContext,
    generate_private_key,
    public_parts,
    private_key_to_pem,
    load_private_key_pem,
    public_key_to_pem,
    load_public_key_pem,
    private_key_to_der,
    load_private_key_der,
    public_key_to_der,
    load_public_key_der,
    sign_bytes,
    sign_stream,
    sign_stream_async,
    verify_digest,
    verify_bytes,
    verify_stream,
    verify_stream_async,
    rsa_encrypt_bytes,
    rsa_decrypt_bytes,
    rsa_encrypt_stream,
    rsa_decrypt_stream,
    rsa_encrypt_stream_async,
    rsa_decrypt_stream_async,
)

__all__ = [
    "Envelope",
    "EnvelopeError",
    "InvalidKeyError",
    "ProviderError",
    "StateError",
    "StreamCryptError",
    "StreamIOError",
    "UnsupportedAlgorithmError",
    "HashContext",
    "hash_bytes",
    "hash_stream",
    "hash_stream_async",
    "hash_file",
    "calculate_sha256",
    "calculate_sha256_bytes",
    "ChecksumContext",
    "checksum_bytes",
    "checksum_stream",
    "checksum_stream_async",
    "checksum_file",
    "AesKey",
    "CipherContext",
    "encrypt_bytes",
    "decrypt_bytes",
    "decrypt_envelope",
    "encrypt_stream",
    "decrypt_stream",
    "encrypt_stream_async",
    "decrypt_stream_async",
    "encrypt_file",
    "decrypt_file",
    "ARGON2ID",
    "PBKDF2",
    "Password",
    "Salt",
    "generate_salt",
    "derive_key",
    "derive_master_key",
    "kdf_params_to_dict",
    "pbkdf2_params_to_dict",
    "SignContext",
    "RsaEncryptContext",
    "RsaDecryptContext",
    "generate_private_key",
    "public_parts",
    "private_key_to_pem",
    "load_private_key_pem",
    "public_key_to_pem",
    "load_public_key_pem",
    "private_key_to_der",
    "load_private_key_der",
    "public_key_to_der",
    "load_public_key_der",
    "sign_bytes",
    "sign_stream",
    "sign_stream_async",
    "verify_digest",
    "verify_bytes",
    "verify_stream",
    "verify_stream_async",
    "rsa_encrypt_bytes",
    "rsa_decrypt_bytes",
    "rsa_encrypt_stream",
    "rsa_decrypt_stream",
    "rsa_encrypt_stream_async",
    "rsa_decrypt_stream_async",
]
