"""
Unit tests for the incremental context lifecycle shared by every family.
"""

import pytest

from streamcrypt.core.context import IncrementalContext, wipe
from streamcrypt.core.exceptions import ProviderError, StateError
from streamcrypt.security.checksum import ChecksumContext
from streamcrypt.security.hashing import SHA256, HashContext
from streamcrypt.security.rsa import RsaDecryptContext, RsaEncryptContext, SignContext, generate_private_key
from streamcrypt.security.symmetric import AesKey, CipherContext


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture(scope="module")
def rsa_key():
    """A 2048-bit key keeps generation quick."""
    return generate_private_key(2048)


CONTEXT_FACTORIES = {
    "hash": lambda rsa_key: HashContext(),
    "checksum": lambda rsa_key: ChecksumContext(),
    "aes-cbc-encrypt": lambda rsa_key: CipherContext(AesKey.generate("aes-128-cbc")),
    "aes-cbc-decrypt": lambda rsa_key: CipherContext(AesKey.generate("aes-128-cbc"), decrypt=True),
    "aes-gcm-encrypt": lambda rsa_key: CipherContext(AesKey.generate("aes-256-gcm")),
    "sign": lambda rsa_key: SignContext(rsa_key),
    "rsa-encrypt": lambda rsa_key: RsaEncryptContext(rsa_key),
    "rsa-decrypt": lambda rsa_key: RsaDecryptContext(rsa_key),
}


def _finalize_cleanly(ctx):
    # a decrypting CBC context needs one valid block to finish without error
    if isinstance(ctx, CipherContext) and ctx.decrypt:
        with pytest.raises(ProviderError):
            ctx.finalize(b"")
    else:
        ctx.finalize(b"")


class _Exploding(IncrementalContext):
    """Context whose primitive fails with a plain library exception."""

    def __init__(self):
        super().__init__(SHA256)
        self.wiped = False

    def _absorb(self, unit):
        raise ValueError("primitive rejected input")

    def _finalize(self, tail):
        raise ValueError("")

    def _wipe(self):
        self.wiped = True


# ==============================================================================
# Tests: Ordering
# ==============================================================================

@pytest.mark.parametrize("name", sorted(CONTEXT_FACTORIES))
def test_absorb_after_finalize_raises(name, rsa_key):
    """Every family rejects absorb once the context is finalized."""
    ctx = CONTEXT_FACTORIES[name](rsa_key)
    _finalize_cleanly(ctx)

    with pytest.raises(StateError):
        ctx.absorb(b"\x00" * ctx.unit_size)


@pytest.mark.parametrize("name", sorted(CONTEXT_FACTORIES))
def test_finalize_twice_raises(name, rsa_key):
    ctx = CONTEXT_FACTORIES[name](rsa_key)
    _finalize_cleanly(ctx)

    with pytest.raises(StateError):
        ctx.finalize(b"")


def test_absorb_after_close_raises():
    ctx = HashContext()
    ctx.close()
    with pytest.raises(StateError):
        ctx.absorb(b"data")


def test_misaligned_absorb_raises():
    """CBC works on whole blocks; a 5-byte absorb is a caller bug."""
    ctx = CipherContext(AesKey.generate("aes-128-cbc"))
    with pytest.raises(StateError, match="multiples of 16"):
        ctx.absorb(b"12345")


def test_bytes_consumed_counts_absorb_and_tail():
    ctx = HashContext()
    ctx.absorb(b"abc")
    ctx.absorb(b"")
    ctx.finalize(b"de")
    assert ctx.bytes_consumed == 5


# ==============================================================================
# Tests: Error mapping and key wiping
# ==============================================================================

def test_primitive_failure_becomes_provider_error():
    ctx = _Exploding()
    with pytest.raises(ProviderError, match="primitive rejected input") as info:
        ctx.absorb(b"x")

    assert isinstance(info.value.__cause__, ValueError)
    assert ctx.closed
    assert ctx.wiped


def test_provider_error_without_message_names_the_exception():
    ctx = _Exploding()
    with pytest.raises(ProviderError, match="ValueError"):
        ctx.finalize(b"")
    assert ctx.wiped


def test_key_wiped_after_finalize():
    ctx = CipherContext(AesKey.generate("aes-128-cbc"))
    ctx.finalize(b"hello")
    assert ctx._key == bytearray(16)
    assert ctx.closed


def test_key_wiped_after_failed_finalize():
    """A truncated ciphertext fails, and the key is still zeroed."""
    ctx = CipherContext(AesKey.generate("aes-256-cbc"), decrypt=True)
    with pytest.raises(ProviderError):
        ctx.finalize(b"\x00" * 5)
    assert ctx._key == bytearray(32)
    assert ctx.closed


def test_context_manager_closes():
    key = AesKey.generate("aes-256-gcm")
    with CipherContext(key) as ctx:
        ctx.absorb(b"partial")
    assert ctx.closed
    assert ctx._key == bytearray(32)


def test_close_is_idempotent():
    ctx = _Exploding()
    ctx.close()
    ctx.wiped = False
    ctx.close()
    assert not ctx.wiped


def test_wipe_zeroes_buffer():
    buf = bytearray(b"secret")
    wipe(buf)
    assert buf == bytearray(6)
    wipe(None)
