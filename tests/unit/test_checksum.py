"""Unit tests for CRC-32 / Adler-32 / CRC-64 checksums."""

import asyncio
import io
import os
import zlib
from unittest.mock import patch

import pytest

from streamcrypt.core.driver import StreamDriver
from streamcrypt.core.envelope import Envelope
from streamcrypt.core.registry import Family
from streamcrypt.security.checksum import (
    ChecksumContext,
    checksum_bytes,
    checksum_file,
    checksum_stream,
    checksum_stream_async,
)


def test_crc32_check_value():
    """The standard "123456789" check value."""
    env = checksum_bytes(b"123456789", "crc32")
    assert env.checksum == 0xCBF43926
    assert env.payload == bytes.fromhex("cbf43926")
    assert env.family is Family.CHECKSUM


def test_crc64_xz_check_value():
    """CRC-64/XZ (ECMA-182, reflected) check value."""
    env = checksum_bytes(b"123456789", "crc64")
    assert env.checksum == 0x995DC9BBDF1939FA
    assert env.payload == bytes.fromhex("995dc9bbdf1939fa")
    assert len(env.payload) == 8
    assert Envelope.from_bytes(env.to_bytes()) == env


def test_adler32_matches_zlib():
    data = os.urandom(4000)
    assert checksum_bytes(data, "adler32").checksum == zlib.adler32(data)


@pytest.mark.parametrize("name, empty_value", [("crc32", 0), ("adler32", 1), ("crc64", 0)])
def test_empty_input(name, empty_value):
    assert checksum_bytes(b"", name).checksum == empty_value


@pytest.mark.parametrize("name", ["crc32", "adler32", "crc64"])
def test_any_partition_gives_same_value(name):
    data = os.urandom(1000)
    whole = checksum_bytes(data, name)

    ctx = ChecksumContext(name)
    for start, end in ((0, 1), (1, 333), (333, 334), (334, 990)):
        ctx.absorb(data[start:end])
    _, env = ctx.finalize(data[990:])

    assert env == whole


def test_default_algorithm_is_crc32():
    assert checksum_bytes(b"x").algorithm == "crc32"


def test_checksum_stream():
    data = os.urandom(20000)
    env = checksum_stream(io.BytesIO(data), "adler32", buffer_size=999)
    assert env.checksum == zlib.adler32(data)


def test_checksum_file(tmp_path):
    path = tmp_path / "blob.bin"
    data = os.urandom(9000)
    path.write_bytes(data)
    assert checksum_file(path).checksum == zlib.crc32(data)


def test_checksum_stream_async():
    data = os.urandom(6000)

    async def main():
        reader = asyncio.StreamReader()
        reader.feed_data(data)
        reader.feed_eof()
        return await checksum_stream_async(reader)

    assert asyncio.run(main()).checksum == zlib.crc32(data)


def test_crc64_stream_matches_buffer():
    data = os.urandom(50000)
    env = checksum_stream(io.BytesIO(data), "crc64", buffer_size=4096)
    assert env == checksum_bytes(data, "crc64")


def test_checksum_file_honours_buffer_size(tmp_path):
    path = tmp_path / "blob.bin"
    data = os.urandom(10000)
    path.write_bytes(data)

    with patch("streamcrypt.security.checksum.StreamDriver", wraps=StreamDriver) as driver:
        env = checksum_file(path, "crc64", buffer_size=1000)

    assert driver.call_args.kwargs["buffer_size"] == 1000
    assert env == checksum_bytes(data, "crc64")
