"""Tests for the compressed substream."""
import zlib

import pytest

from serialized_extractor.errors import (
    DecompressionError,
    TruncatedError,
    UnsupportedOperationError,
)
from serialized_extractor.streams import MemoryStream
from serialized_extractor.zstream import ZStream


def create_compressed_stream(payload: bytes, prefix: bytes = b"", suffix: bytes = b""):
    """Create a MemoryStream positioned at a zlib region."""
    stream = MemoryStream(prefix + zlib.compress(payload) + suffix)
    stream.seek(len(prefix))
    return stream


def test_read_sequential_chunks():
    """Should return the decompressed bytes in order across refills."""
    payload = bytes(range(256)) * 1000
    zstream = ZStream(create_compressed_stream(payload))

    chunks = []
    while True:
        chunk = zstream.read(7777)
        if not chunk:
            break
        chunks.append(chunk)

    assert b"".join(chunks) == payload


def test_typed_reads():
    """Typed helpers should work on top of the inflated bytes."""
    payload = b"\x01\x10\x00\x00" + b"\x05" + b"\x00" * 7
    zstream = ZStream(create_compressed_stream(payload, prefix=b"\x1c\x04\x04\x00"))

    assert zstream.read_u32() == 0x1001
    assert zstream.read_u64() == 5


def test_skip_then_read():
    """skip() should discard exactly the requested bytes."""
    payload = b"A" * 100000 + b"marker"
    zstream = ZStream(create_compressed_stream(payload))

    zstream.skip(100000)
    assert zstream.read(6) == b"marker"


def test_trailing_data_is_not_returned():
    """Bytes after the compressed region should not leak into reads."""
    zstream = ZStream(create_compressed_stream(b"mesh", suffix=b"\x00" * 12))
    assert zstream.read(100) == b"mesh"


def test_seek_and_tell_unsupported():
    """Compressed streams cannot be positioned."""
    zstream = ZStream(create_compressed_stream(b"data"))
    with pytest.raises(UnsupportedOperationError):
        zstream.seek(0)
    with pytest.raises(UnsupportedOperationError):
        zstream.tell()


def test_truncated_region():
    """Should raise TruncatedError when the region is cut short."""
    payload = bytes(range(256)) * 200
    compressed = zlib.compress(payload)
    zstream = ZStream(MemoryStream(compressed[: len(compressed) // 2]))

    with pytest.raises(TruncatedError):
        zstream.read_exact(len(payload))


def test_corrupt_region():
    """Should raise DecompressionError on garbage input."""
    zstream = ZStream(MemoryStream(b"\xff" * 64))
    with pytest.raises(DecompressionError):
        zstream.read(10)


def test_write_roundtrip():
    """Written data should decompress with plain zlib."""
    target = MemoryStream()
    target.write(b"HDR!")

    zstream = ZStream(target, mode="w")
    zstream.write_u32(0x1001)
    zstream.write(b"shape\x00")
    zstream.close()

    data = target.getvalue()
    assert data[:4] == b"HDR!"
    assert zlib.decompress(data[4:]) == b"\x01\x10\x00\x00shape\x00"


def test_mode_mismatch():
    """Reading a writer or writing a reader should fail."""
    with pytest.raises(UnsupportedOperationError):
        ZStream(MemoryStream(), mode="w").read(1)
    with pytest.raises(UnsupportedOperationError):
        ZStream(create_compressed_stream(b"x")).write(b"x")
    with pytest.raises(ValueError):
        ZStream(MemoryStream(), mode="a")
