"""zlib-compressed substream layered over a byte stream.

The compressed region of a sub-mesh can only be consumed front to back:
there is no ``seek`` or ``tell``. Fields that are not wanted have to be
read and thrown away with ``skip``.
"""
import zlib

from .errors import DecompressionError, TruncatedError, UnsupportedOperationError
from .streams import Stream

# Compressed bytes pulled from the parent stream per refill
READ_BLOCK_SIZE = 32768
# Upper bound on decompressed bytes produced per refill
INFLATE_CHUNK_SIZE = 65536


class ZStream(Stream):
    """Sequential DEFLATE (zlib encoding) reader or writer.

    Args:
        parent: Stream positioned at the start of the compressed region
        mode: "r" to inflate from ``parent``, "w" to deflate into it
    """

    def __init__(self, parent: Stream, mode: str = "r", level: int = zlib.Z_DEFAULT_COMPRESSION):
        if mode not in ("r", "w"):
            raise ValueError(f"Invalid ZStream mode: {mode!r}")
        self.parent = parent
        self.mode = mode
        self._buffer = bytearray()
        self._closed = False
        if mode == "r":
            self._inflater = zlib.decompressobj()
            self._deflater = None
        else:
            self._inflater = None
            self._deflater = zlib.compressobj(level)

    def _fill(self, size: int):
        """Inflate until at least ``size`` bytes are buffered or input ends."""
        while len(self._buffer) < size:
            if self._inflater.eof:
                return
            if self._inflater.unconsumed_tail:
                chunk = self._inflater.unconsumed_tail
            else:
                chunk = self.parent.read(READ_BLOCK_SIZE)
                if not chunk:
                    return
            try:
                self._buffer += self._inflater.decompress(chunk, INFLATE_CHUNK_SIZE)
            except zlib.error as e:
                raise DecompressionError(f"Corrupt compressed stream: {e}") from e

    def read(self, size: int) -> bytes:
        if self.mode != "r":
            raise UnsupportedOperationError("ZStream opened for writing does not support read()")
        self._fill(size)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def read_exact(self, size: int) -> bytes:
        data = self.read(size)
        if len(data) != size:
            raise TruncatedError(
                f"Compressed stream ended early: wanted {size} bytes, got {len(data)}"
            )
        return data

    def skip(self, size: int):
        """Read and discard ``size`` bytes."""
        remaining = size
        while remaining > 0:
            chunk = min(remaining, INFLATE_CHUNK_SIZE)
            self.read_exact(chunk)
            remaining -= chunk

    def write(self, data: bytes):
        if self.mode != "w":
            raise UnsupportedOperationError("ZStream opened for reading does not support write()")
        self.parent.write(self._deflater.compress(data))

    def close(self):
        """Finish the compressed region. The parent stream stays open."""
        if self._closed:
            return
        self._closed = True
        if self.mode == "w":
            self.parent.write(self._deflater.flush(zlib.Z_FINISH))

    def seek(self, pos: int):
        raise UnsupportedOperationError("Compressed streams do not support seek()")

    def tell(self) -> int:
        raise UnsupportedOperationError("Compressed streams do not support tell()")
