"""Little-endian typed byte streams over files and memory buffers."""
import io
import os
import struct
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from .errors import TruncatedError, UnsupportedOperationError


class Stream:
    """Sequential little-endian reader/writer.

    Subclasses provide ``read`` and ``write``; everything typed is built on
    top of those two calls with ``struct``.
    """

    def read(self, size: int) -> bytes:
        raise NotImplementedError

    def write(self, data: bytes):
        raise NotImplementedError

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def read_exact(self, size: int) -> bytes:
        """Read exactly ``size`` bytes or raise TruncatedError."""
        data = self.read(size)
        if len(data) != size:
            raise TruncatedError(
                f"Unexpected end of stream: wanted {size} bytes, got {len(data)}"
            )
        return data

    def read_value(self, fmt: str):
        size = struct.calcsize("<" + fmt)
        return struct.unpack("<" + fmt, self.read_exact(size))[0]

    def read_array(self, fmt: str, count: int) -> Tuple:
        """Read ``count`` consecutive values of a single struct type."""
        size = struct.calcsize("<" + fmt) * count
        return struct.unpack(f"<{count}{fmt}", self.read_exact(size))

    def read_u16(self) -> int:
        return self.read_value("H")

    def read_u32(self) -> int:
        return self.read_value("I")

    def read_u64(self) -> int:
        return self.read_value("Q")

    def read_f32(self) -> float:
        return self.read_value("f")

    def read_f64(self) -> float:
        return self.read_value("d")

    def write_value(self, fmt: str, value):
        self.write(struct.pack("<" + fmt, value))

    def write_u16(self, value: int):
        self.write_value("H", value)

    def write_u32(self, value: int):
        self.write_value("I", value)

    def write_u64(self, value: int):
        self.write_value("Q", value)

    def write_f32(self, value: float):
        self.write_value("f", value)

    def write_f64(self, value: float):
        self.write_value("d", value)

    def seek(self, pos: int):
        raise UnsupportedOperationError(f"{type(self).__name__} does not support seek()")

    def tell(self) -> int:
        raise UnsupportedOperationError(f"{type(self).__name__} does not support tell()")


class SeekableStream(Stream):
    """Stream backed by a seekable binary file object."""

    def __init__(self, file: BinaryIO):
        self._file = file

    def read(self, size: int) -> bytes:
        return self._file.read(size)

    def write(self, data: bytes):
        self._file.write(data)

    def seek(self, pos: int):
        if pos < 0:
            raise TruncatedError(f"Attempted to seek before start of stream ({pos})")
        self._file.seek(pos)

    def tell(self) -> int:
        return self._file.tell()

    def skip(self, size: int):
        self.seek(self.tell() + size)

    def size(self) -> int:
        """Total stream length in bytes; the position is left untouched."""
        pos = self._file.tell()
        end = self._file.seek(0, io.SEEK_END)
        self._file.seek(pos)
        return end

    def flush(self):
        self._file.flush()


class FileStream(SeekableStream):
    """Stream over a path or an already open binary file.

    Files opened from a path are closed by ``close()``; handles passed in
    by the caller are left open.
    """

    def __init__(self, source: Union[str, Path, BinaryIO], mode: str = "rb"):
        if isinstance(source, (str, Path)):
            self.path: Optional[Path] = Path(source)
            if "r" in mode and not self.path.exists():
                raise FileNotFoundError(f"File not found: {self.path}")
            super().__init__(open(self.path, mode))
            self._owns_file = True
        else:
            self.path = None
            super().__init__(source)
            self._owns_file = False

    @property
    def name(self) -> str:
        if self.path is not None:
            return self.path.name
        return os.path.basename(getattr(self._file, "name", "") or "") or "<stream>"

    def size(self) -> int:
        if self.path is not None:
            if self._file.writable():
                self._file.flush()
            return os.fstat(self._file.fileno()).st_size
        return super().size()

    def close(self):
        if self._owns_file:
            self._file.close()


class MemoryStream(SeekableStream):
    """Stream over an in-memory byte buffer."""

    def __init__(self, data: bytes = b""):
        super().__init__(io.BytesIO(data))
        self.name = "<memory>"

    def size(self) -> int:
        return self._file.getbuffer().nbytes

    def getvalue(self) -> bytes:
        return self._file.getvalue()
