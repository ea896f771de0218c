"""Parser for serialized sub-mesh headers and flags."""
import struct

from .errors import BadMagicError, TruncatedError, UnsupportedVersionError
from .serialized_types import (
    FILEFORMAT_HEADER,
    FILEFORMAT_VERSION_V4,
    SUPPORTED_VERSIONS,
    SerializedHeader,
    TriMeshFlags,
)
from .streams import Stream


class SerializedParser:
    """Parses the fixed fields at the start of each sub-mesh record."""

    def parse_header(self, stream: Stream) -> SerializedHeader:
        """Parse the uncompressed header from a stream.

        The version is only read once the magic has been accepted.

        Args:
            stream: Stream positioned at the start of a sub-mesh record

        Returns:
            SerializedHeader with parsed data

        Raises:
            BadMagicError: If the format identifier does not match
            UnsupportedVersionError: If the version is not 3 or 4
        """
        magic = stream.read_u16()
        self._check_magic(magic)
        version = stream.read_u16()
        self._check_version(version)
        return SerializedHeader(magic=magic, version=version)

    def parse_header_bytes(self, data: bytes) -> SerializedHeader:
        """Parse the uncompressed header from at least 4 bytes."""
        if len(data) < 4:
            raise TruncatedError("Header data too short")

        magic, version = struct.unpack("<HH", data[:4])
        self._check_magic(magic)
        self._check_version(version)
        return SerializedHeader(magic=magic, version=version)

    def _check_magic(self, magic: int):
        if magic != FILEFORMAT_HEADER:
            raise BadMagicError(
                f"encountered an invalid file format! (magic {magic:#06x}, "
                f"expected {FILEFORMAT_HEADER:#06x})"
            )

    def _check_version(self, version: int):
        if version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersionError(
                f"encountered an incompatible file version! ({version})"
            )

    def parse_flags(self, stream: Stream) -> TriMeshFlags:
        """Read the 32-bit capability flag word."""
        return TriMeshFlags(stream.read_u32())

    def parse_name(self, stream: Stream) -> str:
        """Read a null-terminated UTF-8 shape name."""
        name = bytearray()
        while True:
            ch = stream.read_exact(1)
            if ch == b"\x00":
                break
            name += ch
        return name.decode("utf-8", errors="replace")

    def has_name(self, header: SerializedHeader) -> bool:
        return header.version >= FILEFORMAT_VERSION_V4
