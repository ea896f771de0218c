"""End-of-file dictionary lookup for multi-mesh archives.

A ``.serialized`` archive is a concatenation of sub-mesh records followed by
a dictionary of record offsets and a 32-bit record count:

    offset[0] (always 0), offset[1], ..., offset[count - 1], count

Version 4 archives store 64-bit offsets, version 3 archives 32-bit ones.
"""
import struct

from .errors import ShapeIndexOutOfRangeError, TruncatedError, UnsupportedVersionError
from .serialized_types import FILEFORMAT_VERSION_V3, FILEFORMAT_VERSION_V4
from .streams import SeekableStream

COUNT_SIZE = 4  # trailing uint32 record count
HEADER_SIZE = 4  # uint16 magic + uint16 version


class ContainerIndex:
    """Resolves the byte offset of the N-th sub-mesh record."""

    ENTRY_FORMAT = "Q"

    @property
    def entry_size(self) -> int:
        return struct.calcsize("<" + self.ENTRY_FORMAT)

    @staticmethod
    def count(stream: SeekableStream) -> int:
        """Read the number of sub-meshes stored in the archive."""
        stream.seek(stream.size() - COUNT_SIZE)
        return stream.read_u32()

    def check_range(self, shape_index: int, count: int):
        if shape_index >= count:
            raise ShapeIndexOutOfRangeError(
                f"shape index is out of range! (requested {shape_index} out of 0..{count - 1})"
            )

    def entry_position(self, file_size: int, count: int, shape_index: int) -> int:
        return file_size - self.entry_size * (count - shape_index) - COUNT_SIZE

    def locate(self, stream: SeekableStream, shape_index: int) -> int:
        """Position ``stream`` just past the header of sub-mesh ``shape_index``.

        The first sub-mesh always starts at offset 0; its header has already
        been consumed by the caller, so the dictionary is not consulted.

        Args:
            stream: Seekable stream over the whole archive
            shape_index: Zero-based sub-mesh number

        Returns:
            Byte offset of the sub-mesh record

        Raises:
            ShapeIndexOutOfRangeError: If the archive has no such sub-mesh
        """
        if shape_index < 0:
            raise ShapeIndexOutOfRangeError("shape index must be nonnegative!")
        if shape_index == 0:
            return 0

        file_size = stream.size()
        if file_size < COUNT_SIZE:
            raise TruncatedError("archive is too small to hold a dictionary")
        stream.seek(file_size - COUNT_SIZE)
        count = stream.read_u32()
        self.check_range(shape_index, count)

        position = self.entry_position(file_size, count, shape_index)
        if position < 0:
            raise TruncatedError(
                f"dictionary of {count} entries does not fit in {file_size} bytes"
            )
        stream.seek(position)
        offset = stream.read_value(self.ENTRY_FORMAT)
        stream.seek(offset)
        stream.skip(HEADER_SIZE)
        return offset


class ModernIndex(ContainerIndex):
    """Version 4 dictionary with 64-bit offsets."""

    ENTRY_FORMAT = "Q"


class LegacyIndex(ContainerIndex):
    """Version 3 dictionary with 32-bit offsets.

    Historical loaders only rejected ``shape_index > count``, so index
    ``count`` passes the check and reads the count field itself as an
    offset. That behavior is kept as-is.
    """

    ENTRY_FORMAT = "I"

    def check_range(self, shape_index: int, count: int):
        if shape_index > count:
            raise ShapeIndexOutOfRangeError(
                f"shape index is out of range! (requested {shape_index} out of 0..{count - 1})"
            )

    def entry_position(self, file_size: int, count: int, shape_index: int) -> int:
        return file_size - self.entry_size * (count - shape_index + 1)


def index_for_version(version: int) -> ContainerIndex:
    """Pick the dictionary encoding matching a sub-mesh header version."""
    if version == FILEFORMAT_VERSION_V4:
        return ModernIndex()
    if version == FILEFORMAT_VERSION_V3:
        return LegacyIndex()
    raise UnsupportedVersionError(f"encountered an incompatible file version ({version})!")
