"""Writer for serialized mesh archives."""
import logging
from pathlib import Path
from typing import BinaryIO, Iterable, List, Union

import numpy as np

from .container_index import index_for_version
from .mesh_schema import index_width_for
from .serialized_types import (
    FILEFORMAT_HEADER,
    FILEFORMAT_VERSION_V4,
    SUPPORTED_VERSIONS,
    MeshData,
    TriMeshFlags,
)
from .streams import FileStream, SeekableStream
from .zstream import ZStream

logger = logging.getLogger(__name__)


class SerializedWriter:
    """Appends sub-mesh records to a stream and finishes with the dictionary.

    Args:
        stream: Seekable stream positioned at offset 0
        version: 4 (64-bit dictionary, named shapes) or 3 (legacy)
        double_precision: Store attributes as float64 instead of float32
    """

    def __init__(self, stream: SeekableStream, version: int = FILEFORMAT_VERSION_V4,
                 double_precision: bool = False):
        if version not in SUPPORTED_VERSIONS:
            raise ValueError(f"Unsupported version: {version}")
        self.stream = stream
        self.version = version
        self.double_precision = double_precision
        if stream.tell() != 0:
            raise ValueError(
                f"Archives must be written from offset 0 of the stream (at {stream.tell()})"
            )
        self.offsets: List[int] = []
        self._closed = False

    @property
    def float_dtype(self) -> np.dtype:
        return np.dtype("<f8") if self.double_precision else np.dtype("<f4")

    def _flags_for(self, mesh: MeshData) -> TriMeshFlags:
        flags = TriMeshFlags.DOUBLE_PRECISION if self.double_precision else TriMeshFlags.SINGLE_PRECISION
        if mesh.normals is not None:
            flags |= TriMeshFlags.HAS_NORMALS
        if mesh.texcoords is not None:
            flags |= TriMeshFlags.HAS_TEXCOORDS
        if mesh.colors is not None:
            flags |= TriMeshFlags.HAS_COLORS
        if mesh.face_normals:
            flags |= TriMeshFlags.FACE_NORMALS
        return flags

    def _attribute_bytes(self, values, vertex_count: int, dim: int, label: str) -> bytes:
        array = np.asarray(values, dtype=self.float_dtype)
        if array.shape != (vertex_count, dim):
            raise ValueError(
                f"{label} must have shape ({vertex_count}, {dim}), got {array.shape}"
            )
        return np.ascontiguousarray(array).tobytes()

    def write_mesh(self, mesh: MeshData) -> int:
        """Append one sub-mesh record.

        Returns:
            Offset of the record from the start of the stream
        """
        if self._closed:
            raise ValueError("Writer already closed")

        vertex_count = mesh.vertex_count
        offset = self.stream.tell()
        self.offsets.append(offset)

        self.stream.write_u16(FILEFORMAT_HEADER)
        self.stream.write_u16(self.version)

        zstream = ZStream(self.stream, mode="w")
        zstream.write_u32(int(self._flags_for(mesh)))
        if self.version >= FILEFORMAT_VERSION_V4:
            zstream.write(mesh.name.encode("utf-8") + b"\x00")
        zstream.write_u64(vertex_count)
        zstream.write_u64(mesh.face_count)

        zstream.write(self._attribute_bytes(mesh.positions, vertex_count, 3, "positions"))
        if mesh.normals is not None:
            zstream.write(self._attribute_bytes(mesh.normals, vertex_count, 3, "normals"))
        if mesh.texcoords is not None:
            zstream.write(self._attribute_bytes(mesh.texcoords, vertex_count, 2, "texcoords"))
        if mesh.colors is not None:
            zstream.write(self._attribute_bytes(mesh.colors, vertex_count, 3, "colors"))

        index_dtype = np.dtype("<u4") if index_width_for(vertex_count) == 4 else np.dtype("<u8")
        faces = np.asarray(mesh.faces, dtype=index_dtype).reshape(-1, 3)
        zstream.write(np.ascontiguousarray(faces).tobytes())
        zstream.close()

        logger.debug('Wrote "%s": %i vertices, %i faces at offset %i',
                     mesh.name, vertex_count, mesh.face_count, offset)
        return offset

    def close(self):
        """Write the end-of-file dictionary."""
        if self._closed:
            return
        self._closed = True
        entry_format = index_for_version(self.version).ENTRY_FORMAT
        for offset in self.offsets:
            self.stream.write_value(entry_format, offset)
        self.stream.write_u32(len(self.offsets))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()


def write_serialized(target: Union[str, Path, BinaryIO], meshes: Iterable[MeshData],
                     version: int = FILEFORMAT_VERSION_V4, double_precision: bool = False):
    """Write a complete archive to a path or a seekable binary file."""
    with FileStream(target, mode="wb") as stream:
        with SerializedWriter(stream, version=version, double_precision=double_precision) as writer:
            for mesh in meshes:
                writer.write_mesh(mesh)
