"""Decoding of individual sub-meshes from serialized mesh archives.

A sub-mesh record is an uncompressed 4-byte header followed by a zlib
stream holding:

- flags (uint32) and, from version 4 on, a null-terminated name
- vertex and face counts (uint64 each)
- positions, then optional normals, texture coordinates and colors, stored
  as float32 or float64 depending on the precision flag
- face indices (uint32, or uint64 for more than 2^32 vertices)

The first sub-mesh starts at offset 0. Others are found through the
dictionary at the end of the archive (see ``container_index``).
"""
import logging
import time
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Union

import numpy as np

from . import array_decoder
from .container_index import index_for_version
from .errors import InvalidIndexError, SerializedError
from .geometry import BoundingBox3f, as_transform, recompute_vertex_normals
from .mesh_schema import Struct, build_face_layout, build_vertex_layout, index_width_for
from .serialized_parser import SerializedParser
from .serialized_types import LoadOptions, TriMeshFlags
from .streams import FileStream, MemoryStream, SeekableStream
from .zstream import ZStream

logger = logging.getLogger(__name__)

Source = Union[str, Path, BinaryIO, bytes, SeekableStream]


class DecodeState(IntEnum):
    """Progress of a single sub-mesh decode."""
    INIT = 0
    HEADER_READ = 1
    FLAGS_READ = 2
    SCHEMA_BUILT = 3
    VERTICES_DECODED = 4
    FACES_DECODED = 5
    POST_PROCESSED = 6
    DONE = 7


@dataclass
class SerializedMesh:
    """Fully decoded sub-mesh."""

    name: str
    version: int
    flags: TriMeshFlags
    vertices: np.ndarray
    faces: np.ndarray
    vertex_struct: Struct
    face_struct: Struct
    bbox: BoundingBox3f
    face_normals: bool = False

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def has_vertex_normals(self) -> bool:
        return self.vertex_struct.has_field("nx")

    @property
    def has_vertex_texcoords(self) -> bool:
        return self.vertex_struct.has_field("u")

    @property
    def has_vertex_colors(self) -> bool:
        return self.vertex_struct.has_field("r")

    def field_offsets(self) -> Dict[str, int]:
        return self.vertex_struct.offsets()

    def positions(self) -> np.ndarray:
        return array_decoder.field_view(self.vertices, self.vertex_struct, "x", 3)

    def normals(self) -> Optional[np.ndarray]:
        if not self.has_vertex_normals:
            return None
        return array_decoder.field_view(self.vertices, self.vertex_struct, "nx", 3)

    def texcoords(self) -> Optional[np.ndarray]:
        if not self.has_vertex_texcoords:
            return None
        return array_decoder.field_view(self.vertices, self.vertex_struct, "u", 2)

    def colors(self) -> Optional[np.ndarray]:
        if not self.has_vertex_colors:
            return None
        return array_decoder.field_view(self.vertices, self.vertex_struct, "r", 3)

    def indices(self) -> np.ndarray:
        """(face_count, 3) view of the face buffer."""
        return array_decoder.field_view(self.faces, self.face_struct, "i0", 3)


def _mem_string(size: int) -> str:
    for unit in ("B", "KiB", "MiB"):
        if size < 1024:
            return f"{size:.1f} {unit}" if unit != "B" else f"{size} B"
        size /= 1024.0
    return f"{size:.1f} GiB"


class SerializedMeshReader:
    """Loads one sub-mesh from a ``.serialized`` archive.

    Every call to ``read`` performs an independent decode and starts from
    the beginning of the archive, so one open handle can serve several
    sequential decodes. Readers sharing a handle must not run concurrently,
    since the dictionary lookup moves the shared file position.
    """

    def __init__(self, source: Source, options: Optional[LoadOptions] = None, **kwargs):
        """Initialize reader with file path, file-like object, bytes or stream.

        Args:
            source: Archive to read from
            options: Decode settings; keyword arguments build one if omitted
        """
        if options is None:
            options = LoadOptions(**kwargs)
        elif kwargs:
            raise TypeError("Pass either options or keyword arguments, not both")
        self.source = source
        self.options = options
        self.parser = SerializedParser()
        self.state = DecodeState.INIT

    @property
    def filename(self) -> str:
        if isinstance(self.source, (str, Path)):
            return Path(self.source).name
        if isinstance(self.source, SeekableStream):
            return getattr(self.source, "name", "<stream>")
        if isinstance(self.source, (bytes, bytearray)):
            return "<memory>"
        return Path(getattr(self.source, "name", "") or "<stream>").name

    @property
    def archive_name(self) -> str:
        return f"{self.filename}@{self.options.shape_index}"

    def _open_stream(self) -> SeekableStream:
        if isinstance(self.source, SeekableStream):
            return self.source
        if isinstance(self.source, (bytes, bytearray)):
            return MemoryStream(bytes(self.source))
        return FileStream(self.source)

    def read(self) -> SerializedMesh:
        """Decode the configured sub-mesh.

        Returns:
            SerializedMesh with populated buffers

        Raises:
            FileNotFoundError: If the archive path does not exist
            SerializedError: If the archive is malformed or the shape index
                is out of range
        """
        self.state = DecodeState.INIT
        logger.debug('Loading mesh from "%s" ..', self.archive_name)
        stream = self._open_stream()
        try:
            return self._decode(stream)
        except SerializedError as e:
            raise type(e)(
                f'Error while loading serialized file "{self.archive_name}": {e}'
            ) from e
        finally:
            if stream is not self.source:
                stream.close()

    def _decode(self, stream: SeekableStream) -> SerializedMesh:
        options = self.options
        timer = time.perf_counter()

        if stream.tell() != 0:
            stream.seek(0)
        header = self.parser.parse_header(stream)
        self.state = DecodeState.HEADER_READ

        index_for_version(header.version).locate(stream, options.shape_index)

        zstream = ZStream(stream)
        flags = self.parser.parse_flags(zstream)
        name = self.archive_name
        if self.parser.has_name(header):
            name = self.parser.parse_name(zstream) or name
        self.state = DecodeState.FLAGS_READ

        vertex_count = zstream.read_u64()
        face_count = zstream.read_u64()
        normals_disabled = options.normals_disabled
        vertex_struct = build_vertex_layout(flags, normals_disabled, options.working_dtype)
        face_struct = build_face_layout(index_width_for(vertex_count))
        self.state = DecodeState.SCHEMA_BUILT

        # Positions are read before the buffer is allocated so a bogus count
        # fails as a short stream.
        dp = flags.double_precision
        positions = array_decoder.read_values(zstream, dp, vertex_count, 3)
        vertices = np.zeros(vertex_count, dtype=vertex_struct.dtype)
        array_decoder.store(positions, vertex_struct, "x", vertices)

        if flags & TriMeshFlags.HAS_NORMALS:
            if normals_disabled:
                array_decoder.skip(zstream, dp, vertex_count, 3)
            else:
                array_decoder.read_into(zstream, dp, vertex_count, 3, vertex_struct, "nx", vertices)

        if flags & TriMeshFlags.HAS_TEXCOORDS:
            array_decoder.read_into(zstream, dp, vertex_count, 2, vertex_struct, "u", vertices)

        if flags & TriMeshFlags.HAS_COLORS:
            array_decoder.read_into(zstream, dp, vertex_count, 3, vertex_struct, "r", vertices)
        self.state = DecodeState.VERTICES_DECODED

        faces = array_decoder.read_faces(zstream, face_count, face_struct)
        self._check_indices(faces, face_struct, vertex_count)
        self.state = DecodeState.FACES_DECODED

        logger.debug(
            '"%s": read %i faces, %i vertices (%s in %.1f ms)',
            name, face_count, vertex_count,
            _mem_string(face_count * face_struct.size + vertex_count * vertex_struct.size),
            (time.perf_counter() - timer) * 1000.0,
        )

        mesh = SerializedMesh(
            name=name,
            version=header.version,
            flags=flags,
            vertices=vertices,
            faces=faces,
            vertex_struct=vertex_struct,
            face_struct=face_struct,
            bbox=BoundingBox3f(),
            face_normals=options.face_normals or bool(flags & TriMeshFlags.FACE_NORMALS),
        )
        self._post_process(mesh, bool(flags & TriMeshFlags.HAS_NORMALS))
        self.state = DecodeState.POST_PROCESSED

        self.state = DecodeState.DONE
        return mesh

    def _check_indices(self, faces: np.ndarray, face_struct: Struct, vertex_count: int):
        if len(faces) == 0:
            return
        largest = int(array_decoder.field_view(faces, face_struct, "i0", 3).max())
        if largest >= vertex_count:
            raise InvalidIndexError(
                f"face index {largest} is out of range for {vertex_count} vertices"
            )

    def _post_process(self, mesh: SerializedMesh, file_has_normals: bool):
        """Apply ``to_world``, grow the bounding box and fill missing normals."""
        to_world = as_transform(self.options.to_world)

        positions = mesh.positions()
        world = to_world.transform_points(positions)
        positions[...] = world
        mesh.bbox.expand(positions)

        if mesh.has_vertex_normals:
            normals = mesh.normals()
            if file_has_normals:
                normals[...] = to_world.transform_normals(normals)
            else:
                normals[...] = recompute_vertex_normals(positions, mesh.indices())
        # Texture coordinates pass through unchanged.


def load_serialized(source: Source, **kwargs) -> SerializedMesh:
    """Decode one sub-mesh; keyword arguments are ``LoadOptions`` fields."""
    return SerializedMeshReader(source, LoadOptions(**kwargs)).read()
