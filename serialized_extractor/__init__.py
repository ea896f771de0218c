"""Reader and writer for compressed multi-mesh .serialized archives."""
from .container_index import ContainerIndex, LegacyIndex, ModernIndex, index_for_version
from .errors import (
    BadMagicError,
    DecompressionError,
    InvalidIndexError,
    SerializedError,
    ShapeIndexOutOfRangeError,
    TruncatedError,
    UnsupportedOperationError,
    UnsupportedVersionError,
)
from .geometry import BoundingBox3f, Transform4f, recompute_vertex_normals
from .mesh_schema import Struct, StructField, build_face_layout, build_vertex_layout
from .serialized_mesh import DecodeState, SerializedMesh, SerializedMeshReader, load_serialized
from .serialized_parser import SerializedParser
from .serialized_types import LoadOptions, MeshData, SerializedHeader, TriMeshFlags
from .serialized_writer import SerializedWriter, write_serialized
from .streams import FileStream, MemoryStream, Stream
from .zstream import ZStream

__all__ = [
    "BadMagicError",
    "BoundingBox3f",
    "ContainerIndex",
    "DecodeState",
    "DecompressionError",
    "FileStream",
    "InvalidIndexError",
    "LegacyIndex",
    "LoadOptions",
    "MemoryStream",
    "MeshData",
    "ModernIndex",
    "SerializedError",
    "SerializedHeader",
    "SerializedMesh",
    "SerializedMeshReader",
    "SerializedParser",
    "SerializedWriter",
    "ShapeIndexOutOfRangeError",
    "Stream",
    "Struct",
    "StructField",
    "Transform4f",
    "TriMeshFlags",
    "TruncatedError",
    "UnsupportedOperationError",
    "UnsupportedVersionError",
    "ZStream",
    "build_face_layout",
    "build_vertex_layout",
    "index_for_version",
    "load_serialized",
    "recompute_vertex_normals",
    "write_serialized",
]
