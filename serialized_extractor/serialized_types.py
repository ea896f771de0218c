"""Type definitions for the serialized mesh format."""
from dataclasses import dataclass
from enum import IntFlag
from typing import Optional

import numpy as np

FILEFORMAT_HEADER = 0x041C
FILEFORMAT_VERSION_V3 = 0x0003
FILEFORMAT_VERSION_V4 = 0x0004
SUPPORTED_VERSIONS = (FILEFORMAT_VERSION_V3, FILEFORMAT_VERSION_V4)

# Largest vertex count addressable with 32-bit indices
MAX_U32_INDEX = 0xFFFFFFFF

WORKING_PRECISIONS = {
    "single": np.dtype(np.float32),
    "double": np.dtype(np.float64),
}


class TriMeshFlags(IntFlag):
    """Per-sub-mesh capability flags."""
    HAS_NORMALS = 0x0001
    HAS_TEXCOORDS = 0x0002
    HAS_TANGENTS = 0x0004  # unused
    HAS_COLORS = 0x0008
    FACE_NORMALS = 0x0010
    SINGLE_PRECISION = 0x1000
    DOUBLE_PRECISION = 0x2000

    @property
    def double_precision(self) -> bool:
        return bool(self & TriMeshFlags.DOUBLE_PRECISION)

    @property
    def precision_width(self) -> int:
        """On-disk width in bytes of every floating-point element."""
        return 8 if self.double_precision else 4


@dataclass
class SerializedHeader:
    """Uncompressed header preceding every sub-mesh record."""

    magic: int
    version: int


@dataclass
class MeshData:
    """In-memory triangle mesh handed to the encoder.

    Attribute arrays are ``(vertex_count, k)`` shaped; ``faces`` is
    ``(face_count, 3)``. Optional attributes are omitted from the record
    when left as None.
    """

    positions: np.ndarray
    faces: np.ndarray
    normals: Optional[np.ndarray] = None
    texcoords: Optional[np.ndarray] = None
    colors: Optional[np.ndarray] = None
    name: str = ""
    face_normals: bool = False

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def face_count(self) -> int:
        return int(np.asarray(self.faces).size // 3)


@dataclass
class LoadOptions:
    """Caller-supplied settings for decoding one sub-mesh.

    Args:
        shape_index: Which sub-mesh of a multi-mesh archive to load
        to_world: Object-to-world transform (a ``Transform4f`` or 4x4 matrix),
            None for identity
        disable_vertex_normals: Drop stored normals and skip recomputation
        face_normals: Mark the mesh as flat shaded
        working_precision: "single" or "double" for the in-memory buffers
    """

    shape_index: int = 0
    to_world: Optional[object] = None
    disable_vertex_normals: bool = False
    face_normals: bool = False
    working_precision: str = "single"

    def __post_init__(self):
        if self.working_precision not in WORKING_PRECISIONS:
            raise ValueError(
                f"Unknown working precision: {self.working_precision!r}, "
                f"expected one of {sorted(WORKING_PRECISIONS)}"
            )

    @property
    def normals_disabled(self) -> bool:
        """Face-normal shading implies that no vertex normals are kept."""
        return self.disable_vertex_normals or self.face_normals

    @property
    def working_dtype(self) -> np.dtype:
        return WORKING_PRECISIONS[self.working_precision]
