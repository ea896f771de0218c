"""Vertex and face record layouts.

A ``Struct`` is an ordered list of named scalar fields packed back to back.
It maps directly onto a numpy structured dtype, so the decoded buffers can
be addressed by field name (``vertices["nx"]``) as well as by byte offset.
"""
from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np

from .serialized_types import MAX_U32_INDEX, TriMeshFlags

POSITION_FIELDS = ("x", "y", "z")
NORMAL_FIELDS = ("nx", "ny", "nz")
TEXCOORD_FIELDS = ("u", "v")
COLOR_FIELDS = ("r", "g", "b")
FACE_FIELDS = ("i0", "i1", "i2")


@dataclass
class StructField:
    """Single scalar field of a record."""

    name: str
    dtype: np.dtype
    offset: int

    @property
    def size(self) -> int:
        return self.dtype.itemsize


@dataclass
class Struct:
    """Ordered, contiguous record layout."""

    fields: List[StructField] = field(default_factory=list)

    def append(self, name: str, dtype) -> StructField:
        entry = StructField(name=name, dtype=np.dtype(dtype), offset=self.size)
        self.fields.append(entry)
        return entry

    @property
    def size(self) -> int:
        """Record stride in bytes."""
        if not self.fields:
            return 0
        last = self.fields[-1]
        return last.offset + last.size

    def get_field(self, name: str) -> StructField:
        for entry in self.fields:
            if entry.name == name:
                return entry
        raise KeyError(f"Struct has no field {name!r}")

    def offset(self, name: str) -> int:
        return self.get_field(name).offset

    def has_field(self, name: str) -> bool:
        return any(entry.name == name for entry in self.fields)

    def names(self) -> List[str]:
        return [entry.name for entry in self.fields]

    def offsets(self) -> Dict[str, int]:
        return {entry.name: entry.offset for entry in self.fields}

    @property
    def dtype(self) -> np.dtype:
        """Equivalent numpy structured dtype."""
        return np.dtype({
            "names": self.names(),
            "formats": [entry.dtype for entry in self.fields],
            "offsets": [entry.offset for entry in self.fields],
            "itemsize": self.size,
        })


def build_vertex_layout(flags: TriMeshFlags, normals_disabled: bool,
                        working_dtype=np.float32) -> Struct:
    """Build the in-memory vertex layout for a sub-mesh.

    Normal slots are reserved whenever normals are not disabled, even if the
    file stores none; they are filled by recomputation after loading.

    Args:
        flags: Capability flags read from the sub-mesh
        normals_disabled: Drop vertex normals from the layout
        working_dtype: Floating-point type of every vertex field

    Returns:
        Struct beginning with x, y, z
    """
    layout = Struct()
    names = list(POSITION_FIELDS)
    if not normals_disabled:
        names += NORMAL_FIELDS
    if flags & TriMeshFlags.HAS_TEXCOORDS:
        names += TEXCOORD_FIELDS
    if flags & TriMeshFlags.HAS_COLORS:
        names += COLOR_FIELDS
    for name in names:
        layout.append(name, working_dtype)
    return layout


def index_width_for(vertex_count: int) -> int:
    """Bytes per face index needed to address ``vertex_count`` vertices."""
    return 4 if vertex_count <= MAX_U32_INDEX else 8


def build_face_layout(index_width: int) -> Struct:
    """Build the i0, i1, i2 face layout with little-endian unsigned indices."""
    if index_width not in (4, 8):
        raise ValueError(f"Unsupported index width: {index_width}")
    index_dtype = np.dtype("<u4") if index_width == 4 else np.dtype("<u8")
    layout = Struct()
    for name in FACE_FIELDS:
        layout.append(name, index_dtype)
    return layout
