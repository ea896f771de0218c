"""Readers for the attribute and index arrays of a sub-mesh.

Floating-point arrays are stored in the file's precision and converted to
the working precision of the vertex buffer on the way in. Narrowing is
silent: values outside the float32 range become inf.

Every call consumes exactly ``count * dim * width`` bytes, whether the data
is kept or skipped, so the compressed cursor always lands on the next field.
"""
import numpy as np

from .mesh_schema import Struct
from .streams import Stream


def element_dtype(double_precision: bool) -> np.dtype:
    """On-disk floating-point type."""
    return np.dtype("<f8") if double_precision else np.dtype("<f4")


def array_size(double_precision: bool, count: int, dim: int) -> int:
    return count * dim * element_dtype(double_precision).itemsize


def field_view(target: np.ndarray, layout: Struct, field_name: str, dim: int) -> np.ndarray:
    """(len(target), dim) view over ``dim`` consecutive fields of a buffer.

    Writes through the view land in ``target``.
    """
    start = layout.get_field(field_name)
    first = layout.fields.index(start)
    run = layout.fields[first:first + dim]
    if len(run) != dim or any(
        f.dtype != start.dtype or f.offset != start.offset + i * start.size
        for i, f in enumerate(run)
    ):
        raise ValueError(
            f"Fields from {field_name!r} do not form {dim} contiguous slots of one type"
        )
    if target.dtype.itemsize != layout.size:
        raise ValueError("Target buffer does not match the layout")
    if len(target) == 0:
        return np.zeros((0, dim), dtype=start.dtype)
    return np.ndarray(
        shape=(len(target), dim),
        dtype=start.dtype,
        buffer=target.view(np.uint8),
        offset=start.offset,
        strides=(layout.size, start.size),
    )


def read_values(stream: Stream, double_precision: bool, count: int, dim: int) -> np.ndarray:
    """Read ``count`` vectors in file precision as a (count, dim) array."""
    raw = stream.read_exact(array_size(double_precision, count, dim))
    return np.frombuffer(raw, dtype=element_dtype(double_precision)).reshape(count, dim)


def store(values: np.ndarray, layout: Struct, field_name: str, target: np.ndarray):
    """Copy already decoded vectors into a vertex buffer."""
    count, dim = values.shape
    if count == 0:
        return
    if len(target) < count:
        raise ValueError(f"Target buffer holds {len(target)} records, need {count}")
    field_view(target, layout, field_name, dim)[:count] = values


def read_into(stream: Stream, double_precision: bool, count: int, dim: int,
              layout: Struct, field_name: str, target: np.ndarray):
    """Read ``count`` vectors of ``dim`` elements into a vertex buffer.

    Args:
        stream: Stream positioned at the start of the array
        double_precision: Whether the file stores 8-byte elements
        count: Number of vectors
        dim: Elements per vector
        layout: Layout of ``target``
        field_name: First of the ``dim`` consecutive fields to fill
        target: Contiguous buffer of at least ``count`` records of ``layout``
    """
    store(read_values(stream, double_precision, count, dim), layout, field_name, target)


def skip(stream: Stream, double_precision: bool, count: int, dim: int):
    """Consume an array without storing it."""
    stream.skip(array_size(double_precision, count, dim))


def read_faces(stream: Stream, face_count: int, layout: Struct) -> np.ndarray:
    """Read ``face_count`` index triples in one bulk copy."""
    raw = stream.read_exact(face_count * layout.size)
    if face_count == 0:
        return np.zeros(0, dtype=layout.dtype)
    return np.frombuffer(raw, dtype=layout.dtype).copy()
