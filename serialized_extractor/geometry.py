"""Transforms, bounding boxes and normal recomputation for decoded meshes."""
from dataclasses import dataclass, field
from typing import Iterable, Union

import numpy as np


class Transform4f:
    """Affine/projective 4x4 transform with a cached inverse transpose."""

    def __init__(self, matrix=None):
        if matrix is None:
            matrix = np.identity(4)
        self.matrix = np.array(matrix, dtype=np.float64).reshape(4, 4)
        self._inverse_transpose = None

    @property
    def inverse_transpose(self) -> np.ndarray:
        """Inverse transpose, computed on first use.

        Singular transforms (e.g. a flattening scale) fall back to the
        pseudo-inverse.
        """
        if self._inverse_transpose is None:
            try:
                inverse = np.linalg.inv(self.matrix)
            except np.linalg.LinAlgError:
                inverse = np.linalg.pinv(self.matrix)
            self._inverse_transpose = inverse.T
        return self._inverse_transpose

    @classmethod
    def identity(cls) -> "Transform4f":
        return cls()

    @classmethod
    def scale(cls, factor: Union[float, Iterable[float]]) -> "Transform4f":
        factors = np.broadcast_to(np.asarray(factor, dtype=np.float64), (3,))
        return cls(np.diag([factors[0], factors[1], factors[2], 1.0]))

    @classmethod
    def translate(cls, offset: Iterable[float]) -> "Transform4f":
        matrix = np.identity(4)
        matrix[:3, 3] = list(offset)
        return cls(matrix)

    def __matmul__(self, other: "Transform4f") -> "Transform4f":
        return Transform4f(self.matrix @ other.matrix)

    def is_identity(self) -> bool:
        return bool(np.array_equal(self.matrix, np.identity(4)))

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """Apply to an (N, 3) array of positions, dividing by w."""
        points = np.asarray(points, dtype=np.float64)
        result = points @ self.matrix[:3, :3].T + self.matrix[:3, 3]
        w = points @ self.matrix[3, :3] + self.matrix[3, 3]
        if not np.all(w == 1.0):
            result = result / w[:, None]
        return result

    def transform_normals(self, normals: np.ndarray) -> np.ndarray:
        """Apply to an (N, 3) array of normals and renormalize."""
        normals = np.asarray(normals, dtype=np.float64)
        result = normals @ self.inverse_transpose[:3, :3].T
        return normalize(result)

    def __repr__(self):
        return f"Transform4f({self.matrix.tolist()})"


def as_transform(value) -> Transform4f:
    """Coerce None, a 4x4 matrix or a Transform4f into a Transform4f."""
    if value is None:
        return Transform4f()
    if isinstance(value, Transform4f):
        return value
    return Transform4f(value)


def normalize(vectors: np.ndarray) -> np.ndarray:
    """Scale each row to unit length; zero rows stay zero."""
    lengths = np.linalg.norm(vectors, axis=1, keepdims=True)
    with np.errstate(invalid="ignore", divide="ignore"):
        result = vectors / lengths
    return np.where(lengths > 0, result, 0.0)


@dataclass
class BoundingBox3f:
    """Axis-aligned box. A fresh box is empty (min > max)."""

    min: np.ndarray = field(default_factory=lambda: np.full(3, np.inf))
    max: np.ndarray = field(default_factory=lambda: np.full(3, -np.inf))

    def expand(self, points: np.ndarray):
        """Grow the box to contain a point or an (N, 3) array of points."""
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(points) == 0:
            return
        self.min = np.minimum(self.min, points.min(axis=0))
        self.max = np.maximum(self.max, points.max(axis=0))

    def valid(self) -> bool:
        return bool(np.all(self.min <= self.max))

    def center(self) -> np.ndarray:
        return (self.min + self.max) * 0.5

    def extents(self) -> np.ndarray:
        return self.max - self.min


def recompute_vertex_normals(positions: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """Angle-weighted vertex normals.

    Each face contributes its unit normal to its three corners, weighted by
    the corner angle. Degenerate faces contribute nothing. Vertices left
    without a contribution get (1, 0, 0).

    Args:
        positions: (N, 3) vertex positions
        faces: (F, 3) vertex indices

    Returns:
        (N, 3) float64 array of unit normals
    """
    positions = np.asarray(positions, dtype=np.float64)
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    normals = np.zeros_like(positions)

    if len(faces):
        corners = positions[faces]  # (F, 3, 3)
        face_normals = normalize(np.cross(corners[:, 1] - corners[:, 0],
                                          corners[:, 2] - corners[:, 0]))
        for i in range(3):
            d0 = normalize(corners[:, (i + 1) % 3] - corners[:, i])
            d1 = normalize(corners[:, (i + 2) % 3] - corners[:, i])
            cos_angle = np.clip(np.einsum("ij,ij->i", d0, d1), -1.0, 1.0)
            angle = np.arccos(cos_angle)
            np.add.at(normals, faces[:, i], face_normals * angle[:, None])

    lengths = np.linalg.norm(normals, axis=1)
    normals = normalize(normals)
    normals[~(lengths > 0)] = (1.0, 0.0, 0.0)
    return normals
