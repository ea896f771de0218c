"""glTF exporter for decoded serialized meshes."""
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple, Union

import numpy as np
from pygltflib import (
    GLTF2,
    Accessor,
    Asset,
    Attributes,
    Buffer,
    BufferView,
    Mesh,
    Node,
    Primitive,
    Scene,
)

from .serialized_mesh import SerializedMesh, SerializedMeshReader
from .serialized_types import LoadOptions

ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963
FLOAT = 5126
UNSIGNED_INT = 5125
TRIANGLES = 4


class GLTFExporter:
    """Exports a serialized sub-mesh to glTF/GLB format."""

    def __init__(self, source: Union[SerializedMesh, str, Path, BinaryIO, bytes],
                 options: Optional[LoadOptions] = None):
        """Initialize exporter with a decoded mesh or an archive to decode.

        Args:
            source: SerializedMesh, or anything SerializedMeshReader accepts
            options: Decode settings used when ``source`` is an archive
        """
        self.source = source
        self.options = options or LoadOptions()
        self._mesh: Optional[SerializedMesh] = None

    @property
    def mesh(self) -> SerializedMesh:
        if self._mesh is None:
            if isinstance(self.source, SerializedMesh):
                self._mesh = self.source
            else:
                self._mesh = SerializedMeshReader(self.source, self.options).read()
        return self._mesh

    def _compute_bounds(self, mesh: SerializedMesh) -> Tuple[List[float], List[float]]:
        """Min/max bounds for the position accessor."""
        if not mesh.bbox.valid():
            return [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]
        return mesh.bbox.min.tolist(), mesh.bbox.max.tolist()

    def export(self, output_path: str, include_normals: bool = True,
               include_texcoords: bool = True, include_colors: bool = True):
        """Export the mesh to a glTF/GLB file.

        Args:
            output_path: Path for output .glb file
            include_normals: Whether to write vertex normals
            include_texcoords: Whether to write texture coordinates
            include_colors: Whether to write vertex colors

        Raises:
            ValueError: If the mesh has no vertices or faces, or needs
                64-bit indices
        """
        mesh = self.mesh
        if mesh.vertex_count == 0 or mesh.face_count == 0:
            raise ValueError("No mesh data found in serialized file")
        if mesh.face_struct.get_field("i0").size > 4:
            raise ValueError(
                f"{mesh.name}: 64-bit indices cannot be stored in glTF ({mesh.vertex_count:,} vertices)"
            )

        gltf = GLTF2()
        gltf.asset = Asset(version="2.0", generator="Serialized Mesh Extractor")

        streams = [("POSITION", mesh.positions(), "VEC3")]
        if include_normals and mesh.has_vertex_normals:
            streams.append(("NORMAL", mesh.normals(), "VEC3"))
        if include_texcoords and mesh.has_vertex_texcoords:
            streams.append(("TEXCOORD_0", mesh.texcoords(), "VEC2"))
        if include_colors and mesh.has_vertex_colors:
            streams.append(("COLOR_0", mesh.colors(), "VEC3"))

        buffer_data = b""
        attributes = {}
        for semantic, values, accessor_type in streams:
            data = np.ascontiguousarray(values, dtype="<f4").tobytes()
            gltf.bufferViews.append(
                BufferView(
                    buffer=0,
                    byteOffset=len(buffer_data),
                    byteLength=len(data),
                    target=ARRAY_BUFFER,
                )
            )
            accessor = Accessor(
                bufferView=len(gltf.bufferViews) - 1,
                componentType=FLOAT,
                count=mesh.vertex_count,
                type=accessor_type,
            )
            if semantic == "POSITION":
                accessor.min, accessor.max = self._compute_bounds(mesh)
            gltf.accessors.append(accessor)
            attributes[semantic] = len(gltf.accessors) - 1
            buffer_data += data

        # Pack index data
        index_data = np.ascontiguousarray(mesh.indices(), dtype="<u4").tobytes()
        gltf.bufferViews.append(
            BufferView(
                buffer=0,
                byteOffset=len(buffer_data),
                byteLength=len(index_data),
                target=ELEMENT_ARRAY_BUFFER,
            )
        )
        gltf.accessors.append(
            Accessor(
                bufferView=len(gltf.bufferViews) - 1,
                componentType=UNSIGNED_INT,
                count=mesh.face_count * 3,
                type="SCALAR",
            )
        )
        buffer_data += index_data

        gltf.buffers = [Buffer(byteLength=len(buffer_data))]
        gltf.meshes = [
            Mesh(
                name=mesh.name,
                primitives=[
                    Primitive(
                        attributes=Attributes(**attributes),
                        indices=len(gltf.accessors) - 1,
                        mode=TRIANGLES,
                    )
                ],
            )
        ]
        gltf.nodes = [Node(mesh=0, name=mesh.name)]
        gltf.scenes = [Scene(nodes=[0])]
        gltf.scene = 0

        gltf.set_binary_blob(buffer_data)
        gltf.save(output_path)
