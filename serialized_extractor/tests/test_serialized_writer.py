"""Tests for the archive writer."""
import io
import struct
import zlib

import numpy as np
import pytest

from serialized_extractor.container_index import ContainerIndex
from serialized_extractor.serialized_mesh import load_serialized
from serialized_extractor.serialized_types import MeshData, TriMeshFlags
from serialized_extractor.serialized_writer import SerializedWriter, write_serialized
from serialized_extractor.streams import MemoryStream


def create_mesh_data(vertex_count=50, normals=False, texcoords=False, colors=False, seed=0):
    """Create a random triangle soup with optional attributes."""
    rng = np.random.default_rng(seed)
    positions = rng.uniform(-10.0, 10.0, size=(vertex_count, 3))
    faces = rng.integers(0, vertex_count, size=(vertex_count // 2, 3))
    n = rng.normal(size=(vertex_count, 3))
    n /= np.linalg.norm(n, axis=1, keepdims=True)
    return MeshData(
        positions=positions,
        faces=faces,
        normals=n if normals else None,
        texcoords=rng.uniform(0.0, 1.0, size=(vertex_count, 2)) if texcoords else None,
        colors=rng.uniform(0.0, 1.0, size=(vertex_count, 3)) if colors else None,
        name=f"mesh_{seed}",
    )


def encode(meshes, version=4, double_precision=False) -> bytes:
    stream = MemoryStream()
    with SerializedWriter(stream, version=version, double_precision=double_precision) as writer:
        for mesh in meshes:
            writer.write_mesh(mesh)
    return stream.getvalue()


def test_record_layout():
    """The first record should start with the header and a zlib region."""
    data = encode([create_mesh_data(3)])

    assert struct.unpack("<HH", data[:4]) == (0x041C, 4)
    payload = zlib.decompressobj().decompress(data[4:])
    flags = struct.unpack("<I", payload[:4])[0]
    assert flags == TriMeshFlags.SINGLE_PRECISION
    assert payload[4:11] == b"mesh_0\x00"
    assert struct.unpack("<QQ", payload[11:27]) == (3, 1)


def test_dictionary():
    """The archive should end with the record offsets and their count."""
    data = encode([create_mesh_data(seed=i) for i in range(3)])

    assert ContainerIndex.count(MemoryStream(data)) == 3
    offsets = struct.unpack("<3Q", data[-28:-4])
    assert offsets[0] == 0
    assert offsets[0] < offsets[1] < offsets[2]


def test_legacy_dictionary():
    """Version 3 archives should use 32-bit offsets and no name."""
    data = encode([create_mesh_data(seed=i) for i in range(2)], version=3)

    offsets = struct.unpack("<2I", data[-12:-4])
    assert offsets[0] == 0
    assert struct.unpack("<HH", data[offsets[1]:offsets[1] + 4]) == (0x041C, 3)


@pytest.mark.parametrize("normals,texcoords,colors,double_precision", [
    (False, False, False, False),
    (True, False, False, True),
    (False, True, True, False),
    (True, True, True, True),
])
def test_roundtrip(normals, texcoords, colors, double_precision):
    """Decoding should reproduce counts and attributes within float32 error."""
    source = create_mesh_data(normals=normals, texcoords=texcoords, colors=colors)
    mesh = load_serialized(encode([source], double_precision=double_precision))

    assert mesh.vertex_count == source.vertex_count
    assert mesh.face_count == source.face_count
    assert mesh.indices().tolist() == source.faces.tolist()

    eps = np.finfo(np.float32).eps
    assert np.allclose(mesh.positions(), source.positions, rtol=eps, atol=10 * eps)
    if normals:
        assert np.allclose(mesh.normals(), source.normals, atol=1e-6)
    if texcoords:
        assert np.allclose(mesh.texcoords(), source.texcoords, rtol=eps, atol=eps)
    if colors:
        assert np.allclose(mesh.colors(), source.colors, rtol=eps, atol=eps)


def test_double_roundtrip_is_exact():
    """Double files decoded in double precision should be bit exact."""
    source = create_mesh_data(texcoords=True)
    mesh = load_serialized(encode([source], double_precision=True), working_precision="double")

    assert np.array_equal(mesh.positions(), source.positions)
    assert np.array_equal(mesh.texcoords(), source.texcoords)


@pytest.mark.parametrize("version", [3, 4])
def test_roundtrip_every_shape(version):
    """Each sub-mesh of a multi-mesh archive should decode by index."""
    sources = [create_mesh_data(vertex_count=10 + i, seed=i) for i in range(4)]
    data = encode(sources, version=version)

    for shape_index, source in enumerate(sources):
        mesh = load_serialized(data, shape_index=shape_index)
        assert mesh.vertex_count == source.vertex_count
        assert mesh.indices().tolist() == source.faces.tolist()
        if version == 4:
            assert mesh.name == source.name


def test_face_normals_flag():
    """Flat-shaded meshes should carry the face-normal flag."""
    source = create_mesh_data(3)
    source.face_normals = True
    assert load_serialized(encode([source])).face_normals


def test_attribute_shape_mismatch():
    """Attributes must have one row per vertex."""
    source = create_mesh_data(4)
    source.texcoords = np.zeros((3, 2))
    with pytest.raises(ValueError, match="texcoords"):
        encode([source])


def test_write_serialized_to_path(tmp_path):
    """Should write a complete archive to disk."""
    path = tmp_path / "scene.serialized"
    write_serialized(path, [create_mesh_data(seed=0), create_mesh_data(seed=1)])

    mesh = load_serialized(path, shape_index=1)
    assert mesh.name == "mesh_1"


def test_write_serialized_to_handle():
    """Should write to a caller-owned binary handle."""
    handle = io.BytesIO()
    write_serialized(handle, [create_mesh_data(3)], version=3)

    assert not handle.closed
    assert load_serialized(handle.getvalue()).vertex_count == 3


def test_write_after_close():
    """Closed writers should refuse new records."""
    writer = SerializedWriter(MemoryStream())
    writer.close()
    with pytest.raises(ValueError):
        writer.write_mesh(create_mesh_data(3))


def test_writer_requires_stream_start():
    """Archives written after existing data would carry unusable offsets."""
    stream = MemoryStream(b"prefix")
    stream.seek(6)

    with pytest.raises(ValueError, match="offset 0"):
        SerializedWriter(stream)
