#!/usr/bin/env python3
"""Extract meshes from .serialized archives to glTF format.

Usage:
    python -m serialized_extractor.extract_meshes <input> [-o <output>] [--shape-index N | --all]

Examples:
    # Extract the first mesh of an archive
    python -m serialized_extractor.extract_meshes scene.serialized -o ./output

    # Extract every sub-mesh of every archive in a directory
    python -m serialized_extractor.extract_meshes ./meshes/ -o ./output --all

    # Show what an archive contains
    python -m serialized_extractor.extract_meshes scene.serialized --list
"""
import argparse
import logging
import os
import sys
from pathlib import Path

from .container_index import ContainerIndex
from .errors import SerializedError
from .geometry import Transform4f
from .gltf_exporter import GLTFExporter
from .serialized_mesh import SerializedMeshReader
from .serialized_types import LoadOptions
from .streams import FileStream


def shape_count(path: Path) -> int:
    with FileStream(path) as stream:
        return ContainerIndex.count(stream)


def build_options(args, shape_index: int) -> LoadOptions:
    return LoadOptions(
        shape_index=shape_index,
        to_world=Transform4f.scale(args.scale) if args.scale != 1.0 else None,
        disable_vertex_normals=args.no_normals,
        face_normals=args.face_normals,
        working_precision="double" if args.double else "single",
    )


def list_archive(path: Path, args) -> int:
    count = shape_count(path)
    print(f"{path}: {count} mesh(es)")
    for index in range(count):
        mesh = SerializedMeshReader(path, build_options(args, index)).read()
        print(f"  [{index}] {mesh.name} ({mesh.vertex_count:,} vertices, {mesh.face_count:,} faces)")
    return count


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Extract meshes from .serialized archives to glTF format"
    )
    parser.add_argument(
        "input",
        help="Input .serialized file or directory containing .serialized files",
    )
    parser.add_argument(
        "-o", "--output",
        default="./output",
        help="Output directory for glTF files (default: ./output)",
    )
    selection = parser.add_mutually_exclusive_group()
    selection.add_argument(
        "--shape-index",
        type=int,
        default=0,
        help="Sub-mesh to extract from each archive (default: 0)",
    )
    selection.add_argument(
        "--all",
        action="store_true",
        help="Extract every sub-mesh of each archive",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List sub-meshes instead of extracting",
    )
    parser.add_argument(
        "--no-normals",
        action="store_true",
        help="Drop vertex normals",
    )
    parser.add_argument(
        "--face-normals",
        action="store_true",
        help="Use flat face normals (implies --no-normals)",
    )
    parser.add_argument(
        "--double",
        action="store_true",
        help="Decode into double precision buffers",
    )
    parser.add_argument(
        "--scale",
        type=float,
        default=1.0,
        help="Uniform scale applied to every mesh (default: 1.0)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    # Collect input files
    input_path = Path(args.input)
    if input_path.is_file():
        files = [input_path]
    elif input_path.is_dir():
        files = sorted(input_path.glob("**/*.serialized"))
        if not files:
            print(f"No .serialized files found in {input_path}", file=sys.stderr)
            return 1
    else:
        print(f"Input not found: {args.input}", file=sys.stderr)
        return 1

    if args.list:
        fail_count = 0
        for path in files:
            try:
                list_archive(path, args)
            except (OSError, SerializedError) as e:
                print(f"Failed: {path} - {e}", file=sys.stderr)
                fail_count += 1
        return 0 if fail_count == 0 else 1

    os.makedirs(args.output, exist_ok=True)

    success_count = 0
    fail_count = 0

    for path in files:
        try:
            if args.all:
                jobs = [(index, f"{path.stem}_{index}.glb") for index in range(shape_count(path))]
            elif args.shape_index:
                jobs = [(args.shape_index, f"{path.stem}_{args.shape_index}.glb")]
            else:
                jobs = [(0, f"{path.stem}.glb")]
        except (OSError, SerializedError) as e:
            print(f"Failed: {path} - {e}", file=sys.stderr)
            fail_count += 1
            continue

        for shape_index, output_name in jobs:
            output_file = Path(args.output) / output_name
            try:
                exporter = GLTFExporter(path, build_options(args, shape_index))
                exporter.export(str(output_file))
                if args.verbose:
                    print(f"Exported: {path}@{shape_index} -> {output_file}")
                success_count += 1
            except (OSError, ValueError) as e:
                print(f"Failed: {path}@{shape_index} - {e}", file=sys.stderr)
                fail_count += 1

    # Summary
    total = success_count + fail_count
    print(f"\nExtracted {success_count}/{total} meshes to {args.output}")

    return 0 if fail_count == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
