#!/usr/bin/env python3
"""Extract RenderWare DFF models to glTF and TXD dictionaries to PNG/DDS.

Usage:
    python -m rw_extractor.extract_models <input> [-o <output>] [--txd <txd>]

Examples:
    # Convert a model, resolving its textures against a dictionary
    python -m rw_extractor.extract_models infernus.dff --txd infernus.txd -o ./output

    # Export every texture of a dictionary as DDS
    python -m rw_extractor.extract_models infernus.txd --format dds

    # Convert models straight out of an IMG archive
    python -m rw_extractor.extract_models gta3.img --entry "infernus.*" --txd infernus.txd

    # Print a summary without writing anything
    python -m rw_extractor.extract_models ./models/ --info
"""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .gltf_exporter import GLTFExporter
from .img_archive import ImgArchive
from .rw_clump import Clump
from .session import DecodeSession
from .txd_extractor import TxdExtractor

MODEL_SUFFIX = ".dff"
DICTIONARY_SUFFIX = ".txd"
ARCHIVE_SUFFIX = ".img"

# (display name, stem, suffix, source)
Item = Tuple[str, str, str, object]


def _collect_files(input_path: Path) -> List[Item]:
    if input_path.is_file():
        files = [input_path]
    else:
        files = sorted(
            p for p in input_path.glob("**/*")
            if p.suffix.lower() in (MODEL_SUFFIX, DICTIONARY_SUFFIX)
        )
    return [(str(p), p.stem.lower(), p.suffix.lower(), p) for p in files]


def _collect_archive_entries(archive: ImgArchive, pattern: str) -> List[Item]:
    items = []
    for name in archive.list_files(pattern):
        path = Path(name)
        if path.suffix.lower() in (MODEL_SUFFIX, DICTIONARY_SUFFIX):
            items.append((f"{archive.path.name}:{name}", path.stem.lower(), path.suffix.lower(), archive.read(name)))
    return items


def _load_dictionary(session: DecodeSession, txd: str, archive: Optional[ImgArchive]):
    """Bind --txd from disk, or from the archive when no such file exists."""
    if not os.path.exists(txd) and archive is not None and archive.get_entry(txd) is not None:
        session.read_dictionary(archive.read(txd), Path(txd).stem.lower())
    else:
        session.read_dictionary(txd)


def _print_clump_info(name: str, clump: Clump):
    print(f"{name}: {len(clump.frames)} frames, {len(clump.geometries)} geometries, "
          f"{len(clump.atomics)} atomics, {len(clump.lights)} lights")
    for frame in clump.frames:
        indent = "  " * (frame.get_hierarchy_depth() + 1)
        print(f"{indent}{frame.name or '<unnamed>'}")
    for texture in clump.iter_textures():
        print(f"  texture {texture.dictionary}/{texture.name}")


def _print_txd_info(name: str, info: dict):
    print(f"{name}: {info['texture_count']} textures")
    for tex in info["textures"]:
        print(f"  {tex['name']}: {tex['width']}x{tex['height']} {tex['format']} ({tex['mip_count']} mips)")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Extract RenderWare DFF models to glTF and TXD textures to PNG/DDS"
    )
    parser.add_argument(
        "input",
        help="Input .dff/.txd file, directory, or .img archive",
    )
    parser.add_argument(
        "-o", "--output",
        default="./output",
        help="Output directory (default: ./output)",
    )
    parser.add_argument(
        "--txd",
        help="Texture dictionary to resolve model textures against",
    )
    parser.add_argument(
        "--entry",
        default="*",
        help="Glob pattern selecting .img archive entries (default: *)",
    )
    parser.add_argument(
        "--format",
        choices=["png", "dds"],
        default="png",
        help="Texture output format (default: png)",
    )
    parser.add_argument(
        "--info",
        action="store_true",
        help="Print a summary only",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output (debug logging)",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Input not found: {args.input}", file=sys.stderr)
        return 1

    archive = None
    try:
        if input_path.is_file() and input_path.suffix.lower() == ARCHIVE_SUFFIX:
            archive = ImgArchive(input_path)
            archive.open()
            items = _collect_archive_entries(archive, args.entry)
        else:
            items = _collect_files(input_path)

        if not items:
            print(f"No DFF/TXD files found in {input_path}", file=sys.stderr)
            return 1

        session = DecodeSession()
        if args.txd:
            _load_dictionary(session, args.txd, archive)
    except (ValueError, OSError) as e:
        print(f"Failed: {args.input} - {e}", file=sys.stderr)
        return 1
    finally:
        if archive is not None:
            archive.close()

    if not args.info:
        os.makedirs(args.output, exist_ok=True)

    success_count = 0
    fail_count = 0

    for name, stem, suffix, source in items:
        try:
            if suffix == DICTIONARY_SUFFIX:
                extractor = TxdExtractor(source, stem)
                if args.info:
                    _print_txd_info(name, extractor.get_info())
                else:
                    written = extractor.export_all(Path(args.output) / stem, args.format)
                    if args.verbose:
                        print(f"Exported: {name} -> {len(written)} textures")
            else:
                clump = session.read_clump(source)
                if args.info:
                    _print_clump_info(name, clump)
                else:
                    output_file = Path(args.output) / f"{stem}.glb"
                    GLTFExporter(clump).export(output_file)
                    if args.verbose:
                        print(f"Exported: {name} -> {output_file}")
            success_count += 1
        except (ValueError, OSError) as e:
            print(f"Failed: {name} - {e}", file=sys.stderr)
            fail_count += 1

    total = success_count + fail_count
    if not args.info:
        print(f"\nExtracted {success_count}/{total} files to {args.output}")

    return 0 if fail_count == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
