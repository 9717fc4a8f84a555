"""Exporter for decoded RenderWare texture dictionaries.

Writes each texture of a .txd as DDS (raw DXT blocks, full mip chain) or
PNG (base level decompressed to RGBA).
"""
import logging
import struct
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from PIL import Image

from .errors import RwError
from .rw_texture import TexDictionary, TexLevel, Texture, TextureData
from .session import DecodeSession

logger = logging.getLogger(__name__)


class TxdExtractor:
    """Extracts the textures of a .txd file to standard formats."""

    DDS_MAGIC = b"DDS "
    DDS_HEADER_SIZE = 124
    MAX_PNG_DIMENSION = 4096

    def __init__(self, source: Union[str, Path, BinaryIO, bytes], name: Optional[str] = None):
        """Initialize extractor.

        Args:
            source: .txd path, binary file object or raw bytes
            name: Dictionary name; defaults to the file stem for paths
        """
        self.source = source
        self.name = name
        self.dictionary: Optional[TexDictionary] = None

    def load(self) -> bool:
        """Load and decode the dictionary.

        Returns:
            True if successful, False otherwise
        """
        try:
            self.dictionary = DecodeSession().read_dictionary(self.source, self.name, bind=False)
            return True
        except (RwError, OSError) as e:
            logger.error(f"Failed to load TXD: {e}")
            return False

    def _require_dictionary(self) -> TexDictionary:
        if self.dictionary is None and not self.load():
            raise ValueError("Texture dictionary could not be loaded")
        return self.dictionary

    def get_info(self) -> dict:
        """Get dictionary information.

        Returns:
            Dictionary with the dictionary name and per-texture metadata
        """
        dictionary = self._require_dictionary()
        return {
            "name": dictionary.name,
            "texture_count": len(dictionary),
            "textures": [
                {
                    "name": texture.name,
                    "mask": texture.mask,
                    "width": texture.raster.width,
                    "height": texture.raster.height,
                    "format": texture.raster.format.name,
                    "mip_count": len(texture.raster.levels),
                    "has_alpha": texture.has_alpha,
                    "filter": texture.filter.name,
                    "wrap": (texture.wrap_u.name, texture.wrap_v.name),
                }
                for texture in dictionary
            ],
        }

    def export_all(self, output_dir: Union[str, Path], fmt: str = "png") -> List[Path]:
        """Export every texture of the dictionary.

        Args:
            output_dir: Directory for the exported files (created if missing)
            fmt: "png" or "dds"

        Returns:
            Paths of the files written
        """
        if fmt not in ("png", "dds"):
            raise ValueError(f"Unknown texture format: {fmt}")

        dictionary = self._require_dictionary()
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        written = []
        for texture in dictionary:
            if not is_safe_filename(texture.name):
                logger.warning(f"Skipping texture with unsafe name: {texture.name!r}")
                continue
            output_file = output_dir / f"{texture.name}.{fmt}"
            if fmt == "png":
                success = self.to_png(texture, output_file)
            else:
                success = self.to_dds(texture, output_file)
            if success:
                written.append(output_file)
        return written

    def to_dds(self, texture: Texture, output_path: Union[str, Path]) -> bool:
        """Export a texture as DDS with its full mip chain.

        Returns:
            True if successful
        """
        try:
            with open(output_path, "wb") as f:
                f.write(self.DDS_MAGIC)
                f.write(self.build_dds_header(texture))
                for level in texture.raster.levels:
                    f.write(level.data)
            return True
        except OSError as e:
            logger.error(f"Failed to write DDS for '{texture.name}': {e}")
            return False

    def build_dds_header(self, texture: Texture) -> bytes:
        """Build the DDS file header (124 bytes, magic not included)."""
        raster = texture.raster
        mip_count = len(raster.levels)

        flags = 0x1 | 0x2 | 0x4 | 0x1000 | 0x80000  # CAPS | HEIGHT | WIDTH | PIXELFORMAT | LINEARSIZE
        if mip_count > 1:
            flags |= 0x20000  # MIPMAPCOUNT

        linear_size = calc_level_size(raster.width, raster.height, raster.format)

        fourcc = struct.unpack("<I", raster.format.fourcc)[0]
        pixel_format = struct.pack("<IIIIIIII", 32, 0x4, fourcc, 0, 0, 0, 0, 0)

        caps = 0x1000  # TEXTURE
        if mip_count > 1:
            caps |= 0x8 | 0x400000  # COMPLEX | MIPMAP

        header = struct.pack(
            "<IIIIIII",
            self.DDS_HEADER_SIZE, flags, raster.height, raster.width,
            linear_size, 0, mip_count,
        )
        header += b"\x00" * 44
        header += pixel_format
        header += struct.pack("<IIIII", caps, 0, 0, 0, 0)
        return header

    def to_png(self, texture: Texture, output_path: Union[str, Path]) -> bool:
        """Export a texture's base level as PNG.

        Returns:
            True if successful
        """
        level = texture.raster.base
        if level.width > self.MAX_PNG_DIMENSION or level.height > self.MAX_PNG_DIMENSION:
            logger.error(
                f"Refusing PNG for '{texture.name}': {level.width}x{level.height} "
                f"exceeds {self.MAX_PNG_DIMENSION}"
            )
            return False
        try:
            rgba = self.decompress_level(level)
            img = Image.frombytes("RGBA", (level.width, level.height), rgba)
            img.save(output_path, "PNG")
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Failed to write PNG for '{texture.name}': {e}")
            return False

    def decompress_level(self, level: TexLevel) -> bytes:
        """Decompress one mip level to RGBA8 pixels, row by row."""
        if level.format in (TextureData.DXT1C, TextureData.DXT1A):
            return self._decompress_blocks(level, 8, self._decode_dxt1_block)
        elif level.format == TextureData.DXT3:
            return self._decompress_blocks(level, 16, self._decode_dxt3_block)
        elif level.format == TextureData.DXT5:
            return self._decompress_blocks(level, 16, self._decode_dxt5_block)
        raise ValueError(f"Cannot decompress format: {level.format}")

    def _decompress_blocks(self, level: TexLevel, block_size: int, decode_block) -> bytes:
        width, height, data = level.width, level.height, level.data
        result = bytearray(width * height * 4)
        blocks_x = (width + 3) // 4
        blocks_y = (height + 3) // 4

        for by in range(blocks_y):
            for bx in range(blocks_x):
                block_offset = (by * blocks_x + bx) * block_size
                if block_offset + block_size > len(data):
                    break
                block = data[block_offset:block_offset + block_size]
                decode_block(block, result, bx * 4, by * 4, width, height)

        return bytes(result)

    def _decode_dxt1_block(self, block: bytes, result: bytearray,
                           start_x: int, start_y: int, width: int, height: int):
        c0, c1, indices = struct.unpack("<HHI", block)
        colors = [_rgb565_to_rgba(c0), _rgb565_to_rgba(c1)]

        if c0 > c1:
            colors.append(_interpolate_color(colors[0], colors[1], 1, 3))
            colors.append(_interpolate_color(colors[0], colors[1], 2, 3))
        else:
            # 3-color block + transparent
            colors.append(_interpolate_color(colors[0], colors[1], 1, 2))
            colors.append((0, 0, 0, 0))

        for y in range(4):
            for x in range(4):
                px, py = start_x + x, start_y + y
                if px < width and py < height:
                    idx = (indices >> ((y * 4 + x) * 2)) & 0x3
                    offset = (py * width + px) * 4
                    result[offset:offset + 4] = bytes(colors[idx])

    def _decode_dxt3_block(self, block: bytes, result: bytearray,
                           start_x: int, start_y: int, width: int, height: int):
        alpha_bits = struct.unpack("<Q", block[0:8])[0]
        colors = _four_colors(block[8:12])
        indices = struct.unpack("<I", block[12:16])[0]

        for y in range(4):
            for x in range(4):
                px, py = start_x + x, start_y + y
                if px < width and py < height:
                    pixel = y * 4 + x
                    r, g, b, _ = colors[(indices >> (pixel * 2)) & 0x3]
                    alpha = ((alpha_bits >> (pixel * 4)) & 0xF) * 17
                    offset = (py * width + px) * 4
                    result[offset:offset + 4] = bytes((r, g, b, alpha))

    def _decode_dxt5_block(self, block: bytes, result: bytearray,
                           start_x: int, start_y: int, width: int, height: int):
        alpha0, alpha1 = block[0], block[1]

        alphas = [alpha0, alpha1, 0, 0, 0, 0, 0, 0]
        if alpha0 > alpha1:
            for i in range(6):
                alphas[2 + i] = ((6 - i) * alpha0 + (1 + i) * alpha1) // 7
        else:
            for i in range(4):
                alphas[2 + i] = ((4 - i) * alpha0 + (1 + i) * alpha1) // 5
            alphas[7] = 255

        # 6 bytes of 3-bit alpha indices
        alpha_indices = struct.unpack("<Q", block[0:8])[0] >> 16

        colors = _four_colors(block[8:12])
        color_indices = struct.unpack("<I", block[12:16])[0]

        for y in range(4):
            for x in range(4):
                px, py = start_x + x, start_y + y
                if px < width and py < height:
                    pixel = y * 4 + x
                    r, g, b, _ = colors[(color_indices >> (pixel * 2)) & 0x3]
                    a = alphas[(alpha_indices >> (pixel * 3)) & 0x7]
                    offset = (py * width + px) * 4
                    result[offset:offset + 4] = bytes((r, g, b, a))


def is_safe_filename(name: str) -> bool:
    """True if a texture name can be used as a bare file name."""
    if not name or name in (".", ".."):
        return False
    return "/" not in name and "\\" not in name and ":" not in name and ".." not in name


def calc_level_size(width: int, height: int, fmt: TextureData) -> int:
    """Size in bytes of one block-compressed level."""
    blocks_x = max(1, (width + 3) // 4)
    blocks_y = max(1, (height + 3) // 4)
    return blocks_x * blocks_y * fmt.block_size


def _rgb565_to_rgba(color: int) -> tuple:
    r = ((color >> 11) & 0x1F) * 255 // 31
    g = ((color >> 5) & 0x3F) * 255 // 63
    b = (color & 0x1F) * 255 // 31
    return (r, g, b, 255)


def _interpolate_color(c0: tuple, c1: tuple, num: int, denom: int) -> tuple:
    return tuple(
        (c0[i] * (denom - num) + c1[i] * num) // denom
        for i in range(4)
    )


def _four_colors(endpoints: bytes) -> list:
    """Always-opaque 4-color palette used by DXT3/DXT5 color blocks."""
    c0, c1 = struct.unpack("<HH", endpoints)
    rgba0, rgba1 = _rgb565_to_rgba(c0), _rgb565_to_rgba(c1)
    return [
        rgba0,
        rgba1,
        _interpolate_color(rgba0, rgba1, 1, 3),
        _interpolate_color(rgba0, rgba1, 2, 3),
    ]
