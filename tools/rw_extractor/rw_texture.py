"""Texture dictionary (TXD) decoding and texture reference resolution.

TexDictionary section:
- Struct: texture count (u32), or count (u16) + device id (u16) from 3.6
- TexNative section per texture
- Extension

TexNative Struct body for the PC (D3D8/D3D9) platforms:
- platform id (u32), filter/addressing flags (u32)
- name, mask name (32-byte NUL-padded each)
- raster format (u32), D3D format or alpha flag (u32)
- width, height (u16), depth, level count, raster type, type flags (u8)
- per level: size (u32) + block-compressed texel data
"""
import logging
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Mapping, Optional

from .errors import UnsupportedFormat, UnsupportedPlatform
from .rw_section import Extension, Section, Struct, decode_string, read_string
from .rw_stream import RwStream
from .rw_types import TEXDICT_SHORT_COUNT_MIN, SectionId

if TYPE_CHECKING:
    from .session import DecodeSession

logger = logging.getLogger(__name__)


class FilterMode(IntEnum):
    """Texture filtering modes."""
    NONE = 0
    NEAREST = 1
    LINEAR = 2
    MIP_NEAREST = 3
    MIP_LINEAR = 4
    LINEAR_MIP_NEAREST = 5
    LINEAR_MIP_LINEAR = 6


class WrapMode(IntEnum):
    """Texture addressing modes."""
    NONE = 0
    REPEAT = 1
    MIRROR = 2
    CLAMP = 3
    BORDER = 4


class Platform(IntEnum):
    """TexNative platform ids."""
    OPENGL = 2
    PS2 = 4
    XBOX = 5
    D3D8 = 8
    D3D9 = 9
    PS2_FOURCC = 0x00325350  # "PS2\0"


class RasterFormat(IntEnum):
    """Pixel layout, bits 8-11 of the raster format word.

    The compressed layouts reuse these: R5G6B5 for DXT1 without alpha,
    R5G5B5A1 for DXT1 with alpha, R4G4B4A4 for DXT3.
    """
    R5G5B5A1 = 0x0100
    R5G6B5 = 0x0200
    R4G4B4A4 = 0x0300
    LUM8 = 0x0400
    R8G8B8A8 = 0x0500
    R8G8B8 = 0x0600
    R5G5B5 = 0x0A00


class RasterFlags(IntFlag):
    """Extension bits of the raster format word."""
    AUTO_MIPMAP = 0x1000
    PAL8 = 0x2000
    PAL4 = 0x4000
    MIPMAP = 0x8000


class TypeFlags(IntFlag):
    """D3D type flags byte."""
    ALPHA = 0x01
    CUBEMAP = 0x02
    AUTO_MIPMAPS = 0x04
    COMPRESSED = 0x08


class TextureData(IntEnum):
    """Block-compressed texel layouts."""
    DXT1C = 1
    DXT1A = 2
    DXT3 = 3
    DXT5 = 5

    @property
    def block_size(self) -> int:
        """Bytes per 4x4 block."""
        return 8 if self in (TextureData.DXT1C, TextureData.DXT1A) else 16

    @property
    def fourcc(self) -> bytes:
        return b"DXT1" if self.block_size == 8 else f"DXT{int(self)}".encode("ascii")


FOURCC_DXT5 = 0x35545844  # "DXT5"

_COMPRESSED_LEVEL_FORMATS = {
    (RasterFormat.R5G6B5, True, False): TextureData.DXT1C,
    (RasterFormat.R5G5B5A1, True, True): TextureData.DXT1A,
    (RasterFormat.R4G4B4A4, True, True): TextureData.DXT3,
}


def _enum_or_none(enum_cls, value: int):
    if value in enum_cls._value2member_map_:
        return enum_cls(value)
    return enum_cls.NONE


@dataclass
class TexLevel:
    """One mip level of a raster."""
    format: TextureData
    width: int
    height: int
    data: bytes


class Raster:
    """Ordered mip chain; level 0 is the base image."""

    def __init__(self, levels: Iterable[TexLevel]):
        self.levels: List[TexLevel] = list(levels)
        if not self.levels:
            raise ValueError("Raster requires at least one mip level")

    def __repr__(self) -> str:
        return f"Raster({self.width}x{self.height}, {len(self.levels)} levels)"

    @property
    def base(self) -> TexLevel:
        return self.levels[0]

    @property
    def width(self) -> int:
        return self.levels[0].width

    @property
    def height(self) -> int:
        return self.levels[0].height

    @property
    def format(self) -> TextureData:
        return self.levels[0].format

    @property
    def mipmap_count(self) -> int:
        """Number of levels below the base."""
        return len(self.levels) - 1


@dataclass(eq=False)
class Texture:
    """A named raster. Shared by reference, never copied."""
    name: str
    mask: str
    raster: Raster
    filter: FilterMode = FilterMode.NONE
    wrap_u: WrapMode = WrapMode.NONE
    wrap_v: WrapMode = WrapMode.NONE
    dictionary: str = ""
    has_alpha: bool = False


class TexDictionary(Section):
    """Named, read-only collection of textures keyed by lower-cased name."""

    SECTION_ID = SectionId.TEX_DICTIONARY

    def __init__(self, name: str, textures: Iterable[Texture] = ()):
        self.name = name
        entries: Dict[str, Texture] = {}
        for texture in textures:
            if not texture.dictionary:
                texture.dictionary = name
            key = texture.name.lower()
            if key in entries:
                logger.warning(f"TexDictionary '{name}': duplicate texture '{texture.name}', keeping the last")
            entries[key] = texture
        self._textures = entries

    def __repr__(self) -> str:
        return f"TexDictionary(name={self.name!r}, textures={len(self._textures)})"

    def __len__(self) -> int:
        return len(self._textures)

    def __iter__(self) -> Iterator[Texture]:
        return iter(self._textures.values())

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._textures

    @property
    def textures(self) -> Mapping[str, Texture]:
        return MappingProxyType(self._textures)

    def find(self, name: str) -> Optional[Texture]:
        """Find a texture by name (case-insensitive)."""
        return self._textures.get(name.lower())

    @classmethod
    def read(cls, stream: RwStream, name: str = "") -> "TexDictionary":
        """Read a TexDictionary section.

        Args:
            stream: Stream positioned at the TexDictionary header
            name: Dictionary name (usually the .txd file stem)
        """
        header = cls.read_header(stream)
        with cls.body(stream, header):
            if header.version >= TEXDICT_SHORT_COUNT_MIN:
                count, device_id = Struct.read_up(stream, lambda s: s.unpack("HH"))
            else:
                count = Struct.read_up(stream, lambda s: s.read_u32())
                device_id = 0
            logger.debug(f"TexDictionary '{name}': {count} textures, version={header.version:#x}, device={device_id}")

            textures = [TexNative.read(stream) for _ in range(count)]
            Extension.skip_section(stream)

        return cls(name, textures)


class TexNative(Section):
    """Platform-specific texture body inside a dictionary."""

    SECTION_ID = SectionId.TEX_NATIVE
    NAME_SIZE = 32

    @classmethod
    def read(cls, stream: RwStream) -> Texture:
        header = cls.read_header(stream)
        with cls.body(stream, header):
            platform = Struct.peek_up(stream, lambda s: s.read_u32())
            if platform not in (Platform.D3D8, Platform.D3D9):
                raise UnsupportedPlatform(platform)

            texture = Struct.read_up(stream, cls._read_struct_d3d)
            Extension.skip_section(stream)
        return texture

    @classmethod
    def _read_struct_d3d(cls, stream: RwStream) -> Texture:
        platform, filter_flags = stream.unpack("II")
        name = decode_string(stream.read_bytes(cls.NAME_SIZE))
        mask = decode_string(stream.read_bytes(cls.NAME_SIZE))
        raster_format, d3d_format = stream.unpack("II")
        width, height, depth, level_count, raster_type, type_flags = stream.unpack("HHBBBB")

        extension_flags = RasterFlags(raster_format & 0xF000)
        type_flags = TypeFlags(type_flags & 0x0F)
        has_alpha = TypeFlags.ALPHA in type_flags
        is_compressed = TypeFlags.COMPRESSED in type_flags

        layout_bits = raster_format & 0x0F00
        if layout_bits not in RasterFormat._value2member_map_:
            raise UnsupportedFormat(f"raster format {raster_format:#x} in texture '{name}'")
        layout = RasterFormat(layout_bits)

        if extension_flags & (RasterFlags.PAL8 | RasterFlags.PAL4):
            raise UnsupportedFormat(f"paletted raster in texture '{name}'")

        if is_compressed and platform == Platform.D3D9 and d3d_format == FOURCC_DXT5:
            level_format = TextureData.DXT5
        else:
            level_format = _COMPRESSED_LEVEL_FORMATS.get((layout, is_compressed, has_alpha))
        if level_format is None:
            raise UnsupportedFormat(
                f"{layout.name} raster (compressed={is_compressed}, alpha={has_alpha}) in texture '{name}'"
            )

        logger.debug(
            f"TexNative '{name}': {width}x{height} {level_format.name}, {level_count} levels, "
            f"depth={depth}, type={raster_type}, flags={type_flags!r}"
        )

        levels = []
        stored = True
        for level in range(level_count):
            size = stream.read_u32()
            data = stream.read_bytes(size)

            # Some dictionaries declare more levels than they store; the
            # first empty one ends the chain.
            if size == 0 and stored:
                logger.debug(f"TexNative '{name}': empty mip level {level}, dropping it and the rest")
                stored = False

            if stored:
                levels.append(TexLevel(format=level_format, width=width, height=height, data=data))

            width = max(1, width // 2)
            height = max(1, height // 2)

        if not levels:
            raise UnsupportedFormat(f"texture '{name}' stores no mip levels")

        return Texture(
            name=name,
            mask=mask,
            raster=Raster(levels),
            filter=_enum_or_none(FilterMode, filter_flags & 0xFF),
            wrap_u=_enum_or_none(WrapMode, (filter_flags >> 8) & 0xF),
            wrap_v=_enum_or_none(WrapMode, (filter_flags >> 12) & 0xF),
            has_alpha=has_alpha,
        )


class TextureReference(Section):
    """Texture section inside a Material: names a texture in the bound dictionary."""

    SECTION_ID = SectionId.TEXTURE

    @classmethod
    def read(cls, stream: RwStream, session: "DecodeSession") -> Texture:
        """Read a Texture section and resolve it through the session.

        Returns:
            The dictionary's own Texture object

        Raises:
            TextureNotFound: If no dictionary is bound or it lacks the name
        """
        header = cls.read_header(stream)
        with cls.body(stream, header):
            filter_flags = Struct.read_up(stream, lambda s: s.read_u32())
            name = read_string(stream).lower()
            mask = read_string(stream).lower()
            Extension.skip_section(stream)

        logger.debug(f"Texture reference '{name}' (mask '{mask}', flags={filter_flags:#x})")
        return session.find_texture(name, mask or None)
