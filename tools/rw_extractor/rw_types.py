"""Type definitions for the RenderWare binary stream format."""
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

HEADER_SIZE = 12

# Geometry structs at or below this version carry ambient/specular/diffuse floats
GEOMETRY_LEGACY_SURFACE_MAX = 0x1003FFFF
# Texture dictionaries at or above this version store a u16 count + u16 device id
TEXDICT_SHORT_COUNT_MIN = 0x1803FFFF


class SectionId(IntEnum):
    """Section (chunk) type ids. Values are fixed by the format."""
    STRUCT = 0x0001
    STRING = 0x0002
    EXTENSION = 0x0003
    CAMERA = 0x0005
    TEXTURE = 0x0006
    MATERIAL = 0x0007
    MATERIAL_LIST = 0x0008
    FRAME_LIST = 0x000E
    GEOMETRY = 0x000F
    CLUMP = 0x0010
    LIGHT = 0x0012
    ATOMIC = 0x0014
    TEX_NATIVE = 0x0015
    TEX_DICTIONARY = 0x0016
    GEOMETRY_LIST = 0x001A
    MESH_LIST = 0x050E
    NODE_NAME = 0x0253F2FE


def section_name(section_id: int) -> str:
    """Get human-readable section name."""
    if section_id in SectionId._value2member_map_:
        return f"{SectionId(section_id).name}({section_id:#x})"
    return f"UNKNOWN({section_id:#x})"


def unpack_library_version(version: int) -> Tuple[int, int, int, int]:
    """Split a packed version stamp into (major, minor, revision, binary).

    Stamps from 3.1 onwards pack the library id into the high 16 bits and
    keep a build number in the low 16; older files store a bare 0x0310-style
    library number.

    Examples:
        0x1003FFFF -> (3, 4, 0, 3)
        0x1803FFFF -> (3, 6, 0, 3)
        0x00000310 -> (3, 1, 0, 0)
    """
    if version & 0xFFFF0000:
        library = (((version >> 14) & 0x3FF00) + 0x30000) | ((version >> 16) & 0x3F)
    else:
        library = version << 8
    major = (library >> 16) & 0xF
    minor = (library >> 12) & 0xF
    revision = (library >> 8) & 0xF
    binary = library & 0xFF
    return major, minor, revision, binary


@dataclass(frozen=True)
class Header:
    """Section header (12 bytes)."""

    section_id: int
    size: int
    version: int

    @property
    def name(self) -> str:
        return section_name(self.section_id)
