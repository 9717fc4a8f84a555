"""RenderWare DFF/TXD Extractor Package."""
from .errors import (
    InvalidBackReference,
    InvalidEncoding,
    RwError,
    SectionMismatch,
    SectionNotFound,
    TextureNotFound,
    UnexpectedEndOfData,
    UnsupportedFormat,
    UnsupportedPlatform,
)
from .rw_atomic import Atomic, AtomicFlags
from .rw_clump import Clump
from .rw_frame import Frame, FrameList
from .rw_geometry import Geometry, GeometryFlags, GeometryList, Mesh
from .rw_light import Light, LightType
from .rw_material import Material, MaterialList
from .rw_stream import RwStream
from .rw_texture import Raster, TexDictionary, TexLevel, Texture, TextureData
from .rw_types import Header, SectionId
from .session import DecodeSession

__all__ = [
    "Atomic",
    "AtomicFlags",
    "Clump",
    "DecodeSession",
    "Frame",
    "FrameList",
    "Geometry",
    "GeometryFlags",
    "GeometryList",
    "Header",
    "InvalidBackReference",
    "InvalidEncoding",
    "Light",
    "LightType",
    "Material",
    "MaterialList",
    "Mesh",
    "Raster",
    "RwError",
    "RwStream",
    "SectionId",
    "SectionMismatch",
    "SectionNotFound",
    "TexDictionary",
    "TexLevel",
    "Texture",
    "TextureData",
    "TextureNotFound",
    "UnexpectedEndOfData",
    "UnsupportedFormat",
    "UnsupportedPlatform",
]
