"""Material list decoding.

MaterialList section:
- Struct: material count (u32), then one i32 id per slot
  - negative: a Material section follows for this slot
  - i >= 0: the slot reuses the i-th material decoded so far
- Material sections, one per negative id

Material section:
- Struct: flags (u32, unused), color (RGBA8), unused (u32), textured (u32),
  ambient, specular, diffuse (f32)
- Texture section, when textured
- Extension
"""
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, List, Optional

from .errors import InvalidBackReference
from .rw_prims import Rgba
from .rw_section import Extension, Section, Struct
from .rw_stream import RwStream
from .rw_texture import Texture, TextureReference
from .rw_types import SectionId

if TYPE_CHECKING:
    from .session import DecodeSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SurfaceProperties:
    """Reflection coefficients, each 0.0 (none) to 1.0 (full)."""
    ambient: float = 1.0
    specular: float = 1.0
    diffuse: float = 1.0

    @classmethod
    def read(cls, stream: RwStream) -> "SurfaceProperties":
        ambient, specular, diffuse = stream.unpack("3f")
        return cls(ambient=ambient, specular=specular, diffuse=diffuse)


@dataclass(eq=False)
class Material(Section):
    """Surface appearance: color, reflectance and an optional texture."""

    SECTION_ID = SectionId.MATERIAL

    color: Rgba
    surface: SurfaceProperties
    texture: Optional[Texture] = None

    @classmethod
    def read(cls, stream: RwStream, session: "DecodeSession") -> "Material":
        header = cls.read_header(stream)
        with cls.body(stream, header):
            _, color, _, textured, surface = Struct.read_up(stream, _read_material_struct)

            texture = None
            if textured:
                texture = TextureReference.read(stream, session)

            Extension.skip_section(stream)

        return cls(color=color, surface=surface, texture=texture)


def _read_material_struct(stream: RwStream):
    flags = stream.read_u32()
    color = Rgba.read(stream)
    unused, textured = stream.unpack("II")
    surface = SurfaceProperties.read(stream)
    return flags, color, unused, textured != 0, surface


class MaterialList(Section):
    """Material slots of a geometry; aliased slots share one Material."""

    SECTION_ID = SectionId.MATERIAL_LIST

    def __init__(self, materials: Optional[List[Material]] = None):
        self.materials: List[Material] = materials if materials is not None else []

    def __len__(self) -> int:
        return len(self.materials)

    def __getitem__(self, index: int) -> Material:
        return self.materials[index]

    def __iter__(self) -> Iterator[Material]:
        return iter(self.materials)

    def get(self, index: int) -> Optional[Material]:
        """Get material at index, or None if out of range."""
        if 0 <= index < len(self.materials):
            return self.materials[index]
        return None

    def unique(self) -> List[Material]:
        """Distinct materials in first-appearance order."""
        seen = set()
        result = []
        for material in self.materials:
            if id(material) not in seen:
                seen.add(id(material))
                result.append(material)
        return result

    @classmethod
    def read(cls, stream: RwStream, session: "DecodeSession") -> "MaterialList":
        header = cls.read_header(stream)
        with cls.body(stream, header):
            ids = Struct.read_up(stream, _read_material_ids)

            # Non-negative ids count decoded materials, not slots
            materials: List[Material] = []
            decoded: List[Material] = []
            for material_id in ids:
                if material_id < 0:
                    material = Material.read(stream, session)
                    decoded.append(material)
                elif material_id < len(decoded):
                    material = decoded[material_id]
                else:
                    raise InvalidBackReference("material", material_id, len(decoded))
                materials.append(material)

        logger.debug(f"MaterialList: {len(materials)} slots, {len(decoded)} decoded")
        return cls(materials)


def _read_material_ids(stream: RwStream) -> List[int]:
    count = stream.read_u32()
    return [stream.read_i32() for _ in range(count)]
