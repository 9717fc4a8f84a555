"""Light decoding.

Light section:
- Struct: radius (f32), red, green, blue (f32), minus cosine of the cone
  angle (f32), flags (u16), light type (u16)
- Extension
"""
import logging
from enum import IntEnum, IntFlag
from typing import Optional, Tuple

from .rw_frame import Frame, FrameObject
from .rw_section import Extension, Section, Struct
from .rw_stream import RwStream
from .rw_types import SectionId

logger = logging.getLogger(__name__)


class LightType(IntEnum):
    DIRECTIONAL = 0x01
    AMBIENT = 0x02
    POINT = 0x80
    SPOT = 0x81
    SPOT_SOFT = 0x82


class LightFlags(IntFlag):
    LIGHT_ATOMICS = 0x01
    LIGHT_WORLD = 0x02


class Light(FrameObject, Section):
    """A light hung under a frame of its clump."""

    SECTION_ID = SectionId.LIGHT

    def __init__(self, light_type: int, color: Tuple[float, float, float],
                 radius: float = 0.0, minus_cos_angle: float = 0.0, flags: int = 0):
        super().__init__()
        self.light_type = light_type
        self.color = color
        self.radius = radius
        self.minus_cos_angle = minus_cos_angle
        self.flags = LightFlags(flags & 0x03)

    def __repr__(self) -> str:
        kind = self.light_type.name if isinstance(self.light_type, LightType) else hex(self.light_type)
        return f"Light(type={kind}, color={self.color})"

    @property
    def frame(self) -> Optional[Frame]:
        return self.parent

    @classmethod
    def read(cls, stream: RwStream) -> "Light":
        header = cls.read_header(stream)
        with cls.body(stream, header):
            radius, r, g, b, minus_cos_angle, flags, raw_type = Struct.read_up(
                stream, lambda s: s.unpack("5fHH")
            )
            Extension.skip_section(stream)

        light_type = LightType(raw_type) if raw_type in LightType._value2member_map_ else raw_type
        logger.debug(f"Light: type={light_type!r} radius={radius} flags={flags:#x}")
        return cls(
            light_type=light_type,
            color=(r, g, b),
            radius=radius,
            minus_cos_angle=minus_cos_angle,
            flags=flags,
        )
