"""Clump decoding: the top-level container of a DFF model.

Clump section:
- Struct: atomic count (u32), then light and camera counts (u32 each) in
  streams whose struct is 12 bytes long
- FrameList
- GeometryList
- Atomic sections
- per light: Struct (frame index, u32) + Light section
- per camera: Struct (frame index, u32) + Camera section
- Extension
"""
import logging
from typing import TYPE_CHECKING, Iterator, List, Optional

from .errors import InvalidBackReference
from .rw_atomic import Atomic
from .rw_frame import Frame, FrameList, FrameObject
from .rw_geometry import GeometryList
from .rw_light import Light
from .rw_section import Extension, Section, Struct, skip_section
from .rw_stream import RwStream
from .rw_texture import Texture
from .rw_types import Header, SectionId

if TYPE_CHECKING:
    from .session import DecodeSession

logger = logging.getLogger(__name__)


def _read_counts(stream: RwStream, header: Header):
    if header.size >= 12:
        return stream.unpack("III")
    return stream.read_u32(), 0, 0


class Clump(FrameObject, Section):
    """A model: frames, geometries, atomics and lights decoded together."""

    SECTION_ID = SectionId.CLUMP

    def __init__(self, frames: FrameList, geometries: GeometryList,
                 atomics: List[Atomic], lights: Optional[List[Light]] = None):
        super().__init__()
        self.frames = frames
        self.geometries = geometries
        self.atomics = atomics
        self.lights: List[Light] = lights if lights is not None else []

    def __repr__(self) -> str:
        return (f"Clump(frames={len(self.frames)}, geometries={len(self.geometries)}, "
                f"atomics={len(self.atomics)}, lights={len(self.lights)})")

    def root_frames(self) -> List[Frame]:
        return self.frames.roots()

    def into_atomic(self) -> Optional[Atomic]:
        """The last atomic, for single-part models."""
        return self.atomics[-1] if self.atomics else None

    def iter_textures(self) -> Iterator[Texture]:
        """Distinct textures referenced by any material, in first-use order."""
        seen = set()
        for geometry in self.geometries:
            for material in geometry.materials.unique():
                texture = material.texture
                if texture is not None and id(texture) not in seen:
                    seen.add(id(texture))
                    yield texture

    @classmethod
    def read(cls, stream: RwStream, session: "DecodeSession") -> "Clump":
        """Read a Clump section.

        Args:
            stream: Stream positioned at the Clump header
            session: Session holding the dictionary textures resolve against

        Returns:
            The fully linked clump

        Raises:
            RwError: On any malformed or unsupported content
        """
        header = cls.read_header(stream)
        with cls.body(stream, header):
            atomic_count, light_count, camera_count = Struct.read_up_with_header(stream, _read_counts)
            logger.debug(
                f"Clump: version={header.version:#x} atomics={atomic_count} "
                f"lights={light_count} cameras={camera_count}"
            )

            frames = FrameList.read(stream)
            geometries = GeometryList.read(stream, session)
            atomics = [Atomic.read(stream, session, frames, geometries) for _ in range(atomic_count)]

            lights = []
            for _ in range(light_count):
                frame_index = Struct.read_up(stream, lambda s: s.read_u32())
                if frame_index >= len(frames):
                    raise InvalidBackReference("light frame", frame_index, len(frames))
                light = Light.read(stream)
                frames[frame_index].add_child(light)
                lights.append(light)

            for _ in range(camera_count):
                Struct.skip_section(stream)
                skip_section(stream, SectionId.CAMERA)

            Extension.skip_section(stream)

        return cls(frames, geometries, atomics, lights)
