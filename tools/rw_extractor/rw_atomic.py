"""Atomic decoding.

Atomic section:
- Struct: frame index, geometry index, flags, unused (u32 each)
- Geometry section, only when the clump carries no GeometryList entries
- Extension
"""
import logging
from enum import IntFlag
from typing import TYPE_CHECKING, Optional

from .errors import InvalidBackReference
from .rw_frame import Frame, FrameList, FrameObject
from .rw_geometry import Geometry, GeometryList
from .rw_section import Extension, Section, Struct
from .rw_stream import RwStream
from .rw_types import SectionId

if TYPE_CHECKING:
    from .session import DecodeSession

logger = logging.getLogger(__name__)


class AtomicFlags(IntFlag):
    COLLISION_TEST = 0x01
    RENDER = 0x04


class Atomic(FrameObject, Section):
    """A renderable instance: one geometry placed by one frame.

    The geometry may be shared with other atomics of the same clump.
    """

    SECTION_ID = SectionId.ATOMIC

    def __init__(self, geometry: Geometry, flags: int = 0):
        super().__init__()
        self.geometry = geometry
        self.flags = AtomicFlags(flags & 0x05)

    def __repr__(self) -> str:
        frame = self.frame
        return f"Atomic(frame={frame.name if frame else None!r}, flags={self.flags!r})"

    @property
    def frame(self) -> Optional[Frame]:
        """The frame this atomic hangs under."""
        return self.parent

    @property
    def is_rendered(self) -> bool:
        return AtomicFlags.RENDER in self.flags

    @classmethod
    def read(cls, stream: RwStream, session: "DecodeSession",
             frames: FrameList, geometries: GeometryList) -> "Atomic":
        """Read an Atomic and attach it under its frame.

        Args:
            stream: Stream positioned at the Atomic header
            session: Session resolving inline geometry textures
            frames: Frames of the enclosing clump
            geometries: Geometries of the enclosing clump

        Raises:
            InvalidBackReference: If the frame or geometry index is out of range
        """
        header = cls.read_header(stream)
        with cls.body(stream, header):
            frame_index, geometry_index, flags, _ = Struct.read_up(stream, lambda s: s.unpack("4I"))

            if frame_index >= len(frames):
                raise InvalidBackReference("atomic frame", frame_index, len(frames))

            if len(geometries) == 0:
                geometry = Geometry.read(stream, session)
            elif geometry_index < len(geometries):
                geometry = geometries[geometry_index]
            else:
                raise InvalidBackReference("atomic geometry", geometry_index, len(geometries))

            Extension.skip_section(stream)

        atomic = cls(geometry, flags)
        frames[frame_index].add_child(atomic)
        logger.debug(f"Atomic: frame={frame_index} geometry={geometry_index} flags={flags:#x}")
        return atomic
