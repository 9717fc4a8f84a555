"""Frame hierarchy decoding.

A FrameList section holds:
- Struct: frame count (u32), then per frame:
  - matrix (4x3 f32, right/top/at/pos)
  - parent index (i32, -1 = root)
  - matrix creation flags (u32, ignored)
- One Extension per frame, in the same order, optionally carrying a
  NodeName plugin with the frame's name.

Parents own their children; every upward link (child -> parent) is a weak
reference, so dropping a parent never keeps it alive through its children.
"""
import logging
import weakref
from typing import Iterator, List, Optional, Tuple

from .errors import InvalidBackReference
from .rw_prims import Matrix
from .rw_section import Extension, Section, Struct, decode_string
from .rw_stream import RwStream
from .rw_types import Header, SectionId

logger = logging.getLogger(__name__)


class FrameObject:
    """Anything that can hang under a Frame: Frame, Atomic or Clump."""

    def __init__(self):
        self._parent_ref: Optional[weakref.ref] = None

    @property
    def parent(self) -> Optional["Frame"]:
        """The parent frame, or None when unparented or already collected."""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    def detach(self):
        """Remove this object from its parent's children."""
        parent = self.parent
        if parent is not None:
            parent.children = [c for c in parent.children if c is not self]
        self._parent_ref = None


class Frame(FrameObject):
    """A node of the transform hierarchy."""

    def __init__(self, matrix: Matrix, name: str = "", flags: int = 0):
        super().__init__()
        self.matrix = matrix
        self.name = name
        self.flags = flags
        self.children: List[FrameObject] = []

    def __repr__(self) -> str:
        return f"Frame(name={self.name!r}, children={len(self.children)})"

    def add_child(self, child: FrameObject):
        """Attach a Frame, Atomic or Clump under this frame.

        Raises:
            ValueError: If attaching would make a frame its own ancestor
        """
        if isinstance(child, Frame):
            ancestor: Optional[Frame] = self
            while ancestor is not None:
                if ancestor is child:
                    raise ValueError("Frame cannot be attached under itself")
                ancestor = ancestor.parent

        child.detach()
        child._parent_ref = weakref.ref(self)
        self.children.append(child)

    @property
    def child_frames(self) -> List["Frame"]:
        return [c for c in self.children if isinstance(c, Frame)]

    def world_matrix(self) -> Matrix:
        """Local matrix composed with every resolvable ancestor's matrix."""
        world = self.matrix
        parent = self.parent
        while parent is not None:
            world = world * parent.matrix
            parent = parent.parent
        return world

    def get_hierarchy_depth(self) -> int:
        """Get depth of frame in hierarchy (0 for root)."""
        depth = 0
        parent = self.parent
        while parent is not None:
            depth += 1
            parent = parent.parent
        return depth

    def iter_descendants(self) -> Iterator["Frame"]:
        """Depth-first walk of child frames (not including self)."""
        for child in self.child_frames:
            yield child
            yield from child.iter_descendants()


def _read_node_name(stream: RwStream, header: Header) -> str:
    return decode_string(stream.read_bytes(header.size))


class FrameList(Section):
    """Ordered list of frames decoded from one FrameList section."""

    SECTION_ID = SectionId.FRAME_LIST

    def __init__(self, frames: Optional[List[Frame]] = None):
        self.frames: List[Frame] = frames if frames is not None else []

    def __len__(self) -> int:
        return len(self.frames)

    def __getitem__(self, index: int) -> Frame:
        return self.frames[index]

    def __iter__(self) -> Iterator[Frame]:
        return iter(self.frames)

    def roots(self) -> List[Frame]:
        """Frames with no parent."""
        return [f for f in self.frames if f.parent is None]

    def find(self, name: str) -> Optional[Frame]:
        """Find a frame by name (case-insensitive)."""
        name = name.lower()
        return next((f for f in self.frames if f.name.lower() == name), None)

    @classmethod
    def read(cls, stream: RwStream) -> "FrameList":
        header = cls.read_header(stream)
        with cls.body(stream, header):
            records = Struct.read_up(stream, cls._read_records)

            frames: List[Frame] = []
            for matrix, parent_index, flags in records:
                frame = Frame(matrix, flags=flags)
                if parent_index >= 0:
                    if parent_index >= len(frames):
                        raise InvalidBackReference("frame parent", parent_index, len(frames))
                    frames[parent_index].add_child(frame)
                frames.append(frame)

            # Names only after every link is in place
            for frame in frames:
                name = Extension.read_for(stream, SectionId.NODE_NAME, _read_node_name)
                if name is not None:
                    frame.name = name

        logger.debug(f"FrameList: {len(frames)} frames, {sum(1 for f in frames if f.parent is None)} roots")
        return cls(frames)

    @classmethod
    def _read_records(cls, stream: RwStream) -> List[Tuple[Matrix, int, int]]:
        count = stream.read_u32()
        records = []
        for _ in range(count):
            matrix = Matrix.read(stream)
            parent_index, flags = stream.unpack("iI")
            records.append((matrix, parent_index, flags))
        return records
