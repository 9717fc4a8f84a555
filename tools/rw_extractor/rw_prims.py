"""Fixed-size geometric and color primitives."""
from dataclasses import dataclass
from typing import List, Tuple

from .rw_stream import RwStream


@dataclass(frozen=True)
class Vec3:
    """3D point or vector."""
    x: float
    y: float
    z: float

    @classmethod
    def read(cls, stream: RwStream) -> "Vec3":
        return cls(*stream.unpack("3f"))

    def __add__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def scale(self, factor: float) -> "Vec3":
        return Vec3(self.x * factor, self.y * factor, self.z * factor)

    def to_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class Uv:
    """UV texture coordinate."""
    u: float
    v: float

    @classmethod
    def read(cls, stream: RwStream) -> "Uv":
        return cls(*stream.unpack("2f"))


@dataclass(frozen=True)
class Rgba:
    """Color with alpha, 8 bits per component."""
    r: int
    g: int
    b: int
    a: int

    @classmethod
    def read(cls, stream: RwStream) -> "Rgba":
        return cls(*stream.unpack("4B"))

    def to_float(self) -> Tuple[float, float, float, float]:
        """Convert to 0..1 range."""
        return (self.r / 255.0, self.g / 255.0, self.b / 255.0, self.a / 255.0)


@dataclass(frozen=True)
class Sphere:
    """Bounding sphere."""
    center: Vec3
    radius: float

    @classmethod
    def read(cls, stream: RwStream) -> "Sphere":
        center = Vec3.read(stream)
        return cls(center=center, radius=stream.read_f32())


@dataclass(frozen=True)
class Matrix:
    """4x3 row-major affine transform.

    Points are row vectors: p' = p.x * right + p.y * top + p.z * at + pos.
    `a * b` applies a first, then b, so a frame's world matrix is
    `local * parent_world`.
    """
    right: Vec3
    top: Vec3
    at: Vec3
    pos: Vec3

    @classmethod
    def read(cls, stream: RwStream) -> "Matrix":
        return cls(
            right=Vec3.read(stream),
            top=Vec3.read(stream),
            at=Vec3.read(stream),
            pos=Vec3.read(stream),
        )

    @classmethod
    def identity(cls) -> "Matrix":
        return cls(
            right=Vec3(1.0, 0.0, 0.0),
            top=Vec3(0.0, 1.0, 0.0),
            at=Vec3(0.0, 0.0, 1.0),
            pos=Vec3(0.0, 0.0, 0.0),
        )

    @classmethod
    def translation(cls, x: float, y: float, z: float) -> "Matrix":
        m = cls.identity()
        return cls(right=m.right, top=m.top, at=m.at, pos=Vec3(x, y, z))

    def _rotate(self, v: Vec3) -> Vec3:
        return self.right.scale(v.x) + self.top.scale(v.y) + self.at.scale(v.z)

    def transform_point(self, p: Vec3) -> Vec3:
        return self._rotate(p) + self.pos

    def __mul__(self, other: "Matrix") -> "Matrix":
        return Matrix(
            right=other._rotate(self.right),
            top=other._rotate(self.top),
            at=other._rotate(self.at),
            pos=other.transform_point(self.pos),
        )

    def to_list(self) -> List[float]:
        """Flat 4x4 in column-major order (glTF node matrix layout)."""
        return [
            self.right.x, self.right.y, self.right.z, 0.0,
            self.top.x, self.top.y, self.top.z, 0.0,
            self.at.x, self.at.y, self.at.z, 0.0,
            self.pos.x, self.pos.y, self.pos.z, 1.0,
        ]

    def is_identity(self) -> bool:
        return self == Matrix.identity()
