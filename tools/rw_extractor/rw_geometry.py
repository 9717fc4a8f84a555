"""Geometry decoding.

Geometry section:
- Struct:
  - flags (u16), UV set count (u8), native flags (u8)
  - triangle, vertex and morph target counts (u32)
  - ambient, specular, diffuse (f32), only up to version 3.4.0.3
  - prelit colors (RGBA8 per vertex) when flags & 0x08
  - UV sets (count x vertices x 2 f32)
  - faces (4 u16: v2, v1, material, v3)
  - per morph target: bounding sphere, 2 reserved u32, positions when
    flags & 0x02, normals when flags & 0x10
- MaterialList section
- Extension holding the MeshList plugin (precomputed index lists)
"""
import logging
from dataclasses import dataclass, field
from enum import IntFlag
from typing import TYPE_CHECKING, Iterator, List, Optional

from .errors import InvalidBackReference, SectionNotFound
from .rw_material import Material, MaterialList, SurfaceProperties
from .rw_prims import Rgba, Sphere, Uv, Vec3
from .rw_section import Extension, Section, Struct
from .rw_stream import RwStream
from .rw_types import GEOMETRY_LEGACY_SURFACE_MAX, Header, SectionId

if TYPE_CHECKING:
    from .session import DecodeSession

logger = logging.getLogger(__name__)


class GeometryFlags(IntFlag):
    """Geometry format flags."""
    TRISTRIP = 0x01
    POSITIONS = 0x02
    TEXTURED = 0x04
    PRELIT = 0x08
    NORMALS = 0x10
    LIGHT = 0x20
    MODULATE_MATERIAL_COLOR = 0x40
    TEXTURED2 = 0x80


@dataclass(frozen=True)
class Face:
    """Triangle as stored: two vertices, the material slot, the third vertex."""
    v2: int
    v1: int
    material: int
    v3: int

    @property
    def vertices(self):
        return (self.v1, self.v2, self.v3)


@dataclass
class MorphTarget:
    """Positions/normals set; only target 0 is used for rendering."""
    sphere: Sphere
    reserved: tuple = (0, 0)
    vertices: Optional[List[Vec3]] = None
    normals: Optional[List[Vec3]] = None


@dataclass(eq=False)
class Mesh:
    """Index run drawn with one material.

    start is the run's offset into the geometry's concatenated index list.
    """
    material: Material
    indices: List[int]
    start: int = 0

    @property
    def index_range(self) -> range:
        return range(self.start, self.start + len(self.indices))


@dataclass
class MeshList:
    """BinMesh plugin: the geometry's meshes, split per material."""
    is_tristrip: bool
    total_indices: int
    meshes: List[Mesh] = field(default_factory=list)

    @classmethod
    def read(cls, stream: RwStream, materials: MaterialList) -> "MeshList":
        flags, mesh_count, total_indices = stream.unpack("III")

        meshes = []
        start = 0
        for _ in range(mesh_count):
            index_count, material_index = stream.unpack("II")
            material = materials.get(material_index)
            if material is None:
                raise InvalidBackReference("mesh material", material_index, len(materials))
            indices = list(stream.unpack(f"{index_count}I")) if index_count else []
            meshes.append(Mesh(material=material, indices=indices, start=start))
            start += index_count

        return cls(is_tristrip=bool(flags & 1), total_indices=total_indices, meshes=meshes)

    def all_indices(self) -> List[int]:
        """Indices of every mesh, concatenated in mesh order."""
        return [i for mesh in self.meshes for i in mesh.indices]


class Geometry(Section):
    """Vertex attributes, faces, materials and meshes of one model part."""

    SECTION_ID = SectionId.GEOMETRY

    def __init__(self, flags: GeometryFlags, vertex_count: int,
                 colors: Optional[List[Rgba]], uv_sets: List[List[Uv]],
                 faces: List[Face], targets: List[MorphTarget],
                 materials: MaterialList, mesh_list: MeshList,
                 surface: Optional[SurfaceProperties] = None):
        self.flags = flags
        self.vertex_count = vertex_count
        self.colors = colors
        self.uv_sets = uv_sets
        self.faces = faces
        self.targets = targets
        self.materials = materials
        self.mesh_list = mesh_list
        self.surface = surface

    def __repr__(self) -> str:
        return (f"Geometry(vertices={self.vertex_count}, faces={len(self.faces)}, "
                f"meshes={len(self.mesh_list.meshes)})")

    @property
    def is_tristrip(self) -> bool:
        return self.mesh_list.is_tristrip

    @property
    def meshes(self) -> List[Mesh]:
        return self.mesh_list.meshes

    @property
    def vertices(self) -> Optional[List[Vec3]]:
        """Positions of morph target 0."""
        return self.targets[0].vertices if self.targets else None

    @property
    def normals(self) -> Optional[List[Vec3]]:
        """Normals of morph target 0."""
        return self.targets[0].normals if self.targets else None

    def check_attributes(self):
        """Check every present attribute array has one entry per vertex.

        The stream stores the vertex count once, so a mismatch can only be
        seen when the arrays are consumed.

        Raises:
            ValueError: On the first array whose length differs
        """
        arrays = [("colors", self.colors)]
        arrays += [(f"uv set {i}", uvs) for i, uvs in enumerate(self.uv_sets)]
        for i, target in enumerate(self.targets):
            arrays.append((f"target {i} vertices", target.vertices))
            arrays.append((f"target {i} normals", target.normals))

        for name, values in arrays:
            if values is not None and len(values) != self.vertex_count:
                raise ValueError(
                    f"Geometry {name} has {len(values)} entries, expected {self.vertex_count}"
                )

    @classmethod
    def read(cls, stream: RwStream, session: "DecodeSession") -> "Geometry":
        header = cls.read_header(stream)
        with cls.body(stream, header):
            data = Struct.read_up_with_header(stream, lambda s, h: _read_geometry_struct(s, header))
            materials = MaterialList.read(stream, session)
            mesh_list = Extension.read_for(
                stream, SectionId.MESH_LIST, lambda s, h: MeshList.read(s, materials)
            )

        if mesh_list is None:
            raise SectionNotFound(SectionId.MESH_LIST)

        flags, vertex_count, surface, colors, uv_sets, faces, targets = data
        logger.debug(
            f"Geometry: version={header.version:#x} flags={flags!r} vertices={vertex_count} "
            f"faces={len(faces)} targets={len(targets)} meshes={len(mesh_list.meshes)}"
        )
        return cls(
            flags=flags,
            vertex_count=vertex_count,
            colors=colors,
            uv_sets=uv_sets,
            faces=faces,
            targets=targets,
            materials=materials,
            mesh_list=mesh_list,
            surface=surface,
        )


def _read_geometry_struct(stream: RwStream, header: Header):
    raw_flags, uv_count, native_flags = stream.unpack("HBB")
    face_count, vertex_count, target_count = stream.unpack("III")
    flags = GeometryFlags(raw_flags & 0xFF)

    # Version-gated: only old streams carry the surface coefficients here
    surface = None
    if header.version <= GEOMETRY_LEGACY_SURFACE_MAX:
        surface = SurfaceProperties.read(stream)

    colors = None
    if flags & GeometryFlags.PRELIT:
        colors = [Rgba.read(stream) for _ in range(vertex_count)]

    uv_sets = [
        [Uv.read(stream) for _ in range(vertex_count)]
        for _ in range(uv_count)
    ]

    faces = [Face(*stream.unpack("4H")) for _ in range(face_count)]

    targets = []
    for _ in range(target_count):
        sphere = Sphere.read(stream)
        reserved = stream.unpack("II")
        vertices = None
        if flags & GeometryFlags.POSITIONS:
            vertices = [Vec3.read(stream) for _ in range(vertex_count)]
        normals = None
        if flags & GeometryFlags.NORMALS:
            normals = [Vec3.read(stream) for _ in range(vertex_count)]
        targets.append(MorphTarget(sphere=sphere, reserved=reserved, vertices=vertices, normals=normals))

    return flags, vertex_count, surface, colors, uv_sets, faces, targets


class GeometryList(Section):
    """Geometries of a clump, addressed by index from atomics."""

    SECTION_ID = SectionId.GEOMETRY_LIST

    def __init__(self, geometries: Optional[List[Geometry]] = None):
        self.geometries: List[Geometry] = geometries if geometries is not None else []

    def __len__(self) -> int:
        return len(self.geometries)

    def __getitem__(self, index: int) -> Geometry:
        return self.geometries[index]

    def __iter__(self) -> Iterator[Geometry]:
        return iter(self.geometries)

    @classmethod
    def read(cls, stream: RwStream, session: "DecodeSession") -> "GeometryList":
        header = cls.read_header(stream)
        with cls.body(stream, header):
            count = Struct.read_up(stream, lambda s: s.read_u32())
            geometries = [Geometry.read(stream, session) for _ in range(count)]
        return cls(geometries)
