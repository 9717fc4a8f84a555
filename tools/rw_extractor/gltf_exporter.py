"""glTF exporter for decoded RenderWare clumps."""
import logging
import struct
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from pygltflib import (
    GLTF2,
    Accessor,
    Asset,
    Buffer,
    BufferView,
    Material as GLTFMaterial,
    Mesh as GLTFMesh,
    Node,
    PbrMetallicRoughness,
    Primitive,
    Scene,
)

from .rw_clump import Clump
from .rw_geometry import Geometry
from .rw_material import Material

logger = logging.getLogger(__name__)

ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963

FLOAT = 5126
UNSIGNED_BYTE = 5121
UNSIGNED_INT = 5125

MODE_TRIANGLES = 4
MODE_TRIANGLE_STRIP = 5


def _compute_bounds(vertices: Sequence[Tuple[float, float, float]]) -> Tuple[List[float], List[float]]:
    """Compute min/max bounds for vertices."""
    if not vertices:
        return [0, 0, 0], [0, 0, 0]

    min_bounds = [float("inf")] * 3
    max_bounds = [float("-inf")] * 3

    for v in vertices:
        for i in range(3):
            min_bounds[i] = min(min_bounds[i], v[i])
            max_bounds[i] = max(max_bounds[i], v[i])

    return min_bounds, max_bounds


class GLTFExporter:
    """Exports a decoded Clump to glTF/GLB format.

    Frames become nodes carrying their local matrix; each atomic becomes a
    mesh node under its frame. Geometries shared between atomics are
    exported once.
    """

    GENERATOR = "RW Extractor"

    def __init__(self, clump: Clump):
        self.clump = clump
        self._buffer = bytearray()
        self._gltf: Optional[GLTF2] = None
        self._material_indices: Dict[int, int] = {}
        self._mesh_indices: Dict[int, int] = {}

    def _add_view(self, data: bytes, target: Optional[int] = None) -> int:
        """Append data to the binary buffer as a new buffer view."""
        offset = len(self._buffer)
        self._buffer += data
        if len(self._buffer) % 4 != 0:
            self._buffer += b"\x00" * (4 - len(self._buffer) % 4)

        self._gltf.bufferViews.append(
            BufferView(buffer=0, byteOffset=offset, byteLength=len(data), target=target)
        )
        return len(self._gltf.bufferViews) - 1

    def _add_accessor(self, data: bytes, component_type: int, count: int, accessor_type: str,
                      target: Optional[int] = ARRAY_BUFFER, **kwargs) -> int:
        view = self._add_view(data, target)
        self._gltf.accessors.append(
            Accessor(
                bufferView=view,
                componentType=component_type,
                count=count,
                type=accessor_type,
                **kwargs,
            )
        )
        return len(self._gltf.accessors) - 1

    def _export_material(self, material: Material) -> int:
        key = id(material)
        if key not in self._material_indices:
            name = material.texture.name if material.texture is not None else None
            self._gltf.materials.append(
                GLTFMaterial(
                    name=name,
                    pbrMetallicRoughness=PbrMetallicRoughness(
                        baseColorFactor=list(material.color.to_float()),
                        metallicFactor=0.0,
                    ),
                    doubleSided=True,
                )
            )
            self._material_indices[key] = len(self._gltf.materials) - 1
        return self._material_indices[key]

    def _export_geometry(self, geometry: Geometry) -> int:
        """Export a geometry as a glTF mesh, once per distinct geometry.

        Raises:
            ValueError: If the geometry has no positions or mismatched attribute arrays
        """
        key = id(geometry)
        if key in self._mesh_indices:
            return self._mesh_indices[key]

        geometry.check_attributes()
        if not geometry.vertices:
            raise ValueError("Geometry has no vertex positions")

        vertices = [v.to_tuple() for v in geometry.vertices]
        min_bounds, max_bounds = _compute_bounds(vertices)
        attributes = {
            "POSITION": self._add_accessor(
                b"".join(struct.pack("<fff", *v) for v in vertices),
                FLOAT, len(vertices), "VEC3", min=min_bounds, max=max_bounds,
            )
        }

        if geometry.normals:
            attributes["NORMAL"] = self._add_accessor(
                b"".join(struct.pack("<fff", *n.to_tuple()) for n in geometry.normals),
                FLOAT, len(geometry.normals), "VEC3",
            )

        if geometry.uv_sets:
            uvs = geometry.uv_sets[0]
            attributes["TEXCOORD_0"] = self._add_accessor(
                b"".join(struct.pack("<ff", uv.u, uv.v) for uv in uvs),
                FLOAT, len(uvs), "VEC2",
            )

        if geometry.colors:
            attributes["COLOR_0"] = self._add_accessor(
                b"".join(struct.pack("<4B", c.r, c.g, c.b, c.a) for c in geometry.colors),
                UNSIGNED_BYTE, len(geometry.colors), "VEC4", normalized=True,
            )

        mode = MODE_TRIANGLE_STRIP if geometry.is_tristrip else MODE_TRIANGLES
        primitives = []
        for mesh in geometry.meshes:
            if not mesh.indices:
                continue
            indices = self._add_accessor(
                struct.pack(f"<{len(mesh.indices)}I", *mesh.indices),
                UNSIGNED_INT, len(mesh.indices), "SCALAR", target=ELEMENT_ARRAY_BUFFER,
            )
            primitives.append(
                Primitive(
                    attributes=dict(attributes),
                    indices=indices,
                    material=self._export_material(mesh.material),
                    mode=mode,
                )
            )

        self._gltf.meshes.append(GLTFMesh(primitives=primitives))
        self._mesh_indices[key] = len(self._gltf.meshes) - 1
        return self._mesh_indices[key]

    def build(self) -> GLTF2:
        """Build the glTF document; the binary blob is attached to it.

        Raises:
            ValueError: If the clump has no atomics or a geometry cannot be exported
        """
        if not self.clump.atomics:
            raise ValueError("Clump has no atomics to export")

        self._gltf = gltf = GLTF2()
        gltf.asset = Asset(version="2.0", generator=self.GENERATOR)
        self._buffer = bytearray()
        self._material_indices = {}
        self._mesh_indices = {}

        frames = list(self.clump.frames)
        frame_indices = {id(frame): i for i, frame in enumerate(frames)}

        for i, frame in enumerate(frames):
            node = Node(name=frame.name or f"frame_{i}")
            if not frame.matrix.is_identity():
                node.matrix = frame.matrix.to_list()
            gltf.nodes.append(node)

        for i, frame in enumerate(frames):
            children = [frame_indices[id(child)] for child in frame.child_frames]
            if children:
                gltf.nodes[i].children = children

        for i, atomic in enumerate(self.clump.atomics):
            mesh = self._export_geometry(atomic.geometry)
            gltf.nodes.append(Node(name=f"atomic_{i}", mesh=mesh))
            node_index = len(gltf.nodes) - 1

            frame = atomic.frame
            if frame is not None and id(frame) in frame_indices:
                parent = gltf.nodes[frame_indices[id(frame)]]
                parent.children = (parent.children or []) + [node_index]

        roots = [frame_indices[id(frame)] for frame in self.clump.root_frames()]
        gltf.scenes = [Scene(nodes=roots)]
        gltf.scene = 0

        gltf.buffers = [Buffer(byteLength=len(self._buffer))]
        gltf.set_binary_blob(bytes(self._buffer))

        logger.debug(
            f"glTF: {len(gltf.nodes)} nodes, {len(gltf.meshes)} meshes, "
            f"{len(gltf.materials)} materials, {len(self._buffer)} bytes"
        )
        return gltf

    def export(self, output_path: Union[str, Path]):
        """Export the clump to a glTF/GLB file.

        Args:
            output_path: Path for output .glb file

        Raises:
            ValueError: If the clump cannot be exported
        """
        gltf = self.build()
        gltf.save(str(output_path))
