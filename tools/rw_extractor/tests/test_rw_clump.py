"""Tests for clump, atomic and light decoding."""
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from rw_extractor.errors import InvalidBackReference, SectionNotFound, TextureNotFound
from rw_extractor.rw_atomic import AtomicFlags
from rw_extractor.rw_clump import Clump
from rw_extractor.rw_light import LightType
from rw_extractor.rw_stream import RwStream
from rw_extractor.session import DecodeSession

from rw_builders import (
    IDENTITY,
    atomic,
    camera,
    chunk,
    clump,
    frame_list,
    geometry,
    geometry_list,
    light,
    material,
    material_list,
    simple_clump,
    tex_dictionary,
    tex_native,
    texture_ref,
    translation,
)

TRIANGLE = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]


def read_clump(data, session=None):
    return Clump.read(RwStream.from_bytes(data), session or DecodeSession())


def test_simple_clump():
    c = read_clump(simple_clump())

    assert len(c.frames) == 1
    assert len(c.geometries) == 1
    assert len(c.atomics) == 1
    assert c.lights == []
    assert c.root_frames() == [c.frames[0]]
    assert c.frames[0].name == "root"

    a = c.into_atomic()
    assert a is c.atomics[0]
    assert a.frame is c.frames[0]
    assert a in c.frames[0].children
    assert a.geometry is c.geometries[0]
    assert a.flags == AtomicFlags.COLLISION_TEST | AtomicFlags.RENDER
    assert a.is_rendered


def test_atomics_share_geometry():
    data = clump(
        frame_list([(IDENTITY, -1), (translation(1.0, 0.0, 0.0), 0), (translation(2.0, 0.0, 0.0), 0)]),
        geometry_list([geometry(TRIANGLE), geometry(TRIANGLE)]),
        [atomic(1, 0), atomic(2, 0), atomic(0, 1, flags=0)],
    )
    c = read_clump(data)

    assert c.atomics[0].geometry is c.atomics[1].geometry
    assert c.atomics[2].geometry is c.geometries[1]
    assert c.atomics[0].frame is c.frames[1]
    assert c.atomics[1].frame is c.frames[2]
    assert not c.atomics[2].is_rendered
    assert c.into_atomic() is c.atomics[2]


def test_atomic_frame_out_of_range():
    data = clump(frame_list([(IDENTITY, -1)]), geometry_list([geometry(TRIANGLE)]), [atomic(1)])
    with pytest.raises(InvalidBackReference, match="atomic frame"):
        read_clump(data)


def test_atomic_geometry_out_of_range():
    data = clump(frame_list([(IDENTITY, -1)]), geometry_list([geometry(TRIANGLE)]), [atomic(0, 2)])
    with pytest.raises(InvalidBackReference, match="atomic geometry") as exc_info:
        read_clump(data)
    assert exc_info.value.available == 1


def test_atomic_inline_geometry():
    """With an empty geometry list each atomic carries its own geometry."""
    data = clump(
        frame_list([(IDENTITY, -1)]),
        geometry_list([]),
        [atomic(0, inline_geometry=geometry(TRIANGLE))],
    )
    c = read_clump(data)
    assert len(c.geometries) == 0
    assert c.atomics[0].geometry.vertex_count == 3


def test_lights_and_cameras():
    data = clump(
        frame_list([(IDENTITY, -1), (translation(0.0, 0.0, 5.0), 0)]),
        geometry_list([geometry(TRIANGLE)]),
        [atomic(0)],
        lights=[light(1, light_type=0x81, color=(1.0, 0.5, 0.25)), light(0, light_type=0x02)],
        cameras=[camera(0)],
    )
    c = read_clump(data)

    assert len(c.lights) == 2
    assert c.lights[0].light_type == LightType.SPOT
    assert c.lights[0].color == (1.0, 0.5, 0.25)
    assert c.lights[0].radius == 10.0
    assert c.lights[0].frame is c.frames[1]
    assert c.lights[1].light_type == LightType.AMBIENT
    assert c.lights[1] in c.frames[0].children


def test_light_frame_out_of_range():
    data = clump(
        frame_list([(IDENTITY, -1)]),
        geometry_list([geometry(TRIANGLE)]),
        [atomic(0)],
        lights=[light(4)],
    )
    with pytest.raises(InvalidBackReference, match="light frame"):
        read_clump(data)


def test_short_clump_struct():
    """Old clumps carry only the atomic count."""
    data = clump(
        frame_list([(IDENTITY, -1)]),
        geometry_list([geometry(TRIANGLE)]),
        [atomic(0)],
        short_struct=True,
    )
    c = read_clump(data)
    assert len(c.atomics) == 1
    assert c.lights == []


def test_textured_clump_without_dictionary():
    with pytest.raises(TextureNotFound, match="wall01"):
        read_clump(simple_clump("wall01"))


def test_textured_clump_with_bound_dictionary():
    session = DecodeSession()
    dictionary = session.read_dictionary(tex_dictionary([tex_native("wall01")]), "generic")

    c = read_clump(simple_clump("WALL01"), session)

    material = c.geometries[0].materials[0]
    assert material.texture is dictionary.find("wall01")
    assert list(c.iter_textures()) == [material.texture]


def test_iter_textures_distinct():
    session = DecodeSession()
    session.read_dictionary(tex_dictionary([tex_native("a"), tex_native("b")]))
    mats = material_list(
        [-1, -1, -1],
        [material(texture=texture_ref("a")), material(texture=texture_ref("b")), material(texture=texture_ref("A"))],
    )
    meshes = [(0, [0, 1, 2]), (1, [0, 1, 2]), (2, [0, 1, 2])]
    data = clump(
        frame_list([(IDENTITY, -1)]),
        geometry_list([geometry(TRIANGLE, materials=mats, meshes=meshes)]),
        [atomic(0)],
    )
    c = read_clump(data, session)
    assert [t.name for t in c.iter_textures()] == ["a", "b"]


def test_session_read_clump_skips_leading_sections():
    session = DecodeSession()
    c = session.read_clump(chunk(0x2, b"junk") + simple_clump())
    assert len(c.atomics) == 1


def test_session_read_clump_not_found():
    with pytest.raises(SectionNotFound, match="CLUMP"):
        DecodeSession().read_clump(chunk(0x2, b"junk") + chunk(0))


def test_session_read_clump_from_file(tmp_path):
    path = tmp_path / "model.dff"
    path.write_bytes(simple_clump())
    c = DecodeSession().read_clump(str(path))
    assert c.frames[0].name == "root"


def test_clump_consumes_its_section():
    stream = RwStream.from_bytes(simple_clump() + b"tail")
    Clump.read(stream, DecodeSession())
    assert stream.read_bytes(4) == b"tail"
