"""Tests for the section framework and byte cursor."""
import io
import os
import random
import struct
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from rw_extractor.errors import (
    InvalidEncoding,
    SectionMismatch,
    SectionNotFound,
    UnexpectedEndOfData,
)
from rw_extractor.rw_section import (
    Extension,
    SectionBuf,
    Struct,
    find_next,
    peek_header,
    read_header,
    read_header_expecting,
    read_string,
    skip,
    skip_section,
)
from rw_extractor.rw_stream import RwStream
from rw_extractor.rw_types import SectionId, section_name, unpack_library_version

from rw_builders import chunk, extension, string_chunk, struct_chunk


@pytest.mark.parametrize("size", [0, 1, 7, 64, 1000])
def test_read_header_then_skip_advances_by_header_and_payload(size):
    """Cursor should land exactly 12 + size bytes past the header start."""
    data = b"\xAA" * 5 + chunk(0x1234, b"\x01" * size) + b"trailing"
    stream = RwStream.from_bytes(data)
    stream.seek(5)

    header = read_header(stream)
    skip(stream, header)

    assert header.section_id == 0x1234
    assert header.size == size
    assert stream.tell() == 5 + 12 + size


def test_read_header_short_input():
    """Should raise when fewer than 12 bytes remain."""
    stream = RwStream.from_bytes(b"\x01\x00\x00\x00\x04\x00")
    with pytest.raises(UnexpectedEndOfData, match="section header") as exc_info:
        read_header(stream)
    assert exc_info.value.requested == 12
    assert exc_info.value.available == 6


def test_read_header_payload_larger_than_input():
    """A declared size past the end of input is always an error."""
    stream = RwStream.from_bytes(struct.pack("<III", 0x1, 100, 0) + b"\x00" * 10)
    with pytest.raises(UnexpectedEndOfData):
        read_header(stream)


def test_read_header_expecting_mismatch():
    """Should report expected and found ids."""
    stream = RwStream.from_bytes(chunk(SectionId.STRING, b"abc\x00"))
    with pytest.raises(SectionMismatch, match="STRUCT") as exc_info:
        read_header_expecting(stream, SectionId.STRUCT)
    assert exc_info.value.expected == SectionId.STRUCT
    assert exc_info.value.found == SectionId.STRING
    assert exc_info.value.offset == 0


def test_skip_section_returns_total_size():
    stream = RwStream.from_bytes(chunk(0x99, b"\x00" * 20) + chunk(0x1))
    assert skip_section(stream) == 32
    assert peek_header(stream).section_id == 0x1


def test_find_next_skips_random_leading_chunks():
    """Should land at the payload start regardless of what precedes it."""
    rng = random.Random(1234)
    for _ in range(20):
        data = b""
        for _ in range(rng.randint(0, 8)):
            section_id = rng.choice([0x2, 0x3, 0x7, 0x99, 0x253F2FE])
            data += chunk(section_id, bytes(rng.randint(0, 255) for _ in range(rng.randint(0, 50))))
        target_payload_start = len(data) + 12
        data += chunk(SectionId.CLUMP, b"payload!")
        data += chunk(0x2, b"after")

        stream = RwStream.from_bytes(data)
        header = find_next(stream, SectionId.CLUMP)

        assert header.section_id == SectionId.CLUMP
        assert stream.tell() == target_payload_start
        assert stream.read_bytes(8) == b"payload!"


def test_find_next_stops_at_zero_id():
    """A zero id header is a hard stop, even if the target follows it."""
    data = chunk(0x2, b"x") + chunk(0) + chunk(SectionId.CLUMP, b"hidden")
    stream = RwStream.from_bytes(data)
    with pytest.raises(SectionNotFound, match="CLUMP") as exc_info:
        find_next(stream, SectionId.CLUMP)
    assert exc_info.value.section_id == SectionId.CLUMP


def test_find_next_end_of_data():
    stream = RwStream.from_bytes(chunk(0x2, b"abcd") + b"\x01\x02")
    with pytest.raises(SectionNotFound):
        find_next(stream, SectionId.TEX_DICTIONARY)


def test_peek_restores_cursor():
    stream = RwStream.from_bytes(chunk(0x15, b"\x00" * 8))
    header = peek_header(stream)
    assert header.section_id == 0x15
    assert stream.tell() == 0


def test_peek_restores_cursor_on_error():
    stream = RwStream.from_bytes(b"\x01\x02\x03\x04")
    with pytest.raises(UnexpectedEndOfData):
        stream.peek(lambda s: s.read_bytes(8))
    assert stream.tell() == 0


def test_struct_read_up_skips_unread_bytes():
    """Bytes left unread inside a struct are skipped."""
    data = struct_chunk(struct.pack("<II", 7, 8)) + chunk(0x2)
    stream = RwStream.from_bytes(data)

    value = Struct.read_up(stream, lambda s: s.read_u32())

    assert value == 7
    assert stream.tell() == 20


def test_struct_read_up_cannot_overrun():
    """Reading past the declared struct size is an error, not a truncation."""
    data = struct_chunk(struct.pack("<I", 7)) + b"\x00" * 16
    stream = RwStream.from_bytes(data)
    with pytest.raises(UnexpectedEndOfData):
        Struct.read_up(stream, lambda s: s.unpack("II"))


def test_bounded_rejects_region_past_limit():
    stream = RwStream.from_bytes(b"\x00" * 16)
    with stream.bounded(8):
        with pytest.raises(UnexpectedEndOfData):
            with stream.bounded(12):
                pass


def test_extension_zero_size_reads_nothing():
    """A zero-size extension decodes to an empty result with no inner reads."""
    calls = []
    data = extension() + b"\xFF" * 4
    stream = RwStream.from_bytes(data)

    results = Extension.read_matching(stream, {0x99: lambda s, h: calls.append(h)})

    assert results == []
    assert calls == []
    assert stream.tell() == 12


def test_extension_read_matching_skips_unknown_plugins():
    data = extension(
        chunk(0x11, b"\x00" * 5),
        chunk(0x22, struct.pack("<I", 42)),
        chunk(0x33, b"zz"),
        chunk(0x22, struct.pack("<I", 43)),
    )
    stream = RwStream.from_bytes(data)

    results = Extension.read_matching(stream, {0x22: lambda s, h: s.read_u32()})

    assert [(r.section_id, r.value) for r in results] == [(0x22, 42), (0x22, 43)]
    assert stream.tell() == len(data)


def test_extension_read_for_consumes_whole_region():
    """Trailing plugins after a match are skipped, never left for the caller."""
    data = extension(
        chunk(0x22, struct.pack("<I", 1)),
        chunk(0x44, b"\x00" * 9),
    ) + chunk(0x2, b"next")
    stream = RwStream.from_bytes(data)

    value = Extension.read_for(stream, 0x22, lambda s, h: s.read_u32())

    assert value == 1
    assert peek_header(stream).section_id == 0x2


def test_extension_read_for_no_match():
    stream = RwStream.from_bytes(extension(chunk(0x44, b"abc")))
    assert Extension.read_for(stream, 0x22, lambda s, h: s.read_u32()) is None
    assert stream.remaining() == 0


def test_extension_decoder_overrun_is_error():
    """A decoder reading past its plugin is stopped at the plugin boundary."""
    data = extension(chunk(0x22, b"\x01\x00"), chunk(0x44, b"\x00" * 8))
    stream = RwStream.from_bytes(data)
    with pytest.raises(UnexpectedEndOfData):
        Extension.read_for(stream, 0x22, lambda s, h: s.read_u32())


def test_read_string_truncates_at_nul():
    stream = RwStream.from_bytes(chunk(SectionId.STRING, b"wall01\x00junk"))
    assert read_string(stream) == "wall01"


def test_read_string_padded():
    stream = RwStream.from_bytes(string_chunk("door"))
    assert read_string(stream) == "door"


def test_read_string_invalid_utf8():
    stream = RwStream.from_bytes(chunk(SectionId.STRING, b"\xFF\xFE\x00"))
    with pytest.raises(InvalidEncoding, match="UTF-8"):
        read_string(stream)


def test_section_buf_reads_raw_payload():
    stream = RwStream.from_bytes(chunk(0x77, b"raw bytes"))
    buf = SectionBuf.read(stream)
    assert buf.header.section_id == 0x77
    assert buf.data == b"raw bytes"


def test_stream_from_file_object_keeps_it_open():
    f = io.BytesIO(chunk(0x2, b"abc\x00"))
    with RwStream(f) as stream:
        assert read_string(stream) == "abc"
    assert not f.closed


def test_section_name():
    assert section_name(0x10) == "CLUMP(0x10)"
    assert section_name(0x12345) == "UNKNOWN(0x12345)"


@pytest.mark.parametrize("stamp,expected", [
    (0x1003FFFF, (3, 4, 0, 3)),
    (0x1803FFFF, (3, 6, 0, 3)),
    (0x0C02FFFF, (3, 3, 0, 2)),
    (0x00000310, (3, 1, 0, 0)),
])
def test_unpack_library_version(stamp, expected):
    assert unpack_library_version(stamp) == expected
