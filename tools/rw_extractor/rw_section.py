"""Section (chunk) framework for RenderWare binary streams.

Every section starts with a 12-byte header:
- type id (u32)
- payload size in bytes (u32)
- library version stamp (u32)

Most sections lead with a Struct section holding their fixed fields and
end with an Extension section holding optional plugin sections.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .errors import InvalidEncoding, SectionMismatch, SectionNotFound, UnexpectedEndOfData
from .rw_stream import RwStream
from .rw_types import HEADER_SIZE, Header, SectionId, section_name

logger = logging.getLogger(__name__)

T = TypeVar("T")

PluginDecoder = Callable[[RwStream, Header], Any]


def _read_raw_header(stream: RwStream) -> Header:
    offset = stream.tell()
    if stream.remaining() < HEADER_SIZE:
        raise UnexpectedEndOfData(HEADER_SIZE, stream.remaining(), offset, "section header")
    section_id, size, version = stream.unpack("III")
    return Header(section_id=section_id, size=size, version=version)


def read_header(stream: RwStream) -> Header:
    """Read a section header.

    Raises:
        UnexpectedEndOfData: If fewer than 12 bytes remain, or the declared
            payload does not fit in what remains of the enclosing region
    """
    header = _read_raw_header(stream)
    if header.size > stream.remaining():
        raise UnexpectedEndOfData(
            header.size, stream.remaining(), stream.tell(), f"{header.name} payload"
        )
    return header


def read_header_expecting(stream: RwStream, section_id: int) -> Header:
    """Read a section header that must have the given type id.

    Raises:
        SectionMismatch: If the header has a different type id
    """
    offset = stream.tell()
    header = _read_raw_header(stream)
    if header.section_id != section_id:
        raise SectionMismatch(section_id, header.section_id, offset)
    if header.size > stream.remaining():
        raise UnexpectedEndOfData(
            header.size, stream.remaining(), stream.tell(), f"{header.name} payload"
        )
    return header


def peek_header(stream: RwStream) -> Header:
    """Read the next header without consuming it."""
    return stream.peek(read_header)


def skip(stream: RwStream, header: Header):
    """Skip the payload of a section whose header was just read."""
    stream.skip(header.size)


def skip_section(stream: RwStream, section_id: Optional[int] = None) -> int:
    """Skip a whole section (header and payload).

    Returns:
        Number of bytes skipped
    """
    if section_id is None:
        header = read_header(stream)
    else:
        header = read_header_expecting(stream, section_id)
    skip(stream, header)
    return HEADER_SIZE + header.size


def find_next(stream: RwStream, section_id: int) -> Header:
    """Scan forward to the next section with the given id.

    Non-matching sections are skipped. A zero type id marks the virtual end
    of the stream; the scan never looks past it.

    Returns:
        The matching header; the cursor is left at the start of its payload

    Raises:
        SectionNotFound: On a zero id header or at the end of data
    """
    while True:
        try:
            header = _read_raw_header(stream)
        except UnexpectedEndOfData:
            raise SectionNotFound(section_id) from None

        if header.section_id == 0:
            raise SectionNotFound(section_id)

        if header.section_id == section_id:
            if header.size > stream.remaining():
                raise UnexpectedEndOfData(
                    header.size, stream.remaining(), stream.tell(), f"{header.name} payload"
                )
            return header

        logger.debug(f"find_next: skipping {header.name} ({header.size} bytes)")
        if header.size > stream.remaining():
            raise SectionNotFound(section_id)
        skip(stream, header)


def decode_string(data: bytes) -> str:
    """Decode a NUL-terminated UTF-8 byte string."""
    end = data.find(b"\x00")
    if end >= 0:
        data = data[:end]
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        raise InvalidEncoding(data) from None


def read_string(stream: RwStream) -> str:
    """Read a String section."""
    header = read_header_expecting(stream, SectionId.STRING)
    return decode_string(stream.read_bytes(header.size))


@dataclass
class SectionBuf:
    """A section read as raw bytes, for sections without a decoder."""

    header: Header
    data: bytes

    @classmethod
    def read(cls, stream: RwStream, section_id: Optional[int] = None) -> "SectionBuf":
        if section_id is None:
            header = read_header(stream)
        else:
            header = read_header_expecting(stream, section_id)
        return cls(header=header, data=stream.read_bytes(header.size))


class Section:
    """Base for types stored as one section kind."""

    SECTION_ID: int = 0

    @classmethod
    def read_header(cls, stream: RwStream) -> Header:
        return read_header_expecting(stream, cls.SECTION_ID)

    @classmethod
    def skip_section(cls, stream: RwStream) -> int:
        return skip_section(stream, cls.SECTION_ID)

    @classmethod
    def find_chunk(cls, stream: RwStream) -> Header:
        return find_next(stream, cls.SECTION_ID)

    @classmethod
    def body(cls, stream: RwStream, header: Header):
        """Bound reads to the payload of a section whose header was just read."""
        return stream.bounded(header.size, section_name(header.section_id))


class Struct(Section):
    """The leading Struct section holding a section's fixed fields."""

    SECTION_ID = SectionId.STRUCT

    @classmethod
    def read_up(cls, stream: RwStream, fn: Callable[[RwStream], T]) -> T:
        """Read a Struct section's payload with fn.

        fn may not read past the declared struct size; bytes it leaves
        unread are skipped.
        """
        header = cls.read_header(stream)
        with cls.body(stream, header):
            return fn(stream)

    @classmethod
    def read_up_with_header(cls, stream: RwStream, fn: Callable[[RwStream, Header], T]) -> T:
        """Same as read_up, but fn also receives the struct header."""
        header = cls.read_header(stream)
        with cls.body(stream, header):
            return fn(stream, header)

    @classmethod
    def peek_up(cls, stream: RwStream, fn: Callable[[RwStream], T]) -> T:
        """Read a Struct with fn, then restore the cursor to the struct header."""
        return stream.peek(lambda s: cls.read_up(s, fn))


@dataclass(frozen=True)
class PluginResult:
    """A plugin section decoded out of an Extension."""

    section_id: int
    value: Any


class Extension(Section):
    """Trailing region of zero or more plugin sections, in any order."""

    SECTION_ID = SectionId.EXTENSION

    @classmethod
    def read_matching(cls, stream: RwStream,
                      decoders: Dict[int, PluginDecoder]) -> List[PluginResult]:
        """Decode the plugins that have a decoder, skip the rest.

        Args:
            stream: Stream positioned at the Extension header
            decoders: Plugin section id -> decoder(stream, plugin_header);
                the decoder starts at the plugin payload

        Returns:
            Decoded plugins in stream order
        """
        header = cls.read_header(stream)
        if header.size == 0:
            return []

        results = []
        with cls.body(stream, header) as end:
            while stream.tell() < end:
                plugin = peek_header(stream)
                decoder = decoders.get(plugin.section_id)
                if decoder is None:
                    logger.debug(f"Extension: skipping plugin {plugin.name} ({plugin.size} bytes)")
                    skip_section(stream)
                    continue

                read_header(stream)
                with cls.body(stream, plugin):
                    results.append(PluginResult(plugin.section_id, decoder(stream, plugin)))
        return results

    @classmethod
    def read_for(cls, stream: RwStream, section_id: int,
                 decoder: PluginDecoder) -> Optional[Any]:
        """Decode the first plugin with the given id, or None.

        The whole region is consumed whether or not it matched.
        """
        for result in cls.read_matching(stream, {section_id: decoder}):
            if result.section_id == section_id:
                return result.value
        return None
