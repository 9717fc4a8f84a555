"""Decode errors for the RenderWare stream readers.

Every error is terminal for the decode call that raised it and carries the
values needed to act on it (ids, offsets, names) as attributes.
"""
from typing import Optional

from .rw_types import section_name


class RwError(ValueError):
    """Base class for malformed or unsupported RenderWare input."""


class UnexpectedEndOfData(RwError):
    """Fewer bytes available than a read or a declared size requires."""

    def __init__(self, requested: int, available: int, offset: int, context: str = ""):
        self.requested = requested
        self.available = available
        self.offset = offset
        self.context = context
        where = f" ({context})" if context else ""
        super().__init__(
            f"Unexpected end of data at offset {offset:#x}{where}: "
            f"need {requested} bytes, {available} available"
        )


class SectionMismatch(RwError):
    """A specific section was required but another one was found."""

    def __init__(self, expected: int, found: int, offset: Optional[int] = None):
        self.expected = expected
        self.found = found
        self.offset = offset
        at = f" at offset {offset:#x}" if offset is not None else ""
        super().__init__(
            f"Expected section {section_name(expected)}, found {section_name(found)}{at}"
        )


class SectionNotFound(RwError):
    """Scanned to the end of the stream without locating a section."""

    def __init__(self, section_id: int):
        self.section_id = section_id
        super().__init__(f"Section {section_name(section_id)} not found")


class InvalidBackReference(RwError):
    """An index refers outside the list built so far."""

    def __init__(self, kind: str, index: int, available: int):
        self.kind = kind
        self.index = index
        self.available = available
        super().__init__(
            f"Invalid {kind} index {index}: only {available} decoded so far"
        )


class InvalidEncoding(RwError):
    """A string payload is not valid UTF-8."""

    def __init__(self, data: bytes):
        self.data = data
        super().__init__(f"String is not valid UTF-8: {data[:32]!r}")


class UnsupportedPlatform(RwError):
    """A recognised but unimplemented texture platform."""

    def __init__(self, platform: int):
        self.platform = platform
        super().__init__(f"Unsupported texture platform id {platform:#x}")


class UnsupportedFormat(RwError):
    """A recognised but unimplemented on-disk layout."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Unsupported format: {detail}")


class TextureNotFound(RwError):
    """No dictionary is bound, or the bound one lacks the texture."""

    def __init__(self, name: str, dictionary: Optional[str] = None):
        self.name = name
        self.dictionary = dictionary
        if dictionary is None:
            super().__init__(f"Texture '{name}' requested with no dictionary bound")
        else:
            super().__init__(f"Texture '{name}' not found in dictionary '{dictionary}'")
