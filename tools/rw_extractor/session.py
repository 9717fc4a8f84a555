"""Decode session: the state threaded through every model decode.

The only state is the bound texture dictionary, a single slot that starts
unbound. Texture sections found inside materials resolve against it.
"""
import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .errors import TextureNotFound
from .rw_clump import Clump
from .rw_section import find_next
from .rw_stream import RwStream
from .rw_texture import TexDictionary, Texture
from .rw_types import HEADER_SIZE, SectionId

logger = logging.getLogger(__name__)

Source = Union[str, Path, BinaryIO, bytes]


class DecodeSession:
    """Holds the bound dictionary for one load operation. Not thread-safe."""

    def __init__(self, dictionary: Optional[TexDictionary] = None):
        self._dictionary = dictionary

    @property
    def dictionary(self) -> Optional[TexDictionary]:
        return self._dictionary

    @property
    def is_bound(self) -> bool:
        return self._dictionary is not None

    def bind_dictionary(self, dictionary: TexDictionary):
        """Bind a dictionary, replacing any previous one."""
        logger.debug(f"Binding dictionary '{dictionary.name}' ({len(dictionary)} textures)")
        self._dictionary = dictionary

    def unbind_dictionary(self):
        self._dictionary = None

    def find_texture(self, name: str, mask: Optional[str] = None) -> Texture:
        """Resolve a texture name against the bound dictionary.

        Raises:
            TextureNotFound: If nothing is bound or the name is missing
        """
        if self._dictionary is None:
            raise TextureNotFound(name)
        texture = self._dictionary.find(name)
        if texture is None:
            raise TextureNotFound(name, self._dictionary.name)
        return texture

    def read_dictionary(self, source: Source, name: Optional[str] = None,
                        bind: bool = True) -> TexDictionary:
        """Decode the first TexDictionary of a .txd file, file object or bytes.

        Args:
            source: .txd path, binary file object or raw bytes
            name: Dictionary name; defaults to the lower-cased file stem for paths
            bind: Bind the decoded dictionary to this session

        Returns:
            The decoded dictionary
        """
        if name is None:
            name = Path(source).stem.lower() if isinstance(source, (str, Path)) else ""

        with open_stream(source) as stream:
            seek_to_section(stream, SectionId.TEX_DICTIONARY)
            dictionary = TexDictionary.read(stream, name)

        if bind:
            self.bind_dictionary(dictionary)
        return dictionary

    def read_clump(self, source: Source) -> Clump:
        """Decode the first Clump of a .dff file, file object or bytes."""
        with open_stream(source) as stream:
            seek_to_section(stream, SectionId.CLUMP)
            return Clump.read(stream, self)


def open_stream(source: Source) -> RwStream:
    if isinstance(source, (bytes, bytearray)):
        return RwStream.from_bytes(bytes(source))
    return RwStream(source)


def seek_to_section(stream: RwStream, section_id: int):
    """Skip leading unrelated sections, leaving the cursor at the wanted header."""
    find_next(stream, section_id)
    stream.seek(stream.tell() - HEADER_SIZE)
