"""Seekable little-endian byte cursor used by every section reader."""
import io
import struct
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, List, Tuple, TypeVar, Union

from .errors import UnexpectedEndOfData

T = TypeVar("T")


class RwStream:
    """Binary reader over a seekable source.

    All reads are exact: a short read raises UnexpectedEndOfData instead of
    returning fewer bytes. Section readers push the end offset of the
    section they are decoding with bounded(); reads and skips past the
    innermost bound fail the same way a read past the end of the file does.
    """

    def __init__(self, source: Union[str, Path, BinaryIO]):
        """Initialize stream with file path or file-like object.

        Args:
            source: Path to a file or a seekable binary file-like object
        """
        if isinstance(source, (str, Path)):
            self._file = open(source, "rb")
            self._owns_file = True
        else:
            self._file = source
            self._owns_file = False

        start = self._file.tell()
        self._file.seek(0, 2)
        self._size = self._file.tell()
        self._file.seek(start)

        self._limits: List[int] = []

    @classmethod
    def from_bytes(cls, data: bytes) -> "RwStream":
        """Create from bytes."""
        return cls(io.BytesIO(data))

    def close(self):
        """Close the underlying file if we opened it."""
        if self._owns_file:
            self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def size(self) -> int:
        """Total size of the source in bytes."""
        return self._size

    @property
    def limit(self) -> int:
        """End offset of the innermost bounded region (or of the source)."""
        return self._limits[-1] if self._limits else self._size

    def tell(self) -> int:
        return self._file.tell()

    def seek(self, offset: int):
        """Seek to an absolute offset inside the current bound."""
        if offset < 0 or offset > self.limit:
            raise UnexpectedEndOfData(
                max(0, offset - self.tell()), self.remaining(), self.tell(), "seek"
            )
        self._file.seek(offset)

    def remaining(self) -> int:
        """Bytes left between the cursor and the innermost bound."""
        return max(0, self.limit - self._file.tell())

    def skip(self, count: int):
        """Advance the cursor without reading the bytes."""
        if count > self.remaining():
            raise UnexpectedEndOfData(count, self.remaining(), self.tell(), "skip")
        self._file.seek(count, 1)

    def read_bytes(self, count: int) -> bytes:
        """Read exactly count bytes."""
        offset = self._file.tell()
        if count > self.remaining():
            raise UnexpectedEndOfData(count, self.remaining(), offset)
        data = self._file.read(count)
        if len(data) < count:
            raise UnexpectedEndOfData(count, len(data), offset)
        return data

    def unpack(self, fmt: str) -> Tuple:
        """Read and unpack a little-endian struct format."""
        fmt = "<" + fmt
        return struct.unpack(fmt, self.read_bytes(struct.calcsize(fmt)))

    def read_u8(self) -> int:
        return self.read_bytes(1)[0]

    def read_u16(self) -> int:
        return struct.unpack("<H", self.read_bytes(2))[0]

    def read_i16(self) -> int:
        return struct.unpack("<h", self.read_bytes(2))[0]

    def read_u32(self) -> int:
        return struct.unpack("<I", self.read_bytes(4))[0]

    def read_i32(self) -> int:
        return struct.unpack("<i", self.read_bytes(4))[0]

    def read_f32(self) -> float:
        return struct.unpack("<f", self.read_bytes(4))[0]

    def peek(self, fn: Callable[["RwStream"], T]) -> T:
        """Run fn against the stream, then restore the cursor.

        The cursor is restored even when fn raises.
        """
        start = self._file.tell()
        depth = len(self._limits)
        try:
            return fn(self)
        finally:
            del self._limits[depth:]
            self._file.seek(start)

    @contextmanager
    def bounded(self, size: int, context: str = "") -> Iterator[int]:
        """Restrict reads to the next size bytes.

        On normal exit any bytes left unread inside the region are skipped,
        so the cursor always ends at the region's end.

        Yields:
            Absolute end offset of the region
        """
        end = self._file.tell() + size
        if end > self.limit:
            raise UnexpectedEndOfData(size, self.remaining(), self.tell(), context)
        self._limits.append(end)
        try:
            yield end
        finally:
            self._limits.pop()
        if self._file.tell() < end:
            self._file.seek(end)
