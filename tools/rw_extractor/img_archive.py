"""Reader for GTA .img archives (VER2 layout).

VER2 Format:
- Header: magic "VER2", entry count (u32)
- Directory, 32 bytes per entry:
  - offset (u32, in sectors)
  - streaming size (u16, in sectors)
  - stored size (u16, in sectors; 0 means same as streaming size)
  - name (24 bytes, NUL-terminated)
- Entry data follows, aligned to 2048-byte sectors
"""
import fnmatch
import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

IMG_MAGIC_VER2 = 0x32524556  # "VER2"
SECTOR_SIZE = 2048


@dataclass
class ImgEntry:
    """Directory entry."""
    name: str
    offset: int           # in sectors
    streaming_size: int   # in sectors
    stored_size: int      # in sectors

    SIZE = 32
    NAME_SIZE = 24

    @classmethod
    def read(cls, f: BinaryIO) -> "ImgEntry":
        data = f.read(cls.SIZE)
        if len(data) < cls.SIZE:
            raise ValueError("Truncated IMG directory")
        offset, streaming_size, stored_size = struct.unpack("<IHH", data[:8])
        raw_name = data[8:8 + cls.NAME_SIZE].split(b"\x00", 1)[0]
        return cls(
            name=raw_name.decode("utf-8", errors="replace"),
            offset=offset,
            streaming_size=streaming_size,
            stored_size=stored_size or streaming_size,
        )

    @property
    def byte_offset(self) -> int:
        return self.offset * SECTOR_SIZE

    @property
    def byte_size(self) -> int:
        return self.stored_size * SECTOR_SIZE


class ImgArchive:
    """Reader for a single-file VER2 .img archive."""

    def __init__(self, path: Union[str, Path]):
        """Initialize with path to .img file.

        Args:
            path: Path to .img file
        """
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Archive file not found: {self.path}")

        self._file: Optional[BinaryIO] = None
        self._entries: Dict[str, ImgEntry] = {}

    def open(self):
        """Open the archive and parse its directory."""
        self._file = open(self.path, "rb")
        try:
            self._parse_directory()
        except ValueError:
            self.close()
            raise

    def close(self):
        """Close archive file."""
        if self._file:
            self._file.close()
            self._file = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _parse_directory(self):
        f = self._file
        f.seek(0)

        header = f.read(8)
        if len(header) < 8:
            raise ValueError("File too small for an IMG header")
        magic, count = struct.unpack("<II", header)
        if magic != IMG_MAGIC_VER2:
            raise ValueError(f"Invalid IMG magic: {magic:#x}, expected VER2")

        entries = {}
        for _ in range(count):
            entry = ImgEntry.read(f)
            entries[entry.name.lower()] = entry
        self._entries = entries
        logger.debug(f"IMG {self.path.name}: {count} entries")

    def __len__(self) -> int:
        return len(self._entries)

    def list_files(self, pattern: str = "*") -> List[str]:
        """List entry names matching a glob pattern (case-insensitive)."""
        pattern_lower = pattern.lower()
        return [
            entry.name for key, entry in self._entries.items()
            if fnmatch.fnmatch(key, pattern_lower)
        ]

    def get_entry(self, name: str) -> Optional[ImgEntry]:
        """Get entry by name (case-insensitive)."""
        return self._entries.get(name.lower())

    def read(self, name: str) -> bytes:
        """Read an entry's stored sectors.

        Raises:
            KeyError: If the archive has no such entry
            ValueError: If the archive is not open or the entry runs past the end of the file
        """
        if self._file is None:
            raise ValueError(f"IMG archive not open: {self.path.name}")

        entry = self.get_entry(name)
        if entry is None:
            raise KeyError(name)

        self._file.seek(entry.byte_offset)
        data = self._file.read(entry.byte_size)
        if len(data) < entry.byte_size:
            raise ValueError(
                f"Entry '{entry.name}' truncated: {len(data)} of {entry.byte_size} bytes"
            )
        return data

    def extract_to_file(self, name: str, output_path: Union[str, Path]) -> bool:
        """Extract an entry to disk.

        Returns:
            True if successful
        """
        try:
            data = self.read(name)
        except KeyError:
            logger.warning(f"Entry not found: {name}")
            return False

        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(data)
        return True
